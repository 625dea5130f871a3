from datetime import date
from decimal import Decimal

from django.urls import reverse

from circulation import services, stats
from circulation.models import BorrowRecord, Reservation

from .base import CirculationTestCase, local_dt


class StatsTests(CirculationTestCase):
    def test_borrow_stats(self):
        """Test borrow statistics"""
        self.make_record(due_date=date(2024, 1, 15))
        self.make_record(copy=self.copy2, status=BorrowRecord.Status.RETURNED, borrow_date=date(2023, 12, 20))
        result = stats.borrow_stats(now=local_dt(2024, 1, 16))
        self.assertEqual(result['total'], 2)
        self.assertEqual(result['borrowed'], 1)
        self.assertEqual(result['returned'], 1)
        self.assertEqual(result['active_loans'], 1)
        self.assertEqual(result['overdue_loans'], 1)
        self.assertEqual(result['by_month'], [{'month': '2023-12', 'count': 1}, {'month': '2024-01', 'count': 1}])
        self.assertEqual(result['by_reader_type'], [{'reader_type': 'student', 'count': 2}])

    def test_overdue_stats(self):
        """Test overdue statistics"""
        self.make_record(due_date=date(2024, 1, 10))
        self.make_record(copy=self.copy2, status=BorrowRecord.Status.OVERDUE, due_date=date(2024, 1, 13))
        result = stats.overdue_stats(now=local_dt(2024, 1, 16))
        self.assertEqual(result['total_overdue'], 2)
        self.assertEqual(result['by_days_overdue'], [{'days_overdue': 3, 'count': 1}, {'days_overdue': 6, 'count': 1}])
        self.assertEqual(result['by_reader_type'], [{'reader_type': 'student', 'count': 2}])

    def test_fine_stats(self):
        """Test fine statistics"""
        record = self.make_record(status=BorrowRecord.Status.OVERDUE)
        paid = services.create_fine(record.pk, fine_amount=10000, now=local_dt(2024, 1, 18))
        services.pay_fine(paid.pk, 4000)
        services.create_fine(record.pk, fine_amount=6000, now=local_dt(2024, 1, 18))
        result = stats.fine_stats()
        self.assertEqual(result['total'], 2)
        self.assertEqual(result['unpaid'], 1)
        self.assertEqual(result['partially_paid'], 1)
        self.assertEqual(result['total_amount'], Decimal('16000'))
        self.assertEqual(result['total_paid'], Decimal('4000'))
        self.assertEqual(result['total_unpaid'], Decimal('12000'))
        self.assertEqual(result['by_type'], [{'type': 'overdue', 'count': 2, 'amount': Decimal('16000')}])

    def test_reservation_stats(self):
        """Test reservation statistics"""
        now = local_dt(2024, 1, 14, 10)
        cancelled = services.create_reservation(
            self.reader, self.book, physical_copy=self.copy, expiry_date=local_dt(2024, 1, 20), now=now
        )
        Reservation.objects.filter(pk=cancelled.pk).update(status=Reservation.Status.CANCELLED)
        services.create_reservation(self.reader, self.book, expiry_date=local_dt(2024, 1, 14, 18), now=now)
        result = stats.reservation_stats(now=now)
        self.assertEqual(result['total'], 2)
        self.assertEqual(result['pending'], 1)
        self.assertEqual(result['cancelled'], 1)
        self.assertEqual(result['expiring_soon'], 1)

    def test_endpoints_require_librarian(self):
        """Test statistics endpoints are for librarians only"""
        self.client.force_authenticate(user=self.reader_user)
        self.assertEqual(self.client.get(reverse('fine_stats')).status_code, 403)
        self.client.force_authenticate(user=self.librarian)
        for name in ('borrow_record_stats', 'borrow_record_overdue_stats', 'fine_stats', 'reservation_stats'):
            self.assertEqual(self.client.get(reverse(name)).status_code, 200, name)


class AuthTests(CirculationTestCase):
    def test_login(self):
        """Test JWT login endpoint"""
        response = self.client.post(
            reverse('token_obtain_pair'), {'username': 'student', 'password': 'studentpass123'}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_bearer_token_authenticates(self):
        """Test a bearer token authenticates API calls"""
        token = self.client.post(
            reverse('token_obtain_pair'), {'username': 'librarian', 'password': 'libpass123'}, format='json'
        ).data['access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get(reverse('reader_list'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['results'][0]['card_number'], 'HS001')
