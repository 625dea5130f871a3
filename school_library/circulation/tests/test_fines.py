from datetime import date
from decimal import Decimal

from django.core import mail
from django.test import override_settings
from django.urls import reverse

from circulation import services
from circulation.exceptions import InvalidFine, InvalidTransition, PaymentRejected
from circulation.fines import build_overdue_fine, calculate_fine_amount, overdue_days_for
from circulation.models import BorrowRecord, Fine, PhysicalCopy

from .base import CirculationTestCase, local_dt


class FineCalculationTests(CirculationTestCase):
    def test_amount_is_days_times_rate(self):
        """Test the fine is days times the daily rate"""
        self.assertEqual(calculate_fine_amount(3), Decimal('15000'))
        self.assertEqual(calculate_fine_amount(2, daily_rate=1000), Decimal('2000'))
        self.assertEqual(calculate_fine_amount(0), Decimal('0'))

    @override_settings(CIRCULATION={'DAILY_FINE_RATE': 2000})
    def test_rate_is_configurable(self):
        """Test the daily rate follows settings"""
        self.assertEqual(calculate_fine_amount(3), Decimal('6000'))

    def test_returned_record_counts_until_return(self):
        """Test a late return is priced at the return instant"""
        record = self.make_record(status=BorrowRecord.Status.RETURNED, return_date=local_dt(2024, 1, 17, 12))
        self.assertEqual(overdue_days_for(record, now=local_dt(2024, 3, 1)), 3)

    def test_build_overdue_fine(self):
        """Test building an unsaved overdue fine"""
        record = self.make_record()
        fine = build_overdue_fine(record, now=local_dt(2024, 1, 18))
        self.assertIsNone(fine.pk)
        self.assertEqual(fine.overdue_days, 3)
        self.assertEqual(fine.fine_amount, Decimal('15000'))
        self.assertEqual(fine.daily_rate, Decimal('5000'))
        self.assertEqual(fine.description, 'Phạt trả sách muộn 3 ngày')
        self.assertIn(self.book.title, fine.librarian_notes)


class FineServiceTests(CirculationTestCase):
    def setUp(self):
        super().setUp()
        self.record = self.make_record(status=BorrowRecord.Status.OVERDUE)

    def test_create_overdue_fine_notifies_reader(self):
        """Test creating a fine emails the reader"""
        with self.captureOnCommitCallbacks(execute=True):
            fine = services.create_fine(self.record.pk, now=local_dt(2024, 1, 18))
        self.assertEqual(fine.status, Fine.Status.UNPAID)
        self.assertEqual(fine.fine_amount, Decimal('15000'))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, f'Fine Notice: {self.book.title}')

    def test_librarian_override_amount(self):
        """Test an overridden amount stores the per-day rate that reproduces it"""
        fine = services.create_fine(self.record.pk, fine_amount='12000', now=local_dt(2024, 1, 18))
        self.assertEqual(fine.fine_amount, Decimal('12000'))
        self.assertEqual(fine.daily_rate, Decimal('4000'))

        uneven = services.create_fine(self.record.pk, fine_amount=100000, now=local_dt(2024, 1, 18))
        uneven.refresh_from_db()
        self.assertEqual(uneven.overdue_days, 3)
        self.assertEqual(uneven.daily_rate, Decimal('33333.33'))
        self.assertEqual(uneven.fine_amount, Decimal('100000'))

    def test_damage_fine(self):
        """Test a damage fine keeps its own amount and description"""
        fine = services.create_fine(
            self.record.pk, fine_amount=50000, reason=Fine.Reason.DAMAGE, description='Rách 10 trang'
        )
        self.assertEqual(fine.reason, Fine.Reason.DAMAGE)
        self.assertEqual(fine.overdue_days, 0)
        self.assertEqual(fine.description, 'Rách 10 trang')

    def test_no_fine_for_loan_that_is_not_late(self):
        """Test a loan that is not late cannot get an overdue fine"""
        record = self.make_record(copy=self.copy2, due_date=date(2024, 2, 1))
        with self.assertRaises(InvalidFine):
            services.create_fine(record.pk, now=local_dt(2024, 1, 20))
        self.assertFalse(Fine.objects.filter(borrow_record=record).exists())

    def test_no_fine_for_pending_request(self):
        """Test a pending request cannot be fined"""
        record = self.make_record(copy=self.copy2, status=BorrowRecord.Status.PENDING_APPROVAL)
        with self.assertRaises(InvalidTransition):
            services.create_fine(record.pk, now=local_dt(2024, 1, 20))

    def test_partial_then_full_payment(self):
        """Test a partial payment followed by the rest"""
        fine = services.create_fine(self.record.pk, now=local_dt(2024, 1, 18))
        services.pay_fine(fine.pk, 5000)
        fine.refresh_from_db()
        self.assertEqual(fine.status, Fine.Status.PARTIALLY_PAID)
        self.assertEqual(fine.outstanding_amount, Decimal('10000'))

        services.pay_fine(fine.pk, '10000', payment_method=Fine.PaymentMethod.BANK_TRANSFER)
        fine.refresh_from_db()
        self.assertEqual(fine.status, Fine.Status.PAID)
        self.assertEqual(fine.payment_method, Fine.PaymentMethod.BANK_TRANSFER)
        self.assertIsNotNone(fine.payment_date)
        self.assertIn('HS001 - Nguyen Van An nộp phạt', fine.librarian_notes)

        with self.assertRaises(InvalidTransition):
            services.pay_fine(fine.pk, 1000)

    def test_overpayment_rejected(self):
        """Test paying more than is owed is rejected"""
        fine = services.create_fine(self.record.pk, now=local_dt(2024, 1, 18))
        with self.assertRaises(PaymentRejected):
            services.pay_fine(fine.pk, 20000)
        fine.refresh_from_db()
        self.assertEqual(fine.paid_amount, Decimal('0'))

    def test_waive(self):
        """Test waiving a fine"""
        fine = services.create_fine(self.record.pk, now=local_dt(2024, 1, 18))
        services.waive_fine(fine.pk, librarian_notes='Hoàn cảnh khó khăn')
        fine.refresh_from_db()
        self.assertEqual(fine.status, Fine.Status.WAIVED)
        with self.assertRaises(InvalidTransition):
            services.waive_fine(fine.pk)

    def test_fine_and_return(self):
        """Test fining an open loan returns it and frees the copy together"""
        fine = services.create_fine_and_return(self.record.pk, librarian=self.librarian, now=local_dt(2024, 1, 18))
        self.refresh(self.record, self.copy)
        self.assertEqual(fine.fine_amount, Decimal('15000'))
        self.assertEqual(self.record.status, BorrowRecord.Status.RETURNED)
        self.assertIn('Trả sách sau khi tạo phiếu phạt', self.record.return_notes)
        self.assertEqual(self.copy.status, PhysicalCopy.Status.AVAILABLE)

    def test_fine_returned_record_marks_copy_lost(self):
        """Test fining a returned loan can mark the copy lost"""
        self.record.status = BorrowRecord.Status.RETURNED
        self.record.return_date = local_dt(2024, 1, 18, 9)
        self.record.save()
        services.create_fine_and_return(
            self.record.pk, fine_amount=100000, copy_status=PhysicalCopy.Status.LOST, now=local_dt(2024, 1, 20)
        )
        self.copy.refresh_from_db()
        self.assertEqual(self.copy.status, PhysicalCopy.Status.LOST)

    def test_cancelled_record_cannot_be_fined(self):
        """Test a cancelled record cannot be fined"""
        record = self.make_record(copy=self.copy2, status=BorrowRecord.Status.CANCELLED)
        with self.assertRaises(InvalidTransition):
            services.create_fine_and_return(record.pk, fine_amount=1000)
        record.refresh_from_db()
        self.assertEqual(record.status, BorrowRecord.Status.CANCELLED)
        self.assertFalse(Fine.objects.filter(borrow_record=record).exists())


class FineApiTests(CirculationTestCase):
    def setUp(self):
        super().setUp()
        self.record = self.make_record(status=BorrowRecord.Status.OVERDUE, due_date=date(2020, 1, 1))
        self.client.force_authenticate(user=self.librarian)

    def test_create_via_fines_endpoint(self):
        """Test creating a fine over the API"""
        response = self.client.post(reverse('fine_list'), {'borrow_id': self.record.pk}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['borrow_id'], self.record.pk)
        self.assertEqual(response.data['status'], Fine.Status.UNPAID)
        self.assertGreater(Decimal(response.data['fine_amount']), 0)

    def test_create_requires_borrow_id(self):
        """Test creating a fine needs a borrow record"""
        response = self.client.post(reverse('fine_list'), {}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_non_overdue_fine_requires_amount(self):
        """Test a non-overdue fine needs an amount"""
        response = self.client.post(reverse('borrow_record_fine', kwargs={'pk': self.record.pk}),
                                    {'reason': 'damage'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_return_with_fine(self):
        """Test returning a loan with a fine over the API"""
        response = self.client.post(
            reverse('borrow_record_return_with_fine', kwargs={'pk': self.record.pk}),
            {'fine_amount': '30000', 'description': 'Trả muộn'}, format='json'
        )
        self.assertEqual(response.status_code, 201)
        self.record.refresh_from_db()
        self.assertEqual(self.record.status, BorrowRecord.Status.RETURNED)

    def test_pay_more_than_outstanding(self):
        """Test the API rejects overpayment and accepts the exact amount"""
        fine = services.create_fine(self.record.pk, fine_amount=10000)
        response = self.client.post(reverse('fine_pay', kwargs={'pk': fine.pk}), {'amount': '10001'}, format='json')
        self.assertEqual(response.status_code, 400)
        response = self.client.post(reverse('fine_pay', kwargs={'pk': fine.pk}), {'amount': '10000'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], Fine.Status.PAID)

    def test_waive_twice_is_conflict(self):
        """Test waiving twice is a conflict"""
        fine = services.create_fine(self.record.pk, fine_amount=10000)
        url = reverse('fine_waive', kwargs={'pk': fine.pk})
        self.assertEqual(self.client.post(url, {}, format='json').status_code, 200)
        self.assertEqual(self.client.post(url, {}, format='json').status_code, 409)

    def test_filter_unpaid(self):
        """Test filtering fines by status"""
        paid = services.create_fine(self.record.pk, fine_amount=1000)
        services.pay_fine(paid.pk, 1000)
        unpaid = services.create_fine(self.record.pk, fine_amount=2000)
        response = self.client.get(reverse('fine_list'), {'status': 'unpaid'})
        self.assertEqual([f['id'] for f in response.data['results']], [unpaid.pk])


class LateLoanScenarioTests(CirculationTestCase):
    def test_two_week_loan_five_days_late(self):
        """Test a two-week loan from Jan 1 still out on Jan 20"""
        record = services.create_borrow_record(self.reader, self.copy, now=local_dt(2024, 1, 1, 9))
        self.assertEqual(record.due_date, date(2024, 1, 15))

        swept = services.sweep_overdue(now=local_dt(2024, 1, 20))
        self.assertEqual([r.pk for r in swept], [record.pk])

        fine = services.create_fine(record.pk, now=local_dt(2024, 1, 20))
        self.assertEqual(fine.overdue_days, 5)
        self.assertEqual(fine.fine_amount, Decimal('25000'))
