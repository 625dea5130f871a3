from datetime import date, datetime, timezone as dt_timezone

from django.test import SimpleTestCase, override_settings

from circulation.dates import (
    calculate_days_overdue,
    calculate_days_until_due,
    calculate_due_date,
    default_renewal_date,
    is_due_within_3_days,
    is_due_within_days,
    is_expired_by_end_of_day,
    is_expiring_soon,
    is_overdue,
    to_date,
    validate_renewal_date,
)
from circulation.exceptions import RenewalWindowError
from circulation.models import BorrowRecord, ReaderType

from .base import TEST_SETTINGS, local_dt


@override_settings(**TEST_SETTINGS)
class CalendarDateTests(SimpleTestCase):
    def test_to_date_uses_local_calendar_day(self):
        """Test an instant late in the UTC day is already tomorrow in Hanoi"""
        instant = datetime(2024, 1, 15, 20, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(to_date(instant), date(2024, 1, 16))
        self.assertEqual(to_date('2024-01-15'), date(2024, 1, 15))
        self.assertEqual(to_date(date(2024, 1, 15)), date(2024, 1, 15))

    def test_to_date_rejects_garbage(self):
        """Test unparseable dates are rejected"""
        with self.assertRaises(ValueError):
            to_date('next tuesday')

    def test_due_date_follows_reader_type(self):
        """Test the due date uses the reader type's loan period"""
        teacher = ReaderType(name=ReaderType.Name.TEACHER, borrow_duration_days=30)
        self.assertEqual(calculate_due_date(date(2024, 1, 1), teacher), date(2024, 1, 31))


@override_settings(**TEST_SETTINGS)
class OverdueTests(SimpleTestCase):
    def record(self, status=BorrowRecord.Status.BORROWED, due_date=date(2024, 1, 15)):
        return BorrowRecord(status=status, due_date=due_date)

    def test_overdue_from_start_of_due_date(self):
        """Test a loan is overdue one second into its due date"""
        self.assertTrue(is_overdue(self.record(), now=local_dt(2024, 1, 15, 0, 0, 1)))
        self.assertFalse(is_overdue(self.record(), now=local_dt(2024, 1, 14, 23, 59, 59)))

    def test_only_active_loans_are_overdue(self):
        """Test only loans still out can be overdue"""
        now = local_dt(2024, 2, 1)
        for status in (BorrowRecord.Status.RETURNED, BorrowRecord.Status.PENDING_APPROVAL,
                       BorrowRecord.Status.CANCELLED, BorrowRecord.Status.OVERDUE):
            self.assertFalse(is_overdue(self.record(status=status), now=now))
        self.assertTrue(is_overdue(self.record(status=BorrowRecord.Status.RENEWED), now=now))

    def test_days_overdue_rounds_partial_days_up(self):
        """Test partial overdue days round up"""
        due = date(2024, 1, 15)
        self.assertEqual(calculate_days_overdue(due, now=local_dt(2024, 1, 15, 10)), 1)
        self.assertEqual(calculate_days_overdue(due, now=local_dt(2024, 1, 18)), 3)
        self.assertEqual(calculate_days_overdue(due, now=local_dt(2024, 1, 14)), 0)

    def test_days_until_due(self):
        """Test counting days until the due date"""
        due = date(2024, 1, 15)
        self.assertEqual(calculate_days_until_due(due, now=local_dt(2024, 1, 14, 10)), 1)
        self.assertEqual(calculate_days_until_due(due, now=local_dt(2024, 1, 12, 12)), 3)
        self.assertEqual(calculate_days_until_due(due, now=local_dt(2024, 1, 15, 1)), 0)

    def test_due_soon_window(self):
        """Test the due-soon window bounds"""
        due = date(2024, 1, 15)
        self.assertTrue(is_due_within_days(due, days=3, now=local_dt(2024, 1, 12, 12)))
        self.assertFalse(is_due_within_days(due, days=3, now=local_dt(2024, 1, 11, 12)))
        # Already due today: not "due soon" any more
        self.assertFalse(is_due_within_days(due, days=3, now=local_dt(2024, 1, 15, 10)))
        self.assertTrue(is_due_within_3_days(due, now=local_dt(2024, 1, 14)))


@override_settings(**TEST_SETTINGS)
class ReservationExpiryTests(SimpleTestCase):
    def test_valid_through_the_whole_expiry_day(self):
        """Test a reservation is valid until its expiry day ends"""
        expiry = local_dt(2024, 1, 15, 9)
        self.assertFalse(is_expired_by_end_of_day(expiry, now=local_dt(2024, 1, 15, 23)))
        self.assertTrue(is_expired_by_end_of_day(expiry, now=local_dt(2024, 1, 16, 0, 0, 1)))

    def test_expiring_soon(self):
        """Test the expiring-soon window"""
        expiry = local_dt(2024, 1, 15, 9)
        self.assertTrue(is_expiring_soon(expiry, 1, now=local_dt(2024, 1, 15, 8)))
        self.assertFalse(is_expiring_soon(expiry, 1, now=local_dt(2024, 1, 14, 20)))
        self.assertTrue(is_expiring_soon(expiry, 3, now=local_dt(2024, 1, 14, 20)))


@override_settings(**TEST_SETTINGS)
class RenewalWindowTests(SimpleTestCase):
    def test_default_renewal_adds_max_days(self):
        """Test the default renewal date adds the maximum window"""
        self.assertEqual(default_renewal_date(date(2024, 1, 15)), date(2024, 1, 29))

    def test_window_bounds(self):
        """Test the renewal window accepts its upper bound and rejects one past it"""
        current = date(2024, 1, 15)
        self.assertEqual(validate_renewal_date(current, date(2024, 1, 27)), date(2024, 1, 27))
        self.assertEqual(validate_renewal_date(current, '2024-01-29'), date(2024, 1, 29))
        with self.assertRaises(RenewalWindowError):
            validate_renewal_date(current, date(2024, 1, 30))
        with self.assertRaises(RenewalWindowError):
            validate_renewal_date(current, current)

    @override_settings(CIRCULATION={'MAX_RENEWAL_DAYS': 7})
    def test_window_is_configurable(self):
        """Test the renewal window follows settings"""
        with self.assertRaises(RenewalWindowError):
            validate_renewal_date(date(2024, 1, 15), date(2024, 1, 23))
