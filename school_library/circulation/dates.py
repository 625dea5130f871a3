"""Calendar rules for loans and reservations.

Dates are local calendar dates in the configured ``TIME_ZONE``. The two
"late" checks differ:

* a loan is overdue as soon as raw ``now`` passes the *start* of its due date;
* a reservation only expires once the whole expiry day has elapsed.

Every function takes an optional ``now`` so callers (and sweeps) can evaluate
the rules at a fixed instant.
"""
import math
from datetime import date, datetime, time, timedelta

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .conf import circulation_setting
from .exceptions import RenewalWindowError

ONE_DAY = timedelta(days=1)


def _now(now=None):
    return now if now is not None else timezone.now()


def to_date(value):
    """Coerce a date, datetime or ISO string into a local calendar date."""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is not None:
            return to_date(parsed)
        parsed = parse_date(value)
        if parsed is not None:
            return parsed
    raise ValueError(f'Not a calendar date: {value!r}')


def start_of_day(value):
    return timezone.make_aware(datetime.combine(to_date(value), time.min))


def end_of_day(value):
    return timezone.make_aware(datetime.combine(to_date(value), time.max))


def today(now=None):
    return timezone.localtime(_now(now)).date()


def calculate_due_date(borrow_date, reader_type):
    return to_date(borrow_date) + timedelta(days=reader_type.borrow_duration_days)


def is_overdue(record, now=None):
    from .models import BorrowRecord

    if record.status not in BorrowRecord.ACTIVE_LOAN_STATUSES:
        return False
    return start_of_day(record.due_date) < _now(now)


def calculate_days_overdue(due_date, now=None):
    diff = _now(now) - start_of_day(due_date)
    return max(math.ceil(diff / ONE_DAY), 0)


def calculate_days_until_due(due_date, now=None):
    diff = start_of_day(due_date) - _now(now)
    return max(math.ceil(diff / ONE_DAY), 0)


def is_due_within_days(due_date, days=None, now=None):
    if days is None:
        days = circulation_setting('DUE_SOON_DAYS')
    return 0 < calculate_days_until_due(due_date, now=now) <= days


def is_due_within_3_days(due_date, now=None):
    return is_due_within_days(due_date, days=3, now=now)


def is_expired_by_end_of_day(expiry_date, now=None):
    return start_of_day(_now(now)) > end_of_day(expiry_date)


def is_expiring_soon(expiry_date, days_threshold=3, now=None):
    remaining = math.ceil((end_of_day(expiry_date) - start_of_day(_now(now))) / ONE_DAY)
    return 0 <= remaining <= days_threshold


def default_renewal_date(current_due_date):
    return to_date(current_due_date) + timedelta(days=circulation_setting('MAX_RENEWAL_DAYS'))


def validate_renewal_date(current_due_date, new_due_date):
    current = to_date(current_due_date)
    requested = to_date(new_due_date)
    latest = default_renewal_date(current)
    if requested <= current:
        raise RenewalWindowError('The new due date must be after the current due date.')
    if requested > latest:
        raise RenewalWindowError(
            f'The new due date cannot be later than {latest.isoformat()} '
            f'(current due date + {circulation_setting("MAX_RENEWAL_DAYS")} days).'
        )
    return requested
