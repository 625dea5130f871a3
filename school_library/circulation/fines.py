from decimal import Decimal

from django.utils import timezone

from .conf import circulation_setting
from .dates import calculate_days_overdue
from .models import BorrowRecord, Fine


def daily_fine_rate():
    return Decimal(circulation_setting('DAILY_FINE_RATE'))


def calculate_fine_amount(days_overdue, daily_rate=None):
    if daily_rate is None:
        daily_rate = daily_fine_rate()
    return Decimal(days_overdue) * Decimal(daily_rate)


def overdue_days_for(record, now=None):
    """Days late at return time for returned records, otherwise days late right now."""
    if record.status == BorrowRecord.Status.RETURNED and record.return_date:
        return calculate_days_overdue(record.due_date, now=record.return_date)
    return calculate_days_overdue(record.due_date, now=now)


def overdue_description(days_overdue):
    return f"Phạt trả sách muộn {days_overdue} ngày"


def default_payment_reason(reader):
    return f"{reader.card_number} - {reader.full_name} nộp phạt"


def build_overdue_fine(record, librarian_notes='', daily_rate=None, now=None):
    """Unsaved overdue Fine for ``record`` priced at ``daily_rate`` per late day."""
    now = now or timezone.now()
    if daily_rate is None:
        daily_rate = daily_fine_rate()
    days = overdue_days_for(record, now=now)
    return Fine(
        borrow_record=record,
        fine_amount=calculate_fine_amount(days, daily_rate),
        fine_date=now,
        reason=Fine.Reason.OVERDUE,
        description=overdue_description(days),
        overdue_days=days,
        daily_rate=Decimal(daily_rate),
        librarian_notes=librarian_notes or f'Tạo phiếu phạt cho sách "{record.physical_copy.book.title}"',
    )
