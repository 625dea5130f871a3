"""Dashboard statistics for borrow records, fines and reservations."""
from collections import Counter

from django.db.models import Count, DecimalField, F, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone

from .conf import circulation_setting
from .dates import calculate_days_overdue, is_expired_by_end_of_day, is_expiring_soon, is_overdue
from .models import BorrowRecord, Fine, Reservation

ZERO = Value(0, output_field=DecimalField(max_digits=12, decimal_places=2))


def _group(queryset, field, key):
    rows = queryset.values(field).annotate(count=Count('id')).order_by(field)
    return [{key: row[field], 'count': row['count']} for row in rows]


def _by_month(queryset, field, **aggregates):
    rows = (
        queryset.annotate(month=TruncMonth(field))
        .values('month')
        .annotate(count=Count('id'), **aggregates)
        .order_by('month')
    )
    result = []
    for row in rows:
        item = {'month': row.pop('month').strftime('%Y-%m')}
        item.update(row)
        result.append(item)
    return result


def _overdue_records(now):
    records = BorrowRecord.objects.filter(
        status__in=(BorrowRecord.Status.OVERDUE,) + BorrowRecord.ACTIVE_LOAN_STATUSES
    ).select_related('reader__reader_type')
    return [r for r in records if r.status == BorrowRecord.Status.OVERDUE or is_overdue(r, now=now)]


def borrow_stats(now=None):
    now = now or timezone.now()
    records = BorrowRecord.objects.all()
    counts = dict(records.values_list('status').annotate(count=Count('id')))
    status = BorrowRecord.Status
    return {
        'total': records.count(),
        'by_status': _group(records, 'status', 'status'),
        'borrowed': counts.get(status.BORROWED, 0),
        'returned': counts.get(status.RETURNED, 0),
        'overdue': counts.get(status.OVERDUE, 0),
        'renewed': counts.get(status.RENEWED, 0),
        'active_loans': counts.get(status.BORROWED, 0) + counts.get(status.RENEWED, 0),
        'overdue_loans': len(_overdue_records(now)),
        'by_month': _by_month(records, 'borrow_date'),
        'by_reader_type': _group(records, 'reader__reader_type__name', 'reader_type'),
        'by_book_category': _group(records, 'physical_copy__book__category__name', 'category'),
    }


def overdue_stats(now=None):
    now = now or timezone.now()
    records = _overdue_records(now)
    by_status = Counter(r.status for r in records)
    by_days = Counter(calculate_days_overdue(r.due_date, now=now) for r in records)
    by_type = Counter(r.reader.reader_type.name if r.reader.reader_type else None for r in records)
    return {
        'total_overdue': len(records),
        'by_status': [{'status': k, 'count': v} for k, v in sorted(by_status.items())],
        'by_days_overdue': [{'days_overdue': k, 'count': v} for k, v in sorted(by_days.items())],
        'by_reader_type': [{'reader_type': k, 'count': v} for k, v in sorted(by_type.items(), key=lambda i: str(i[0]))],
    }


def fine_stats():
    fines = Fine.objects.all()
    counts = dict(fines.values_list('status').annotate(count=Count('id')))
    totals = fines.aggregate(
        total_amount=Coalesce(Sum('fine_amount'), ZERO),
        total_paid=Coalesce(Sum('paid_amount'), ZERO),
        total_unpaid=Coalesce(
            Sum(F('fine_amount') - F('paid_amount'), filter=Q(status__in=Fine.OUTSTANDING_STATUSES)), ZERO
        ),
    )
    by_type = (
        fines.values('reason').annotate(count=Count('id'), amount=Coalesce(Sum('fine_amount'), ZERO)).order_by('reason')
    )
    return {
        'total': fines.count(),
        'unpaid': counts.get(Fine.Status.UNPAID, 0),
        'paid': counts.get(Fine.Status.PAID, 0),
        'partially_paid': counts.get(Fine.Status.PARTIALLY_PAID, 0),
        'waived': counts.get(Fine.Status.WAIVED, 0),
        **totals,
        'by_type': [{'type': row['reason'], 'count': row['count'], 'amount': row['amount']} for row in by_type],
        'by_month': _by_month(fines, 'fine_date', amount=Coalesce(Sum('fine_amount'), ZERO)),
    }


def reservation_stats(now=None):
    now = now or timezone.now()
    reservations = Reservation.objects.all()
    counts = dict(reservations.values_list('status').annotate(count=Count('id')))
    days = circulation_setting('EXPIRING_SOON_DAYS')
    pending = reservations.filter(status=Reservation.Status.PENDING).only('expiry_date')
    return {
        'total': reservations.count(),
        'pending': counts.get(Reservation.Status.PENDING, 0),
        'fulfilled': counts.get(Reservation.Status.FULFILLED, 0),
        'cancelled': counts.get(Reservation.Status.CANCELLED, 0),
        'expired': counts.get(Reservation.Status.EXPIRED, 0),
        'by_status': _group(reservations, 'status', 'status'),
        'by_month': _by_month(reservations, 'reservation_date'),
        'expiring_soon': sum(
            1 for r in pending
            if not is_expired_by_end_of_day(r.expiry_date, now=now) and is_expiring_soon(r.expiry_date, days, now=now)
        ),
    }
