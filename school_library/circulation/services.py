"""Circulation operations.

Each public function is one database transaction. Status changes go through
``_transition``, a conditional ``UPDATE ... WHERE status IN (...)`` that
raises ``InvalidTransition`` when another request already moved the row, so
repeating an action is rejected instead of applied twice.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from . import notifications
from .conf import circulation_setting
from .dates import (
    calculate_days_until_due,
    calculate_due_date,
    default_renewal_date,
    is_due_within_days,
    is_expired_by_end_of_day,
    is_overdue,
    start_of_day,
    to_date,
    today,
    validate_renewal_date,
)
from .exceptions import (
    BorrowLimitExceeded,
    CopyUnavailable,
    InactiveReader,
    InvalidDueDate,
    InvalidFine,
    InvalidTransition,
    MissingReaderPolicy,
    PaymentRejected,
    ReservationExpired,
)
from .fines import build_overdue_fine, default_payment_reason
from .models import BorrowRecord, Fine, PhysicalCopy, Reservation

logger = logging.getLogger(__name__)

Status = BorrowRecord.Status
CopyStatus = PhysicalCopy.Status

RETURNABLE_STATUSES = (Status.BORROWED, Status.RENEWED, Status.OVERDUE)
RENEWABLE_STATUSES = (Status.BORROWED, Status.RENEWED)
UNFINEABLE_STATUSES = (Status.PENDING_APPROVAL, Status.CANCELLED, Status.REJECTED)
POST_RETURN_COPY_STATUSES = (CopyStatus.AVAILABLE, CopyStatus.DAMAGED, CopyStatus.LOST, CopyStatus.MAINTENANCE)


def _append_note(existing, note):
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


def _transition(instance, allowed, **changes):
    model = type(instance)
    if any(f.name == 'updated_at' for f in model._meta.concrete_fields):
        changes.setdefault('updated_at', timezone.now())
    updated = model.objects.filter(pk=instance.pk, status__in=allowed).update(**changes)
    if not updated:
        raise InvalidTransition(
            f"{model._meta.verbose_name.capitalize()} {instance.pk} is '{instance.status}'; "
            f"expected one of: {', '.join(allowed)}."
        )
    for field, value in changes.items():
        setattr(instance, field, value)
    return instance


def _lock_record(record_id):
    return BorrowRecord.objects.select_for_update().get(pk=record_id)


def _lock_copy(copy_id):
    return PhysicalCopy.objects.select_for_update().get(pk=copy_id)


def _set_copy_status(copy, status, notes=''):
    copy.status = status
    fields = ['status']
    if notes:
        copy.notes = notes
        fields.append('notes')
    copy.save(update_fields=fields)
    return copy


def _require_policy(reader):
    if not reader.is_active:
        raise InactiveReader(f'Reader {reader.card_number} is inactive.')
    if reader.reader_type is None:
        raise MissingReaderPolicy(f'Reader {reader.card_number} has no reader type.')
    return reader.reader_type


def _check_borrow_limit(reader, reader_type):
    open_count = BorrowRecord.objects.filter(reader=reader, status__in=BorrowRecord.OPEN_STATUSES).count()
    if open_count >= reader_type.max_borrow_limit:
        raise BorrowLimitExceeded(
            f'Reader {reader.card_number} already has {open_count} open loan(s); '
            f'the limit for {reader_type.name} readers is {reader_type.max_borrow_limit}.'
        )


def _has_open_record(copy):
    return BorrowRecord.objects.filter(physical_copy=copy, status__in=BorrowRecord.OPEN_STATUSES).exists()


def _pending_holds(copy):
    return Reservation.objects.filter(physical_copy=copy, status=Reservation.Status.PENDING)


def _ensure_copy_free_for(copy, reader):
    """A copy can go to ``reader`` when it is available or held for that reader."""
    if copy.status == CopyStatus.AVAILABLE:
        return
    if copy.status == CopyStatus.RESERVED and _pending_holds(copy).filter(reader=reader).exists():
        return
    raise CopyUnavailable(f"Copy {copy.barcode} is '{copy.status}'.")


def _ensure_copy_lendable(copy, reader):
    if _has_open_record(copy):
        raise CopyUnavailable(f'Copy {copy.barcode} already has an open borrow record.')
    _ensure_copy_free_for(copy, reader)


# Borrow records

def create_borrow_record(reader, physical_copy, librarian=None, status=Status.BORROWED,
                         borrow_date=None, due_date=None, borrow_notes='', now=None):
    if status not in (Status.PENDING_APPROVAL, Status.BORROWED):
        raise InvalidTransition(f"New borrow records start as pending_approval or borrowed, not '{status}'.")
    with transaction.atomic():
        reader_type = _require_policy(reader)
        _check_borrow_limit(reader, reader_type)
        copy = _lock_copy(physical_copy.pk)
        _ensure_copy_lendable(copy, reader)

        borrow_date = to_date(borrow_date) if borrow_date else today(now)
        due_date = to_date(due_date) if due_date else calculate_due_date(borrow_date, reader_type)
        if due_date < borrow_date:
            raise InvalidDueDate()

        record = BorrowRecord.objects.create(
            reader=reader,
            physical_copy=copy,
            librarian=librarian,
            borrow_date=borrow_date,
            due_date=due_date,
            status=status,
            borrow_notes=borrow_notes,
        )
        if status == Status.BORROWED:
            _set_copy_status(copy, CopyStatus.BORROWED, 'Đang được mượn bởi độc giả')
            notifications.notify_borrow_confirmed(record)
    logger.info('Created borrow record %s (%s) for reader %s', record.pk, status, reader.card_number)
    return record


def approve_borrow_record(record_id, librarian=None, notes='', now=None):
    with transaction.atomic():
        record = _lock_record(record_id)
        reader_type = _require_policy(record.reader)
        borrow_date = today(now)
        changes = {
            'status': Status.BORROWED,
            'borrow_date': borrow_date,
            'due_date': calculate_due_date(borrow_date, reader_type),
            'borrow_notes': _append_note(record.borrow_notes, notes),
        }
        if librarian is not None:
            changes['librarian'] = librarian
        _transition(record, [Status.PENDING_APPROVAL], **changes)

        copy = _lock_copy(record.physical_copy_id)
        _ensure_copy_free_for(copy, record.reader)
        _set_copy_status(copy, CopyStatus.BORROWED, 'Đang được mượn bởi độc giả')
        notifications.notify_borrow_confirmed(record)
    logger.info('Approved borrow record %s', record.pk)
    return record


def reject_borrow_record(record_id, librarian=None, notes=''):
    with transaction.atomic():
        record = _lock_record(record_id)
        changes = {'status': Status.REJECTED, 'borrow_notes': _append_note(record.borrow_notes, notes)}
        if librarian is not None:
            changes['librarian'] = librarian
        _transition(record, [Status.PENDING_APPROVAL], **changes)
    logger.info('Rejected borrow record %s', record.pk)
    return record


def return_borrow_record(record_id, librarian=None, return_notes='', copy_status=None, now=None):
    now = now or timezone.now()
    copy_status = copy_status or CopyStatus.AVAILABLE
    if copy_status not in POST_RETURN_COPY_STATUSES:
        raise CopyUnavailable(f"A returned copy cannot be marked '{copy_status}'.")
    with transaction.atomic():
        record = _lock_record(record_id)
        changes = {
            'status': Status.RETURNED,
            'return_date': now,
            'return_notes': _append_note(record.return_notes, return_notes),
        }
        if librarian is not None:
            changes['librarian'] = librarian
        _transition(record, RETURNABLE_STATUSES, **changes)
        copy = _lock_copy(record.physical_copy_id)
        notes = 'Sách đã được trả và sẵn sàng cho mượn' if copy_status == CopyStatus.AVAILABLE else return_notes
        _set_copy_status(copy, copy_status, notes)
    logger.info('Returned borrow record %s, copy %s is now %s', record.pk, copy.barcode, copy_status)
    return record


def renew_borrow_record(record_id, new_due_date=None, librarian=None, notes=''):
    with transaction.atomic():
        record = _lock_record(record_id)
        if record.status not in RENEWABLE_STATUSES:
            raise InvalidTransition(f"Borrow record {record.pk} is '{record.status}' and cannot be renewed.")
        new_due_date = validate_renewal_date(record.due_date, new_due_date or default_renewal_date(record.due_date))
        changes = {
            'status': Status.RENEWED,
            'due_date': new_due_date,
            'renewal_count': record.renewal_count + 1,
            'borrow_notes': _append_note(record.borrow_notes, notes),
        }
        if librarian is not None:
            changes['librarian'] = librarian
        _transition(record, RENEWABLE_STATUSES, **changes)
        copy = _lock_copy(record.physical_copy_id)
        _set_copy_status(copy, CopyStatus.BORROWED, 'Sách đã được gia hạn thời gian mượn')
    logger.info('Renewed borrow record %s until %s', record.pk, new_due_date)
    return record


def mark_overdue(record_id, now=None):
    now = now or timezone.now()
    with transaction.atomic():
        record = _lock_record(record_id)
        if record.status in BorrowRecord.ACTIVE_LOAN_STATUSES and not is_overdue(record, now=now):
            raise InvalidTransition(f'Borrow record {record.pk} is not past its due date {record.due_date}.')
        note = f"Cập nhật trạng thái quá hạn - {timezone.localtime(now).strftime('%d/%m/%Y')}"
        _transition(
            record,
            BorrowRecord.ACTIVE_LOAN_STATUSES,
            status=Status.OVERDUE,
            return_notes=_append_note(record.return_notes, note),
        )
    logger.info('Marked borrow record %s overdue', record.pk)
    return record


def cancel_borrow_record(record_id, librarian=None, reason=''):
    with transaction.atomic():
        record = _lock_record(record_id)
        changes = {'status': Status.CANCELLED, 'return_notes': _append_note(record.return_notes, reason)}
        if librarian is not None:
            changes['librarian'] = librarian
        _transition(record, BorrowRecord.OPEN_STATUSES, **changes)
        copy = _lock_copy(record.physical_copy_id)
        # A reserved copy stays reserved while someone's hold still points at it.
        releasable = copy.status == CopyStatus.BORROWED or (
            copy.status == CopyStatus.RESERVED and not _pending_holds(copy).exists()
        )
        if releasable:
            _set_copy_status(copy, CopyStatus.AVAILABLE, 'Phiếu mượn đã bị hủy')
    logger.info('Cancelled borrow record %s', record.pk)
    return record


def send_reminder(record_id, now=None):
    record = BorrowRecord.objects.select_related('reader', 'physical_copy__book').get(pk=record_id)
    if record.status not in RETURNABLE_STATUSES:
        raise InvalidTransition(f"Borrow record {record.pk} is '{record.status}'; nothing to remind about.")
    days = 0 if record.status == Status.OVERDUE else calculate_days_until_due(record.due_date, now=now)
    notifications.notify_due_reminder(record, days)
    return days


# Fines

def create_fine(record_id, librarian_notes='', fine_amount=None, reason=Fine.Reason.OVERDUE,
                description='', daily_rate=None, now=None):
    now = now or timezone.now()
    with transaction.atomic():
        record = _lock_record(record_id)
        if record.status in UNFINEABLE_STATUSES:
            raise InvalidTransition(f"Borrow record {record.pk} is '{record.status}' and cannot be fined.")
        if reason == Fine.Reason.OVERDUE:
            fine = build_overdue_fine(record, librarian_notes, daily_rate=daily_rate, now=now)
            if fine_amount is not None:
                fine.fine_amount = Decimal(fine_amount)
                if fine.overdue_days:
                    fine.daily_rate = (fine.fine_amount / fine.overdue_days).quantize(Decimal('0.01'))
        else:
            fine = Fine(
                borrow_record=record,
                fine_amount=Decimal(fine_amount or 0),
                reason=reason,
                fine_date=now,
                librarian_notes=librarian_notes,
            )
        if description:
            fine.description = description
        if fine.fine_amount <= 0:
            raise InvalidFine(f'Computed fine amount for borrow record {record.pk} is {fine.fine_amount}.')
        fine.save()
    logger.info('Created %s fine %s of %s for borrow record %s', fine.reason, fine.pk, fine.fine_amount, record.pk)
    return fine


def create_fine_and_return(record_id, librarian=None, fine_amount=None, description='', copy_status=None, now=None):
    """Fine a loan and close it in one transaction.

    Already-returned records only get their copy moved to ``copy_status``
    (e.g. damaged or lost); open loans are returned and the copy freed.
    """
    with transaction.atomic():
        fine = create_fine(record_id, fine_amount=fine_amount, description=description, now=now)
        record = fine.borrow_record
        if record.status == Status.RETURNED:
            if copy_status:
                copy = _lock_copy(record.physical_copy_id)
                _set_copy_status(copy, copy_status, f'Cập nhật trạng thái khi tạo phiếu phạt - {fine.description}')
        else:
            record = return_borrow_record(
                record_id,
                librarian=librarian,
                return_notes=f'Trả sách sau khi tạo phiếu phạt - {fine.description}',
                now=now,
            )
            fine.borrow_record = record
    return fine


def pay_fine(fine_id, amount, payment_method=Fine.PaymentMethod.CASH, librarian_notes='', now=None):
    now = now or timezone.now()
    amount = Decimal(amount)
    with transaction.atomic():
        fine = Fine.objects.select_for_update().get(pk=fine_id)
        if fine.status not in Fine.OUTSTANDING_STATUSES:
            raise InvalidTransition(f"Fine {fine.pk} is already '{fine.status}'.")
        if amount <= 0:
            raise PaymentRejected('The payment amount must be positive.')
        if amount > fine.outstanding_amount:
            raise PaymentRejected(f'The payment exceeds the outstanding amount of {fine.outstanding_amount}.')
        if not librarian_notes:
            librarian_notes = default_payment_reason(fine.borrow_record.reader)
        paid = fine.paid_amount + amount
        _transition(
            fine,
            Fine.OUTSTANDING_STATUSES,
            paid_amount=paid,
            status=Fine.Status.PAID if paid >= fine.fine_amount else Fine.Status.PARTIALLY_PAID,
            payment_method=payment_method,
            payment_date=now,
            librarian_notes=_append_note(fine.librarian_notes, librarian_notes),
        )
    logger.info('Fine %s received %s (%s)', fine.pk, amount, fine.status)
    return fine


def waive_fine(fine_id, librarian_notes=''):
    with transaction.atomic():
        fine = Fine.objects.select_for_update().get(pk=fine_id)
        _transition(
            fine,
            Fine.OUTSTANDING_STATUSES,
            status=Fine.Status.WAIVED,
            librarian_notes=_append_note(fine.librarian_notes, librarian_notes),
        )
    logger.info('Waived fine %s', fine.pk)
    return fine


# Reservations

def create_reservation(reader, book, physical_copy=None, expiry_date=None, librarian=None, notes='', now=None):
    now = now or timezone.now()
    with transaction.atomic():
        if not reader.is_active:
            raise InactiveReader(f'Reader {reader.card_number} is inactive.')
        if Reservation.objects.filter(reader=reader, book=book, status=Reservation.Status.PENDING).exists():
            raise InvalidTransition(f'Reader {reader.card_number} already has a pending reservation for this book.')
        copy = None
        if physical_copy is not None:
            copy = _lock_copy(physical_copy.pk)
            if copy.book_id != book.pk:
                raise CopyUnavailable(f'Copy {copy.barcode} belongs to another book.')
            if _has_open_record(copy):
                raise CopyUnavailable(f'Copy {copy.barcode} already has an open borrow record.')
            if copy.status != CopyStatus.AVAILABLE:
                raise CopyUnavailable(f"Copy {copy.barcode} is '{copy.status}'.")
            _set_copy_status(copy, CopyStatus.RESERVED, f'Đặt trước bởi {reader.full_name}')
        reservation = Reservation.objects.create(
            reader=reader,
            book=book,
            physical_copy=copy,
            reservation_date=now,
            expiry_date=expiry_date or now + timedelta(days=circulation_setting('RESERVATION_HOLD_DAYS')),
            librarian=librarian,
            notes=notes,
        )
    logger.info('Created reservation %s for reader %s', reservation.pk, reader.card_number)
    return reservation


def _first_available_copy(book):
    return PhysicalCopy.objects.select_for_update().filter(book=book, status=CopyStatus.AVAILABLE).order_by('pk').first()


def fulfill_reservation(reservation_id, librarian=None, notes='', now=None):
    """Turn a pending reservation into a borrowed loan.

    The borrow record, the reservation status and the copy status commit
    together or not at all.
    """
    now = now or timezone.now()
    with transaction.atomic():
        reservation = Reservation.objects.select_for_update().get(pk=reservation_id)
        if reservation.status != Reservation.Status.PENDING:
            raise InvalidTransition(f"Reservation {reservation.pk} is '{reservation.status}'.")
        if is_expired_by_end_of_day(reservation.expiry_date, now=now):
            raise ReservationExpired(f'Reservation {reservation.pk} expired on {to_date(reservation.expiry_date)}.')
        reader = reservation.reader
        reader_type = _require_policy(reader)
        _check_borrow_limit(reader, reader_type)

        if reservation.physical_copy_id:
            copy = _lock_copy(reservation.physical_copy_id)
            if copy.status not in (CopyStatus.AVAILABLE, CopyStatus.RESERVED):
                raise CopyUnavailable(f"Copy {copy.barcode} is '{copy.status}'.")
        else:
            copy = _first_available_copy(reservation.book)
            if copy is None:
                raise CopyUnavailable(f'No available copy of "{reservation.book.title}".')

        borrow_date = today(now)
        note = notes or f'Đặt trước được thực hiện - Reservation ID: {reservation.pk}'
        record = BorrowRecord.objects.create(
            reader=reader,
            physical_copy=copy,
            librarian=librarian,
            borrow_date=borrow_date,
            due_date=calculate_due_date(borrow_date, reader_type),
            status=Status.BORROWED,
            borrow_notes=note,
            renewal_count=0,
        )
        _transition(
            reservation,
            [Reservation.Status.PENDING],
            status=Reservation.Status.FULFILLED,
            fulfilled_date=now,
            borrow_record=record,
            physical_copy=copy,
            librarian=librarian,
            notes=_append_note(reservation.notes, note),
        )
        _set_copy_status(copy, CopyStatus.BORROWED, f'Đã mượn - {note}')
        notifications.notify_reservation_fulfilled(reservation, record)
    logger.info('Fulfilled reservation %s as borrow record %s', reservation.pk, record.pk)
    return record


def _close_reservation(reservation, status, librarian, reason):
    changes = {'status': status, 'notes': _append_note(reservation.notes, reason)}
    if librarian is not None:
        changes['librarian'] = librarian
    _transition(reservation, [Reservation.Status.PENDING], **changes)
    if reservation.physical_copy_id:
        copy = _lock_copy(reservation.physical_copy_id)
        if copy.status == CopyStatus.RESERVED:
            _set_copy_status(copy, CopyStatus.AVAILABLE, 'Đặt trước đã kết thúc - Trả về trạng thái sẵn sàng')
    notifications.notify_reservation_closed(reservation)
    return reservation


def cancel_reservation(reservation_id, librarian=None, reason=''):
    with transaction.atomic():
        reservation = Reservation.objects.select_for_update().get(pk=reservation_id)
        _close_reservation(reservation, Reservation.Status.CANCELLED, librarian, reason or 'Hủy bởi thủ thư')
    logger.info('Cancelled reservation %s', reservation.pk)
    return reservation


def expire_reservation(reservation_id, librarian=None, reason='', now=None):
    with transaction.atomic():
        reservation = Reservation.objects.select_for_update().get(pk=reservation_id)
        if reservation.status == Reservation.Status.PENDING and not is_expired_by_end_of_day(
            reservation.expiry_date, now=now
        ):
            raise InvalidTransition(f'Reservation {reservation.pk} is still valid until the end of its expiry day.')
        _close_reservation(reservation, Reservation.Status.EXPIRED, librarian, reason or 'Đặt trước đã hết hạn')
    logger.info('Expired reservation %s', reservation.pk)
    return reservation


# Copies

def set_copy_status(copy_id, status, notes=''):
    with transaction.atomic():
        copy = _lock_copy(copy_id)
        held = BorrowRecord.objects.filter(physical_copy=copy, status__in=BorrowRecord.OPEN_STATUSES).exists()
        if held and status == CopyStatus.AVAILABLE:
            raise InvalidTransition(f'Copy {copy.barcode} has an open borrow record; return or cancel it first.')
        _set_copy_status(copy, status, notes)
    logger.info('Copy %s set to %s', copy.barcode, status)
    return copy


# Sweeps

def sweep_overdue(now=None, dry_run=False):
    """Mark every borrowed/renewed loan whose due date has started as overdue."""
    now = now or timezone.now()
    candidates = BorrowRecord.objects.filter(
        status__in=BorrowRecord.ACTIVE_LOAN_STATUSES, due_date__lte=today(now)
    ).order_by('due_date', 'pk')
    swept = []
    for record in candidates:
        if not is_overdue(record, now=now):
            continue
        if dry_run:
            swept.append(record)
            continue
        try:
            swept.append(mark_overdue(record.pk, now=now))
        except InvalidTransition:
            logger.info('Borrow record %s changed while sweeping; skipped', record.pk)
    logger.info('Overdue sweep at %s: %d record(s)%s', now.isoformat(), len(swept), ' (dry run)' if dry_run else '')
    return swept


def expire_reservations(now=None, dry_run=False):
    """Expire every pending reservation whose expiry day has fully elapsed."""
    now = now or timezone.now()
    candidates = Reservation.objects.filter(
        status=Reservation.Status.PENDING, expiry_date__lt=start_of_day(now)
    ).order_by('expiry_date', 'pk')
    expired = []
    for reservation in candidates:
        if dry_run:
            expired.append(reservation)
            continue
        try:
            expired.append(expire_reservation(reservation.pk, reason='Hết hạn tự động', now=now))
        except InvalidTransition:
            logger.info('Reservation %s changed while sweeping; skipped', reservation.pk)
    logger.info('Reservation sweep at %s: %d expired%s', now.isoformat(), len(expired), ' (dry run)' if dry_run else '')
    return expired


def send_due_reminders(now=None, days=None, dry_run=False):
    """Email readers whose loans fall due within ``days`` (the DUE_SOON_DAYS setting by default)."""
    now = now or timezone.now()
    if days is None:
        days = circulation_setting('DUE_SOON_DAYS')
    records = BorrowRecord.objects.filter(
        status__in=BorrowRecord.ACTIVE_LOAN_STATUSES,
        due_date__gt=today(now),
        due_date__lte=today(now) + timedelta(days=days),
    ).select_related('reader', 'physical_copy__book')
    reminded = []
    for record in records:
        if not is_due_within_days(record.due_date, days=days, now=now):
            continue
        if not dry_run:
            notifications.notify_due_reminder(record, calculate_days_until_due(record.due_date, now=now))
        reminded.append(record)
    logger.info('Due reminders at %s: %d record(s)%s', now.isoformat(), len(reminded), ' (dry run)' if dry_run else '')
    return reminded
