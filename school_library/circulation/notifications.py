"""Reader notifications sent by email.

Every public helper schedules the mail with ``transaction.on_commit`` so a
rolled-back saga never notifies anyone, and delivery failures are logged
rather than raised.
"""
import logging
import re

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


class NotificationError(Exception):
    pass


def send_reader_email(reader, subject, message):
    if not reader.email:
        raise NotificationError(f'Reader {reader.card_number} has no email address.')
    if not EMAIL_RE.match(reader.email):
        raise NotificationError(f'Reader {reader.card_number} has an invalid email address.')
    send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, [reader.email], fail_silently=False)


def notify_reader(reader, subject, message):
    """Send after the current transaction commits; never raises."""

    def deliver():
        try:
            send_reader_email(reader, subject, message)
        except Exception:
            logger.warning('Could not notify reader %s: %s', reader.card_number, subject, exc_info=True)
        else:
            logger.info('Notified reader %s: %s', reader.card_number, subject)

    transaction.on_commit(deliver)


def _title(record):
    return record.physical_copy.book.title


def notify_borrow_confirmed(record):
    notify_reader(
        record.reader,
        f'Borrow Confirmation: {_title(record)}',
        f"Dear {record.reader.full_name},\n\n"
        f"You have borrowed '{_title(record)}'.\n"
        f"Due Date: {record.due_date.strftime('%Y-%m-%d')}\n"
        f"Please return it by the due date to avoid fines.\n",
    )


def notify_due_reminder(record, days_until_due):
    if days_until_due <= 0:
        message = 'Sách đã quá hạn trả, vui lòng trả sách sớm nhất có thể.'
    else:
        message = f'Sách sắp đến hạn trả (còn {days_until_due} ngày), vui lòng trả sách đúng hạn.'
    notify_reader(
        record.reader,
        f'Return Reminder: {_title(record)}',
        f"Dear {record.reader.full_name},\n\n{message}\n"
        f"Due Date: {record.due_date.strftime('%Y-%m-%d')}\n",
    )


def notify_reservation_fulfilled(reservation, record):
    notify_reader(
        reservation.reader,
        f'Reservation Fulfilled: {reservation.book.title}',
        f"Xin chào! Đặt trước sách \"{reservation.book.title}\" của bạn đã được thực hiện thành công.\n"
        f"Ngày trả dự kiến: {record.due_date.strftime('%d/%m/%Y')}.\n",
    )


def notify_reservation_closed(reservation):
    if reservation.status == reservation.Status.EXPIRED:
        subject = f'Reservation Expired: {reservation.book.title}'
        message = (
            f"Xin chào! Đặt trước sách \"{reservation.book.title}\" của bạn đã hết hạn. "
            "Sách sẽ được trả về kho và có thể được đặt trước lại nếu cần thiết."
        )
    else:
        subject = f'Reservation Cancelled: {reservation.book.title}'
        message = f"Xin chào! Đặt trước sách \"{reservation.book.title}\" của bạn đã bị hủy."
    notify_reader(reservation.reader, subject, message)
