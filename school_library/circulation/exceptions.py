from rest_framework import status
from rest_framework.exceptions import APIException


class CirculationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The circulation request could not be completed.'
    default_code = 'circulation_error'


class InvalidTransition(CirculationError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The record is not in a state that allows this action.'
    default_code = 'invalid_transition'


class CopyUnavailable(CirculationError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The physical copy is not available.'
    default_code = 'copy_unavailable'


class ReservationExpired(CirculationError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The reservation has expired.'
    default_code = 'reservation_expired'


class BorrowLimitExceeded(CirculationError):
    default_detail = 'The reader has reached the borrowing limit.'
    default_code = 'borrow_limit_exceeded'


class MissingReaderPolicy(CirculationError):
    default_detail = 'The reader has no reader type, so no borrowing policy applies.'
    default_code = 'missing_reader_policy'


class InactiveReader(CirculationError):
    default_detail = 'The reader account is inactive.'
    default_code = 'inactive_reader'


class RenewalWindowError(CirculationError):
    default_detail = 'The new due date is outside the renewal window.'
    default_code = 'renewal_window'


class PaymentRejected(CirculationError):
    default_detail = 'The payment was rejected.'
    default_code = 'payment_rejected'


class InvalidDueDate(CirculationError):
    default_detail = 'The due date cannot be before the borrow date.'
    default_code = 'invalid_due_date'


class InvalidFine(CirculationError):
    default_detail = 'The fine amount must be positive.'
    default_code = 'invalid_fine'
