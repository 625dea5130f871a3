"""User-facing error messages and the DRF exception handler.

The handler keeps DRF's response body and adds a ``message`` key with the
text the admin client shows in its notification toast.
"""
import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler, set_rollback

from .exceptions import CirculationError

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = 'Đã xảy ra lỗi không xác định.'

CONFLICT_MESSAGES = (
    ('email', 'Email này đã được sử dụng. Vui lòng chọn email khác.'),
    ('username', 'Tên đăng nhập này đã được sử dụng. Vui lòng chọn tên đăng nhập khác.'),
    ('user_code', 'Mã người dùng này đã được sử dụng. Vui lòng chọn mã khác.'),
    ('card_number', 'Số thẻ này đã được sử dụng. Vui lòng chọn số thẻ khác.'),
)

STATUS_MESSAGES = {
    status.HTTP_401_UNAUTHORIZED: 'Bạn không có quyền thực hiện hành động này.',
    status.HTTP_403_FORBIDDEN: 'Bạn không có quyền truy cập tài nguyên này.',
    status.HTTP_404_NOT_FOUND: 'Không tìm thấy tài nguyên được yêu cầu.',
    status.HTTP_500_INTERNAL_SERVER_ERROR: 'Lỗi hệ thống. Vui lòng thử lại sau.',
}

CONTEXT_PREFIXES = {
    'user': 'Tạo user thất bại: ',
    'reader': 'Tạo reader thất bại: ',
}

UNIQUE_FIELDS = ('email', 'username', 'user_code', 'card_number')


def get_error_message(status_code, message=''):
    if status_code == status.HTTP_409_CONFLICT:
        for field, text in CONFLICT_MESSAGES:
            if field in message:
                return text
        return 'Thông tin này đã tồn tại trong hệ thống. Vui lòng kiểm tra lại.'
    if status_code == status.HTTP_400_BAD_REQUEST:
        return f'Dữ liệu không hợp lệ: {message}'
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    return message or UNKNOWN_ERROR


def get_contextual_error_message(status_code, message='', context='general'):
    return CONTEXT_PREFIXES.get(context, '') + get_error_message(status_code, message)


def _flatten(detail):
    if isinstance(detail, dict):
        parts = []
        for key, value in detail.items():
            text = _flatten(value)
            parts.append(text if key in ('detail', 'non_field_errors') else f'{key}: {text}')
        return '; '.join(parts)
    if isinstance(detail, (list, tuple)):
        return '; '.join(_flatten(item) for item in detail)
    return str(detail)


def _unique_violation(exc):
    if not isinstance(exc, ValidationError) or not isinstance(exc.detail, dict):
        return False
    codes = exc.get_codes()
    return any(
        field in codes and 'unique' in (codes[field] if isinstance(codes[field], list) else [codes[field]])
        for field in UNIQUE_FIELDS
    )


def exception_handler(exc, context):
    response = drf_exception_handler(exc, context)

    if response is None:
        if isinstance(exc, IntegrityError):
            logger.warning('Integrity error: %s', exc)
            set_rollback()
            response = Response({'detail': 'The change conflicts with existing data.'}, status=status.HTTP_409_CONFLICT)
        else:
            # Let Django turn it into a 500 and log it.
            return None
    elif _unique_violation(exc):
        response.status_code = status.HTTP_409_CONFLICT

    view = context.get('view')
    error_context = getattr(view, 'error_context', 'general')
    raw = _flatten(response.data)
    if isinstance(exc, CirculationError):
        # Business rule violations already carry a readable explanation.
        message = CONTEXT_PREFIXES.get(error_context, '') + str(exc.detail)
    else:
        message = get_contextual_error_message(response.status_code, raw, error_context)
    if isinstance(response.data, dict):
        response.data['message'] = message
    else:
        response.data = {'detail': response.data, 'message': message}
    return response
