from django.test import SimpleTestCase
from django.urls import reverse

from circulation.errors import get_contextual_error_message, get_error_message
from circulation.models import BorrowRecord, Reader

from .base import CirculationTestCase, User


class ErrorMessageTests(SimpleTestCase):
    def test_conflict_messages_name_the_field(self):
        """Test conflict messages name the duplicated field"""
        self.assertEqual(
            get_error_message(409, 'email: A user with this email already exists.'),
            'Email này đã được sử dụng. Vui lòng chọn email khác.',
        )
        self.assertEqual(
            get_error_message(409, 'card_number: reader with this card number already exists.'),
            'Số thẻ này đã được sử dụng. Vui lòng chọn số thẻ khác.',
        )
        self.assertEqual(
            get_error_message(409, 'duplicate'),
            'Thông tin này đã tồn tại trong hệ thống. Vui lòng kiểm tra lại.',
        )

    def test_status_messages(self):
        """Test messages for common status codes"""
        self.assertEqual(get_error_message(400, 'title: required'), 'Dữ liệu không hợp lệ: title: required')
        self.assertEqual(get_error_message(404), 'Không tìm thấy tài nguyên được yêu cầu.')
        self.assertEqual(get_error_message(418, ''), 'Đã xảy ra lỗi không xác định.')
        self.assertEqual(get_error_message(418, 'teapot'), 'teapot')

    def test_context_prefix(self):
        """Test the per-screen prefix on error messages"""
        self.assertEqual(
            get_contextual_error_message(409, 'username taken', 'user'),
            'Tạo user thất bại: Tên đăng nhập này đã được sử dụng. Vui lòng chọn tên đăng nhập khác.',
        )
        self.assertEqual(get_contextual_error_message(404, '', 'unknown'), 'Không tìm thấy tài nguyên được yêu cầu.')


class ErrorResponseTests(CirculationTestCase):
    def test_unauthenticated_response_has_message(self):
        """Test a 401 response carries a message"""
        response = self.client.get(reverse('fine_list'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['message'], 'Bạn không có quyền thực hiện hành động này.')

    def test_not_found(self):
        """Test a 404 response carries a message"""
        self.client.force_authenticate(user=self.librarian)
        response = self.client.post(reverse('borrow_record_return', kwargs={'pk': 9999}), {}, format='json')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['message'], 'Không tìm thấy tài nguyên được yêu cầu.')

    def test_duplicate_user_email_is_conflict(self):
        """Test a duplicate user email is a 409 with a message"""
        admin = User.objects.create_superuser(username='admin', email='admin@example.com', password='adminpass123')
        self.client.force_authenticate(user=admin)
        response = self.client.post(
            reverse('user_list'),
            {'username': 'another', 'email': 'student@example.com', 'password': 'pass12345'},
            format='json',
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['message'], 'Tạo user thất bại: Email này đã được sử dụng. Vui lòng chọn email khác.')

    def test_duplicate_card_number_is_conflict(self):
        """Test a duplicate card number is a 409 with a message"""
        self.client.force_authenticate(user=self.librarian)
        response = self.client.post(
            reverse('reader_list'), {'full_name': 'Le Van C', 'card_number': 'HS001'}, format='json'
        )
        self.assertEqual(response.status_code, 409)
        self.assertTrue(response.data['message'].startswith('Tạo reader thất bại: Số thẻ'))
        self.assertEqual(Reader.objects.count(), 1)

    def test_business_rule_message(self):
        """Test business rule errors keep their own message"""
        record = self.make_record(status=BorrowRecord.Status.RETURNED)
        self.client.force_authenticate(user=self.librarian)
        response = self.client.post(reverse('borrow_record_return', kwargs={'pk': record.pk}), {}, format='json')
        self.assertEqual(response.status_code, 409)
        self.assertIn("is 'returned'", response.data['message'])

    def test_invalid_payload(self):
        """Test invalid payloads are a 400 with a message"""
        self.client.force_authenticate(user=self.librarian)
        response = self.client.post(reverse('reader_list'), {'card_number': 'HS009'}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.data['message'].startswith('Tạo reader thất bại: Dữ liệu không hợp lệ: full_name'))
