from datetime import date, datetime

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from circulation.models import Author, Book, BorrowRecord, Category, PhysicalCopy, Reader, ReaderType

User = get_user_model()


def local_dt(year, month, day, hour=0, minute=0, second=0):
    return timezone.make_aware(datetime(year, month, day, hour, minute, second))


TEST_SETTINGS = {
    'TIME_ZONE': 'Asia/Ho_Chi_Minh',
    'CIRCULATION': {
        'DAILY_FINE_RATE': 5000,
        'MAX_RENEWAL_DAYS': 14,
        'DUE_SOON_DAYS': 3,
        'RESERVATION_HOLD_DAYS': 3,
        'EXPIRING_SOON_DAYS': 1,
    },
}


@override_settings(**TEST_SETTINGS)
class CirculationTestCase(TestCase):
    """Shared catalog: one librarian, one student reader and two copies of one book."""

    def setUp(self):
        self.client = APIClient()
        self.librarian = User.objects.create_user(
            username='librarian', email='librarian@example.com', password='libpass123',
            role=User.Role.LIBRARIAN,
        )
        self.reader_user = User.objects.create_user(
            username='student', email='student@example.com', password='studentpass123',
            role=User.Role.READER,
        )
        self.student_type = ReaderType.objects.create(
            name=ReaderType.Name.STUDENT, max_borrow_limit=3, borrow_duration_days=14
        )
        self.reader = Reader.objects.create(
            full_name='Nguyen Van An', card_number='HS001', email='an@example.com',
            reader_type=self.student_type, user=self.reader_user,
        )
        self.author = Author.objects.create(name='To Hoai')
        self.category = Category.objects.create(name='Fiction')
        self.book = Book.objects.create(title='De Men phieu luu ky', author=self.author, category=self.category)
        self.copy = PhysicalCopy.objects.create(book=self.book, barcode='BC-001')
        self.copy2 = PhysicalCopy.objects.create(book=self.book, barcode='BC-002')

    def make_record(self, status=BorrowRecord.Status.BORROWED, due_date=date(2024, 1, 15),
                    borrow_date=date(2024, 1, 1), copy=None, reader=None, **kwargs):
        copy = copy or self.copy
        if status in BorrowRecord.ACTIVE_LOAN_STATUSES + (BorrowRecord.Status.OVERDUE,):
            copy.status = PhysicalCopy.Status.BORROWED
            copy.save(update_fields=['status'])
        return BorrowRecord.objects.create(
            reader=reader or self.reader, physical_copy=copy, status=status,
            borrow_date=borrow_date, due_date=due_date, **kwargs
        )

    def refresh(self, *objects):
        for obj in objects:
            obj.refresh_from_db()
