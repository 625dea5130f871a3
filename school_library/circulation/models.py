from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class User(AbstractUser):
    class Role(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        LIBRARIAN = 'librarian', 'Librarian'
        READER = 'reader', 'Reader'

    user_code = models.CharField(max_length=30, unique=True, null=True, blank=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.LIBRARIAN)

    @property
    def is_librarian(self):
        return self.is_staff or self.role in (self.Role.ADMIN, self.Role.LIBRARIAN)

    def __str__(self):
        return self.username


class ReaderType(models.Model):
    class Name(models.TextChoices):
        STUDENT = 'student', 'Student'
        TEACHER = 'teacher', 'Teacher'
        STAFF = 'staff', 'Staff'
        GUEST = 'guest', 'Guest'

    name = models.CharField(max_length=20, choices=Name.choices, unique=True)
    max_borrow_limit = models.PositiveIntegerField(default=3)
    borrow_duration_days = models.PositiveIntegerField(default=14, validators=[MinValueValidator(1)])
    description = models.TextField(blank=True)

    def __str__(self):
        return self.get_name_display()


class Reader(models.Model):
    full_name = models.CharField(max_length=150)
    card_number = models.CharField(max_length=30, unique=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    reader_type = models.ForeignKey(
        ReaderType, on_delete=models.SET_NULL, null=True, blank=True, related_name='readers'
    )
    user = models.OneToOneField(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='reader'
    )
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.card_number} - {self.full_name}"


class Author(models.Model):
    name = models.CharField(max_length=100)
    bio = models.TextField(blank=True)

    def __str__(self):
        return self.name


class Category(models.Model):
    name = models.CharField(max_length=50)

    def __str__(self):
        return self.name


class Book(models.Model):
    title = models.CharField(max_length=200)
    isbn = models.CharField(max_length=20, blank=True)
    description = models.TextField(blank=True)
    publish_year = models.PositiveIntegerField(null=True, blank=True)
    author = models.ForeignKey(Author, on_delete=models.CASCADE, related_name='books')
    category = models.ForeignKey(Category, on_delete=models.CASCADE, related_name='books')

    def __str__(self):
        return self.title


class PhysicalCopy(models.Model):
    class Status(models.TextChoices):
        AVAILABLE = 'available', 'Available'
        BORROWED = 'borrowed', 'Borrowed'
        RESERVED = 'reserved', 'Reserved'
        DAMAGED = 'damaged', 'Damaged'
        LOST = 'lost', 'Lost'
        MAINTENANCE = 'maintenance', 'Maintenance'

    class Condition(models.TextChoices):
        NEW = 'new', 'New'
        GOOD = 'good', 'Good'
        FAIR = 'fair', 'Fair'
        POOR = 'poor', 'Poor'
        DAMAGED = 'damaged', 'Damaged'

    book = models.ForeignKey(Book, on_delete=models.CASCADE, related_name='copies')
    barcode = models.CharField(max_length=50, unique=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.AVAILABLE)
    location = models.CharField(max_length=100, blank=True)
    condition = models.CharField(max_length=20, choices=Condition.choices, default=Condition.GOOD)
    notes = models.TextField(blank=True)

    class Meta:
        verbose_name_plural = 'physical copies'

    def __str__(self):
        return f"{self.barcode} ({self.book.title})"


class BorrowRecord(models.Model):
    class Status(models.TextChoices):
        PENDING_APPROVAL = 'pending_approval', 'Pending approval'
        BORROWED = 'borrowed', 'Borrowed'
        RETURNED = 'returned', 'Returned'
        OVERDUE = 'overdue', 'Overdue'
        RENEWED = 'renewed', 'Renewed'
        CANCELLED = 'cancelled', 'Cancelled'
        REJECTED = 'rejected', 'Rejected'

    # Loans the reader still holds (the copy is out of the library).
    ACTIVE_LOAN_STATUSES = (Status.BORROWED, Status.RENEWED)
    OPEN_STATUSES = (Status.PENDING_APPROVAL, Status.BORROWED, Status.RENEWED, Status.OVERDUE)

    reader = models.ForeignKey(Reader, on_delete=models.CASCADE, related_name='borrow_records')
    physical_copy = models.ForeignKey(PhysicalCopy, on_delete=models.CASCADE, related_name='borrow_records')
    librarian = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='handled_borrow_records'
    )
    borrow_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING_APPROVAL)
    return_date = models.DateTimeField(null=True, blank=True)
    renewal_count = models.PositiveIntegerField(default=0)
    borrow_notes = models.TextField(blank=True)
    return_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-borrow_date', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['physical_copy'],
                condition=Q(status__in=['pending_approval', 'borrowed', 'renewed', 'overdue']),
                name='one_open_borrow_record_per_copy',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'due_date'], name='borrow_status_due_idx'),
        ]

    def __str__(self):
        return f"{self.reader.full_name} borrowed {self.physical_copy.book.title}"

    def is_overdue(self, now=None):
        from .dates import is_overdue
        return is_overdue(self, now=now)


class Reservation(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        FULFILLED = 'fulfilled', 'Fulfilled'
        CANCELLED = 'cancelled', 'Cancelled'
        EXPIRED = 'expired', 'Expired'

    reader = models.ForeignKey(Reader, on_delete=models.CASCADE, related_name='reservations')
    book = models.ForeignKey(Book, on_delete=models.CASCADE, related_name='reservations')
    physical_copy = models.ForeignKey(
        PhysicalCopy, on_delete=models.SET_NULL, null=True, blank=True, related_name='reservations'
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    reservation_date = models.DateTimeField(default=timezone.now)
    expiry_date = models.DateTimeField()
    fulfilled_date = models.DateTimeField(null=True, blank=True)
    borrow_record = models.OneToOneField(
        BorrowRecord, on_delete=models.SET_NULL, null=True, blank=True, related_name='reservation'
    )
    librarian = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='handled_reservations'
    )
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['reservation_date', 'id']

    def __str__(self):
        return f"{self.reader.full_name} reserved {self.book.title}"


class Fine(models.Model):
    class Status(models.TextChoices):
        UNPAID = 'unpaid', 'Unpaid'
        PARTIALLY_PAID = 'partially_paid', 'Partially paid'
        PAID = 'paid', 'Paid'
        WAIVED = 'waived', 'Waived'

    class Reason(models.TextChoices):
        OVERDUE = 'overdue', 'Overdue'
        DAMAGE = 'damage', 'Damage'
        LOST = 'lost', 'Lost'
        ADMINISTRATIVE = 'administrative', 'Administrative'

    class PaymentMethod(models.TextChoices):
        CASH = 'cash', 'Cash'
        BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
        CARD = 'card', 'Card'
        OTHER = 'other', 'Other'

    OUTSTANDING_STATUSES = (Status.UNPAID, Status.PARTIALLY_PAID)

    borrow_record = models.ForeignKey(BorrowRecord, on_delete=models.CASCADE, related_name='fines')
    fine_amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.UNPAID)
    reason = models.CharField(max_length=20, choices=Reason.choices, default=Reason.OVERDUE)
    description = models.TextField(blank=True)
    overdue_days = models.PositiveIntegerField(default=0)
    daily_rate = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    librarian_notes = models.TextField(blank=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    fine_date = models.DateTimeField(default=timezone.now)
    payment_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-fine_date', '-id']

    def __str__(self):
        return f"{self.get_reason_display()} fine of {self.fine_amount} for record {self.borrow_record_id}"

    @property
    def outstanding_amount(self):
        return self.fine_amount - self.paid_amount
