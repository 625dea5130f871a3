from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from drf_yasg.utils import swagger_serializer_method

from . import services
from .dates import calculate_days_overdue, calculate_days_until_due, is_overdue, validate_renewal_date
from .exceptions import RenewalWindowError
from .models import (
    Author,
    Book,
    BorrowRecord,
    Category,
    Fine,
    PhysicalCopy,
    Reader,
    ReaderType,
    Reservation,
)
from .permissions import is_librarian

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'password', 'user_code', 'role', 'first_name', 'last_name', 'is_staff']
        extra_kwargs = {'password': {'write_only': True}}

    def validate_email(self, value):
        if value and User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.', code='unique')
        return value

    def create(self, validated_data):
        user = User.objects.create_user(**validated_data)
        return user


class ReaderTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReaderType
        fields = ['id', 'name', 'max_borrow_limit', 'borrow_duration_days', 'description']


class ReaderSerializer(serializers.ModelSerializer):
    reader_type = ReaderTypeSerializer(read_only=True)
    reader_type_id = serializers.PrimaryKeyRelatedField(
        queryset=ReaderType.objects.all(), source='reader_type', write_only=True, required=False, allow_null=True
    )
    user_id = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(), source='user', required=False, allow_null=True
    )

    class Meta:
        model = Reader
        fields = ['id', 'full_name', 'card_number', 'email', 'phone', 'reader_type', 'reader_type_id', 'user_id', 'is_active']


class AuthorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Author
        fields = ['id', 'name', 'bio']


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name']


class BookSerializer(serializers.ModelSerializer):
    author = AuthorSerializer(read_only=True)
    category = CategorySerializer(read_only=True)
    author_id = serializers.PrimaryKeyRelatedField(
        queryset=Author.objects.all(), source='author', write_only=True
    )
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), source='category', write_only=True
    )
    total_copies = serializers.SerializerMethodField()
    available_copies = serializers.SerializerMethodField()

    class Meta:
        model = Book
        fields = ['id', 'title', 'isbn', 'description', 'publish_year', 'total_copies', 'available_copies',
                  'author', 'author_id', 'category', 'category_id']

    def _counts(self, obj):
        if not hasattr(obj, '_copy_counts'):
            obj._copy_counts = obj.copies.aggregate(
                total=Count('id'), available=Count('id', filter=Q(status=PhysicalCopy.Status.AVAILABLE))
            )
        return obj._copy_counts

    def get_total_copies(self, obj):
        return self._counts(obj)['total']

    def get_available_copies(self, obj):
        return self._counts(obj)['available']


class PhysicalCopySerializer(serializers.ModelSerializer):
    book_id = serializers.PrimaryKeyRelatedField(queryset=Book.objects.all(), source='book')
    book_title = serializers.CharField(source='book.title', read_only=True)

    class Meta:
        model = PhysicalCopy
        fields = ['id', 'book_id', 'book_title', 'barcode', 'status', 'location', 'condition', 'notes']
        read_only_fields = ['status']


class CopyStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PhysicalCopy.Status.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def save(self):
        return services.set_copy_status(self.context['copy'].pk, self.validated_data['status'], self.validated_data['notes'])


class ReaderBriefSerializer(serializers.ModelSerializer):
    reader_type = serializers.CharField(source='reader_type.name', read_only=True, default=None)

    class Meta:
        model = Reader
        fields = ['id', 'full_name', 'card_number', 'reader_type']


class CopyBriefSerializer(serializers.ModelSerializer):
    book_id = serializers.IntegerField(source='book.id', read_only=True)
    book_title = serializers.CharField(source='book.title', read_only=True)

    class Meta:
        model = PhysicalCopy
        fields = ['id', 'barcode', 'status', 'book_id', 'book_title']


class BorrowRecordSerializer(serializers.ModelSerializer):
    reader = ReaderBriefSerializer(read_only=True)
    physical_copy = CopyBriefSerializer(read_only=True)
    reader_id = serializers.PrimaryKeyRelatedField(queryset=Reader.objects.all(), source='reader', write_only=True)
    copy_id = serializers.PrimaryKeyRelatedField(
        queryset=PhysicalCopy.objects.all(), source='physical_copy', write_only=True
    )
    status = serializers.ChoiceField(
        choices=[BorrowRecord.Status.PENDING_APPROVAL, BorrowRecord.Status.BORROWED],
        default=BorrowRecord.Status.BORROWED,
    )
    is_overdue = serializers.SerializerMethodField()
    days_overdue = serializers.SerializerMethodField()
    days_until_due = serializers.SerializerMethodField()

    class Meta:
        model = BorrowRecord
        fields = ['id', 'reader', 'reader_id', 'physical_copy', 'copy_id', 'librarian', 'borrow_date', 'due_date',
                  'status', 'return_date', 'renewal_count', 'borrow_notes', 'return_notes',
                  'is_overdue', 'days_overdue', 'days_until_due', 'created_at', 'updated_at']
        read_only_fields = ['librarian', 'return_date', 'renewal_count', 'return_notes', 'created_at', 'updated_at']
        # Open-record uniqueness is checked by the borrow service, which answers 409.
        validators = []
        extra_kwargs = {
            'borrow_date': {'required': False},
            'due_date': {'required': False},
        }

    @swagger_serializer_method(serializer_or_field=serializers.BooleanField())
    def get_is_overdue(self, obj):
        return is_overdue(obj)

    def get_days_overdue(self, obj):
        if obj.status not in (BorrowRecord.Status.BORROWED, BorrowRecord.Status.RENEWED, BorrowRecord.Status.OVERDUE):
            return 0
        return calculate_days_overdue(obj.due_date)

    def get_days_until_due(self, obj):
        if obj.status not in BorrowRecord.ACTIVE_LOAN_STATUSES:
            return 0
        return calculate_days_until_due(obj.due_date)

    def validate(self, data):
        if 'request' not in self.context:
            raise serializers.ValidationError("Request context is required.")

        user = self.context['request'].user
        if not is_librarian(user):
            reader = getattr(user, 'reader', None)
            if reader is None or data['reader'] != reader:
                raise serializers.ValidationError("You can only request books for yourself.")
            data['status'] = BorrowRecord.Status.PENDING_APPROVAL

        borrow_date, due_date = data.get('borrow_date'), data.get('due_date')
        if borrow_date and due_date and due_date < borrow_date:
            raise serializers.ValidationError({'due_date': "The due date cannot be before the borrow date."})
        return data

    def create(self, validated_data):
        user = self.context['request'].user
        return services.create_borrow_record(
            reader=validated_data['reader'],
            physical_copy=validated_data['physical_copy'],
            librarian=user if is_librarian(user) else None,
            status=validated_data['status'],
            borrow_date=validated_data.get('borrow_date'),
            due_date=validated_data.get('due_date'),
            borrow_notes=validated_data.get('borrow_notes', ''),
        )


class RecordActionSerializer(serializers.Serializer):
    """Base for actions on one borrow record; the view puts it in ``context['record']``."""

    @property
    def record(self):
        return self.context['record']

    @property
    def librarian(self):
        return self.context['request'].user


class ApproveSerializer(RecordActionSerializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def save(self):
        return services.approve_borrow_record(self.record.pk, librarian=self.librarian, notes=self.validated_data['notes'])


class RejectSerializer(RecordActionSerializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def save(self):
        return services.reject_borrow_record(self.record.pk, librarian=self.librarian, notes=self.validated_data['notes'])


class ReturnSerializer(RecordActionSerializer):
    return_notes = serializers.CharField(required=False, allow_blank=True, default='')
    copy_status = serializers.ChoiceField(choices=services.POST_RETURN_COPY_STATUSES, required=False)

    def save(self):
        return services.return_borrow_record(
            self.record.pk,
            librarian=self.librarian,
            return_notes=self.validated_data['return_notes'],
            copy_status=self.validated_data.get('copy_status'),
        )


class RenewSerializer(RecordActionSerializer):
    new_due_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_new_due_date(self, value):
        try:
            return validate_renewal_date(self.record.due_date, value)
        except RenewalWindowError as exc:
            raise serializers.ValidationError(str(exc.detail))

    def save(self):
        return services.renew_borrow_record(
            self.record.pk,
            new_due_date=self.validated_data.get('new_due_date'),
            librarian=self.librarian,
            notes=self.validated_data['notes'],
        )


class CancelSerializer(RecordActionSerializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def save(self):
        return services.cancel_borrow_record(self.record.pk, librarian=self.librarian, reason=self.validated_data['reason'])


class FineSerializer(serializers.ModelSerializer):
    borrow_id = serializers.IntegerField(source='borrow_record_id', read_only=True)
    reader = ReaderBriefSerializer(source='borrow_record.reader', read_only=True)
    book_title = serializers.CharField(source='borrow_record.physical_copy.book.title', read_only=True)
    outstanding_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Fine
        fields = ['id', 'borrow_id', 'reader', 'book_title', 'fine_amount', 'paid_amount', 'outstanding_amount',
                  'status', 'reason', 'description', 'overdue_days', 'daily_rate', 'librarian_notes',
                  'payment_method', 'fine_date', 'payment_date']
        read_only_fields = fields


class CreateFineSerializer(serializers.Serializer):
    borrow_id = serializers.PrimaryKeyRelatedField(queryset=BorrowRecord.objects.all(), required=False)
    fine_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    reason = serializers.ChoiceField(choices=Fine.Reason.choices, default=Fine.Reason.OVERDUE)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    librarian_notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, data):
        record = self.context.get('record') or data.get('borrow_id')
        if record is None:
            raise serializers.ValidationError({'borrow_id': "This field is required."})
        if data['reason'] != Fine.Reason.OVERDUE and data.get('fine_amount') is None:
            raise serializers.ValidationError({'fine_amount': "An amount is required for non-overdue fines."})
        data['record'] = record
        return data

    def save(self):
        return services.create_fine(
            self.validated_data['record'].pk,
            librarian_notes=self.validated_data['librarian_notes'],
            fine_amount=self.validated_data.get('fine_amount'),
            reason=self.validated_data['reason'],
            description=self.validated_data['description'],
        )


class ReturnWithFineSerializer(RecordActionSerializer):
    fine_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    copy_status = serializers.ChoiceField(choices=services.POST_RETURN_COPY_STATUSES, required=False)

    def save(self):
        return services.create_fine_and_return(
            self.record.pk,
            librarian=self.librarian,
            fine_amount=self.validated_data.get('fine_amount'),
            description=self.validated_data['description'],
            copy_status=self.validated_data.get('copy_status'),
        )


class PayFineSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.ChoiceField(choices=Fine.PaymentMethod.choices, default=Fine.PaymentMethod.CASH)
    librarian_notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("The payment amount must be positive.")
        fine = self.context['fine']
        if value > fine.outstanding_amount:
            raise serializers.ValidationError("The payment cannot exceed the outstanding fine amount.")
        return value

    def save(self):
        return services.pay_fine(self.context['fine'].pk, **self.validated_data)


class WaiveFineSerializer(serializers.Serializer):
    librarian_notes = serializers.CharField(required=False, allow_blank=True, default='')

    def save(self):
        return services.waive_fine(self.context['fine'].pk, self.validated_data['librarian_notes'])


class ReservationSerializer(serializers.ModelSerializer):
    reader = ReaderBriefSerializer(read_only=True)
    reader_id = serializers.PrimaryKeyRelatedField(queryset=Reader.objects.all(), source='reader', write_only=True)
    book_id = serializers.PrimaryKeyRelatedField(queryset=Book.objects.all(), source='book')
    book_title = serializers.CharField(source='book.title', read_only=True)
    copy_id = serializers.PrimaryKeyRelatedField(
        queryset=PhysicalCopy.objects.all(), source='physical_copy', required=False, allow_null=True
    )
    borrow_id = serializers.IntegerField(source='borrow_record_id', read_only=True)

    class Meta:
        model = Reservation
        fields = ['id', 'reader', 'reader_id', 'book_id', 'book_title', 'copy_id', 'status', 'reservation_date',
                  'expiry_date', 'fulfilled_date', 'borrow_id', 'librarian', 'notes']
        read_only_fields = ['status', 'reservation_date', 'fulfilled_date', 'librarian']
        extra_kwargs = {'expiry_date': {'required': False}}

    def create(self, validated_data):
        return services.create_reservation(
            reader=validated_data['reader'],
            book=validated_data['book'],
            physical_copy=validated_data.get('physical_copy'),
            expiry_date=validated_data.get('expiry_date'),
            librarian=self.context['request'].user,
            notes=validated_data.get('notes', ''),
        )


class ReservationActionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    @property
    def reservation(self):
        return self.context['reservation']

    @property
    def librarian(self):
        return self.context['request'].user


class FulfillReservationSerializer(ReservationActionSerializer):
    def save(self):
        return services.fulfill_reservation(self.reservation.pk, librarian=self.librarian, notes=self.validated_data['notes'])


class CancelReservationSerializer(ReservationActionSerializer):
    def save(self):
        return services.cancel_reservation(self.reservation.pk, librarian=self.librarian, reason=self.validated_data['notes'])


class ExpireReservationSerializer(ReservationActionSerializer):
    def save(self):
        return services.expire_reservation(self.reservation.pk, librarian=self.librarian, reason=self.validated_data['notes'])
