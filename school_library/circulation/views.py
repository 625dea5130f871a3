from rest_framework import generics, filters, serializers, status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg import openapi
from drf_yasg.utils import no_body, swagger_auto_schema

from . import services, stats
from .conf import circulation_setting
from .dates import is_due_within_days, is_expired_by_end_of_day, is_expiring_soon
from .models import User, ReaderType, Reader, Author, Category, Book, PhysicalCopy, BorrowRecord, Reservation, Fine
from .permissions import IsLibrarian, IsLibrarianOrReadOnly, IsOwnReaderOrLibrarian, is_librarian
from .serializers import (
    UserSerializer,
    ReaderTypeSerializer,
    ReaderSerializer,
    AuthorSerializer,
    CategorySerializer,
    BookSerializer,
    PhysicalCopySerializer,
    CopyStatusSerializer,
    BorrowRecordSerializer,
    ApproveSerializer,
    RejectSerializer,
    ReturnSerializer,
    RenewSerializer,
    CancelSerializer,
    CreateFineSerializer,
    ReturnWithFineSerializer,
    FineSerializer,
    PayFineSerializer,
    WaiveFineSerializer,
    ReservationSerializer,
    FulfillReservationSerializer,
    CancelReservationSerializer,
    ExpireReservationSerializer,
)



def days_param(request, default):
    """Read the ``?days=`` look-ahead, rejecting anything but a non-negative integer."""
    if 'days' not in request.query_params:
        return default
    try:
        return serializers.IntegerField(min_value=0).run_validation(request.query_params['days'])
    except serializers.ValidationError as exc:
        raise serializers.ValidationError({'days': exc.detail})


# Accounts and catalog

class UserListCreateView(generics.ListCreateAPIView):
    queryset = User.objects.order_by('username')
    serializer_class = UserSerializer
    permission_classes = [IsAdminUser]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['role']
    search_fields = ['username', 'email', 'user_code']
    error_context = 'user'


class ReaderTypeListCreateView(generics.ListCreateAPIView):
    queryset = ReaderType.objects.order_by('name')
    serializer_class = ReaderTypeSerializer
    permission_classes = [IsLibrarianOrReadOnly]


class ReaderTypeDetailView(generics.RetrieveUpdateAPIView):
    queryset = ReaderType.objects.all()
    serializer_class = ReaderTypeSerializer
    permission_classes = [IsLibrarianOrReadOnly]


class ReaderListCreateView(generics.ListCreateAPIView):
    queryset = Reader.objects.select_related('reader_type').order_by('card_number')
    serializer_class = ReaderSerializer
    permission_classes = [IsLibrarian]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['reader_type__name', 'is_active']
    search_fields = ['full_name', 'card_number', 'email']
    error_context = 'reader'


class ReaderDetailView(generics.RetrieveUpdateAPIView):
    queryset = Reader.objects.select_related('reader_type')
    serializer_class = ReaderSerializer
    permission_classes = [IsLibrarian]


class AuthorView(generics.ListCreateAPIView):
    queryset = Author.objects.order_by('name')
    serializer_class = AuthorSerializer
    permission_classes = [IsLibrarianOrReadOnly]


class CategoryView(generics.ListCreateAPIView):
    queryset = Category.objects.order_by('name')
    serializer_class = CategorySerializer
    permission_classes = [IsLibrarianOrReadOnly]


class BookListCreateView(generics.ListCreateAPIView):
    queryset = Book.objects.select_related('author', 'category').order_by('title')
    serializer_class = BookSerializer
    permission_classes = [IsLibrarianOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['author__name', 'category__name']
    search_fields = ['title', 'description', 'isbn']


class BookDetailView(generics.RetrieveUpdateAPIView):
    queryset = Book.objects.select_related('author', 'category')
    serializer_class = BookSerializer
    permission_classes = [IsLibrarianOrReadOnly]


class PhysicalCopyListCreateView(generics.ListCreateAPIView):
    queryset = PhysicalCopy.objects.select_related('book').order_by('barcode')
    serializer_class = PhysicalCopySerializer
    permission_classes = [IsLibrarian]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['book', 'status', 'condition']
    search_fields = ['barcode', 'book__title', 'location']


class PhysicalCopyDetailView(generics.RetrieveUpdateAPIView):
    queryset = PhysicalCopy.objects.select_related('book')
    serializer_class = PhysicalCopySerializer
    permission_classes = [IsLibrarian]


class ActionView(generics.GenericAPIView):
    """POST runs ``action_serializer_class.save()`` against the looked-up object."""

    action_serializer_class = None
    context_key = None

    def get_serializer_class(self):
        return self.action_serializer_class

    def perform_action(self, request):
        obj = self.get_object()
        serializer = self.action_serializer_class(
            data=request.data, context={**self.get_serializer_context(), self.context_key: obj}
        )
        serializer.is_valid(raise_exception=True)
        return serializer.save()


class PhysicalCopyStatusView(ActionView):
    queryset = PhysicalCopy.objects.select_related('book')
    permission_classes = [IsLibrarian]
    action_serializer_class = CopyStatusSerializer
    context_key = 'copy'

    @swagger_auto_schema(request_body=CopyStatusSerializer, responses={200: PhysicalCopySerializer})
    def patch(self, request, pk):
        copy = self.perform_action(request)
        return Response(PhysicalCopySerializer(copy).data)


# Borrow records

BORROW_RECORD_QUERYSET = BorrowRecord.objects.select_related(
    'reader__reader_type', 'physical_copy__book', 'librarian'
)


class BorrowRecordListCreateView(generics.ListCreateAPIView):
    queryset = BORROW_RECORD_QUERYSET
    serializer_class = BorrowRecordSerializer
    permission_classes = [IsOwnReaderOrLibrarian]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = {
        'status': ['exact', 'in'],
        'reader': ['exact'],
        'physical_copy': ['exact'],
        'physical_copy__book': ['exact'],
        'due_date': ['exact', 'lt', 'lte', 'gt', 'gte'],
    }
    search_fields = ['reader__full_name', 'reader__card_number', 'physical_copy__barcode', 'physical_copy__book__title']
    ordering_fields = ['borrow_date', 'due_date', 'id']

    def get_queryset(self):
        if is_librarian(self.request.user):
            return BORROW_RECORD_QUERYSET.all()
        return BORROW_RECORD_QUERYSET.filter(reader__user=self.request.user)


class BorrowRecordDetailView(generics.RetrieveAPIView):
    queryset = BORROW_RECORD_QUERYSET
    serializer_class = BorrowRecordSerializer
    permission_classes = [IsOwnReaderOrLibrarian]


class BorrowRecordActionView(ActionView):
    queryset = BorrowRecord.objects.all()
    permission_classes = [IsLibrarian]
    context_key = 'record'

    def post(self, request, pk):
        record = self.perform_action(request)
        return Response(BorrowRecordSerializer(record, context=self.get_serializer_context()).data)


class ApproveBorrowRecordView(BorrowRecordActionView):
    action_serializer_class = ApproveSerializer

    @swagger_auto_schema(request_body=ApproveSerializer, responses={200: BorrowRecordSerializer})
    def post(self, request, pk):
        return super().post(request, pk)


class RejectBorrowRecordView(BorrowRecordActionView):
    action_serializer_class = RejectSerializer

    @swagger_auto_schema(request_body=RejectSerializer, responses={200: BorrowRecordSerializer})
    def post(self, request, pk):
        return super().post(request, pk)


class ReturnBorrowRecordView(BorrowRecordActionView):
    action_serializer_class = ReturnSerializer

    @swagger_auto_schema(request_body=ReturnSerializer, responses={200: BorrowRecordSerializer})
    def post(self, request, pk):
        return super().post(request, pk)


class RenewBorrowRecordView(BorrowRecordActionView):
    action_serializer_class = RenewSerializer

    @swagger_auto_schema(request_body=RenewSerializer, responses={200: BorrowRecordSerializer})
    def post(self, request, pk):
        return super().post(request, pk)


class CancelBorrowRecordView(BorrowRecordActionView):
    action_serializer_class = CancelSerializer

    @swagger_auto_schema(request_body=CancelSerializer, responses={200: BorrowRecordSerializer})
    def post(self, request, pk):
        return super().post(request, pk)


class MarkOverdueView(generics.GenericAPIView):
    queryset = BorrowRecord.objects.all()
    serializer_class = BorrowRecordSerializer
    permission_classes = [IsLibrarian]

    @swagger_auto_schema(request_body=no_body, responses={200: BorrowRecordSerializer})
    def post(self, request, pk):
        record = services.mark_overdue(self.get_object().pk)
        return Response(BorrowRecordSerializer(record).data)


class RemindView(generics.GenericAPIView):
    queryset = BorrowRecord.objects.all()
    permission_classes = [IsLibrarian]

    @swagger_auto_schema(request_body=no_body)
    def post(self, request, pk):
        days = services.send_reminder(self.get_object().pk)
        return Response({'id': pk, 'days_until_due': days, 'sent': True})


class CreateFineForRecordView(ActionView):
    queryset = BorrowRecord.objects.all()
    permission_classes = [IsLibrarian]
    action_serializer_class = CreateFineSerializer
    context_key = 'record'

    @swagger_auto_schema(request_body=CreateFineSerializer, responses={201: FineSerializer})
    def post(self, request, pk):
        fine = self.perform_action(request)
        return Response(FineSerializer(fine).data, status=status.HTTP_201_CREATED)


class ReturnWithFineView(ActionView):
    queryset = BorrowRecord.objects.all()
    permission_classes = [IsLibrarian]
    action_serializer_class = ReturnWithFineSerializer
    context_key = 'record'

    @swagger_auto_schema(request_body=ReturnWithFineSerializer, responses={201: FineSerializer})
    def post(self, request, pk):
        fine = self.perform_action(request)
        return Response(FineSerializer(fine).data, status=status.HTTP_201_CREATED)


class DueSoonView(generics.ListAPIView):
    serializer_class = BorrowRecordSerializer
    permission_classes = [IsLibrarian]
    pagination_class = None
    filter_backends = []

    def get_queryset(self):
        days = days_param(self.request, circulation_setting('DUE_SOON_DAYS'))
        records = BORROW_RECORD_QUERYSET.filter(status__in=BorrowRecord.ACTIVE_LOAN_STATUSES).order_by('due_date')
        return [r for r in records if is_due_within_days(r.due_date, days=days)]


class BorrowStatsView(APIView):
    permission_classes = [IsLibrarian]

    def get(self, request):
        return Response(stats.borrow_stats())


class OverdueStatsView(APIView):
    permission_classes = [IsLibrarian]

    def get(self, request):
        return Response(stats.overdue_stats())


# Fines

class FineListCreateView(generics.ListCreateAPIView):
    queryset = Fine.objects.select_related('borrow_record__reader__reader_type', 'borrow_record__physical_copy__book')
    serializer_class = FineSerializer
    permission_classes = [IsLibrarian]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['status', 'reason', 'borrow_record', 'borrow_record__reader']
    search_fields = ['borrow_record__reader__full_name', 'borrow_record__reader__card_number', 'description']

    @swagger_auto_schema(request_body=CreateFineSerializer, responses={201: FineSerializer})
    def post(self, request, *args, **kwargs):
        serializer = CreateFineSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        fine = serializer.save()
        return Response(FineSerializer(fine).data, status=status.HTTP_201_CREATED)


class FineDetailView(generics.RetrieveAPIView):
    queryset = Fine.objects.select_related('borrow_record__reader', 'borrow_record__physical_copy__book')
    serializer_class = FineSerializer
    permission_classes = [IsLibrarian]


class FineActionView(ActionView):
    queryset = Fine.objects.all()
    permission_classes = [IsLibrarian]
    context_key = 'fine'

    def post(self, request, pk):
        fine = self.perform_action(request)
        return Response(FineSerializer(fine).data)


class PayFineView(FineActionView):
    action_serializer_class = PayFineSerializer

    @swagger_auto_schema(request_body=PayFineSerializer, responses={200: FineSerializer})
    def post(self, request, pk):
        return super().post(request, pk)


class WaiveFineView(FineActionView):
    action_serializer_class = WaiveFineSerializer

    @swagger_auto_schema(request_body=WaiveFineSerializer, responses={200: FineSerializer})
    def post(self, request, pk):
        return super().post(request, pk)


class FineStatsView(APIView):
    permission_classes = [IsLibrarian]

    def get(self, request):
        return Response(stats.fine_stats())


# Reservations

RESERVATION_QUERYSET = Reservation.objects.select_related('reader__reader_type', 'book', 'physical_copy')


class ReservationListCreateView(generics.ListCreateAPIView):
    queryset = RESERVATION_QUERYSET
    serializer_class = ReservationSerializer
    permission_classes = [IsLibrarian]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['status', 'reader', 'book']
    search_fields = ['reader__full_name', 'reader__card_number', 'book__title']


class ReservationDetailView(generics.RetrieveAPIView):
    queryset = RESERVATION_QUERYSET
    serializer_class = ReservationSerializer
    permission_classes = [IsLibrarian]


class ReservationsByBookView(generics.ListAPIView):
    serializer_class = ReservationSerializer
    permission_classes = [IsLibrarian]
    pagination_class = None

    def get_queryset(self):
        return RESERVATION_QUERYSET.filter(book_id=self.kwargs['book_id'])


class ExpiringSoonView(generics.ListAPIView):
    serializer_class = ReservationSerializer
    permission_classes = [IsLibrarian]
    pagination_class = None
    filter_backends = []

    @swagger_auto_schema(manual_parameters=[
        openapi.Parameter('days', openapi.IN_QUERY, type=openapi.TYPE_INTEGER, description='Look-ahead in days'),
    ])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        days = days_param(self.request, circulation_setting('EXPIRING_SOON_DAYS'))
        pending = RESERVATION_QUERYSET.filter(status=Reservation.Status.PENDING).order_by('expiry_date')
        return [
            r for r in pending
            if not is_expired_by_end_of_day(r.expiry_date) and is_expiring_soon(r.expiry_date, days)
        ]


class ReservationActionView(ActionView):
    queryset = Reservation.objects.all()
    permission_classes = [IsLibrarian]
    context_key = 'reservation'


class FulfillReservationView(ReservationActionView):
    action_serializer_class = FulfillReservationSerializer

    @swagger_auto_schema(request_body=FulfillReservationSerializer, responses={201: BorrowRecordSerializer})
    def post(self, request, pk):
        record = self.perform_action(request)
        return Response(BorrowRecordSerializer(record).data, status=status.HTTP_201_CREATED)


class CancelReservationView(ReservationActionView):
    action_serializer_class = CancelReservationSerializer

    @swagger_auto_schema(request_body=CancelReservationSerializer, responses={200: ReservationSerializer})
    def post(self, request, pk):
        reservation = self.perform_action(request)
        return Response(ReservationSerializer(reservation).data)


class ExpireReservationView(ReservationActionView):
    action_serializer_class = ExpireReservationSerializer

    @swagger_auto_schema(request_body=ExpireReservationSerializer, responses={200: ReservationSerializer})
    def post(self, request, pk):
        reservation = self.perform_action(request)
        return Response(ReservationSerializer(reservation).data)


class ReservationStatsView(APIView):
    permission_classes = [IsLibrarian]

    def get(self, request):
        return Response(stats.reservation_stats())
