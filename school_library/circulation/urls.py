from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from .views import (
    UserListCreateView, ReaderTypeListCreateView, ReaderTypeDetailView, ReaderListCreateView, ReaderDetailView,
    AuthorView, CategoryView, BookListCreateView, BookDetailView,
    PhysicalCopyListCreateView, PhysicalCopyDetailView, PhysicalCopyStatusView,
    BorrowRecordListCreateView, BorrowRecordDetailView, ApproveBorrowRecordView, RejectBorrowRecordView,
    ReturnBorrowRecordView, RenewBorrowRecordView, CancelBorrowRecordView, MarkOverdueView, RemindView,
    CreateFineForRecordView, ReturnWithFineView, DueSoonView, BorrowStatsView, OverdueStatsView,
    FineListCreateView, FineDetailView, PayFineView, WaiveFineView, FineStatsView,
    ReservationListCreateView, ReservationDetailView, ReservationsByBookView, ExpiringSoonView,
    FulfillReservationView, CancelReservationView, ExpireReservationView, ReservationStatsView,
)

urlpatterns = [
    path('login/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    path('users/', UserListCreateView.as_view(), name='user_list'),
    path('reader-types/', ReaderTypeListCreateView.as_view(), name='reader_type_list'),
    path('reader-types/<int:pk>/', ReaderTypeDetailView.as_view(), name='reader_type_detail'),
    path('readers/', ReaderListCreateView.as_view(), name='reader_list'),
    path('readers/<int:pk>/', ReaderDetailView.as_view(), name='reader_detail'),
    path('authors/', AuthorView.as_view(), name='author_list'),
    path('categories/', CategoryView.as_view(), name='category_list'),
    path('books/', BookListCreateView.as_view(), name='book_list'),
    path('books/<int:pk>/', BookDetailView.as_view(), name='book_detail'),
    path('physical-copies/', PhysicalCopyListCreateView.as_view(), name='copy_list'),
    path('physical-copies/<int:pk>/', PhysicalCopyDetailView.as_view(), name='copy_detail'),
    path('physical-copies/<int:pk>/status/', PhysicalCopyStatusView.as_view(), name='copy_status'),

    path('borrow-records/', BorrowRecordListCreateView.as_view(), name='borrow_record_list'),
    path('borrow-records/due-soon/', DueSoonView.as_view(), name='borrow_record_due_soon'),
    path('borrow-records/stats/', BorrowStatsView.as_view(), name='borrow_record_stats'),
    path('borrow-records/overdue-stats/', OverdueStatsView.as_view(), name='borrow_record_overdue_stats'),
    path('borrow-records/<int:pk>/', BorrowRecordDetailView.as_view(), name='borrow_record_detail'),
    path('borrow-records/<int:pk>/approve/', ApproveBorrowRecordView.as_view(), name='borrow_record_approve'),
    path('borrow-records/<int:pk>/reject/', RejectBorrowRecordView.as_view(), name='borrow_record_reject'),
    path('borrow-records/<int:pk>/return/', ReturnBorrowRecordView.as_view(), name='borrow_record_return'),
    path('borrow-records/<int:pk>/renew/', RenewBorrowRecordView.as_view(), name='borrow_record_renew'),
    path('borrow-records/<int:pk>/overdue/', MarkOverdueView.as_view(), name='borrow_record_overdue'),
    path('borrow-records/<int:pk>/cancel/', CancelBorrowRecordView.as_view(), name='borrow_record_cancel'),
    path('borrow-records/<int:pk>/remind/', RemindView.as_view(), name='borrow_record_remind'),
    path('borrow-records/<int:pk>/fine/', CreateFineForRecordView.as_view(), name='borrow_record_fine'),
    path('borrow-records/<int:pk>/return-with-fine/', ReturnWithFineView.as_view(), name='borrow_record_return_with_fine'),

    path('fines/', FineListCreateView.as_view(), name='fine_list'),
    path('fines/stats/', FineStatsView.as_view(), name='fine_stats'),
    path('fines/<int:pk>/', FineDetailView.as_view(), name='fine_detail'),
    path('fines/<int:pk>/pay/', PayFineView.as_view(), name='fine_pay'),
    path('fines/<int:pk>/waive/', WaiveFineView.as_view(), name='fine_waive'),

    path('reservations/', ReservationListCreateView.as_view(), name='reservation_list'),
    path('reservations/stats/', ReservationStatsView.as_view(), name='reservation_stats'),
    path('reservations/expiring-soon/', ExpiringSoonView.as_view(), name='reservation_expiring_soon'),
    path('reservations/by-book/<int:book_id>/', ReservationsByBookView.as_view(), name='reservation_by_book'),
    path('reservations/<int:pk>/', ReservationDetailView.as_view(), name='reservation_detail'),
    path('reservations/<int:pk>/fulfill/', FulfillReservationView.as_view(), name='reservation_fulfill'),
    path('reservations/<int:pk>/cancel/', CancelReservationView.as_view(), name='reservation_cancel'),
    path('reservations/<int:pk>/expire/', ExpireReservationView.as_view(), name='reservation_expire'),
]
