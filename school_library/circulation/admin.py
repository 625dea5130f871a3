from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User, ReaderType, Reader, Author, Category, Book, PhysicalCopy, BorrowRecord, Reservation, Fine


@admin.register(User)
class LibraryUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (('Library', {'fields': ('user_code', 'role')}),)
    list_display = ('username', 'email', 'user_code', 'role', 'is_staff')


@admin.register(Reader)
class ReaderAdmin(admin.ModelAdmin):
    list_display = ('card_number', 'full_name', 'reader_type', 'is_active')
    list_filter = ('reader_type', 'is_active')
    search_fields = ('card_number', 'full_name', 'email')


@admin.register(PhysicalCopy)
class PhysicalCopyAdmin(admin.ModelAdmin):
    list_display = ('barcode', 'book', 'status', 'condition', 'location')
    list_filter = ('status', 'condition')
    search_fields = ('barcode', 'book__title')


@admin.register(BorrowRecord)
class BorrowRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'reader', 'physical_copy', 'borrow_date', 'due_date', 'status', 'renewal_count')
    list_filter = ('status',)
    search_fields = ('reader__full_name', 'reader__card_number', 'physical_copy__barcode')
    # Status changes go through the API so copy status stays consistent.
    readonly_fields = ('status', 'return_date', 'renewal_count')


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ('id', 'reader', 'book', 'status', 'reservation_date', 'expiry_date')
    list_filter = ('status',)
    readonly_fields = ('status', 'fulfilled_date', 'borrow_record')


@admin.register(Fine)
class FineAdmin(admin.ModelAdmin):
    list_display = ('id', 'borrow_record', 'fine_amount', 'paid_amount', 'status', 'reason', 'fine_date')
    list_filter = ('status', 'reason')
    readonly_fields = ('fine_amount', 'paid_amount', 'status', 'payment_date')


admin.site.register(ReaderType)
admin.site.register(Author)
admin.site.register(Category)
admin.site.register(Book)
