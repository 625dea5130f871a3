from rest_framework import permissions


def is_librarian(user):
    return bool(user and user.is_authenticated and getattr(user, 'is_librarian', False))


class IsLibrarian(permissions.BasePermission):
    def has_permission(self, request, view):
        return is_librarian(request.user)


class IsLibrarianOrReadOnly(permissions.BasePermission):
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return is_librarian(request.user)


class IsOwnReaderOrLibrarian(permissions.BasePermission):
    """Readers with a linked account may act on their own records only."""

    def has_permission(self, request, view):
        if is_librarian(request.user):
            return True
        return bool(request.user and request.user.is_authenticated and hasattr(request.user, 'reader'))

    def has_object_permission(self, request, view, obj):
        return is_librarian(request.user) or obj.reader.user_id == request.user.pk
