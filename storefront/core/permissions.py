from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission


class IsSuperAdmin(BasePermission):
    message = 'Only super admins can perform this action'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_super_admin)


class IsStoreAdminOrSuperAdmin(BasePermission):
    message = 'Only store admins can perform this action'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin)


class IsVerifiedUser(BasePermission):
    message = 'Please verify your email first'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_verified)


def scoped_store_id(user, requested_store_id=None):
    """
    Resolve which store an admin query may look at.

    Store admins are pinned to their own store whatever they ask for and
    are refused outright while unassigned; super admins get the requested
    store (or None for all stores).
    """
    if user.is_store_admin:
        if user.store_id is None:
            raise PermissionDenied('You are not assigned to a store')
        return user.store_id
    return requested_store_id


def can_manage_store(user, store_id):
    if user.is_super_admin:
        return True
    return user.is_store_admin and user.store_id is not None and user.store_id == store_id
