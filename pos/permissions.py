# pos/permissions.py
from rest_framework.permissions import BasePermission, SAFE_METHODS


def _role(user) -> str:
    return (getattr(user, "role", "") or "").lower().strip()


def is_admin_or_manager(user) -> bool:
    return bool(user and user.is_authenticated and (user.is_superuser or _role(user) in ("admin", "manager")))


class IsSuperAdminOnly(BasePermission):
    """
    ONLY allow superuser.
    Our policy: role ADMIN == is_superuser True.
    """
    message = "Admin only."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and user.is_superuser)


class AdminOnlyWriteOrRead(BasePermission):
    """
    Allow READ (GET/HEAD/OPTIONS) for any authenticated user,
    but only superadmin can WRITE (POST/PUT/PATCH/DELETE).
    """
    message = "Write access is admin only."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False

        if request.method in SAFE_METHODS:
            return True

        return bool(user.is_superuser)


class AdminOrManagerWriteOrRead(BasePermission):
    """
    Allow READ (GET/HEAD/OPTIONS) for any authenticated user,
    but only superadmin OR role manager can WRITE (POST/PUT/PATCH/DELETE).
    """
    message = "Write access is admin/manager only."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False

        if request.method in SAFE_METHODS:
            return True

        return is_admin_or_manager(user)


def HasFeature(feature_code: str, write_admin_only: bool = False):
    """
    Permission class factory over CustomUser.has_feature().

        permission_classes = [HasFeature("pos.manage_expenses", write_admin_only=True)]
    """

    class _HasFeature(BasePermission):
        message = f"Missing permission: {feature_code}"

        def has_permission(self, request, view):
            user = getattr(request, "user", None)
            if not user or not user.is_authenticated:
                return False
            if not user.has_feature(feature_code):
                return False
            if write_admin_only and request.method not in SAFE_METHODS:
                return bool(user.is_superuser)
            return True

    _HasFeature.__name__ = f"HasFeature[{feature_code}]"
    return _HasFeature
