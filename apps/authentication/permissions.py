from rest_framework.permissions import BasePermission

class IsTenantUser(BasePermission):
    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and 
            getattr(request.user, 'tenant_id', None) is not None
        )

class IsTenantAdmin(BasePermission):
    """Operator-level actions such as triggering a billing tick by hand."""

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and 
            getattr(request.user, 'tenant_id', None) is not None and
            request.user.role in ['admin', 'super_admin']
        )
