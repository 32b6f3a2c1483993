from rest_framework.permissions import BasePermission

from apps.accounts.models import UserRole


ROLE_CAPABILITIES = {
    UserRole.ADMIN: {
        "catalog.view",
        "catalog.manage",
        "categories.manage",
        "pricing.view",
        "pricing.manage",
        "quotations.view",
        "quotations.create",
        "quotations.update",
        "orders.view",
        "orders.create",
        "orders.update_status",
        "orders.cancel",
        "logistics.view",
        "logistics.manage",
        "billing.view",
        "invoices.create",
        "payments.create",
        "payments.refund",
        "notifications.view",
    },
    UserRole.VENDOR: {
        "catalog.view",
        "catalog.manage",
        "pricing.view",
        "pricing.manage",
        "quotations.view",
        "quotations.update",
        "orders.view",
        "orders.update_status",
        "logistics.view",
        "logistics.manage",
        "billing.view",
        "invoices.create",
        "payments.create",
        "payments.refund",
        "notifications.view",
    },
    UserRole.CUSTOMER: {
        "catalog.view",
        "pricing.view",
        "quotations.view",
        "quotations.create",
        "quotations.update",
        "orders.view",
        "orders.create",
        "orders.cancel",
        "logistics.view",
        "billing.view",
        "payments.create",
        "notifications.view",
    },
}


def resolve_role(user):
    group_names = set(user.groups.values_list("name", flat=True))
    for role in (UserRole.ADMIN, UserRole.VENDOR, UserRole.CUSTOMER):
        if role in group_names:
            return role
    return getattr(user, "role", UserRole.CUSTOMER)


def is_admin(user):
    return bool(user and user.is_authenticated and resolve_role(user) == UserRole.ADMIN)


class RolePermission(BasePermission):
    @staticmethod
    def _resolve_role(user):
        return resolve_role(user)

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        action = getattr(view, "action", request.method.lower())
        required = capability_map.get(action) or capability_map.get(request.method.lower()) or set()
        if not required:
            return True

        user_role = self._resolve_role(request.user)
        user_caps = ROLE_CAPABILITIES.get(user_role, set())
        return all(cap in user_caps for cap in required)
