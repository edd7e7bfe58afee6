# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS
# =========================================================
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views and services protect capabilities, not raw roles.
CAP_INVENTORY_CREATE = "inventory.create"
CAP_INVENTORY_APPROVE = "inventory.approve"   # maker-checker: approve / reject
CAP_INVENTORY_VOID = "inventory.void"

CAP_PURCHASES_CREATE = "purchases.create"

CAP_VENDORS_VIEW = "vendors.view"
CAP_VENDORS_MANAGE = "vendors.manage"
CAP_VENDORS_PAY = "vendors.pay"

CAP_LEDGER_RECONCILE = "ledger.reconcile"

ALL_CAPABILITIES = {
    CAP_INVENTORY_CREATE,
    CAP_INVENTORY_APPROVE,
    CAP_INVENTORY_VOID,
    CAP_PURCHASES_CREATE,
    CAP_VENDORS_VIEW,
    CAP_VENDORS_MANAGE,
    CAP_VENDORS_PAY,
    CAP_LEDGER_RECONCILE,
}


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_MANAGER: ALL_CAPABILITIES - {
        CAP_INVENTORY_APPROVE,
        CAP_INVENTORY_VOID,
        CAP_LEDGER_RECONCILE,
    },
    ROLE_STAFF: {
        CAP_INVENTORY_CREATE,
        CAP_PURCHASES_CREATE,
        CAP_VENDORS_VIEW,
        # NOT approve/void: staff requests go through maker-checker
    },
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def capabilities_for(user) -> set[str]:
    if not user or not getattr(user, "is_authenticated", False):
        return set()
    if getattr(user, "is_superuser", False):
        return set(ALL_CAPABILITIES)
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def has_capability(user, capability: str) -> bool:
    return capability in capabilities_for(user)


def is_privileged(user) -> bool:
    """
    Privileged actors (admin role or superuser) skip maker-checker: their
    inventory transactions are approved on creation, and only they may
    approve, reject or void.
    """
    return has_capability(user, CAP_INVENTORY_APPROVE)


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        required_capability = CAP_VENDORS_PAY
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # If not set, deny-by-default to avoid accidental open endpoints
            return False

        return has_capability(user, required)


class HasMethodCapability(BasePermission):
    """
    Capability per HTTP method, for list/create views.

    Usage:
        required_capabilities = {"GET": CAP_VENDORS_VIEW, "POST": CAP_VENDORS_MANAGE}
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = (getattr(view, "required_capabilities", None) or {}).get(request.method)
        if not required:
            return False

        return has_capability(user, required)
