# permissions/tests.py

from django.contrib.auth.models import AnonymousUser
from django.test import TestCase

from core.testing import make_user
from permissions.roles import (
    ALL_CAPABILITIES,
    CAP_INVENTORY_APPROVE,
    CAP_INVENTORY_CREATE,
    CAP_INVENTORY_VOID,
    CAP_LEDGER_RECONCILE,
    CAP_VENDORS_PAY,
    capabilities_for,
    has_capability,
    is_privileged,
)


class CapabilityMapTests(TestCase):
    """
    GUARANTEES:
    - only admin is privileged (approve / reject / void)
    - manager handles vendors and payments but still goes through maker-checker
    - staff can only request
    - ledger repair is admin-only
    - anonymous users have nothing
    """

    def test_staff(self):
        staff = make_user("staff")
        self.assertTrue(has_capability(staff, CAP_INVENTORY_CREATE))
        self.assertFalse(has_capability(staff, CAP_VENDORS_PAY))
        self.assertFalse(is_privileged(staff))

    def test_manager(self):
        manager = make_user("manager")
        self.assertFalse(is_privileged(manager))
        self.assertFalse(has_capability(manager, CAP_INVENTORY_APPROVE))
        self.assertFalse(has_capability(manager, CAP_INVENTORY_VOID))
        self.assertTrue(has_capability(manager, CAP_INVENTORY_CREATE))
        self.assertTrue(has_capability(manager, CAP_VENDORS_PAY))
        self.assertFalse(has_capability(manager, CAP_LEDGER_RECONCILE))

    def test_admin_and_superuser_have_everything(self):
        admin = make_user("admin")
        self.assertEqual(capabilities_for(admin), ALL_CAPABILITIES)
        self.assertTrue(is_privileged(admin))

        root = make_user("staff", is_superuser=True, is_staff=True)
        self.assertEqual(capabilities_for(root), ALL_CAPABILITIES)

    def test_anonymous(self):
        self.assertEqual(capabilities_for(AnonymousUser()), set())
        self.assertFalse(has_capability(None, CAP_INVENTORY_APPROVE))
