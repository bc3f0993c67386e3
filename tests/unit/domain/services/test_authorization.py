"""Unit tests for the authorization predicates."""

import pytest

from gatehouse.domain.entities import AuthorizedUser
from gatehouse.domain.services import has_module_access, has_permission, has_role


def make_user(role="user", permissions=None, modules=None, is_active=True) -> AuthorizedUser:
    return AuthorizedUser(
        doc_id="doc",
        uid="uid",
        email="someone@example.com",
        role=role,
        permissions=["read"] if permissions is None else permissions,
        modules=["dashboard"] if modules is None else modules,
        is_active=is_active,
    )


class TestHasPermission:
    """Tests for has_permission."""

    def test_explicit_permission(self):
        user = make_user(permissions=["read", "write"])

        assert has_permission(user, "write") is True
        assert has_permission(user, "delete") is False

    def test_admin_holds_everything(self):
        admin = make_user(role="admin", permissions=[])

        assert has_permission(admin, "manage_users") is True

    @pytest.mark.parametrize("role", ["admin", "user"])
    def test_inactive_holds_nothing(self, role):
        user = make_user(role=role, permissions=["read"], is_active=False)

        assert has_permission(user, "read") is False

    def test_missing_user(self):
        assert has_permission(None, "read") is False


class TestHasModuleAccess:
    """Tests for has_module_access."""

    def test_assigned_module(self):
        user = make_user(modules=["clients"])

        assert has_module_access(user, "clients") is True
        assert has_module_access(user, "treasury") is False

    def test_admin_reaches_every_module(self):
        admin = make_user(role="admin", modules=[])

        assert has_module_access(admin, "treasury") is True

    def test_inactive_admin_denied(self):
        admin = make_user(role="admin", is_active=False)

        assert has_module_access(admin, "dashboard") is False

    def test_missing_user(self):
        assert has_module_access(None, "dashboard") is False


class TestHasRole:
    """Tests for has_role."""

    def test_membership(self):
        user = make_user(role="viewer")

        assert has_role(user, ["viewer", "user"]) is True
        assert has_role(user, {"admin"}) is False

    def test_inactive_user_has_no_role(self):
        user = make_user(role="admin", is_active=False)

        assert has_role(user, ["admin"]) is False

    def test_empty_allowed_set(self):
        assert has_role(make_user(), []) is False
        assert has_role(None, ["user"]) is False
