"""Unit tests for RoleRegistry."""

import pytest

from gatehouse.domain.exceptions import (
    DuplicateValueError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from gatehouse.domain.services import RoleRegistry
from gatehouse.infrastructure.persistence import ROLES_COLLECTION


class TestEnsureSystemRoles:
    """Tests for seeding the system roles."""

    @pytest.mark.asyncio
    async def test_seeds_three_system_roles(self, gateway, audit):
        registry = RoleRegistry(gateway, audit)

        seeded = await registry.ensure_system_roles()

        assert seeded is True
        values = sorted(r.value for r in registry.roles)
        assert values == ["admin", "user", "viewer"]
        assert all(r.is_system_role for r in registry.roles)

    @pytest.mark.asyncio
    async def test_idempotent(self, gateway, audit):
        registry = RoleRegistry(gateway, audit)

        await registry.ensure_system_roles()
        second = await registry.ensure_system_roles()

        assert second is False
        documents = await gateway.query(ROLES_COLLECTION)
        assert len(documents) == 3
        assert len(registry.roles) == 3

    @pytest.mark.asyncio
    async def test_fixed_permission_sets(self, role_registry):
        admin = role_registry.get_role_by_value("admin")
        user = role_registry.get_role_by_value("user")
        viewer = role_registry.get_role_by_value("viewer")

        assert set(admin.permissions) == {"read", "write", "delete", "manage_users"}
        assert set(user.permissions) == {"read", "write"}
        assert viewer.permissions == ["read"]

    @pytest.mark.asyncio
    async def test_skips_when_collection_not_empty(self, gateway, audit):
        await gateway.add(ROLES_COLLECTION, {"value": "legacy", "label": "Legacy"})
        registry = RoleRegistry(gateway, audit)

        assert await registry.ensure_system_roles() is False
        assert [r.value for r in registry.roles] == ["legacy"]


class TestCreateRole:
    """Tests for custom role creation."""

    @pytest.mark.asyncio
    async def test_create_role(self, role_registry, audit_actions):
        role = await role_registry.create_role(
            value="Editor",
            label="Editor",
            description="Edits content",
            permissions=["read", "write"],
            actor="admin-uid",
        )

        assert role.id
        assert role.value == "editor"
        assert role.is_system_role is False
        assert role.user_count == 0
        assert role_registry.get_role_by_id(role.id) is not None
        assert "create_role" in await audit_actions()

    @pytest.mark.asyncio
    async def test_duplicate_is_case_insensitive(self, role_registry):
        await role_registry.create_role(value="editor", label="Editor", permissions=["read"])

        with pytest.raises(DuplicateValueError):
            await role_registry.create_role(value="EDITOR", label="Other", permissions=["read"])

    @pytest.mark.asyncio
    async def test_system_value_taken(self, role_registry):
        with pytest.raises(DuplicateValueError):
            await role_registry.create_role(value="Admin", label="Fake admin", permissions=["read"])

    @pytest.mark.asyncio
    async def test_invalid_value(self, role_registry):
        with pytest.raises(ValidationError) as exc_info:
            await role_registry.create_role(value="bad-value", label="", permissions=["fly"])

        errors = exc_info.value.errors
        assert len(errors) == 3

    @pytest.mark.asyncio
    async def test_role_options_only_active(self, role_registry):
        await role_registry.create_role(
            value="archived", label="Archived", permissions=["read"], is_active=False
        )

        options = [o.value for o in role_registry.get_role_options()]

        assert "archived" not in options
        assert {"admin", "user", "viewer"} <= set(options)


class TestUpdateRole:
    """Tests for role updates."""

    @pytest.mark.asyncio
    async def test_system_role_value_immutable(self, role_registry):
        admin = role_registry.get_role_by_value("admin")

        with pytest.raises(InvariantViolationError):
            await role_registry.update_role(admin.id, {"value": "superadmin"})

        assert role_registry.get_role_by_value("admin") is not None

    @pytest.mark.asyncio
    async def test_system_flag_cannot_be_cleared(self, role_registry):
        admin = role_registry.get_role_by_value("admin")

        with pytest.raises(InvariantViolationError):
            await role_registry.update_role(admin.id, {"is_system_role": False})

    @pytest.mark.asyncio
    async def test_system_role_label_editable(self, role_registry):
        viewer = role_registry.get_role_by_value("viewer")

        updated = await role_registry.update_role(viewer.id, {"label": "Read-only"})

        assert updated.label == "Read-only"
        assert updated.value == "viewer"
        assert updated.updated_at is not None

    @pytest.mark.asyncio
    async def test_custom_role_rename(self, role_registry):
        role = await role_registry.create_role(value="editor", label="Editor", permissions=["read"])

        updated = await role_registry.update_role(role.id, {"value": "Author"})

        assert updated.value == "author"
        assert role_registry.get_role_by_value("author").id == role.id

    @pytest.mark.asyncio
    async def test_rename_collision(self, role_registry):
        role = await role_registry.create_role(value="editor", label="Editor", permissions=["read"])

        with pytest.raises(DuplicateValueError):
            await role_registry.update_role(role.id, {"value": "viewer"})

    @pytest.mark.asyncio
    async def test_unknown_role(self, role_registry):
        with pytest.raises(NotFoundError):
            await role_registry.update_role("missing", {"label": "x"})


class TestDeleteRole:
    """Tests for role deletion."""

    @pytest.mark.asyncio
    async def test_system_role_cannot_be_deleted(self, role_registry):
        admin = role_registry.get_role_by_value("admin")

        with pytest.raises(InvariantViolationError):
            await role_registry.delete_role(admin.id)

    @pytest.mark.asyncio
    async def test_role_in_use(self, role_registry, provision):
        role = await role_registry.create_role(value="editor", label="Editor", permissions=["read"])
        await provision("ed@example.com", role="editor")

        with pytest.raises(InvariantViolationError, match="assigned to 1 user"):
            await role_registry.delete_role(role.id)

    @pytest.mark.asyncio
    async def test_delete_unused_custom_role(self, role_registry, gateway, audit_actions):
        role = await role_registry.create_role(value="editor", label="Editor", permissions=["read"])

        await role_registry.delete_role(role.id, actor="admin-uid")

        assert await gateway.get(ROLES_COLLECTION, role.id) is None
        assert role_registry.get_role_by_id(role.id) is None
        assert "delete_role" in await audit_actions()


class TestPermissionSuggestions:
    """Tests for the role to permission mapping."""

    @pytest.mark.asyncio
    async def test_system_roles_use_table(self, role_registry):
        assert set(role_registry.suggest_permissions("admin")) == {
            "read",
            "write",
            "delete",
            "manage_users",
        }
        assert role_registry.suggest_permissions("VIEWER") == ["read"]

    @pytest.mark.asyncio
    async def test_custom_role_uses_stored_permissions(self, role_registry):
        await role_registry.create_role(
            value="auditor", label="Auditor", permissions=["read", "delete"]
        )

        assert role_registry.suggest_permissions("auditor") == ["read", "delete"]

    @pytest.mark.asyncio
    async def test_unknown_role_falls_back_to_read(self, role_registry):
        assert role_registry.suggest_permissions("ghost") == ["read"]

    def test_permission_options_cover_catalog(self):
        values = {o.value for o in RoleRegistry.get_permission_options()}
        assert values == {"read", "write", "delete", "manage_users"}


class TestUserCounts:
    """Tests for recomputing role user counts."""

    @pytest.mark.asyncio
    async def test_refresh_user_counts(self, role_registry, provision):
        await provision("a@example.com", role="admin", modules=[])
        await provision("u1@example.com", role="user")
        await provision("u2@example.com", role="user")

        counts = await role_registry.refresh_user_counts()

        assert counts == {"admin": 1, "user": 2, "viewer": 0}
        assert role_registry.get_role_by_value("user").user_count == 2
