"""Role registry.

Owns the role collection: seeding of the system roles, custom role
management and the role-to-permission suggestion table. The registry keeps
a cached copy of the collection that is only updated from confirmed
writes; call ``refresh()`` to pick up changes made by other clients.
"""

import asyncio
from collections import Counter
from typing import Any

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.permission import PERMISSION_OPTIONS, Permission, PermissionOption
from gatehouse.domain.entities.role import (
    ADMIN_ROLE,
    SYSTEM_ROLE_VALUES,
    USER_ROLE,
    VIEWER_ROLE,
    Role,
    RoleOption,
)
from gatehouse.domain.entities.timestamps import to_iso, utcnow
from gatehouse.domain.exceptions import (
    DuplicateValueError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from gatehouse.domain.services.audit_logger import AuditLogger
from gatehouse.domain.services.validators import RoleValidator, normalize_slug
from gatehouse.infrastructure.persistence.gateway import (
    ROLES_COLLECTION,
    USERS_COLLECTION,
    BatchOperation,
    DocumentGateway,
    FieldFilter,
    FilterOp,
)

logger = get_logger(__name__)

DEFAULT_ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    ADMIN_ROLE: (
        Permission.READ.value,
        Permission.WRITE.value,
        Permission.DELETE.value,
        Permission.MANAGE_USERS.value,
    ),
    USER_ROLE: (Permission.READ.value, Permission.WRITE.value),
    VIEWER_ROLE: (Permission.READ.value,),
}

# Fallback for custom roles that are not (yet) known to the registry.
FALLBACK_PERMISSIONS: tuple[str, ...] = (Permission.READ.value,)

SYSTEM_ROLE_SEED: tuple[tuple[str, str, str], ...] = (
    (ADMIN_ROLE, "Administrator", "Full system access"),
    (USER_ROLE, "User", "Standard access"),
    (VIEWER_ROLE, "Viewer", "Read only"),
)


class RoleRegistry:
    """Registry of system and custom roles."""

    def __init__(self, gateway: DocumentGateway, audit: AuditLogger) -> None:
        """Initialize the registry.

        Args:
            gateway: Document gateway holding the roles collection.
            audit: Audit logger for role mutations.
        """
        self.gateway = gateway
        self.audit = audit
        self._roles: list[Role] = []
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @property
    def roles(self) -> list[Role]:
        """Cached roles, sorted by label. Stale until the next refresh."""
        return list(self._roles)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def initialize(self) -> None:
        """Load the role collection once."""
        if self._loaded:
            return
        async with self._load_lock:
            if not self._loaded:
                await self._load()

    async def refresh(self) -> list[Role]:
        """Reload the role collection from the gateway."""
        async with self._load_lock:
            await self._load()
        return self.roles

    async def _load(self) -> None:
        documents = await self.gateway.query(ROLES_COLLECTION)
        self._set_cache([Role.from_document(d.id, d.data) for d in documents])
        self._loaded = True
        logger.debug("Roles loaded", count=len(self._roles))

    def _set_cache(self, roles: list[Role]) -> None:
        self._roles = sorted(roles, key=lambda r: r.label.lower())

    def _replace_cached(self, role: Role) -> None:
        self._set_cache([r for r in self._roles if r.id != role.id] + [role])

    async def ensure_system_roles(self) -> bool:
        """Seed the system roles when the role collection is empty.

        System roles are written under their value as document key, so two
        clients racing through the emptiness check write the same documents.

        Returns:
            True when the roles were seeded by this call.
        """
        existing = await self.gateway.query(ROLES_COLLECTION)
        if existing:
            logger.debug("System roles already present", count=len(existing))
            await self.initialize()
            return False

        now = utcnow()
        roles = [
            Role(
                id=value,
                value=value,
                label=label,
                description=description,
                permissions=list(DEFAULT_ROLE_PERMISSIONS[value]),
                is_system_role=True,
                is_active=True,
                created_at=now,
            )
            for value, label, description in SYSTEM_ROLE_SEED
        ]
        await self.gateway.batch_write(
            [BatchOperation.set(ROLES_COLLECTION, r.id, r.to_document()) for r in roles]
        )
        self._set_cache(roles)
        self._loaded = True
        logger.info("System roles seeded", roles=[r.value for r in roles])
        return True

    def get_role_by_id(self, role_id: str) -> Role | None:
        return next((r for r in self._roles if r.id == role_id), None)

    def get_role_by_value(self, value: str) -> Role | None:
        key = normalize_slug(value)
        return next((r for r in self._roles if r.value.lower() == key), None)

    def get_active_roles(self) -> list[Role]:
        return [r for r in self._roles if r.is_active]

    def get_role_options(self) -> list[RoleOption]:
        """Active roles projected for select lists."""
        return [RoleOption(r.value, r.label, r.description) for r in self.get_active_roles()]

    @staticmethod
    def get_permission_options() -> list[PermissionOption]:
        """Permission catalog projected for select lists."""
        return list(PERMISSION_OPTIONS)

    def suggest_permissions(self, role_value: str) -> list[str]:
        """Suggested default permission set for a role.

        System roles use the fixed mapping table; custom roles suggest their
        own stored permission set.
        """
        key = normalize_slug(role_value or "")
        if key in DEFAULT_ROLE_PERMISSIONS:
            return list(DEFAULT_ROLE_PERMISSIONS[key])
        role = self.get_role_by_value(key)
        if role is not None and role.permissions:
            return list(role.permissions)
        return list(FALLBACK_PERMISSIONS)

    async def _ensure_unique(self, value: str, exclude_id: str | None = None) -> None:
        documents = await self.gateway.query(ROLES_COLLECTION)
        for document in documents:
            if document.id == exclude_id:
                continue
            if (document.data.get("value") or "").lower() == value:
                raise DuplicateValueError(f"A role with identifier '{value}' already exists")

    async def create_role(
        self,
        value: str,
        label: str,
        description: str = "",
        permissions: list[str] | None = None,
        is_active: bool = True,
        actor: str | None = None,
    ) -> Role:
        """Create a custom role.

        Raises:
            ValidationError: If the payload is invalid.
            DuplicateValueError: If the value is taken (case-insensitive).
        """
        errors = RoleValidator.validate(value, label, permissions)
        if errors:
            logger.info("Role rejected", value=value, errors=errors)
            raise ValidationError(errors)

        normalized = normalize_slug(value)
        await self._ensure_unique(normalized)

        role = Role(
            id="",
            value=normalized,
            label=label.strip(),
            description=(description or "").strip(),
            permissions=list(dict.fromkeys(permissions or [])),
            is_system_role=False,
            is_active=is_active,
            user_count=0,
        )
        role.id = await self.gateway.add(ROLES_COLLECTION, role.to_document())
        self._replace_cached(role)

        logger.info("Role created", role_id=role.id, value=role.value, actor=actor)
        await self.audit.log(
            "create_role",
            role.id,
            actor,
            {"value": role.value, "permissions": role.permissions},
        )
        return role

    async def update_role(
        self, role_id: str, updates: dict[str, Any], actor: str | None = None
    ) -> Role:
        """Apply a partial update to a role.

        Accepted keys: value, label, description, permissions, is_active,
        is_system_role.

        Raises:
            NotFoundError: If the role does not exist.
            InvariantViolationError: If a system role's value or system flag
                would change.
            ValidationError: If an updated field is invalid.
        """
        document = await self.gateway.get(ROLES_COLLECTION, role_id)
        if document is None:
            raise NotFoundError(f"Role '{role_id}' not found")
        current = Role.from_document(document.id, document.data)

        patch: dict[str, Any] = {}
        if "value" in updates and updates["value"] is not None:
            new_value = normalize_slug(updates["value"])
            if new_value != current.value:
                if current.is_system_role:
                    raise InvariantViolationError(
                        f"Cannot change the identifier of system role '{current.value}'"
                    )
                errors = RoleValidator.validate_value(new_value)
                if errors:
                    raise ValidationError(errors)
                await self._ensure_unique(new_value, exclude_id=role_id)
                patch["value"] = new_value

        if "is_system_role" in updates and updates["is_system_role"] is not None:
            flag = bool(updates["is_system_role"])
            if current.is_system_role and not flag:
                raise InvariantViolationError(
                    f"Cannot remove the system flag from role '{current.value}'"
                )
            if not current.is_system_role and flag:
                raise InvariantViolationError("Custom roles cannot become system roles")

        if updates.get("label") is not None:
            if not updates["label"].strip():
                raise ValidationError("Role label is required")
            patch["label"] = updates["label"].strip()
        if updates.get("description") is not None:
            patch["description"] = updates["description"].strip()
        if updates.get("permissions") is not None:
            errors = RoleValidator.validate_permissions(updates["permissions"])
            if errors:
                raise ValidationError(errors)
            patch["permissions"] = list(dict.fromkeys(updates["permissions"]))
        if updates.get("is_active") is not None:
            patch["is_active"] = bool(updates["is_active"])

        patch["updated_at"] = to_iso(utcnow())
        await self.gateway.update(
            ROLES_COLLECTION, role_id, patch, expected_version=document.version
        )
        refreshed = await self.gateway.get(ROLES_COLLECTION, role_id)
        role = Role.from_document(refreshed.id, refreshed.data) if refreshed else current
        self._replace_cached(role)

        changed = sorted(k for k in patch if k != "updated_at")
        logger.info("Role updated", role_id=role_id, fields=changed, actor=actor)
        await self.audit.log("update_role", role_id, actor, {"fields": changed})
        return role

    async def count_role_users(self, role_value: str) -> int:
        """Count users currently holding a role, straight from the gateway."""
        documents = await self.gateway.query(
            USERS_COLLECTION, [FieldFilter("role", FilterOp.EQ, role_value)]
        )
        return len(documents)

    async def delete_role(self, role_id: str, actor: str | None = None) -> None:
        """Delete a custom role with no assigned users.

        Raises:
            NotFoundError: If the role does not exist.
            InvariantViolationError: If the role is a system role or is in use.
        """
        document = await self.gateway.get(ROLES_COLLECTION, role_id)
        if document is None:
            raise NotFoundError(f"Role '{role_id}' not found")
        role = Role.from_document(document.id, document.data)

        if role.is_system_role or role.value in SYSTEM_ROLE_VALUES:
            raise InvariantViolationError(f"System role '{role.value}' cannot be deleted")

        user_count = max(role.user_count, await self.count_role_users(role.value))
        if user_count > 0:
            raise InvariantViolationError(
                f"Role '{role.value}' is assigned to {user_count} user(s) and cannot be deleted"
            )

        await self.gateway.delete(ROLES_COLLECTION, role_id, expected_version=document.version)
        self._set_cache([r for r in self._roles if r.id != role_id])

        logger.info("Role deleted", role_id=role_id, value=role.value, actor=actor)
        await self.audit.log("delete_role", role_id, actor, {"value": role.value})

    async def refresh_user_counts(self) -> dict[str, int]:
        """Recompute ``user_count`` for every role by scanning the users.

        Returns:
            Mapping of role value to user count.
        """
        users = await self.gateway.query(USERS_COLLECTION)
        tally = Counter(u.data.get("role") for u in users)
        documents = await self.gateway.query(ROLES_COLLECTION)
        counts = {d.data.get("value", ""): tally.get(d.data.get("value"), 0) for d in documents}
        if documents:
            await self.gateway.batch_write(
                [
                    BatchOperation.update(
                        ROLES_COLLECTION,
                        d.id,
                        {"user_count": counts[d.data.get("value", "")]},
                        expected_version=d.version,
                    )
                    for d in documents
                ]
            )
        await self.refresh()
        logger.info("Role user counts recomputed", roles=len(documents))
        return counts
