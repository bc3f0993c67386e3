"""Role entity for authorization.

A role is a named bundle of permissions. The three system roles
('admin', 'user', 'viewer') are seeded on first boot and cannot be
deleted or renamed; custom roles are managed by privileged users.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gatehouse.domain.entities.timestamps import from_iso, to_iso, utcnow

ADMIN_ROLE = "admin"
USER_ROLE = "user"
VIEWER_ROLE = "viewer"

SYSTEM_ROLE_VALUES = frozenset({ADMIN_ROLE, USER_ROLE, VIEWER_ROLE})


@dataclass
class Role:
    """Role entity.

    Attributes:
        id: Document identifier.
        value: Unique slug (lowercase letters, digits, underscores).
        label: Display name.
        description: Purpose of the role.
        permissions: Permission values granted by the role.
        is_system_role: True for the seeded roles; they cannot be deleted.
        is_active: Inactive roles are hidden from option lists.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
        user_count: Cached number of users holding the role. Advisory only;
            the user directory is the source of truth.
    """

    id: str
    value: str
    label: str
    description: str = ""
    permissions: list[str] = field(default_factory=list)
    is_system_role: bool = False
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    user_count: int = 0

    def __post_init__(self) -> None:
        """Validate role data after initialization."""
        if not self.value:
            raise ValueError("Role value is required")

    def to_document(self) -> dict[str, Any]:
        """Serialize to a document body (the id is the document key)."""
        return {
            "value": self.value,
            "label": self.label,
            "description": self.description,
            "permissions": list(self.permissions),
            "is_system_role": self.is_system_role,
            "is_active": self.is_active,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
            "user_count": self.user_count,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Role":
        """Build a role from a stored document."""
        return cls(
            id=doc_id,
            value=data.get("value", ""),
            label=data.get("label", ""),
            description=data.get("description") or "",
            permissions=list(data.get("permissions") or []),
            is_system_role=bool(data.get("is_system_role", False)),
            is_active=bool(data.get("is_active", True)),
            created_at=from_iso(data.get("created_at")) or utcnow(),
            updated_at=from_iso(data.get("updated_at")),
            user_count=int(data.get("user_count") or 0),
        )


@dataclass(frozen=True)
class RoleOption:
    """Select-list projection of an active role."""

    value: str
    label: str
    description: str
