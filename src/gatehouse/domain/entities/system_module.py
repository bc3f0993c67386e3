"""System module entity.

A system module is an assignable feature area (clients, workers,
treasury, ...). Users are granted access by holding the module's
``value`` in their module set.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gatehouse.domain.entities.timestamps import from_iso, to_iso, utcnow

DEFAULT_MODULE_ICON = "extension"


@dataclass
class SystemModule:
    """System module entity.

    Attributes:
        id: Document identifier.
        value: Unique slug, compared case-insensitively.
        label: Display name.
        description: What the feature area covers.
        icon: Icon name rendered by the UI shell.
        route: Optional route of the protected view.
        is_active: Inactive modules are hidden from option lists (soft delete).
        order: Display position; lower comes first.
        created_at: Creation timestamp.
        created_by: Identifier of the creating actor.
        updated_at: Last update timestamp.
        updated_by: Identifier of the last updating actor.
        users_count: Cached number of users assigned to the module.
            Advisory only; user module sets are the source of truth.
    """

    id: str
    value: str
    label: str
    description: str = ""
    icon: str = DEFAULT_MODULE_ICON
    route: str = ""
    is_active: bool = True
    order: int = 0
    created_at: datetime = field(default_factory=utcnow)
    created_by: str = ""
    updated_at: datetime = field(default_factory=utcnow)
    updated_by: str = ""
    users_count: int = 0

    def to_document(self) -> dict[str, Any]:
        """Serialize to a document body."""
        return {
            "value": self.value,
            "label": self.label,
            "description": self.description,
            "icon": self.icon,
            "route": self.route,
            "is_active": self.is_active,
            "order": self.order,
            "created_at": to_iso(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_iso(self.updated_at),
            "updated_by": self.updated_by,
            "users_count": self.users_count,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "SystemModule":
        """Build a module from a stored document, filling source defaults."""
        return cls(
            id=doc_id,
            value=data.get("value") or "",
            label=data.get("label") or "",
            description=data.get("description") or "",
            icon=data.get("icon") or DEFAULT_MODULE_ICON,
            route=data.get("route") or "",
            is_active=data.get("is_active", True) is not False,
            order=int(data.get("order") or 0),
            created_at=from_iso(data.get("created_at")) or utcnow(),
            created_by=data.get("created_by") or "",
            updated_at=from_iso(data.get("updated_at")) or utcnow(),
            updated_by=data.get("updated_by") or "",
            users_count=int(data.get("users_count") or 0),
        )


@dataclass
class ModuleData:
    """Form payload for creating or partially updating a module.

    ``None`` means "not provided" for partial updates.
    """

    value: str | None = None
    label: str | None = None
    description: str | None = None
    icon: str | None = None
    route: str | None = None
    is_active: bool | None = None


@dataclass(frozen=True)
class ModuleOption:
    """Select-list projection of an active module."""

    value: str
    label: str
    description: str
    icon: str
