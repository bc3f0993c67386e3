"""Permission catalog.

Permissions are opaque capability identifiers. They are not persisted as
standalone records; roles and users reference them by value.
"""

from dataclasses import dataclass
from enum import Enum


class Permission(str, Enum):
    """Fixed catalog of capabilities."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE_USERS = "manage_users"


@dataclass(frozen=True)
class PermissionOption:
    """Select-list projection of a permission."""

    value: str
    label: str
    description: str


PERMISSION_OPTIONS: tuple[PermissionOption, ...] = (
    PermissionOption(Permission.READ.value, "Read", "View information"),
    PermissionOption(Permission.WRITE.value, "Write", "Create and edit records"),
    PermissionOption(
        Permission.MANAGE_USERS.value,
        "Manage users",
        "Create, edit and delete users",
    ),
    PermissionOption(Permission.DELETE.value, "Delete", "Delete records"),
)

PERMISSION_VALUES = frozenset(p.value for p in Permission)


def is_known_permission(value: str) -> bool:
    """Check whether a permission value belongs to the catalog."""
    return value in PERMISSION_VALUES
