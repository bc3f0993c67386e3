"""Domain entities for Gatehouse.

Entities are plain dataclasses that represent core authorization concepts.
They have no dependencies on infrastructure or external frameworks.
"""

from gatehouse.domain.entities.audit_entry import SYSTEM_ACTOR, AuditEntry
from gatehouse.domain.entities.permission import (
    PERMISSION_OPTIONS,
    Permission,
    PermissionOption,
    is_known_permission,
)
from gatehouse.domain.entities.role import (
    ADMIN_ROLE,
    SYSTEM_ROLE_VALUES,
    USER_ROLE,
    VIEWER_ROLE,
    Role,
    RoleOption,
)
from gatehouse.domain.entities.session import AuthSession
from gatehouse.domain.entities.system_module import (
    ModuleData,
    ModuleOption,
    SystemModule,
)
from gatehouse.domain.entities.user import (
    ACCOUNT_ACTIVE,
    ACCOUNT_PENDING,
    AuthorizedUser,
    UserData,
    UserStats,
    UserUpdate,
)

__all__ = [
    "ACCOUNT_ACTIVE",
    "ACCOUNT_PENDING",
    "ADMIN_ROLE",
    "AuditEntry",
    "AuthSession",
    "AuthorizedUser",
    "ModuleData",
    "ModuleOption",
    "PERMISSION_OPTIONS",
    "Permission",
    "PermissionOption",
    "Role",
    "RoleOption",
    "SYSTEM_ACTOR",
    "SYSTEM_ROLE_VALUES",
    "SystemModule",
    "USER_ROLE",
    "UserData",
    "UserStats",
    "UserUpdate",
    "VIEWER_ROLE",
    "is_known_permission",
]
