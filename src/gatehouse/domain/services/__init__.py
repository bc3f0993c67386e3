"""Domain services for Gatehouse.

Registries own one collection each and enforce its invariants; the
authorization evaluator and the guards only read what the registries
have loaded.
"""

from gatehouse.domain.services.audit_logger import AuditLogger
from gatehouse.domain.services.authorization import (
    has_module_access,
    has_permission,
    has_role,
)
from gatehouse.domain.services.guards import (
    AuthGuard,
    GuardDecision,
    GuardOutcome,
    GuardRoutes,
    LoginGuard,
    ModuleGuard,
    RoleGuard,
)
from gatehouse.domain.services.module_registry import (
    DEFAULT_MODULES,
    USER_MANAGEMENT_MODULE,
    ModuleDeletionResult,
    ModuleRegistry,
)
from gatehouse.domain.services.role_registry import (
    DEFAULT_ROLE_PERMISSIONS,
    SYSTEM_ROLE_SEED,
    RoleRegistry,
)
from gatehouse.domain.services.session_service import SessionService
from gatehouse.domain.services.user_directory import (
    BulkDeletePolicy,
    BulkDeleteResult,
    UserDirectory,
)
from gatehouse.domain.services.validators import (
    ModuleValidator,
    RoleValidator,
    UserValidator,
)

__all__ = [
    "AuditLogger",
    "AuthGuard",
    "BulkDeletePolicy",
    "BulkDeleteResult",
    "DEFAULT_MODULES",
    "DEFAULT_ROLE_PERMISSIONS",
    "GuardDecision",
    "GuardOutcome",
    "GuardRoutes",
    "LoginGuard",
    "ModuleDeletionResult",
    "ModuleGuard",
    "ModuleRegistry",
    "ModuleValidator",
    "RoleGuard",
    "RoleRegistry",
    "RoleValidator",
    "SYSTEM_ROLE_SEED",
    "SessionService",
    "USER_MANAGEMENT_MODULE",
    "UserDirectory",
    "UserValidator",
    "has_module_access",
    "has_permission",
    "has_role",
]
