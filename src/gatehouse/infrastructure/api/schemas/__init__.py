"""API schemas for request/response validation."""

from gatehouse.infrastructure.api.schemas.module_schemas import (
    ModuleCountsResponse,
    ModuleDeletionResponse,
    ModuleListResponse,
    ModuleOptionResponse,
    ModuleRequest,
    ModuleResponse,
    ReorderModulesRequest,
)
from gatehouse.infrastructure.api.schemas.role_schemas import (
    CreateRoleRequest,
    OptionResponse,
    RoleCountsResponse,
    RoleListResponse,
    RoleResponse,
    UpdateRoleRequest,
)
from gatehouse.infrastructure.api.schemas.session_schemas import (
    AccessCheckRequest,
    AccessCheckResponse,
    SessionResponse,
)
from gatehouse.infrastructure.api.schemas.user_schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    UserCreateRequest,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdateRequest,
)

__all__ = [
    "AccessCheckRequest",
    "AccessCheckResponse",
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "CreateRoleRequest",
    "ModuleCountsResponse",
    "ModuleDeletionResponse",
    "ModuleListResponse",
    "ModuleOptionResponse",
    "ModuleRequest",
    "ModuleResponse",
    "OptionResponse",
    "ReorderModulesRequest",
    "RoleCountsResponse",
    "RoleListResponse",
    "RoleResponse",
    "SessionResponse",
    "UpdateRoleRequest",
    "UserCreateRequest",
    "UserListResponse",
    "UserResponse",
    "UserStatsResponse",
    "UserUpdateRequest",
]
