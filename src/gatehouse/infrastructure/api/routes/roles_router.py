"""Roles API routes.

Admin-only endpoints for role management and the permission catalog.
Domain errors are translated to HTTP responses by the application's
exception handlers.
"""

from fastapi import APIRouter, status

from gatehouse.core.logging import get_logger
from gatehouse.infrastructure.api.dependencies import AdminSession, CurrentSession, Roles
from gatehouse.infrastructure.api.schemas import (
    CreateRoleRequest,
    OptionResponse,
    RoleCountsResponse,
    RoleListResponse,
    RoleResponse,
    UpdateRoleRequest,
)

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=RoleListResponse)
async def list_roles(current: AdminSession, roles: Roles) -> RoleListResponse:
    """List every role, freshly loaded."""
    items = [RoleResponse.model_validate(r) for r in await roles.refresh()]
    logger.debug("Roles listed", count=len(items), requested_by=current.actor_id)
    return RoleListResponse(items=items, total=len(items))


@router.get("/options", response_model=list[OptionResponse])
async def role_options(current: CurrentSession, roles: Roles) -> list[OptionResponse]:
    """Active roles for select lists."""
    await roles.initialize()
    return [OptionResponse.model_validate(o) for o in roles.get_role_options()]


@router.get("/permissions", response_model=list[OptionResponse])
async def permission_options(current: CurrentSession, roles: Roles) -> list[OptionResponse]:
    """Permission catalog for select lists."""
    return [OptionResponse.model_validate(o) for o in roles.get_permission_options()]


@router.get("/{value}/suggested-permissions", response_model=list[str])
async def suggested_permissions(value: str, current: AdminSession, roles: Roles) -> list[str]:
    """Default permission set suggested for a role."""
    await roles.initialize()
    return roles.suggest_permissions(value)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=RoleResponse,
    responses={
        409: {"description": "Role identifier already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_role(
    request: CreateRoleRequest, current: AdminSession, roles: Roles
) -> RoleResponse:
    """Create a custom role."""
    role = await roles.create_role(
        value=request.value,
        label=request.label,
        description=request.description,
        permissions=request.permissions,
        is_active=request.is_active,
        actor=current.actor_id,
    )
    return RoleResponse.model_validate(role)


@router.patch(
    "/{role_id}",
    response_model=RoleResponse,
    responses={
        404: {"description": "Role not found"},
        409: {"description": "System role cannot be changed this way"},
    },
)
async def update_role(
    role_id: str, request: UpdateRoleRequest, current: AdminSession, roles: Roles
) -> RoleResponse:
    """Apply a partial update to a role."""
    role = await roles.update_role(
        role_id, request.model_dump(exclude_none=True), actor=current.actor_id
    )
    return RoleResponse.model_validate(role)


@router.delete(
    "/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"description": "Role not found"},
        409: {"description": "System role or role in use"},
    },
)
async def delete_role(role_id: str, current: AdminSession, roles: Roles) -> None:
    """Delete a custom role with no assigned users."""
    await roles.delete_role(role_id, actor=current.actor_id)


@router.post("/recount", response_model=RoleCountsResponse)
async def recount_roles(current: AdminSession, roles: Roles) -> RoleCountsResponse:
    """Recompute the user count of every role."""
    return RoleCountsResponse(counts=await roles.refresh_user_counts())
