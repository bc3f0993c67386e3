"""Authorized users API routes.

Reads require the user-management module; mutations additionally
require the manage_users permission.
"""

from fastapi import APIRouter, HTTPException, status

from gatehouse.core.logging import get_logger
from gatehouse.domain.services import BulkDeletePolicy
from gatehouse.infrastructure.api.dependencies import (
    Directory,
    UserManagementSession,
    UserManagerSession,
)
from gatehouse.infrastructure.api.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    UserCreateRequest,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdateRequest,
)

logger = get_logger(__name__)

router = APIRouter(tags=["users"])


@router.get("", response_model=UserListResponse)
async def list_users(current: UserManagementSession, directory: Directory) -> UserListResponse:
    """List users, newest first."""
    await directory.initialize()
    items = [UserResponse.model_validate(u) for u in directory.users]
    return UserListResponse(items=items, total=len(items))


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(current: UserManagementSession, directory: Directory) -> UserStatsResponse:
    """Aggregate user counters."""
    return UserStatsResponse.model_validate(await directory.get_stats())


@router.get(
    "/{identifier}",
    response_model=UserResponse,
    responses={404: {"description": "User not found"}},
)
async def get_user(
    identifier: str, current: UserManagementSession, directory: Directory
) -> UserResponse:
    """Get a user by email, uid or document id."""
    user = await directory.find_user(identifier)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{identifier}' not found",
        )
    return UserResponse.model_validate(user)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=UserResponse,
    responses={
        409: {"description": "Email already provisioned"},
        422: {"description": "Validation error"},
    },
)
async def create_user(
    request: UserCreateRequest, current: UserManagerSession, directory: Directory
) -> UserResponse:
    """Provision a user ahead of their first login."""
    user = await directory.create_user(request.to_user_data(), current)
    return UserResponse.model_validate(user)


@router.patch(
    "/{identifier}",
    response_model=UserResponse,
    responses={
        404: {"description": "User not found"},
        409: {"description": "Last admin or self-deactivation"},
    },
)
async def update_user(
    identifier: str,
    request: UserUpdateRequest,
    current: UserManagerSession,
    directory: Directory,
) -> UserResponse:
    """Apply a partial update to a user."""
    user = await directory.update_user(identifier, request.to_user_update(), current)
    return UserResponse.model_validate(user)


@router.post("/{identifier}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    identifier: str, current: UserManagerSession, directory: Directory
) -> UserResponse:
    """Activate or deactivate a user."""
    user = await directory.toggle_user_status(identifier, current)
    return UserResponse.model_validate(user)


@router.delete(
    "/{identifier}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"description": "User not found"},
        409: {"description": "Last admin or own account"},
    },
)
async def delete_user(identifier: str, current: UserManagerSession, directory: Directory) -> None:
    """Delete a user."""
    await directory.delete_user(identifier, current)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_users(
    request: BulkDeleteRequest, current: UserManagerSession, directory: Directory
) -> BulkDeleteResponse:
    """Delete several users in one batch."""
    try:
        policy = BulkDeletePolicy(request.policy) if request.policy else None
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown bulk delete policy '{request.policy}'",
        )
    result = await directory.delete_multiple_users(request.identifiers, current, policy)
    return BulkDeleteResponse.model_validate(result)
