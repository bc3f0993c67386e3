"""Authorized user API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from gatehouse.domain.entities.role import USER_ROLE
from gatehouse.domain.entities.user import UserData, UserUpdate


class UserCreateRequest(BaseModel):
    """Provision a user ahead of their first login."""

    email: str
    display_name: str
    role: str = USER_ROLE
    permissions: list[str] = []
    modules: list[str] = []
    is_active: bool = True

    def to_user_data(self) -> UserData:
        return UserData(
            email=self.email,
            display_name=self.display_name,
            role=self.role,
            permissions=list(self.permissions),
            modules=list(self.modules),
            is_active=self.is_active,
        )


class UserUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their stored value.

    Changing ``role`` without sending ``permissions`` applies the role's
    suggested permission set.
    """

    display_name: str | None = None
    role: str | None = None
    permissions: list[str] | None = None
    modules: list[str] | None = None
    is_active: bool | None = None

    def to_user_update(self) -> UserUpdate:
        return UserUpdate(
            display_name=self.display_name,
            role=self.role,
            permissions=self.permissions,
            modules=self.modules,
            is_active=self.is_active,
        )


class UserResponse(BaseModel):
    """Response schema for an authorized user."""

    model_config = ConfigDict(from_attributes=True)

    doc_id: str
    uid: str
    email: str
    display_name: str
    role: str
    permissions: list[str]
    modules: list[str]
    is_active: bool
    created_at: datetime
    created_by: str
    updated_at: datetime | None = None
    last_login: datetime | None = None
    first_login_at: datetime | None = None
    account_status: str
    pre_authorized: bool


class UserListResponse(BaseModel):
    """Response schema for listing users."""

    items: list[UserResponse]
    total: int


class UserStatsResponse(BaseModel):
    """Aggregate counters for the admin dashboard."""

    model_config = ConfigDict(from_attributes=True)

    total_users: int
    active_users: int
    admin_users: int
    distinct_modules: int


class BulkDeleteRequest(BaseModel):
    """Delete several users at once.

    Attributes:
        identifiers: Emails, uids or document ids.
        policy: 'abort' or 'skip'; defaults to the configured policy.
    """

    identifiers: list[str] = Field(..., min_length=1)
    policy: str | None = None


class BulkDeleteResponse(BaseModel):
    """Outcome of a bulk delete."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    deleted: list[str]
    failed: list[str]
    errors: list[str]
