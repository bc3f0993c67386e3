"""Role API schemas for request/response validation."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class CreateRoleRequest(BaseModel):
    """Request schema for creating a custom role.

    Attributes:
        value: Role identifier (lowercase letters, digits, underscores).
        label: Display name.
        description: Purpose of the role.
        permissions: Permission values granted by the role.
        is_active: Whether the role is offered in option lists.
    """

    value: str
    label: str
    description: str = ""
    permissions: list[str] = []
    is_active: bool = True

    @field_validator("value", "label")
    @classmethod
    def not_empty(cls, v: str) -> str:
        """Validate that required text fields are not empty."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class UpdateRoleRequest(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    value: str | None = None
    label: str | None = None
    description: str | None = None
    permissions: list[str] | None = None
    is_active: bool | None = None
    is_system_role: bool | None = None


class RoleResponse(BaseModel):
    """Response schema for a role."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    value: str
    label: str
    description: str
    permissions: list[str]
    is_system_role: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None
    user_count: int


class RoleListResponse(BaseModel):
    """Response schema for listing roles."""

    items: list[RoleResponse]
    total: int


class OptionResponse(BaseModel):
    """Select-list entry for roles and permissions."""

    model_config = ConfigDict(from_attributes=True)

    value: str
    label: str
    description: str


class RoleCountsResponse(BaseModel):
    """Recomputed user count per role value."""

    counts: dict[str, int]
