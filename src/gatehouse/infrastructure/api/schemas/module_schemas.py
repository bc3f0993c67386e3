"""System module API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from gatehouse.domain.entities.system_module import ModuleData


class ModuleRequest(BaseModel):
    """Create or partially update a module.

    On update, omitted (null) fields keep their stored value. Field rules
    are enforced by the registry so that every violated rule is reported.
    """

    value: str | None = None
    label: str | None = None
    description: str | None = None
    icon: str | None = None
    route: str | None = None
    is_active: bool | None = None

    def to_module_data(self) -> ModuleData:
        return ModuleData(
            value=self.value,
            label=self.label,
            description=self.description,
            icon=self.icon,
            route=self.route,
            is_active=self.is_active,
        )


class ModuleResponse(BaseModel):
    """Response schema for a module."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    value: str
    label: str
    description: str
    icon: str
    route: str
    is_active: bool
    order: int
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str
    users_count: int


class ModuleListResponse(BaseModel):
    """Response schema for listing modules."""

    items: list[ModuleResponse]
    total: int


class ModuleOptionResponse(BaseModel):
    """Select-list entry for a module."""

    model_config = ConfigDict(from_attributes=True)

    value: str
    label: str
    description: str
    icon: str


class ReorderModulesRequest(BaseModel):
    """New display order; unlisted modules keep their position."""

    ordered_ids: list[str] = Field(..., min_length=1)


class ModuleDeletionResponse(BaseModel):
    """Outcome of a soft or hard module delete."""

    model_config = ConfigDict(from_attributes=True)

    module_id: str
    module_value: str
    hard_delete: bool
    users_affected: int
    changed: bool


class ModuleCountsResponse(BaseModel):
    """Recomputed assigned-user count per module value."""

    counts: dict[str, int]
