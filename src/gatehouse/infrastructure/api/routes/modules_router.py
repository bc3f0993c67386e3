"""System modules API routes.

Admin-only endpoints for managing assignable feature areas, plus the
option list any signed-in caller may read.
"""

from fastapi import APIRouter, HTTPException, Query, status

from gatehouse.core.logging import get_logger
from gatehouse.infrastructure.api.dependencies import AdminSession, CurrentSession, Modules
from gatehouse.infrastructure.api.schemas import (
    ModuleCountsResponse,
    ModuleDeletionResponse,
    ModuleListResponse,
    ModuleOptionResponse,
    ModuleRequest,
    ModuleResponse,
    ReorderModulesRequest,
)

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=ModuleListResponse)
async def list_modules(current: AdminSession, modules: Modules) -> ModuleListResponse:
    """List every module in display order, freshly loaded."""
    items = [ModuleResponse.model_validate(m) for m in await modules.refresh()]
    return ModuleListResponse(items=items, total=len(items))


@router.get("/active", response_model=ModuleListResponse)
async def list_active_modules(current: CurrentSession, modules: Modules) -> ModuleListResponse:
    """List active modules in display order."""
    await modules.initialize()
    items = [ModuleResponse.model_validate(m) for m in modules.get_active_modules()]
    return ModuleListResponse(items=items, total=len(items))


@router.get("/options", response_model=list[ModuleOptionResponse])
async def module_options(current: CurrentSession, modules: Modules) -> list[ModuleOptionResponse]:
    """Active modules for select lists."""
    await modules.initialize()
    return [ModuleOptionResponse.model_validate(o) for o in modules.get_module_options()]


@router.get(
    "/{module_id}",
    response_model=ModuleResponse,
    responses={404: {"description": "Module not found"}},
)
async def get_module(module_id: str, current: AdminSession, modules: Modules) -> ModuleResponse:
    """Get a module by id."""
    module = await modules.get_module_by_id(module_id)
    if module is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Module '{module_id}' not found",
        )
    return ModuleResponse.model_validate(module)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ModuleResponse,
    responses={
        409: {"description": "Module identifier already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_module(
    request: ModuleRequest, current: AdminSession, modules: Modules
) -> ModuleResponse:
    """Create a module at the end of the display order."""
    module = await modules.create_module(request.to_module_data(), current.actor_id)
    return ModuleResponse.model_validate(module)


@router.patch(
    "/{module_id}",
    response_model=ModuleResponse,
    responses={404: {"description": "Module not found"}},
)
async def update_module(
    module_id: str, request: ModuleRequest, current: AdminSession, modules: Modules
) -> ModuleResponse:
    """Merge the provided fields into a module."""
    module = await modules.update_module(module_id, request.to_module_data(), current.actor_id)
    return ModuleResponse.model_validate(module)


@router.delete(
    "/{module_id}",
    response_model=ModuleDeletionResponse,
    responses={
        404: {"description": "Module not found"},
        409: {"description": "Concurrent modification"},
    },
)
async def delete_module(
    module_id: str,
    current: AdminSession,
    modules: Modules,
    hard: bool = Query(False, description="Permanently delete and strip from users"),
) -> ModuleDeletionResponse:
    """Deactivate a module, or permanently delete it with ``hard=true``."""
    result = await modules.delete_module(module_id, current.actor_id, hard_delete=hard)
    return ModuleDeletionResponse.model_validate(result)


@router.post("/reorder", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_modules(
    request: ReorderModulesRequest, current: AdminSession, modules: Modules
) -> None:
    """Assign display positions in the given order."""
    await modules.reorder_modules(request.ordered_ids, current.actor_id)


@router.post("/recount", response_model=ModuleCountsResponse)
async def recount_modules(current: AdminSession, modules: Modules) -> ModuleCountsResponse:
    """Recompute the assigned-user count of every module."""
    return ModuleCountsResponse(counts=await modules.update_all_modules_user_count())
