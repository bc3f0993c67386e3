"""Session and access-check routes.

Lets the UI shell read the caller's authorization snapshot and ask the
guards whether a navigation attempt may proceed.
"""

from fastapi import APIRouter, Request

from gatehouse.domain.entities.permission import Permission
from gatehouse.domain.services import (
    AuthGuard,
    GuardDecision,
    ModuleGuard,
    RoleGuard,
    has_module_access,
    has_permission,
)
from gatehouse.infrastructure.api.dependencies import CurrentSession, Directory, Modules
from gatehouse.infrastructure.api.schemas import (
    AccessCheckRequest,
    AccessCheckResponse,
    SessionResponse,
    UserResponse,
)

router = APIRouter()


@router.get("/session", response_model=SessionResponse)
async def current_session(session: CurrentSession, modules: Modules) -> SessionResponse:
    """Describe the caller's session and effective capabilities."""
    user = session.authorized_user
    await modules.initialize()
    return SessionResponse(
        authenticated=session.is_authenticated,
        authorized=session.is_authorized,
        uid=session.uid,
        email=session.email,
        message=session.message,
        user=UserResponse.model_validate(user) if user else None,
        permissions=[p.value for p in Permission if has_permission(user, p.value)],
        modules=[
            m.value for m in modules.get_active_modules() if has_module_access(user, m.value)
        ],
    )


@router.post("/access/check", response_model=AccessCheckResponse)
async def check_access(
    request: AccessCheckRequest,
    http_request: Request,
    session: CurrentSession,
    directory: Directory,
) -> AccessCheckResponse:
    """Run the auth guard, then the role and module guards that apply."""
    routes = http_request.app.state.guard_routes
    guards = [AuthGuard(routes)]
    if request.roles:
        guards.append(RoleGuard(request.roles, routes))
    if request.module:
        guards.append(ModuleGuard(request.module, directory, routes))

    decision: GuardDecision | None = None
    for guard in guards:
        decision = await guard.check(session, request.target_url)
        if not decision.allowed:
            break

    return AccessCheckResponse(
        outcome=decision.outcome.value,
        allowed=decision.allowed,
        redirect_to=decision.redirect_to,
        return_url=decision.return_url,
        message=decision.message,
    )
