"""FastAPI dependencies for sessions, registries and guards.

The identity provider's bearer token is decoded into an ``AuthSession``;
protected endpoints run the same guards the UI shell uses and translate a
denied decision into 401 (no identity) or 403 (identity without access).
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.permission import Permission
from gatehouse.domain.entities.role import ADMIN_ROLE
from gatehouse.domain.entities.session import AuthSession
from gatehouse.domain.services import (
    GuardDecision,
    GuardOutcome,
    ModuleGuard,
    ModuleRegistry,
    RoleGuard,
    RoleRegistry,
    SessionService,
    UserDirectory,
    USER_MANAGEMENT_MODULE,
    has_permission,
)
from gatehouse.infrastructure.auth import (
    IdentityTokenService,
    InvalidTokenError,
    TokenExpiredError,
)

logger = get_logger(__name__)


def get_role_registry(request: Request) -> RoleRegistry:
    return request.app.state.role_registry


def get_module_registry(request: Request) -> ModuleRegistry:
    return request.app.state.module_registry


def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.user_directory


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


def get_token_service(request: Request) -> IdentityTokenService:
    return request.app.state.token_service


Roles = Annotated[RoleRegistry, Depends(get_role_registry)]
Modules = Annotated[ModuleRegistry, Depends(get_module_registry)]
Directory = Annotated[UserDirectory, Depends(get_user_directory)]


async def get_auth_session(
    sessions: Annotated[SessionService, Depends(get_session_service)],
    tokens: Annotated[IdentityTokenService, Depends(get_token_service)],
    authorization: Annotated[str | None, Header()] = None,
) -> AuthSession:
    """Resolve the caller's session from the Authorization header.

    A missing header yields an anonymous session; a malformed, expired or
    badly signed token is rejected with 401.
    """
    if authorization is None:
        return AuthSession.anonymous()

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.info("Authentication failed: invalid Authorization header format")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = tokens.decode(parts[1])
    except TokenExpiredError:
        logger.info("Authentication failed: token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except InvalidTokenError as e:
        logger.info("Authentication failed: invalid token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await sessions.sign_in(payload["sub"], payload["email"])


CurrentSession = Annotated[AuthSession, Depends(get_auth_session)]


def raise_for_decision(decision: GuardDecision) -> None:
    """Translate a denied guard decision into an HTTP error."""
    if decision.allowed:
        return
    if decision.outcome == GuardOutcome.DENIED_UNAUTHENTICATED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=decision.message or "Access denied",
    )


async def require_admin(request: Request, session: CurrentSession) -> AuthSession:
    """Allow only active admins."""
    guard = RoleGuard({ADMIN_ROLE}, request.app.state.guard_routes)
    raise_for_decision(await guard.check(session, str(request.url.path)))
    return session


async def require_user_management(
    request: Request, session: CurrentSession, directory: Directory
) -> AuthSession:
    """Allow users assigned to the user-management module."""
    guard = ModuleGuard(USER_MANAGEMENT_MODULE, directory, request.app.state.guard_routes)
    raise_for_decision(await guard.check(session, str(request.url.path)))
    return session


async def require_user_manager(
    session: Annotated[AuthSession, Depends(require_user_management)],
) -> AuthSession:
    """Additionally require the manage_users permission for user mutations."""
    if not has_permission(session.authorized_user, Permission.MANAGE_USERS.value):
        logger.info("User mutation denied", email=session.email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The manage_users permission is required",
        )
    return session


AdminSession = Annotated[AuthSession, Depends(require_admin)]
UserManagementSession = Annotated[AuthSession, Depends(require_user_management)]
UserManagerSession = Annotated[AuthSession, Depends(require_user_manager)]
