"""Navigation guards.

Each guard takes the caller's session and returns a ``GuardDecision``.
Guards never mutate registries; a denied decision carries the route the
shell should silently redirect to.

    PENDING -> ALLOWED
            -> DENIED_UNAUTHENTICATED  (login, remembering the destination)
            -> DENIED_UNAUTHORIZED     (login, access denied or home)
            -> DENIED_INACTIVE         (login)
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.session import AuthSession
from gatehouse.domain.entities.user import AuthorizedUser
from gatehouse.domain.services.authorization import has_module_access, has_role
from gatehouse.domain.services.user_directory import UserDirectory

logger = get_logger(__name__)

NOT_PROVISIONED_MESSAGE = "Your account is not authorized to use this system"
INACTIVE_MESSAGE = "Your account has been deactivated"


class GuardOutcome(str, Enum):
    """States of a navigation attempt."""

    PENDING = "pending"
    ALLOWED = "allowed"
    DENIED_UNAUTHENTICATED = "denied_unauthenticated"
    DENIED_UNAUTHORIZED = "denied_unauthorized"
    DENIED_INACTIVE = "denied_inactive"


@dataclass(frozen=True)
class GuardDecision:
    """Result of a guard check.

    Attributes:
        outcome: Final state of the navigation attempt.
        redirect_to: Route to navigate to instead, None when allowed or pending.
        return_url: Originally requested destination, kept for resuming
            after login.
        message: Reason shown on the login view.
    """

    outcome: GuardOutcome
    redirect_to: str | None = None
    return_url: str | None = None
    message: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOWED


@dataclass(frozen=True)
class GuardRoutes:
    """Redirect targets used by the guards."""

    login: str = "/login"
    access_denied: str = "/access-denied"
    home: str = "/dashboard"


ALLOWED = GuardDecision(GuardOutcome.ALLOWED)
PENDING = GuardDecision(GuardOutcome.PENDING)


def _resolve_identity(
    session: AuthSession, routes: GuardRoutes, target_url: str | None
) -> GuardDecision | AuthorizedUser:
    """Shared first steps: loading, unauthenticated, unprovisioned."""
    if session.loading:
        return PENDING
    if not session.is_authenticated:
        return GuardDecision(
            GuardOutcome.DENIED_UNAUTHENTICATED,
            redirect_to=routes.login,
            return_url=target_url,
        )
    if session.authorized_user is None:
        return GuardDecision(
            GuardOutcome.DENIED_UNAUTHORIZED,
            redirect_to=routes.login,
            message=session.message or NOT_PROVISIONED_MESSAGE,
        )
    return session.authorized_user


class AuthGuard:
    """Allows authenticated callers that map to an active authorized user."""

    def __init__(self, routes: GuardRoutes | None = None) -> None:
        self.routes = routes or GuardRoutes()

    async def check(self, session: AuthSession, target_url: str | None = None) -> GuardDecision:
        resolved = _resolve_identity(session, self.routes, target_url)
        if isinstance(resolved, GuardDecision):
            return resolved
        if not resolved.is_active:
            return GuardDecision(
                GuardOutcome.DENIED_UNAUTHORIZED,
                redirect_to=self.routes.login,
                message=INACTIVE_MESSAGE,
            )
        return ALLOWED


class RoleGuard:
    """Allows active users whose role is in the allowed set.

    Pending while the session is still resolving.
    """

    def __init__(self, allowed_roles: Iterable[str], routes: GuardRoutes | None = None) -> None:
        self.allowed_roles = frozenset(allowed_roles)
        self.routes = routes or GuardRoutes()

    async def check(self, session: AuthSession, target_url: str | None = None) -> GuardDecision:
        resolved = _resolve_identity(session, self.routes, target_url)
        if isinstance(resolved, GuardDecision):
            return resolved
        if not resolved.is_active:
            return GuardDecision(
                GuardOutcome.DENIED_INACTIVE,
                redirect_to=self.routes.login,
                message=INACTIVE_MESSAGE,
            )
        if has_role(resolved, self.allowed_roles):
            return ALLOWED
        logger.info(
            "Role guard denied",
            email=resolved.email,
            role=resolved.role,
            allowed=sorted(self.allowed_roles),
            target=target_url,
        )
        return GuardDecision(GuardOutcome.DENIED_UNAUTHORIZED, redirect_to=self.routes.access_denied)


class ModuleGuard:
    """Allows active users assigned to a module.

    Admins pass without consulting the directory. Everyone else is checked
    against a freshly loaded directory; a failed load denies.
    """

    def __init__(
        self,
        required_module: str,
        directory: UserDirectory,
        routes: GuardRoutes | None = None,
    ) -> None:
        self.required_module = required_module
        self.directory = directory
        self.routes = routes or GuardRoutes()

    async def check(self, session: AuthSession, target_url: str | None = None) -> GuardDecision:
        resolved = _resolve_identity(session, self.routes, target_url)
        if isinstance(resolved, GuardDecision):
            return resolved
        if not resolved.is_active:
            return GuardDecision(
                GuardOutcome.DENIED_INACTIVE,
                redirect_to=self.routes.login,
                message=INACTIVE_MESSAGE,
            )
        if resolved.is_admin:
            return ALLOWED

        try:
            users = await self.directory.refresh()
        except Exception as e:
            logger.error(
                "Module guard failed to load users",
                module=self.required_module,
                error=str(e),
                exc_info=True,
            )
            return GuardDecision(GuardOutcome.DENIED_UNAUTHORIZED, redirect_to=self.routes.home)

        current = next((u for u in users if u.doc_id == resolved.doc_id), None)
        if current is None:
            return GuardDecision(
                GuardOutcome.DENIED_UNAUTHORIZED,
                redirect_to=self.routes.login,
                message=NOT_PROVISIONED_MESSAGE,
            )
        if not current.is_active:
            return GuardDecision(
                GuardOutcome.DENIED_INACTIVE,
                redirect_to=self.routes.login,
                message=INACTIVE_MESSAGE,
            )
        if has_module_access(current, self.required_module):
            return ALLOWED

        logger.info(
            "Module guard denied",
            email=current.email,
            module=self.required_module,
            target=target_url,
        )
        return GuardDecision(GuardOutcome.DENIED_UNAUTHORIZED, redirect_to=self.routes.home)


class LoginGuard:
    """Keeps already authorized callers away from the login view."""

    def __init__(self, routes: GuardRoutes | None = None) -> None:
        self.routes = routes or GuardRoutes()

    async def check(self, session: AuthSession, target_url: str | None = None) -> GuardDecision:
        if session.loading:
            return PENDING
        if session.is_authenticated and session.is_authorized:
            return GuardDecision(GuardOutcome.DENIED_UNAUTHORIZED, redirect_to=self.routes.home)
        return ALLOWED
