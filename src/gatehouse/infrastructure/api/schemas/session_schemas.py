"""Session and access-check schemas."""

from pydantic import BaseModel

from gatehouse.infrastructure.api.schemas.user_schemas import UserResponse


class SessionResponse(BaseModel):
    """Current caller session and authorization snapshot.

    Capability lists are advisory for rendering; guards enforce access.
    """

    authenticated: bool
    authorized: bool
    uid: str | None = None
    email: str | None = None
    message: str | None = None
    user: UserResponse | None = None
    permissions: list[str] = []
    modules: list[str] = []


class AccessCheckRequest(BaseModel):
    """Navigation attempt to evaluate.

    Attributes:
        target_url: Destination the caller tried to reach.
        roles: Allowed roles, when the destination is role-guarded.
        module: Required module, when the destination is module-guarded.
    """

    target_url: str
    roles: list[str] | None = None
    module: str | None = None


class AccessCheckResponse(BaseModel):
    """Guard decision for a navigation attempt."""

    outcome: str
    allowed: bool
    redirect_to: str | None = None
    return_url: str | None = None
    message: str | None = None
