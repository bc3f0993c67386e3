"""API routes for Gatehouse."""

from gatehouse.infrastructure.api.routes.modules_router import router as modules_router
from gatehouse.infrastructure.api.routes.roles_router import router as roles_router
from gatehouse.infrastructure.api.routes.session_router import router as session_router
from gatehouse.infrastructure.api.routes.users_router import router as users_router

__all__ = [
    "modules_router",
    "roles_router",
    "session_router",
    "users_router",
]
