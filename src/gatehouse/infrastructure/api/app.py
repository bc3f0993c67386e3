"""FastAPI application factory and configuration.

The HTTP surface is a thin shell over the registries: they are built
once per application, stored on ``app.state`` and prepared by the
lifespan handler (or by ``bootstrap`` directly, where no lifespan runs).
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gatehouse.core.config import Settings, get_settings
from gatehouse.core.logging import (
    bind_correlation_id,
    clear_context,
    configure_logging,
    get_logger,
)
from gatehouse.domain.entities.audit_entry import SYSTEM_ACTOR
from gatehouse.domain.exceptions import (
    ConcurrencyConflictError,
    DuplicateValueError,
    GatehouseError,
    InvariantViolationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from gatehouse.domain.services import (
    AuditLogger,
    BulkDeletePolicy,
    GuardRoutes,
    ModuleRegistry,
    RoleRegistry,
    SessionService,
    UserDirectory,
)
from gatehouse.infrastructure.auth import IdentityTokenService
from gatehouse.infrastructure.persistence import DocumentGateway, build_gateway

logger = get_logger(__name__)


async def bootstrap(app: FastAPI) -> None:
    """Prepare the store, seed system roles and load the registries."""
    settings: Settings = app.state.settings
    await app.state.gateway.initialize()
    await app.state.role_registry.ensure_system_roles()
    if settings.seed_default_modules:
        await app.state.module_registry.initialize_default_modules(SYSTEM_ACTOR)
    await app.state.module_registry.initialize()
    await app.state.user_directory.initialize()
    logger.info("Registries initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control is yielded to the application during its lifetime.
    """
    settings: Settings = app.state.settings
    configure_logging(settings)
    logger.info(
        "Starting Gatehouse",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    try:
        await bootstrap(app)
    except Exception as e:
        logger.error("Failed to initialize storage", error=str(e))
        raise

    yield

    logger.info("Shutting down Gatehouse")
    await app.state.gateway.close()


def create_app(
    gateway: DocumentGateway | None = None, settings: Settings | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        gateway: Document gateway to use. Defaults to the configured backend.
        settings: Settings to use. Defaults to ``get_settings()``.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Role and module based access control",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    register_state(app, settings, gateway or build_gateway(settings))
    register_health_check(app)
    register_routes(app)
    register_exception_handlers(app)
    register_middleware(app)

    return app


def register_state(app: FastAPI, settings: Settings, gateway: DocumentGateway) -> None:
    """Build the registries and store them on ``app.state``."""
    audit = AuditLogger(gateway)
    role_registry = RoleRegistry(gateway, audit)
    module_registry = ModuleRegistry(gateway, audit)
    user_directory = UserDirectory(
        gateway,
        audit,
        role_registry=role_registry,
        module_registry=module_registry,
        bulk_delete_policy=BulkDeletePolicy(settings.bulk_delete_policy),
    )

    app.state.settings = settings
    app.state.gateway = gateway
    app.state.audit = audit
    app.state.role_registry = role_registry
    app.state.module_registry = module_registry
    app.state.user_directory = user_directory
    app.state.session_service = SessionService(user_directory)
    app.state.token_service = IdentityTokenService(settings.secret_key)
    app.state.guard_routes = GuardRoutes(
        login=settings.login_route,
        access_denied=settings.access_denied_route,
        home=settings.home_route,
    )


def register_health_check(app: FastAPI) -> None:
    """Register health check endpoints.

    Args:
        app: FastAPI application instance.
    """

    @app.get("/health", tags=["health"])
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "service": "Gatehouse",
            "version": app.state.settings.app_version,
        }


def register_routes(app: FastAPI) -> None:
    """Register API routes.

    Args:
        app: FastAPI application instance.
    """
    from gatehouse.infrastructure.api.routes import (
        modules_router,
        roles_router,
        session_router,
        users_router,
    )

    prefix = app.state.settings.api_prefix
    app.include_router(session_router, prefix=prefix, tags=["session"])
    app.include_router(roles_router, prefix=f"{prefix}/roles", tags=["roles"])
    app.include_router(modules_router, prefix=f"{prefix}/modules", tags=["modules"])
    app.include_router(users_router, prefix=f"{prefix}/users", tags=["users"])


def _error_response(status_code: int, exc: GatehouseError, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": exc.message, **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain errors into HTTP responses.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(DuplicateValueError)
    async def duplicate_handler(request: Request, exc: DuplicateValueError):
        return _error_response(status.HTTP_409_CONFLICT, exc, errors=exc.errors)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        logger.info("Validation failed", path=str(request.url.path), errors=exc.errors)
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc, errors=exc.errors)

    @app.exception_handler(InvariantViolationError)
    async def invariant_handler(request: Request, exc: InvariantViolationError):
        logger.info("Invariant violation", path=str(request.url.path), error=exc.message)
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(ConcurrencyConflictError)
    async def conflict_handler(request: Request, exc: ConcurrencyConflictError):
        logger.warning("Concurrent modification", path=str(request.url.path), error=exc.message)
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError):
        logger.error(
            "Persistence failure",
            path=str(request.url.path),
            error=exc.message,
            cause=repr(exc.__cause__),
        )
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(
            "Unhandled exception",
            path=str(request.url),
            method=request.method,
            error=str(exc),
            exc_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if app.state.settings.debug else "An unexpected error occurred",
            },
        )


def register_middleware(app: FastAPI) -> None:
    """Register custom middleware.

    Args:
        app: FastAPI application instance.
    """

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log every request and propagate a correlation id."""
        correlation_id = request.headers.get("X-Correlation-ID", f"cid_{uuid.uuid4().hex[:12]}")
        bind_correlation_id(correlation_id)

        logger.info(
            "Request started",
            method=request.method,
            path=str(request.url.path),
        )
        try:
            response = await call_next(request)
            logger.info(
                "Request completed",
                method=request.method,
                path=str(request.url.path),
                status_code=response.status_code,
            )
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            clear_context()
