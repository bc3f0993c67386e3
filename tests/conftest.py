"""Pytest configuration for all tests."""

import pytest
import pytest_asyncio

from gatehouse.domain.entities import AuthSession, AuthorizedUser, ModuleData, UserData
from gatehouse.domain.services import (
    AuditLogger,
    ModuleRegistry,
    RoleRegistry,
    SessionService,
    UserDirectory,
)
from gatehouse.domain.services.role_registry import DEFAULT_ROLE_PERMISSIONS
from gatehouse.infrastructure.persistence import AUDIT_COLLECTION, InMemoryDocumentGateway


@pytest.fixture
def gateway() -> InMemoryDocumentGateway:
    """Fresh in-memory document store."""
    return InMemoryDocumentGateway()


@pytest.fixture
def audit(gateway) -> AuditLogger:
    return AuditLogger(gateway)


@pytest_asyncio.fixture
async def role_registry(gateway, audit) -> RoleRegistry:
    """Role registry with the system roles seeded."""
    registry = RoleRegistry(gateway, audit)
    await registry.ensure_system_roles()
    return registry


@pytest.fixture
def module_registry(gateway, audit) -> ModuleRegistry:
    return ModuleRegistry(gateway, audit)


@pytest.fixture
def user_directory(gateway, audit, role_registry) -> UserDirectory:
    return UserDirectory(gateway, audit, role_registry=role_registry)


@pytest.fixture
def session_service(user_directory) -> SessionService:
    return SessionService(user_directory)


@pytest.fixture
def provision(user_directory):
    """Factory provisioning a user with the role's default permissions."""

    async def _provision(
        email: str,
        role: str = "user",
        modules: list[str] | None = None,
        is_active: bool = True,
    ) -> AuthorizedUser:
        return await user_directory.create_user(
            UserData(
                email=email,
                display_name=f"User {email.split('@')[0]}",
                role=role,
                permissions=list(DEFAULT_ROLE_PERMISSIONS.get(role, ("read",))),
                modules=["dashboard"] if modules is None else modules,
                is_active=is_active,
            )
        )

    return _provision


@pytest.fixture
def session_for():
    """Factory building a signed-in session for a directory record."""

    def _session_for(user: AuthorizedUser) -> AuthSession:
        return AuthSession(uid=user.uid, email=user.email, authorized_user=user)

    return _session_for


@pytest.fixture
def module_data():
    """Factory building a valid module payload."""

    def _module_data(value: str, **overrides) -> ModuleData:
        data = ModuleData(
            value=value,
            label=f"{value.title()} Module",
            description=f"Everything about {value}",
            icon="extension",
            route=f"/modules/{value}",
        )
        for key, val in overrides.items():
            setattr(data, key, val)
        return data

    return _module_data


@pytest.fixture
def audit_actions(gateway):
    """Coroutine returning the actions recorded in the audit collection."""

    async def _audit_actions() -> list[str]:
        documents = await gateway.query(AUDIT_COLLECTION, order_by="timestamp")
        return [d.data["action"] for d in documents]

    return _audit_actions


@pytest_asyncio.fixture
async def admin(provision) -> AuthorizedUser:
    """An active administrator with no explicit modules."""
    return await provision("admin@example.com", role="admin", modules=[])


@pytest.fixture
def admin_session(admin, session_for) -> AuthSession:
    return session_for(admin)
