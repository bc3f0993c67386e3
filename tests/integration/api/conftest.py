"""Fixtures for exercising the HTTP surface in-process."""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gatehouse.core.config import Settings
from gatehouse.domain.entities import AuthorizedUser, UserData
from gatehouse.infrastructure.api import bootstrap, create_app
from gatehouse.infrastructure.persistence import InMemoryDocumentGateway


@pytest_asyncio.fixture
async def api_app():
    """Application over an in-memory store with system roles and default modules seeded."""
    settings = Settings(
        _env_file=None,
        environment="testing",
        storage_backend="memory",
        secret_key="integration-test-secret",
        seed_default_modules=True,
    )
    app = create_app(gateway=InMemoryDocumentGateway(), settings=settings)
    await bootstrap(app)
    return app


@pytest_asyncio.fixture
async def client(api_app):
    # ASGITransport does not run the lifespan; bootstrap already prepared the state
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as c:
        yield c


@pytest.fixture
def headers_for(api_app):
    """Factory building bearer headers for an identity-provider uid and email."""

    def _headers_for(uid: str, email: str) -> dict[str, str]:
        token = api_app.state.token_service.issue(uid, email, timedelta(minutes=5))
        return {"Authorization": f"Bearer {token}"}

    return _headers_for


@pytest.fixture
def provision_user(api_app):
    """Factory provisioning a user directly through the directory."""

    async def _provision_user(
        email: str,
        role: str = "user",
        modules: list[str] | None = None,
        permissions: list[str] | None = None,
        is_active: bool = True,
    ) -> AuthorizedUser:
        directory = api_app.state.user_directory
        return await directory.create_user(
            UserData(
                email=email,
                display_name=f"User {email.split('@')[0]}",
                role=role,
                permissions=permissions or directory.suggest_permissions(role),
                modules=["dashboard"] if modules is None else modules,
                is_active=is_active,
            )
        )

    return _provision_user


@pytest_asyncio.fixture
async def admin_headers(provision_user, headers_for):
    await provision_user("admin@example.com", role="admin", modules=[])
    return headers_for("idp-admin", "admin@example.com")


@pytest_asyncio.fixture
async def user_headers(provision_user, headers_for):
    """Regular user assigned to the dashboard and clients modules."""
    await provision_user("jane@example.com", modules=["dashboard", "clients"])
    return headers_for("idp-jane", "jane@example.com")
