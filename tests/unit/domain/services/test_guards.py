"""Unit tests for the navigation guards."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gatehouse.domain.entities import AuthSession, UserUpdate
from gatehouse.domain.services import (
    AuthGuard,
    GuardOutcome,
    GuardRoutes,
    LoginGuard,
    ModuleGuard,
    RoleGuard,
)
from gatehouse.domain.services.guards import INACTIVE_MESSAGE, NOT_PROVISIONED_MESSAGE

ROUTES = GuardRoutes(login="/signin", access_denied="/forbidden", home="/home")


@pytest.fixture
def unprovisioned_session() -> AuthSession:
    return AuthSession(uid="idp-1", email="stranger@example.com")


class TestAuthGuard:
    """Tests for AuthGuard."""

    @pytest.mark.asyncio
    async def test_pending_while_loading(self):
        decision = await AuthGuard(ROUTES).check(AuthSession.pending(), "/clients")

        assert decision.outcome == GuardOutcome.PENDING
        assert decision.redirect_to is None

    @pytest.mark.asyncio
    async def test_unauthenticated_keeps_return_url(self):
        decision = await AuthGuard(ROUTES).check(AuthSession.anonymous(), "/clients")

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHENTICATED
        assert decision.redirect_to == "/signin"
        assert decision.return_url == "/clients"

    @pytest.mark.asyncio
    async def test_not_provisioned(self, unprovisioned_session):
        decision = await AuthGuard(ROUTES).check(unprovisioned_session)

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED
        assert decision.redirect_to == "/signin"
        assert decision.message == NOT_PROVISIONED_MESSAGE

    @pytest.mark.asyncio
    async def test_session_message_wins(self):
        session = AuthSession(uid="idp-1", email="x@example.com", message="Not registered")

        decision = await AuthGuard(ROUTES).check(session)

        assert decision.message == "Not registered"

    @pytest.mark.asyncio
    async def test_inactive_user(self, provision, session_for):
        user = await provision("jane@example.com", is_active=False)

        decision = await AuthGuard(ROUTES).check(session_for(user))

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED
        assert decision.message == INACTIVE_MESSAGE

    @pytest.mark.asyncio
    async def test_active_user(self, provision, session_for):
        user = await provision("jane@example.com")

        decision = await AuthGuard().check(session_for(user))

        assert decision.allowed is True


class TestRoleGuard:
    """Tests for RoleGuard."""

    @pytest.mark.asyncio
    async def test_allowed_role(self, admin_session):
        decision = await RoleGuard({"admin"}, ROUTES).check(admin_session)

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_other_role_goes_to_access_denied(self, provision, session_for):
        user = await provision("jane@example.com")

        decision = await RoleGuard(["admin"], ROUTES).check(session_for(user), "/admin")

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED
        assert decision.redirect_to == "/forbidden"

    @pytest.mark.asyncio
    async def test_inactive_admin(self, admin, provision, session_for):
        other = await provision("a2@example.com", role="admin", modules=[], is_active=False)

        decision = await RoleGuard({"admin"}, ROUTES).check(session_for(other))

        assert decision.outcome == GuardOutcome.DENIED_INACTIVE
        assert decision.redirect_to == "/signin"

    @pytest.mark.asyncio
    async def test_pending_and_anonymous(self):
        guard = RoleGuard({"admin"}, ROUTES)

        assert (await guard.check(AuthSession.pending())).outcome == GuardOutcome.PENDING
        assert (
            await guard.check(AuthSession.anonymous())
        ).outcome == GuardOutcome.DENIED_UNAUTHENTICATED


class TestModuleGuard:
    """Tests for ModuleGuard."""

    @pytest.mark.asyncio
    async def test_admin_skips_directory(self, admin_session):
        directory = MagicMock()
        directory.refresh = AsyncMock(side_effect=RuntimeError("store down"))

        decision = await ModuleGuard("treasury", directory, ROUTES).check(admin_session)

        assert decision.allowed is True
        directory.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_assigned_module(self, user_directory, provision, session_for):
        user = await provision("jane@example.com", modules=["clients"])

        decision = await ModuleGuard("clients", user_directory, ROUTES).check(session_for(user))

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_unassigned_module_goes_home(self, user_directory, provision, session_for):
        user = await provision("jane@example.com", modules=["clients"])

        decision = await ModuleGuard("treasury", user_directory, ROUTES).check(
            session_for(user), "/treasury"
        )

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED
        assert decision.redirect_to == "/home"

    @pytest.mark.asyncio
    async def test_uses_fresh_record(self, user_directory, admin, provision, session_for):
        user = await provision("jane@example.com", modules=["clients"])
        session = session_for(user)
        await user_directory.update_user(user.doc_id, UserUpdate(modules=["dashboard"]))

        decision = await ModuleGuard("clients", user_directory, ROUTES).check(session)

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_deactivated_since_sign_in(self, user_directory, admin, provision, session_for):
        user = await provision("jane@example.com", modules=["clients"])
        session = session_for(user)
        await user_directory.toggle_user_status(user.doc_id)

        decision = await ModuleGuard("clients", user_directory, ROUTES).check(session)

        assert decision.outcome == GuardOutcome.DENIED_INACTIVE
        assert decision.redirect_to == "/signin"

    @pytest.mark.asyncio
    async def test_load_failure_denies(self, provision, session_for):
        user = await provision("jane@example.com", modules=["clients"])
        directory = MagicMock()
        directory.refresh = AsyncMock(side_effect=RuntimeError("store down"))

        decision = await ModuleGuard("clients", directory, ROUTES).check(session_for(user))

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED
        assert decision.redirect_to == "/home"

    @pytest.mark.asyncio
    async def test_deleted_since_sign_in(self, user_directory, admin, provision, session_for):
        user = await provision("jane@example.com", modules=["clients"])
        session = session_for(user)
        await user_directory.delete_user(user.doc_id)

        decision = await ModuleGuard("clients", user_directory, ROUTES).check(session)

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED
        assert decision.message == NOT_PROVISIONED_MESSAGE


class TestLoginGuard:
    """Tests for LoginGuard."""

    @pytest.mark.asyncio
    async def test_authorized_goes_home(self, admin_session):
        decision = await LoginGuard(ROUTES).check(admin_session)

        assert decision.outcome == GuardOutcome.DENIED_UNAUTHORIZED
        assert decision.redirect_to == "/home"

    @pytest.mark.asyncio
    async def test_anonymous_and_unprovisioned_allowed(self, unprovisioned_session):
        guard = LoginGuard(ROUTES)

        assert (await guard.check(AuthSession.anonymous())).allowed is True
        assert (await guard.check(unprovisioned_session)).allowed is True

    @pytest.mark.asyncio
    async def test_pending(self):
        decision = await LoginGuard(ROUTES).check(AuthSession.pending())

        assert decision.outcome == GuardOutcome.PENDING
