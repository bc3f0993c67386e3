"""Session resolution.

Turns an identity asserted by the identity provider (uid + email) into an
``AuthSession``: the provisioned record is looked up by email, the real
uid is bound on first sign-in and ``last_login`` is stamped in the
background.
"""

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.session import AuthSession
from gatehouse.domain.services.user_directory import UserDirectory
from gatehouse.domain.services.validators import normalize_email

logger = get_logger(__name__)


class SessionService:
    """Resolves caller identities against the user directory."""

    def __init__(self, directory: UserDirectory) -> None:
        self.directory = directory

    async def sign_in(self, uid: str | None, email: str | None) -> AuthSession:
        """Resolve a session for an authenticated identity.

        Unprovisioned and inactive accounts yield an authenticated but
        unauthorized session with a message; persistence errors propagate.
        """
        if not uid and not email:
            return AuthSession.anonymous()

        email = normalize_email(email or "")
        user = await self.directory.find_user_by_email(email) if email else None
        if user is None and uid:
            user = await self.directory.find_user_by_uid(uid)
        if user is None:
            logger.info("Sign-in rejected, not provisioned", email=email, uid=uid)
            return AuthSession(
                uid=uid,
                email=email or None,
                message=f"Your account ({email or uid}) is not registered. Contact an administrator.",
            )

        if uid and user.uid != uid:
            user = await self.directory.bind_identity(user.email, uid)

        if not user.is_active:
            logger.info("Sign-in rejected, account inactive", email=user.email)
            return AuthSession(
                uid=uid,
                email=user.email,
                authorized_user=user,
                message="Your account is disabled. Contact an administrator.",
            )

        await self.directory.update_last_login(user.doc_id)
        logger.info("Signed in", email=user.email, role=user.role)
        return AuthSession(uid=uid or user.uid, email=user.email, authorized_user=user)
