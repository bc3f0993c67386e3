"""Authentication session entity.

A session describes what is known about the caller at navigation time:
whether an identity provider vouched for them, whether that identity maps
to an active authorized user, and whether resolution is still in flight.
"""

from dataclasses import dataclass

from gatehouse.domain.entities.audit_entry import SYSTEM_ACTOR
from gatehouse.domain.entities.user import AuthorizedUser


@dataclass
class AuthSession:
    """Caller session.

    Attributes:
        uid: Identity-provider uid, None when unauthenticated.
        email: Identity-provider email, None when unauthenticated.
        loading: True while the session is still being resolved.
        authorized_user: Directory record when the identity is authorized.
        message: Reason shown when the identity is not authorized.
    """

    uid: str | None = None
    email: str | None = None
    loading: bool = False
    authorized_user: AuthorizedUser | None = None
    message: str | None = None

    @property
    def is_authenticated(self) -> bool:
        """Whether an identity provider vouched for the caller."""
        return bool(self.uid or self.email)

    @property
    def is_authorized(self) -> bool:
        """Whether the identity maps to an active authorized user."""
        return self.authorized_user is not None and self.authorized_user.is_active

    @property
    def actor_id(self) -> str:
        """Identifier recorded as the actor of mutations."""
        return self.uid or self.email or SYSTEM_ACTOR

    def is_self(self, user: AuthorizedUser) -> bool:
        """Check whether a directory record is the caller's own account."""
        if self.uid and self.uid in (user.uid, user.doc_id):
            return True
        return bool(self.email) and self.email.strip().lower() == user.email

    @classmethod
    def anonymous(cls) -> "AuthSession":
        """Session for a caller without identity."""
        return cls()

    @classmethod
    def pending(cls) -> "AuthSession":
        """Session still being resolved."""
        return cls(loading=True)
