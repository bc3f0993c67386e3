"""Authorized user entity.

Users are provisioned by an administrator ahead of their first login,
keyed by email. The identity provider's uid is bound to the record when
the user signs in for the first time.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gatehouse.domain.entities.role import ADMIN_ROLE, USER_ROLE
from gatehouse.domain.entities.timestamps import from_iso, to_iso, utcnow

ACCOUNT_PENDING = "pending_first_login"
ACCOUNT_ACTIVE = "active"


@dataclass
class AuthorizedUser:
    """User entity.

    Permissions are stored explicitly on the user and are independent of
    the role's permission bundle; the role only suggests a default set.

    Attributes:
        doc_id: Document key in the users collection.
        uid: Identity key. Provisional (``pre_...``) until first login.
        email: Normalized (lowercase) email, unique across users.
        display_name: Human-readable name.
        role: Role value (informational reference to Role.value).
        permissions: Explicit permission values.
        modules: Assigned module values.
        is_active: Inactive users fail every authorization check.
        created_at: Provisioning timestamp.
        created_by: Identifier of the provisioning actor.
        updated_at: Last update timestamp.
        updated_by: Identifier of the last updating actor.
        last_login: Last successful sign-in.
        first_login_at: First sign-in, when the identity was bound.
        account_status: 'pending_first_login' or 'active'.
        pre_authorized: True when provisioned ahead of first login.
    """

    doc_id: str
    uid: str
    email: str
    display_name: str = ""
    role: str = USER_ROLE
    permissions: list[str] = field(default_factory=list)
    modules: list[str] = field(default_factory=list)
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    created_by: str = ""
    updated_at: datetime | None = None
    updated_by: str = ""
    last_login: datetime | None = None
    first_login_at: datetime | None = None
    account_status: str = ACCOUNT_PENDING
    pre_authorized: bool = True

    @property
    def is_admin(self) -> bool:
        """Whether the user holds the admin role."""
        return self.role == ADMIN_ROLE

    @property
    def is_active_admin(self) -> bool:
        """Whether the user counts towards the last-admin invariant."""
        return self.is_admin and self.is_active

    def matches(self, identifier: str) -> bool:
        """Check whether an identifier (email, uid or document id) names this user."""
        return identifier in (self.doc_id, self.uid) or (
            self.email == identifier.strip().lower()
        )

    def to_document(self) -> dict[str, Any]:
        """Serialize to a document body."""
        return {
            "uid": self.uid,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "permissions": list(self.permissions),
            "modules": list(self.modules),
            "is_active": self.is_active,
            "created_at": to_iso(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_iso(self.updated_at),
            "updated_by": self.updated_by,
            "last_login": to_iso(self.last_login),
            "first_login_at": to_iso(self.first_login_at),
            "account_status": self.account_status,
            "pre_authorized": self.pre_authorized,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "AuthorizedUser":
        """Build a user from a stored document."""
        return cls(
            doc_id=doc_id,
            uid=data.get("uid") or doc_id,
            email=(data.get("email") or "").lower(),
            display_name=data.get("display_name") or "",
            role=data.get("role") or USER_ROLE,
            permissions=list(data.get("permissions") or []),
            modules=list(data.get("modules") or []),
            is_active=bool(data.get("is_active", False)),
            created_at=from_iso(data.get("created_at")) or utcnow(),
            created_by=data.get("created_by") or "",
            updated_at=from_iso(data.get("updated_at")),
            updated_by=data.get("updated_by") or "",
            last_login=from_iso(data.get("last_login")),
            first_login_at=from_iso(data.get("first_login_at")),
            account_status=data.get("account_status") or ACCOUNT_PENDING,
            pre_authorized=bool(data.get("pre_authorized", False)),
        )


@dataclass
class UserData:
    """Provisioning payload for a new user."""

    email: str
    display_name: str
    role: str = USER_ROLE
    permissions: list[str] = field(default_factory=list)
    modules: list[str] = field(default_factory=list)
    is_active: bool = True


@dataclass
class UserUpdate:
    """Partial update payload; ``None`` means "leave unchanged"."""

    display_name: str | None = None
    role: str | None = None
    permissions: list[str] | None = None
    modules: list[str] | None = None
    is_active: bool | None = None


@dataclass(frozen=True)
class UserStats:
    """Aggregate counters for the admin dashboard."""

    total_users: int
    active_users: int
    admin_users: int
    distinct_modules: int
