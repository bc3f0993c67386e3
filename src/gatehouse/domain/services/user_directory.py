"""User directory.

Owns authorized user records: provisioning ahead of first login, identity
binding, role/permission/module edits, activation and deletion.

Two rules hold across every mutation:

* the system keeps at least one active admin (delete, demote, deactivate
  and bulk delete all re-check it, bulk delete against the other members
  of the same batch);
* an actor cannot delete or deactivate their own account.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.audit_entry import SYSTEM_ACTOR
from gatehouse.domain.entities.role import ADMIN_ROLE
from gatehouse.domain.entities.session import AuthSession
from gatehouse.domain.entities.timestamps import to_iso, utcnow
from gatehouse.domain.entities.user import (
    ACCOUNT_ACTIVE,
    ACCOUNT_PENDING,
    AuthorizedUser,
    UserData,
    UserStats,
    UserUpdate,
)
from gatehouse.domain.exceptions import (
    DuplicateValueError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from gatehouse.domain.services.audit_logger import AuditLogger
from gatehouse.domain.services.module_registry import ModuleRegistry
from gatehouse.domain.services.role_registry import DEFAULT_ROLE_PERMISSIONS, RoleRegistry
from gatehouse.domain.services.validators import (
    RoleValidator,
    UserValidator,
    format_display_name,
    normalize_email,
    normalize_slug,
)
from gatehouse.infrastructure.persistence.gateway import (
    USERS_COLLECTION,
    BatchOperation,
    Document,
    DocumentGateway,
    FieldFilter,
    FilterOp,
)

logger = get_logger(__name__)

LAST_ADMIN_MESSAGE = "Cannot remove the last active administrator"


class BulkDeletePolicy(str, Enum):
    """What a bulk delete does when some members cannot be deleted.

    ABORT rejects the whole batch; SKIP drops the offending members and
    deletes the rest.
    """

    ABORT = "abort"
    SKIP = "skip"


@dataclass
class BulkDeleteResult:
    """Outcome of a bulk delete.

    Attributes:
        deleted: Document ids that were deleted.
        failed: Identifiers that were skipped.
        errors: One reason per skipped identifier.
    """

    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.deleted)


def email_to_doc_id(email: str) -> str:
    """Derive the user document key from a normalized email."""
    return normalize_email(email).replace("@", "_").replace(".", "_")


def generate_provisional_uid() -> str:
    """Placeholder uid used until the user signs in for the first time."""
    return f"pre_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class UserDirectory:
    """Directory of authorized users."""

    def __init__(
        self,
        gateway: DocumentGateway,
        audit: AuditLogger,
        role_registry: RoleRegistry | None = None,
        module_registry: ModuleRegistry | None = None,
        bulk_delete_policy: BulkDeletePolicy = BulkDeletePolicy.ABORT,
    ) -> None:
        """Initialize the directory.

        Args:
            gateway: Document gateway holding the users collection.
            audit: Audit logger for user mutations.
            role_registry: Source of role permission suggestions and known roles.
            module_registry: Source of known module values for assignments.
            bulk_delete_policy: Default policy for ``delete_multiple_users``.
        """
        self.gateway = gateway
        self.audit = audit
        self.role_registry = role_registry
        self.module_registry = module_registry
        self.bulk_delete_policy = BulkDeletePolicy(bulk_delete_policy)
        self._users: list[AuthorizedUser] = []
        self._loaded = False
        self._load_lock = asyncio.Lock()

    # =========================================================================
    # Cache lifecycle
    # =========================================================================

    @property
    def users(self) -> list[AuthorizedUser]:
        """Cached users, newest first. Stale until the next refresh."""
        return list(self._users)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def initialize(self) -> None:
        """Load the users collection once."""
        if self._loaded:
            return
        async with self._load_lock:
            if not self._loaded:
                await self._load()

    async def refresh(self) -> list[AuthorizedUser]:
        """Reload the users collection from the gateway."""
        async with self._load_lock:
            await self._load()
        return self.users

    async def _load(self) -> None:
        documents = await self.gateway.query(USERS_COLLECTION)
        self._set_cache([AuthorizedUser.from_document(d.id, d.data) for d in documents])
        self._loaded = True
        logger.debug("Users loaded", count=len(self._users))

    def _set_cache(self, users: list[AuthorizedUser]) -> None:
        self._users = sorted(users, key=lambda u: u.created_at, reverse=True)

    def _replace_cached(self, user: AuthorizedUser) -> None:
        self._set_cache([u for u in self._users if u.doc_id != user.doc_id] + [user])

    def _drop_cached(self, doc_ids: set[str]) -> None:
        self._set_cache([u for u in self._users if u.doc_id not in doc_ids])

    # =========================================================================
    # Lookup
    # =========================================================================

    async def _find_by_field(self, field_name: str, value: str) -> Document | None:
        documents = await self.gateway.query(
            USERS_COLLECTION, [FieldFilter(field_name, FilterOp.EQ, value)]
        )
        return documents[0] if documents else None

    async def _find_document(self, identifier: str) -> Document | None:
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        if "@" in identifier:
            document = await self._find_by_field("email", normalize_email(identifier))
            if document is not None:
                return document
        document = await self._find_by_field("uid", identifier)
        if document is not None:
            return document
        return await self.gateway.get(USERS_COLLECTION, identifier)

    async def _require_document(self, identifier: str) -> Document:
        document = await self._find_document(identifier)
        if document is None:
            raise NotFoundError(f"User '{identifier}' not found")
        return document

    async def find_user_by_email(self, email: str) -> AuthorizedUser | None:
        document = await self._find_by_field("email", normalize_email(email))
        return AuthorizedUser.from_document(document.id, document.data) if document else None

    async def find_user_by_uid(self, uid: str) -> AuthorizedUser | None:
        document = await self._find_by_field("uid", uid)
        return AuthorizedUser.from_document(document.id, document.data) if document else None

    async def find_user_by_doc_id(self, doc_id: str) -> AuthorizedUser | None:
        document = await self.gateway.get(USERS_COLLECTION, doc_id)
        return AuthorizedUser.from_document(document.id, document.data) if document else None

    async def find_user(self, identifier: str) -> AuthorizedUser | None:
        """Resolve a user by email, uid or document id, in that order.

        The email lookup is only attempted when the identifier looks like
        an email address.
        """
        document = await self._find_document(identifier)
        return AuthorizedUser.from_document(document.id, document.data) if document else None

    # =========================================================================
    # Invariant helpers
    # =========================================================================

    async def _active_admin_ids(self) -> set[str]:
        documents = await self.gateway.query(
            USERS_COLLECTION, [FieldFilter("role", FilterOp.EQ, ADMIN_ROLE)]
        )
        return {d.id for d in documents if d.data.get("is_active") is True}

    async def _ensure_other_admin(self, user: AuthorizedUser) -> None:
        if not user.is_active_admin:
            return
        if not (await self._active_admin_ids()) - {user.doc_id}:
            logger.info("Last admin protected", user_id=user.doc_id)
            raise InvariantViolationError(LAST_ADMIN_MESSAGE)

    async def _ensure_known_role(self, role: str) -> None:
        if self.role_registry is None:
            return
        await self.role_registry.initialize()
        known = self.role_registry.get_role_by_value(role)
        if known is None:
            raise ValidationError(f"Unknown role '{role}'")
        if not known.is_active:
            raise ValidationError(f"Role '{role}' is inactive")

    @staticmethod
    def _normalize_modules(modules: list[str]) -> list[str]:
        return list(dict.fromkeys(normalize_slug(m) for m in modules))

    async def _unknown_module_errors(self, modules: list[str]) -> list[str]:
        """One error per module value the module registry does not know."""
        if self.module_registry is None or not modules:
            return []
        await self.module_registry.refresh()
        return [
            f"Unknown module '{m}'"
            for m in modules
            if self.module_registry.get_module_by_value(m) is None
        ]

    def suggest_permissions(self, role: str) -> list[str]:
        """Default permission set suggested when a user's role changes."""
        if self.role_registry is not None:
            return self.role_registry.suggest_permissions(role)
        return list(DEFAULT_ROLE_PERMISSIONS.get(normalize_slug(role), ()))

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create_user(
        self, data: UserData, session: AuthSession | None = None
    ) -> AuthorizedUser:
        """Provision a user ahead of their first login.

        Raises:
            ValidationError: If the payload is invalid.
            DuplicateValueError: If the email is already provisioned.
        """
        role = normalize_slug(data.role or "")
        errors = UserValidator.validate(data, modules_required=role != ADMIN_ROLE)
        modules = self._normalize_modules(data.modules)
        errors.extend(await self._unknown_module_errors(modules))
        if errors:
            logger.info("User rejected", email=data.email, errors=errors)
            raise ValidationError(errors)
        await self._ensure_known_role(role)

        email = normalize_email(data.email)
        doc_id = email_to_doc_id(email)
        if (
            await self._find_by_field("email", email) is not None
            or await self.gateway.get(USERS_COLLECTION, doc_id) is not None
        ):
            raise DuplicateValueError(f"A user with email '{email}' already exists")

        actor = session.actor_id if session else SYSTEM_ACTOR
        user = AuthorizedUser(
            doc_id=doc_id,
            uid=generate_provisional_uid(),
            email=email,
            display_name=format_display_name(data.display_name),
            role=role,
            permissions=list(dict.fromkeys(data.permissions)),
            modules=modules,
            is_active=data.is_active,
            created_by=actor,
            account_status=ACCOUNT_PENDING,
            pre_authorized=True,
        )
        await self.gateway.set(USERS_COLLECTION, doc_id, user.to_document())
        self._replace_cached(user)

        logger.info("User provisioned", user_id=doc_id, role=role, actor=actor)
        await self.audit.log(
            "create_user",
            doc_id,
            actor,
            {"email": email, "role": role, "modules": user.modules},
        )
        return user

    async def bind_identity(self, email: str, uid: str) -> AuthorizedUser:
        """Bind an identity-provider uid to a provisioned record.

        The first binding flips the account to active and stamps
        ``first_login_at``.

        Raises:
            NotFoundError: If no user is provisioned under the email.
        """
        document = await self._find_by_field("email", normalize_email(email))
        if document is None:
            raise NotFoundError(f"User '{email}' not found")
        user = AuthorizedUser.from_document(document.id, document.data)
        if user.uid == uid and user.account_status == ACCOUNT_ACTIVE:
            return user

        now = utcnow()
        patch: dict[str, Any] = {"uid": uid, "account_status": ACCOUNT_ACTIVE}
        if user.first_login_at is None:
            patch["first_login_at"] = to_iso(now)
        await self.gateway.update(
            USERS_COLLECTION, document.id, patch, expected_version=document.version
        )
        user.uid = uid
        user.account_status = ACCOUNT_ACTIVE
        user.first_login_at = user.first_login_at or now
        self._replace_cached(user)
        logger.info("Identity bound", user_id=document.id, uid=uid)
        return user

    async def update_last_login(self, identifier: str) -> None:
        """Stamp ``last_login``. Failures are logged and swallowed."""
        try:
            document = await self._require_document(identifier)
            await self.gateway.update(
                USERS_COLLECTION, document.id, {"last_login": to_iso(utcnow())}
            )
        except Exception as e:
            logger.warning(
                "Failed to update last login",
                identifier=identifier,
                error=str(e),
                exc_info=True,
            )

    async def update_user(
        self,
        identifier: str,
        updates: UserUpdate,
        session: AuthSession | None = None,
    ) -> AuthorizedUser:
        """Apply a partial update to a user.

        A role change without explicit permissions applies the role's
        suggested permission set; explicit permissions win.

        Raises:
            NotFoundError: If no user matches the identifier.
            ValidationError: If an updated field is invalid.
            InvariantViolationError: If the update would remove the last
                active admin or deactivate the acting user.
        """
        document = await self._require_document(identifier)
        current = AuthorizedUser.from_document(document.id, document.data)
        patch = await self._build_patch(current, updates)

        if patch.get("is_active") is False and session is not None and session.is_self(current):
            raise InvariantViolationError("You cannot deactivate your own account")

        if current.is_active_admin and (
            patch.get("role", current.role) != ADMIN_ROLE or patch.get("is_active") is False
        ):
            await self._ensure_other_admin(current)

        user = await self._write_patch(document, patch, session)
        changed = sorted(k for k in patch if k not in ("updated_at", "updated_by"))
        logger.info("User updated", user_id=user.doc_id, fields=changed)
        await self.audit.log(
            "update_user",
            user.doc_id,
            session.actor_id if session else None,
            {"fields": changed, "email": user.email},
        )
        return user

    async def _build_patch(self, current: AuthorizedUser, updates: UserUpdate) -> dict[str, Any]:
        errors: list[str] = []
        patch: dict[str, Any] = {}

        if updates.display_name is not None:
            name = format_display_name(updates.display_name)
            if len(name) < UserValidator.MIN_DISPLAY_NAME_LENGTH:
                errors.append("Display name must be at least 2 characters")
            patch["display_name"] = name

        role = current.role
        if updates.role is not None:
            role_errors = RoleValidator.validate_value(updates.role)
            errors.extend(role_errors)
            if not role_errors:
                role = normalize_slug(updates.role)
                if role != current.role:
                    await self._ensure_known_role(role)
                    patch["role"] = role

        if updates.permissions is not None:
            errors.extend(UserValidator.validate_permissions(updates.permissions))
            patch["permissions"] = list(dict.fromkeys(updates.permissions))
        elif "role" in patch:
            patch["permissions"] = self.suggest_permissions(role)

        modules = current.modules
        if updates.modules is not None:
            modules = self._normalize_modules(updates.modules)
            errors.extend(await self._unknown_module_errors(modules))
            patch["modules"] = modules
        if role != ADMIN_ROLE and not modules and ("modules" in patch or "role" in patch):
            errors.append("At least one module is required")

        if updates.is_active is not None:
            patch["is_active"] = bool(updates.is_active)

        if errors:
            raise ValidationError(errors)
        return patch

    async def _write_patch(
        self, document: Document, patch: dict[str, Any], session: AuthSession | None
    ) -> AuthorizedUser:
        patch["updated_at"] = to_iso(utcnow())
        patch["updated_by"] = session.actor_id if session else SYSTEM_ACTOR
        await self.gateway.update(
            USERS_COLLECTION, document.id, patch, expected_version=document.version
        )
        refreshed = await self.gateway.get(USERS_COLLECTION, document.id)
        if refreshed is None:
            raise NotFoundError(f"User '{document.id}' not found")
        user = AuthorizedUser.from_document(refreshed.id, refreshed.data)
        self._replace_cached(user)
        return user

    async def toggle_user_status(
        self, identifier: str, session: AuthSession | None = None
    ) -> AuthorizedUser:
        """Flip a user's active flag.

        Raises:
            NotFoundError: If no user matches the identifier.
            InvariantViolationError: If the acting user would deactivate
                themselves or the last active admin.
        """
        document = await self._require_document(identifier)
        current = AuthorizedUser.from_document(document.id, document.data)
        new_status = not current.is_active

        if not new_status:
            if session is not None and session.is_self(current):
                raise InvariantViolationError("You cannot deactivate your own account")
            await self._ensure_other_admin(current)

        user = await self._write_patch(document, {"is_active": new_status}, session)
        logger.info("User status changed", user_id=user.doc_id, is_active=new_status)
        await self.audit.log(
            "status_change",
            user.doc_id,
            session.actor_id if session else None,
            {"email": user.email, "is_active": new_status},
        )
        return user

    async def delete_user(self, identifier: str, session: AuthSession | None = None) -> None:
        """Delete a single user.

        Raises:
            NotFoundError: If no user matches the identifier.
            InvariantViolationError: If the acting user targets themselves or
                the last active admin.
        """
        document = await self._require_document(identifier)
        user = AuthorizedUser.from_document(document.id, document.data)
        if session is not None and session.is_self(user):
            raise InvariantViolationError("You cannot delete your own account")
        await self._ensure_other_admin(user)

        await self.gateway.delete(USERS_COLLECTION, document.id, expected_version=document.version)
        self._drop_cached({document.id})

        logger.info("User deleted", user_id=document.id, role=user.role)
        await self.audit.log(
            "delete_user",
            document.id,
            session.actor_id if session else None,
            {"email": user.email, "role": user.role},
        )

    async def delete_multiple_users(
        self,
        identifiers: list[str],
        session: AuthSession | None = None,
        policy: BulkDeletePolicy | None = None,
    ) -> BulkDeleteResult:
        """Delete several users in one atomic batch.

        The last-admin rule is evaluated against the whole batch: the
        active admins left after removing every admin in the batch must
        not drop to zero.

        Args:
            identifiers: Emails, uids or document ids.
            session: Acting session, used for self-protection and audit.
            policy: ABORT rejects the whole batch on the first problem; SKIP
                deletes every member that can be deleted. Defaults to the
                directory's configured policy.

        Raises:
            NotFoundError: ABORT policy, an identifier matches no user.
            InvariantViolationError: ABORT policy, the batch contains the
                acting user or every remaining active admin.
        """
        policy = BulkDeletePolicy(policy or self.bulk_delete_policy)
        result = BulkDeleteResult()

        def reject(identifier: str, error: Exception) -> None:
            if policy == BulkDeletePolicy.ABORT:
                logger.info("Bulk delete aborted", identifier=identifier, reason=str(error))
                raise error
            result.failed.append(identifier)
            result.errors.append(f"{identifier}: {error}")

        targets: dict[str, tuple[Document, AuthorizedUser]] = {}
        for identifier in dict.fromkeys(identifiers):
            document = await self._find_document(identifier)
            if document is None:
                reject(identifier, NotFoundError(f"User '{identifier}' not found"))
                continue
            if document.id in targets:
                continue
            user = AuthorizedUser.from_document(document.id, document.data)
            if session is not None and session.is_self(user):
                reject(identifier, InvariantViolationError("You cannot delete your own account"))
                continue
            targets[document.id] = (document, user)

        active_admins = await self._active_admin_ids()
        remaining = len(active_admins)
        for doc_id, (_, user) in list(targets.items()):
            if doc_id not in active_admins:
                continue
            if remaining - 1 < 1:
                del targets[doc_id]
                reject(user.email, InvariantViolationError(LAST_ADMIN_MESSAGE))
                continue
            remaining -= 1

        if targets:
            await self.gateway.batch_write(
                [
                    BatchOperation.delete(USERS_COLLECTION, doc_id, document.version)
                    for doc_id, (document, _) in targets.items()
                ]
            )
            self._drop_cached(set(targets))
        result.deleted = list(targets)

        logger.info(
            "Bulk delete completed",
            deleted=len(result.deleted),
            failed=len(result.failed),
            policy=policy.value,
        )
        await self.audit.log(
            "delete_multiple_users",
            "",
            session.actor_id if session else None,
            {
                "total_attempted": len(identifiers),
                "deleted": result.deleted,
                "failed": result.failed,
                "errors": result.errors,
            },
        )
        return result

    # =========================================================================
    # Read models
    # =========================================================================

    async def get_stats(self) -> UserStats:
        """Aggregate counters over the whole users collection."""
        documents = await self.gateway.query(USERS_COLLECTION)
        users = [AuthorizedUser.from_document(d.id, d.data) for d in documents]
        return UserStats(
            total_users=len(users),
            active_users=sum(1 for u in users if u.is_active),
            admin_users=sum(1 for u in users if u.is_admin),
            distinct_modules=len({m for u in users for m in u.modules}),
        )
