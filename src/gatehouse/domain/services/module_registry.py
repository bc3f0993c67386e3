"""Module registry.

Owns the system module collection: creation, partial updates, soft and
hard deletion, ordering and the cached ``users_count`` per module.

The users collection is the source of truth for module assignment;
``users_count`` is advisory and recomputed on demand. A hard delete strips
the module from every user in the same atomic batch as the delete itself,
with each document guarded by its version so a concurrent edit aborts the
whole batch instead of leaving a dangling reference. Renaming a module
rewrites its value in every user's module set the same way.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass
from typing import Any

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.system_module import ModuleData, ModuleOption, SystemModule
from gatehouse.domain.entities.timestamps import to_iso, utcnow
from gatehouse.domain.exceptions import DuplicateValueError, NotFoundError, ValidationError
from gatehouse.domain.services.audit_logger import AuditLogger
from gatehouse.domain.services.validators import ModuleValidator, normalize_slug
from gatehouse.infrastructure.persistence.gateway import (
    MODULES_COLLECTION,
    USERS_COLLECTION,
    BatchOperation,
    DocumentGateway,
    FieldFilter,
    FilterOp,
)

logger = get_logger(__name__)

USER_MANAGEMENT_MODULE = "user-management"

DEFAULT_MODULES: tuple[ModuleData, ...] = (
    ModuleData(
        value="dashboard",
        label="Main Dashboard",
        description="Main dashboard with system metrics and summary",
        icon="dashboard",
        route="/dashboard",
    ),
    ModuleData(
        value=USER_MANAGEMENT_MODULE,
        label="User Management",
        description="Full administration of users and permissions",
        icon="people",
        route="/admin",
    ),
    ModuleData(
        value="clients",
        label="Client Management",
        description="Configurable module for managing clients with custom fields",
        icon="group",
        route="/modules/clients",
    ),
    ModuleData(
        value="analytics",
        label="Analytics and Reports",
        description="Data analysis and report generation",
        icon="analytics",
        route="/analytics",
    ),
    ModuleData(
        value="settings",
        label="System Settings",
        description="General settings and system parameters",
        icon="settings",
        route="/admin/config",
    ),
    ModuleData(
        value="notifications",
        label="Notification Center",
        description="Management and delivery of system notifications",
        icon="notifications",
        route="/notifications",
    ),
    ModuleData(
        value="audit-logs",
        label="Audit Logs",
        description="Record and tracking of system activity",
        icon="history",
        route="/admin/logs",
    ),
)


@dataclass
class ModuleDeletionResult:
    """Outcome of ``ModuleRegistry.delete_module``.

    Attributes:
        module_id: Deleted or deactivated module id.
        module_value: Value of the module at deletion time.
        hard_delete: Whether the document was removed.
        users_affected: Users whose module set was stripped (hard delete only).
        changed: False when a soft delete hit an already inactive module.
    """

    module_id: str
    module_value: str
    hard_delete: bool
    users_affected: int = 0
    changed: bool = True


class ModuleRegistry:
    """Registry of assignable feature areas."""

    def __init__(self, gateway: DocumentGateway, audit: AuditLogger) -> None:
        """Initialize the registry.

        Args:
            gateway: Document gateway holding modules and users.
            audit: Audit logger for module mutations.
        """
        self.gateway = gateway
        self.audit = audit
        self._modules: list[SystemModule] = []
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @property
    def modules(self) -> list[SystemModule]:
        """Cached modules, sorted by order. Stale until the next refresh."""
        return list(self._modules)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def initialize(self) -> None:
        """Load the module collection once."""
        if self._loaded:
            return
        async with self._load_lock:
            if not self._loaded:
                await self._load()

    async def refresh(self) -> list[SystemModule]:
        """Reload the module collection from the gateway."""
        async with self._load_lock:
            await self._load()
        return self.modules

    async def _load(self) -> None:
        documents = await self.gateway.query(MODULES_COLLECTION)
        self._set_cache([SystemModule.from_document(d.id, d.data) for d in documents])
        self._loaded = True
        logger.debug("Modules loaded", count=len(self._modules))

    def _set_cache(self, modules: list[SystemModule]) -> None:
        self._modules = sorted(modules, key=lambda m: (m.order, m.label.lower()))

    def _replace_cached(self, module: SystemModule) -> None:
        self._set_cache([m for m in self._modules if m.id != module.id] + [module])

    def get_active_modules(self) -> list[SystemModule]:
        return [m for m in self._modules if m.is_active]

    def get_module_options(self) -> list[ModuleOption]:
        """Active modules projected for select lists."""
        return [
            ModuleOption(m.value, m.label, m.description, m.icon)
            for m in self.get_active_modules()
        ]

    def get_module_by_value(self, value: str) -> SystemModule | None:
        key = normalize_slug(value)
        return next((m for m in self._modules if m.value.lower() == key), None)

    async def get_module_by_id(self, module_id: str) -> SystemModule | None:
        """Read one module through the gateway."""
        document = await self.gateway.get(MODULES_COLLECTION, module_id)
        if document is None:
            return None
        return SystemModule.from_document(document.id, document.data)

    async def _ensure_unique(self, value: str, exclude_id: str | None = None) -> None:
        documents = await self.gateway.query(MODULES_COLLECTION)
        for document in documents:
            if document.id == exclude_id:
                continue
            if (document.data.get("value") or "").lower() == value.lower():
                raise DuplicateValueError(f"A module with identifier '{value}' already exists")

    async def _next_order(self) -> int:
        documents = await self.gateway.query(MODULES_COLLECTION)
        return max([int(d.data.get("order") or 0) for d in documents] + [0]) + 1

    async def create_module(self, data: ModuleData, actor: str) -> SystemModule:
        """Create a module at the end of the display order.

        Raises:
            ValidationError: If a field rule is violated.
            DuplicateValueError: If the value is taken (case-insensitive).
        """
        errors = ModuleValidator.validate(data)
        if errors:
            logger.info("Module rejected", value=data.value, errors=errors)
            raise ValidationError(errors)

        value = normalize_slug(data.value)
        await self._ensure_unique(value)

        now = utcnow()
        module = SystemModule(
            id="",
            value=value,
            label=data.label.strip(),
            description=data.description.strip(),
            icon=data.icon.strip(),
            route=(data.route or "").strip(),
            is_active=data.is_active is not False,
            order=await self._next_order(),
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
            users_count=0,
        )
        module.id = await self.gateway.add(MODULES_COLLECTION, module.to_document())
        self._replace_cached(module)

        logger.info("Module created", module_id=module.id, value=module.value, actor=actor)
        await self.audit.log(
            "create_module", module.id, actor, {"value": module.value, "label": module.label}
        )
        return module

    async def update_module(self, module_id: str, data: ModuleData, actor: str) -> SystemModule:
        """Merge the provided fields into a module.

        Fields left as ``None`` keep their stored value; ``updated_at`` and
        ``updated_by`` are always stamped. A new ``value`` is rewritten in
        every holder's module set within the same batch.

        Raises:
            NotFoundError: If the module does not exist.
            ValidationError: If a provided field is invalid.
            DuplicateValueError: If a new value collides with another module.
            ConcurrencyConflictError: If the module or a holder changed
                while the rename was being prepared.
        """
        document = await self.gateway.get(MODULES_COLLECTION, module_id)
        if document is None:
            raise NotFoundError(f"Module '{module_id}' not found")

        errors = ModuleValidator.validate_partial(data)
        if errors:
            raise ValidationError(errors)

        old_value = document.data.get("value") or ""
        patch: dict[str, Any] = {}
        if data.value is not None:
            value = normalize_slug(data.value)
            if value != old_value.lower():
                await self._ensure_unique(value, exclude_id=module_id)
            patch["value"] = value
        if data.label is not None:
            patch["label"] = data.label.strip()
        if data.description is not None:
            patch["description"] = data.description.strip()
        if data.icon is not None:
            patch["icon"] = data.icon.strip()
        if data.route is not None:
            patch["route"] = data.route.strip()
        if data.is_active is not None:
            patch["is_active"] = data.is_active
        changed = sorted(patch)
        now = to_iso(utcnow())
        patch["updated_at"] = now
        patch["updated_by"] = actor

        operations = [
            BatchOperation.update(
                MODULES_COLLECTION, module_id, patch, expected_version=document.version
            )
        ]
        renamed = "value" in patch and patch["value"] != old_value
        if renamed:
            operations.extend(
                await self._rename_operations(old_value, patch["value"], now, actor)
            )
        await self.gateway.batch_write(operations)
        module = await self.get_module_by_id(module_id)
        if module is None:
            raise NotFoundError(f"Module '{module_id}' not found")
        self._replace_cached(module)

        users_affected = len(operations) - 1
        logger.info(
            "Module updated",
            module_id=module_id,
            fields=changed,
            users_affected=users_affected,
            actor=actor,
        )
        details: dict[str, Any] = {"fields": changed}
        if renamed:
            details.update(
                {"old_value": old_value, "value": patch["value"], "users_affected": users_affected}
            )
        await self.audit.log("update_module", module_id, actor, details)
        return module

    async def _rename_operations(
        self, old_value: str, new_value: str, now: str, actor: str
    ) -> list[BatchOperation]:
        """Version-guarded user updates replacing ``old_value`` with ``new_value``."""
        holders = await self.gateway.query(
            USERS_COLLECTION,
            [FieldFilter("modules", FilterOp.ARRAY_CONTAINS, old_value)],
        )
        operations = []
        for user in holders:
            modules = [
                new_value if m == old_value else m for m in user.data.get("modules") or []
            ]
            operations.append(
                BatchOperation.update(
                    USERS_COLLECTION,
                    user.id,
                    {
                        "modules": list(dict.fromkeys(modules)),
                        "updated_at": now,
                        "updated_by": actor,
                    },
                    expected_version=user.version,
                )
            )
        return operations

    async def delete_module(
        self, module_id: str, actor: str, hard_delete: bool = False
    ) -> ModuleDeletionResult:
        """Deactivate or permanently delete a module.

        Args:
            module_id: Module to delete.
            actor: Acting user identifier.
            hard_delete: Remove the document and strip the module from every
                user's module set in one batch. Otherwise only deactivate.

        Raises:
            NotFoundError: If the module does not exist.
            ConcurrencyConflictError: If the module or an affected user
                changed while the cascade was being prepared.
        """
        document = await self.gateway.get(MODULES_COLLECTION, module_id)
        if document is None:
            raise NotFoundError(f"Module '{module_id}' not found")
        module = SystemModule.from_document(document.id, document.data)

        if not hard_delete:
            return await self._deactivate(module, document.version, actor)

        holders = await self.gateway.query(
            USERS_COLLECTION,
            [FieldFilter("modules", FilterOp.ARRAY_CONTAINS, module.value)],
        )
        now = to_iso(utcnow())
        operations = [BatchOperation.delete(MODULES_COLLECTION, module_id, document.version)]
        for user in holders:
            remaining = [m for m in user.data.get("modules") or [] if m != module.value]
            operations.append(
                BatchOperation.update(
                    USERS_COLLECTION,
                    user.id,
                    {"modules": remaining, "updated_at": now, "updated_by": actor},
                    expected_version=user.version,
                )
            )
        await self.gateway.batch_write(operations)
        self._set_cache([m for m in self._modules if m.id != module_id])

        logger.info(
            "Module permanently deleted",
            module_id=module_id,
            value=module.value,
            users_affected=len(holders),
            actor=actor,
        )
        await self.audit.log(
            "delete_module_permanent",
            module_id,
            actor,
            {"value": module.value, "users_affected": len(holders)},
        )
        return ModuleDeletionResult(
            module_id=module_id,
            module_value=module.value,
            hard_delete=True,
            users_affected=len(holders),
        )

    async def _deactivate(
        self, module: SystemModule, version: int, actor: str
    ) -> ModuleDeletionResult:
        if not module.is_active:
            logger.info("Module already inactive", module_id=module.id, actor=actor)
            return ModuleDeletionResult(
                module_id=module.id,
                module_value=module.value,
                hard_delete=False,
                changed=False,
            )

        now = utcnow()
        await self.gateway.update(
            MODULES_COLLECTION,
            module.id,
            {"is_active": False, "updated_at": to_iso(now), "updated_by": actor},
            expected_version=version,
        )
        module.is_active = False
        module.updated_at = now
        module.updated_by = actor
        self._replace_cached(module)

        logger.info("Module deactivated", module_id=module.id, value=module.value, actor=actor)
        await self.audit.log("deactivate_module", module.id, actor, {"value": module.value})
        return ModuleDeletionResult(
            module_id=module.id, module_value=module.value, hard_delete=False
        )

    async def reorder_modules(self, ordered_ids: list[str], actor: str) -> None:
        """Assign ``order = index`` to each listed module in one batch.

        Modules missing from ``ordered_ids`` keep their current order.

        Raises:
            NotFoundError: If an id does not name an existing module.
            ValidationError: If an id is listed twice.
        """
        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValidationError("Module order contains duplicate ids")

        documents = {d.id: d for d in await self.gateway.query(MODULES_COLLECTION)}
        missing = [i for i in ordered_ids if i not in documents]
        if missing:
            raise NotFoundError(f"Modules not found: {', '.join(missing)}")

        now = to_iso(utcnow())
        await self.gateway.batch_write(
            [
                BatchOperation.update(
                    MODULES_COLLECTION,
                    module_id,
                    {"order": index, "updated_at": now, "updated_by": actor},
                    expected_version=documents[module_id].version,
                )
                for index, module_id in enumerate(ordered_ids)
            ]
        )
        await self.refresh()

        logger.info("Modules reordered", count=len(ordered_ids), actor=actor)
        await self.audit.log("reorder_modules", "", actor, {"order": list(ordered_ids)})

    async def count_users_using_module(self, module_value: str) -> int:
        documents = await self.gateway.query(
            USERS_COLLECTION,
            [FieldFilter("modules", FilterOp.ARRAY_CONTAINS, module_value)],
        )
        return len(documents)

    async def update_all_modules_user_count(self) -> dict[str, int]:
        """Recompute ``users_count`` for every module from the user records.

        Returns:
            Mapping of module value to assigned user count.
        """
        users = await self.gateway.query(USERS_COLLECTION)
        tally: Counter[str] = Counter()
        for user in users:
            tally.update(set(user.data.get("modules") or []))

        documents = await self.gateway.query(MODULES_COLLECTION)
        counts = {d.data.get("value", ""): tally.get(d.data.get("value", ""), 0) for d in documents}
        if documents:
            await self.gateway.batch_write(
                [
                    BatchOperation.update(
                        MODULES_COLLECTION,
                        d.id,
                        {"users_count": counts[d.data.get("value", "")]},
                        expected_version=d.version,
                    )
                    for d in documents
                ]
            )
        await self.refresh()
        logger.info("Module user counts recomputed", modules=len(documents), users=len(users))
        return counts

    async def initialize_default_modules(self, actor: str) -> list[SystemModule]:
        """Seed the default module catalog when no module exists.

        Returns:
            The created modules; empty when modules were already present.
        """
        if await self.gateway.query(MODULES_COLLECTION):
            logger.debug("Default modules skipped, modules already present")
            await self.initialize()
            return []

        created = []
        for data in DEFAULT_MODULES:
            created.append(await self.create_module(data, actor))
        logger.info("Default modules initialized", count=len(created), actor=actor)
        return created
