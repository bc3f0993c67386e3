"""Unit tests for AuditLogger."""

from unittest.mock import AsyncMock, patch

import pytest

from gatehouse.domain.entities import SYSTEM_ACTOR
from gatehouse.infrastructure.persistence import AUDIT_COLLECTION


class TestAuditLogger:
    """Tests for writing audit entries."""

    @pytest.mark.asyncio
    async def test_log_writes_entry(self, audit, gateway):
        entry_id = await audit.log("create_module", "mod-1", "admin-uid", {"value": "clients"})

        document = await gateway.get(AUDIT_COLLECTION, entry_id)
        assert document.data["action"] == "create_module"
        assert document.data["target_id"] == "mod-1"
        assert document.data["performed_by"] == "admin-uid"
        assert document.data["details"] == {"value": "clients"}
        assert document.data["timestamp"]

    @pytest.mark.asyncio
    async def test_missing_actor_is_system(self, audit, gateway):
        entry_id = await audit.log("reorder_modules")

        document = await gateway.get(AUDIT_COLLECTION, entry_id)
        assert document.data["performed_by"] == SYSTEM_ACTOR
        assert document.data["details"] == {}

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, audit, gateway):
        with patch.object(gateway, "add", AsyncMock(side_effect=RuntimeError("disk full"))):
            result = await audit.log("delete_user", "u1")

        assert result is None
        assert await gateway.query(AUDIT_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_failed_audit_does_not_fail_mutation(self, module_registry, module_data):
        with patch.object(
            module_registry.audit, "gateway", AsyncMock(add=AsyncMock(side_effect=OSError))
        ):
            module = await module_registry.create_module(module_data("clients"), "admin")

        assert await module_registry.get_module_by_id(module.id) is not None
