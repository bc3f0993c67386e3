"""Tests for SqlDocumentGateway on SQLite."""

import pytest
import pytest_asyncio
from sqlalchemy.orm.exc import StaleDataError

from gatehouse.domain.exceptions import ConcurrencyConflictError
from gatehouse.infrastructure.persistence import (
    BatchOperation,
    DatabaseManager,
    FieldFilter,
    FilterOp,
    SqlDocumentGateway,
)
from gatehouse.infrastructure.persistence.models import DocumentModel


class InterleavedSqlGateway(SqlDocumentGateway):
    """Commits a write from another session right after a batch loads its row."""

    interleave_next_load = False

    async def _load_row(self, session, operation):
        row = await super()._load_row(session, operation)
        if self.interleave_next_load:
            self.interleave_next_load = False
            await self.update(operation.collection, operation.doc_id, {"writer": "other"})
        return row


@pytest_asyncio.fixture
async def sql_gateway():
    """SQL gateway backed by a fresh in-memory database."""
    gateway = SqlDocumentGateway(DatabaseManager("sqlite+aiosqlite:///:memory:"))
    await gateway.initialize()
    yield gateway
    await gateway.close()


@pytest.mark.asyncio
async def test_add_and_get(sql_gateway):
    doc_id = await sql_gateway.add("roles", {"value": "editor", "permissions": ["read"]})

    document = await sql_gateway.get("roles", doc_id)

    assert document.data == {"value": "editor", "permissions": ["read"]}
    assert document.version == 1


@pytest.mark.asyncio
async def test_collections_are_separate(sql_gateway):
    await sql_gateway.set("roles", "x", {"n": 1})
    await sql_gateway.set("system_modules", "x", {"n": 2})

    assert (await sql_gateway.get("roles", "x")).data == {"n": 1}
    assert (await sql_gateway.get("system_modules", "x")).data == {"n": 2}


@pytest.mark.asyncio
async def test_update_merges_and_bumps_version(sql_gateway):
    await sql_gateway.set("users", "u1", {"email": "a@example.com", "modules": ["x"]})

    assert await sql_gateway.update("users", "u1", {"modules": []}, expected_version=1)

    document = await sql_gateway.get("users", "u1")
    assert document.data == {"email": "a@example.com", "modules": []}
    assert document.version == 2


@pytest.mark.asyncio
async def test_update_missing_returns_false(sql_gateway):
    assert await sql_gateway.update("users", "ghost", {"n": 1}) is False


@pytest.mark.asyncio
async def test_version_conflict(sql_gateway):
    await sql_gateway.set("users", "u1", {"n": 1})
    await sql_gateway.update("users", "u1", {"n": 2})

    with pytest.raises(ConcurrencyConflictError):
        await sql_gateway.update("users", "u1", {"n": 3}, expected_version=1)


@pytest.mark.asyncio
async def test_batch_rolls_back_on_conflict(sql_gateway):
    await sql_gateway.set("modules", "m1", {"value": "clients"})
    await sql_gateway.set("users", "u1", {"modules": ["clients"]})
    await sql_gateway.update("users", "u1", {"display_name": "Changed"})

    with pytest.raises(ConcurrencyConflictError):
        await sql_gateway.batch_write(
            [
                BatchOperation.delete("modules", "m1", expected_version=1),
                BatchOperation.update("users", "u1", {"modules": []}, expected_version=1),
            ]
        )

    assert await sql_gateway.get("modules", "m1") is not None
    assert (await sql_gateway.get("users", "u1")).data["modules"] == ["clients"]


@pytest.mark.asyncio
async def test_query_filters_and_order(sql_gateway):
    await sql_gateway.set("users", "a", {"role": "user", "modules": ["x"], "order": 2})
    await sql_gateway.set("users", "b", {"role": "user", "modules": ["y"], "order": 1})
    await sql_gateway.set("users", "c", {"role": "admin", "modules": ["x"], "order": 3})

    users = await sql_gateway.query(
        "users", [FieldFilter("role", FilterOp.EQ, "user")], order_by="order"
    )
    holders = await sql_gateway.query(
        "users", [FieldFilter("modules", FilterOp.ARRAY_CONTAINS, "x")]
    )

    assert [d.id for d in users] == ["b", "a"]
    assert {d.id for d in holders} == {"a", "c"}


@pytest.mark.asyncio
async def test_delete(sql_gateway):
    await sql_gateway.set("users", "u1", {"n": 1})

    await sql_gateway.delete("users", "u1", expected_version=1)
    await sql_gateway.delete("users", "u1")

    assert await sql_gateway.get("users", "u1") is None


@pytest.mark.asyncio
async def test_set_replaces_body(sql_gateway):
    await sql_gateway.set("roles", "admin", {"value": "admin", "label": "Admin"})

    await sql_gateway.set("roles", "admin", {"value": "admin"})

    document = await sql_gateway.get("roles", "admin")
    assert document.data == {"value": "admin"}
    assert document.version == 2


@pytest.mark.asyncio
async def test_drop_and_recreate_tables(sql_gateway):
    await sql_gateway.set("roles", "admin", {"value": "admin"})

    await sql_gateway.db.drop_tables()
    await sql_gateway.db.create_tables()

    assert await sql_gateway.query("roles") == []


@pytest_asyncio.fixture
async def file_gateway(tmp_path):
    """Interleaving gateway over a file database, one connection per session."""
    gateway = InterleavedSqlGateway(
        DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'documents.db'}")
    )
    await gateway.initialize()
    yield gateway
    await gateway.close()


@pytest.mark.asyncio
async def test_update_after_concurrent_commit_conflicts(file_gateway):
    await file_gateway.set("users", "u1", {"modules": ["clients"]})
    file_gateway.interleave_next_load = True

    with pytest.raises(ConcurrencyConflictError):
        await file_gateway.batch_write([BatchOperation.update("users", "u1", {"modules": []})])

    document = await file_gateway.get("users", "u1")
    assert document.data == {"modules": ["clients"], "writer": "other"}
    assert document.version == 2


@pytest.mark.asyncio
async def test_delete_after_concurrent_commit_conflicts(file_gateway):
    await file_gateway.set("users", "u1", {"modules": ["clients"]})
    file_gateway.interleave_next_load = True

    with pytest.raises(ConcurrencyConflictError):
        await file_gateway.delete("users", "u1")

    assert await file_gateway.get("users", "u1") is not None


@pytest.mark.asyncio
async def test_two_sessions_stale_row_rejected(file_gateway):
    await file_gateway.set("users", "u1", {"n": 1})

    async with file_gateway.db.session() as first:
        stale = await first.get(DocumentModel, ("users", "u1"))
        await file_gateway.update("users", "u1", {"n": 2})
        stale.data = {"n": 3}
        with pytest.raises(StaleDataError):
            await first.flush()

    assert (await file_gateway.get("users", "u1")).data == {"n": 2}
