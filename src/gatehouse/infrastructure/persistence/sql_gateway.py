"""SQL-backed document gateway.

Stores documents in the ``documents`` table through SQLAlchemy async.
Each batch runs in a single transaction, so a failed version check or
driver error leaves no partial writes behind. Every UPDATE and DELETE is
also matched against the version loaded in that transaction, so a commit
from another transaction in between raises ConcurrencyConflictError.
"""

import copy
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.timestamps import utcnow
from gatehouse.domain.exceptions import ConcurrencyConflictError, PersistenceError
from gatehouse.infrastructure.persistence.database import DatabaseManager
from gatehouse.infrastructure.persistence.gateway import (
    BatchOperation,
    BatchOpKind,
    Document,
    DocumentGateway,
    FieldFilter,
    apply_query,
)
from gatehouse.infrastructure.persistence.memory_gateway import generate_document_id
from gatehouse.infrastructure.persistence.models import DocumentModel

logger = get_logger(__name__)


class SqlDocumentGateway(DocumentGateway):
    """Document store on top of a relational database."""

    def __init__(self, db: DatabaseManager) -> None:
        """Initialize the gateway.

        Args:
            db: Database manager owning the engine.
        """
        self.db = db

    async def query(
        self,
        collection: str,
        filters: list[FieldFilter] | None = None,
        order_by: str | None = None,
    ) -> list[Document]:
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(DocumentModel).where(DocumentModel.collection == collection)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to query {collection}") from e
        docs = [Document(row.id, copy.deepcopy(row.data), row.version) for row in rows]
        return apply_query(docs, filters, order_by)

    async def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            async with self.db.session() as session:
                row = await session.get(DocumentModel, (collection, doc_id))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read {collection}/{doc_id}") from e
        if row is None:
            return None
        return Document(row.id, copy.deepcopy(row.data), row.version)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = generate_document_id()
        await self.batch_write([BatchOperation.set(collection, doc_id, data)])
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        await self.batch_write([BatchOperation.set(collection, doc_id, data)])

    async def update(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        if await self.get(collection, doc_id) is None:
            return False
        await self.batch_write(
            [BatchOperation.update(collection, doc_id, data, expected_version)]
        )
        return True

    async def delete(
        self, collection: str, doc_id: str, expected_version: int | None = None
    ) -> None:
        await self.batch_write([BatchOperation.delete(collection, doc_id, expected_version)])

    async def batch_write(self, operations: list[BatchOperation]) -> None:
        try:
            async with self.db.session() as session:
                async with session.begin():
                    for operation in operations:
                        await self._apply(session, operation)
        except StaleDataError as e:
            raise ConcurrencyConflictError(
                "A document in the batch was modified concurrently"
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError("Batch write failed") from e
        logger.debug("Batch committed", operations=len(operations))

    async def _load_row(
        self, session: AsyncSession, operation: BatchOperation
    ) -> DocumentModel | None:
        return await session.get(DocumentModel, (operation.collection, operation.doc_id))

    async def _apply(self, session: AsyncSession, operation: BatchOperation) -> None:
        row = await self._load_row(session, operation)
        if operation.expected_version is not None and (
            row is None or row.version != operation.expected_version
        ):
            raise ConcurrencyConflictError(
                f"Document {operation.collection}/{operation.doc_id} was modified concurrently"
            )

        if operation.kind == BatchOpKind.DELETE:
            if row is not None:
                await session.delete(row)
        elif operation.kind == BatchOpKind.SET:
            if row is None:
                session.add(
                    DocumentModel(
                        collection=operation.collection,
                        id=operation.doc_id,
                        data=copy.deepcopy(operation.data),
                    )
                )
            else:
                row.data = copy.deepcopy(operation.data)
                row.updated_at = utcnow()
        else:
            if row is None:
                raise ConcurrencyConflictError(
                    f"Document {operation.collection}/{operation.doc_id} no longer exists"
                )
            row.data = {**row.data, **copy.deepcopy(operation.data)}
            row.updated_at = utcnow()
        await session.flush()

    async def initialize(self) -> None:
        if not await self.db.check_connection():
            raise PersistenceError("Failed to connect to database")
        await self.db.create_tables()

    async def close(self) -> None:
        await self.db.disconnect()
