"""In-memory document gateway.

Keeps collections in dictionaries. Reads and writes deep-copy document
bodies so callers never share state with the store. Used for tests and
for the ``memory`` storage backend.
"""

import asyncio
import copy
import uuid
from typing import Any

from gatehouse.core.logging import get_logger
from gatehouse.domain.exceptions import ConcurrencyConflictError
from gatehouse.infrastructure.persistence.gateway import (
    BatchOperation,
    BatchOpKind,
    Document,
    DocumentGateway,
    FieldFilter,
    apply_query,
)

logger = get_logger(__name__)


def generate_document_id() -> str:
    """Generate a 20-character random document key."""
    return uuid.uuid4().hex[:20]


class InMemoryDocumentGateway(DocumentGateway):
    """Dictionary-backed document store."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = asyncio.Lock()

    def _collection(self, name: str) -> dict[str, Document]:
        return self._collections.setdefault(name, {})

    async def query(
        self,
        collection: str,
        filters: list[FieldFilter] | None = None,
        order_by: str | None = None,
    ) -> list[Document]:
        docs = [
            Document(d.id, copy.deepcopy(d.data), d.version)
            for d in self._collection(collection).values()
        ]
        return apply_query(docs, filters, order_by)

    async def get(self, collection: str, doc_id: str) -> Document | None:
        stored = self._collection(collection).get(doc_id)
        if stored is None:
            return None
        return Document(stored.id, copy.deepcopy(stored.data), stored.version)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        async with self._lock:
            docs = self._collection(collection)
            doc_id = generate_document_id()
            while doc_id in docs:
                doc_id = generate_document_id()
            docs[doc_id] = Document(doc_id, copy.deepcopy(data), 1)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        async with self._lock:
            self._apply(BatchOperation.set(collection, doc_id, data))

    async def update(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        async with self._lock:
            if doc_id not in self._collection(collection):
                return False
            operation = BatchOperation.update(collection, doc_id, data, expected_version)
            self._check(operation)
            self._apply(operation)
        return True

    async def delete(
        self, collection: str, doc_id: str, expected_version: int | None = None
    ) -> None:
        async with self._lock:
            operation = BatchOperation.delete(collection, doc_id, expected_version)
            self._check(operation)
            self._apply(operation)

    async def batch_write(self, operations: list[BatchOperation]) -> None:
        async with self._lock:
            # Validate everything first so a failing check leaves no partial writes
            for operation in operations:
                self._check(operation)
            for operation in operations:
                self._apply(operation)
        logger.debug("Batch committed", operations=len(operations))

    def _check(self, operation: BatchOperation) -> None:
        stored = self._collection(operation.collection).get(operation.doc_id)
        if operation.kind == BatchOpKind.UPDATE and stored is None:
            raise ConcurrencyConflictError(
                f"Document {operation.collection}/{operation.doc_id} no longer exists"
            )
        if operation.expected_version is None:
            return
        if stored is None or stored.version != operation.expected_version:
            raise ConcurrencyConflictError(
                f"Document {operation.collection}/{operation.doc_id} was modified concurrently"
            )

    def _apply(self, operation: BatchOperation) -> None:
        docs = self._collection(operation.collection)
        stored = docs.get(operation.doc_id)
        if operation.kind == BatchOpKind.DELETE:
            docs.pop(operation.doc_id, None)
        elif operation.kind == BatchOpKind.SET:
            version = stored.version + 1 if stored else 1
            docs[operation.doc_id] = Document(
                operation.doc_id, copy.deepcopy(operation.data), version
            )
        else:
            merged = {**stored.data, **copy.deepcopy(operation.data)}
            docs[operation.doc_id] = Document(operation.doc_id, merged, stored.version + 1)
