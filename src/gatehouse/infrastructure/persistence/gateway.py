"""Document gateway contract.

The registries depend only on this contract: collection query,
get-by-id, add, set, update, delete and an all-or-nothing batched write.
Every stored document carries a version number that increases on each
write; passing ``expected_version`` turns a write into a compare-and-set.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ROLES_COLLECTION = "roles"
MODULES_COLLECTION = "system_modules"
USERS_COLLECTION = "authorized_users"
AUDIT_COLLECTION = "admin_logs"


@dataclass
class Document:
    """A stored document.

    Attributes:
        id: Document key, unique within its collection.
        data: Document body.
        version: Write counter used for optimistic concurrency.
    """

    id: str
    data: dict[str, Any]
    version: int = 1


class FilterOp(str, Enum):
    """Supported query operators."""

    EQ = "=="
    ARRAY_CONTAINS = "array_contains"


@dataclass(frozen=True)
class FieldFilter:
    """A single query predicate."""

    field: str
    op: FilterOp
    value: Any

    def matches(self, data: dict[str, Any]) -> bool:
        """Evaluate the predicate against a document body."""
        current = data.get(self.field)
        if self.op == FilterOp.EQ:
            return current == self.value
        if self.op == FilterOp.ARRAY_CONTAINS:
            return isinstance(current, list) and self.value in current
        raise ValueError(f"Unsupported filter operator: {self.op}")


class BatchOpKind(str, Enum):
    """Kinds of batched writes."""

    SET = "set"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class BatchOperation:
    """One write inside an atomic batch.

    Attributes:
        kind: set, update or delete.
        collection: Target collection.
        doc_id: Target document key.
        data: Body for set, partial body for update.
        expected_version: When given, the batch fails unless the stored
            document currently has this version.
    """

    kind: BatchOpKind
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)
    expected_version: int | None = None

    @classmethod
    def set(cls, collection: str, doc_id: str, data: dict[str, Any]) -> "BatchOperation":
        return cls(BatchOpKind.SET, collection, doc_id, data)

    @classmethod
    def update(
        cls,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> "BatchOperation":
        return cls(BatchOpKind.UPDATE, collection, doc_id, data, expected_version)

    @classmethod
    def delete(
        cls, collection: str, doc_id: str, expected_version: int | None = None
    ) -> "BatchOperation":
        return cls(BatchOpKind.DELETE, collection, doc_id, {}, expected_version)


def apply_query(
    documents: list[Document],
    filters: list[FieldFilter] | None = None,
    order_by: str | None = None,
) -> list[Document]:
    """Filter and order documents in memory.

    ``order_by`` accepts a field name, prefixed with '-' for descending order.
    Documents missing the field sort last.
    """
    result = [d for d in documents if all(f.matches(d.data) for f in filters or [])]
    if order_by:
        descending = order_by.startswith("-")
        key = order_by.lstrip("-")
        present = [d for d in result if d.data.get(key) is not None]
        missing = [d for d in result if d.data.get(key) is None]
        present.sort(key=lambda d: d.data[key], reverse=descending)
        result = present + missing
    return result


class DocumentGateway(ABC):
    """Abstract document store."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: list[FieldFilter] | None = None,
        order_by: str | None = None,
    ) -> list[Document]:
        """Return the documents of a collection matching every filter."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Return one document, or None when it does not exist."""

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document under a generated key and return the key."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document under a chosen key."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        """Merge fields into a document.

        Returns:
            False when the document does not exist.

        Raises:
            ConcurrencyConflictError: If expected_version does not match.
        """

    @abstractmethod
    async def delete(
        self, collection: str, doc_id: str, expected_version: int | None = None
    ) -> None:
        """Delete a document. Deleting a missing document is not an error."""

    @abstractmethod
    async def batch_write(self, operations: list[BatchOperation]) -> None:
        """Apply every operation or none of them.

        Raises:
            ConcurrencyConflictError: If a version check fails or an update
                or versioned delete targets a missing document.
        """

    async def initialize(self) -> None:
        """Prepare the underlying store (tables, connections)."""

    async def close(self) -> None:
        """Release underlying resources."""
