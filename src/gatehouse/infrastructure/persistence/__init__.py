"""Persistence layer: the document gateway contract and its implementations."""

from gatehouse.core.config import Settings
from gatehouse.infrastructure.persistence.database import DatabaseManager
from gatehouse.infrastructure.persistence.gateway import (
    AUDIT_COLLECTION,
    MODULES_COLLECTION,
    ROLES_COLLECTION,
    USERS_COLLECTION,
    BatchOperation,
    BatchOpKind,
    Document,
    DocumentGateway,
    FieldFilter,
    FilterOp,
)
from gatehouse.infrastructure.persistence.memory_gateway import InMemoryDocumentGateway
from gatehouse.infrastructure.persistence.sql_gateway import SqlDocumentGateway


def build_gateway(settings: Settings) -> DocumentGateway:
    """Select the document gateway configured by ``storage_backend``."""
    if settings.storage_backend == "memory":
        return InMemoryDocumentGateway()
    return SqlDocumentGateway(DatabaseManager(settings.database_url, echo=settings.db_echo))


__all__ = [
    "AUDIT_COLLECTION",
    "MODULES_COLLECTION",
    "ROLES_COLLECTION",
    "USERS_COLLECTION",
    "BatchOperation",
    "BatchOpKind",
    "DatabaseManager",
    "Document",
    "DocumentGateway",
    "FieldFilter",
    "FilterOp",
    "InMemoryDocumentGateway",
    "SqlDocumentGateway",
    "build_gateway",
]
