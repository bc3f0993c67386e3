"""SQLAlchemy model for the documents table.

Every collection of the document store (roles, system_modules,
authorized_users, admin_logs) lives in this single table, keyed by
(collection, id), with the document body stored as JSON.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from gatehouse.infrastructure.persistence.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentModel(Base):
    """SQLAlchemy model for stored documents.

    Attributes:
        collection: Collection name.
        id: Document key within the collection.
        data: Document body.
        version: Write counter for optimistic concurrency, managed by the
            mapper on every UPDATE.
        created_at: Timestamp when the row was inserted.
        updated_at: Timestamp of the last write.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Collection name (e.g., 'roles', 'system_modules')",
    )
    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Document key within the collection",
    )
    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Document body",
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Incremented on every write",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (Index("ix_documents_collection", "collection"),)
    # UPDATE and DELETE carry "WHERE version = <loaded version>"
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Document(collection={self.collection}, id={self.id}, version={self.version})>"
