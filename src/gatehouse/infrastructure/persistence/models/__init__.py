"""SQLAlchemy models for the Gatehouse document store."""

from gatehouse.infrastructure.persistence.models.document import DocumentModel

__all__ = ["DocumentModel"]
