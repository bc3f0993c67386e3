"""Audit logger for administrative actions.

Appends entries to the audit collection. Audit writes are a side effect:
a failure is logged and swallowed so it never fails the primary operation.
"""

from typing import Any

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities.audit_entry import SYSTEM_ACTOR, AuditEntry
from gatehouse.infrastructure.persistence.gateway import AUDIT_COLLECTION, DocumentGateway

logger = get_logger(__name__)


class AuditLogger:
    """Write-only audit trail over the document gateway."""

    def __init__(self, gateway: DocumentGateway) -> None:
        """Initialize the audit logger.

        Args:
            gateway: Document gateway holding the audit collection.
        """
        self.gateway = gateway

    async def log(
        self,
        action: str,
        target_id: str = "",
        performed_by: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> str | None:
        """Record an action.

        Args:
            action: Action name.
            target_id: Affected record identifier.
            performed_by: Acting user identifier.
            details: Structured details.

        Returns:
            The audit document id, or None when the write failed.
        """
        entry = AuditEntry(
            action=action,
            target_id=target_id,
            performed_by=performed_by or SYSTEM_ACTOR,
            details=details or {},
        )
        try:
            entry_id = await self.gateway.add(AUDIT_COLLECTION, entry.to_document())
        except Exception as e:
            # Log error but don't fail the main operation
            logger.error(
                "Failed to write audit entry",
                action=action,
                target_id=target_id,
                error=str(e),
                exc_info=True,
            )
            return None
        logger.debug("Audit entry written", action=action, target_id=target_id)
        return entry_id
