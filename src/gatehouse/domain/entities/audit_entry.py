"""Audit entry entity.

Audit entries are append-only records of administrative actions. The
core writes them and never reads them back.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gatehouse.domain.entities.timestamps import to_iso, utcnow

SYSTEM_ACTOR = "system"


@dataclass
class AuditEntry:
    """A single administrative action.

    Attributes:
        action: Action name (e.g. 'create_module', 'delete_user').
        target_id: Identifier of the affected record ('' for collection-wide actions).
        performed_by: Identifier of the acting user.
        details: Free-form structured details.
        timestamp: When the action happened (UTC).
    """

    action: str
    target_id: str = ""
    performed_by: str = SYSTEM_ACTOR
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        """Validate audit entry after initialization."""
        if not self.action:
            raise ValueError("Audit action is required")

    def to_document(self) -> dict[str, Any]:
        """Serialize to a document body."""
        return {
            "action": self.action,
            "target_id": self.target_id,
            "performed_by": self.performed_by,
            "details": self.details,
            "timestamp": to_iso(self.timestamp),
        }
