"""Data models for observability components.

This module defines dataclasses for audit logging, providing structured
types for observability data.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class AuditEventType(str, Enum):
    """Types of audit events logged by the relay."""

    REQUEST_RECEIVED = "request_received"
    UPSTREAM_REJECTED = "upstream_rejected"
    STREAM_STARTED = "stream_started"
    FIRST_TOKEN = "first_token"
    STREAM_COMPLETED = "stream_completed"
    STREAM_FAILED = "stream_failed"
    PROBE_COMPLETED = "probe_completed"


@dataclass
class AuditEvent:
    """A structured audit event for logging.

    Provides a consistent format for audit trail entries that can
    be serialized to JSON for structured logging.
    """

    event_type: AuditEventType
    """The type of audit event."""

    timestamp: datetime
    """When the event occurred."""

    request_id: str
    """The request ID for correlation."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Event-specific metadata."""

    def to_dict(self) -> dict[str, Any]:
        """Convert the audit event to a dictionary for JSON serialization.

        Returns:
            Dictionary representation of the event.
        """
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "request_id": self.request_id,
            **self.metadata,
        }
