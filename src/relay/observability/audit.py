"""Structured audit logging for the relay.

This module provides the AuditLogger class that emits structured JSON
audit events describing the lifecycle of each relayed request.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from relay.observability.models import AuditEvent, AuditEventType

# Dedicated audit logger - separate from application logs
audit_logger = logging.getLogger("relay.audit")

MAX_PREVIEW_LENGTH = 100
MAX_ERROR_LENGTH = 200


class AuditLogger:
    """Structured audit logger for one relay operation.

    All audit events include:
    - event_type: The type of event
    - timestamp: ISO 8601 timestamp
    - request_id: Request correlation ID
    - Additional event-specific metadata

    Usage:
        audit = AuditLogger(request_id="req-123")
        audit.log_request_received(mode="metrics", prompt_preview="hello")
        audit.log_first_token(ttft_ms=120)
    """

    def __init__(self, request_id: str, enabled: bool = True) -> None:
        """Initialize the audit logger.

        Args:
            request_id: The request ID for correlation.
            enabled: Whether audit logging is enabled.
        """
        self._request_id = request_id
        self._enabled = enabled

    @property
    def request_id(self) -> str:
        return self._request_id

    def _emit(self, event: AuditEvent) -> None:
        """Emit an audit event to the logger.

        Args:
            event: The audit event to log.
        """
        if not self._enabled:
            return

        try:
            audit_logger.info(json.dumps(event.to_dict(), default=str))
        except Exception as e:
            # Audit logging failures must not affect the relayed stream
            logging.getLogger(__name__).warning("Failed to emit audit event: %s", e)

    def _create_event(
        self,
        event_type: AuditEventType,
        **metadata: Any,
    ) -> AuditEvent:
        """Create an audit event with common fields.

        Args:
            event_type: The type of audit event.
            **metadata: Event-specific metadata.

        Returns:
            The constructed AuditEvent.
        """
        return AuditEvent(
            event_type=event_type,
            timestamp=datetime.now(UTC),
            request_id=self._request_id,
            metadata=metadata,
        )

    def log_request_received(self, mode: str, prompt_preview: str | None = None) -> None:
        """Log that a relay request was received.

        Args:
            mode: The relay mode derived from the query flags.
            prompt_preview: Truncated preview of the prompt (max 100 chars).
        """
        metadata: dict[str, Any] = {"mode": mode}
        if prompt_preview:
            metadata["prompt_preview"] = prompt_preview[:MAX_PREVIEW_LENGTH]

        self._emit(self._create_event(AuditEventType.REQUEST_RECEIVED, **metadata))

    def log_upstream_rejected(self, status_code: int | None, error_message: str) -> None:
        """Log that the upstream call failed before streaming started.

        Args:
            status_code: Upstream HTTP status, if any.
            error_message: Error description (truncated to 200 chars).
        """
        metadata: dict[str, Any] = {
            "error_message": error_message[:MAX_ERROR_LENGTH] if error_message else "Unknown error",
        }
        if status_code is not None:
            metadata["status_code"] = status_code

        self._emit(self._create_event(AuditEventType.UPSTREAM_REJECTED, **metadata))

    def log_stream_started(self, upstream_status: int) -> None:
        """Log that the upstream accepted the call and streaming began."""
        self._emit(
            self._create_event(AuditEventType.STREAM_STARTED, upstream_status=upstream_status)
        )

    def log_first_token(self, ttft_ms: int | None) -> None:
        """Log the measured time to first token."""
        self._emit(self._create_event(AuditEventType.FIRST_TOKEN, ttft_ms=ttft_ms))

    def log_stream_completed(
        self,
        state: str,
        fragment_count: int,
        malformed_count: int,
        ttft_ms: int | None,
        total_ms: int | None,
    ) -> None:
        """Log the end of a successful relay operation.

        Args:
            state: Terminal state reached (draining or first-token termination).
            fragment_count: Non-empty fragments relayed.
            malformed_count: Events skipped because their payload was invalid.
            ttft_ms: Time to first token, if one arrived.
            total_ms: Total duration, if the stream was drained.
        """
        metadata: dict[str, Any] = {
            "state": state,
            "fragment_count": fragment_count,
            "malformed_count": malformed_count,
        }
        if ttft_ms is not None:
            metadata["ttft_ms"] = ttft_ms
        if total_ms is not None:
            metadata["total_ms"] = total_ms

        self._emit(self._create_event(AuditEventType.STREAM_COMPLETED, **metadata))

    def log_stream_failed(self, error_message: str, fragment_count: int) -> None:
        """Log that the pump failed mid-stream."""
        self._emit(
            self._create_event(
                AuditEventType.STREAM_FAILED,
                error_message=error_message[:MAX_ERROR_LENGTH] if error_message else "Unknown error",
                fragment_count=fragment_count,
            )
        )

    def log_probe_completed(self, target_url: str, probe_count: int, successful: int) -> None:
        """Log the outcome of a multi-location probe run."""
        self._emit(
            self._create_event(
                AuditEventType.PROBE_COMPLETED,
                target_url=target_url,
                probe_count=probe_count,
                successful=successful,
            )
        )


def configure_audit_logging(level: str = "INFO") -> None:
    """Configure the audit logger with JSON formatting.

    This sets up a dedicated handler for the audit logger that outputs
    structured JSON logs suitable for ingestion by log aggregation systems.

    Args:
        level: The logging level for audit events.
    """
    audit_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Only add handler if not already configured
    if not audit_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(getattr(logging, level.upper(), logging.INFO))

        # Simple format - the message is already JSON
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)

        audit_logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    audit_logger.propagate = False
