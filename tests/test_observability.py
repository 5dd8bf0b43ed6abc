"""Tests for the observability module."""

import json
import logging
from datetime import datetime
from unittest.mock import patch

from relay.observability import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
)
from relay.observability.audit import configure_audit_logging


def emitted(mock_info) -> dict:
    return json.loads(mock_info.call_args[0][0])


class TestAuditEvent:
    """Tests for AuditEvent dataclass."""

    def test_creation(self):
        """Test AuditEvent creation."""
        now = datetime.now()
        event = AuditEvent(
            event_type=AuditEventType.REQUEST_RECEIVED,
            timestamp=now,
            request_id="req-123",
            metadata={"mode": "metrics"},
        )

        assert event.event_type == AuditEventType.REQUEST_RECEIVED
        assert event.timestamp == now
        assert event.request_id == "req-123"
        assert event.metadata == {"mode": "metrics"}

    def test_to_dict(self):
        """Test AuditEvent serialization to dict."""
        now = datetime.now()
        event = AuditEvent(
            event_type=AuditEventType.FIRST_TOKEN,
            timestamp=now,
            request_id="req-123",
            metadata={"ttft_ms": 120},
        )

        result = event.to_dict()

        assert result["event_type"] == "first_token"
        assert result["timestamp"] == now.isoformat()
        assert result["request_id"] == "req-123"
        assert result["ttft_ms"] == 120


class TestAuditLogger:
    """Tests for AuditLogger class."""

    def test_creation(self):
        """Test AuditLogger initialization."""
        logger = AuditLogger(request_id="req-123", enabled=True)

        assert logger.request_id == "req-123"
        assert logger._enabled is True

    def test_disabled_logger_does_not_emit(self):
        """Test that disabled logger doesn't emit events."""
        logger = AuditLogger(request_id="req-123", enabled=False)

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_request_received(mode="normal")
            mock_info.assert_not_called()

    def test_log_request_received(self):
        """Test logging request received event."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_request_received(mode="metrics", prompt_preview="hello-world")

            mock_info.assert_called_once()
            data = emitted(mock_info)

        assert data["event_type"] == "request_received"
        assert data["request_id"] == "req-123"
        assert data["mode"] == "metrics"
        assert data["prompt_preview"] == "hello-world"

    def test_prompt_preview_truncated(self):
        """Test that long prompts are truncated to 100 characters."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_request_received(mode="normal", prompt_preview="P" * 300)
            data = emitted(mock_info)

        assert len(data["prompt_preview"]) == 100

    def test_log_upstream_rejected(self):
        """Test logging an upstream rejection."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_upstream_rejected(429, "LLM API Error: 429 - " + "x" * 500)
            data = emitted(mock_info)

        assert data["event_type"] == "upstream_rejected"
        assert data["status_code"] == 429
        assert len(data["error_message"]) == 200

    def test_log_upstream_rejected_without_status(self):
        """Test that transport failures are logged without a status code."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_upstream_rejected(None, "")
            data = emitted(mock_info)

        assert "status_code" not in data
        assert data["error_message"] == "Unknown error"

    def test_log_stream_completed(self):
        """Test logging a completed stream."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_stream_completed(
                state="draining",
                fragment_count=12,
                malformed_count=1,
                ttft_ms=150,
                total_ms=900,
            )
            data = emitted(mock_info)

        assert data["event_type"] == "stream_completed"
        assert data["state"] == "draining"
        assert data["fragment_count"] == 12
        assert data["malformed_count"] == 1
        assert data["ttft_ms"] == 150
        assert data["total_ms"] == 900

    def test_log_stream_completed_without_timings(self):
        """Test that missing timings are left out."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_stream_completed(
                state="first_token_terminated",
                fragment_count=0,
                malformed_count=0,
                ttft_ms=None,
                total_ms=None,
            )
            data = emitted(mock_info)

        assert "ttft_ms" not in data
        assert "total_ms" not in data

    def test_log_first_token(self):
        """Test logging the first token, with and without a measured TTFT."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_first_token(ttft_ms=150)
            assert emitted(mock_info)["ttft_ms"] == 150

            logger.log_first_token(ttft_ms=None)
            data = emitted(mock_info)

        assert data["event_type"] == "first_token"
        assert data["ttft_ms"] is None

    def test_log_probe_completed(self):
        """Test logging a probe run."""
        logger = AuditLogger(request_id="probe-1")

        with patch.object(logging.getLogger("relay.audit"), "info") as mock_info:
            logger.log_probe_completed(
                target_url="https://relay.example.com/hi", probe_count=30, successful=28
            )
            data = emitted(mock_info)

        assert data["event_type"] == "probe_completed"
        assert data["probe_count"] == 30
        assert data["successful"] == 28

    def test_emit_failure_is_not_raised(self):
        """Test that a failing audit sink does not break the caller."""
        logger = AuditLogger(request_id="req-123")

        with patch.object(
            logging.getLogger("relay.audit"), "info", side_effect=RuntimeError("sink down")
        ):
            logger.log_first_token(ttft_ms=10)


class TestConfigureAuditLogging:
    """Tests for audit logging configuration."""

    def test_configure_sets_level(self):
        """Test that configure_audit_logging sets the log level."""
        audit_log = logging.getLogger("relay.audit")

        # Clear existing handlers
        audit_log.handlers.clear()

        configure_audit_logging("DEBUG")

        assert audit_log.level == logging.DEBUG

    def test_configure_prevents_propagation(self):
        """Test that audit logger doesn't propagate to root."""
        audit_log = logging.getLogger("relay.audit")

        # Clear existing handlers
        audit_log.handlers.clear()

        configure_audit_logging("INFO")

        assert audit_log.propagate is False
        assert len(audit_log.handlers) == 1

    def test_configure_is_idempotent(self):
        """Test that repeated configuration adds a single handler."""
        audit_log = logging.getLogger("relay.audit")
        audit_log.handlers.clear()

        configure_audit_logging("INFO")
        configure_audit_logging("INFO")

        assert len(audit_log.handlers) == 1
