"""Observability module for the relay.

This module provides:
- AuditLogger: Structured JSON audit logging of relay and probe operations
"""

from relay.observability.audit import AuditLogger, configure_audit_logging
from relay.observability.models import AuditEvent, AuditEventType

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "configure_audit_logging",
]
