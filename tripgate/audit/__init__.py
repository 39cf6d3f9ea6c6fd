"""Audit logging module for TripGate."""

from tripgate.audit.logger import AuditLogger, AuditEvent, get_audit_logger

__all__ = [
    "AuditLogger",
    "AuditEvent",
    "get_audit_logger",
]
