"""Audit logging for security-relevant operations.

Records code issuance and verification, guest session lifecycle, claims,
and every access decision (granted or denied).

Never pass codes, full tokens or phone numbers in event details.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import Request

log = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured audit event."""

    action: str  # e.g., "code.verify", "participant.claim"
    principal: str = "anonymous"  # subject id, "participant:<id>" or "anonymous"
    resource: str | None = None  # e.g., "plan:<id>", "participant:<id>"
    status: str = "success"  # "success", "denied", "error"
    details: dict[str, Any] | None = None
    request_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Audit logger for security operations.

    Logs events as structured records via Python's logging module and keeps
    an in-memory ring buffer of recent events.
    """

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        """Initialize the audit logger.

        Args:
            enabled: Whether audit logging is enabled
        """
        self.enabled = enabled
        self._buffer: deque[dict] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def log(self, event: AuditEvent) -> None:
        """Write an audit event to the log and the recent-events buffer."""
        if not self.enabled:
            return

        self._buffer.append(asdict(event))

        extra = {
            "type": "audit",
            "principal": event.principal,
            "action": event.action,
            "status": event.status,
        }

        if event.resource:
            extra["resource"] = event.resource

        if event.request_id:
            extra["request_id"] = event.request_id

        if event.details:
            extra["details"] = event.details

        if event.status in ("denied", "error"):
            log.warning(f"audit: {event.action} {event.status}", extra=extra)
        else:
            log.info(f"audit: {event.action} {event.status}", extra=extra)

    def get_recent_events(
        self,
        limit: int = 100,
        action_filter: str | None = None,
        status_filter: str | None = None,
    ) -> list[dict]:
        """Get recent audit events from buffer.

        Args:
            limit: Max events to return
            action_filter: Filter by action prefix (e.g., "code.")
            status_filter: Filter by status (e.g., "denied")

        Returns:
            List of audit event dicts, newest first
        """
        events = list(self._buffer)
        events.reverse()

        if action_filter:
            events = [e for e in events if e["action"].startswith(action_filter)]
        if status_filter:
            events = [e for e in events if e["status"] == status_filter]

        return events[:limit]

    def log_access(
        self,
        action: str,
        principal_id: str,
        resource: str | None = None,
        status: str = "success",
        details: dict[str, Any] | None = None,
        request: Request | None = None,
    ) -> None:
        """Log a resource access event.

        Args:
            action: Action name (e.g., "code.request", "access.resolve")
            principal_id: Subject id, participant reference or "anonymous"
            resource: Resource identifier ("plan:<id>", "participant:<id>")
            status: "success", "denied", or "error"
            details: Additional context
            request: Optional request for correlation ID
        """
        self.log(
            AuditEvent(
                action=action,
                principal=principal_id,
                resource=resource,
                status=status,
                details=details,
                request_id=_get_request_id(request),
            )
        )

    def log_denied(
        self,
        action: str,
        reason: str,
        principal_id: str = "anonymous",
        resource: str | None = None,
        request: Request | None = None,
    ) -> None:
        """Log a denied operation with its machine-readable reason."""
        self.log_access(
            action=action,
            principal_id=principal_id,
            resource=resource,
            status="denied",
            details={"reason": reason},
            request=request,
        )


def _get_request_id(request: Request | None) -> str | None:
    """Extract request ID from request headers if available."""
    if request is None:
        return None

    for header in ("X-Request-ID", "X-Correlation-ID", "Request-Id"):
        if header in request.headers:
            return request.headers[header]

    return None


_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        from tripgate.config import AUDIT_ENABLED

        _audit_logger = AuditLogger(enabled=AUDIT_ENABLED)

    return _audit_logger


def reset_audit_logger() -> None:
    """Reset the global logger (for testing)."""
    global _audit_logger
    _audit_logger = None
