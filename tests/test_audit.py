"""Tests for the audit logger."""
import logging

from tripgate.audit.logger import AuditEvent, AuditLogger, get_audit_logger, reset_audit_logger


class TestAuditLogger:

    def test_log_access_buffers_event(self):
        audit = AuditLogger()

        audit.log_access("code.request", "participant:p-1", resource="participant:p-1")

        events = audit.get_recent_events()
        assert len(events) == 1
        assert events[0]["action"] == "code.request"
        assert events[0]["principal"] == "participant:p-1"
        assert events[0]["status"] == "success"
        assert events[0]["timestamp"]

    def test_log_denied_records_reason(self):
        audit = AuditLogger()

        audit.log_denied("access.denied", reason="not_a_member", principal_id="sub-x", resource="plan:1")

        event = audit.get_recent_events()[0]
        assert event["status"] == "denied"
        assert event["details"] == {"reason": "not_a_member"}

    def test_newest_first_and_filters(self):
        audit = AuditLogger()
        audit.log_access("code.request", "anonymous")
        audit.log_denied("code.verify", reason="invalid_code")
        audit.log(AuditEvent(action="guest.session.issue"))

        assert [e["action"] for e in audit.get_recent_events()] == [
            "guest.session.issue", "code.verify", "code.request",
        ]
        assert len(audit.get_recent_events(action_filter="code.")) == 2
        assert [e["action"] for e in audit.get_recent_events(status_filter="denied")] == ["code.verify"]
        assert len(audit.get_recent_events(limit=1)) == 1

    def test_disabled_logger_records_nothing(self):
        audit = AuditLogger(enabled=False)
        audit.log(AuditEvent(action="code.request"))

        assert audit.get_recent_events() == []

    def test_denied_events_logged_as_warnings(self, caplog):
        audit = AuditLogger()

        with caplog.at_level(logging.INFO, logger="audit"):
            audit.log_denied("code.verify", reason="invalid_code")
            audit.log_access("code.request", "anonymous")

        levels = [r.levelno for r in caplog.records if r.name == "audit"]
        assert levels == [logging.WARNING, logging.INFO]

    def test_buffer_is_bounded(self):
        audit = AuditLogger()
        for i in range(AuditLogger.MAX_BUFFER_SIZE + 5):
            audit.log(AuditEvent(action=f"a.{i}"))

        assert len(audit.get_recent_events(limit=10_000)) == AuditLogger.MAX_BUFFER_SIZE


class TestAuditSingleton:

    def test_singleton_and_reset(self):
        first = get_audit_logger()
        assert get_audit_logger() is first

        reset_audit_logger()
        assert get_audit_logger() is not first
