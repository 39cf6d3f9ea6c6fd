"""Guest session management for TripGate.

A guest session proves that the holder verified ownership of a participant's
phone number recently. Sessions are stored server-side; the client holds an
opaque token sent in the X-Guest-Session header.

Sessions are never renewed by use: re-verification is required once the
30-minute lifetime has passed, regardless of activity.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session as DBSession

from tripgate.clock import Clock, get_clock
from tripgate.db.models import GuestSession, Participant, Plan
from tripgate.exceptions import NotFound, Unauthorized
from tripgate.logging_config import short_token

log = logging.getLogger(__name__)


@dataclass
class IssuedSession:
    """Result of issuing a guest session.

    Attributes:
        token: Opaque session token (only ever returned here)
        participant_id: Participant the session is bound to
        plan_id: Plan the session is scoped to
        expires_at: Expiry (naive UTC)
        onboarding_completed: Participant's current onboarding flag
    """

    token: str
    participant_id: str
    plan_id: str
    expires_at: datetime
    onboarding_completed: bool


@dataclass(frozen=True)
class SessionBinding:
    """What a valid guest session token is bound to."""

    participant_id: str
    plan_id: str
    expires_at: datetime


class GuestSessionStore:
    """Issues, validates and expires guest session tokens.

    Operates on a caller-provided database session. issue() only flushes;
    the caller commits it together with the rest of its transaction.
    """

    def __init__(
        self,
        db: DBSession,
        clock: Clock | None = None,
        ttl_seconds: int | None = None,
    ):
        """Initialize store with database session.

        Args:
            db: SQLAlchemy session
            clock: Time source (defaults to the global clock)
            ttl_seconds: Session lifetime (defaults to config)
        """
        if ttl_seconds is None:
            from tripgate.config import GUEST_SESSION_TTL_SECONDS

            ttl_seconds = GUEST_SESSION_TTL_SECONDS

        self.db = db
        self.clock = clock or get_clock()
        self.ttl_seconds = ttl_seconds

    def issue(self, participant_id: str, plan_id: str) -> IssuedSession:
        """Create a new session for a participant of a plan.

        Args:
            participant_id: The verified participant
            plan_id: The plan the session is scoped to

        Returns:
            IssuedSession with the token and onboarding flag

        Raises:
            NotFound: If the participant does not belong to the plan
        """
        participant = self.db.get(Participant, participant_id)
        if participant is None or participant.plan_id != plan_id:
            raise NotFound()

        # 32 bytes = 256 bits of entropy
        token = secrets.token_urlsafe(32)
        now = self.clock.now()
        expires_at = now + timedelta(seconds=self.ttl_seconds)

        self.db.add(GuestSession(
            token=token,
            participant_id=participant_id,
            plan_id=plan_id,
            expires_at=expires_at,
            created_at=now,
        ))
        self.db.flush()

        log.debug(f"Issued guest session {short_token(token)} for participant {participant_id}")

        return IssuedSession(
            token=token,
            participant_id=participant_id,
            plan_id=plan_id,
            expires_at=expires_at,
            onboarding_completed=bool(participant.onboarding_completed),
        )

    def validate(self, token: str | None) -> SessionBinding:
        """Validate a session token.

        Args:
            token: Token from the X-Guest-Session header

        Returns:
            The participant/plan binding

        Raises:
            Unauthorized: No such session, or it has expired
            NotFound: Session is live but its plan or participant is gone
        """
        if not token:
            raise Unauthorized("Guest session required")

        row = self.db.get(GuestSession, token)
        if row is None:
            raise Unauthorized("Guest session invalid or expired")

        # Invalid at exactly expires_at
        if self.clock.now() >= row.expires_at:
            log.debug(f"Guest session {short_token(token)} expired")
            raise Unauthorized("Guest session invalid or expired")

        participant = self.db.get(Participant, row.participant_id)
        if (
            participant is None
            or participant.plan_id != row.plan_id
            or self.db.get(Plan, row.plan_id) is None
        ):
            log.info(f"Guest session {short_token(token)} refers to a removed plan or participant")
            raise NotFound()

        return SessionBinding(
            participant_id=row.participant_id,
            plan_id=row.plan_id,
            expires_at=row.expires_at,
        )

    def revoke(self, token: str) -> bool:
        """Delete a session (explicit logout).

        Returns:
            True if session was found and deleted
        """
        result = self.db.execute(delete(GuestSession).where(GuestSession.token == token))
        self.db.commit()
        if result.rowcount:
            log.debug(f"Revoked guest session {short_token(token)}")
            return True
        return False

    def revoke_expired(self) -> int:
        """Remove all expired sessions.

        Idempotent; never removes a session that is still valid.

        Returns:
            Number of sessions removed
        """
        now = self.clock.now()
        result = self.db.execute(delete(GuestSession).where(GuestSession.expires_at <= now))
        self.db.commit()

        count = result.rowcount or 0
        if count > 0:
            log.info(f"Cleaned up {count} expired guest sessions")
        return count

    def revoke_for_participant(self, participant_id: str) -> int:
        """Delete all sessions bound to a participant. Caller commits."""
        result = self.db.execute(
            delete(GuestSession).where(GuestSession.participant_id == participant_id)
        )
        return result.rowcount or 0

    def revoke_for_plan(self, plan_id: str) -> int:
        """Delete all sessions scoped to a plan. Caller commits."""
        result = self.db.execute(delete(GuestSession).where(GuestSession.plan_id == plan_id))
        count = result.rowcount or 0
        if count:
            log.info(f"Removed {count} guest sessions for plan {plan_id}")
        return count
