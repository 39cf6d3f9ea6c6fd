"""One-time verification codes for guest phone verification.

Flow:
1. request_code(invite_token) - store a fresh 6-digit code, hand back the
   SMS to deliver (the code itself never goes back to the HTTP caller)
2. verify_code(invite_token, code) - check the code; on success consume it
   and issue a guest session

Security measures:
- At most one active code per participant (new request replaces old)
- 10-minute expiry, checked at read time
- 5 attempts per code; an exhausted code stays dead until replaced
- 3 code requests per invite token per rolling hour
- Verification serializes on the participant row (SELECT ... FOR UPDATE),
  and the increment/consume writes are conditional SQL so concurrent
  verifiers cannot both succeed or lose an attempt
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import NoReturn

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from tripgate.auth.guest_session import GuestSessionStore, IssuedSession
from tripgate.auth.lookup import get_participant_by_invite
from tripgate.auth.rate_limit import RateLimiter, get_code_request_limiter
from tripgate.clock import Clock, get_clock
from tripgate.db.models import Participant, VerificationCode
from tripgate.exceptions import (
    InvalidCode,
    NoContactPhone,
    NotFound,
    TooManyAttempts,
    TooManyRequests,
)
from tripgate.logging_config import mask_phone
from tripgate.messaging import OutboundMessage

log = logging.getLogger(__name__)

NO_ACTIVE_CODE = "No active verification code. Request a new code."


def generate_code(length: int = 6) -> str:
    """Generate a uniformly random numeric code, leading zeros preserved."""
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def codes_match(expected: str, submitted: str | None) -> bool:
    """Constant-time comparison of a stored code and a submitted one."""
    if submitted is None:
        return False
    return hmac.compare_digest(expected.encode(), submitted.strip().encode())


@dataclass
class CodeRequestResult:
    """Outcome of a code request.

    message holds the code and must only be handed to the messaging gateway.
    """

    participant_id: str
    expires_in_seconds: int
    message: OutboundMessage


class CodeIssuer:
    """Issues and verifies one-time codes tied to participants."""

    def __init__(
        self,
        db: Session,
        clock: Clock | None = None,
        request_limiter: RateLimiter | None = None,
        session_store: GuestSessionStore | None = None,
        ttl_seconds: int | None = None,
        max_attempts: int | None = None,
    ):
        """Initialize the issuer.

        Args:
            db: SQLAlchemy session
            clock: Time source (defaults to the global clock)
            request_limiter: Per-token code request limiter
            session_store: Store used to issue the guest session on success
            ttl_seconds: Code lifetime (defaults to config)
            max_attempts: Attempts allowed per code (defaults to config)
        """
        from tripgate.config import CODE_LENGTH, CODE_MAX_ATTEMPTS, CODE_TTL_SECONDS

        self.db = db
        self.clock = clock or get_clock()
        self.request_limiter = request_limiter or get_code_request_limiter()
        self.session_store = session_store or GuestSessionStore(db, clock=self.clock)
        self.ttl_seconds = CODE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.max_attempts = CODE_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.code_length = CODE_LENGTH

    async def request_code(self, invite_token: str) -> CodeRequestResult:
        """Issue a new code for the participant owning invite_token.

        Any previous code for the participant is deleted first.

        Raises:
            TooManyRequests: Token exceeded its hourly request budget
            NotFound: Unknown invite token
            NoContactPhone: Participant has no phone number on file
        """
        limiter_key = f"code-request:{invite_token}"
        if not await self.request_limiter.hit(limiter_key):
            retry_after = await self.request_limiter.retry_after(limiter_key)
            raise TooManyRequests(retry_after=retry_after)

        participant = get_participant_by_invite(self.db, invite_token, for_update=True)
        if not participant.contact_phone:
            self.db.rollback()
            raise NoContactPhone()

        self.db.execute(
            delete(VerificationCode).where(VerificationCode.participant_id == participant.id)
        )

        code = generate_code(self.code_length)
        now = self.clock.now()
        self.db.add(VerificationCode(
            participant_id=participant.id,
            code=code,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
            attempts=0,
            created_at=now,
        ))
        self.db.commit()

        log.info(
            f"Issued verification code for participant {participant.id} "
            f"(deliver to {mask_phone(participant.contact_phone)})"
        )

        minutes = max(1, self.ttl_seconds // 60)
        message = OutboundMessage(
            to=participant.contact_phone,
            body=f"Your TripGate verification code is {code}. It expires in {minutes} minutes.",
            participant_id=participant.id,
        )
        return CodeRequestResult(
            participant_id=participant.id,
            expires_in_seconds=self.ttl_seconds,
            message=message,
        )

    def active_code(self, participant_id: str) -> VerificationCode | None:
        """Get the participant's active code, if any.

        Expired and exhausted rows count as absent even before they are purged.
        """
        row = self._latest_code(participant_id)
        if row is None:
            return None
        if self.clock.now() >= row.expires_at or row.attempts >= self.max_attempts:
            return None
        return row

    def verify_code(self, invite_token: str, submitted_code: str | None) -> IssuedSession:
        """Verify a submitted code and issue a guest session.

        Raises:
            NotFound: Unknown invite token, or no active (unexpired) code
            TooManyAttempts: Code exhausted; a new code must be requested
            InvalidCode: Wrong code, attempts remain
        """
        participant = get_participant_by_invite(self.db, invite_token, for_update=True)

        row = self._latest_code(participant.id)
        if row is None or self.clock.now() >= row.expires_at:
            self.db.rollback()
            raise NotFound(NO_ACTIVE_CODE)

        if row.attempts >= self.max_attempts:
            self.db.rollback()
            raise TooManyAttempts()

        code_id = row.id
        if not codes_match(row.code, submitted_code):
            return self._record_failure(participant, code_id)

        # Single use: only one concurrent verifier can delete the row
        result = self.db.execute(
            delete(VerificationCode).where(
                VerificationCode.id == code_id,
                VerificationCode.attempts < self.max_attempts,
            )
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise NotFound(NO_ACTIVE_CODE)

        session = self.session_store.issue(participant.id, participant.plan_id)
        self.db.commit()

        log.info(f"Participant {participant.id} verified phone; guest session issued")
        return session

    def purge_expired(self) -> int:
        """Delete expired and exhausted codes.

        Returns:
            Number of codes removed
        """
        now = self.clock.now()
        result = self.db.execute(
            delete(VerificationCode).where(
                (VerificationCode.expires_at <= now)
                | (VerificationCode.attempts >= self.max_attempts)
            )
        )
        self.db.commit()

        count = result.rowcount or 0
        if count > 0:
            log.info(f"Cleaned up {count} expired verification codes")
        return count

    def revoke_for_plan(self, plan_id: str) -> int:
        """Delete all codes of a plan's participants. Caller commits."""
        participant_ids = select(Participant.id).where(Participant.plan_id == plan_id)
        result = self.db.execute(
            delete(VerificationCode).where(VerificationCode.participant_id.in_(participant_ids))
        )
        return result.rowcount or 0

    def _latest_code(self, participant_id: str) -> VerificationCode | None:
        return self.db.execute(
            select(VerificationCode)
            .where(VerificationCode.participant_id == participant_id)
            .order_by(VerificationCode.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _record_failure(self, participant: Participant, code_id: int) -> NoReturn:
        participant_id = participant.id

        # Increment in SQL so concurrent failures are all counted
        self.db.execute(
            update(VerificationCode)
            .where(VerificationCode.id == code_id)
            .values(attempts=VerificationCode.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        attempts = self.db.execute(
            select(VerificationCode.attempts).where(VerificationCode.id == code_id)
        ).scalar_one_or_none()
        if attempts is None:
            raise NotFound(NO_ACTIVE_CODE)

        remaining = self.max_attempts - attempts
        log.info(f"Invalid code for participant {participant_id}: {max(remaining, 0)} attempts remaining")

        if remaining <= 0:
            raise TooManyAttempts()
        raise InvalidCode(attempts_remaining=remaining)
