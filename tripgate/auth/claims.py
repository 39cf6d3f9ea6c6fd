"""Claim linking: bind a registered identity to a participant, exactly once.

All checks run against the participant row locked with SELECT ... FOR UPDATE,
and the write itself is a compare-and-set (UPDATE ... WHERE user_id IS NULL),
so two concurrent claims on one invite token cannot both pass the
"not yet linked" check, even on backends that ignore row locks.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tripgate.auth.lookup import get_linked_participant, get_participant_by_invite
from tripgate.db.models import Participant
from tripgate.exceptions import AlreadyLinkedToOther, AlreadyParticipantInPlan

log = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    """Outcome of a claim.

    Attributes:
        participant: The full, unfiltered participant record (the caller is
            that participant)
        newly_linked: False when the claim was an idempotent repeat
    """

    participant: Participant
    newly_linked: bool


class ClaimLinker:
    """Links registered identities to participant records."""

    def __init__(self, db: Session):
        """Initialize linker with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def claim(self, invite_token: str, subject_id: str) -> ClaimResult:
        """Link subject_id to the participant owning invite_token.

        Args:
            invite_token: The participant's invite token
            subject_id: Identity-provider subject of the caller

        Returns:
            ClaimResult with the participant record

        Raises:
            NotFound: Unknown invite token
            AlreadyLinkedToOther: Participant is linked to another subject
            AlreadyParticipantInPlan: Subject already holds another seat in the plan
        """
        participant = get_participant_by_invite(self.db, invite_token, for_update=True)

        if participant.user_id is not None and participant.user_id != subject_id:
            self.db.rollback()
            log.warning(f"Claim on participant {participant.id} rejected: linked to another subject")
            raise AlreadyLinkedToOther()

        other_seat = self.db.execute(
            select(Participant.id).where(
                Participant.plan_id == participant.plan_id,
                Participant.user_id == subject_id,
                Participant.id != participant.id,
            )
        ).first()
        if other_seat is not None:
            self.db.rollback()
            log.warning(
                f"Claim on participant {participant.id} rejected: "
                f"subject already holds participant {other_seat[0]}"
            )
            raise AlreadyParticipantInPlan()

        if participant.user_id == subject_id:
            # Idempotent repeat; release the row lock
            self.db.commit()
            log.debug(f"Participant {participant.id} already linked to caller")
            return ClaimResult(participant=participant, newly_linked=False)

        result = self.db.execute(
            update(Participant)
            .where(Participant.id == participant.id, Participant.user_id.is_(None))
            .values(user_id=subject_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            self.db.refresh(participant)
            if participant.user_id == subject_id:
                return ClaimResult(participant=participant, newly_linked=False)
            log.warning(f"Claim on participant {participant.id} lost a race")
            raise AlreadyLinkedToOther()

        self.db.commit()
        self.db.refresh(participant)

        log.info(f"Participant {participant.id} linked to registered identity")
        return ClaimResult(participant=participant, newly_linked=True)

    def linked_participant(self, plan_id: str, subject_id: str) -> Participant | None:
        """Get the participant of a plan linked to subject_id, if any."""
        return get_linked_participant(self.db, plan_id, subject_id)
