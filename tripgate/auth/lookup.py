"""Participant and plan lookups shared by the verification and claim flows."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from tripgate.db.models import Participant, ParticipantRole, Plan
from tripgate.exceptions import NotFound


def get_participant_by_invite(
    db: Session,
    invite_token: str | None,
    for_update: bool = False,
) -> Participant:
    """Resolve the participant owning an invite token.

    Args:
        db: Database session
        invite_token: The opaque invite token
        for_update: Row-lock the participant for a check-then-write

    Raises:
        NotFound: Unknown or empty token
    """
    if not invite_token:
        raise NotFound()

    stmt = select(Participant).where(Participant.invite_token == invite_token)
    if for_update:
        stmt = stmt.with_for_update()

    participant = db.execute(stmt).scalar_one_or_none()
    if participant is None:
        raise NotFound()
    return participant


def get_plan(db: Session, plan_id: str) -> Plan:
    """Get a plan by id.

    Raises:
        NotFound: Unknown plan
    """
    plan = db.get(Plan, plan_id)
    if plan is None:
        raise NotFound()
    return plan


def get_linked_participant(db: Session, plan_id: str, subject_id: str) -> Participant | None:
    """Get the participant in a plan linked to a registered identity."""
    return db.execute(
        select(Participant).where(
            Participant.plan_id == plan_id,
            Participant.user_id == subject_id,
        )
    ).scalars().first()


def get_owner_participant(db: Session, plan_id: str) -> Participant | None:
    """Get the participant holding the owner role in a plan."""
    return db.execute(
        select(Participant).where(
            Participant.plan_id == plan_id,
            Participant.role == ParticipantRole.OWNER,
        )
    ).scalar_one_or_none()
