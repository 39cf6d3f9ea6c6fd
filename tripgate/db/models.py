"""SQLAlchemy ORM models for TripGate.

This module defines the database schema for:
- Plans and Items (read by the engine; owned by the planning service)
- Participants (people attached to a plan, with invite tokens)
- Profiles (local projection of identity-provider subjects)
- Verification Codes (one-time phone codes)
- Guest Sessions (short-lived proof of phone verification)

Timestamps are naive UTC.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class ParticipantRole:
    """Participant role values."""

    OWNER = "owner"
    PARTICIPANT = "participant"
    VIEWER = "viewer"


class Plan(Base):
    """A shared trip plan.

    created_by_user_id is the identity-provider subject of the owner.
    """

    __tablename__ = "plans"

    id = Column(String(36), primary_key=True)  # UUID
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    start_date = Column(String(10), nullable=True)  # ISO date
    end_date = Column(String(10), nullable=True)  # ISO date
    created_by_user_id = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    participants = relationship(
        "Participant",
        back_populates="plan",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    items = relationship(
        "Item",
        back_populates="plan",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Plan(id={self.id!r}, title={self.title!r})>"


class Participant(Base):
    """One person attached to a plan.

    invite_token is unique across the whole system and immutable once
    issued. user_id is set exactly once by the claim linker.
    """

    __tablename__ = "participants"
    __table_args__ = (
        # At most one owner per plan
        Index(
            "uq_participants_plan_owner",
            "plan_id",
            unique=True,
            sqlite_where=text("role = 'owner'"),
            postgresql_where=text("role = 'owner'"),
        ),
        Index("ix_participants_plan_user", "plan_id", "user_id"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    plan_id = Column(String(36), ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    contact_phone = Column(String(32), nullable=True)  # E.164
    contact_email = Column(String(255), nullable=True)
    role = Column(String(20), default=ParticipantRole.PARTICIPANT, nullable=False)
    user_id = Column(String(255), nullable=True, index=True)  # Profile.id (IdP subject)
    group_size = Column(Integer, nullable=True)
    dietary_notes = Column(Text, nullable=True)
    invite_token = Column(String(64), nullable=False, unique=True)
    onboarding_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    plan = relationship("Plan", back_populates="participants")

    def __repr__(self) -> str:
        return f"<Participant(id={self.id!r}, plan_id={self.plan_id!r}, role={self.role!r})>"


class Item(Base):
    """Something to bring or do for a plan, optionally assigned to a participant."""

    __tablename__ = "items"

    id = Column(String(36), primary_key=True)  # UUID
    plan_id = Column(String(36), ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default="open", nullable=False)  # open | claimed | done
    assigned_participant_id = Column(
        String(36), ForeignKey("participants.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    plan = relationship("Plan", back_populates="items")

    def __repr__(self) -> str:
        return f"<Item(id={self.id!r}, plan_id={self.plan_id!r}, name={self.name!r})>"


class Profile(Base):
    """Registered identity: local projection of an identity-provider subject.

    The primary key is the provider's subject claim and is never generated
    locally. Created lazily on the first request with a valid credential.
    """

    __tablename__ = "profiles"

    id = Column(String(255), primary_key=True)  # IdP subject
    email = Column(String(255), nullable=True, unique=True)  # Lowercase
    display_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id!r}, email={self.email!r})>"


class VerificationCode(Base):
    """One-time phone verification code.

    At most one active (non-expired, non-exhausted) row per participant;
    issuing a new code deletes the participant's previous rows.
    """

    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    participant_id = Column(
        String(36), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<VerificationCode(participant_id={self.participant_id!r}, attempts={self.attempts})>"


class GuestSession(Base):
    """Proof that a guest verified phone ownership recently.

    Never updated in place; no sliding expiry.
    """

    __tablename__ = "guest_sessions"

    token = Column(String(64), primary_key=True)
    participant_id = Column(
        String(36), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_id = Column(String(36), ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<GuestSession(token={self.token[:8]!r}..., participant_id={self.participant_id!r})>"
