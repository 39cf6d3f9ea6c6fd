"""Database module for TripGate.

This module provides SQLAlchemy ORM models and session management for
plans, participants, profiles, verification codes and guest sessions.
"""

from tripgate.db.models import (
    Base,
    GuestSession,
    Item,
    Participant,
    ParticipantRole,
    Plan,
    Profile,
    VerificationCode,
)
from tripgate.db.session import get_db, get_db_session, engine, SessionLocal

__all__ = [
    "Base",
    "GuestSession",
    "Item",
    "Participant",
    "ParticipantRole",
    "Plan",
    "Profile",
    "VerificationCode",
    "get_db",
    "get_db_session",
    "engine",
    "SessionLocal",
]
