"""Accessor classes and authorization decisions.

The accessor class is a closed set: every request is classified as exactly
one of these by the resolver, and everything downstream branches on it.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from tripgate.db.models import Item
from tripgate.exceptions import Forbidden

log = logging.getLogger(__name__)


class AccessorClass(str, Enum):
    """Caller categories, from most to least privileged."""

    OWNER = "owner"
    PARTICIPANT = "participant"
    GUEST = "guest"
    INVITE = "invite"
    ANONYMOUS = "anonymous"


class AuthMethod(str, Enum):
    """Which identity proof produced a decision."""

    BEARER = "bearer"
    LEGACY_KEY = "legacy_key"
    GUEST_SESSION = "guest_session"
    INVITE_TOKEN = "invite_token"


@dataclass(frozen=True)
class AccessDecision:
    """Result of resolving a request against a plan.

    Attributes:
        accessor: The caller's accessor class
        method: The identity proof that matched
        plan_id: Plan the decision is scoped to (None for identity-only routes)
        subject_id: Registered identity subject (bearer only)
        participant_id: Caller's own participant record, if any
    """

    accessor: AccessorClass
    method: AuthMethod
    plan_id: str | None = None
    subject_id: str | None = None
    participant_id: str | None = None

    @property
    def principal_id(self) -> str:
        """Identifier used in audit events."""
        if self.subject_id:
            return self.subject_id
        if self.method == AuthMethod.LEGACY_KEY:
            return "legacy-key"
        if self.participant_id:
            return f"participant:{self.participant_id}"
        return "anonymous"

    @property
    def can_read_full(self) -> bool:
        return self.accessor in (AccessorClass.OWNER, AccessorClass.PARTICIPANT)

    @property
    def can_read_participants(self) -> bool:
        return self.accessor in (
            AccessorClass.OWNER,
            AccessorClass.PARTICIPANT,
            AccessorClass.GUEST,
        )

    @property
    def can_manage_participants(self) -> bool:
        return self.accessor == AccessorClass.OWNER

    def can_edit_participant(self, participant_id: str) -> bool:
        """Owners edit anyone; linked participants edit only themselves."""
        if self.accessor == AccessorClass.OWNER:
            return True
        return (
            self.accessor == AccessorClass.PARTICIPANT
            and self.participant_id is not None
            and self.participant_id == participant_id
        )

    def can_edit_item(self, item: Item) -> bool:
        """Owners edit any item; linked participants only items assigned to them."""
        if self.accessor == AccessorClass.OWNER:
            return True
        return (
            self.accessor == AccessorClass.PARTICIPANT
            and self.participant_id is not None
            and item.assigned_participant_id == self.participant_id
        )

    def require(self, allowed: bool, action: str) -> None:
        """Raise Forbidden unless allowed."""
        if not allowed:
            log.info(f"{self.accessor.value} caller denied {action}")
            raise Forbidden()
