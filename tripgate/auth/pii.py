"""PII filtering for participant and plan payloads.

Pure functions: project records to the fields an accessor class may see.
This is the last step before serialization, so personal data cannot leak
through a response body whichever layer builds it.
"""

from typing import Any, Iterable

from tripgate.auth.access import AccessorClass
from tripgate.db.models import Item, Participant, Plan
from tripgate.exceptions import Unauthorized

# Owner / linked participant
FULL_PARTICIPANT_FIELDS: tuple[str, ...] = (
    "id",
    "plan_id",
    "display_name",
    "first_name",
    "last_name",
    "contact_phone",
    "contact_email",
    "role",
    "user_id",
    "group_size",
    "dietary_notes",
    "onboarding_completed",
)

# Invite tokens are credentials: only the owner hands them out
OWNER_ONLY_PARTICIPANT_FIELDS: tuple[str, ...] = ("invite_token",)

GUEST_PARTICIPANT_FIELDS: tuple[str, ...] = ("id", "display_name", "role")

# A guest looking at their own record: onboarding answers, no contact details
GUEST_SELF_FIELDS: tuple[str, ...] = GUEST_PARTICIPANT_FIELDS + (
    "group_size",
    "dietary_notes",
    "onboarding_completed",
)

PII_FIELDS: frozenset[str] = frozenset({
    "first_name",
    "last_name",
    "contact_phone",
    "contact_email",
})

FULL_PLAN_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "description",
    "location",
    "start_date",
    "end_date",
    "created_by_user_id",
)

GUEST_PLAN_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "description",
    "location",
    "start_date",
    "end_date",
)

FULL_ITEM_FIELDS: tuple[str, ...] = (
    "id",
    "name",
    "quantity",
    "notes",
    "status",
    "assigned_participant_id",
)

GUEST_ITEM_FIELDS: tuple[str, ...] = (
    "id",
    "name",
    "quantity",
    "status",
    "assigned_participant_id",
)


def _project(record: Any, fields: Iterable[str]) -> dict[str, Any]:
    return {name: getattr(record, name) for name in fields}


def _check_accessor(accessor: AccessorClass) -> None:
    # Anonymous callers are rejected upstream; reaching here is a bug
    if accessor == AccessorClass.ANONYMOUS:
        raise Unauthorized()


def participant_fields(accessor: AccessorClass) -> tuple[str, ...]:
    """Participant fields visible to an accessor class."""
    _check_accessor(accessor)

    if accessor == AccessorClass.OWNER:
        return FULL_PARTICIPANT_FIELDS + OWNER_ONLY_PARTICIPANT_FIELDS
    if accessor == AccessorClass.PARTICIPANT:
        return FULL_PARTICIPANT_FIELDS
    if accessor == AccessorClass.GUEST:
        return GUEST_PARTICIPANT_FIELDS
    return ()


def filter_participant(participant: Participant, accessor: AccessorClass) -> dict[str, Any] | None:
    """Project one participant for an accessor class.

    Returns:
        The visible fields, or None if the class may not see participants
    """
    fields = participant_fields(accessor)
    if not fields:
        return None
    return _project(participant, fields)


def filter_participants(
    participants: Iterable[Participant],
    accessor: AccessorClass,
) -> list[dict[str, Any]]:
    """Project a participant list; empty for classes that see no participants."""
    fields = participant_fields(accessor)
    if not fields:
        return []
    return [_project(p, fields) for p in participants]


def filter_guest_self(participant: Participant) -> dict[str, Any]:
    """Project a guest's own record.

    A guest session proves phone possession only, so even the caller's own
    contact details and names stay out of the response.
    """
    return _project(participant, GUEST_SELF_FIELDS)


def filter_items(items: Iterable[Item], accessor: AccessorClass) -> list[dict[str, Any]]:
    """Project plan items for an accessor class."""
    _check_accessor(accessor)

    if accessor in (AccessorClass.OWNER, AccessorClass.PARTICIPANT):
        return [_project(i, FULL_ITEM_FIELDS) for i in items]
    if accessor == AccessorClass.GUEST:
        return [_project(i, GUEST_ITEM_FIELDS) for i in items]
    return []


def filter_plan(
    plan: Plan,
    accessor: AccessorClass,
    participants: Iterable[Participant] = (),
    items: Iterable[Item] = (),
    owner_display_name: str | None = None,
) -> dict[str, Any]:
    """Project a plan with its items and participants for an accessor class.

    Invite-token holders get the landing view only: plan title and owner
    display name, no participant list.
    """
    _check_accessor(accessor)

    if accessor == AccessorClass.INVITE:
        return {
            "id": plan.id,
            "title": plan.title,
            "owner_display_name": owner_display_name,
        }

    fields = FULL_PLAN_FIELDS if accessor != AccessorClass.GUEST else GUEST_PLAN_FIELDS
    payload = _project(plan, fields)
    payload["items"] = filter_items(items, accessor)
    payload["participants"] = filter_participants(participants, accessor)
    return payload
