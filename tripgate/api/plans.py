"""Plan endpoints, authorized per request by the AuthorizationResolver.

Every response body goes through the PII filter for the caller's accessor
class. A caller bound to another plan gets the same 404 as an unknown plan.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from tripgate.api.deps import get_request_credentials, get_resolver
from tripgate.api.models import (
    DeletePlanResponse,
    ErrorResponse,
    ItemResponse,
    ParticipantListResponse,
    ParticipantResponse,
    PlanResponse,
    UpdateItemRequest,
    UpdateParticipantRequest,
)
from tripgate.audit import get_audit_logger
from tripgate.auth.access import AccessorClass
from tripgate.auth.codes import CodeIssuer
from tripgate.auth.guest_session import GuestSessionStore
from tripgate.auth.lookup import get_owner_participant, get_plan
from tripgate.auth.pii import filter_items, filter_participant, filter_participants, filter_plan
from tripgate.auth.resolver import AuthorizationResolver, RequestCredentials
from tripgate.db.models import Item, Participant
from tripgate.db.session import get_db
from tripgate.exceptions import NotFound

log = logging.getLogger(__name__)
router = APIRouter(prefix="/plans", tags=["plans"])

ACCESS_ERRORS = {
    401: {"model": ErrorResponse, "description": "No usable credential"},
    403: {"model": ErrorResponse, "description": "Access denied"},
    404: {"model": ErrorResponse, "description": "Plan or record not found"},
}


def _plan_participants(db: Session, plan_id: str) -> list[Participant]:
    return list(db.execute(
        select(Participant).where(Participant.plan_id == plan_id).order_by(Participant.created_at)
    ).scalars().all())


def _plan_items(db: Session, plan_id: str) -> list[Item]:
    return list(db.execute(
        select(Item).where(Item.plan_id == plan_id).order_by(Item.created_at)
    ).scalars().all())


@router.get(
    "/{plan_id}",
    response_model=PlanResponse,
    response_model_exclude_unset=True,
    responses=ACCESS_ERRORS,
)
async def get_plan_view(
    plan_id: str,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> PlanResponse:
    """Plan projection for the caller's accessor class.

    Owners and linked participants get the full view, guests the filtered
    view, invite-token holders the landing view.
    """
    decision = resolver.resolve(plan_id, credentials)
    plan = get_plan(db, plan_id)

    if decision.accessor == AccessorClass.INVITE:
        owner = get_owner_participant(db, plan_id)
        payload = filter_plan(
            plan,
            decision.accessor,
            owner_display_name=owner.display_name if owner is not None else None,
        )
    else:
        payload = filter_plan(
            plan,
            decision.accessor,
            participants=_plan_participants(db, plan_id),
            items=_plan_items(db, plan_id),
        )
    return PlanResponse(**payload)


@router.get(
    "/{plan_id}/participants",
    response_model=ParticipantListResponse,
    response_model_exclude_unset=True,
    responses=ACCESS_ERRORS,
)
async def list_participants(
    plan_id: str,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> ParticipantListResponse:
    """Participants of a plan, PII-filtered. Invite-token holders are refused."""
    decision = resolver.resolve(plan_id, credentials)
    decision.require(decision.can_read_participants, "list participants")

    participants = filter_participants(_plan_participants(db, plan_id), decision.accessor)
    return ParticipantListResponse(
        count=len(participants),
        participants=[ParticipantResponse(**p) for p in participants],
    )


@router.patch(
    "/{plan_id}/participants/{participant_id}",
    response_model=ParticipantResponse,
    response_model_exclude_unset=True,
    responses=ACCESS_ERRORS,
)
async def update_participant(
    plan_id: str,
    participant_id: str,
    body: UpdateParticipantRequest,
    request: Request,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> ParticipantResponse:
    """Update a participant's profile fields.

    **Authorization:** plan owner, or the linked participant for their own record.
    """
    decision = resolver.resolve(plan_id, credentials)

    participant = db.get(Participant, participant_id)
    if participant is None or participant.plan_id != plan_id:
        raise NotFound()

    decision.require(decision.can_edit_participant(participant_id), "edit participant")

    changes = body.model_dump(exclude_unset=True)
    for field_name, value in changes.items():
        setattr(participant, field_name, value)

    if changes:
        db.commit()
        db.refresh(participant)

        get_audit_logger().log_access(
            action="participant.update",
            principal_id=decision.principal_id,
            resource=f"participant:{participant_id}",
            details={"fields": sorted(changes)},
            request=request,
        )
        log.info(f"Updated participant {participant_id}: {sorted(changes)}")

    return ParticipantResponse(**filter_participant(participant, decision.accessor))


@router.patch(
    "/{plan_id}/items/{item_id}",
    response_model=ItemResponse,
    response_model_exclude_unset=True,
    responses=ACCESS_ERRORS,
)
async def update_item(
    plan_id: str,
    item_id: str,
    body: UpdateItemRequest,
    request: Request,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> ItemResponse:
    """Update an item's status or notes.

    **Authorization:** plan owner, or the linked participant the item is assigned to.
    """
    decision = resolver.resolve(plan_id, credentials)

    item = db.get(Item, item_id)
    if item is None or item.plan_id != plan_id:
        raise NotFound()

    decision.require(decision.can_edit_item(item), "edit item")

    changes = body.model_dump(exclude_unset=True)
    for field_name, value in changes.items():
        setattr(item, field_name, value)

    if changes:
        db.commit()
        db.refresh(item)

        get_audit_logger().log_access(
            action="item.update",
            principal_id=decision.principal_id,
            resource=f"item:{item_id}",
            details={"fields": sorted(changes)},
            request=request,
        )

    return ItemResponse(**filter_items([item], decision.accessor)[0])


@router.delete("/{plan_id}", response_model=DeletePlanResponse, responses=ACCESS_ERRORS)
async def delete_plan(
    plan_id: str,
    request: Request,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> DeletePlanResponse:
    """Delete a plan.

    Verification codes and guest sessions of the plan are removed
    explicitly in the same transaction, before the plan row itself.

    **Authorization:** plan owner.
    """
    decision = resolver.resolve(plan_id, credentials)
    decision.require(decision.can_manage_participants, "delete plan")

    plan = get_plan(db, plan_id)

    codes_revoked = CodeIssuer(db).revoke_for_plan(plan_id)
    sessions_revoked = GuestSessionStore(db).revoke_for_plan(plan_id)
    db.delete(plan)
    db.commit()

    get_audit_logger().log_access(
        action="plan.delete",
        principal_id=decision.principal_id,
        resource=f"plan:{plan_id}",
        details={"sessions_revoked": sessions_revoked, "codes_revoked": codes_revoked},
        request=request,
    )
    log.info(f"Deleted plan {plan_id} ({sessions_revoked} sessions, {codes_revoked} codes revoked)")

    return DeletePlanResponse(
        deleted=True,
        plan_id=plan_id,
        sessions_revoked=sessions_revoked,
        codes_revoked=codes_revoked,
    )
