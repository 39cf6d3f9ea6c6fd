"""Guest endpoints, authenticated by the X-Guest-Session header only."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from tripgate.api.deps import get_request_credentials, get_resolver
from tripgate.api.models import (
    ErrorResponse,
    LogoutResponse,
    OnboardingRequest,
    ParticipantResponse,
    PlanResponse,
)
from tripgate.audit import get_audit_logger
from tripgate.auth.access import AccessorClass
from tripgate.auth.guest_session import GuestSessionStore
from tripgate.auth.lookup import get_plan
from tripgate.auth.pii import filter_guest_self, filter_plan
from tripgate.auth.resolver import AuthorizationResolver, RequestCredentials
from tripgate.db.models import Item, Participant
from tripgate.db.session import get_db
from tripgate.exceptions import NotFound, Unauthorized

log = logging.getLogger(__name__)
router = APIRouter(prefix="/guest", tags=["guest"])


@router.post(
    "/onboarding",
    response_model=ParticipantResponse,
    response_model_exclude_unset=True,
    responses={401: {"model": ErrorResponse, "description": "Missing or expired guest session"}},
)
async def complete_onboarding(
    body: OnboardingRequest,
    request: Request,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> ParticipantResponse:
    """Update the guest's own participant record and mark onboarding done.

    Returns the caller's own record with PII fields left out.
    """
    binding = resolver.resolve_guest(credentials)

    participant = db.get(Participant, binding.participant_id)
    if participant is None:
        raise NotFound()

    changes = body.model_dump(exclude_unset=True)
    for field_name, value in changes.items():
        setattr(participant, field_name, value)
    participant.onboarding_completed = True
    db.commit()
    db.refresh(participant)

    get_audit_logger().log_access(
        action="guest.onboarding",
        principal_id=f"participant:{participant.id}",
        resource=f"participant:{participant.id}",
        details={"fields": sorted(changes)},
        request=request,
    )
    log.info(f"Participant {participant.id} completed onboarding")

    return ParticipantResponse(**filter_guest_self(participant))


@router.get(
    "/plan",
    response_model=PlanResponse,
    response_model_exclude_unset=True,
    responses={401: {"model": ErrorResponse, "description": "Missing or expired guest session"}},
)
async def get_guest_plan(
    request: Request,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> PlanResponse:
    """The guest's plan with items and PII-filtered participants."""
    binding = resolver.resolve_guest(credentials)
    plan = get_plan(db, binding.plan_id)

    participants = db.execute(
        select(Participant).where(Participant.plan_id == plan.id).order_by(Participant.created_at)
    ).scalars().all()
    items = db.execute(
        select(Item).where(Item.plan_id == plan.id).order_by(Item.created_at)
    ).scalars().all()

    get_audit_logger().log_access(
        action="access.resolve",
        principal_id=f"participant:{binding.participant_id}",
        resource=f"plan:{plan.id}",
        details={"accessor": AccessorClass.GUEST.value, "method": "guest_session"},
        request=request,
    )

    payload = filter_plan(plan, AccessorClass.GUEST, participants=participants, items=items)
    return PlanResponse(**payload)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    db: Session = Depends(get_db),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> LogoutResponse:
    """Revoke the presented guest session."""
    token = credentials.guest_session
    if not token:
        raise Unauthorized("Guest session required")

    revoked = GuestSessionStore(db).revoke(token)

    get_audit_logger().log_access(
        action="guest.session.revoke",
        principal_id="guest",
        status="success" if revoked else "denied",
        details=None if revoked else {"reason": "unknown_session"},
        request=request,
    )
    return LogoutResponse(revoked=revoked)
