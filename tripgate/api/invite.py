"""Invite link endpoints: landing view, code request and code verification.

The invite token in the path is the only credential on these routes.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from tripgate.api.deps import get_client_ip, get_resolver
from tripgate.api.models import (
    CodeRequestedResponse,
    ErrorResponse,
    GuestSessionResponse,
    InviteLandingResponse,
    VerifyCodeRequest,
)
from tripgate.audit import get_audit_logger
from tripgate.auth.codes import CodeIssuer
from tripgate.auth.lookup import get_owner_participant
from tripgate.auth.pii import filter_plan
from tripgate.auth.rate_limit import get_verify_limiter
from tripgate.auth.resolver import AuthorizationResolver
from tripgate.db.session import get_db
from tripgate.exceptions import TooManyRequests, TripGateError
from tripgate.logging_config import short_token
from tripgate.messaging import deliver_message

log = logging.getLogger(__name__)
router = APIRouter(prefix="/invite", tags=["invite"])


@router.get(
    "/{token}",
    response_model=InviteLandingResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown invite token"}},
)
async def get_invite_landing(
    token: str,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
) -> InviteLandingResponse:
    """Landing view for an invite link: plan title and owner display name."""
    _, plan, decision = resolver.resolve_invite(token)
    owner = get_owner_participant(db, plan.id)

    payload = filter_plan(
        plan,
        decision.accessor,
        owner_display_name=owner.display_name if owner is not None else None,
    )
    return InviteLandingResponse(**payload)


@router.post(
    "/{token}/request-code",
    response_model=CodeRequestedResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown invite token"},
        422: {"model": ErrorResponse, "description": "No phone number on file"},
        429: {"model": ErrorResponse, "description": "Too many code requests"},
    },
)
async def request_code(
    token: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> CodeRequestedResponse:
    """Send a one-time code to the participant's phone.

    The code is never part of the response. Delivery runs after the
    response is sent; gateway failures do not fail this request.
    """
    audit = get_audit_logger()
    issuer = CodeIssuer(db)

    try:
        result = await issuer.request_code(token)
    except TripGateError as e:
        audit.log_denied(
            action="code.request",
            reason=e.code,
            resource=f"invite:{short_token(token)}",
            request=request,
        )
        raise

    audit.log_access(
        action="code.request",
        principal_id=f"participant:{result.participant_id}",
        resource=f"participant:{result.participant_id}",
        request=request,
    )
    background_tasks.add_task(deliver_message, result.message)

    return CodeRequestedResponse(sent=True, expires_in_seconds=result.expires_in_seconds)


@router.post(
    "/{token}/verify",
    response_model=GuestSessionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid code"},
        404: {"model": ErrorResponse, "description": "No active code"},
        429: {"model": ErrorResponse, "description": "Too many attempts"},
    },
)
async def verify_code(
    token: str,
    body: VerifyCodeRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> GuestSessionResponse:
    """Verify a one-time code and issue a guest session.

    Rate limited per client IP on top of the per-code attempt limit.
    """
    audit = get_audit_logger()
    client_ip = get_client_ip(request)

    limiter = get_verify_limiter()
    if not await limiter.hit(client_ip):
        retry_after = await limiter.retry_after(client_ip)
        audit.log_access(
            action="code.verify",
            principal_id="anonymous",
            status="denied",
            details={"reason": "rate_limited", "ip": client_ip},
            request=request,
        )
        raise TooManyRequests(retry_after=retry_after)

    issuer = CodeIssuer(db)
    try:
        session = issuer.verify_code(token, body.code)
    except TripGateError as e:
        audit.log_denied(
            action="code.verify",
            reason=e.code,
            resource=f"invite:{short_token(token)}",
            request=request,
        )
        raise

    principal = f"participant:{session.participant_id}"
    audit.log_access(
        action="code.verify",
        principal_id=principal,
        resource=f"participant:{session.participant_id}",
        request=request,
    )
    audit.log_access(
        action="guest.session.issue",
        principal_id=principal,
        resource=f"plan:{session.plan_id}",
        details={"expires_at": session.expires_at.isoformat()},
        request=request,
    )

    return GuestSessionResponse(
        session_token=session.token,
        participant_id=session.participant_id,
        plan_id=session.plan_id,
        expires_at=session.expires_at.isoformat() + "Z",
        onboarding_completed=session.onboarding_completed,
    )
