"""Claim endpoint: link the caller's registered identity to an invite."""

from fastapi import APIRouter, Depends

from tripgate.api.deps import get_request_credentials, get_resolver
from tripgate.api.models import ClaimResponse, ErrorResponse, ParticipantResponse
from tripgate.auth.access import AccessorClass
from tripgate.auth.pii import filter_participant
from tripgate.auth.resolver import AuthorizationResolver, RequestCredentials

router = APIRouter(prefix="/participants", tags=["participants"])


@router.post(
    "/claim/{token}",
    response_model=ClaimResponse,
    response_model_exclude_unset=True,
    responses={
        401: {"model": ErrorResponse, "description": "Registered identity required"},
        404: {"model": ErrorResponse, "description": "Unknown invite token"},
        409: {"model": ErrorResponse, "description": "Participant already claimed"},
    },
)
async def claim_participant(
    token: str,
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> ClaimResponse:
    """Claim the participant record behind an invite token.

    Idempotent for the same account. Requires a bearer credential; the
    legacy shared secret is not accepted here.
    """
    result = resolver.claim(token, credentials)

    # The caller is now this participant and sees their own record in full
    participant = filter_participant(result.participant, AccessorClass.PARTICIPANT)
    return ClaimResponse(
        participant=ParticipantResponse(**participant),
        newly_linked=result.newly_linked,
    )
