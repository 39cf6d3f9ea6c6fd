"""Own-profile endpoints for registered identities (bearer credential only)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripgate.api.deps import get_request_credentials, get_resolver
from tripgate.api.models import ProfileResponse, UpdateProfileRequest
from tripgate.auth.resolver import AuthorizationResolver, RequestCredentials
from tripgate.db.models import Profile
from tripgate.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(prefix="/me", tags=["profile"])


def _to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        email=profile.email,
        display_name=profile.display_name,
        avatar_url=profile.avatar_url,
    )


@router.get("", response_model=ProfileResponse)
async def get_me(
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> ProfileResponse:
    """Get the caller's profile, provisioning it on first use."""
    _, profile = resolver.resolve_identity(credentials)
    return _to_response(profile)


@router.patch("", response_model=ProfileResponse)
async def update_me(
    body: UpdateProfileRequest,
    db: Session = Depends(get_db),
    resolver: AuthorizationResolver = Depends(get_resolver),
    credentials: RequestCredentials = Depends(get_request_credentials),
) -> ProfileResponse:
    """Update the caller's display name or avatar."""
    _, profile = resolver.resolve_identity(credentials)

    changes = body.model_dump(exclude_unset=True)
    if changes:
        for field_name, value in changes.items():
            setattr(profile, field_name, value)
        db.commit()
        db.refresh(profile)
        log.info(f"Updated profile {profile.id}: {sorted(changes)}")

    return _to_response(profile)
