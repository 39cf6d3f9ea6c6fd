"""Shared FastAPI dependencies for TripGate routers."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from tripgate.auth.resolver import AuthorizationResolver, RequestCredentials
from tripgate.config import (
    GUEST_SESSION_HEADER,
    INVITE_TOKEN_HEADER,
    LEGACY_API_KEY_HEADER,
)
from tripgate.db.session import get_db


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First IP in the chain is the original client
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


def get_bearer_token(request: Request) -> str | None:
    """Token from an "Authorization: Bearer <token>" header, if any."""
    header = request.headers.get("Authorization")
    if not header:
        return None

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_request_credentials(request: Request) -> RequestCredentials:
    """Collect every identity proof presented with the request."""
    return RequestCredentials(
        bearer_token=get_bearer_token(request),
        legacy_key=request.headers.get(LEGACY_API_KEY_HEADER) or None,
        guest_session=request.headers.get(GUEST_SESSION_HEADER) or None,
        invite_token=request.headers.get(INVITE_TOKEN_HEADER) or None,
    )


def get_resolver(
    request: Request,
    db: Session = Depends(get_db),
) -> AuthorizationResolver:
    """Request-scoped authorization resolver sharing the route's DB session."""
    return AuthorizationResolver(db, request=request)
