"""Signed credential (bearer token) verification against the identity provider.

Tokens are RS256 JWTs issued by an external identity provider. Signing keys
are fetched from the provider's JWKS endpoint and cached by PyJWKClient.

Validates:
- Signature against the provider's JWKS
- Algorithm is in the configured allow-list
- Issuer and audience match configuration
- Token not expired (exp), issued in the past (iat), nbf if present
- Subject (sub) present
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import jwt
from jwt import PyJWKClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from tripgate.db.models import Profile
from tripgate.exceptions import Unauthorized

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    """Claims extracted from a verified credential.

    Attributes:
        subject_id: Identity-provider subject (stable user id)
        email: Lowercased email claim, if present
        name: Display name claim, if present
        claims: Full decoded payload
    """

    subject_id: str
    email: str | None = None
    name: str | None = None
    claims: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


class CredentialVerifier:
    """Verifies bearer tokens issued by the identity provider."""

    def __init__(
        self,
        jwks_url: str,
        issuer: str | None = None,
        audience: str | None = None,
        algorithms: list[str] | None = None,
        jwks_client: PyJWKClient | None = None,
        cache_seconds: int = 300,
    ):
        """Initialize the verifier.

        Args:
            jwks_url: Identity provider JWKS endpoint
            issuer: Expected iss claim (skipped if None)
            audience: Expected aud claim (skipped if None)
            algorithms: Accepted signing algorithms (default RS256)
            jwks_client: Pre-built JWKS client (tests inject a stub)
            cache_seconds: JWKS cache lifetime
        """
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.audience = audience
        self.algorithms = algorithms or ["RS256"]
        self.jwks_client = jwks_client or PyJWKClient(
            jwks_url,
            cache_jwk_set=True,
            lifespan=cache_seconds,
        )

    def verify(self, token: str) -> VerifiedIdentity:
        """Verify a bearer token and extract identity claims.

        Raises:
            Unauthorized: Token invalid, expired, or for another audience/issuer
        """
        if not token:
            raise Unauthorized("Missing credential")

        required = ["exp", "iat", "sub"]
        if self.audience:
            required.append("aud")
        if self.issuer:
            required.append("iss")

        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)

            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "require": required,
                    "verify_aud": self.audience is not None,
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_nbf": True,
                },
            )
        except jwt.ExpiredSignatureError:
            raise Unauthorized("Credential expired")
        except jwt.InvalidAudienceError:
            raise Unauthorized("Credential audience mismatch")
        except jwt.InvalidIssuerError:
            raise Unauthorized("Credential issuer mismatch")
        except jwt.InvalidAlgorithmError:
            raise Unauthorized("Credential algorithm not accepted")
        except jwt.PyJWKClientError as e:
            log.error(f"Signing key lookup failed: {e}")
            raise Unauthorized("Credential validation failed")
        except jwt.InvalidTokenError as e:
            log.info(f"Credential validation failed: {e}")
            raise Unauthorized("Credential validation failed")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthorized("Credential missing subject")

        email = payload.get("email")
        return VerifiedIdentity(
            subject_id=subject,
            email=email.lower() if isinstance(email, str) and email else None,
            name=payload.get("name"),
            claims=payload,
        )


def ensure_profile(db: Session, identity: VerifiedIdentity) -> Profile:
    """Get or create the local profile for a verified identity.

    The email is only recorded if no other profile already holds it; a
    conflicting email is dropped rather than failing the request.
    """
    profile = db.get(Profile, identity.subject_id)
    if profile is not None:
        return profile

    email = identity.email
    if email:
        taken = db.execute(
            select(Profile.id).where(Profile.email == email)
        ).first()
        if taken is not None:
            log.warning(f"Email of new subject already used by profile {taken[0]}; not stored")
            email = None

    profile = Profile(
        id=identity.subject_id,
        email=email,
        display_name=identity.name,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)

    log.info(f"Provisioned profile for subject {identity.subject_id}")
    return profile


# Module-level singleton
_verifier: CredentialVerifier | None = None


def get_credential_verifier() -> CredentialVerifier | None:
    """Get the global credential verifier.

    Returns None when no identity provider is configured; bearer
    credentials are then ignored.
    """
    global _verifier

    if _verifier is None:
        from tripgate.config import (
            JWKS_CACHE_SECONDS,
            JWKS_URL,
            JWT_ALGORITHMS,
            JWT_AUDIENCE,
            JWT_ISSUER,
        )

        if not JWKS_URL:
            return None

        _verifier = CredentialVerifier(
            jwks_url=JWKS_URL,
            issuer=JWT_ISSUER,
            audience=JWT_AUDIENCE,
            algorithms=JWT_ALGORITHMS,
            cache_seconds=JWKS_CACHE_SECONDS,
        )
        log.info(f"Credential verifier configured for {JWKS_URL}")

    return _verifier


def set_credential_verifier(verifier: CredentialVerifier | None) -> None:
    """Replace the global credential verifier (tests)."""
    global _verifier
    _verifier = verifier


def reset_credential_verifier() -> None:
    """Reset the global credential verifier (for testing)."""
    global _verifier
    _verifier = None
