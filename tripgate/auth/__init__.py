"""Guest verification and authorization for TripGate."""

from tripgate.auth.access import AccessDecision, AccessorClass, AuthMethod
from tripgate.auth.claims import ClaimLinker, ClaimResult
from tripgate.auth.codes import CodeIssuer, CodeRequestResult
from tripgate.auth.guest_session import GuestSessionStore, IssuedSession, SessionBinding
from tripgate.auth.resolver import AuthorizationResolver, RequestCredentials

__all__ = [
    "AccessDecision",
    "AccessorClass",
    "AuthMethod",
    "AuthorizationResolver",
    "ClaimLinker",
    "ClaimResult",
    "CodeIssuer",
    "CodeRequestResult",
    "GuestSessionStore",
    "IssuedSession",
    "RequestCredentials",
    "SessionBinding",
]
