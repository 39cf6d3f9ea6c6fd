"""Authorization resolver: classify a request against a plan.

Identity proofs are tried in strict precedence order and the first match
wins:

1. Signed credential (Authorization: Bearer)
2. Legacy shared secret (X-API-Key)
3. Guest session (X-Guest-Session)
4. Invite token (X-Invite-Token header or path)

If none is usable the request is Unauthorized. An invalid or expired
bearer credential or legacy key is audited and then treated as absent.

The resolver only reads, apart from auto-provisioning the caller's profile
and delegating explicit claim requests to the ClaimLinker.
"""

import logging
from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.orm import Session

from tripgate.audit import get_audit_logger
from tripgate.auth.access import AccessDecision, AccessorClass, AuthMethod
from tripgate.auth.claims import ClaimLinker, ClaimResult
from tripgate.auth.credentials import (
    CredentialVerifier,
    VerifiedIdentity,
    ensure_profile,
    get_credential_verifier,
)
from tripgate.auth.guest_session import GuestSessionStore, SessionBinding
from tripgate.auth.legacy_key import verify_legacy_key
from tripgate.auth.lookup import get_participant_by_invite, get_plan
from tripgate.db.models import Participant, ParticipantRole, Plan, Profile
from tripgate.exceptions import Forbidden, NotFound, TripGateError, Unauthorized
from tripgate.logging_config import short_token

log = logging.getLogger(__name__)


@dataclass
class RequestCredentials:
    """Identity proofs presented with a request.

    Attributes:
        bearer_token: Token from "Authorization: Bearer <token>"
        legacy_key: X-API-Key header
        guest_session: X-Guest-Session header
        invite_token: X-Invite-Token header or path parameter
    """

    bearer_token: str | None = None
    legacy_key: str | None = None
    guest_session: str | None = None
    invite_token: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.bearer_token
            or self.legacy_key
            or self.guest_session
            or self.invite_token
        )


class AuthorizationResolver:
    """Resolves request credentials into an AccessDecision."""

    def __init__(
        self,
        db: Session,
        verifier: CredentialVerifier | None = None,
        session_store: GuestSessionStore | None = None,
        request: Request | None = None,
    ):
        """Initialize the resolver.

        Args:
            db: SQLAlchemy session
            verifier: Credential verifier (defaults to the global one)
            session_store: Guest session store
            request: Current request, used for audit correlation
        """
        self.db = db
        self.verifier = verifier if verifier is not None else get_credential_verifier()
        self.session_store = session_store or GuestSessionStore(db)
        self.request = request
        self.audit = get_audit_logger()

    # -------------------------------------------------------------------------
    # Plan-scoped resolution
    # -------------------------------------------------------------------------

    def resolve(self, plan_id: str, credentials: RequestCredentials) -> AccessDecision:
        """Classify the caller for a plan.

        Raises:
            Unauthorized: No usable identity proof
            Forbidden: Valid credential with no relationship to the plan
            NotFound: Unknown plan, or a session/token bound to another plan
        """
        if credentials.is_empty:
            self._deny("unauthenticated", plan_id)
            raise Unauthorized()

        plan = get_plan(self.db, plan_id)

        decision = (
            self._from_bearer(plan, credentials.bearer_token)
            or self._from_legacy_key(plan, credentials.legacy_key)
            or self._from_guest_session(plan, credentials.guest_session)
            or self._from_invite_token(plan, credentials.invite_token)
        )
        if decision is None:
            self._deny("no_usable_credential", plan_id)
            raise Unauthorized()

        self.audit.log_access(
            action="access.resolve",
            principal_id=decision.principal_id,
            resource=f"plan:{plan_id}",
            details={"accessor": decision.accessor.value, "method": decision.method.value},
            request=self.request,
        )
        return decision

    def _from_bearer(self, plan: Plan, token: str | None) -> AccessDecision | None:
        identity = self._verify_bearer(token)
        if identity is None:
            return None

        ensure_profile(self.db, identity)
        subject_id = identity.subject_id
        linked = ClaimLinker(self.db).linked_participant(plan.id, subject_id)

        if plan.created_by_user_id == subject_id or (
            linked is not None and linked.role == ParticipantRole.OWNER
        ):
            return AccessDecision(
                accessor=AccessorClass.OWNER,
                method=AuthMethod.BEARER,
                plan_id=plan.id,
                subject_id=subject_id,
                participant_id=linked.id if linked is not None else None,
            )

        if linked is not None:
            return AccessDecision(
                accessor=AccessorClass.PARTICIPANT,
                method=AuthMethod.BEARER,
                plan_id=plan.id,
                subject_id=subject_id,
                participant_id=linked.id,
            )

        self._deny("not_a_member", plan.id, principal_id=subject_id)
        raise Forbidden()

    def _from_legacy_key(self, plan: Plan, raw_key: str | None) -> AccessDecision | None:
        if not self._check_legacy_key(raw_key):
            return None

        return AccessDecision(
            accessor=AccessorClass.OWNER,
            method=AuthMethod.LEGACY_KEY,
            plan_id=plan.id,
        )

    def _from_guest_session(self, plan: Plan, token: str | None) -> AccessDecision | None:
        if not token:
            return None

        binding = self.session_store.validate(token)
        if binding.plan_id != plan.id:
            log.info(f"Guest session {short_token(token)} used against another plan")
            self._deny(
                "session_plan_mismatch",
                plan.id,
                principal_id=f"participant:{binding.participant_id}",
            )
            raise NotFound()

        return AccessDecision(
            accessor=AccessorClass.GUEST,
            method=AuthMethod.GUEST_SESSION,
            plan_id=plan.id,
            participant_id=binding.participant_id,
        )

    def _from_invite_token(self, plan: Plan, invite_token: str | None) -> AccessDecision | None:
        if not invite_token:
            return None

        participant = get_participant_by_invite(self.db, invite_token)
        if participant.plan_id != plan.id:
            self._deny("invite_plan_mismatch", plan.id)
            raise NotFound()

        return AccessDecision(
            accessor=AccessorClass.INVITE,
            method=AuthMethod.INVITE_TOKEN,
            plan_id=plan.id,
            participant_id=participant.id,
        )

    # -------------------------------------------------------------------------
    # Routes not scoped by a plan id
    # -------------------------------------------------------------------------

    def resolve_invite(self, invite_token: str) -> tuple[Participant, Plan, AccessDecision]:
        """Resolve an invite token to its participant, plan and landing access."""
        participant = get_participant_by_invite(self.db, invite_token)
        plan = get_plan(self.db, participant.plan_id)
        decision = AccessDecision(
            accessor=AccessorClass.INVITE,
            method=AuthMethod.INVITE_TOKEN,
            plan_id=plan.id,
            participant_id=participant.id,
        )
        return participant, plan, decision

    def resolve_guest(self, credentials: RequestCredentials) -> SessionBinding:
        """Validate the guest session of a /guest/* request.

        Raises:
            Unauthorized: Missing, unknown or expired session
            NotFound: Session's plan or participant was removed
        """
        try:
            return self.session_store.validate(credentials.guest_session)
        except Unauthorized:
            self._deny("guest_session_invalid", None)
            raise

    def resolve_identity(self, credentials: RequestCredentials) -> tuple[VerifiedIdentity, Profile]:
        """Require a valid bearer credential (identity-only routes).

        The legacy shared secret is not an identity and is refused here.

        Raises:
            Unauthorized: No valid bearer credential
        """
        identity = self._verify_bearer(credentials.bearer_token)
        if identity is None:
            reason = "legacy_key_not_identity" if credentials.legacy_key else "identity_required"
            self._deny(reason, None)
            raise Unauthorized()

        profile = ensure_profile(self.db, identity)
        return identity, profile

    def claim(self, invite_token: str, credentials: RequestCredentials) -> ClaimResult:
        """Link the caller's registered identity to the invite's participant."""
        identity, _ = self.resolve_identity(credentials)
        linker = ClaimLinker(self.db)

        try:
            result = linker.claim(invite_token, identity.subject_id)
        except TripGateError as e:
            self.audit.log_denied(
                action="participant.claim",
                reason=e.code,
                principal_id=identity.subject_id,
                request=self.request,
            )
            raise

        self.audit.log_access(
            action="participant.claim",
            principal_id=identity.subject_id,
            resource=f"participant:{result.participant.id}",
            details={"newly_linked": result.newly_linked},
            request=self.request,
        )
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _verify_bearer(self, token: str | None) -> VerifiedIdentity | None:
        if not token:
            return None

        if self.verifier is None:
            log.warning("Bearer credential presented but no identity provider is configured")
            return None

        try:
            return self.verifier.verify(token)
        except Unauthorized as e:
            self.audit.log_denied(
                action="auth.credential_invalid",
                reason=e.detail,
                request=self.request,
            )
            return None

    def _check_legacy_key(self, raw_key: str | None) -> bool:
        if not raw_key:
            return False

        if verify_legacy_key(raw_key):
            self.audit.log_access(
                action="auth.legacy_key",
                principal_id="legacy-key",
                request=self.request,
            )
            return True

        self.audit.log_denied(
            action="auth.credential_invalid",
            reason="legacy_key_mismatch",
            request=self.request,
        )
        return False

    def _deny(self, reason: str, plan_id: str | None, principal_id: str = "anonymous") -> None:
        self.audit.log_denied(
            action="access.denied",
            reason=reason,
            principal_id=principal_id,
            resource=f"plan:{plan_id}" if plan_id else None,
            request=self.request,
        )
