"""Exception hierarchy for TripGate.

Every failure is terminal for the request that raised it. Each exception
carries the HTTP status and a stable machine-readable code so the caller
can pick the next UI step ("resend code", "contact owner", ...).
"""


class TripGateError(Exception):
    """Base exception for all TripGate errors."""

    status_code: int = 500
    code: str = "internal_error"
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class NotFound(TripGateError):
    """Unknown invite token, session, plan or code.

    The message never says which, so a bad token looks the same as a token
    belonging to another plan.
    """

    status_code = 404
    code = "not_found"
    default_detail = "Not found"


class InvalidCode(TripGateError):
    """Submitted code did not match; attempts remain."""

    status_code = 400
    code = "invalid_code"
    default_detail = "Invalid verification code"

    def __init__(self, attempts_remaining: int, detail: str | None = None):
        self.attempts_remaining = attempts_remaining
        super().__init__(detail)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["attempts_remaining"] = self.attempts_remaining
        return payload


class TooManyAttempts(TripGateError):
    """Code exhausted. Terminal: the caller must request a new code."""

    status_code = 429
    code = "too_many_attempts"
    default_detail = "Too many incorrect attempts. Request a new code."


class TooManyRequests(TripGateError):
    """Rate limit exceeded."""

    status_code = 429
    code = "too_many_requests"
    default_detail = "Too many requests. Please try again later."

    def __init__(self, retry_after: int = 0, detail: str | None = None):
        self.retry_after = retry_after
        super().__init__(detail)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retry_after"] = self.retry_after
        return payload


class Unauthorized(TripGateError):
    """No usable identity proof presented."""

    status_code = 401
    code = "unauthorized"
    default_detail = "Authentication required"


class Forbidden(TripGateError):
    """Valid identity, but no relationship to the requested plan (or action)."""

    status_code = 403
    code = "forbidden"
    default_detail = "Access denied"


class AlreadyLinkedToOther(TripGateError):
    """Participant is already linked to a different registered identity."""

    status_code = 409
    code = "already_linked_to_other"
    default_detail = "This invite has already been claimed by another account"


class AlreadyParticipantInPlan(TripGateError):
    """Identity already holds a different seat in the same plan."""

    status_code = 409
    code = "already_participant_in_plan"
    default_detail = "Your account is already a participant in this plan"


class NoContactPhone(TripGateError):
    """Participant has no phone number to deliver a code to."""

    status_code = 422
    code = "no_contact_phone"
    default_detail = "No phone number on file. Ask the plan owner to add one."
