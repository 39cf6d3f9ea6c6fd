"""API models for TripGate.

Pydantic models for API requests and responses. Participant and plan
responses are built from PII-filtered dicts and serialized with
response_model_exclude_unset, so fields an accessor may not see are absent
rather than null.
"""
from typing import Literal, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Request Models
# =============================================================================


class VerifyCodeRequest(BaseModel):
    """Request to verify a one-time code."""

    code: str = Field(..., min_length=1, max_length=16, description="The 6-digit code received by SMS")


class OnboardingRequest(BaseModel):
    """Guest onboarding: the participant fills in their own details."""

    model_config = {"extra": "forbid"}

    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    contact_email: Optional[str] = Field(None, max_length=255)
    group_size: Optional[int] = Field(None, ge=1, le=100)
    dietary_notes: Optional[str] = Field(None, max_length=2000)


class UpdateParticipantRequest(BaseModel):
    """Update a participant's profile fields."""

    model_config = {"extra": "forbid"}

    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=32)
    contact_email: Optional[str] = Field(None, max_length=255)
    group_size: Optional[int] = Field(None, ge=1, le=100)
    dietary_notes: Optional[str] = Field(None, max_length=2000)


class UpdateItemRequest(BaseModel):
    """Update an item's status or notes."""

    model_config = {"extra": "forbid"}

    status: Optional[Literal["open", "claimed", "done"]] = None
    notes: Optional[str] = Field(None, max_length=2000)


class UpdateProfileRequest(BaseModel):
    """Update the caller's own profile."""

    model_config = {"extra": "forbid"}

    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    avatar_url: Optional[str] = Field(None, max_length=1024)


# =============================================================================
# Response Models
# =============================================================================


class ErrorResponse(BaseModel):
    """Error body rendered for every TripGate exception."""

    detail: str
    code: str
    attempts_remaining: Optional[int] = None
    retry_after: Optional[int] = None


class CodeRequestedResponse(BaseModel):
    """A code was stored and handed to the messaging gateway."""

    sent: bool = Field(True, description="Delivery was scheduled")
    expires_in_seconds: int = Field(..., description="Code lifetime")


class GuestSessionResponse(BaseModel):
    """Guest session issued after successful verification."""

    session_token: str = Field(..., description="Send as X-Guest-Session")
    participant_id: str
    plan_id: str
    expires_at: str = Field(..., description="Expiry timestamp (ISO8601, UTC)")
    onboarding_completed: bool


class LogoutResponse(BaseModel):
    revoked: bool


class ParticipantResponse(BaseModel):
    """A participant, projected for the caller's accessor class."""

    id: str
    plan_id: Optional[str] = None
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    role: Optional[str] = None
    user_id: Optional[str] = None
    group_size: Optional[int] = None
    dietary_notes: Optional[str] = None
    onboarding_completed: Optional[bool] = None
    invite_token: Optional[str] = None


class ParticipantListResponse(BaseModel):
    count: int
    participants: list[ParticipantResponse]


class ItemResponse(BaseModel):
    id: str
    name: str
    quantity: Optional[int] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    assigned_participant_id: Optional[str] = None


class PlanResponse(BaseModel):
    """A plan, projected for the caller's accessor class."""

    id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    created_by_user_id: Optional[str] = None
    owner_display_name: Optional[str] = None
    items: Optional[list[ItemResponse]] = None
    participants: Optional[list[ParticipantResponse]] = None


class InviteLandingResponse(BaseModel):
    """What an invite link shows before phone verification."""

    id: str = Field(..., description="Plan ID")
    title: str
    owner_display_name: Optional[str] = None


class ClaimResponse(BaseModel):
    participant: ParticipantResponse
    newly_linked: bool


class DeletePlanResponse(BaseModel):
    deleted: bool
    plan_id: str
    sessions_revoked: int
    codes_revoked: int


class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class HealthResponse(BaseModel):
    ok: bool
    database: bool
