"""Pytest fixtures for TripGate tests."""
import os
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import AsyncGenerator

# Configure before any tripgate import: the engine is built at import time
os.environ["TRIPGATE_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TRIPGATE_DATA_DIR"] = tempfile.mkdtemp(prefix="tripgate-test-")
os.environ["TRIPGATE_LOG_FILE"] = ""
os.environ.pop("TRIPGATE_JWKS_URL", None)
os.environ.pop("TRIPGATE_SMS_GATEWAY_URL", None)
os.environ.pop("TRIPGATE_LEGACY_API_KEY_HASH", None)

import bcrypt
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

from tripgate.audit.logger import reset_audit_logger
from tripgate.auth.credentials import (
    CredentialVerifier,
    reset_credential_verifier,
    set_credential_verifier,
)
from tripgate.auth.rate_limit import reset_rate_limiters
from tripgate.clock import Clock, reset_clock, set_clock
from tripgate.db.models import Base, Item, Participant, ParticipantRole, Plan
from tripgate.db.session import SessionLocal, engine
from tripgate.messaging import (
    MessagingError,
    MessagingGateway,
    OutboundMessage,
    reset_messaging_gateway,
    set_messaging_gateway,
)


# =============================================================================
# Identity provider test values
# =============================================================================

TEST_ISSUER = "https://idp.test/"
TEST_AUDIENCE = "tripgate-test"
TEST_JWKS_URL = "https://idp.test/.well-known/jwks.json"

OWNER_SUB = "sub-owner"
MEMBER_SUB = "sub-member"
OUTSIDER_SUB = "sub-outsider"

# Legacy shared secret (cost factor 4 for fast tests)
TEST_LEGACY_KEY = "test-legacy-key-12345"
TEST_LEGACY_HASH = bcrypt.hashpw(TEST_LEGACY_KEY.encode(), bcrypt.gensalt(rounds=4)).decode()

START_TIME = datetime(2026, 3, 1, 12, 0, 0)


# =============================================================================
# Test doubles
# =============================================================================


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingGateway(MessagingGateway):
    """Gateway that records messages instead of sending them."""

    def __init__(self, fail: bool = False):
        self.messages: list[OutboundMessage] = []
        self.fail = fail

    async def send(self, message: OutboundMessage) -> None:
        if self.fail:
            raise MessagingError("gateway unavailable")
        self.messages.append(message)

    @property
    def last_code(self) -> str:
        # "Your TripGate verification code is 123456. It expires ..."
        body = self.messages[-1].body
        return body.split("code is ", 1)[1][:6]


class StubJWKClient:
    """Stands in for PyJWKClient: always returns the test public key."""

    def __init__(self, public_key):
        self.public_key = public_key

    def get_signing_key_from_jwt(self, token: str):
        return SimpleNamespace(key=self.public_key)


# =============================================================================
# Singletons and database
# =============================================================================


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh singletons and an empty schema for every test."""
    reset_audit_logger()
    reset_rate_limiters()
    reset_messaging_gateway()
    reset_credential_verifier()
    reset_clock()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield

    reset_audit_logger()
    reset_rate_limiters()
    reset_messaging_gateway()
    reset_credential_verifier()
    reset_clock()


@pytest.fixture
def db():
    """Database session on the shared in-memory engine."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    """Frozen clock installed as the global clock."""
    frozen = FrozenClock()
    set_clock(frozen)
    return frozen


@pytest.fixture
def gateway() -> RecordingGateway:
    """Recording messaging gateway installed as the global gateway."""
    recording = RecordingGateway()
    set_messaging_gateway(recording)
    return recording


# =============================================================================
# Credentials
# =============================================================================


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def verifier(rsa_private_key) -> CredentialVerifier:
    """Credential verifier trusting the test key, installed globally."""
    credential_verifier = CredentialVerifier(
        jwks_url=TEST_JWKS_URL,
        issuer=TEST_ISSUER,
        audience=TEST_AUDIENCE,
        algorithms=["RS256"],
        jwks_client=StubJWKClient(rsa_private_key.public_key()),
    )
    set_credential_verifier(credential_verifier)
    return credential_verifier


@pytest.fixture
def make_token(rsa_private_key):
    """Factory for signed bearer tokens."""

    def _make(
        sub: str,
        email: str | None = None,
        name: str | None = None,
        expires_in: int = 300,
        audience: str = TEST_AUDIENCE,
        issuer: str = TEST_ISSUER,
        key=None,
    ) -> str:
        now = int(time.time())
        payload = {
            "sub": sub,
            "iss": issuer,
            "aud": audience,
            "iat": now - 10,
            "exp": now + expires_in,
        }
        if email:
            payload["email"] = email
        if name:
            payload["name"] = name
        return jwt.encode(payload, key or rsa_private_key, algorithm="RS256")

    return _make


@pytest.fixture
def legacy_key(monkeypatch) -> str:
    """Enable the legacy shared secret and return the raw key."""
    import tripgate.config as config_module

    monkeypatch.setattr(config_module, "LEGACY_API_KEY_HASH", TEST_LEGACY_HASH)
    return TEST_LEGACY_KEY


# =============================================================================
# Seed data
# =============================================================================


@dataclass
class Seed:
    """Ids and invite tokens of the seeded plans."""

    plan_id: str = "plan-lake"
    other_plan_id: str = "plan-city"
    owner_id: str = "p-owner"
    alice_id: str = "p-alice"
    bob_id: str = "p-bob"
    carol_id: str = "p-carol"
    dave_id: str = "p-dave"
    owner_token: str = "inv-owner-0000000000000000"
    alice_token: str = "inv-alice-0000000000000000"
    bob_token: str = "inv-bob-00000000000000000"
    carol_token: str = "inv-carol-0000000000000000"
    dave_token: str = "inv-dave-00000000000000000"
    tent_id: str = "item-tent"
    stove_id: str = "item-stove"
    firewood_id: str = "item-firewood"
    extra: dict = field(default_factory=dict)


@pytest.fixture
def seed(db) -> Seed:
    """Two plans with an owner, linked and unlinked participants, and items.

    - plan-lake: owner (linked to OWNER_SUB), Alice (phone, unlinked),
      Bob (phone, linked to MEMBER_SUB), Carol (no phone); three items
    - plan-city: Dave (phone, unlinked)
    """
    s = Seed()
    created = datetime(2026, 2, 1, 9, 0, 0)

    db.add_all([
        Plan(
            id=s.plan_id,
            title="Lake Weekend",
            description="Cabin by the lake",
            location="Lake Tahoe",
            start_date="2026-07-10",
            end_date="2026-07-12",
            created_by_user_id=OWNER_SUB,
        ),
        Plan(
            id=s.other_plan_id,
            title="City Break",
            created_by_user_id="sub-someone-else",
        ),
    ])
    db.flush()

    db.add_all([
        Participant(
            id=s.owner_id,
            plan_id=s.plan_id,
            display_name="Olivia",
            first_name="Olivia",
            last_name="Owner",
            contact_phone="+15550000001",
            contact_email="olivia@example.com",
            role=ParticipantRole.OWNER,
            user_id=OWNER_SUB,
            invite_token=s.owner_token,
            onboarding_completed=True,
            created_at=created,
        ),
        Participant(
            id=s.alice_id,
            plan_id=s.plan_id,
            display_name="Alice",
            first_name="Alice",
            last_name="Smith",
            contact_phone="+15551234567",
            contact_email="alice@example.com",
            role=ParticipantRole.PARTICIPANT,
            invite_token=s.alice_token,
            created_at=created + timedelta(minutes=1),
        ),
        Participant(
            id=s.bob_id,
            plan_id=s.plan_id,
            display_name="Bob",
            first_name="Bob",
            last_name="Jones",
            contact_phone="+15557654321",
            contact_email="bob@example.com",
            role=ParticipantRole.PARTICIPANT,
            user_id=MEMBER_SUB,
            invite_token=s.bob_token,
            created_at=created + timedelta(minutes=2),
        ),
        Participant(
            id=s.carol_id,
            plan_id=s.plan_id,
            display_name="Carol",
            last_name="White",
            role=ParticipantRole.PARTICIPANT,
            invite_token=s.carol_token,
            created_at=created + timedelta(minutes=3),
        ),
        Participant(
            id=s.dave_id,
            plan_id=s.other_plan_id,
            display_name="Dave",
            contact_phone="+15559990000",
            role=ParticipantRole.PARTICIPANT,
            invite_token=s.dave_token,
            created_at=created,
        ),
    ])
    db.flush()

    db.add_all([
        Item(id=s.tent_id, plan_id=s.plan_id, name="Tent", quantity=1,
             assigned_participant_id=s.alice_id, created_at=created),
        Item(id=s.stove_id, plan_id=s.plan_id, name="Stove", quantity=1, notes="Bring gas",
             assigned_participant_id=s.bob_id, created_at=created + timedelta(minutes=1)),
        Item(id=s.firewood_id, plan_id=s.plan_id, name="Firewood", quantity=3,
             created_at=created + timedelta(minutes=2)),
    ])
    db.commit()
    return s


# =============================================================================
# HTTP client
# =============================================================================


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Test client over the ASGI app (lifespan not run; schema set up above)."""
    from tripgate.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as async_client:
        yield async_client
