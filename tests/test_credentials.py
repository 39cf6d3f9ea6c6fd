"""Tests for bearer credential verification and the legacy shared secret."""
import time

import jwt
import pytest

from tests.conftest import TEST_AUDIENCE, TEST_ISSUER, TEST_LEGACY_HASH, TEST_LEGACY_KEY
from tripgate.auth.credentials import (
    VerifiedIdentity,
    ensure_profile,
    get_credential_verifier,
)
from tripgate.auth.legacy_key import hash_legacy_key, verify_legacy_key
from tripgate.db.models import Profile
from tripgate.exceptions import Unauthorized


class TestCredentialVerifier:

    def test_valid_token(self, verifier, make_token):
        identity = verifier.verify(make_token("sub-1", email="Nina@Example.COM", name="Nina"))

        assert identity.subject_id == "sub-1"
        assert identity.email == "nina@example.com"
        assert identity.name == "Nina"
        assert identity.claims["aud"] == TEST_AUDIENCE

    def test_expired_token(self, verifier, make_token):
        with pytest.raises(Unauthorized) as exc_info:
            verifier.verify(make_token("sub-1", expires_in=-30))
        assert "expired" in exc_info.value.detail

    def test_wrong_issuer(self, verifier, make_token):
        with pytest.raises(Unauthorized) as exc_info:
            verifier.verify(make_token("sub-1", issuer="https://evil.test/"))
        assert "issuer" in exc_info.value.detail

    def test_wrong_audience(self, verifier, make_token):
        with pytest.raises(Unauthorized) as exc_info:
            verifier.verify(make_token("sub-1", audience="other-app"))
        assert "audience" in exc_info.value.detail

    def test_missing_subject(self, verifier, rsa_private_key):
        now = int(time.time())
        token = jwt.encode(
            {"iss": TEST_ISSUER, "aud": TEST_AUDIENCE, "iat": now, "exp": now + 60},
            rsa_private_key,
            algorithm="RS256",
        )
        with pytest.raises(Unauthorized):
            verifier.verify(token)

    def test_hs256_token_rejected(self, verifier):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "sub-1", "iss": TEST_ISSUER, "aud": TEST_AUDIENCE, "iat": now, "exp": now + 60},
            "shared-secret-that-is-long-enough-for-hmac",
            algorithm="HS256",
        )
        with pytest.raises(Unauthorized):
            verifier.verify(token)

    def test_garbage_token(self, verifier):
        with pytest.raises(Unauthorized):
            verifier.verify("not.a.jwt")
        with pytest.raises(Unauthorized):
            verifier.verify("")

    def test_signing_key_lookup_failure(self, verifier, make_token):
        class FailingClient:
            def get_signing_key_from_jwt(self, token):
                raise jwt.PyJWKClientError("Unable to find a signing key")

        verifier.jwks_client = FailingClient()
        with pytest.raises(Unauthorized):
            verifier.verify(make_token("sub-1"))

    def test_no_identity_provider_configured(self):
        assert get_credential_verifier() is None

    def test_set_verifier_is_returned(self, verifier):
        assert get_credential_verifier() is verifier


class TestEnsureProfile:

    def test_creates_once(self, db):
        identity = VerifiedIdentity(subject_id="sub-9", email="x@example.com", name="X")

        first = ensure_profile(db, identity)
        second = ensure_profile(db, VerifiedIdentity(subject_id="sub-9", name="Changed"))

        assert first.id == second.id == "sub-9"
        assert second.display_name == "X"
        assert db.query(Profile).count() == 1

    def test_email_conflict_dropped(self, db):
        ensure_profile(db, VerifiedIdentity(subject_id="sub-a", email="same@example.com"))
        profile = ensure_profile(db, VerifiedIdentity(subject_id="sub-b", email="same@example.com"))

        assert profile.email is None


class TestLegacyKey:

    def test_matching_key(self):
        assert verify_legacy_key(TEST_LEGACY_KEY, TEST_LEGACY_HASH)

    def test_wrong_key(self):
        assert not verify_legacy_key("wrong", TEST_LEGACY_HASH)

    def test_missing_inputs(self):
        assert not verify_legacy_key(None, TEST_LEGACY_HASH)
        assert not verify_legacy_key(TEST_LEGACY_KEY, None)

    def test_malformed_hash(self):
        assert not verify_legacy_key(TEST_LEGACY_KEY, "not-a-bcrypt-hash")

    def test_reads_configured_hash(self, legacy_key):
        assert verify_legacy_key(legacy_key)

    def test_hash_round_trip(self):
        hashed = hash_legacy_key("rotated-key", rounds=4)
        assert hashed.startswith("$2")
        assert verify_legacy_key("rotated-key", hashed)
