"""Unit tests for auth/tokens.py -- CredentialService.

Covers:
- bcrypt hash / compare, embedded cost, unreadable hashes, hashing failure
- token issue / validate round trip and the {id: 42, role: "user"} scenario
- expiry: fast-forwarded service clock and an injected already-expired claim
- algorithm confusion: "none", RS256, accepted HMAC variants
- signature failures: other secret, spliced payload
- malformed strings and missing / ill-typed claims
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import bcrypt
import pytest
from jose import jwt

from auth.errors import (
    HashingFailure,
    MalformedToken,
    PasswordMismatch,
    SignatureInvalid,
    SigningFailure,
    TokenExpired,
    UnsupportedAlgorithm,
)
from auth.tokens import CredentialService
from core.config import Settings
from core.models import Identity

SECRET = b"k" * 32


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def _future_exp() -> int:
    return int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


class TestPasswords:
    def test_round_trip(self, credentials: CredentialService) -> None:
        hashed = credentials.hash_password("correct horse")
        assert credentials.compare_passwords(hashed, "correct horse") is None

    @pytest.mark.parametrize("attempt", ["correct hors", "Correct horse", "", "correct horse "])
    def test_mismatch(self, credentials: CredentialService, attempt: str) -> None:
        hashed = credentials.hash_password("correct horse")
        with pytest.raises(PasswordMismatch):
            credentials.compare_passwords(hashed, attempt)

    def test_hash_embeds_cost_and_salt(self, credentials: CredentialService) -> None:
        first = credentials.hash_password("pw")
        second = credentials.hash_password("pw")
        assert first.startswith("$2b$04$")
        assert first != second  # fresh salt each time

    def test_unreadable_hash_is_a_mismatch(self, credentials: CredentialService) -> None:
        with pytest.raises(PasswordMismatch):
            credentials.compare_passwords("not-a-bcrypt-hash", "pw")

    def test_bcrypt_error_becomes_hashing_failure(self, credentials: CredentialService, monkeypatch) -> None:
        def boom(*_args, **_kwargs):
            raise ValueError("entropy source failed")

        monkeypatch.setattr(bcrypt, "hashpw", boom)
        with pytest.raises(HashingFailure):
            credentials.hash_password("pw")

    def test_dummy_hash_is_stable_per_instance(self, credentials: CredentialService) -> None:
        assert credentials.dummy_hash == credentials.dummy_hash
        assert credentials.dummy_hash.startswith("$2b$04$")


# ---------------------------------------------------------------------------
# Issue / validate
# ---------------------------------------------------------------------------


class TestTokenRoundTrip:
    def test_scenario_id_42_role_user(self, credentials: CredentialService) -> None:
        token = credentials.generate_token(Identity(user_id=42, role="user"))
        claims = credentials.validate_token(token)
        assert claims["user_id"] == 42
        assert claims["role"] == "user"

    def test_compact_three_part_hs256(self, credentials: CredentialService) -> None:
        token = credentials.generate_token(Identity(user_id=1, role="defaultUser", username="alice"))
        assert token.count(".") == 2
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_claims_returned_unchanged(self, credentials: CredentialService) -> None:
        token = credentials.generate_token(Identity(user_id=7, role="defaultAdmin", username="root"))
        claims = credentials.validate_token(token)
        assert claims == jwt.get_unverified_claims(token)
        assert claims["sub"] == "root"
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    def test_lifetime_is_configurable(self) -> None:
        service = CredentialService(SECRET, token_lifetime=timedelta(minutes=5), bcrypt_rounds=4)
        claims = service.validate_token(service.generate_token(Identity(user_id=1, role="r")))
        assert claims["exp"] - claims["iat"] == 300

    def test_other_hmac_variants_accepted(self, credentials: CredentialService) -> None:
        token = jwt.encode({"user_id": 3, "role": "r", "exp": _future_exp()}, SECRET, algorithm="HS512")
        assert credentials.validate_token(token)["user_id"] == 3

    def test_from_settings_shares_configured_secret(self) -> None:
        settings = Settings(secret_key="s" * 40, bcrypt_rounds=4)
        issuer = CredentialService.from_settings(settings)
        verifier = CredentialService.from_settings(settings)
        token = issuer.generate_token(Identity(user_id=9, role="r"))
        assert verifier.validate_token(token)["user_id"] == 9

    def test_fresh_instances_do_not_share_secrets(self) -> None:
        issuer = CredentialService(bcrypt_rounds=4)
        verifier = CredentialService(bcrypt_rounds=4)
        token = issuer.generate_token(Identity(user_id=1, role="r"))
        with pytest.raises(SignatureInvalid):
            verifier.validate_token(token)

    def test_unusable_secret_is_signing_failure(self) -> None:
        """jose refuses PEM material as an HMAC key; that surfaces as SigningFailure."""
        service = CredentialService(b"-----BEGIN PUBLIC KEY-----" + b"x" * 16, bcrypt_rounds=4)
        with pytest.raises(SigningFailure):
            service.generate_token(Identity(user_id=1, role="r"))


class TestExpiry:
    def test_fast_forwarded_clock(self, credentials: CredentialService) -> None:
        """Signature valid, exp passed according to the service clock -> TokenExpired."""
        token = credentials.generate_token(Identity(user_id=1, role="r"))
        later = CredentialService(
            SECRET,
            bcrypt_rounds=4,
            clock=lambda: datetime.now(timezone.utc) + timedelta(hours=25),
        )
        with pytest.raises(TokenExpired):
            later.validate_token(token)

    def test_injected_expired_claim(self, credentials: CredentialService) -> None:
        past = int((datetime.now(timezone.utc) - timedelta(minutes=1)).timestamp())
        token = jwt.encode({"user_id": 1, "role": "r", "exp": past}, SECRET, algorithm="HS256")
        with pytest.raises(TokenExpired):
            credentials.validate_token(token)

    def test_issued_in_the_past_already_expired(self) -> None:
        stale = CredentialService(
            SECRET,
            bcrypt_rounds=4,
            clock=lambda: datetime.now(timezone.utc) - timedelta(days=2),
        )
        token = stale.generate_token(Identity(user_id=1, role="r"))
        with pytest.raises(TokenExpired):
            CredentialService(SECRET, bcrypt_rounds=4).validate_token(token)


class TestAlgorithmConfusion:
    def test_alg_none_rejected(self, credentials: CredentialService) -> None:
        header = _b64({"alg": "none", "typ": "JWT"})
        payload = _b64({"user_id": 1, "role": "defaultAdmin", "exp": _future_exp()})
        with pytest.raises(UnsupportedAlgorithm):
            credentials.validate_token(f"{header}.{payload}.")

    def test_asymmetric_alg_rejected(self, credentials: CredentialService) -> None:
        header = _b64({"alg": "RS256", "typ": "JWT"})
        payload = _b64({"user_id": 1, "role": "defaultAdmin", "exp": _future_exp()})
        with pytest.raises(UnsupportedAlgorithm) as excinfo:
            credentials.validate_token(f"{header}.{payload}.c2ln")
        assert excinfo.value.algorithm == "RS256"


class TestSignature:
    def test_signed_with_another_secret(self, credentials: CredentialService) -> None:
        token = jwt.encode({"user_id": 1, "role": "r", "exp": _future_exp()}, b"x" * 32, algorithm="HS256")
        with pytest.raises(SignatureInvalid):
            credentials.validate_token(token)

    def test_spliced_payload(self, credentials: CredentialService) -> None:
        """Swapping in an escalated payload breaks the MAC."""
        token = credentials.generate_token(Identity(user_id=1, role="defaultUser"))
        header, _payload, signature = token.split(".")
        forged = _b64({"user_id": 1, "role": "defaultAdmin", "exp": _future_exp()})
        with pytest.raises(SignatureInvalid):
            credentials.validate_token(f"{header}.{forged}.{signature}")

    def test_forged_expired_token_reports_signature(self, credentials: CredentialService) -> None:
        """The MAC is verified before expiry, so a forgery never learns about exp."""
        past = int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp())
        token = jwt.encode({"user_id": 1, "role": "r", "exp": past}, b"x" * 32, algorithm="HS256")
        with pytest.raises(SignatureInvalid):
            credentials.validate_token(token)


class TestMalformed:
    @pytest.mark.parametrize("token", ["", "not-a-token", "invalid.token.here", "a.b", "...."])
    def test_unreadable_strings(self, credentials: CredentialService, token: str) -> None:
        with pytest.raises(MalformedToken):
            credentials.validate_token(token)

    @pytest.mark.parametrize("missing", ["user_id", "role", "exp"])
    def test_missing_required_claim(self, credentials: CredentialService, missing: str) -> None:
        claims = {"user_id": 1, "role": "r", "exp": _future_exp()}
        del claims[missing]
        token = jwt.encode(claims, SECRET, algorithm="HS256")
        with pytest.raises(MalformedToken):
            credentials.validate_token(token)

    def test_non_numeric_exp(self, credentials: CredentialService) -> None:
        token = jwt.encode({"user_id": 1, "role": "r", "exp": "tomorrow"}, SECRET, algorithm="HS256")
        with pytest.raises(MalformedToken):
            credentials.validate_token(token)

    def test_non_integer_user_id(self, credentials: CredentialService) -> None:
        token = jwt.encode({"user_id": "42", "role": "r", "exp": _future_exp()}, SECRET, algorithm="HS256")
        with pytest.raises(MalformedToken):
            credentials.validate_token(token)
