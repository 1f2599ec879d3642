"""
auth/tokens.py -- Password hashing and signed bearer tokens.

Security design decisions:
  JWT: python-jose, HS256 on issue. Validation accepts only the HMAC family
       (HS256/HS384/HS512). The header's alg is inspected *before* any
       verification, so "none" or an asymmetric alg (RS256 with the HMAC
       secret used as a "public key") is rejected as UnsupportedAlgorithm
       rather than reaching the codec [algorithm confusion].

  Expiry: jose enforces exp during decode; validate_token checks it again
       against the service clock. The second check is what makes an injected
       clock (tests, or a caller with its own time source) authoritative.

  Passwords: bcrypt used directly (no passlib wrapper). The encoded hash
       carries its own salt and cost, so verification needs nothing else.
       dummy_hash supports timing equalization in authenticate_user() so the
       response time does not reveal whether a username exists.

  Secret: 32 random bytes from secrets.token_bytes(), drawn once per
       CredentialService instance and held only in memory. One instance must
       both issue and validate; a new instance invalidates every token the
       previous one issued.

No module-level state: construct a CredentialService and pass it to whoever
needs it. Settings are read only by from_settings().

Layer rule: no imports from api/.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError, JWTClaimsError, JWTError

from auth.errors import (
    HashingFailure,
    MalformedToken,
    PasswordMismatch,
    SignatureInvalid,
    SigningFailure,
    TokenExpired,
    UnsupportedAlgorithm,
)
from core.config import Settings
from core.models import Identity

_ALGORITHM = "HS256"
_HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
_SECRET_BYTES = 32
_DEFAULT_LIFETIME = timedelta(hours=24)
_DEFAULT_ROUNDS = 10
_REQUIRED_CLAIMS = ("user_id", "role", "exp")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialService:
    """Stateless except for its signing secret.

    Usage:
        credentials = CredentialService()
        hashed = credentials.hash_password("s3cret")
        credentials.compare_passwords(hashed, "s3cret")        # None, or raises PasswordMismatch
        token = credentials.generate_token(Identity(user_id=42, role="defaultUser"))
        claims = credentials.validate_token(token)            # {"user_id": 42, "role": ..., ...}
    """

    def __init__(
        self,
        secret: bytes | None = None,
        *,
        token_lifetime: timedelta = _DEFAULT_LIFETIME,
        bcrypt_rounds: int = _DEFAULT_ROUNDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret = secret if secret is not None else secrets.token_bytes(_SECRET_BYTES)
        self.token_lifetime = token_lifetime
        self._rounds = bcrypt_rounds
        self._clock = clock
        self._dummy_hash: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialService:
        secret = settings.secret_key.encode("utf-8") if settings.secret_key else None
        return cls(
            secret,
            token_lifetime=timedelta(seconds=settings.token_expire_seconds),
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def hash_password(self, plain: str) -> str:
        """Return a salted bcrypt hash of plain.

        bcrypt refuses (or, in older releases, truncates) inputs longer than
        72 bytes. The API layer caps password length; anything bcrypt still
        rejects surfaces as HashingFailure.
        """
        try:
            hashed = bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        except ValueError as exc:
            raise HashingFailure("password hashing failed") from exc
        return hashed.decode("utf-8")

    def compare_passwords(self, hashed: str, plain: str) -> None:
        """Raise PasswordMismatch unless plain matches hashed.

        An unreadable hash is reported the same way as a wrong password.
        """
        try:
            matched = bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as exc:
            raise PasswordMismatch() from exc
        if not matched:
            raise PasswordMismatch()

    @property
    def dummy_hash(self) -> str:
        """A throwaway hash at this instance's cost, for timing equalization."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash_password(secrets.token_urlsafe(16))
        return self._dummy_hash

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def generate_token(self, identity: Identity) -> str:
        """Sign a claim set for identity, valid for token_lifetime from now."""
        issued_at = self._clock()
        payload = {
            "sub": identity.username,
            "user_id": identity.user_id,
            "role": identity.role,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.token_lifetime).timestamp()),
        }
        # jose reports signing problems as JWSError/JWKError, not JWTError.
        try:
            return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
        except JOSEError as exc:
            raise SigningFailure("token signing failed") from exc

    def validate_token(self, token: str) -> dict[str, Any]:
        """Verify token and return its claims unchanged.

        Raises MalformedToken, UnsupportedAlgorithm, SignatureInvalid or
        TokenExpired. Callers must treat all four as "unauthenticated".
        """
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken("token could not be decoded") from exc

        algorithm = header.get("alg")
        if algorithm not in _HMAC_ALGORITHMS:
            raise UnsupportedAlgorithm(algorithm)

        try:
            claims = jwt.decode(token, self._secret, algorithms=list(_HMAC_ALGORITHMS))
        except ExpiredSignatureError as exc:
            raise TokenExpired("token has expired") from exc
        except JWTClaimsError as exc:
            raise MalformedToken(str(exc)) from exc
        except JWTError as exc:
            raise SignatureInvalid("signature verification failed") from exc

        for name in _REQUIRED_CLAIMS:
            if name not in claims:
                raise MalformedToken(f"missing claim: {name}")
        if not isinstance(claims["user_id"], int) or not isinstance(claims["role"], str):
            raise MalformedToken("ill-typed identity claims")
        if not isinstance(claims["exp"], (int, float)):
            raise MalformedToken("exp must be a numeric timestamp")

        if self._clock().timestamp() > claims["exp"]:
            raise TokenExpired("token has expired")
        return claims
