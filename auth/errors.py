"""
auth/errors.py -- Typed failures raised by the credential and authorization core.

Every failure the core can produce is a subclass of AuthError, so the
transport layer can register one exception handler per family. The core
raises these and never logs or retries; the immediate caller decides.

Disclosure rules:
  TokenError subclasses exist for diagnostics only. Callers must collapse the
  whole family into a single "unauthenticated" outcome.
  PasswordMismatch must be reported exactly like "unknown user".
  HashingFailure / SigningFailure are internal errors; their messages must
  never reach an end user.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure raised by auth/."""


# ---------------------------------------------------------------------------
# Domain input
# ---------------------------------------------------------------------------


class InvalidResource(AuthError):
    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"invalid resource type: {value}")


class InvalidAction(AuthError):
    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"invalid action type: {value}")


# ---------------------------------------------------------------------------
# Registry outcomes
# ---------------------------------------------------------------------------


class RoleNotFound(AuthError):
    def __init__(self, role_name: str) -> None:
        self.role_name = role_name
        super().__init__(f"role not found: {role_name}")


class PermissionDenied(AuthError):
    """A well-formed check that legitimately failed. A normal outcome, not a fault."""

    def __init__(self, role_name: str, resource: object, action: object) -> None:
        self.role_name = role_name
        self.resource = resource
        self.action = action
        super().__init__(f"permission denied for role {role_name} to {action} {resource}")


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class HashingFailure(AuthError):
    pass


class SigningFailure(AuthError):
    pass


class PasswordMismatch(AuthError):
    pass


class UsernameTaken(AuthError):
    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"username already registered: {username}")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    """Any reason a bearer token was not accepted."""


class MalformedToken(TokenError):
    pass


class UnsupportedAlgorithm(TokenError):
    def __init__(self, algorithm: object) -> None:
        self.algorithm = algorithm
        super().__init__(f"unexpected signing method: {algorithm}")


class SignatureInvalid(TokenError):
    pass


class TokenExpired(TokenError):
    pass
