"""
auth/dependencies.py -- FastAPI Depends() helpers: token -> claims -> decision.

This is the single composition point between the two services:
  1. get_current_claims() pulls the token from "Authorization: Bearer <token>"
     and validates it with the CredentialService on app.state.
  2. require_permission(resource, action) feeds the role claim to the
     PermissionRegistry on app.state.

Routes never compare role strings themselves; they declare a
require_permission() dependency and the registry decides.

Every token failure (missing header, malformed, wrong alg, bad signature,
expired) becomes the same 401. The specific reason is logged at DEBUG for
diagnostics and never returned to the client.

Layer rule: may import from fastapi (Depends/HTTPException/Request) because
this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fastapi import Depends, HTTPException, Request

from auth.errors import PermissionDenied, RoleNotFound, TokenError
from auth.registry import PermissionRegistry
from auth.tokens import CredentialService
from core.models import ActionType, ResourceType

logger = logging.getLogger("keygate.auth")

_UNAUTHORIZED = {"code": "unauthorized", "message": "Authentication required."}
_FORBIDDEN = {"code": "forbidden", "message": "Insufficient permissions."}


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def get_current_claims(request: Request) -> dict[str, Any]:
    """Require a valid bearer token. Returns its claim set, raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: dict = Depends(get_current_claims)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail=_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    credentials: CredentialService = request.app.state.credentials
    try:
        return credentials.validate_token(token)
    except TokenError as exc:
        logger.debug("Rejected bearer token on %s: %s (%s)", request.url.path, type(exc).__name__, exc)
        raise HTTPException(
            status_code=401,
            detail=_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_permission(resource: ResourceType, action: ActionType) -> Callable[..., dict[str, Any]]:
    """Build a dependency that admits only roles granted (resource, action).

    Raises HTTP 401 if unauthenticated, HTTP 403 if the role is unknown to
    the registry or lacks the permission:
        @router.get("/admin/users")
        def route(claims: dict = Depends(require_permission(ResourceType.USER, ActionType.LIST))): ...
    """

    def _dependency(request: Request, claims: dict[str, Any] = Depends(get_current_claims)) -> dict[str, Any]:
        registry: PermissionRegistry = request.app.state.registry
        try:
            registry.check_permission(claims["role"], resource, action)
        except (PermissionDenied, RoleNotFound) as exc:
            logger.debug("Denied %s %s for role %r: %s", action, resource, claims["role"], exc)
            raise HTTPException(status_code=403, detail=_FORBIDDEN) from exc
        return claims

    return _dependency
