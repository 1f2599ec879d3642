"""
api/routes/v1/auth.py -- Registration, login and account endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account; returns a token (public)
  POST /api/v1/auth/login      -- password login; returns a token (public, rate limited)
  GET  /api/v1/auth/me         -- identity carried by the caller's token
  GET  /api/v1/admin/users     -- list accounts (requires user:list)

Security:
  [H2] POST /login is rate-limited per client address (LOGIN_RATE_LIMIT).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every response that carries a token.
  Login failures are one generic 401 for unknown user, wrong password and
  inactive account alike.

Bootstrap: the first account ever registered receives ADMIN_ROLE; every later
account receives DEFAULT_ROLE. The directory decides "first" atomically.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, RegisterRequest, RegisterResponse, UserResponse
from auth.dependencies import get_current_claims, require_permission
from auth.errors import PasswordMismatch
from auth.models import User
from auth.store import UserDirectory, authenticate_user
from auth.tokens import CredentialService
from core.config import get_settings
from core.ids import IdGenerator
from core.models import ActionType, Identity, ResourceType

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - GET  /api/v1/auth/me:       requires a valid token (get_current_claims)
# - GET  /api/v1/admin/users:   requires user:list (require_permission)
router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return a signed token for it.

    Hashing runs before the directory lock is taken. UsernameTaken (409) and
    HashingFailure (500) are turned into responses by the exception handlers
    in api/main.py.
    """
    settings = request.app.state.settings
    credentials: CredentialService = request.app.state.credentials
    directory: UserDirectory = request.app.state.user_directory
    ids: IdGenerator = request.app.state.ids

    hashed = credentials.hash_password(body.password)
    user = directory.create_user(
        User(
            id=ids.next_id(),
            username=body.username,
            email=body.email,
            hashed_password=hashed,
            role=settings.default_role,
        ),
        first_user_role=settings.admin_role,
    )
    token = credentials.generate_token(Identity(user_id=user.id, role=user.role, username=user.username))

    resp = JSONResponse(
        status_code=201,
        content=RegisterResponse(token=token, user=_user_to_response(user)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@limiter.limit(_login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a bearer token.

    Uses authenticate_user() which includes timing equalization [C1].
    """
    credentials: CredentialService = request.app.state.credentials
    directory: UserDirectory = request.app.state.user_directory

    try:
        user = authenticate_user(directory, credentials, body.username, body.password)
    except PasswordMismatch:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    token = credentials.generate_token(Identity(user_id=user.id, role=user.role, username=user.username))
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=int(credentials.token_lifetime.total_seconds()),
            role=user.role,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(claims: dict[str, Any] = Depends(get_current_claims)) -> MeResponse:
    """Return the identity carried by the caller's token."""
    return MeResponse(
        user_id=claims["user_id"],
        username=claims.get("sub", ""),
        role=claims["role"],
        expires_at=claims["exp"],
    )


@router.get("/admin/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    claims: dict[str, Any] = Depends(require_permission(ResourceType.USER, ActionType.LIST)),
) -> list[UserResponse]:
    """List every registered account. Password hashes are never returned."""
    directory: UserDirectory = request.app.state.user_directory
    return [_user_to_response(u) for u in directory.list_users()]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        created_at=user.created_at or "",
        is_active=user.is_active,
    )
