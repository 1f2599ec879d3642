"""
api/main.py -- FastAPI application entry point for KeyGate.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan constructs the core services exactly once and hangs them on
app.state. Nothing in auth/ is a module-level singleton: a second app (or a
test) gets its own registry, its own signing secret, its own directory.

  app.state.settings        Settings
  app.state.registry        PermissionRegistry (seeded with the built-in roles)
  app.state.credentials     CredentialService
  app.state.user_directory  UserDirectory
  app.state.ids             SnowflakeIdGenerator
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.roles import router as roles_router
from auth.errors import (
    AuthError,
    HashingFailure,
    InvalidAction,
    InvalidResource,
    PasswordMismatch,
    PermissionDenied,
    RoleNotFound,
    SigningFailure,
    TokenError,
    UsernameTaken,
)
from auth.registry import PermissionRegistry, seed_default_roles
from auth.store import UserDirectory
from auth.tokens import CredentialService
from core.config import get_settings
from core.ids import SnowflakeIdGenerator

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("keygate.api")

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the core services for this app instance.

    Nothing is persisted, so there is nothing to close on shutdown: the
    registry, the directory and the signing secret simply go away.
    """
    settings = get_settings()
    logger.info("KeyGate API starting up")
    app.state.settings = settings
    app.state.registry = PermissionRegistry()
    seed_default_roles(app.state.registry)
    app.state.credentials = CredentialService.from_settings(settings)
    app.state.user_directory = UserDirectory()
    app.state.ids = SnowflakeIdGenerator(machine_id=settings.machine_id)
    logger.info(
        "Core initialized (roles=%s, token_lifetime=%ss, bcrypt_rounds=%d)",
        ",".join(app.state.registry.role_names()),
        settings.token_expire_seconds,
        settings.bcrypt_rounds,
    )

    yield

    logger.info("KeyGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="KeyGate API",
    description="Password credentials, signed bearer tokens and role-based permission checks.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(roles_router, prefix="/api/v1", tags=["Roles"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

# First match wins; order subclasses before their bases. A None message means
# str(exc) is safe to show (it names only caller-supplied values).
_AUTH_ERROR_MAP: list[tuple[type[AuthError], int, str, str | None]] = [
    (TokenError, 401, "unauthorized", "Authentication required."),
    (PasswordMismatch, 401, "bad_credentials", "Invalid username or password."),
    (PermissionDenied, 403, "permission_denied", None),
    (RoleNotFound, 404, "role_not_found", None),
    (InvalidResource, 422, "invalid_resource", None),
    (InvalidAction, 422, "invalid_action", None),
    (UsernameTaken, 409, "conflict", "A user with that username already exists."),
    (HashingFailure, 500, "internal_error", "An unexpected error occurred."),
    (SigningFailure, 500, "internal_error", "An unexpected error occurred."),
]


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate a typed core failure into the error envelope.

    Token failures collapse to one 401 whatever the reason; the reason is
    logged at DEBUG only. Hashing and signing failures are logged in full
    and reported as a generic 500.
    """
    for error_type, status_code, code, message in _AUTH_ERROR_MAP:
        if isinstance(exc, error_type):
            break
    else:
        status_code, code, message = 500, "internal_error", "An unexpected error occurred."

    if status_code >= 500:
        logger.error("Core failure on %s %s: %r", request.method, request.url.path, exc, exc_info=exc)
    else:
        logger.debug("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)

    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message or str(exc))).model_dump(),
    )
    if status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field -- str(dict) produces a Python repr, not JSON.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit and no authentication.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and whether the core services are wired."""
    state = request.app.state
    components = {
        "app": "ok",
        "registry": "ok" if getattr(state, "registry", None) is not None else "error",
        "credentials": "ok" if getattr(state, "credentials", None) is not None else "error",
    }
    return HealthResponse(version=VERSION, components=components)
