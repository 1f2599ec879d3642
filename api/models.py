"""
API request and response models for KeyGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

Permission resource/action fields are plain strings on purpose: the
PermissionRegistry is the only component that validates vocabulary, and it
reports invalid values as InvalidResource / InvalidAction (mapped to 422).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models import RoleType

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: deliverability is not our concern, shape is.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9_.@-]+$"
BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    bcrypt only accepts 72 bytes of input. max_length counts characters, so
    the encoded length is checked separately and multi-byte passwords that
    overflow are rejected here (422) instead of failing inside bcrypt.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=64, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=8, max_length=BCRYPT_MAX_BYTES)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded")
        return value


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=72)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    created_at: str
    is_active: bool = True


class RegisterResponse(BaseModel):
    token: str
    user: UserResponse


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    role: str


class MeResponse(BaseModel):
    """Identity as carried by the caller's token -- not re-read from the directory."""

    user_id: int
    username: str
    role: str
    expires_at: int


# ---------------------------------------------------------------------------
# Roles and permissions
# ---------------------------------------------------------------------------


class PermissionBody(BaseModel):
    resource: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    description: str = Field(default="", max_length=255)


class RoleBody(BaseModel):
    """Request body for PUT /api/v1/roles/{name}. Replaces the whole role."""

    type: RoleType = RoleType.USER
    description: str = Field(default="", max_length=255)
    permissions: list[PermissionBody] = Field(default_factory=list, max_length=200)


class RoleResponse(BaseModel):
    name: str
    permissions: list[PermissionBody]


class PermissionCheckRequest(BaseModel):
    resource: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)


class PermissionCheckResponse(BaseModel):
    role: str
    resource: str
    action: str
    allowed: bool


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Structured error body. code is machine-readable, message is for humans."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope returned by every exception handler."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Liveness payload for GET /api/v1/health."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
