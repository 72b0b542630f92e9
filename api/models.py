"""
API request and response models for the Konfetka shop REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Nothing here ever exposes password_hash.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User

# bcrypt only looks at the first 72 bytes of a password (newer releases refuse
# longer input outright), so the limit is enforced on the encoded length.
_BCRYPT_MAX_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes when UTF-8 encoded.")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    The field is called username for client compatibility; its value is the
    account email. A blank username is not a validation error: it is just
    an unknown account, and login answers it with the usual 401.
    """

    username: str = Field(max_length=255)
    # Passwords are compared exactly as sent: no stripping.
    password: str = Field(min_length=1, max_length=255, json_schema_extra={"format": "password"})

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users."""

    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    full_name: str = Field(default="", max_length=255)
    password: str = Field(min_length=8, max_length=_BCRYPT_MAX_BYTES)

    @field_validator("email", "full_name", mode="before")
    @classmethod
    def strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class PasswordChangeRequest(BaseModel):
    """Request body for PUT /api/v1/users/me/password."""

    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=8, max_length=_BCRYPT_MAX_BYTES)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. password_hash is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    full_name: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, full_name=user.full_name, created_at=user.created_at)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorResponse(BaseModel):
    """Uniform error envelope returned by every exception handler.

    message is the human-readable text clients display ("Error: Not logged in");
    code is stable and meant for programmatic checks.
    """

    code: str
    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
