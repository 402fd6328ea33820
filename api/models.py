"""
API request and response models for credgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

No response model has a password or password_hash field. AccountResponse is
built from auth.models.Account, which does not carry one either.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account, Identity

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Loose shape check only; the address is never used to send mail.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt reads at most 72 bytes. auth.passwords enforces the byte limit;
# this character limit rejects obviously oversized input before hashing.
PASSWORD_MAX_LENGTH = 72


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /api/v1/auth/register and /api/v1/auth/login."""

    email: str = Field(min_length=3, max_length=320, pattern=EMAIL_PATTERN)
    # No whitespace stripping: a password is used exactly as sent.
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/auth. Omitted fields are left unchanged."""

    email: Optional[str] = Field(default=None, min_length=3, max_length=320, pattern=EMAIL_PATTERN)
    password: Optional[str] = Field(default=None, min_length=1, max_length=PASSWORD_MAX_LENGTH)


class RolesUpdate(BaseModel):
    """Request body for POST /api/v1/auth/roles/set/{account_id}."""

    roles: list[str] = Field(min_length=1, max_length=32)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public view of an account: id, email and roles only."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    roles: list[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(id=account.id, email=account.email, roles=sorted(account.roles))


class AuthResponse(BaseModel):
    """Response for a successful register or login."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    user: AccountResponse
    token: str


class AccountEnvelope(BaseModel):
    """Response wrapping a single account (profile update, admin lookups)."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    user: AccountResponse


class IdentityResponse(BaseModel):
    """Decoded identity of the caller's token."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    id: str
    roles: list[str]

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(id=identity.id, roles=sorted(identity.roles))


class StatusResponse(BaseModel):
    """Plain success acknowledgement."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    ok: bool = False
    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
