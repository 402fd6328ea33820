"""
api/routes/v1/auth.py -- Registration, login and account REST endpoints.

Routes:
  POST /api/v1/auth/register                -- create account; returns token (201)
  POST /api/v1/auth/login                   -- password login; returns token (200)
  GET  /api/v1/auth/authorized              -- token presence probe (no verification)
  GET  /api/v1/auth/user                    -- decoded identity (requires valid token)
  PUT  /api/v1/auth                         -- update own email/password (requires valid token)
  GET  /api/v1/auth/users/{account_id}      -- fetch an account (admin only)
  POST /api/v1/auth/roles/set/{account_id}  -- replace an account's roles (admin only)

Security:
  [H2] register and login are rate-limited per IP (Settings.login_rate_limit).
  [C1] accounts.authenticate() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every response that carries a token.
  Roles are only writable through the admin route; PUT /auth ignores them so
  a user cannot grant themselves roles.

Every failure is raised as an auth.errors exception and rendered by the
AuthError handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import credential_limit, limiter
from api.models import (
    AccountEnvelope,
    AccountResponse,
    AuthResponse,
    CredentialsRequest,
    IdentityResponse,
    ProfileUpdate,
    RolesUpdate,
    StatusResponse,
)
from auth import accounts
from auth.dependencies import get_current_identity, has_token, require_admin
from auth.errors import Unauthenticated
from auth.models import Account, Identity
from auth.store import CredentialStore
from auth.tokens import TokenCodec

# Auth policy:
# - POST /api/v1/auth/register:            public
# - POST /api/v1/auth/login:               public
# - GET  /api/v1/auth/authorized:          public probe -- only checks that a token header exists
# - GET  /api/v1/auth/user:                any valid token (get_current_identity)
# - PUT  /api/v1/auth:                     any valid token (get_current_identity)
# - GET  /api/v1/auth/users/{id}:          requires admin (require_admin)
# - POST /api/v1/auth/roles/set/{id}:      requires admin (require_admin)
router = APIRouter()


def _store(request: Request) -> CredentialStore:
    return request.app.state.account_store


def _token_response(status_code: int, account: Account, codec: TokenCodec) -> JSONResponse:
    token = codec.issue(account.id, account.roles)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(user=AccountResponse.from_account(account), token=token).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


# [H2] @router stays outermost so FastAPI registers the rate-limited wrapper.
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(credential_limit)
def register(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Create an account with the default "user" role and return a token.

    A duplicate email is answered with 400 "User already exists." -- the
    same response whether the duplicate was caught by the lookup or by the
    store's unique index.
    """
    account = accounts.register(_store(request), body.email, body.password)
    return _token_response(201, account, request.app.state.token_codec)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(credential_limit)  # [H2]
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Authenticate with email and password; return a fresh token.

    Wrong email and wrong password both produce 400 "Invalid email or
    password." so the response never reveals which emails are registered.
    """
    account = accounts.authenticate(_store(request), body.email, body.password)
    return _token_response(200, account, request.app.state.token_codec)


@router.get("/auth/authorized", response_model=StatusResponse)
async def authorized(request: Request) -> StatusResponse:
    """Report whether the request carries a token header.

    Lightweight probe: the token is NOT decoded or verified here. Use
    GET /auth/user for a verified identity.
    """
    if not has_token(request):
        raise Unauthenticated()
    return StatusResponse(message="Authorized")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/user", response_model=IdentityResponse)
async def current_user(identity: Identity = Depends(get_current_identity)) -> IdentityResponse:
    """Return the identity decoded from the caller's token."""
    return IdentityResponse.from_identity(identity)


@router.put("/auth", response_model=AccountEnvelope)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
) -> AccountEnvelope:
    """Change the caller's own email and/or password.

    Tokens already issued stay valid until they expire; the roles claim in
    them is unaffected since roles cannot change through this route.
    """
    account = accounts.update_profile(
        _store(request),
        identity.id,
        email=body.email,
        password=body.password,
    )
    return AccountEnvelope(user=AccountResponse.from_account(account))


# ---------------------------------------------------------------------------
# Account administration (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users/{account_id}", response_model=AccountEnvelope)
def get_account(
    request: Request,
    account_id: str,
    identity: Identity = Depends(require_admin),
) -> AccountEnvelope:
    """Fetch one account by id. 404 if it does not exist."""
    account = accounts.fetch_by_id(_store(request), account_id)
    return AccountEnvelope(user=AccountResponse.from_account(account))


@router.post("/auth/roles/set/{account_id}", response_model=AccountEnvelope)
def set_roles(
    request: Request,
    account_id: str,
    body: RolesUpdate,
    identity: Identity = Depends(require_admin),
) -> AccountEnvelope:
    """Replace the role set of an account. Admin only.

    The change applies to tokens issued afterwards; existing tokens keep
    their role snapshot until they expire.
    """
    account = accounts.update_profile(_store(request), account_id, roles=body.roles)
    return AccountEnvelope(user=AccountResponse.from_account(account))
