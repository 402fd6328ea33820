"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer-token authorization.

One request walks this state machine:

  no token header        -> Unauthenticated (401), token never decoded
  token present          -> TokenCodec.verify()
    bad/tampered token   -> InvalidSignature (401)
    expired token        -> TokenExpired (401)
  verified               -> role check (if configured)
    missing a role       -> Forbidden (403)
    all roles present    -> Identity attached to request.state.identity

The required-role set is captured when RequireRoles is constructed -- at route
registration time -- and validated there, so a malformed configuration fails
at import rather than on the first request. Role matching is conjunctive: the
token must carry every required role (subset check, extra roles are fine).

The token is read from the X-Auth-Token header and must be sent verbatim.

Layer rule: may import from fastapi (Request) because this module is part of
the FastAPI dependency injection system. No imports from api/.
"""

import logging
from collections.abc import Iterable

from fastapi import Request

from auth.errors import Forbidden, InvalidSignature, TokenExpired, Unauthenticated
from auth.models import Identity
from auth.tokens import TokenCodec

logger = logging.getLogger("credgate.auth")

TOKEN_HEADER = "X-Auth-Token"


def get_token(request: Request) -> str | None:
    """Return the raw token from the request header, or None if absent/blank."""
    token = request.headers.get(TOKEN_HEADER, "").strip()
    return token or None


def has_token(request: Request) -> bool:
    """Presence probe: True if a token header is sent. Does not verify it."""
    return get_token(request) is not None


class RequireRoles:
    """Dependency that authenticates the request and enforces a role set.

    Use as a FastAPI dependency:
        require_editor = RequireRoles({"editor"})

        @router.post("/articles")
        def route(identity: Identity = Depends(require_editor)): ...

    RequireRoles() with no roles (or an empty set) admits any caller with a
    valid token.
    """

    def __init__(self, roles: Iterable[str] | None = None) -> None:
        if roles is None:
            self.required: frozenset[str] = frozenset()
            return
        if isinstance(roles, (str, bytes)) or not isinstance(roles, Iterable):
            raise TypeError("Roles must be a collection of strings")
        roles = list(roles)
        if not all(isinstance(role, str) for role in roles):
            raise TypeError("Roles must be a collection of strings")
        self.required = frozenset(roles)

    def __repr__(self) -> str:
        return f"RequireRoles({sorted(self.required)!r})"

    def __call__(self, request: Request) -> Identity:
        token = get_token(request)
        if token is None:
            logger.info("Auth rejected reason=missing_token path=%s", request.url.path)
            raise Unauthenticated()

        codec: TokenCodec = request.app.state.token_codec
        try:
            identity = codec.verify(token)
        except TokenExpired:
            logger.info("Auth rejected reason=token_expired path=%s", request.url.path)
            raise
        except InvalidSignature:
            logger.info("Auth rejected reason=invalid_signature path=%s", request.url.path)
            raise

        missing = self.required - identity.roles
        if missing:
            logger.info(
                "Auth rejected reason=forbidden path=%s account=%s missing=%s",
                request.url.path,
                identity.id,
                sorted(missing),
            )
            raise Forbidden()

        request.state.identity = identity
        return identity


get_current_identity = RequireRoles()
require_admin = RequireRoles({"admin"})
