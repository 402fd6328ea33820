"""
auth/tokens.py -- Signed, time-bounded bearer tokens (JWT via python-jose).

Security design decisions:
  JWT: python-jose with HS256 (HS384/HS512 configurable). Tokens carry
       sub (account id), roles (sorted list), iat, exp and a random jti, so two
       tokens issued in the same second still differ. They are stateless:
       nothing is persisted, and the roles claim is a snapshot taken at issue
       time.

  Verification order: jose checks the signature before it looks at any claim,
       so a tampered token is always InvalidSignature -- never TokenExpired,
       and never a forged claim that reaches the role check.

  Failures raise InvalidSignature or TokenExpired (both Unauthenticated). The
       route layer collapses them into a single 401; the split exists for logs
       and tests.

  Secret and TTL: the codec is built once at startup from Settings and stored
       on app.state.token_codec. It holds no mutable state after construction.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidSignature, TokenExpired
from auth.models import Identity

if TYPE_CHECKING:
    from core.config import Settings


class TokenCodec:
    """Issues and verifies bearer tokens with a server-held symmetric secret.

    Usage:
        codec = TokenCodec.from_settings(get_settings())
        token = codec.issue(account.id, account.roles)
        identity = codec.verify(token)   # raises InvalidSignature / TokenExpired
    """

    def __init__(self, secret_key: str, ttl_seconds: int, algorithm: str = "HS256") -> None:
        if not secret_key:
            raise ValueError("secret_key must be non-empty")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        return cls(
            secret_key=settings.secret_key,
            ttl_seconds=settings.token_expire_seconds,
            algorithm=settings.jwt_algorithm,
        )

    def issue(self, account_id: str, roles: Iterable[str], issued_at: datetime | None = None) -> str:
        """Encode a signed token for account_id expiring ttl_seconds after issued_at.

        issued_at defaults to now (UTC). Passing an explicit value is only
        useful for tests that need a token that is already expired.
        """
        now = issued_at or datetime.now(timezone.utc)
        expire = now + timedelta(seconds=self.ttl_seconds)
        payload = {
            "sub": str(account_id),
            "roles": sorted(set(roles)),
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> Identity:
        """Decode and verify a token. Returns the Identity it carries.

        Raises:
            InvalidSignature: malformed, unsigned, wrongly signed or tampered
                token, or a signed token without usable sub/roles claims.
            TokenExpired: signature is valid but exp has passed.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise InvalidSignature() from exc

        sub = payload.get("sub")
        roles = payload.get("roles")
        if not isinstance(sub, str) or not sub:
            raise InvalidSignature("Access denied. Invalid token payload.")
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            raise InvalidSignature("Access denied. Invalid token payload.")
        return Identity(id=sub, roles=frozenset(roles))
