"""
auth/errors.py -- Expected-outcome exceptions for the auth core.

Every failure a caller can trigger with bad input (malformed request, duplicate
email, bad credentials, missing/invalid/expired token, missing role, unknown
account id) is an AuthError subclass. api/main.py maps AuthError to the
structured error envelope with the subclass's status code, so route handlers
never build error responses by hand.

Anything that is NOT an AuthError (store connectivity, bcrypt internals) is an
unexpected fault and propagates unmodified to the generic 500 handler.

Token failures are split into InvalidSignature and TokenExpired for logging
and tests; both subclass Unauthenticated and surface as the same 401.

Layer rule: stdlib only. No imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for expected, caller-visible auth outcomes."""

    code: str = "auth_error"
    status_code: int = 400
    default_message: str = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    code = "validation_error"
    status_code = 422
    default_message = "Invalid input."


class Conflict(AuthError):
    code = "conflict"
    status_code = 400
    default_message = "User already exists."


class Unauthenticated(AuthError):
    code = "unauthenticated"
    status_code = 401
    default_message = "Access denied. No token provided."


class InvalidCredentials(Unauthenticated):
    """Login failure. Same message for unknown email and wrong password."""

    code = "bad_credentials"
    status_code = 400
    default_message = "Invalid email or password."


class InvalidSignature(Unauthenticated):
    """Token is malformed, unsigned, signed with another key, or tampered with."""

    code = "invalid_token"
    default_message = "Access denied. Invalid token."


class TokenExpired(Unauthenticated):
    """Token signature is valid but the clock is past its expiry."""

    code = "token_expired"
    default_message = "Token expired."


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "Access denied. User does not have required roles."


class NotFound(AuthError):
    code = "not_found"
    status_code = 404
    default_message = "User not found."
