"""
auth/accounts.py -- Account operations: register, authenticate, fetch, update.

Plain functions over a CredentialStore. They mediate between the store, the
password hasher and (in the route layer) the token codec, and they are the
only place where an AccountRecord is turned into an Account, so callers never
receive a password hash.

Every expected failure is raised as an auth.errors subclass. Store and bcrypt
faults are not caught here.

Emails are stripped and lower-cased before they reach the store, so
"Alice@Example.com" and "alice@example.com" are the same account.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from auth.errors import Conflict, InvalidCredentials, NotFound, ValidationError
from auth.models import DEFAULT_ROLES, Account, AccountRecord
from auth.passwords import equalize_timing, hash_password, verify_password
from auth.store import CredentialStore, DuplicateKeyError

logger = logging.getLogger("credgate.auth")


def normalize_email(email: str | None) -> str:
    normalized = (email or "").strip().lower()
    if not normalized:
        raise ValidationError("Email must not be empty.")
    if "@" not in normalized:
        raise ValidationError("Email must be a valid address.")
    return normalized


def normalize_roles(roles: Iterable[str] | None) -> frozenset[str]:
    """Return roles as a non-empty frozenset; None means the default {"user"}.

    Raises ValidationError for a bare string, a non-string member, a blank
    name, or an explicitly empty collection.
    """
    if roles is None:
        return DEFAULT_ROLES
    if isinstance(roles, str):
        raise ValidationError("Roles must be a list of strings.")
    result: set[str] = set()
    for role in roles:
        if not isinstance(role, str) or not role.strip():
            raise ValidationError("Roles must be a list of non-empty strings.")
        result.add(role.strip())
    if not result:
        raise ValidationError("Roles must not be empty.")
    return frozenset(result)


def register(
    store: CredentialStore,
    email: str,
    password: str,
    roles: Iterable[str] | None = None,
) -> Account:
    """Create a new account and return it.

    The existence check and the insert are two separate store calls. Two
    concurrent registrations for the same email can both pass the check; the
    store's unique email index rejects the second insert and it is reported
    as Conflict like any other duplicate.
    """
    email = normalize_email(email)
    role_set = normalize_roles(roles)
    if store.find_by_email(email) is not None:
        raise Conflict()

    record = AccountRecord(email=email, password_hash=hash_password(password), roles=role_set)
    try:
        record.id = store.insert(record)
    except DuplicateKeyError as exc:
        logger.info("Registration lost a uniqueness race for an existing email")
        raise Conflict() from exc

    logger.info("Account registered id=%s", record.id)
    return record.to_account()


def authenticate(store: CredentialStore, email: str, password: str) -> Account:
    """Return the account for a correct email/password pair.

    Unknown email and wrong password raise the same InvalidCredentials with
    the same message, and both run one bcrypt verification [C1].
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        equalize_timing(password)
        raise InvalidCredentials() from None

    record = store.find_by_email(email)
    if record is None:
        equalize_timing(password)
        raise InvalidCredentials()
    if not verify_password(password, record.password_hash):
        raise InvalidCredentials()
    return record.to_account()


def fetch_by_id(store: CredentialStore, account_id: str) -> Account:
    record = store.find_by_id(account_id)
    if record is None:
        raise NotFound()
    return record.to_account()


def update_profile(
    store: CredentialStore,
    account_id: str,
    email: str | None = None,
    password: str | None = None,
    roles: Iterable[str] | None = None,
) -> Account:
    """Apply the provided fields to an account and persist the merged record.

    Fields left as None are unchanged. A new password is re-hashed with a
    fresh salt. Moving to an email owned by another account raises Conflict.
    No optimistic locking: concurrent updates are last-write-wins.
    """
    record = store.find_by_id(account_id)
    if record is None:
        raise NotFound()

    if email is not None:
        new_email = normalize_email(email)
        if new_email != record.email:
            owner = store.find_by_email(new_email)
            if owner is not None and owner.id != account_id:
                raise Conflict("Email already in use.")
            record.email = new_email
    if password is not None:
        record.password_hash = hash_password(password)
    if roles is not None:
        record.roles = normalize_roles(roles)

    try:
        store.replace(account_id, record)
    except DuplicateKeyError as exc:
        raise Conflict("Email already in use.") from exc
    except KeyError as exc:
        raise NotFound() from exc

    logger.info("Account updated id=%s", account_id)
    return record.to_account()
