"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, token codec and
the account operations in auth/accounts.py do the work.

Account is what the rest of the system sees: it never carries the password
hash. AccountRecord is the store's shape and is the only type that does; it
must not cross into api/ response models.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_ROLES: frozenset[str] = frozenset({"user"})


@dataclass(frozen=True)
class Account:
    """An account as seen outside the store/hasher boundary.

    id is assigned by the store on insert and never changes afterwards.
    roles is a set: order is irrelevant and duplicates collapse.
    """

    id: str
    email: str
    roles: frozenset[str] = DEFAULT_ROLES


@dataclass
class AccountRecord:
    """One persisted credential record.

    id is None before the record is written to the store. password_hash is the
    opaque bcrypt string produced by auth.passwords.hash_password().
    """

    email: str
    password_hash: str
    roles: frozenset[str] = DEFAULT_ROLES
    id: str | None = None

    def to_account(self) -> Account:
        if self.id is None:
            raise ValueError("AccountRecord has no id; insert it before exposing it as an Account")
        return Account(id=self.id, email=self.email, roles=self.roles)


@dataclass(frozen=True)
class Identity:
    """Decoded claims of a verified bearer token.

    Attached to request.state.identity by auth.dependencies.RequireRoles.
    roles is the snapshot taken when the token was issued, not the current
    store value.
    """

    id: str
    roles: frozenset[str] = field(default_factory=frozenset)
