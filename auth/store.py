"""
auth/store.py -- Credential store contract and its SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper.
CredentialStore is the contract the account operations depend on; AccountStore
is the repository and _row_to_record is the mapper. Route and account code
never touches SQL directly.

Identifiers: insert() assigns an opaque uuid4 hex id and returns it. Every
record handed back by find_by_* carries that id as a plain field.

Uniqueness: ensure_unique_index("email") creates a UNIQUE index at setup time.
The account layer does a lookup-then-insert, which is not atomic on its own;
the index is what actually keeps one account per email when two registrations
race. A violation surfaces as DuplicateKeyError.

Concurrency: no client-side locking. Concurrent replace() calls on the same id
are last-write-wins.

Security:
  All queries use bound parameters. Index names are built only from the
  _INDEXABLE_FIELDS whitelist, never from caller input.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from auth.models import AccountRecord

# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class DuplicateKeyError(Exception):
    """A write violated a unique index (e.g. a second account for one email)."""


class CredentialStore(Protocol):
    """Opaque record store keyed by id, with a secondary unique email index."""

    def find_by_email(self, email: str) -> AccountRecord | None: ...

    def find_by_id(self, account_id: str) -> AccountRecord | None: ...

    def insert(self, record: AccountRecord) -> str: ...

    def replace(self, account_id: str, record: AccountRecord) -> None: ...

    def ensure_unique_index(self, field: str) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(320), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("roles", Text, nullable=False),  # JSON array, sorted
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    # email uniqueness comes from ensure_unique_index("email"), run at startup.
)

_INDEXABLE_FIELDS = {"email"}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_roles(roles) -> str:
    return json.dumps(sorted(set(roles)))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """SQLAlchemy Core implementation of CredentialStore.

    Usage:
        store = AccountStore("sqlite:///accounts.db")
        store.ensure_unique_index("email")
        account_id = store.insert(AccountRecord(email="a@example.com", password_hash=h))
        record = store.find_by_email("a@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
        in_memory = ":memory:" in db_url or "mode=memory" in db_url
        if in_memory:
            # One connection for every thread: the database lives only as long as it does.
            engine_args["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_args)
        if db_url.startswith("sqlite") and not in_memory:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ensure_unique_index(self, field: str) -> None:
        """Create a UNIQUE index on field if it does not exist yet. Setup time only.

        Raises ValueError for fields outside the whitelist, and
        IntegrityError if existing rows already violate uniqueness.
        """
        if field not in _INDEXABLE_FIELDS:
            raise ValueError(f"Cannot index unknown field: {field!r}")
        with self.engine.connect() as conn:
            conn.execute(text(f"CREATE UNIQUE INDEX IF NOT EXISTS uq_accounts_{field} ON accounts ({field})"))  # noqa: S608
            conn.commit()

    def find_by_email(self, email: str) -> AccountRecord | None:
        """Look up a record by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_record(row) if row is not None else None

    def find_by_id(self, account_id: str) -> AccountRecord | None:
        """Look up a record by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_record(row) if row is not None else None

    def insert(self, record: AccountRecord) -> str:
        """Insert a new record and return its assigned id.

        record.id is ignored; the store always assigns a fresh id.
        Raises DuplicateKeyError if the email is already taken.
        """
        account_id = uuid.uuid4().hex
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _accounts.insert().values(
                        id=account_id,
                        email=record.email,
                        password_hash=record.password_hash,
                        roles=_dump_roles(record.roles),
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKeyError(str(exc.orig)) from exc
        return account_id

    def replace(self, account_id: str, record: AccountRecord) -> None:
        """Overwrite the mutable fields of an existing record.

        Raises DuplicateKeyError if the new email belongs to another record,
        KeyError if account_id does not exist.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _accounts.update()
                    .where(_accounts.c.id == account_id)
                    .values(
                        email=record.email,
                        password_hash=record.password_hash,
                        roles=_dump_roles(record.roles),
                        updated_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKeyError(str(exc.orig)) from exc
        if result.rowcount == 0:
            raise KeyError(account_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> AccountRecord:
    return AccountRecord(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        roles=frozenset(json.loads(row.roles)),
    )
