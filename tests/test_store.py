"""Unit tests for auth/store.py -- AccountStore (SQLAlchemy Core, in-memory SQLite).

Covers:
- insert() assigns an opaque id returned as a plain record field
- find_by_email / find_by_id hit and miss
- the unique email index rejects duplicates on insert and replace
- ensure_unique_index() whitelist and idempotence
- replace() on an unknown id
- in-memory URLs share one connection across threads; file URLs keep a real pool
"""

import threading

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from auth.models import AccountRecord
from auth.store import AccountStore, DuplicateKeyError


def _record(email: str = "bob@example.com", roles=frozenset({"user"})) -> AccountRecord:
    return AccountRecord(email=email, password_hash="$2b$04$placeholderplaceholderplac", roles=roles)


def test_insert_assigns_id_and_find_returns_it(store):
    account_id = store.insert(_record())
    assert isinstance(account_id, str) and account_id

    by_email = store.find_by_email("bob@example.com")
    by_id = store.find_by_id(account_id)
    assert by_email is not None and by_id is not None
    assert by_email.id == by_id.id == account_id
    assert by_id.roles == frozenset({"user"})


def test_insert_ignores_caller_supplied_id(store):
    record = _record()
    record.id = "chosen-by-caller"
    account_id = store.insert(record)
    assert account_id != "chosen-by-caller"
    assert store.find_by_id("chosen-by-caller") is None


def test_ids_are_unique(store):
    first = store.insert(_record("one@example.com"))
    second = store.insert(_record("two@example.com"))
    assert first != second


def test_lookups_miss_return_none(store):
    assert store.find_by_email("nobody@example.com") is None
    assert store.find_by_id("does-not-exist") is None


def test_roles_round_trip_as_set(store):
    account_id = store.insert(_record(roles=frozenset({"admin", "user", "auditor"})))
    assert store.find_by_id(account_id).roles == frozenset({"admin", "user", "auditor"})


def test_duplicate_email_insert_raises(store):
    store.insert(_record())
    with pytest.raises(DuplicateKeyError):
        store.insert(_record())


def test_replace_updates_fields(store):
    account_id = store.insert(_record())
    store.replace(account_id, _record("robert@example.com", roles=frozenset({"admin"})))
    updated = store.find_by_id(account_id)
    assert updated.email == "robert@example.com"
    assert updated.roles == frozenset({"admin"})
    assert store.find_by_email("bob@example.com") is None


def test_replace_onto_taken_email_raises(store):
    store.insert(_record("taken@example.com"))
    account_id = store.insert(_record("free@example.com"))
    with pytest.raises(DuplicateKeyError):
        store.replace(account_id, _record("taken@example.com"))


def test_replace_unknown_id_raises_key_error(store):
    with pytest.raises(KeyError):
        store.replace("missing", _record())


def test_ensure_unique_index_is_idempotent(store):
    store.ensure_unique_index("email")
    store.ensure_unique_index("email")


def test_ensure_unique_index_rejects_unknown_field(store):
    with pytest.raises(ValueError):
        store.ensure_unique_index("password_hash; DROP TABLE accounts")


def test_without_index_duplicates_are_not_caught():
    """The lookup-then-insert race is only closed by the index; document that."""
    s = AccountStore("sqlite:///:memory:")
    try:
        s.insert(_record())
        s.insert(_record())
        with pytest.raises(IntegrityError):
            s.ensure_unique_index("email")
    finally:
        s.close()


@pytest.mark.parametrize(
    "url",
    ["sqlite:///:memory:", "sqlite:///file:store_pool_test?mode=memory&cache=shared&uri=true"],
)
def test_memory_urls_use_static_pool(url):
    s = AccountStore(url)
    try:
        assert isinstance(s.engine.pool, StaticPool)
    finally:
        s.close()


def test_file_url_keeps_default_pool(tmp_path):
    s = AccountStore(f"sqlite:///{tmp_path / 'accounts.db'}")
    try:
        assert not isinstance(s.engine.pool, StaticPool)
        account_id = s.insert(_record())
        assert s.find_by_id(account_id).email == "bob@example.com"
    finally:
        s.close()


def test_memory_store_is_visible_from_other_threads(store):
    account_id = store.insert(_record())
    found = []
    worker = threading.Thread(target=lambda: found.append(store.find_by_id(account_id)))
    worker.start()
    worker.join()
    assert found[0] is not None and found[0].id == account_id
