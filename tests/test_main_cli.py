"""
tests/test_main_cli.py -- The credgate admin CLI in main.py.

_open_store is patched to a SQLite file under tmp_path, so commands never
touch the configured database.

Covers:
  - create-user with --password-stdin and repeated --role
  - create-user default role, duplicate email -> exit 1
  - set-roles on an existing and an unknown account
  - no command -> help and exit 2
"""

from __future__ import annotations

import io

import pytest

import main
from auth import accounts
from auth.store import AccountStore


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'cli.db'}"

    def open_store() -> AccountStore:
        store = AccountStore(url)
        store.ensure_unique_index("email")
        return store

    monkeypatch.setattr(main, "_open_store", open_store)
    return url


def _stdin(monkeypatch, text: str) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO(text))


def _lookup(db_url: str, email: str):
    store = AccountStore(db_url)
    try:
        return store.find_by_email(email)
    finally:
        store.close()


def test_create_user_with_roles(db_url, monkeypatch, capsys):
    _stdin(monkeypatch, "rootpass1\n")
    code = main.main(["create-user", "Root@Example.com", "--role", "admin", "--role", "user", "--password-stdin"])
    assert code == 0
    assert "Created root@example.com" in capsys.readouterr().out

    record = _lookup(db_url, "root@example.com")
    assert record.roles == frozenset({"admin", "user"})

    store = AccountStore(db_url)
    try:
        assert accounts.authenticate(store, "root@example.com", "rootpass1").id == record.id
    finally:
        store.close()


def test_create_user_default_role(db_url, monkeypatch):
    _stdin(monkeypatch, "secret1\n")
    assert main.main(["create-user", "plain@example.com", "--password-stdin"]) == 0
    assert _lookup(db_url, "plain@example.com").roles == frozenset({"user"})


def test_create_user_duplicate_fails(db_url, monkeypatch, capsys):
    _stdin(monkeypatch, "secret1\n")
    assert main.main(["create-user", "dup@example.com", "--password-stdin"]) == 0
    _stdin(monkeypatch, "secret1\n")
    assert main.main(["create-user", "dup@example.com", "--password-stdin"]) == 1
    assert "User already exists." in capsys.readouterr().out


def test_create_user_empty_password_fails(db_url, monkeypatch):
    _stdin(monkeypatch, "\n")
    assert main.main(["create-user", "empty@example.com", "--password-stdin"]) == 1
    assert _lookup(db_url, "empty@example.com") is None


def test_create_user_prompt_mismatch_fails(db_url, monkeypatch, capsys):
    answers = iter(["first-pass", "second-pass"])
    monkeypatch.setattr(main.getpass, "getpass", lambda prompt: next(answers))
    assert main.main(["create-user", "typo@example.com"]) == 1
    assert "Passwords do not match." in capsys.readouterr().out


def test_set_roles(db_url, monkeypatch, capsys):
    _stdin(monkeypatch, "secret1\n")
    main.main(["create-user", "promote@example.com", "--password-stdin"])
    account_id = _lookup(db_url, "promote@example.com").id

    assert main.main(["set-roles", account_id, "admin", "user"]) == 0
    assert "roles=admin, user" in capsys.readouterr().out
    assert _lookup(db_url, "promote@example.com").roles == frozenset({"admin", "user"})


def test_set_roles_unknown_account(db_url):
    assert main.main(["set-roles", "missing", "admin"]) == 1


def test_no_command_prints_help(capsys):
    assert main.main([]) == 2
    assert "create-user" in capsys.readouterr().out
