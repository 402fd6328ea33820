#!/usr/bin/env python3
"""
credgate -- account administration and server launcher.

Role changes over HTTP require an admin token, so the first admin has to be
created here, directly against the configured store.

Usage:
  python main.py create-user admin@example.com --role admin --role user
  echo "$PASSWORD" | python main.py create-user ops@example.com --password-stdin
  python main.py set-roles 3f2a9c... admin user
  python main.py serve --host 0.0.0.0 --port 8000

Environment variables:
  SECRET_KEY     Signing key for tokens (>= 32 chars). Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL of the account store. Defaults to a local SQLite file.
  See core/config.py for the full list.
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth import accounts
from auth.errors import AuthError
from auth.store import AccountStore
from core.config import get_settings


def _open_store() -> AccountStore:
    store = AccountStore(get_settings().database_url)
    store.ensure_unique_index("email")
    return store


def _read_password(from_stdin: bool) -> str:
    """Read a password from stdin (one line) or prompt twice on the terminal."""
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        raise AuthError("Passwords do not match.")
    return first


def _cmd_create_user(args: argparse.Namespace) -> int:
    password = _read_password(args.password_stdin)
    store = _open_store()
    try:
        account = accounts.register(store, args.email, password, roles=args.role or None)
    finally:
        store.close()
    print(f"  Created {account.email} (id={account.id}, roles={', '.join(sorted(account.roles))})")
    return 0


def _cmd_set_roles(args: argparse.Namespace) -> int:
    store = _open_store()
    try:
        account = accounts.update_profile(store, args.account_id, roles=args.roles)
    finally:
        store.close()
    print(f"  Updated {account.email}: roles={', '.join(sorted(account.roles))}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="credgate",
        description="Account administration for the credgate auth service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user admin@example.com --role admin
  python main.py set-roles 3f2a9c... admin user
  python main.py serve --port 8000
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create an account (prompts for the password)")
    create.add_argument("email", help="Login email of the new account")
    create.add_argument(
        "--role",
        action="append",
        metavar="ROLE",
        help="Role to grant; repeat for several (default: user)",
    )
    create.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )
    create.set_defaults(func=_cmd_create_user)

    roles = sub.add_parser("set-roles", help="Replace the roles of an existing account")
    roles.add_argument("account_id", help="Account id as returned by create-user or the API")
    roles.add_argument("roles", nargs="+", metavar="ROLE", help="New role set")
    roles.set_defaults(func=_cmd_set_roles)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)-5s %(name)s %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 2

    try:
        return args.func(args)
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
