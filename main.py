#!/usr/bin/env python3
"""
Konfetka shop API -- command-line entry point.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 5000 --reload
  python main.py create-user anna@example.com --name "Anna K."
  python main.py delete-user anna@example.com

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL of the accounts database.
  PORT           Default port for `serve` (5000 if unset).
"""

import argparse
import getpass
import sys

from auth.exceptions import DuplicateKey
from auth.models import User
from auth.store import UserStore
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    port = args.port if args.port is not None else get_settings().port
    uvicorn.run("asgi:app", host=args.host, port=port, reload=args.reload)
    return 0


def _open_store() -> UserStore:
    settings = get_settings()
    return UserStore(settings.database_url, bcrypt_rounds=settings.bcrypt_rounds)


def _create_user(args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1
    if len(password) < 8 or len(password.encode("utf-8")) > 72:
        print("  [!] Password must be 8 characters to 72 bytes long.")
        return 1

    store = _open_store()
    try:
        user = store.save(User(email=args.email, full_name=args.name, password=password))
    except DuplicateKey:
        print(f"  [!] An account for '{args.email}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created {user.email} (id {user.id})")
    return 0


def _delete_user(args: argparse.Namespace) -> int:
    store = _open_store()
    try:
        user = store.find_by_email(args.email)
        if user is None:
            print(f"  [!] No account for '{args.email}'.")
            return 1
        store.delete(user.id)
    finally:
        store.close()
    print(f"  Deleted {user.email}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Konfetka shop API")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=None, help="Defaults to PORT (5000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account (prompts for the password)")
    create.add_argument("email")
    create.add_argument("--name", default="", help="Full name")
    create.set_defaults(func=_create_user)

    delete = sub.add_parser("delete-user", help="Delete an account by email")
    delete.add_argument("email")
    delete.set_defaults(func=_delete_user)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
