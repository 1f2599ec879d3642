#!/usr/bin/env python3
"""
KeyGate -- credential and role-based authorization service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py hash-password            # prompts; prints a bcrypt hash

Environment variables (see core/config.py for the full list):
  SECRET_KEY            HS256 signing key, >= 32 chars. Unset = random per process.
  TOKEN_EXPIRE_SECONDS  Token lifetime (default 86400).
  BCRYPT_ROUNDS         bcrypt cost factor (default 10).
"""

import argparse
import getpass
import sys

import uvicorn

from auth.errors import HashingFailure
from auth.tokens import CredentialService
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _hash_password(args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if not password:
        print("  [!] Password must not be empty.", file=sys.stderr)
        return 1
    if password != getpass.getpass("Repeat: "):
        print("  [!] Passwords do not match.", file=sys.stderr)
        return 1
    credentials = CredentialService.from_settings(get_settings())
    try:
        print(credentials.hash_password(password))
    except HashingFailure:
        print("  [!] Password could not be hashed (bcrypt accepts at most 72 bytes).", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="keygate",
        description="Credential and role-based authorization service.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_serve)

    hash_cmd = sub.add_parser("hash-password", help="Print a bcrypt hash for a password read from the terminal")
    hash_cmd.set_defaults(func=_hash_password)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
