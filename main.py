#!/usr/bin/env python3
"""
shopgate -- account and session administration from the command line.

Usage:
  python main.py register --name "Ann Example" --email ann@example.com
  python main.py revoke ann@example.com
  python main.py purge-tokens

register prompts for the password (never pass it as an argument: it would end
up in shell history). revoke drops every active session of an account, which
logs it out of the API immediately. purge-tokens deletes token rows that are
past the token lifetime; the server also does this periodically.

Environment variables are read through core/config.py (SECRET_KEY,
DATABASE_URL, ...).
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth.errors import EmailAlreadyRegistered
from auth.service import AuthService, normalize_email
from auth.store import CredentialStore, TokenStore
from auth.tokens import TokenCodec
from core.config import get_settings


def build_service(db_url: Optional[str] = None) -> AuthService:
    settings = get_settings()
    db_url = db_url or settings.database_url
    return AuthService(TokenCodec.from_settings(settings), CredentialStore(db_url), TokenStore(db_url))


def cmd_register(service: AuthService, name: str, email: str, password: str) -> int:
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return 1
    try:
        account = service.register(name, email, password)
    except EmailAlreadyRegistered:
        print(f"  [!] {normalize_email(email)} is already registered.")
        return 1
    print(f"  Registered {account.email} ({account.id})")
    return 0


def cmd_revoke(service: AuthService, email: str) -> int:
    account = service.accounts.get_by_email(normalize_email(email))
    if account is None:
        print(f"  [!] No account for {normalize_email(email)}.")
        return 1
    removed = service.revoke_all(account.id)
    print(f"  Revoked {removed} session(s) for {account.email}")
    return 0


def cmd_purge(service: AuthService) -> int:
    removed = service.purge_expired_tokens()
    print(f"  Purged {removed} expired session token(s)")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shopgate", description="Account and session administration.")
    parser.add_argument("--db-url", help="Override DATABASE_URL for this run.")
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="Create an account (prompts for the password).")
    register.add_argument("--name", required=True)
    register.add_argument("--email", required=True)

    revoke = sub.add_parser("revoke", help="Drop every active session of an account.")
    revoke.add_argument("email")

    sub.add_parser("purge-tokens", help="Delete session tokens past their lifetime.")
    return parser


def main(argv: Optional[list[str]] = None, service: Optional[AuthService] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s %(message)s")
    args = _build_parser().parse_args(argv)
    owns_service = service is None
    service = service or build_service(args.db_url)
    try:
        if args.command == "register":
            password = getpass.getpass("Password: ")
            return cmd_register(service, args.name, args.email, password)
        if args.command == "revoke":
            return cmd_revoke(service, args.email)
        return cmd_purge(service)
    finally:
        # A service passed in by the caller stays open; the caller owns it.
        if owns_service:
            service.tokens.close()
            service.accounts.close()


if __name__ == "__main__":
    sys.exit(main())
