#!/usr/bin/env python3
"""
Stockify administration commands.

Usage:
  python main.py create-admin --email admin@example.com --first-name Ada --last-name Lovelace
  python main.py purge-expired

create-admin seeds a role named "Admin" holding every permission (created if
missing) and a user assigned to it. The password is read from --password or,
if omitted, prompted for without echo.

purge-expired deletes session records and password-reset tokens whose expiry
has passed.

Environment variables:
  DATABASE_URL   Auth database URL. Defaults to the SQLite file beside auth/store.py.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.models import User
from auth.permissions import full_grid
from auth.service import validate_email, validate_password
from auth.store import AuthStore
from auth.tokens import hash_password
from core.config import get_settings
from core.errors import StockifyError

ADMIN_ROLE = "Admin"


def _open_store(db_url: Optional[str]) -> AuthStore:
    url = db_url or get_settings().database_url
    return AuthStore(url) if url else AuthStore()


def create_admin(
    store: AuthStore,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> int:
    """Create a full-permission admin user and return its ID.

    Reuses an existing "Admin" role; its grid is reset to full permissions so
    the new account can always manage roles and users.
    """
    validate_email(email)
    validate_password(password)
    role = store.get_role_by_name(ADMIN_ROLE)
    if role is None:
        role_id = store.create_role(ADMIN_ROLE, full_grid(), description="Full access to every module")
    else:
        role_id = role.id
        store.update_role(role_id, ADMIN_ROLE, full_grid())
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=hash_password(password),
        role_id=role_id,
    )
    return store.create_user_with_role(user)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="stockify",
        description="Stockify administration commands.",
    )
    parser.add_argument("--database-url", metavar="URL", help="Override DATABASE_URL for this command")
    sub = parser.add_subparsers(dest="command", required=True)

    admin = sub.add_parser("create-admin", help="Create a user holding the full-permission Admin role")
    admin.add_argument("--email", required=True)
    admin.add_argument("--first-name", required=True)
    admin.add_argument("--last-name", required=True)
    admin.add_argument("--password", help="Password (prompted for when omitted)")

    sub.add_parser("purge-expired", help="Delete expired session records and reset tokens")

    args = parser.parse_args(argv)
    store = _open_store(args.database_url)
    try:
        if args.command == "create-admin":
            password = args.password or getpass.getpass("Password: ")
            try:
                user_id = create_admin(store, args.email.strip(), password, args.first_name.strip(), args.last_name.strip())
            except StockifyError as exc:
                print(f"  [!] {exc.message}", file=sys.stderr)
                return 1
            print(f"Admin user created (id={user_id}).")
        else:
            sessions, resets = store.purge_expired()
            print(f"Purged {sessions} expired session(s) and {resets} expired reset token(s).")
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
