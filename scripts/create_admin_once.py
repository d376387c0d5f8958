#!/usr/bin/env python3
"""One-shot creation of an ADMIN account in the state database."""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

from dotenv import load_dotenv

from inventory_auth.api.errors import ApiError
from inventory_auth.audit.recorder import AuditLogRecorder
from inventory_auth.audit.repository import AuditRepository
from inventory_auth.auth.models import Role
from inventory_auth.auth.repository import AuthRepository
from inventory_auth.core.config import AppConfig
from inventory_auth.core.database import Database
from inventory_auth.core.logging import setup_logging
from inventory_auth.users.models import CreateUserRequest
from inventory_auth.users.service import UserService


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Create an admin account.")
    parser.add_argument("--email", required=True, help="Login email of the new admin.")
    parser.add_argument("--name", default=None, help="Optional display name.")
    parser.add_argument(
        "--database",
        type=Path,
        default=None,
        help="SQLite path; defaults to STATE_SQLITE_PATH.",
    )
    return parser.parse_args()


def main() -> int:
    load_dotenv()
    args = _parse_args()
    config = AppConfig.from_env()
    setup_logging(config.logging.level)

    password = getpass.getpass("Password: ")
    if not password or password != getpass.getpass("Repeat password: "):
        print("Passwords are empty or do not match.", file=sys.stderr)
        return 2

    database = Database(args.database or Path(config.storage.sqlite_path))
    try:
        service = UserService(
            repo=AuthRepository(database),
            audit=AuditLogRecorder(AuditRepository(database, config.storage)),
        )
        try:
            account = service.create_user(
                None,
                CreateUserRequest(
                    email=args.email, password=password, role=str(Role.ADMIN), name=args.name
                ),
            )
        except ApiError as exc:
            print(f"Failed: {exc.message}", file=sys.stderr)
            return 1
        print(f"Created admin {account.email} ({account.id})")
        return 0
    finally:
        database.close()


if __name__ == "__main__":
    raise SystemExit(main())
