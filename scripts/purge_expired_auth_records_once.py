#!/usr/bin/env python3
"""One-shot sweep of expired sessions and pending verifications."""

from __future__ import annotations

import argparse
import time
from pathlib import Path

from dotenv import load_dotenv

from inventory_auth.auth.repository import AuthRepository
from inventory_auth.core.config import AppConfig
from inventory_auth.core.database import Database


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Delete expired sessions and pending verification codes."
    )
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
    database = Database(args.database or Path(config.storage.sqlite_path))
    try:
        removed = AuthRepository(database).purge_expired(int(time.time()))
    finally:
        database.close()
    print(f"Expired sessions removed: {removed['sessions']}")
    print(f"Expired pending verifications removed: {removed['pending_verifications']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
