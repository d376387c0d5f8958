"""Shared SQLite connection with re-entrant write transactions."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Any, Iterator

from inventory_auth.core.migrations import apply_migrations

BUSY_TIMEOUT_SECONDS = 10.0


class Database:
    """SQLite handle shared by the repositories of one application instance.

    ``transaction()`` opens ``BEGIN IMMEDIATE`` so the write lock is taken
    before the first read; a count-then-write sequence inside one transaction
    cannot interleave with another writer, in this process or any other.
    Nested ``transaction()`` calls on the owning thread join the outer one.
    """

    def __init__(self, database_path: Path) -> None:
        apply_migrations(database_path)
        self.path = database_path
        self._connection = sqlite3.connect(
            str(database_path),
            check_same_thread=False,
            isolation_level=None,
            timeout=BUSY_TIMEOUT_SECONDS,
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed block atomically; roll back on any exception."""
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._connection.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self._connection
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._connection.execute("ROLLBACK")
                raise
            self._depth -= 1
            if outermost:
                self._connection.execute("COMMIT")

    def fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._connection.execute(sql, params).fetchone()

    def fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._connection.execute(sql, params).fetchall()

    def close(self) -> None:
        """Close SQLite resources."""
        with self._lock:
            self._connection.close()
