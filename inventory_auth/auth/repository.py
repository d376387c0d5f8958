"""SQLite repository for accounts, sessions and pending verifications."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator

from inventory_auth.auth.models import Account, PendingVerification, Role, SessionRecord
from inventory_auth.core.database import Database

_ACCOUNT_COLUMNS = (
    "id, email, password_hash, role, is_active, name, last_login_at, created_at, updated_at"
)
_UPDATABLE_ACCOUNT_FIELDS = {"email", "password_hash", "role", "is_active", "name"}


def _account_from_row(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        is_active=bool(row["is_active"]),
        name=row["name"],
        last_login_at=row["last_login_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class AuthRepository:
    """Data access for the authentication tables.

    Every method runs inside ``Database.transaction()``; callers wrap several
    calls in ``transaction()`` to make them one atomic unit.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._db.transaction():
            yield

    # Accounts

    def get_account(self, account_id: str) -> Account | None:
        row = self._db.fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?", (account_id,)
        )
        return _account_from_row(row) if row else None

    def get_account_by_email(self, email: str) -> Account | None:
        """Exact, case-sensitive lookup by email."""
        row = self._db.fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = ?", (email,)
        )
        return _account_from_row(row) if row else None

    def get_accounts_by_ids(self, account_ids: list[str]) -> dict[str, Account]:
        if not account_ids:
            return {}
        placeholders = ", ".join("?" for _ in account_ids)
        rows = self._db.fetch_all(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id IN ({placeholders})",
            tuple(account_ids),
        )
        return {row["id"]: _account_from_row(row) for row in rows}

    def list_accounts(self, *, search: str = "", include_inactive: bool = False) -> list[Account]:
        clauses: list[str] = []
        params: list[Any] = []
        if search:
            pattern = f"%{_escape_like(search)}%"
            clauses.append("(email LIKE ? ESCAPE '\\' OR name LIKE ? ESCAPE '\\')")
            params.extend([pattern, pattern])
        if not include_inactive:
            clauses.append("is_active = 1")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._db.fetch_all(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts {where} ORDER BY created_at DESC, id",
            tuple(params),
        )
        return [_account_from_row(row) for row in rows]

    def insert_account(self, account: Account) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                f"INSERT INTO accounts({_ACCOUNT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    account.id,
                    account.email,
                    account.password_hash,
                    str(account.role),
                    int(account.is_active),
                    account.name,
                    account.last_login_at,
                    account.created_at,
                    account.updated_at,
                ),
            )

    def update_account(self, account_id: str, *, updated_at: int, **fields: Any) -> None:
        """Apply column updates; unknown field names raise ``ValueError``."""
        unknown = set(fields) - _UPDATABLE_ACCOUNT_FIELDS
        if unknown:
            raise ValueError(f"Unsupported account fields: {sorted(unknown)}")
        values = dict(fields)
        if "role" in values:
            values["role"] = str(Role(values["role"]))
        if "is_active" in values:
            values["is_active"] = int(bool(values["is_active"]))
        values["updated_at"] = updated_at
        assignments = ", ".join(f"{column} = ?" for column in values)
        with self._db.transaction() as conn:
            conn.execute(
                f"UPDATE accounts SET {assignments} WHERE id = ?",
                (*values.values(), account_id),
            )

    def record_login(self, account_id: str, logged_in_at: int) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                "UPDATE accounts SET last_login_at = ? WHERE id = ?",
                (logged_in_at, account_id),
            )

    def delete_account(self, account_id: str) -> bool:
        with self._db.transaction() as conn:
            cursor = conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
            return cursor.rowcount > 0

    def count_active_admins(self, *, exclude_account_id: str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM accounts WHERE role = ? AND is_active = 1"
        params: tuple[Any, ...] = (str(Role.ADMIN),)
        if exclude_account_id is not None:
            sql += " AND id != ?"
            params = (*params, exclude_account_id)
        with self._db.transaction() as conn:
            return int(conn.execute(sql, params).fetchone()[0])

    # Pending verifications

    def delete_unconsumed_verifications(self, email: str) -> int:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM pending_verifications WHERE email = ? AND used_at IS NULL",
                (email,),
            )
            return cursor.rowcount

    def insert_verification(self, record: PendingVerification) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO pending_verifications(
                  id, account_id, email, code_hash, expires_at, used_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.account_id,
                    record.email,
                    record.code_hash,
                    record.expires_at,
                    record.used_at,
                    record.created_at,
                ),
            )

    def get_verification(self, verification_id: str) -> PendingVerification | None:
        row = self._db.fetch_one(
            """
            SELECT id, account_id, email, code_hash, expires_at, used_at, created_at
            FROM pending_verifications
            WHERE id = ?
            """,
            (verification_id,),
        )
        return PendingVerification(**dict(row)) if row else None

    def mark_verification_used(self, verification_id: str, used_at: int) -> bool:
        """Consume the record; ``False`` when it was already consumed."""
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE pending_verifications SET used_at = ? WHERE id = ? AND used_at IS NULL",
                (used_at, verification_id),
            )
            return cursor.rowcount == 1

    def replace_verification_code(
        self, verification_id: str, *, code_hash: str, expires_at: int
    ) -> bool:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE pending_verifications
                SET code_hash = ?, expires_at = ?
                WHERE id = ? AND used_at IS NULL
                """,
                (code_hash, expires_at, verification_id),
            )
            return cursor.rowcount == 1

    def delete_verifications_for_account(self, account_id: str) -> int:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM pending_verifications WHERE account_id = ?", (account_id,)
            )
            return cursor.rowcount

    # Sessions

    def insert_session(self, record: SessionRecord) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO sessions(id, token, account_id, expires_at, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.token,
                    record.account_id,
                    record.expires_at,
                    record.created_at,
                ),
            )

    def get_session(self, session_id: str) -> SessionRecord | None:
        row = self._db.fetch_one(
            "SELECT id, token, account_id, expires_at, created_at FROM sessions WHERE id = ?",
            (session_id,),
        )
        return SessionRecord(**dict(row)) if row else None

    def delete_session(self, session_id: str) -> bool:
        with self._db.transaction() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            return cursor.rowcount > 0

    def delete_sessions_for_account(self, account_id: str) -> int:
        with self._db.transaction() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE account_id = ?", (account_id,))
            return cursor.rowcount

    # Maintenance

    def purge_expired(self, now: int) -> dict[str, int]:
        """Delete expired sessions and pending verifications."""
        with self._db.transaction() as conn:
            sessions = conn.execute(
                "DELETE FROM sessions WHERE expires_at < ?", (now,)
            ).rowcount
            verifications = conn.execute(
                "DELETE FROM pending_verifications WHERE expires_at < ?", (now,)
            ).rowcount
        return {"sessions": sessions, "pending_verifications": verifications}
