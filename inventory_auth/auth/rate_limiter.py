"""Login brute-force protection stored next to the account tables."""

from __future__ import annotations

import time

from inventory_auth.api.errors import ApiError, ApiErrorCode
from inventory_auth.core.database import Database


def _principal(email: str, client_ip: str) -> tuple[str, str]:
    return email.strip(), client_ip.strip() or "unknown"


class LoginRateLimiter:
    """Lock out an (email, client ip) pair after repeated failed logins."""

    def __init__(
        self,
        database: Database,
        *,
        max_attempts: int,
        window_seconds: int,
        lock_seconds: int,
    ) -> None:
        self._db = database
        self._max_attempts = max(1, int(max_attempts))
        self._window_seconds = max(1, int(window_seconds))
        self._lock_seconds = max(1, int(lock_seconds))

    def assert_allowed(self, *, email: str, client_ip: str) -> None:
        """Raise 429 while the principal is locked out."""
        now = int(time.time())
        key = _principal(email, client_ip)
        row = self._db.fetch_one(
            """
            SELECT first_failed_at, locked_until
            FROM auth_login_attempts
            WHERE email = ? AND client_ip = ?
            """,
            key,
        )
        if row is None:
            return

        locked_until = int(row["locked_until"] or 0)
        if locked_until > now:
            raise ApiError(
                status_code=429,
                error_code=ApiErrorCode.AUTH_RATE_LIMITED,
                message=f"Too many login attempts. Retry after {locked_until - now} seconds.",
            )

        first_failed_at = int(row["first_failed_at"] or 0)
        if first_failed_at and (now - first_failed_at) > self._window_seconds:
            self.reset(email=email, client_ip=client_ip)

    def reset(self, *, email: str, client_ip: str) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                "DELETE FROM auth_login_attempts WHERE email = ? AND client_ip = ?",
                _principal(email, client_ip),
            )

    def record_failure(self, *, email: str, client_ip: str) -> None:
        """Count a failed login and start a lock once the threshold is hit."""
        now = int(time.time())
        key_email, key_ip = _principal(email, client_ip)
        with self._db.transaction() as conn:
            row = conn.execute(
                """
                SELECT failed_attempts, first_failed_at
                FROM auth_login_attempts
                WHERE email = ? AND client_ip = ?
                """,
                (key_email, key_ip),
            ).fetchone()

            previous_first = int(row["first_failed_at"] or 0) if row else 0
            if row is None or (now - previous_first) > self._window_seconds:
                failed_attempts = 1
                first_failed_at = now
            else:
                failed_attempts = int(row["failed_attempts"] or 0) + 1
                first_failed_at = previous_first or now

            locked_until = (
                now + self._lock_seconds if failed_attempts >= self._max_attempts else 0
            )
            conn.execute(
                """
                INSERT INTO auth_login_attempts(
                  email, client_ip, failed_attempts, first_failed_at, last_failed_at, locked_until
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(email, client_ip) DO UPDATE SET
                  failed_attempts = excluded.failed_attempts,
                  first_failed_at = excluded.first_failed_at,
                  last_failed_at = excluded.last_failed_at,
                  locked_until = excluded.locked_until
                """,
                (key_email, key_ip, failed_attempts, first_failed_at, now, locked_until),
            )
