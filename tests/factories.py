from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from inventory_auth.audit.models import AuditLogEntry
from inventory_auth.auth.models import Account, Role
from inventory_auth.auth.repository import AuthRepository
from inventory_auth.core.config import (
    AppConfig,
    AuthConfig,
    LoggingConfig,
    SecurityConfig,
    SmtpConfig,
    StorageConfig,
)
from inventory_auth.core.database import Database
from inventory_auth.core.security import hash_password
from inventory_auth.notifications.email import NotificationDeliveryError

FAST_ROUNDS = 1_000


def auth_config(**overrides: Any) -> AuthConfig:
    base = AuthConfig(
        environment="development",
        secret_key="test-secret",
        issuer="inventory-auth-test",
        session_ttl_days=7,
        otp_ttl_minutes=10,
        disable_two_factor=False,
        allow_login_without_email=False,
        debug_return_code=False,
    )
    return replace(base, **overrides)


def app_config(tmp_path: Path, **auth_overrides: Any) -> AppConfig:
    return AppConfig(
        auth=auth_config(**auth_overrides),
        smtp=SmtpConfig(),
        storage=StorageConfig(sqlite_path=str(tmp_path / "state.db")),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(
            cors_allowed_origins=["http://localhost:3000"],
            request_max_bytes=64 * 1024,
            login_rate_limit_max_attempts=5,
            login_rate_limit_window_seconds=300,
            login_rate_limit_lock_seconds=600,
        ),
    )


def open_repo(tmp_path: Path) -> tuple[Database, AuthRepository]:
    database = Database(tmp_path / "state.db")
    return database, AuthRepository(database)


def make_account(
    repo: AuthRepository,
    email: str,
    password: str = "secret-pass",
    *,
    role: Role = Role.STAFF,
    is_active: bool = True,
    name: str | None = None,
) -> Account:
    now = int(time.time())
    account = Account(
        id=uuid.uuid4().hex,
        email=email,
        password_hash=hash_password(password, rounds=FAST_ROUNDS),
        role=role,
        is_active=is_active,
        name=name,
        created_at=now,
        updated_at=now,
    )
    repo.insert_account(account)
    return account


@dataclass
class RecordingDispatcher:
    sent: list[tuple[str, str]] = field(default_factory=list)
    fail: bool = False

    def send_verification_code(self, email: str, code: str, *, ttl_minutes: int) -> None:
        if self.fail:
            raise NotificationDeliveryError("relay unreachable")
        self.sent.append((email, code))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@dataclass
class RecordingAuditSink:
    entries: list[AuditLogEntry] = field(default_factory=list)

    def append(self, entry: AuditLogEntry) -> None:
        self.entries.append(entry)

    @property
    def actions(self) -> list[str]:
        return [entry.action for entry in self.entries]


class FailingAuditSink:
    def append(self, entry: AuditLogEntry) -> None:
        raise RuntimeError("audit store down")
