"""Pydantic API contracts used in OpenAPI and response serialization."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from inventory_auth.audit.models import AuditLogEntry
from inventory_auth.auth.models import Account, Role


def _timestamp(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    status: Literal["ok"]


class UserResponse(_CamelModel):
    """Account as exposed to clients; never includes the credential hash."""

    id: str
    email: str
    role: Role
    name: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "UserResponse":
        return cls(
            id=account.id,
            email=account.email,
            role=account.role,
            name=account.name,
            is_active=account.is_active,
            last_login_at=_timestamp(account.last_login_at),
            created_at=_timestamp(account.created_at),
            updated_at=_timestamp(account.updated_at),
        )


class UserEnvelopeResponse(BaseModel):
    """Signed-in user payload returned by login, verify-otp and me."""

    user: UserResponse


class PendingVerificationResponse(_CamelModel):
    """Login accepted; a one-time code must be confirmed."""

    pending_token: str
    message: str


class DebugPendingVerificationResponse(PendingVerificationResponse):
    """Development-only variant carrying the raw code after failed delivery."""

    debug_code: str


class SmtpCheckResponse(BaseModel):
    configured: bool
    status: str
    error: str | None = None


class SmtpDiagnosticsResponse(_CamelModel):
    host: str | None = None
    port: int | None = None
    secure: bool | None = None
    dns_ms: int | None = None
    addresses: list[str] | None = None
    connect_ms: int | None = None
    verify_ms: int | None = None
    verify_status: str | None = None
    verify_error: str | None = None
    error: str | None = None


class AuditActorResponse(_CamelModel):
    id: str
    email: str
    name: str | None = None


class AuditLogEntryResponse(_CamelModel):
    id: str
    target_type: str
    target_id: str | None = None
    action: str
    summary: str | None = None
    metadata: dict[str, Any] | None = None
    snapshot: dict[str, Any] | None = None
    created_at: datetime
    actor: AuditActorResponse | None = None

    @classmethod
    def from_entry(
        cls, entry: AuditLogEntry, actor: Account | None
    ) -> "AuditLogEntryResponse":
        return cls(
            id=entry.id,
            target_type=entry.target_type,
            target_id=entry.target_id,
            action=entry.action,
            summary=entry.summary,
            metadata=entry.metadata,
            snapshot=entry.snapshot,
            created_at=_timestamp(entry.created_at),
            actor=(
                AuditActorResponse(id=actor.id, email=actor.email, name=actor.name)
                if actor is not None
                else None
            ),
        )
