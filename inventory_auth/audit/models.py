"""Audit trail models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class AuditAction(StrEnum):
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGOUT = "LOGOUT"
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"


class AuditLogEntry(BaseModel):
    """Immutable record of a security-relevant action."""

    id: str
    actor_id: str | None = None
    target_type: str
    target_id: str | None = None
    action: str
    summary: str | None = None
    metadata: dict[str, Any] | None = None
    snapshot: dict[str, Any] | None = None
    created_at: int
