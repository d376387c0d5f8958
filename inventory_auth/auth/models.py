"""Pydantic models for the authentication domain."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Role(StrEnum):
    """Closed set of account roles."""

    ADMIN = "ADMIN"
    STAFF = "STAFF"

    @classmethod
    def parse(cls, value: str | None) -> "Role | None":
        """Return the matching role, or ``None`` for anything unrecognized."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class Account(BaseModel):
    """Persisted account record."""

    id: str
    email: str
    password_hash: str
    role: Role
    is_active: bool = True
    name: str | None = None
    last_login_at: int | None = None
    created_at: int
    updated_at: int

    @property
    def is_active_admin(self) -> bool:
        return self.role == Role.ADMIN and self.is_active


class PendingVerification(BaseModel):
    """In-flight login waiting for second-factor confirmation."""

    id: str
    account_id: str
    email: str
    code_hash: str
    expires_at: int
    used_at: int | None = None
    created_at: int


class SessionRecord(BaseModel):
    """Server-side record backing an issued session credential."""

    id: str
    token: str
    account_id: str
    expires_at: int
    created_at: int


class AuthIdentity(BaseModel):
    """Identity resolved from a verified session, attached to the request."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    email: str
    role: Role
    session_id: str


class LoginRequest(BaseModel):
    """Login request payload; presence is checked by the service."""

    email: str | None = None
    password: str | None = None


class VerifyOtpRequest(BaseModel):
    """Second-factor confirmation payload."""

    model_config = ConfigDict(populate_by_name=True)

    pending_token: str | None = Field(default=None, alias="pendingToken")
    code: str | None = None


class ResendOtpRequest(BaseModel):
    """Request for a fresh code on an existing pending verification."""

    model_config = ConfigDict(populate_by_name=True)

    pending_token: str | None = Field(default=None, alias="pendingToken")
