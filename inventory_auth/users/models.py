"""Request payloads for administrative user management."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CreateUserRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    role: str | None = None
    name: str | None = None


class UpdateUserRequest(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    name: str | None = None
    role: str | None = None
    password: str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
