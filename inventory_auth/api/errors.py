"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_ACCOUNT_DISABLED = "AUTH_ACCOUNT_DISABLED"
    AUTH_RATE_LIMITED = "AUTH_RATE_LIMITED"
    AUTH_UNAUTHORIZED = "AUTH_UNAUTHORIZED"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    VERIFICATION_INVALID_REQUEST = "VERIFICATION_INVALID_REQUEST"
    VERIFICATION_ALREADY_USED = "VERIFICATION_ALREADY_USED"
    VERIFICATION_EXPIRED = "VERIFICATION_EXPIRED"
    VERIFICATION_CODE_MISMATCH = "VERIFICATION_CODE_MISMATCH"
    NOTIFICATION_DELIVERY_FAILED = "NOTIFICATION_DELIVERY_FAILED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_EMAIL_CONFLICT = "USER_EMAIL_CONFLICT"
    USER_INVALID_ROLE = "USER_INVALID_ROLE"
    USER_SELF_MUTATION = "USER_SELF_MUTATION"
    USER_LAST_ADMIN = "USER_LAST_ADMIN"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self, *, status_code: int, error_code: ApiErrorCode, message: str
    ) -> None:
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
        )

    @property
    def message(self) -> str:
        return str(self.detail["message"])

    @property
    def error_code(self) -> str:
        return str(self.detail["error_code"])


def unauthorized() -> ApiError:
    """Uniform session failure; callers re-authenticate."""
    return ApiError(
        status_code=401,
        error_code=ApiErrorCode.AUTH_UNAUTHORIZED,
        message="Unauthorized",
    )


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
