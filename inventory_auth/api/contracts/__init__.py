"""Public API response contracts."""

from inventory_auth.api.contracts.models import (
    ApiErrorResponse,
    AuditActorResponse,
    AuditLogEntryResponse,
    DebugPendingVerificationResponse,
    HealthResponse,
    PendingVerificationResponse,
    SmtpCheckResponse,
    SmtpDiagnosticsResponse,
    UserEnvelopeResponse,
    UserResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuditActorResponse",
    "AuditLogEntryResponse",
    "DebugPendingVerificationResponse",
    "HealthResponse",
    "PendingVerificationResponse",
    "SmtpCheckResponse",
    "SmtpDiagnosticsResponse",
    "UserEnvelopeResponse",
    "UserResponse",
]
