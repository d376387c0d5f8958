"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from inventory_auth.api.contracts import (
    ApiErrorResponse,
    DebugPendingVerificationResponse,
    PendingVerificationResponse,
    SmtpCheckResponse,
    SmtpDiagnosticsResponse,
    UserEnvelopeResponse,
    UserResponse,
)
from inventory_auth.api.errors import ApiError
from inventory_auth.auth.authorization import require_identity, require_roles
from inventory_auth.auth.models import (
    AuthIdentity,
    LoginRequest,
    ResendOtpRequest,
    Role,
    VerifyOtpRequest,
)
from inventory_auth.auth.rate_limiter import LoginRateLimiter
from inventory_auth.auth.service import AuthService, PendingSecondFactor, SignedIn
from inventory_auth.notifications.email import EmailDispatcher


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "") or "unknown"


def _pending_response(outcome: PendingSecondFactor) -> PendingVerificationResponse:
    if outcome.debug_code is not None:
        return DebugPendingVerificationResponse(
            pending_token=outcome.pending_token,
            message=outcome.message,
            debug_code=outcome.debug_code,
        )
    return PendingVerificationResponse(
        pending_token=outcome.pending_token, message=outcome.message
    )


def create_auth_router(
    service: AuthService,
    rate_limiter: LoginRateLimiter,
    email_dispatcher: EmailDispatcher | None = None,
) -> APIRouter:
    """Build the router for login, second factor, me and logout."""
    router = APIRouter(prefix="/auth", tags=["auth"])
    cookies = service.sessions.cookies

    def signed_in_response(outcome: SignedIn, response: Response) -> UserEnvelopeResponse:
        cookies.set_on(response, outcome.session.credential)
        return UserEnvelopeResponse(user=UserResponse.from_account(outcome.account))

    @router.post(
        "/login",
        response_model=None,
        responses={
            400: {"model": ApiErrorResponse},
            401: {"model": ApiErrorResponse},
            403: {"model": ApiErrorResponse},
            429: {"model": ApiErrorResponse},
            500: {"model": ApiErrorResponse},
        },
    )
    def login(
        req: LoginRequest, request: Request, response: Response
    ) -> UserEnvelopeResponse | PendingVerificationResponse:
        """Check credentials; start a session or send a verification code."""
        client_ip = _client_ip(request)
        rate_key = (req.email or "").strip()
        if rate_key:
            rate_limiter.assert_allowed(email=rate_key, client_ip=client_ip)
        try:
            outcome = service.login(req.email, req.password)
        except ApiError as exc:
            if rate_key and exc.status_code == 401:
                rate_limiter.record_failure(email=rate_key, client_ip=client_ip)
            raise
        if rate_key:
            rate_limiter.reset(email=rate_key, client_ip=client_ip)

        if isinstance(outcome, SignedIn):
            return signed_in_response(outcome, response)
        return _pending_response(outcome)

    @router.post(
        "/verify-otp",
        response_model=UserEnvelopeResponse,
        responses={400: {"model": ApiErrorResponse}, 401: {"model": ApiErrorResponse}},
    )
    def verify_otp(req: VerifyOtpRequest, response: Response) -> UserEnvelopeResponse:
        """Confirm the one-time code and set the session cookie."""
        outcome = service.verify_otp(req.pending_token, req.code)
        return signed_in_response(outcome, response)

    @router.post(
        "/resend-otp",
        response_model=None,
        responses={400: {"model": ApiErrorResponse}, 500: {"model": ApiErrorResponse}},
    )
    def resend_otp(req: ResendOtpRequest) -> PendingVerificationResponse:
        """Send a fresh code for a pending login."""
        return _pending_response(service.resend_otp(req.pending_token))

    @router.get(
        "/me",
        response_model=UserEnvelopeResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def me(identity: AuthIdentity = Depends(require_identity)) -> UserEnvelopeResponse:
        """Return the account bound to the session cookie."""
        account = service.current_account(identity)
        return UserEnvelopeResponse(user=UserResponse.from_account(account))

    @router.post(
        "/logout",
        status_code=204,
        response_class=Response,
        responses={401: {"model": ApiErrorResponse}},
    )
    def logout(identity: AuthIdentity = Depends(require_identity)) -> Response:
        """Revoke the current session and clear its cookie."""
        service.logout(identity)
        response = Response(status_code=204)
        cookies.clear_on(response)
        return response

    if email_dispatcher is not None:

        @router.get(
            "/smtp-check",
            response_model=SmtpCheckResponse,
            dependencies=[Depends(require_roles(Role.ADMIN))],
            responses={403: {"model": ApiErrorResponse}},
        )
        def smtp_check() -> SmtpCheckResponse:
            """Probe the mail relay used for verification codes."""
            return SmtpCheckResponse(**email_dispatcher.check_connection())

        @router.get(
            "/smtp-diagnostics",
            response_model=SmtpDiagnosticsResponse,
            response_model_exclude_none=True,
            dependencies=[Depends(require_roles(Role.ADMIN))],
            responses={403: {"model": ApiErrorResponse}},
        )
        def smtp_diagnostics() -> SmtpDiagnosticsResponse:
            """Time DNS, TCP connect and handshake against the mail relay."""
            return SmtpDiagnosticsResponse(**email_dispatcher.diagnose_connection())

    return router
