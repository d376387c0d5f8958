"""HTTP middleware that binds the session cookie to the request."""

from __future__ import annotations

from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from inventory_auth.api.errors import ApiError, to_error_payload
from inventory_auth.auth.sessions import SESSION_COOKIE_NAME, SessionManager

PUBLIC_PATHS = frozenset(
    {
        "/health",
        "/auth/login",
        "/auth/verify-otp",
        "/auth/resend-otp",
        "/docs",
        "/docs/oauth2-redirect",
        "/redoc",
        "/openapi.json",
    }
)


def create_auth_middleware(sessions: SessionManager) -> Callable:
    """Create middleware that rejects protected requests without a live session."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Verify the session cookie and attach identity to request state."""
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        credential = request.cookies.get(SESSION_COOKIE_NAME)
        try:
            identity = await run_in_threadpool(sessions.verify, credential)
        except ApiError as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content=to_error_payload(exc.detail, exc.status_code),
            )

        request.state.identity = identity
        return await call_next(request)

    return auth_middleware
