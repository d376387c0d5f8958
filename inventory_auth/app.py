"""FastAPI application factory."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inventory_auth.api.contracts import HealthResponse
from inventory_auth.api.http_setup import register_exception_handlers, register_http_middleware
from inventory_auth.audit.recorder import AuditLogRecorder
from inventory_auth.audit.repository import AuditRepository
from inventory_auth.audit.router import create_audit_router
from inventory_auth.auth.middleware import create_auth_middleware
from inventory_auth.auth.one_time_codes import OneTimeCodeEngine
from inventory_auth.auth.rate_limiter import LoginRateLimiter
from inventory_auth.auth.repository import AuthRepository
from inventory_auth.auth.router import create_auth_router
from inventory_auth.auth.service import AuthService
from inventory_auth.auth.sessions import SessionManager
from inventory_auth.core.config import AppConfig
from inventory_auth.core.database import Database
from inventory_auth.core.mongo_migrations import apply_mongo_migrations
from inventory_auth.notifications.email import CodeDispatcher, EmailDispatcher
from inventory_auth.users.router import create_users_router
from inventory_auth.users.service import UserService

LOGGER = logging.getLogger(__name__)


def create_app(
    config: AppConfig,
    *,
    database_path: Path | None = None,
    dispatcher: CodeDispatcher | None = None,
    audit_executor: Executor | None = None,
) -> FastAPI:
    """Wire storage, services and routers into one FastAPI app.

    ``dispatcher`` replaces the SMTP dispatcher (tests pass a recording fake);
    ``audit_executor`` moves audit writes off the request thread.
    """
    database = Database(database_path or Path(config.storage.sqlite_path))

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        database.close()

    app = FastAPI(title="Inventory Auth API", version="1.0.0", lifespan=lifespan)
    apply_mongo_migrations(config.storage)

    auth_repo = AuthRepository(database)
    audit_repo = AuditRepository(database, config.storage)
    audit = AuditLogRecorder(audit_repo, executor=audit_executor)
    email_dispatcher = EmailDispatcher(config.smtp, is_production=config.auth.is_production)
    sessions = SessionManager(auth_repo, config.auth)
    auth_service = AuthService(
        repo=auth_repo,
        config=config.auth,
        codes=OneTimeCodeEngine(auth_repo, config.auth),
        sessions=sessions,
        dispatcher=dispatcher or email_dispatcher,
        audit=audit,
    )
    login_rate_limiter = LoginRateLimiter(
        database,
        max_attempts=config.security.login_rate_limit_max_attempts,
        window_seconds=config.security.login_rate_limit_window_seconds,
        lock_seconds=config.security.login_rate_limit_lock_seconds,
    )
    user_service = UserService(repo=auth_repo, audit=audit)

    if config.auth.disable_two_factor:
        LOGGER.warning("two_factor_disabled")
    auth_service.bootstrap_admin_account()
    LOGGER.info("audit_backend: %s", audit_repo.backend)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    app.include_router(
        create_auth_router(auth_service, login_rate_limiter, email_dispatcher=email_dispatcher)
    )
    app.include_router(create_users_router(user_service))
    app.include_router(create_audit_router(audit_repo, auth_repo))

    # Middleware added later wraps earlier ones; CORS must be outermost.
    app.middleware("http")(create_auth_middleware(sessions))
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    app.state.database = database
    app.state.auth_service = auth_service
    app.state.user_service = user_service
    return app
