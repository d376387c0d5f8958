"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEV_SECRET_KEY = "dev-insecure-secret-change-me"
_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class AuthConfig:
    """Authentication and session lifecycle configuration."""

    environment: str
    secret_key: str
    issuer: str
    session_ttl_days: int
    otp_ttl_minutes: int
    disable_two_factor: bool
    allow_login_without_email: bool
    debug_return_code: bool
    admin_email: str = ""
    admin_password: str = ""

    @property
    def is_production(self) -> bool:
        """Return whether cookies and debug switches use production rules."""
        return self.environment == "production"

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_days * 24 * 60 * 60

    @property
    def otp_ttl_seconds(self) -> int:
        return self.otp_ttl_minutes * 60

    @property
    def may_return_debug_code(self) -> bool:
        """Raw codes may leave the server only with both flags set outside production."""
        return (
            self.allow_login_without_email
            and self.debug_return_code
            and not self.is_production
        )


@dataclass(frozen=True)
class SmtpConfig:
    """Outbound mail transport for one-time codes."""

    host: str = ""
    port: int = 587
    secure: bool = False
    user: str = ""
    password: str = ""
    from_address: str = ""
    connection_timeout_seconds: float = 15.0
    socket_timeout_seconds: float = 20.0
    verify_tls: bool = True

    @property
    def is_configured(self) -> bool:
        return bool(self.host)


@dataclass(frozen=True)
class StorageConfig:
    """Backing store locations."""

    sqlite_path: str
    mongodb_uri: str = ""
    mongodb_db: str = "inventory"


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    login_rate_limit_max_attempts: int
    login_rate_limit_window_seconds: int
    login_rate_limit_lock_seconds: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    smtp: SmtpConfig
    storage: StorageConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        environment = os.getenv("APP_ENV", "development").strip().lower() or "development"
        secret_key = os.getenv("AUTH_SECRET_KEY", "").strip()
        if not secret_key:
            if environment == "production":
                raise ValueError(
                    "AUTH_SECRET_KEY environment variable is required in production."
                )
            secret_key = DEV_SECRET_KEY
        issuer = os.getenv("AUTH_ISSUER", "inventory-auth").strip() or "inventory-auth"
        session_ttl_days = int(os.getenv("SESSION_TTL_DAYS", "7"))
        otp_ttl_minutes = int(os.getenv("TWO_FACTOR_TTL_MINUTES", "10"))
        if session_ttl_days < 1 or otp_ttl_minutes < 1:
            raise ValueError("SESSION_TTL_DAYS and TWO_FACTOR_TTL_MINUTES must be positive.")

        smtp_secure = _env_flag("SMTP_SECURE")
        smtp_port = int(os.getenv("SMTP_PORT", "465" if smtp_secure else "587"))
        smtp_user = os.getenv("SMTP_USER", "").strip()
        connection_timeout_ms = int(os.getenv("SMTP_CONNECTION_TIMEOUT", "15000"))
        socket_timeout_ms = int(os.getenv("SMTP_SOCKET_TIMEOUT", "20000"))

        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS", "http://localhost:3000"
            ).split(",")
            if origin.strip()
        ]

        return AppConfig(
            auth=AuthConfig(
                environment=environment,
                secret_key=secret_key,
                issuer=issuer,
                session_ttl_days=session_ttl_days,
                otp_ttl_minutes=otp_ttl_minutes,
                disable_two_factor=_env_flag("AUTH_DISABLE_2FA"),
                allow_login_without_email=_env_flag("TWO_FACTOR_ALLOW_NO_EMAIL"),
                debug_return_code=_env_flag("TWO_FACTOR_DEBUG_RETURN_CODE"),
                admin_email=os.getenv("AUTH_ADMIN_EMAIL", "").strip(),
                admin_password=os.getenv("AUTH_ADMIN_PASSWORD", ""),
            ),
            smtp=SmtpConfig(
                host=os.getenv("SMTP_HOST", "").strip(),
                port=smtp_port,
                secure=smtp_secure,
                user=smtp_user,
                password=os.getenv("SMTP_PASS", ""),
                from_address=os.getenv("SMTP_FROM", "").strip() or smtp_user,
                connection_timeout_seconds=connection_timeout_ms / 1000,
                socket_timeout_seconds=socket_timeout_ms / 1000,
                verify_tls=_env_flag("SMTP_TLS_REJECT_UNAUTHORIZED", "true"),
            ),
            storage=StorageConfig(
                sqlite_path=os.getenv("STATE_SQLITE_PATH", "runtime/app_state.db").strip()
                or "runtime/app_state.db",
                mongodb_uri=os.getenv("MONGODB_URI", "").strip(),
                mongodb_db=os.getenv("MONGODB_DB", "inventory").strip() or "inventory",
            ),
            logging=LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024))),
                login_rate_limit_max_attempts=int(
                    os.getenv("LOGIN_RATE_LIMIT_MAX_ATTEMPTS", "5")
                ),
                login_rate_limit_window_seconds=int(
                    os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "300")
                ),
                login_rate_limit_lock_seconds=int(
                    os.getenv("LOGIN_RATE_LIMIT_LOCK_SECONDS", "600")
                ),
            ),
        )
