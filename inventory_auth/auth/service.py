"""Login orchestration: credentials, second factor and session lifecycle."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

from inventory_auth.api.errors import ApiError, ApiErrorCode, unauthorized
from inventory_auth.audit.models import AuditAction
from inventory_auth.audit.recorder import AuditLogRecorder
from inventory_auth.auth.models import Account, AuthIdentity, Role
from inventory_auth.auth.one_time_codes import IssuedCode, OneTimeCodeEngine
from inventory_auth.auth.repository import AuthRepository
from inventory_auth.auth.sessions import IssuedSession, SessionManager
from inventory_auth.core.config import AuthConfig
from inventory_auth.core.security import (
    DUMMY_PASSWORD_HASH,
    hash_password,
    verify_password,
)
from inventory_auth.notifications.email import CodeDispatcher, NotificationDeliveryError

LOGGER = logging.getLogger(__name__)

AUDIT_TARGET_USER = "USER"


@dataclass(frozen=True)
class SignedIn:
    """A session was issued for ``account``."""

    account: Account
    session: IssuedSession


@dataclass(frozen=True)
class PendingSecondFactor:
    """Credentials accepted; the client must confirm the one-time code."""

    pending_token: str
    message: str
    debug_code: str | None = None


def _invalid_credentials() -> ApiError:
    return ApiError(
        status_code=401,
        error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
        message="Invalid email or password",
    )


def _account_disabled() -> ApiError:
    return ApiError(
        status_code=403,
        error_code=ApiErrorCode.AUTH_ACCOUNT_DISABLED,
        message="Account is disabled",
    )


class AuthService:
    """Authentication flows over the account, code and session components."""

    def __init__(
        self,
        *,
        repo: AuthRepository,
        config: AuthConfig,
        codes: OneTimeCodeEngine,
        sessions: SessionManager,
        dispatcher: CodeDispatcher,
        audit: AuditLogRecorder,
    ) -> None:
        self._repo = repo
        self._config = config
        self._codes = codes
        self._sessions = sessions
        self._dispatcher = dispatcher
        self._audit = audit

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    def bootstrap_admin_account(self) -> Account | None:
        """Create the configured admin account when it does not exist yet."""
        email = self._config.admin_email
        if not email or not self._config.admin_password:
            return None
        if self._repo.get_account_by_email(email) is not None:
            return None

        now = int(time.time())
        account = Account(
            id=uuid.uuid4().hex,
            email=email,
            password_hash=hash_password(self._config.admin_password),
            role=Role.ADMIN,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self._repo.insert_account(account)
        LOGGER.info("bootstrap_admin_created", extra={"account_id": account.id})
        self._audit.record(
            action=AuditAction.USER_CREATED,
            target_type=AUDIT_TARGET_USER,
            target_id=account.id,
            summary=f"Bootstrapped admin user {email}",
            snapshot={"email": email, "role": str(Role.ADMIN), "isActive": True},
        )
        return account

    def login(self, email: str | None, password: str | None) -> SignedIn | PendingSecondFactor:
        """Check credentials, then either start a session or issue a code."""
        email = (email or "").strip()
        if not email or not password:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message="Email and password are required",
            )

        account = self._repo.get_account_by_email(email)
        if account is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            raise _invalid_credentials()
        if not verify_password(password, account.password_hash):
            raise _invalid_credentials()
        if not account.is_active:
            raise _account_disabled()

        if self._config.disable_two_factor:
            LOGGER.warning(
                "two_factor_disabled_direct_session", extra={"account_id": account.id}
            )
            return self._sign_in(account, summary="User signed in (2FA disabled)")

        issued = self._codes.issue(account)
        return self._deliver(account, issued)

    def verify_otp(self, pending_token: str | None, code: str | None) -> SignedIn:
        """Confirm a one-time code and start the session."""
        if not pending_token or not code:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message="Verification code is required",
            )

        with self._repo.transaction():
            account = self._codes.verify(pending_token, code)
            if not account.is_active:
                raise _account_disabled()
            signed_in = self._open_session(account)
        self._record_login(signed_in.account, "User signed in via 2FA")
        return signed_in

    def resend_otp(self, pending_token: str | None) -> PendingSecondFactor:
        """Send a fresh code for an open pending verification."""
        if not pending_token:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message="Pending token is required",
            )
        with self._repo.transaction():
            issued, account = self._codes.reissue(pending_token)
            if not account.is_active:
                raise _account_disabled()
        return self._deliver(account, issued)

    def current_account(self, identity: AuthIdentity | None) -> Account:
        if identity is None:
            raise unauthorized()
        account = self._repo.get_account(identity.account_id)
        if account is None:
            raise unauthorized()
        return account

    def logout(self, identity: AuthIdentity | None) -> None:
        if identity is None:
            return
        self._sessions.revoke(identity.session_id)
        LOGGER.info(
            "session_revoked",
            extra={"account_id": identity.account_id, "session_id": identity.session_id},
        )
        self._audit.record(
            action=AuditAction.LOGOUT,
            actor_id=identity.account_id,
            target_type=AUDIT_TARGET_USER,
            target_id=identity.account_id,
            summary="User signed out",
        )

    def _open_session(self, account: Account) -> SignedIn:
        with self._repo.transaction():
            issued = self._sessions.issue(account)
            self._repo.record_login(account.id, issued.session.created_at)
        refreshed = account.model_copy(update={"last_login_at": issued.session.created_at})
        return SignedIn(account=refreshed, session=issued)

    def _sign_in(self, account: Account, *, summary: str) -> SignedIn:
        signed_in = self._open_session(account)
        self._record_login(signed_in.account, summary)
        return signed_in

    def _record_login(self, account: Account, summary: str) -> None:
        LOGGER.info("login_succeeded", extra={"account_id": account.id})
        self._audit.record(
            action=AuditAction.LOGIN_SUCCESS,
            actor_id=account.id,
            target_type=AUDIT_TARGET_USER,
            target_id=account.id,
            summary=summary,
            metadata={"twoFactor": not self._config.disable_two_factor},
        )

    def _deliver(self, account: Account, issued: IssuedCode) -> PendingSecondFactor:
        try:
            self._dispatcher.send_verification_code(
                account.email, issued.code, ttl_minutes=self._config.otp_ttl_minutes
            )
        except NotificationDeliveryError:
            LOGGER.warning(
                "verification_code_delivery_failed",
                exc_info=True,
                extra={"account_id": account.id},
            )
            if not self._config.allow_login_without_email:
                raise ApiError(
                    status_code=500,
                    error_code=ApiErrorCode.NOTIFICATION_DELIVERY_FAILED,
                    message="Unable to send verification code",
                )
            return PendingSecondFactor(
                pending_token=issued.pending_token,
                message="Verification code generated (email delivery failed)",
                debug_code=issued.code if self._config.may_return_debug_code else None,
            )
        return PendingSecondFactor(
            pending_token=issued.pending_token, message="Verification code sent"
        )
