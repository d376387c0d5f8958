"""One-time code issuance and validation for second-factor login."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Protocol

from inventory_auth.api.errors import ApiError, ApiErrorCode
from inventory_auth.auth.models import Account, PendingVerification
from inventory_auth.core.config import AuthConfig
from inventory_auth.core.security import (
    generate_one_time_code,
    hash_one_time_code,
    one_time_code_matches,
)

LOGGER = logging.getLogger(__name__)


class VerificationStore(Protocol):
    def transaction(self) -> AbstractContextManager[None]: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def delete_unconsumed_verifications(self, email: str) -> int: ...

    def insert_verification(self, record: PendingVerification) -> None: ...

    def get_verification(self, verification_id: str) -> PendingVerification | None: ...

    def mark_verification_used(self, verification_id: str, used_at: int) -> bool: ...

    def replace_verification_code(
        self, verification_id: str, *, code_hash: str, expires_at: int
    ) -> bool: ...


@dataclass(frozen=True)
class IssuedCode:
    """Plaintext code handed to the dispatcher; never persisted."""

    pending_token: str
    code: str
    expires_at: int


def _invalid_request() -> ApiError:
    return ApiError(
        status_code=400,
        error_code=ApiErrorCode.VERIFICATION_INVALID_REQUEST,
        message="Invalid verification request",
    )


def _already_used() -> ApiError:
    return ApiError(
        status_code=400,
        error_code=ApiErrorCode.VERIFICATION_ALREADY_USED,
        message="Verification code already used",
    )


def _expired() -> ApiError:
    return ApiError(
        status_code=400,
        error_code=ApiErrorCode.VERIFICATION_EXPIRED,
        message="Verification code expired",
    )


class OneTimeCodeEngine:
    """Pending verification lifecycle: created -> consumed | expired.

    Expiry is detected lazily when a record is presented; a record is
    consumed at most once, enforced by a conditional update.
    """

    def __init__(self, store: VerificationStore, config: AuthConfig) -> None:
        self._store = store
        self._config = config

    def issue(self, account: Account) -> IssuedCode:
        """Invalidate earlier unconsumed codes for the email and create a new one."""
        now = int(time.time())
        code = generate_one_time_code()
        record = PendingVerification(
            id=uuid.uuid4().hex,
            account_id=account.id,
            email=account.email,
            code_hash=hash_one_time_code(code, self._config.secret_key),
            expires_at=now + self._config.otp_ttl_seconds,
            created_at=now,
        )
        with self._store.transaction():
            dropped = self._store.delete_unconsumed_verifications(account.email)
            self._store.insert_verification(record)
        if dropped:
            LOGGER.info(
                "pending_verifications_invalidated: %d",
                dropped,
                extra={"account_id": account.id},
            )
        return IssuedCode(pending_token=record.id, code=code, expires_at=record.expires_at)

    def _load_open_record(self, pending_token: str) -> tuple[PendingVerification, Account]:
        record = self._store.get_verification(pending_token)
        if record is None:
            raise _invalid_request()
        account = self._store.get_account(record.account_id)
        if account is None:
            raise _invalid_request()
        if record.used_at is not None:
            raise _already_used()
        if record.expires_at < int(time.time()):
            raise _expired()
        return record, account

    def verify(self, pending_token: str, code: str) -> Account:
        """Consume the pending verification when ``code`` matches.

        A mismatch leaves the record usable so the user can retry until it
        expires.
        """
        record, account = self._load_open_record(pending_token)
        if not one_time_code_matches(code, record.code_hash, self._config.secret_key):
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.VERIFICATION_CODE_MISMATCH,
                message="Invalid verification code",
            )
        if not self._store.mark_verification_used(record.id, int(time.time())):
            raise _already_used()
        return account

    def reissue(self, pending_token: str) -> tuple[IssuedCode, Account]:
        """Rotate the code of an open pending verification for a resend."""
        record, account = self._load_open_record(pending_token)
        now = int(time.time())
        code = generate_one_time_code()
        expires_at = now + self._config.otp_ttl_seconds
        replaced = self._store.replace_verification_code(
            record.id,
            code_hash=hash_one_time_code(code, self._config.secret_key),
            expires_at=expires_at,
        )
        if not replaced:
            raise _already_used()
        return IssuedCode(pending_token=record.id, code=code, expires_at=expires_at), account
