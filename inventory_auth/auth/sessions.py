"""Session issuance, verification and revocation."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Literal

from starlette.responses import Response

from inventory_auth.api.errors import unauthorized
from inventory_auth.auth.models import Account, AuthIdentity, Role, SessionRecord
from inventory_auth.auth.repository import AuthRepository
from inventory_auth.core.config import AuthConfig
from inventory_auth.core.security import (
    build_signed_token,
    decode_signed_token,
    new_opaque_token,
)

LOGGER = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "inventory_session"


@dataclass(frozen=True)
class IssuedSession:
    session: SessionRecord
    credential: str


@dataclass(frozen=True)
class CookiePolicy:
    """Cookie attributes shared by issuance and clearing."""

    secure: bool
    samesite: Literal["lax", "none"]
    max_age: int

    @classmethod
    def from_config(cls, config: AuthConfig) -> "CookiePolicy":
        return cls(
            secure=config.is_production,
            samesite="none" if config.is_production else "lax",
            max_age=config.session_ttl_seconds,
        )

    def set_on(self, response: Response, credential: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            credential,
            max_age=self.max_age,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite=self.samesite,
        )

    def clear_on(self, response: Response) -> None:
        response.delete_cookie(
            SESSION_COOKIE_NAME,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite=self.samesite,
        )


class SessionManager:
    """Mint and check signed session credentials backed by session records.

    The credential carries the session id, account id and role. The stored
    record's expiry is authoritative: a credential whose own ``exp`` claim is
    still valid is rejected once the record has expired.
    """

    def __init__(self, repo: AuthRepository, config: AuthConfig) -> None:
        self._repo = repo
        self._config = config
        self.cookies = CookiePolicy.from_config(config)

    def issue(self, account: Account) -> IssuedSession:
        now = int(time.time())
        record = SessionRecord(
            id=uuid.uuid4().hex,
            token=new_opaque_token(),
            account_id=account.id,
            expires_at=now + self._config.session_ttl_seconds,
            created_at=now,
        )
        self._repo.insert_session(record)
        credential = build_signed_token(
            {
                "iss": self._config.issuer,
                "sid": record.id,
                "sub": account.id,
                "role": str(account.role),
                "iat": now,
                "exp": record.expires_at,
            },
            self._config.secret_key,
        )
        return IssuedSession(session=record, credential=credential)

    def verify(self, credential: str | None) -> AuthIdentity:
        """Resolve a cookie value to an identity or raise 401."""
        if not credential:
            raise unauthorized()
        try:
            payload = decode_signed_token(credential, self._config.secret_key)
        except ValueError as exc:
            LOGGER.info("session_credential_rejected: %s", exc)
            raise unauthorized() from exc
        if str(payload.get("iss") or "") != self._config.issuer:
            raise unauthorized()

        session_id = str(payload.get("sid") or "")
        session = self._repo.get_session(session_id) if session_id else None
        if session is None:
            raise unauthorized()
        if session.account_id != str(payload.get("sub") or ""):
            raise unauthorized()

        if session.expires_at < int(time.time()):
            self._repo.delete_session(session.id)
            LOGGER.info(
                "session_expired",
                extra={"session_id": session.id, "account_id": session.account_id},
            )
            raise unauthorized()

        account = self._repo.get_account(session.account_id)
        if account is None or not account.is_active:
            self._repo.delete_session(session.id)
            raise unauthorized()

        return AuthIdentity(
            account_id=account.id,
            email=account.email,
            role=Role(account.role),
            session_id=session.id,
        )

    def revoke(self, session_id: str | None) -> None:
        """Delete the session record; unknown ids are ignored."""
        if session_id:
            self._repo.delete_session(session_id)
