"""Administrative account lifecycle with last-admin protection."""

from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from typing import Any

from inventory_auth.api.errors import ApiError, ApiErrorCode
from inventory_auth.audit.models import AuditAction
from inventory_auth.audit.recorder import AuditLogRecorder
from inventory_auth.auth.models import Account, Role
from inventory_auth.auth.repository import AuthRepository
from inventory_auth.auth.service import AUDIT_TARGET_USER
from inventory_auth.core.security import hash_password
from inventory_auth.users.models import CreateUserRequest, UpdateUserRequest

LOGGER = logging.getLogger(__name__)


def _bad_request(error_code: ApiErrorCode, message: str) -> ApiError:
    return ApiError(status_code=400, error_code=error_code, message=message)


def _not_found() -> ApiError:
    return ApiError(
        status_code=404, error_code=ApiErrorCode.USER_NOT_FOUND, message="User not found"
    )


def _email_conflict() -> ApiError:
    return ApiError(
        status_code=409,
        error_code=ApiErrorCode.USER_EMAIL_CONFLICT,
        message="Email already in use",
    )


def _invalid_role() -> ApiError:
    return _bad_request(ApiErrorCode.USER_INVALID_ROLE, "Invalid role")


def _snapshot(account: Account) -> dict[str, Any]:
    return {
        "email": account.email,
        "role": str(account.role),
        "name": account.name,
        "isActive": account.is_active,
    }


class UserService:
    """Create, edit and delete accounts on behalf of an administrator.

    Guard checks and the write share one transaction, so two concurrent
    demotions cannot both observe another active admin and leave none.
    ``actor_id`` is ``None`` for system actions (bootstrap, CLI).
    """

    def __init__(self, *, repo: AuthRepository, audit: AuditLogRecorder) -> None:
        self._repo = repo
        self._audit = audit

    def list_users(self, *, search: str = "", include_inactive: bool = False) -> list[Account]:
        return self._repo.list_accounts(search=search.strip(), include_inactive=include_inactive)

    def get_user(self, account_id: str) -> Account:
        account = self._repo.get_account(account_id)
        if account is None:
            raise _not_found()
        return account

    def create_user(self, actor_id: str | None, req: CreateUserRequest) -> Account:
        email = (req.email or "").strip()
        if not email or not req.password or not req.role:
            raise _bad_request(
                ApiErrorCode.VALIDATION_ERROR, "Email, password, and role are required"
            )
        role = Role.parse(req.role)
        if role is None:
            raise _invalid_role()

        now = int(time.time())
        account = Account(
            id=uuid.uuid4().hex,
            email=email,
            password_hash=hash_password(req.password),
            role=role,
            is_active=True,
            name=req.name,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._repo.transaction():
                if self._repo.get_account_by_email(email) is not None:
                    raise _email_conflict()
                self._repo.insert_account(account)
        except sqlite3.IntegrityError as exc:
            raise _email_conflict() from exc

        LOGGER.info("user_created", extra={"account_id": account.id})
        self._audit.record(
            action=AuditAction.USER_CREATED,
            actor_id=actor_id,
            target_type=AUDIT_TARGET_USER,
            target_id=account.id,
            summary=f"Created user {email}",
            snapshot=_snapshot(account),
        )
        return account

    def update_user(
        self, actor_id: str | None, account_id: str, req: UpdateUserRequest
    ) -> Account:
        is_self = actor_id is not None and actor_id == account_id
        password_hash = hash_password(req.password) if req.password else None
        new_email = (req.email or "").strip()

        with self._repo.transaction():
            account = self._repo.get_account(account_id)
            if account is None:
                raise _not_found()

            if is_self and req.is_active is False:
                raise _bad_request(
                    ApiErrorCode.USER_SELF_MUTATION, "You cannot deactivate your own account"
                )

            role = Role.parse(req.role) if req.role else account.role
            if role is None:
                raise _invalid_role()
            if is_self and role != Role.ADMIN:
                raise _bad_request(
                    ApiErrorCode.USER_SELF_MUTATION, "You cannot remove your own admin access"
                )

            if new_email and new_email != account.email:
                if self._repo.get_account_by_email(new_email) is not None:
                    raise _email_conflict()

            will_be_active = account.is_active if req.is_active is None else req.is_active
            if account.is_active_admin and (role != Role.ADMIN or not will_be_active):
                if self._repo.count_active_admins(exclude_account_id=account.id) == 0:
                    raise _bad_request(
                        ApiErrorCode.USER_LAST_ADMIN, "Cannot remove the last active admin"
                    )

            fields: dict[str, Any] = {"role": role, "is_active": will_be_active}
            if new_email:
                fields["email"] = new_email
            if "name" in req.model_fields_set:
                fields["name"] = req.name
            if password_hash is not None:
                fields["password_hash"] = password_hash
            self._repo.update_account(account.id, updated_at=int(time.time()), **fields)

            if account.is_active and not will_be_active:
                revoked = self._repo.delete_sessions_for_account(account.id)
                self._repo.delete_verifications_for_account(account.id)
                LOGGER.info(
                    "user_deactivated_sessions_revoked: %d",
                    revoked,
                    extra={"account_id": account.id},
                )

            updated = self._repo.get_account(account.id)
            if updated is None:
                raise _not_found()

        self._audit.record(
            action=AuditAction.USER_UPDATED,
            actor_id=actor_id,
            target_type=AUDIT_TARGET_USER,
            target_id=updated.id,
            summary=f"Updated user {updated.email}",
            snapshot=_snapshot(updated),
        )
        return updated

    def delete_user(self, actor_id: str | None, account_id: str) -> None:
        if actor_id is not None and actor_id == account_id:
            raise _bad_request(
                ApiErrorCode.USER_SELF_MUTATION, "You cannot delete your own account"
            )

        with self._repo.transaction():
            account = self._repo.get_account(account_id)
            if account is None:
                raise _not_found()
            if account.is_active_admin:
                if self._repo.count_active_admins(exclude_account_id=account.id) == 0:
                    raise _bad_request(
                        ApiErrorCode.USER_LAST_ADMIN, "Cannot delete the last active admin"
                    )
            self._repo.delete_sessions_for_account(account.id)
            self._repo.delete_verifications_for_account(account.id)
            self._repo.delete_account(account.id)

        LOGGER.info("user_deleted", extra={"account_id": account.id})
        self._audit.record(
            action=AuditAction.USER_DELETED,
            actor_id=actor_id,
            target_type=AUDIT_TARGET_USER,
            target_id=account.id,
            summary=f"Deleted user {account.email}",
            snapshot=_snapshot(account),
        )
