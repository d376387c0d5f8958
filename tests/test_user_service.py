from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from inventory_auth.api.errors import ApiError
from inventory_auth.audit.recorder import AuditLogRecorder
from inventory_auth.auth.models import Role, SessionRecord
from inventory_auth.auth.repository import AuthRepository
from inventory_auth.core.database import Database
from inventory_auth.users.models import CreateUserRequest, UpdateUserRequest
from inventory_auth.users.service import UserService
from tests.factories import FailingAuditSink, RecordingAuditSink, make_account, open_repo


def _build(tmp_path: Path, sink=None):
    _, repo = open_repo(tmp_path)
    sink = sink if sink is not None else RecordingAuditSink()
    return repo, UserService(repo=repo, audit=AuditLogRecorder(sink)), sink


def _open_session(repo, account_id: str) -> str:
    now = int(time.time())
    session = SessionRecord(
        id=uuid.uuid4().hex,
        token=uuid.uuid4().hex,
        account_id=account_id,
        expires_at=now + 3600,
        created_at=now,
    )
    repo.insert_session(session)
    return session.id


def test_create_user_normalizes_role_and_audits(tmp_path: Path) -> None:
    repo, service, sink = _build(tmp_path)

    account = service.create_user(
        "actor", CreateUserRequest(email=" new@shop.local ", password="pw", role="staff")
    )

    assert account.email == "new@shop.local"
    assert account.role == Role.STAFF
    assert repo.get_account(account.id) is not None
    assert sink.actions == ["USER_CREATED"]
    assert sink.entries[0].snapshot == {
        "email": "new@shop.local",
        "role": "STAFF",
        "name": None,
        "isActive": True,
    }


@pytest.mark.parametrize(
    ("req", "status", "message"),
    [
        (CreateUserRequest(email="x@shop.local", password="pw"), 400, "Email, password, and role are required"),
        (CreateUserRequest(email="x@shop.local", password="pw", role="MANAGER"), 400, "Invalid role"),
        (CreateUserRequest(email="taken@shop.local", password="pw", role="STAFF"), 409, "Email already in use"),
    ],
)
def test_create_user_rejections(tmp_path: Path, req, status: int, message: str) -> None:
    repo, service, sink = _build(tmp_path)
    make_account(repo, "taken@shop.local")

    with pytest.raises(ApiError) as exc:
        service.create_user("actor", req)

    assert exc.value.status_code == status
    assert exc.value.message == message
    assert sink.entries == []


def test_last_active_admin_cannot_be_demoted_deactivated_or_deleted(tmp_path: Path) -> None:
    repo, service, _ = _build(tmp_path)
    admin = make_account(repo, "root@shop.local", role=Role.ADMIN)

    with pytest.raises(ApiError) as demote:
        service.update_user(None, admin.id, UpdateUserRequest(role="STAFF"))
    with pytest.raises(ApiError) as deactivate:
        service.update_user(None, admin.id, UpdateUserRequest(is_active=False))
    with pytest.raises(ApiError) as delete:
        service.delete_user(None, admin.id)

    assert demote.value.message == "Cannot remove the last active admin"
    assert deactivate.value.message == "Cannot remove the last active admin"
    assert delete.value.message == "Cannot delete the last active admin"
    unchanged = repo.get_account(admin.id)
    assert unchanged is not None
    assert unchanged.is_active_admin


def test_inactive_admins_do_not_count_toward_last_admin(tmp_path: Path) -> None:
    repo, service, _ = _build(tmp_path)
    admin = make_account(repo, "root@shop.local", role=Role.ADMIN)
    make_account(repo, "old@shop.local", role=Role.ADMIN, is_active=False)

    with pytest.raises(ApiError):
        service.update_user(None, admin.id, UpdateUserRequest(role="STAFF"))


def test_demotion_allowed_when_another_active_admin_remains(tmp_path: Path) -> None:
    repo, service, sink = _build(tmp_path)
    first = make_account(repo, "a1@shop.local", role=Role.ADMIN)
    second = make_account(repo, "a2@shop.local", role=Role.ADMIN)

    updated = service.update_user(first.id, second.id, UpdateUserRequest(role="STAFF"))

    assert updated.role == Role.STAFF
    assert repo.count_active_admins() == 1
    assert sink.actions == ["USER_UPDATED"]
    with pytest.raises(ApiError):
        service.update_user(None, first.id, UpdateUserRequest(role="STAFF"))


def test_concurrent_demotions_leave_one_active_admin(tmp_path: Path) -> None:
    _, repo = open_repo(tmp_path)
    first = make_account(repo, "a1@shop.local", role=Role.ADMIN)
    second = make_account(repo, "a2@shop.local", role=Role.ADMIN)
    # Each worker holds its own connection to the same file.
    services = [
        UserService(
            repo=AuthRepository(Database(tmp_path / "state.db")),
            audit=AuditLogRecorder(RecordingAuditSink()),
        )
        for _ in range(2)
    ]
    barrier = threading.Barrier(2)

    def demote(service: UserService, account_id: str) -> str:
        barrier.wait()
        try:
            service.update_user(None, account_id, UpdateUserRequest(role="STAFF"))
        except ApiError as exc:
            return exc.message
        return "ok"

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = sorted(pool.map(demote, services, [first.id, second.id]))

    assert outcomes == ["Cannot remove the last active admin", "ok"]
    assert repo.count_active_admins() == 1


def test_self_mutation_guards(tmp_path: Path) -> None:
    repo, service, _ = _build(tmp_path)
    me = make_account(repo, "me@shop.local", role=Role.ADMIN)
    make_account(repo, "other@shop.local", role=Role.ADMIN)

    with pytest.raises(ApiError) as deactivate:
        service.update_user(me.id, me.id, UpdateUserRequest(is_active=False))
    with pytest.raises(ApiError) as demote:
        service.update_user(me.id, me.id, UpdateUserRequest(role="STAFF"))
    with pytest.raises(ApiError) as delete:
        service.delete_user(me.id, me.id)

    assert deactivate.value.message == "You cannot deactivate your own account"
    assert demote.value.message == "You cannot remove your own admin access"
    assert delete.value.message == "You cannot delete your own account"
    assert service.update_user(me.id, me.id, UpdateUserRequest(name="Me")).name == "Me"


def test_update_user_rejects_taken_email_and_unknown_role(tmp_path: Path) -> None:
    repo, service, _ = _build(tmp_path)
    staff = make_account(repo, "staff@shop.local")
    make_account(repo, "taken@shop.local")

    with pytest.raises(ApiError) as conflict:
        service.update_user(None, staff.id, UpdateUserRequest(email="taken@shop.local"))
    with pytest.raises(ApiError) as bad_role:
        service.update_user(None, staff.id, UpdateUserRequest(role="OWNER"))
    with pytest.raises(ApiError) as missing:
        service.update_user(None, "missing", UpdateUserRequest(name="x"))

    assert conflict.value.status_code == 409
    assert bad_role.value.message == "Invalid role"
    assert missing.value.status_code == 404


def test_partial_update_keeps_omitted_fields_and_clears_name(tmp_path: Path) -> None:
    repo, service, _ = _build(tmp_path)
    staff = make_account(repo, "staff@shop.local", name="Staff")

    renamed = service.update_user(None, staff.id, UpdateUserRequest(email="clerk@shop.local"))
    cleared = service.update_user(None, staff.id, UpdateUserRequest(name=None))

    assert renamed.name == "Staff"
    assert renamed.role == Role.STAFF
    assert cleared.name is None
    assert cleared.email == "clerk@shop.local"


def test_deactivation_revokes_sessions(tmp_path: Path) -> None:
    repo, service, _ = _build(tmp_path)
    staff = make_account(repo, "staff@shop.local")
    session_id = _open_session(repo, staff.id)

    service.update_user(None, staff.id, UpdateUserRequest(is_active=False))

    assert repo.get_session(session_id) is None


def test_delete_user_removes_account_and_sessions(tmp_path: Path) -> None:
    repo, service, sink = _build(tmp_path)
    staff = make_account(repo, "staff@shop.local")
    session_id = _open_session(repo, staff.id)

    service.delete_user("actor", staff.id)

    assert repo.get_account(staff.id) is None
    assert repo.get_session(session_id) is None
    assert sink.actions == ["USER_DELETED"]
    with pytest.raises(ApiError) as exc:
        service.delete_user("actor", staff.id)
    assert exc.value.status_code == 404


def test_audit_failure_does_not_undo_mutation(tmp_path: Path) -> None:
    repo, service, _ = _build(tmp_path, sink=FailingAuditSink())

    account = service.create_user(
        None, CreateUserRequest(email="new@shop.local", password="pw", role="ADMIN")
    )

    assert repo.get_account(account.id) is not None
