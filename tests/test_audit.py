from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from inventory_auth.audit.models import AuditAction
from inventory_auth.audit.recorder import AuditLogRecorder
from inventory_auth.audit.repository import AuditRepository
from inventory_auth.core.config import StorageConfig
from inventory_auth.core.database import Database
from tests.factories import FailingAuditSink, RecordingAuditSink


def _repo(tmp_path: Path) -> AuditRepository:
    database = Database(tmp_path / "state.db")
    return AuditRepository(database, StorageConfig(sqlite_path=str(database.path)))


def test_sqlite_backend_lists_newest_first_with_filters(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    recorder = AuditLogRecorder(repo)

    recorder.record(action=AuditAction.LOGIN_SUCCESS, target_type="USER", target_id="u1", actor_id="u1")
    recorder.record(
        action=AuditAction.USER_UPDATED,
        target_type="USER",
        target_id="u2",
        actor_id="u1",
        snapshot={"role": "STAFF"},
    )
    recorder.record(action=AuditAction.LOGOUT, target_type="USER", target_id="u2", actor_id="u2")

    assert repo.backend == "sqlite"
    entries = repo.list_entries()
    assert [e.action for e in entries] == ["LOGOUT", "USER_UPDATED", "LOGIN_SUCCESS"]
    by_actor = repo.list_entries(actor_id="u1", limit=1)
    assert [e.action for e in by_actor] == ["USER_UPDATED"]
    assert by_actor[0].snapshot == {"role": "STAFF"}
    assert repo.list_entries(target_type="PRODUCT") == []


def test_recorder_swallows_sink_failures(caplog) -> None:
    recorder = AuditLogRecorder(FailingAuditSink())

    with caplog.at_level(logging.ERROR):
        recorder.record(action=AuditAction.LOGOUT, target_type="USER", actor_id="u1")

    assert "audit_log_write_failed" in caplog.text


def test_recorder_writes_through_executor() -> None:
    sink = RecordingAuditSink()
    with ThreadPoolExecutor(max_workers=1) as executor:
        recorder = AuditLogRecorder(sink, executor=executor)
        recorder.record(action=AuditAction.USER_DELETED, target_type="USER", target_id="u9")

    assert sink.actions == ["USER_DELETED"]
    assert sink.entries[0].target_id == "u9"
