"""Best-effort recorder for security-relevant events."""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import Executor
from typing import Any, Protocol

from inventory_auth.audit.models import AuditAction, AuditLogEntry

LOGGER = logging.getLogger(__name__)


class AuditSink(Protocol):
    def append(self, entry: AuditLogEntry) -> None:
        """Persist a single audit entry."""


class AuditLogRecorder:
    """Append audit entries without ever failing the caller.

    Call only after the primary operation has committed. With an executor the
    write runs in the background; without one it runs inline. Either way a
    failed write is logged and dropped.
    """

    def __init__(self, sink: AuditSink, *, executor: Executor | None = None) -> None:
        self._sink = sink
        self._executor = executor

    def record(
        self,
        *,
        action: AuditAction | str,
        target_type: str,
        target_id: str | None = None,
        actor_id: str | None = None,
        summary: str | None = None,
        metadata: dict[str, Any] | None = None,
        snapshot: dict[str, Any] | None = None,
    ) -> None:
        entry = AuditLogEntry(
            id=uuid.uuid4().hex,
            actor_id=actor_id,
            target_type=target_type,
            target_id=target_id,
            action=str(action),
            summary=summary,
            metadata=metadata,
            snapshot=snapshot,
            created_at=int(time.time()),
        )
        if self._executor is None:
            self._write(entry)
            return
        try:
            self._executor.submit(self._write, entry)
        except RuntimeError:
            # Executor already shut down.
            LOGGER.exception(
                "audit_log_write_failed",
                extra={"action": entry.action, "account_id": entry.actor_id},
            )

    def _write(self, entry: AuditLogEntry) -> None:
        try:
            self._sink.append(entry)
        except Exception:
            LOGGER.exception(
                "audit_log_write_failed",
                extra={"action": entry.action, "account_id": entry.actor_id},
            )
