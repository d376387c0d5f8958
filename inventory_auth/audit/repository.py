"""Append-only audit log storage with MongoDB primary and SQLite fallback."""

from __future__ import annotations

import json
import logging
from typing import Any

from pymongo import DESCENDING, MongoClient

from inventory_auth.audit.models import AuditLogEntry
from inventory_auth.core.config import StorageConfig
from inventory_auth.core.database import Database

LOGGER = logging.getLogger(__name__)

AUDIT_COLLECTION = "audit_logs"


def _dump_json(value: dict[str, Any] | None) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def _load_json(value: str | None) -> dict[str, Any] | None:
    if not value:
        return None
    try:
        payload = json.loads(value)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


class AuditRepository:
    """Audit entries live in MongoDB when ``MONGODB_URI`` is reachable, else SQLite."""

    def __init__(self, database: Database, storage: StorageConfig) -> None:
        self._db = database
        self._mongo_audit = None

        if storage.mongodb_uri:
            try:
                client: Any = MongoClient(storage.mongodb_uri, serverSelectionTimeoutMS=3000)
                client.admin.command("ping")
                self._mongo_audit = client[storage.mongodb_db][AUDIT_COLLECTION]
            except Exception:
                LOGGER.warning("audit_mongo_unavailable_using_sqlite", exc_info=True)
                self._mongo_audit = None

    @property
    def backend(self) -> str:
        return "mongodb" if self._mongo_audit is not None else "sqlite"

    def append(self, entry: AuditLogEntry) -> None:
        if self._mongo_audit is not None:
            self._mongo_audit.insert_one(entry.model_dump())
            return

        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO audit_logs(
                  id, actor_id, target_type, target_id, action, summary,
                  metadata_json, snapshot_json, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.actor_id,
                    entry.target_type,
                    entry.target_id,
                    entry.action,
                    entry.summary,
                    _dump_json(entry.metadata),
                    _dump_json(entry.snapshot),
                    entry.created_at,
                ),
            )

    def list_entries(
        self,
        *,
        target_type: str = "",
        actor_id: str = "",
        limit: int = 50,
    ) -> list[AuditLogEntry]:
        """Return newest entries first, optionally filtered."""
        if self._mongo_audit is not None:
            query: dict[str, Any] = {}
            if target_type:
                query["target_type"] = target_type
            if actor_id:
                query["actor_id"] = actor_id
            cursor = (
                self._mongo_audit.find(query, {"_id": 0})
                .sort("created_at", DESCENDING)
                .limit(limit)
            )
            return [AuditLogEntry.model_validate(doc) for doc in cursor]

        clauses: list[str] = []
        params: list[Any] = []
        if target_type:
            clauses.append("target_type = ?")
            params.append(target_type)
        if actor_id:
            clauses.append("actor_id = ?")
            params.append(actor_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._db.fetch_all(
            f"""
            SELECT id, actor_id, target_type, target_id, action, summary,
                   metadata_json, snapshot_json, created_at
            FROM audit_logs
            {where}
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (*params, limit),
        )
        return [
            AuditLogEntry(
                id=row["id"],
                actor_id=row["actor_id"],
                target_type=row["target_type"],
                target_id=row["target_id"],
                action=row["action"],
                summary=row["summary"],
                metadata=_load_json(row["metadata_json"]),
                snapshot=_load_json(row["snapshot_json"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]
