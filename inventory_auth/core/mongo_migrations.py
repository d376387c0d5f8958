"""Versioned MongoDB index migrations for the audit collection."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import pymongo
from pymongo.errors import PyMongoError

from inventory_auth.core.config import StorageConfig
from inventory_auth.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]


def _migration_20261001_01_audit_indexes(db: Any) -> None:
    db["audit_logs"].create_index("id", unique=True)
    db["audit_logs"].create_index([("created_at", pymongo.DESCENDING)])
    db["audit_logs"].create_index([("target_type", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)])
    db["audit_logs"].create_index([("actor_id", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)])


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20261001_01_audit_indexes", _migration_20261001_01_audit_indexes),
]


def apply_mongo_migrations(storage: StorageConfig) -> list[str]:
    """Apply MongoDB migrations if a MongoDB URI is configured."""
    if not storage.mongodb_uri:
        return []

    applied: list[str] = []
    client: Any = pymongo.MongoClient(storage.mongodb_uri, serverSelectionTimeoutMS=3000)
    try:
        try:
            client.admin.command("ping")
            db = client[storage.mongodb_db]
            migration_collection = db["schema_migrations"]
            migration_collection.create_index("migration_id", unique=True)

            for migration_id, migration_fn in MIGRATIONS:
                if migration_collection.find_one({"migration_id": migration_id}):
                    continue
                migration_fn(db)
                migration_collection.insert_one(
                    {
                        "migration_id": migration_id,
                        "applied_at": datetime.now(timezone.utc),
                        "correlation_id": CORRELATION_ID_CTX.get(),
                    }
                )
                applied.append(migration_id)
        except PyMongoError:
            LOGGER.warning("mongo_migrations_skipped", exc_info=True)
            return applied
    finally:
        client.close()

    if applied:
        LOGGER.info("mongo_migrations_applied: %s", ", ".join(applied))
    return applied
