"""SQLite schema migrations."""

from inventory_auth.core.migrations.runner import MIGRATIONS_DIR, apply_migrations

__all__ = ["MIGRATIONS_DIR", "apply_migrations"]
