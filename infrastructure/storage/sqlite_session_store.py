"""Session store persisted as JSON values in a SQLite key-value table."""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from domain.errors import StoreUnavailableError
from domain.interfaces import SessionStore

logger = logging.getLogger(__name__)


class SqliteSessionStore(SessionStore):
    """Keeps session state in a lightweight SQLite database.

    The database is created on first access, so an unusable path surfaces as
    StoreUnavailableError from ``get``/``set`` rather than at construction.
    """

    def __init__(self, db_path: str | Path = "nova.db") -> None:
        self._db_path = Path(db_path)
        self._schema_ready = False

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS session_state (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailableError(f"Cannot open session store at {self._db_path}: {exc}") from exc
        self._schema_ready = True

    def get(self, key: str) -> Any | None:
        self._ensure_schema()
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT value FROM session_state WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot read {key}: {exc}") from exc
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt session value for %s", key)
            return None

    def set(self, key: str, value: Any) -> None:
        self._ensure_schema()
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    REPLACE INTO session_state (key, value, updated_at) VALUES (?, ?, ?)
                    """,
                    (key, json.dumps(value), datetime.now(timezone.utc).isoformat()),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot write {key}: {exc}") from exc


__all__ = ["SqliteSessionStore"]
