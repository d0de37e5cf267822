"""
Local Key-Value Store.

Read/write access to the ``local_storage`` table in the local SQLite
database: the desktop equivalent of browser local storage.  Values are
JSON text; a read of a key that holds malformed JSON behaves like a
miss.

Storage failures never raise: reads degrade to ``None`` and writes to
``False``, and both are logged.

    CREATE TABLE IF NOT EXISTS local_storage (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional

from supabase_auth import AsyncSupportedStorage

from lingua.database import DatabaseManager
from lingua.logger import StructuredLogger


class LocalStore:
    """Persistent JSON key-value store in local SQLite.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager`` with active SQLite connection.
    logger:
        Structured logger instance.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    # ------------------------------------------------------------------
    # Raw text access
    # ------------------------------------------------------------------

    def get_item(self, key: str) -> Optional[str]:
        """Read the raw value stored at *key*.  Returns ``None`` if not found."""
        try:
            row = self._db.sqlite.execute(
                "SELECT value FROM local_storage WHERE key = ?",
                (key,),
            ).fetchone()
            return row["value"] if row is not None else None
        except sqlite3.Error as exc:
            self._logger.warning("Failed to read local_storage[%s]: %s", key, exc)
            return None

    def set_item(self, key: str, value: str) -> bool:
        """Upsert the raw *value* at *key*.  Returns ``True`` on success."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    """
                    INSERT INTO local_storage (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                self._db.sqlite.commit()
            self._logger.debug("local_storage[%s] updated.", key)
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to write local_storage[%s]: %s", key, exc)
            return False

    def remove_item(self, key: str) -> bool:
        """Delete *key*.  Removing a missing key succeeds."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    "DELETE FROM local_storage WHERE key = ?", (key,),
                )
                self._db.sqlite.commit()
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to delete local_storage[%s]: %s", key, exc)
            return False

    def keys(self) -> list[str]:
        """All stored keys, sorted."""
        try:
            rows = self._db.sqlite.execute(
                "SELECT key FROM local_storage ORDER BY key",
            ).fetchall()
            return [row["key"] for row in rows]
        except sqlite3.Error as exc:
            self._logger.warning("Failed to list local_storage keys: %s", exc)
            return []

    # ------------------------------------------------------------------
    # JSON convenience
    # ------------------------------------------------------------------

    def get_json(self, key: str) -> Optional[Any]:
        """Decode the JSON stored at *key*; ``None`` on miss or bad JSON."""
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as exc:
            self._logger.warning("Malformed JSON in local_storage[%s]: %s", key, exc)
            return None

    def set_json(self, key: str, value: Any) -> bool:
        """Encode *value* as JSON and store it at *key*."""
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            self._logger.error("Value for local_storage[%s] is not JSON-safe: %s", key, exc)
            return False
        return self.set_item(key, raw)


class SessionStorage(AsyncSupportedStorage):
    """Supabase auth storage backed by :class:`LocalStore`.

    Hands the auth client a persistent home for its session so that
    ``auth.get_session()`` restores the signed-in user after a restart.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    async def get_item(self, key: str) -> Optional[str]:
        return self._store.get_item(key)

    async def set_item(self, key: str, value: str) -> None:
        self._store.set_item(key, value)

    async def remove_item(self, key: str) -> None:
        self._store.remove_item(key)
