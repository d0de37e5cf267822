"""
Local SQLite Schema.

The local database is built from an ordered ledger of migrations.
:func:`initialize_schema` reads the applied version from
``schema_version`` and runs every later step in order, so a fresh file
and a file left behind by an older release take the same path.

Versions
~~~~~~~~
1. ``local_storage``: key-value items (offline credential cache,
   signup queue, persisted auth session).  Values are JSON text.
2. ``audit_log``: queryable copy of structured audit events.

The whole upgrade runs in one transaction; on failure the file stays at
its previous version and the next startup retries.

Usage::

    conn = sqlite3.connect("lingua_local.db")
    initialize_schema(conn, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from lingua.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

Migration = Callable[[sqlite3.Connection], None]

_VERSION_TABLE: str = """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""


def _create_local_storage(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS local_storage (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )


def _create_audit_log(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            action TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            details TEXT
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_log_action ON audit_log (action)"
    )


# Index i holds the step that takes the file from version i to i + 1.
_MIGRATIONS: tuple[Migration, ...] = (
    _create_local_storage,
    _create_audit_log,
)

CURRENT_SCHEMA_VERSION: int = len(_MIGRATIONS)


def _applied_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return row[0] if row is not None else 0


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Bring the local database up to :data:`CURRENT_SCHEMA_VERSION`.

    Called on every startup; a no-op once the file is current.

    Args:
        conn: An open SQLite connection.
        logger: Structured logger for progress output.

    Raises:
        sqlite3.Error: A migration failed; the transaction was rolled back.
    """
    conn.execute(_VERSION_TABLE)
    conn.commit()
    current = _applied_version(conn)

    if current >= CURRENT_SCHEMA_VERSION:
        logger.debug("Local schema is current (version %d).", current)
        return

    try:
        for version in range(current, CURRENT_SCHEMA_VERSION):
            _MIGRATIONS[version](conn)
            logger.info(
                "Applied local schema migration %d: %s.",
                version + 1, _MIGRATIONS[version].__name__.lstrip("_"),
            )
        conn.execute(
            """
            INSERT INTO schema_version (id, version) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET version = excluded.version,
                                          applied_at = CURRENT_TIMESTAMP
            """,
            (CURRENT_SCHEMA_VERSION,),
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.error(
            "Local schema migration failed; staying at version %d.", current,
            exc_info=True,
        )
        raise

    logger.info("Local schema at version %d.", CURRENT_SCHEMA_VERSION)
