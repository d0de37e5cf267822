"""
Database Abstraction Layer.

Implements the dual-store pattern for the Lingua AI client:

- **SQLite (local)**: the offline store backing the credential cache,
  the signup queue and every other key-value item the client keeps
  between runs (see ``LocalStore``).

- **Supabase (hosted)**: authentication, the ``profiles`` /
  ``users`` / ``notifications`` tables and the realtime channel.  The
  async client is created by :meth:`DatabaseManager.connect_remote`;
  when it is absent the client runs in offline mode.

This module only manages the raw *connections*; it contains no query
logic.

Usage (dependency injection at app startup)::

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="database"),
    )
    await db.connect_remote()
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from supabase import AsyncClient, AsyncClientOptions, acreate_client
from supabase_auth import AsyncSupportedStorage

from lingua.logger import StructuredLogger


class DatabaseManager:
    """Manages the local SQLite connection and the hosted Supabase client.

    When ``supabase_url`` or ``supabase_key`` is empty the Supabase client
    is **not** created and the application runs in offline mode.  Remote
    code wraps every ``supabase`` access, so the ``RuntimeError`` raised
    by the property lands on the regular network-error path.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL (e.g. ``https://xyz.supabase.co``).
        May be empty to run in offline mode.
    supabase_key:
        The Supabase anonymous key.  May be empty to run in offline mode.
    sqlite_path:
        Filesystem path for the local SQLite database file, or
        ``":memory:"``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Path | str,
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._supabase_url: str = supabase_url
        self._supabase_key: str = supabase_key
        self._supabase: Optional[AsyncClient] = None

        # --- SQLite (always required) ---
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    # ------------------------------------------------------------------
    # Remote client lifecycle
    # ------------------------------------------------------------------

    async def connect_remote(self, storage: Optional[AsyncSupportedStorage] = None) -> bool:
        """Create the async Supabase client if credentials are configured.

        Parameters
        ----------
        storage:
            Where the auth client persists its session.  Without it the
            session lives in memory and is gone after a restart.

        Returns
        -------
        bool
            ``True`` when a client is available afterwards.
        """
        if self._supabase is not None:
            return True

        if not (self._supabase_url and self._supabase_key):
            self._logger.warning(
                "Supabase credentials not configured. Running in offline mode."
            )
            return False

        options = AsyncClientOptions(auto_refresh_token=True, persist_session=True)
        if storage is not None:
            options.storage = storage

        try:
            client = await acreate_client(
                self._supabase_url, self._supabase_key, options=options,
            )
        except (ValueError, TypeError) as exc:
            self._logger.warning(
                "Supabase credential format error: %s. Running in offline mode.",
                exc,
            )
            return False
        except Exception as exc:
            self._logger.error(
                "Unexpected Supabase initialization failure: %s. "
                "Running in offline mode.",
                exc,
                exc_info=True,
            )
            return False

        self.attach_remote(client)
        return True

    def attach_remote(self, client: AsyncClient) -> None:
        """Install an already-built Supabase client."""
        self._supabase = client
        self._logger.info("Supabase client initialized.")

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> AsyncClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the Supabase client was not initialised (offline mode).
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "The application is running in offline mode."
            )
        return self._supabase

    @property
    def supabase_url(self) -> str:
        return self._supabase_url

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Return the write lock for thread-safe SQLite operations.

        All code that performs SQLite writes should acquire this lock
        first::

            with db.write_lock:
                db.sqlite.execute("INSERT ...")
                db.sqlite.commit()
        """
        return self._write_lock

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Path | str) -> sqlite3.Connection:
        """Open (or create) the SQLite database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process.  Please check file permissions and try again."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
