"""
Lingua AI Desktop Client Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local SQLite schema, and launches the CustomTkinter GUI.  Every
subsystem is wired here.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import sys
import traceback
from pathlib import Path

from lingua.config import get_config
from lingua.container import create_services
from lingua.database import DatabaseManager
from lingua.errors import CrashKind, classify_crash
from lingua.logger import StructuredLogger, get_logger
from lingua.schema import initialize_schema
from lingua.services.local_store import LocalStore, SessionStorage
from lingua.services.reachability import ReachabilityMonitor
from lingua.services.secret_box import SecretBox
from lingua.ui.app_shell import AppShell
from lingua.ui.async_bridge import AsyncBridge

_platform_online: bool = True


def main() -> None:
    """Application entry point: wire dependencies and launch the GUI."""
    global _platform_online
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting Lingua AI...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (SQLite always, Supabase when reachable)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="database"),
    )
    # close() is idempotent; this covers exits that skip the finally below.
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 3. SQLite Schema Initialization (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    # ------------------------------------------------------------------
    # 4. Async loop thread
    # ------------------------------------------------------------------
    bridge = AsyncBridge(logger=get_logger("async_bridge"))
    bridge.start()

    # ------------------------------------------------------------------
    # 5. Remote client (optional: the app runs offline without it).
    #    Its session is persisted in local SQLite so restarts keep it.
    # ------------------------------------------------------------------
    session_storage = SessionStorage(LocalStore(db=db, logger=get_logger("session_storage")))
    connected = bridge.submit(db.connect_remote(storage=session_storage)).result()

    # ------------------------------------------------------------------
    # 6. Reachability and secret sealing
    # ------------------------------------------------------------------
    reachability = ReachabilityMonitor(
        base_url=config.SUPABASE_URL,
        logger=get_logger("reachability"),
        probe_timeout_s=config.REQUEST_TIMEOUT_S,
        poll_interval_s=config.REACHABILITY_POLL_INTERVAL_S,
        hold_down_s=config.REACHABILITY_HOLD_DOWN_S,
        initially_online=connected,
    )
    reachability.subscribe(_track_platform_state)
    _platform_online = reachability.is_online()
    secret_box = SecretBox(logger=get_logger("secret_box"))

    # ------------------------------------------------------------------
    # 7. Service Container (single composition root)
    # ------------------------------------------------------------------
    services = create_services(
        db=db,
        config=config,
        reachability=reachability,
        secret_box=secret_box,
    )

    # ------------------------------------------------------------------
    # 8. Launch the GUI (blocks until window closes)
    # ------------------------------------------------------------------
    logger.info("Launching GUI...")
    app = AppShell(
        config=config,
        db=db,
        services=services,
        bridge=bridge,
        logger=get_logger("ui"),
    )
    try:
        app.mainloop()
    finally:
        bridge.stop()
        db.close()
        logger.info("Lingua AI shut down.")


def _track_platform_state(online: bool) -> None:
    global _platform_online
    _platform_online = online


def _show_fatal_error(exc: BaseException) -> None:
    """Display a fatal-error dialog so double-click users get feedback.

    Connectivity crashes get a retry-oriented message instead of the
    generic one.  Uses ``tkinter.messagebox`` (stdlib) rather than
    CustomTkinter so the dialog works even when CTk itself failed.
    """
    detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    if classify_crash(exc, platform_online=_platform_online) is CrashKind.OFFLINE:
        title = "Lingua AI - You're offline"
        message = (
            "The app could not reach the server. Check your internet "
            "connection and start Lingua AI again."
        )
    else:
        title = "Lingua AI - Fatal Error"
        message = (
            "The application encountered an unexpected error and "
            "cannot continue.\n\n"
            f"{type(exc).__name__}: {exc}"
        )
    try:
        import tkinter
        from tkinter import messagebox

        root = tkinter.Tk()
        root.withdraw()
        messagebox.showerror(title=title, message=message, detail=detail)
        root.destroy()
    except Exception:
        # Headless or missing Tcl/Tk: fall back to stderr.
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n{detail}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        _show_fatal_error(exc)
        sys.exit(1)
