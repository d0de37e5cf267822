"""
Application Configuration.

Pydantic Settings model for the Lingua AI desktop client.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import ClassVar, Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Local storage ---
    LOCAL_DB_PATH: str = "lingua_local.db"

    # --- Remote timeouts (seconds) ---
    SESSION_INIT_TIMEOUT_S: float = 10.0
    AUTH_FALLBACK_TIMEOUT_S: float = 5.0
    REQUEST_TIMEOUT_S: float = 5.0
    LOGIN_TIMEOUT_S: float = 10.0

    # --- Offline credential cache ---
    OFFLINE_CACHE_MAX_AGE_HOURS: int = 24
    OFFLINE_AUTH_SALT: SecretStr = SecretStr("lingua-ai-salt")
    # Off by default: offline login trusts the device and matches the
    # cached email only.
    OFFLINE_LOGIN_VERIFY_PASSWORD: bool = False

    # --- Protected-route guard ---
    GUARD_BASE_WAIT_S: float = 0.5
    GUARD_OFFLINE_WAIT_S: float = 1.0
    GUARD_SIGNUP_WAIT_S: float = 10.0
    GUARD_SESSION_POLL_ATTEMPTS: int = 5
    GUARD_SESSION_POLL_BACKOFF_S: float = 0.2
    LOGIN_ROUTE: str = "/auth/login"

    # --- Reachability ---
    REACHABILITY_POLL_INTERVAL_S: float = 15.0
    REACHABILITY_HOLD_DOWN_S: float = 30.0

    # --- Queued signup replay ---
    SIGNUP_SYNC_INTERVAL_S: float = 30.0
    SIGNUP_SYNC_MAX_INTERVAL_S: float = 300.0  # 5-minute cap

    # --- OAuth ---
    OAUTH_REDIRECT_URL: str = "http://localhost:3000/auth/callback"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "lingua.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    # Language codes offered on the signup form.  ClassVar so
    # pydantic-settings does not try to load it from the environment.
    SUPPORTED_LEARNING_LANGUAGES: ClassVar[tuple[str, ...]] = (
        "en", "ar", "nl", "id", "ms", "th", "km",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators would otherwise not notice that the client started
        without a backend.
        """
        _log = logging.getLogger("lingua.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found. All configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty. Supabase connectivity is disabled "
                "and the app will operate in offline-only mode."
            )

        return self

    @property
    def offline_cache_max_age_s(self) -> float:
        """Offline cache lifetime expressed in seconds."""
        return float(self.OFFLINE_CACHE_MAX_AGE_HOURS * 3600)


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern so the fast path skips the lock while first initialisation
    stays thread-safe.

    Prefer direct constructor injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
