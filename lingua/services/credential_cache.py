"""
Offline Credential Cache.

Keeps the "last known" user on this device so the app can open while
the backend is unreachable:

- ``lingua-ai-offline-auth``: ``{email, passwordHash, timestamp}``
- ``lingua-ai-offline-user``: ``OfflineUser`` JSON (``cachedAt`` in ms)
- ``lingua-ai-queued-signups``: list of ``QueuedSignup`` JSON

Single-slot design
------------------
The auth and user records live under fixed keys, not per user id.
Caching user B overwrites user A (last writer wins).  One user per
device is an explicit constraint of the offline mode.

Offline login
-------------
:meth:`CredentialCache.login_offline` matches the cached email only and
accepts any password.  :meth:`CredentialCache.verify_password` lets a
deployment opt into hash verification (``OFFLINE_LOGIN_VERIFY_PASSWORD``).

Every operation is a local read/write and never raises: storage
failures are logged by ``LocalStore`` and surface here as ``None`` /
``False``.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Optional

from pydantic import ValidationError

from lingua.logger import StructuredLogger
from lingua.models.auth_models import OfflineAuthRecord, QueuedSignup
from lingua.models.user import OfflineUser, User
from lingua.services.base_service import BaseService
from lingua.services.local_store import LocalStore
from lingua.utils.general import Clock, now_ms, system_clock

OFFLINE_AUTH_KEY: str = "lingua-ai-offline-auth"
OFFLINE_USER_KEY: str = "lingua-ai-offline-user"
QUEUED_SIGNUPS_KEY: str = "lingua-ai-queued-signups"

DEFAULT_MAX_AGE_S: float = 24 * 60 * 60


def hash_password(password: str, salt: str) -> str:
    """Salted SHA-256 hex digest of *password*.  Not reversible."""
    return hashlib.sha256((password + salt).encode("utf-8")).hexdigest()


class CredentialCache(BaseService):
    """Single-slot offline credential and profile cache.

    Parameters
    ----------
    store:
        Persistent key-value store.
    logger:
        Structured logger instance.
    salt:
        Fixed salt appended to passwords before hashing.
    max_age_s:
        Lifetime of a cached user, in seconds (24 h by default).
    clock:
        Wall-clock source; injectable so expiry can be tested.
    """

    def __init__(
        self,
        store: LocalStore,
        logger: StructuredLogger,
        salt: str = "lingua-ai-salt",
        max_age_s: float = DEFAULT_MAX_AGE_S,
        clock: Clock = system_clock,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._salt = salt
        self._max_age_ms: int = int(max_age_s * 1000)
        self._clock = clock

    # ------------------------------------------------------------------
    # Auth record
    # ------------------------------------------------------------------

    def store_auth(self, email: str, password: str) -> None:
        """Persist ``{email, passwordHash, timestamp}``, replacing any prior record."""
        record = OfflineAuthRecord(
            email=email,
            password_hash=hash_password(password, self._salt),
            timestamp=now_ms(self._clock),
        )
        self._store.set_json(OFFLINE_AUTH_KEY, record.model_dump(by_alias=True))

    def get_auth(self) -> Optional[OfflineAuthRecord]:
        data = self._store.get_json(OFFLINE_AUTH_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return OfflineAuthRecord.model_validate(data)
        except ValidationError as exc:
            self._logger.warning("Discarding malformed offline auth record: %s", exc)
            return None

    def can_login_offline(self, email: str) -> bool:
        """``True`` iff an auth record with a hash exists for *email*."""
        record = self.get_auth()
        return bool(record is not None and record.email == email and record.password_hash)

    def verify_password(self, email: str, password: str) -> bool:
        """Check *password* against the cached hash for *email*."""
        record = self.get_auth()
        if record is None or record.email != email:
            return False
        return hmac.compare_digest(record.password_hash, hash_password(password, self._salt))

    # ------------------------------------------------------------------
    # User snapshot
    # ------------------------------------------------------------------

    def store_user(self, user: User, learning_languages: Optional[list[str]] = None) -> None:
        """Persist *user* with ``cachedAt = now``, replacing any prior snapshot."""
        payload: dict[str, Any] = user.model_dump(exclude={"cached_at", "learning_languages"})
        if learning_languages is None and isinstance(user, OfflineUser):
            learning_languages = user.learning_languages
        snapshot = OfflineUser(
            **payload,
            cached_at=now_ms(self._clock),
            learning_languages=learning_languages,
        )
        self._store.set_json(
            OFFLINE_USER_KEY, snapshot.model_dump(by_alias=True, exclude_none=True),
        )

    def get_user(self) -> Optional[OfflineUser]:
        """Return the cached user while it is younger than the max age.

        An expired snapshot removes both the user and the auth record.
        """
        data = self._store.get_json(OFFLINE_USER_KEY)
        if not isinstance(data, dict):
            return None
        try:
            user = OfflineUser.model_validate(data)
        except ValidationError as exc:
            self._logger.warning("Discarding malformed offline user: %s", exc)
            return None

        if now_ms(self._clock) - user.cached_at < self._max_age_ms:
            return user

        self._logger.info(
            "Offline cache for %s expired; removing.", user.email,
            extra={"event": "OFFLINE_CACHE_EXPIRED"},
        )
        self._store.remove_item(OFFLINE_USER_KEY)
        self._store.remove_item(OFFLINE_AUTH_KEY)
        return None

    def login_offline(self, email: str) -> Optional[OfflineUser]:
        """Return the cached user iff its email matches.

        The password is not checked.
        """
        user = self.get_user()
        if user is not None and user.email == email:
            self._logger.info(
                "Logged in from offline cache.", extra={"event": "OFFLINE_LOGIN"},
            )
            return user
        return None

    # ------------------------------------------------------------------
    # Signup queue
    # ------------------------------------------------------------------

    def queue_signup(
        self,
        email: str,
        password: str,
        name: str,
        learning_languages: list[str],
        native_language: str,
    ) -> bool:
        """Append a pending signup unless *email* is already queued.

        *password* must already be sealed by the caller.  Returns
        ``True`` when a new entry was written.
        """
        queued = self.get_queued_signups()
        if any(entry.email == email for entry in queued):
            return False
        queued.append(
            QueuedSignup(
                email=email,
                password=password,
                name=name,
                learning_languages=list(learning_languages),
                native_language=native_language,
                timestamp=now_ms(self._clock),
            )
        )
        return self._write_queue(queued)

    def get_queued_signups(self) -> list[QueuedSignup]:
        data = self._store.get_json(QUEUED_SIGNUPS_KEY)
        if not isinstance(data, list):
            return []
        entries: list[QueuedSignup] = []
        for item in data:
            try:
                entries.append(QueuedSignup.model_validate(item))
            except ValidationError as exc:
                self._logger.warning("Skipping malformed queued signup: %s", exc)
        return entries

    def clear_queued_signup(self, email: str) -> None:
        """Drop the queued signup for *email*, if any."""
        remaining = [entry for entry in self.get_queued_signups() if entry.email != email]
        self._write_queue(remaining)

    def _write_queue(self, entries: list[QueuedSignup]) -> bool:
        return self._store.set_json(
            QUEUED_SIGNUPS_KEY, [entry.model_dump(by_alias=True) for entry in entries],
        )

    # ------------------------------------------------------------------
    # Wipe
    # ------------------------------------------------------------------

    def clear_all(self) -> None:
        """Delete the auth record, the user snapshot and the signup queue."""
        for key in (OFFLINE_AUTH_KEY, OFFLINE_USER_KEY, QUEUED_SIGNUPS_KEY):
            self._store.remove_item(key)
        self._logger.info("Offline credential cache cleared.")
