"""
Signup Sync Worker.

Background asyncio task that replays signups queued while offline.
The caller invokes :meth:`start` / :meth:`stop`; the task wakes every
``interval`` seconds (doubling on consecutive failures, capped) and
immediately whenever the reachability monitor reports the backend is
back.

Per queued entry:

- the sealed password is opened (an entry sealed on another machine or
  account cannot be opened and is dropped),
- ``auth.sign_up`` is replayed with the stored name and languages,
- success and "already registered" both remove the entry,
- a network failure ends the cycle and leaves the queue untouched,
- any other rejection drops the entry (it would never succeed).
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from lingua.database import DatabaseManager
from lingua.errors import AuthError, NetworkError
from lingua.logger import StructuredLogger
from lingua.models.auth_models import QueuedSignup
from lingua.services.base_service import BaseService
from lingua.services.credential_cache import CredentialCache
from lingua.services.reachability import ReachabilityMonitor
from lingua.services.remote_session import RemoteSessionClient
from lingua.services.secret_box import SecretBox
from lingua.utils.audit import log_audit_event

_ALREADY_REGISTERED_MARKERS: tuple[str, ...] = (
    "already registered",
    "user_already_exists",
    "already exists",
)


class SignupSyncWorker(BaseService):
    """Drains the queued-signup list to the auth provider.

    Parameters
    ----------
    cache:
        Holds the queued signups.
    remote:
        Replays each signup.
    reachability:
        Gates every cycle; online transitions trigger an immediate run.
    secret_box:
        Opens the sealed queued passwords.
    logger:
        Structured JSON logger.
    base_interval_s, max_interval_s:
        Polling interval and backoff cap.
    db:
        Optional; when given, replays are also written to ``audit_log``.
    """

    def __init__(
        self,
        cache: CredentialCache,
        remote: RemoteSessionClient,
        reachability: ReachabilityMonitor,
        secret_box: SecretBox,
        logger: StructuredLogger,
        base_interval_s: float = 30.0,
        max_interval_s: float = 300.0,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        super().__init__(logger)
        self._cache = cache
        self._remote = remote
        self._reachability = reachability
        self._secret_box = secret_box
        self._base_interval_s = base_interval_s
        self._max_interval_s = max_interval_s
        self._db = db

        self._task: Optional[asyncio.Task[None]] = None
        self._wake: Optional[asyncio.Event] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._consecutive_failures: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker on the running event loop.

        Idempotent: calling ``start()`` when already running is a no-op.
        """
        if self.is_running:
            self._logger.debug("Signup sync worker already running.")
            return

        self._consecutive_failures = 0
        self._wake = asyncio.Event()
        if self._reachability.is_online():
            self._wake.set()
        self._unsubscribe = self._reachability.subscribe(self._on_reachability)
        self._task = asyncio.get_running_loop().create_task(
            self._run_loop(self._wake), name="SignupSyncWorker",
        )
        self._logger.info("Signup sync worker started.")

    async def stop(self) -> None:
        """Cancel the worker and wait for it to exit.  Safe when stopped."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._logger.info("Signup sync worker stopped.")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_reachability(self, online: bool) -> None:
        if online and self._wake is not None:
            self._wake.set()

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    async def _run_loop(self, wake: asyncio.Event) -> None:
        while True:
            try:
                await asyncio.wait_for(wake.wait(), self._calculate_backoff_interval())
            except TimeoutError:
                pass
            wake.clear()

            if not self._reachability.is_online():
                continue

            try:
                await self.sync_once()
                self._consecutive_failures = 0
            except NetworkError as exc:
                self._consecutive_failures += 1
                self._logger.warning(
                    "Signup replay deferred (%d consecutive failures): %s",
                    self._consecutive_failures, exc,
                )
            except Exception:
                self._consecutive_failures += 1
                self._logger.error("Signup sync cycle failed.", exc_info=True)

    async def sync_once(self) -> int:
        """Replay every queued signup once.

        Returns
        -------
        int
            Number of entries removed from the queue as done.

        Raises
        ------
        NetworkError
            The backend became unreachable; remaining entries stay queued.
        """
        entries = self._cache.get_queued_signups()
        if not entries:
            return 0

        completed: int = 0
        for entry in entries:
            if await self._replay(entry):
                completed += 1

        if completed:
            self._logger.info(
                "Signup sync complete: %d/%d replayed.", completed, len(entries),
            )
        return completed

    async def _replay(self, entry: QueuedSignup) -> bool:
        try:
            password = self._secret_box.open(entry.password)
        except ValueError as exc:
            self._logger.error(
                "Dropping queued signup for %s: password cannot be opened (%s).",
                entry.email, exc,
            )
            self._cache.clear_queued_signup(entry.email)
            return False

        metadata = {
            "name": entry.name,
            "full_name": entry.name,
            "learning_languages": list(entry.learning_languages),
            "native_language": entry.native_language,
        }
        try:
            identity, _session = await self._remote.sign_up(entry.email, password, metadata)
        except AuthError as exc:
            self._cache.clear_queued_signup(entry.email)
            lowered = exc.message.lower()
            if any(marker in lowered for marker in _ALREADY_REGISTERED_MARKERS):
                self._logger.info("Queued signup for %s already registered.", entry.email)
                return True
            self._logger.warning(
                "Dropping queued signup for %s: rejected (%s).", entry.email, exc,
            )
            return False

        self._cache.clear_queued_signup(entry.email)
        self._audit(entry, identity.id if identity is not None else entry.email)
        self._logger.info(
            "Queued signup replayed for %s.", entry.email,
            extra={"event": "SIGNUP", "email": entry.email},
        )
        return True

    def _audit(self, entry: QueuedSignup, entity_id: str) -> None:
        if self._db is None:
            log_audit_event(
                self._logger, "REPLAY", "QueuedSignup", entity_id, entry.email,
                details={"queued_at": entry.timestamp},
            )
            return
        with self._db.write_lock:
            log_audit_event(
                self._logger, "REPLAY", "QueuedSignup", entity_id, entry.email,
                details={"queued_at": entry.timestamp},
                conn=self._db.sqlite,
            )

    # ------------------------------------------------------------------
    # Exponential backoff
    # ------------------------------------------------------------------

    def _calculate_backoff_interval(self) -> float:
        """Base interval with no failures; doubles per failure up to the cap."""
        if self._consecutive_failures == 0:
            return self._base_interval_s
        backoff = self._base_interval_s * (2 ** min(self._consecutive_failures, 6))
        return min(backoff, self._max_interval_s)
