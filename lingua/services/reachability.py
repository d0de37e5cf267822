"""
Reachability Monitor.

Derives a single online/offline signal from two sources:

1. An active probe: ``HEAD {SUPABASE_URL}/rest/v1/``.  Any direct HTTP
   response (401 and 404 included) proves the backend is reachable; a
   redirect (the usual captive-portal answer), a transport error or a
   timeout does not.
2. Remote call failures reported via :meth:`mark_unreachable`.  A login
   that timed out counts as "offline" even while the OS claims
   connectivity (captive portals, proxies and CORS failures all look
   "online" to the platform).  For ``hold_down_s`` afterwards a
   successful probe does not flip the state back.

Consumers read :meth:`ReachabilityMonitor.is_online` before choosing a
login strategy and subscribe to transitions to react when the link
comes back.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import httpx

from lingua.logger import StructuredLogger
from lingua.services.base_service import BaseService
from lingua.utils.general import Clock, system_clock

ReachabilityListener = Callable[[bool], None]


class ReachabilityMonitor(BaseService):
    """Tracks whether the hosted backend is reachable.

    Parameters
    ----------
    base_url:
        The Supabase project URL.  Empty means "never online".
    logger:
        Structured logger instance.
    probe_timeout_s:
        Deadline for a single probe request.
    poll_interval_s:
        Delay between background probes once :meth:`start` was called.
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    initially_online:
        State reported before the first probe completes.
    hold_down_s:
        How long probe successes are ignored after :meth:`mark_unreachable`.
    clock:
        Wall-clock source for the hold-down.
    """

    def __init__(
        self,
        base_url: str,
        logger: StructuredLogger,
        probe_timeout_s: float = 5.0,
        poll_interval_s: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        initially_online: bool = True,
        hold_down_s: float = 30.0,
        clock: Clock = system_clock,
    ) -> None:
        super().__init__(logger)
        self._base_url = base_url.rstrip("/")
        self._probe_timeout_s = probe_timeout_s
        self._poll_interval_s = poll_interval_s
        self._transport = transport
        self._online: bool = initially_online and bool(self._base_url)
        self._listeners: list[ReachabilityListener] = []
        self._task: Optional[asyncio.Task[None]] = None
        self._hold_down_s = hold_down_s
        self._clock = clock
        self._held_until: float = 0.0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def is_online(self) -> bool:
        """Latest known state, read at call time."""
        return self._online

    def set_platform_state(self, online: bool) -> None:
        """Record a connectivity transition and notify listeners on change."""
        if online == self._online:
            return
        self._online = online
        self._logger.info(
            "Backend is now %s.", "reachable" if online else "unreachable",
            extra={"event": "REACHABILITY_CHANGED", "online": online},
        )
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                self._logger.error("Reachability listener failed.", exc_info=True)

    def mark_unreachable(self, reason: str) -> None:
        """Treat the backend as offline after a failed or timed-out call."""
        self._logger.warning("Marking backend unreachable: %s", reason)
        self._held_until = self._clock() + self._hold_down_s
        self.set_platform_state(False)

    def subscribe(self, listener: ReachabilityListener) -> Callable[[], None]:
        """Register *listener* for transitions; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    async def probe(self) -> bool:
        """Issue one probe, update the state and return it."""
        if not self._base_url:
            self.set_platform_state(False)
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self._probe_timeout_s, transport=self._transport,
            ) as client:
                response = await client.head(f"{self._base_url}/rest/v1/")
            reachable = not response.is_redirect
            if not reachable:
                self._logger.debug(
                    "Reachability probe redirected to %s.", response.headers.get("location"),
                )
        except httpx.HTTPError as exc:
            self._logger.debug("Reachability probe failed: %s", exc)
            reachable = False

        if reachable and self._clock() < self._held_until:
            self._logger.debug("Probe succeeded inside the hold-down window; staying offline.")
            reachable = False

        self.set_platform_state(reachable)
        return reachable

    def start(self) -> None:
        """Start background probing on the running event loop.

        Idempotent: calling ``start()`` while already running is a no-op.
        """
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run_loop(), name="ReachabilityMonitor",
        )

    async def stop(self) -> None:
        """Cancel background probing and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run_loop(self) -> None:
        while True:
            await self.probe()
            await asyncio.sleep(self._poll_interval_s)
