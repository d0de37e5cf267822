"""
Protected-Route Guard.

Decides whether a gated view may render, without flashing a "please
sign in" state while the session is still hydrating.

Per evaluation the guard walks::

    CHECKING_AUTH -> {CHECKING_OFFLINE_USER, CHECKING_STORED_SESSION}
                  -> DECIDING -> {REDIRECTING, DENIED, ALLOWED}

1. Wait for the store's ``auth_checked`` flag.
2. No user and offline: look in the credential cache; a cached user
   means "keep waiting", and the store is asked to restore it.  Skipped
   after a logout until the next sign-in.
3. No user and a fresh signup marker: poll for the stored session a few
   times with linear backoff.
4. Wait out the grace budget (see :func:`compute_wait_budget`), waking
   early as soon as a user appears.
5. Re-check.  A user allows; an in-flight logout yields
   ``SIGNING_OUT``; otherwise redirect to the login route (or deny when
   redirecting is disabled).

Redirects go through :class:`Navigator`, which ignores a request for
the route it is already on, so several guards mounted at once trigger
one navigation.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from lingua.auth import AuthStore
from lingua.errors import NetworkError, RemoteServiceError
from lingua.logger import StructuredLogger
from lingua.models.enums import GuardOutcome, GuardPhase
from lingua.services.credential_cache import CredentialCache
from lingua.services.reachability import ReachabilityMonitor
from lingua.services.remote_session import RemoteSessionClient, identity_from_session
from lingua.services.session_markers import SessionMarkers
from lingua.utils.general import Clock, system_clock

Sleep = Callable[[float], Awaitable[None]]
PhaseListener = Callable[[GuardPhase], None]

_WAIT_STEP_S: float = 0.05


def compute_wait_budget(
    base_s: float,
    offline_s: float,
    signup_window_s: float,
    is_online: bool,
    signup_age_s: Optional[float],
) -> float:
    """Grace period (seconds) before an unauthenticated view may redirect.

    Parameters
    ----------
    base_s:
        Budget when nothing special is going on (0.5 s).
    offline_s:
        Floor while offline, giving the cache restore time (1 s).
    signup_window_s:
        Window after a signup during which the budget stays extended
        (10 s).  The extension decays with the signup's age.
    is_online:
        Current reachability.
    signup_age_s:
        Seconds since the ``just_signed_up`` marker was set, or ``None``.

    Returns
    -------
    float
        The largest applicable budget.
    """
    budget = base_s
    if not is_online:
        budget = max(budget, offline_s)
    if signup_age_s is not None and signup_age_s < signup_window_s:
        budget = max(budget, signup_window_s - signup_age_s)
    return budget


class Navigator:
    """Idempotent route changer shared by every guard instance.

    Parameters
    ----------
    on_navigate:
        Performs the actual view switch.
    initial_route:
        Route shown at startup.
    """

    def __init__(self, on_navigate: Callable[[str], None], initial_route: str = "/") -> None:
        self._on_navigate = on_navigate
        self._current = initial_route

    @property
    def current_route(self) -> str:
        return self._current

    def navigate(self, route: str) -> bool:
        """Switch to *route*; returns ``False`` when already there."""
        if route == self._current:
            return False
        self._current = route
        self._on_navigate(route)
        return True


class RouteGuard:
    """Evaluates access to one protected view.

    Parameters
    ----------
    store:
        Source of truth for the current user.
    cache:
        Offline credential cache consulted while offline.
    remote:
        Used to poll for a stored session right after signup.
    reachability:
        Online/offline signal.
    markers:
        Signup and sign-out markers.
    navigator:
        Shared redirect target.
    logger:
        Structured logger instance.
    login_route:
        Where unauthenticated users are sent.
    require_auth:
        ``False`` lets every evaluation through.
    redirect:
        ``False`` ends in ``DENIED`` (the "Authentication Required" card)
        instead of navigating.
    base_wait_s, offline_wait_s, signup_wait_s:
        Inputs to :func:`compute_wait_budget`.
    session_poll_attempts, session_poll_backoff_s:
        Stored-session polling after a signup.
    clock, sleep:
        Time sources; tests inject fakes.
    """

    def __init__(
        self,
        store: AuthStore,
        cache: CredentialCache,
        remote: RemoteSessionClient,
        reachability: ReachabilityMonitor,
        markers: SessionMarkers,
        navigator: Navigator,
        logger: StructuredLogger,
        login_route: str = "/auth/login",
        require_auth: bool = True,
        redirect: bool = True,
        base_wait_s: float = 0.5,
        offline_wait_s: float = 1.0,
        signup_wait_s: float = 10.0,
        session_poll_attempts: int = 5,
        session_poll_backoff_s: float = 0.2,
        clock: Clock = system_clock,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._cache = cache
        self._remote = remote
        self._reachability = reachability
        self._markers = markers
        self._navigator = navigator
        self._logger = logger
        self._login_route = login_route
        self._require_auth = require_auth
        self._redirect = redirect
        self._base_wait_s = base_wait_s
        self._offline_wait_s = offline_wait_s
        self._signup_wait_s = signup_wait_s
        self._poll_attempts = session_poll_attempts
        self._poll_backoff_s = session_poll_backoff_s
        self._clock = clock
        self._sleep = sleep

        self._phase: GuardPhase = GuardPhase.CHECKING_AUTH
        self._phase_listeners: list[PhaseListener] = []

    # ------------------------------------------------------------------
    # Phase reporting
    # ------------------------------------------------------------------

    @property
    def phase(self) -> GuardPhase:
        return self._phase

    def on_phase(self, listener: PhaseListener) -> Callable[[], None]:
        """Register *listener* for phase changes; returns an unsubscribe callable."""
        self._phase_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._phase_listeners:
                self._phase_listeners.remove(listener)

        return unsubscribe

    def _enter(self, phase: GuardPhase) -> None:
        self._phase = phase
        for listener in list(self._phase_listeners):
            try:
                listener(phase)
            except Exception:
                self._logger.error("Guard phase listener raised.", exc_info=True)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(self) -> GuardOutcome:
        """Run one full guard pass and return its outcome."""
        self._enter(GuardPhase.CHECKING_AUTH)
        await self._store.wait_until_checked()

        if not self._require_auth or self._store.user is not None:
            return self._allow()
        if self._markers.sign_out_in_progress:
            return self._signing_out()

        started = self._clock()
        online = self._reachability.is_online()
        budget = compute_wait_budget(
            self._base_wait_s,
            self._offline_wait_s,
            self._signup_wait_s,
            online,
            self._markers.signup_age_s(),
        )
        deadline = started + budget

        if not online:
            self._enter(GuardPhase.CHECKING_OFFLINE_USER)
            await self._check_offline_user()
        elif self._markers.signup_age_s() is not None:
            self._enter(GuardPhase.CHECKING_STORED_SESSION)
            await self._poll_stored_session()

        self._enter(GuardPhase.DECIDING)
        await self._wait_for_user(deadline)

        if self._store.user is not None:
            return self._allow()
        if self._markers.sign_out_in_progress:
            return self._signing_out()

        self._logger.info(
            "No user after %.2fs grace period.", self._clock() - started,
            extra={"event": "GUARD_DENY", "redirect": self._redirect},
        )
        if not self._redirect:
            self._enter(GuardPhase.DENIED)
            return GuardOutcome.DENIED

        self._enter(GuardPhase.REDIRECTING)
        self._navigator.navigate(self._login_route)
        return GuardOutcome.REDIRECTING

    def _allow(self) -> GuardOutcome:
        self._enter(GuardPhase.ALLOWED)
        return GuardOutcome.ALLOWED

    def _signing_out(self) -> GuardOutcome:
        self._logger.debug("Sign-out in progress; suppressing guard decision.")
        return GuardOutcome.SIGNING_OUT

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _check_offline_user(self) -> None:
        if self._markers.recently_signed_out:
            return
        cached = self._cache.get_user()
        if cached is None:
            return
        self._logger.info("Cached user %s found offline; waiting for restore.", cached.id)
        await self._store.refresh_user()

    async def _poll_stored_session(self) -> None:
        for attempt in range(1, self._poll_attempts + 1):
            try:
                session = await self._remote.get_session()
            except NetworkError as exc:
                self._logger.warning("Stored-session poll aborted: %s", exc)
                return
            except RemoteServiceError as exc:
                self._logger.debug("Stored-session poll %d failed: %s", attempt, exc)
                session = None

            if identity_from_session(session) is not None:
                self._logger.info("Session found after signup (attempt %d).", attempt)
                self._markers.clear_signup()
                await self._store.refresh_user()
                return
            if self._store.user is not None:
                return
            await self._sleep(self._poll_backoff_s * attempt)

        self._logger.info("No stored session after %d attempts.", self._poll_attempts)

    async def _wait_for_user(self, deadline: float) -> None:
        while self._store.user is None and not self._markers.sign_out_in_progress:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return
            await self._sleep(min(_WAIT_STEP_S, remaining))
