"""
Authentication State Store.

``AuthStore`` is the single owner of the app's ``User | None`` value and
of the one-way ``auth_checked`` flag.  It reconciles three sources:

- the remote session (``RemoteSessionClient``),
- the offline credential cache (``CredentialCache``),
- backend reachability (``ReachabilityMonitor``),

and publishes every change to subscribers as an immutable
``AuthSnapshot``.

Lifecycle::

    store = AuthStore(remote=..., cache=..., reachability=..., markers=..., logger=...)
    unsubscribe = store.subscribe(lambda snap: print(snap.state))
    await store.init()
    ...
    store.dispose()

States: ``UNINITIALIZED -> INITIALIZING -> {AUTHENTICATED, UNAUTHENTICATED}``.
``auth_checked`` flips to ``True`` exactly once, when ``init()``
finishes by any path, and never reverts.

Concurrency
-----------
Everything runs on one asyncio loop.  Profile resolution is shared: a
``refresh_user()`` issued while another is in flight awaits the same
task, so one reconciliation issues at most one profile-create request.
Each reconciliation pass takes a new generation number; a pass whose
generation is no longer current (a sign-out or newer pass happened
meanwhile) drops its result.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from pydantic import BaseModel

from lingua.errors import (
    NetworkError,
    NotFoundError,
    RemoteServiceError,
    RemoteTimeoutError,
)
from lingua.logger import StructuredLogger
from lingua.models.enums import AuthChangeEvent, AuthState
from lingua.models.user import AuthIdentity, OfflineUser, User
from lingua.services.credential_cache import CredentialCache
from lingua.services.reachability import ReachabilityMonitor
from lingua.services.remote_session import RemoteSessionClient, identity_from_session
from lingua.services.session_markers import SessionMarkers
from lingua.utils.audit import log_audit_event
from lingua.utils.timeouts import run_with_timeout


class AuthSnapshot(BaseModel):
    """Immutable view of the store published to subscribers."""

    state: AuthState
    user: Optional[User] = None
    auth_checked: bool = False
    is_offline_user: bool = False

    model_config = {"frozen": True}

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


AuthListener = Callable[[AuthSnapshot], None]


class AuthStore:
    """Reconciles remote session, profile row and offline cache into one user.

    Parameters
    ----------
    remote:
        Gateway to the hosted auth provider and profile table.
    cache:
        Offline credential cache used as fallback.
    reachability:
        Online/offline signal consulted before any network call.
    markers:
        Transient session markers (sign-out in progress, recent sign-out).
    logger:
        Structured logger instance.
    init_timeout_s:
        Deadline for the initial session lookup; when it elapses the
        store settles as unauthenticated (or cached).  Profile
        resolution for a session found in time is not cut short.
    """

    def __init__(
        self,
        remote: RemoteSessionClient,
        cache: CredentialCache,
        reachability: ReachabilityMonitor,
        markers: SessionMarkers,
        logger: StructuredLogger,
        init_timeout_s: float = 5.0,
    ) -> None:
        self._remote = remote
        self._cache = cache
        self._reachability = reachability
        self._markers = markers
        self._logger = logger
        self._init_timeout_s = init_timeout_s

        self._state: AuthState = AuthState.UNINITIALIZED
        self._user: Optional[User] = None
        self._is_offline_user: bool = False
        self._auth_checked: asyncio.Event = asyncio.Event()
        self._generation: int = 0

        self._listeners: list[AuthListener] = []
        self._refresh_task: Optional[asyncio.Task[Optional[User]]] = None
        self._unsubscribe_remote: Optional[Callable[[], None]] = None

    # ==================================================================
    # Read-only state
    # ==================================================================

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def auth_checked(self) -> bool:
        return self._auth_checked.is_set()

    @property
    def is_offline_user(self) -> bool:
        """``True`` when the current user came from the offline cache."""
        return self._is_offline_user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def snapshot(self) -> AuthSnapshot:
        return AuthSnapshot(
            state=self._state,
            user=self._user,
            auth_checked=self.auth_checked,
            is_offline_user=self._is_offline_user,
        )

    # ==================================================================
    # Publish / subscribe
    # ==================================================================

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register *listener*; it receives the current snapshot immediately.

        Returns an unsubscribe callable.
        """
        self._listeners.append(listener)
        self._notify_one(listener, self.snapshot())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            self._notify_one(listener, snap)

    def _notify_one(self, listener: AuthListener, snap: AuthSnapshot) -> None:
        try:
            listener(snap)
        except Exception:
            self._logger.error("Auth listener raised.", exc_info=True)

    # ==================================================================
    # State transitions
    # ==================================================================

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _set_user(self, user: Optional[User], offline: bool = False) -> None:
        """Replace the user wholesale and publish."""
        self._user = user
        self._is_offline_user = offline and user is not None
        if self._state is not AuthState.INITIALIZING or user is not None:
            self._state = AuthState.AUTHENTICATED if user is not None else AuthState.UNAUTHENTICATED
        self._publish()

    def _mark_checked(self) -> None:
        if self._state is AuthState.INITIALIZING:
            self._state = (
                AuthState.AUTHENTICATED if self._user is not None else AuthState.UNAUTHENTICATED
            )
        if not self._auth_checked.is_set():
            self._auth_checked.set()
            self._logger.info(
                "Authentication check complete (user=%s, offline=%s).",
                self._user.id if self._user else None,
                self._is_offline_user,
                extra={"event": "AUTH_CHECKED"},
            )
        self._publish()

    def _restore_from_cache(self) -> Optional[OfflineUser]:
        if self._markers.recently_signed_out:
            return None
        cached = self._cache.get_user()
        if cached is not None:
            self._logger.info("Restoring user %s from offline cache.", cached.id)
        return cached

    # ==================================================================
    # Lifecycle
    # ==================================================================

    async def init(self) -> None:
        """Resolve the initial user.  Safe to call more than once.

        Always ends with ``auth_checked`` set, whatever fails.
        """
        if self._state is not AuthState.UNINITIALIZED:
            await self._auth_checked.wait()
            return

        self._state = AuthState.INITIALIZING
        self._publish()
        self._unsubscribe_remote = self._remote.on_auth_state_change(self._on_auth_event)

        try:
            await self._initial_pass()
        except Exception:
            self._logger.error("Auth initialisation failed.", exc_info=True)
        finally:
            self._mark_checked()

    async def _initial_pass(self) -> None:
        generation = self._next_generation()

        if not self._reachability.is_online():
            cached = self._restore_from_cache()
            if cached is not None and self._is_current(generation):
                self._set_user(cached.to_user(), offline=True)
            return

        try:
            session = await run_with_timeout(
                self._remote.get_session(), self._init_timeout_s, "auth init session lookup",
            )
        except RemoteTimeoutError as exc:
            self._logger.warning("%s; continuing without a session.", exc)
            session = None
        except RemoteServiceError as exc:
            self._logger.warning("Session lookup failed: %s", exc)
            session = None

        identity = identity_from_session(session)
        if identity is not None:
            # Bounded by the per-request timeouts; never denies.
            user = await self._resolve_profile(identity)
            if self._is_current(generation):
                self._set_user(user)
            return

        cached = self._restore_from_cache()
        if cached is not None and self._is_current(generation):
            self._set_user(cached.to_user(), offline=True)

    def dispose(self) -> None:
        """Detach from the auth event stream and drop all listeners."""
        if self._unsubscribe_remote is not None:
            self._unsubscribe_remote()
            self._unsubscribe_remote = None
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None
        self._listeners.clear()

    async def wait_until_checked(self) -> None:
        await self._auth_checked.wait()

    # ==================================================================
    # Profile resolution
    # ==================================================================

    async def _resolve_profile(self, identity: AuthIdentity) -> User:
        """Merge the profile row into a ``User``; never denies access.

        A missing row is back-filled with defaults (failures tolerated);
        any other failure yields the default user.
        """
        try:
            row = await self._remote.fetch_profile(identity.id)
            return User.from_profile(identity, row)
        except NotFoundError:
            self._logger.info("No profile row for %s; creating defaults.", identity.id)
            try:
                await self._remote.create_default_profile(identity)
                log_audit_event(
                    self._logger,
                    action="CREATE_DEFAULT",
                    entity_type="Profile",
                    entity_id=identity.id,
                    user_id=identity.id,
                )
            except RemoteServiceError as exc:
                self._logger.warning(
                    "Default profile creation failed (continuing with defaults): %s", exc,
                )
            return User.from_identity(identity)
        except RemoteServiceError as exc:
            self._logger.warning(
                "Profile fetch failed for %s; using defaults: %s", identity.id, exc,
            )
            return User.from_identity(identity)

    async def refresh_user(self) -> Optional[User]:
        """Re-run reconciliation against the current session.

        Concurrent callers share one in-flight pass and all receive its
        result.
        """
        return await asyncio.shield(self._ensure_refresh())

    def _ensure_refresh(self, session: Any = None) -> asyncio.Task[Optional[User]]:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(
                self._refresh(session), name="AuthStore.refresh",
            )
        return self._refresh_task

    async def _refresh(self, session: Any = None) -> Optional[User]:
        generation = self._next_generation()

        if not self._reachability.is_online():
            if self._user is None:
                cached = self._restore_from_cache()
                if cached is not None and self._is_current(generation):
                    self._set_user(cached.to_user(), offline=True)
            return self._user

        try:
            if session is None:
                session = await self._remote.get_session()
        except NetworkError as exc:
            self._logger.warning("Session refresh failed; keeping current state: %s", exc)
            if self._user is None:
                cached = self._restore_from_cache()
                if cached is not None and self._is_current(generation):
                    self._set_user(cached.to_user(), offline=True)
            return self._user
        except RemoteServiceError as exc:
            self._logger.warning("Session refresh rejected: %s", exc)
            session = None

        identity = identity_from_session(session)
        if identity is None:
            if self._is_current(generation) and not self._is_offline_user:
                self._set_user(None)
            return self._user

        user = await self._resolve_profile(identity)
        if self._is_current(generation):
            self._set_user(user)
            return user
        self._logger.debug("Discarding stale profile resolution for %s.", identity.id)
        return self._user

    # ==================================================================
    # Offline adoption
    # ==================================================================

    def adopt_offline_user(self, user: OfflineUser) -> None:
        """Publish a user accepted by offline login."""
        self._next_generation()
        self._set_user(user.to_user(), offline=True)

    # ==================================================================
    # Auth event stream
    # ==================================================================

    def _on_auth_event(self, event: str, session: Any) -> None:
        """Handle a provider auth event (called on the event loop)."""
        if event == AuthChangeEvent.SIGNED_OUT:
            self._logger.info("Provider reported SIGNED_OUT.", extra={"event": "LOGOUT"})
            self._next_generation()
            self._set_user(None)
        elif event in (AuthChangeEvent.SIGNED_IN, AuthChangeEvent.TOKEN_REFRESHED):
            if identity_from_session(session) is None:
                return
            self._markers.clear_sign_out()
            try:
                self._ensure_refresh(session)
            except RuntimeError:
                self._logger.warning("Auth event %s received with no running loop.", event)

    # ==================================================================
    # Sign-out
    # ==================================================================

    async def sign_out(self) -> None:
        """Clear local state first, then sign out remotely (best effort).

        Subscribers see ``user=None`` before any network activity; a
        remote failure never restores the user.  The offline cache and
        the signup queue are kept; until the next sign-in the cached
        user is not restored automatically.
        """
        self._markers.begin_sign_out()
        self._next_generation()
        self._set_user(None)
        self._logger.info("Signed out locally.", extra={"event": "LOGOUT"})
        try:
            await self._remote.sign_out()
        finally:
            self._markers.finish_sign_out()
