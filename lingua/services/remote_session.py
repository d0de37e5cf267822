"""
Remote Session Client.

Thin wrapper over the async Supabase SDK exposing only the shapes the
auth flow consumes: session retrieval, sign-in / sign-up / sign-out,
OAuth, password reset, the auth-state-change stream, profile access
and the per-user notifications channel.

Every failure leaves this module as a :mod:`lingua.errors` type:

- ``NetworkError`` / ``RemoteTimeoutError``: backend unreachable;
  the reachability monitor is told.
- ``NotFoundError``: profile row missing.
- ``AuthError``: rejected by the backend.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from lingua.database import DatabaseManager
from lingua.errors import AuthError, NetworkError, RemoteTimeoutError, classify_remote_error
from lingua.logger import StructuredLogger
from lingua.models.user import AuthIdentity
from lingua.repositories.profile_repository import ProfileRepository
from lingua.services.base_service import BaseService
from lingua.services.reachability import ReachabilityMonitor
from lingua.utils.timeouts import run_with_timeout

AuthStateCallback = Callable[[str, Any], None]
RealtimeCallback = Callable[[dict[str, Any]], None]


def identity_from_user(user: Any) -> Optional[AuthIdentity]:
    """Build an ``AuthIdentity`` from an SDK user object (or ``None``)."""
    if user is None:
        return None
    return AuthIdentity(
        id=str(getattr(user, "id")),
        email=getattr(user, "email", None) or "",
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


def identity_from_session(session: Any) -> Optional[AuthIdentity]:
    """The identity carried by an SDK session, if any."""
    if session is None:
        return None
    return identity_from_user(getattr(session, "user", None))


class RemoteSessionClient(BaseService):
    """Auth + profile gateway to the hosted backend.

    Parameters
    ----------
    db:
        ``DatabaseManager`` owning the (optional) Supabase client.
    profiles:
        Repository for the ``profiles`` table.
    reachability:
        Monitor informed whenever a call fails for network reasons.
    logger:
        Structured logger instance.
    session_timeout_s:
        Deadline for :meth:`get_session` during initialisation.
    request_timeout_s:
        Deadline for generic auth requests.
    """

    def __init__(
        self,
        db: DatabaseManager,
        profiles: ProfileRepository,
        reachability: ReachabilityMonitor,
        logger: StructuredLogger,
        session_timeout_s: float = 10.0,
        request_timeout_s: float = 5.0,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._profiles = profiles
        self._reachability = reachability
        self._session_timeout_s = session_timeout_s
        self._request_timeout_s = request_timeout_s

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _call(
        self,
        operation: str,
        make_call: Callable[[], Awaitable[Any]],
        timeout_s: float,
    ) -> Any:
        """Run an SDK coroutine under a deadline with normalised errors."""
        try:
            return await run_with_timeout(make_call(), timeout_s, operation)
        except Exception as exc:
            error = classify_remote_error(exc)
            if isinstance(error, NetworkError):
                self._reachability.mark_unreachable(f"{operation}: {error.message}")
            raise error from exc

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def get_session(self, timeout_s: Optional[float] = None) -> Optional[Any]:
        """Return the stored session, or ``None``.

        A timeout is reported as "no session" so startup never blocks.

        Raises
        ------
        NetworkError
            The backend is not configured or not reachable.
        """
        try:
            return await self._call(
                "get_session",
                lambda: self._db.supabase.auth.get_session(),
                timeout_s if timeout_s is not None else self._session_timeout_s,
            )
        except RemoteTimeoutError as exc:
            self._logger.warning("Session lookup timed out; treating as no session: %s", exc)
            return None

    async def get_user(self) -> Optional[AuthIdentity]:
        """The identity behind the current access token, or ``None``."""
        response = await self._call(
            "get_user",
            lambda: self._db.supabase.auth.get_user(),
            self._request_timeout_s,
        )
        return identity_from_user(getattr(response, "user", None))

    # ------------------------------------------------------------------
    # Sign-in / sign-up
    # ------------------------------------------------------------------

    async def sign_in_with_password(
        self, email: str, password: str, timeout_s: Optional[float] = None,
    ) -> tuple[AuthIdentity, Any]:
        """Authenticate with email + password.

        Returns
        -------
        tuple[AuthIdentity, Any]
            The identity and the SDK session.

        Raises
        ------
        AuthError
            Invalid credentials or otherwise rejected.
        NetworkError
            Unreachable backend or deadline exceeded.
        """
        response = await self._call(
            "sign_in_with_password",
            lambda: self._db.supabase.auth.sign_in_with_password(
                {"email": email, "password": password}
            ),
            timeout_s if timeout_s is not None else self._request_timeout_s,
        )
        identity = identity_from_user(getattr(response, "user", None))
        if identity is None:
            raise AuthError("Sign-in returned no user")
        return identity, getattr(response, "session", None)

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any],
    ) -> tuple[Optional[AuthIdentity], Any]:
        """Register a new account.

        The session is ``None`` when the project requires email
        confirmation.
        """
        response = await self._call(
            "sign_up",
            lambda: self._db.supabase.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": metadata},
            }),
            self._request_timeout_s,
        )
        return (
            identity_from_user(getattr(response, "user", None)),
            getattr(response, "session", None),
        )

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        """Start an OAuth flow and return the provider URL to open."""
        response = await self._call(
            "sign_in_with_oauth",
            lambda: self._db.supabase.auth.sign_in_with_oauth({
                "provider": provider,
                "options": {
                    "redirect_to": redirect_to,
                    "query_params": {"access_type": "offline", "prompt": "consent"},
                },
            }),
            self._request_timeout_s,
        )
        return str(getattr(response, "url", ""))

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        await self._call(
            "reset_password_for_email",
            lambda: self._db.supabase.auth.reset_password_for_email(
                email, {"redirect_to": redirect_to},
            ),
            self._request_timeout_s,
        )

    async def sign_out(self) -> None:
        """Best-effort global sign-out.  Failures are logged, never raised."""
        try:
            await self._call(
                "sign_out",
                lambda: self._db.supabase.auth.sign_out({"scope": "global"}),
                self._request_timeout_s,
            )
        except Exception as exc:
            self._logger.warning("Remote sign-out failed (ignored): %s", exc)

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        """Subscribe to provider auth events; returns an unsubscribe callable.

        Offline (no client) the subscription is a no-op.
        """
        try:
            subscription = self._db.supabase.auth.on_auth_state_change(callback)
        except RuntimeError:
            self._logger.info("Auth event stream unavailable in offline mode.")
            return lambda: None

        def unsubscribe() -> None:
            try:
                subscription.unsubscribe()
            except Exception as exc:
                self._logger.warning("Auth event unsubscribe failed: %s", exc)

        return unsubscribe

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def fetch_profile(self, user_id: str) -> dict[str, Any]:
        """Profile row for *user_id*.

        Raises
        ------
        NotFoundError
            No row; the caller creates defaults.
        """
        try:
            return await self._profiles.get_by_id(user_id)
        except NetworkError as exc:
            self._reachability.mark_unreachable(f"fetch_profile: {exc.message}")
            raise

    async def create_default_profile(self, identity: AuthIdentity) -> dict[str, Any]:
        return await self._profiles.create_default(identity, identity.display_name)

    async def upsert_profile(self, row: dict[str, Any]) -> None:
        await self._profiles.upsert(row)

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    async def subscribe_notifications(
        self, user_id: str, callback: RealtimeCallback,
    ) -> Callable[[], Awaitable[None]]:
        """Stream INSERT / UPDATE / DELETE events for *user_id*'s notifications.

        Returns an async unsubscribe callable.
        """
        client = self._db.supabase
        channel = client.channel(f"notifications:{user_id}")
        channel.on_postgres_changes(
            "*",
            schema="public",
            table="notifications",
            filter=f"user_id=eq.{user_id}",
            callback=callback,
        )
        await channel.subscribe()
        self._logger.info("Subscribed to notifications for %s.", user_id)

        async def unsubscribe() -> None:
            try:
                await client.remove_channel(channel)
            except Exception as exc:
                self._logger.warning("Notification channel removal failed: %s", exc)

        return unsubscribe
