"""
Authentication Service.

Single orchestrator for the login and signup forms: email/password
login with offline fallback, registration (online or queued while
offline), OAuth, password reset and logout.

Sits between the UI layer and the remote session / credential cache so
that ``LoginView`` remains a thin form handler.  All methods return
typed ``AuthResult`` or ``ValidationResult`` models; the UI never
inspects raw exceptions.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from lingua.auth import AuthStore
from lingua.errors import AuthError, NetworkError, RemoteServiceError
from lingua.logger import StructuredLogger
from lingua.models.auth_models import (
    NO_CACHED_CREDENTIALS_MESSAGE,
    SESSION_NOT_SAVED_MESSAGE,
    SUPABASE_ERROR_MAP,
    UNABLE_TO_CONNECT_MESSAGE,
    AuthErrorCode,
    AuthResult,
    ValidationResult,
)
from lingua.models.user import DEFAULT_NATIVE_LANGUAGE, AuthIdentity, OfflineUser, User
from lingua.services.credential_cache import CredentialCache
from lingua.services.reachability import ReachabilityMonitor
from lingua.services.remote_session import RemoteSessionClient, identity_from_session
from lingua.services.secret_box import SecretBox
from lingua.services.session_markers import SessionMarkers
from lingua.utils.general import Clock, is_valid_email, normalize_email, now_ms, system_clock

Sleep = Callable[[float], Awaitable[None]]

_MIN_PASSWORD_LENGTH: int = 6


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AuthService:
    """Centralised authentication service.

    Parameters
    ----------
    remote:
        Gateway to the hosted auth provider.
    store:
        The app's ``AuthStore``; refreshed after every successful flow.
    cache:
        Offline credential cache.
    reachability:
        Decides between the online and offline login strategies.
    markers:
        Signup / sign-out markers read by the route guard.
    secret_box:
        Seals the password of a signup queued while offline.
    logger:
        Structured JSON logger.
    login_timeout_s:
        Deadline for the password sign-in request.
    verify_offline_password:
        Check the cached hash on offline login (email-only otherwise).
    oauth_redirect_url:
        Callback URL handed to the OAuth provider.
    session_verify_attempts, session_verify_interval_s:
        How long to wait for the post-signup session to be persisted.
    clock, sleep:
        Time sources; tests inject fakes.
    """

    def __init__(
        self,
        remote: RemoteSessionClient,
        store: AuthStore,
        cache: CredentialCache,
        reachability: ReachabilityMonitor,
        markers: SessionMarkers,
        secret_box: SecretBox,
        logger: StructuredLogger,
        login_timeout_s: float = 10.0,
        verify_offline_password: bool = False,
        oauth_redirect_url: str = "http://localhost:3000/auth/callback",
        session_verify_attempts: int = 10,
        session_verify_interval_s: float = 0.2,
        clock: Clock = system_clock,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._remote = remote
        self._store = store
        self._cache = cache
        self._reachability = reachability
        self._markers = markers
        self._secret_box = secret_box
        self._logger = logger
        self._login_timeout_s = login_timeout_s
        self._verify_offline_password = verify_offline_password
        self._oauth_redirect_url = oauth_redirect_url
        self._session_verify_attempts = session_verify_attempts
        self._session_verify_interval_s = session_verify_interval_s
        self._clock = clock
        self._sleep = sleep

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Require a non-empty ``local@domain.tld`` address."""
        if not email or not email.strip():
            return ValidationResult(is_valid=False, error_message="Please enter your email")
        if not is_valid_email(email.strip()):
            return ValidationResult(
                is_valid=False, error_message="Please enter a valid email address",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_password(password: str, confirm_password: Optional[str] = None) -> ValidationResult:
        """Password policy: at least 6 characters, confirmation must match.

        Parameters
        ----------
        password:
            The raw password.
        confirm_password:
            The repeated password; skipped when ``None``.

        Returns
        -------
        ValidationResult
        """
        if not password:
            return ValidationResult(is_valid=False, error_message="Please enter a password")
        if len(password) < _MIN_PASSWORD_LENGTH:
            return ValidationResult(
                is_valid=False,
                error_message=f"Password must be at least {_MIN_PASSWORD_LENGTH} characters",
            )
        if confirm_password is not None and password != confirm_password:
            return ValidationResult(is_valid=False, error_message="Passwords do not match")
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_name(name: str) -> ValidationResult:
        if not name or not name.strip():
            return ValidationResult(is_valid=False, error_message="Please enter your name")
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_languages(learning_languages: list[str]) -> ValidationResult:
        if not learning_languages:
            return ValidationResult(
                is_valid=False,
                error_message="Please select at least one language to learn",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def _invalid(check: ValidationResult) -> AuthResult:
        return AuthResult(
            success=False,
            error_code=AuthErrorCode.VALIDATION_ERROR,
            error_message=check.error_message,
        )

    # ==================================================================
    # Login
    # ==================================================================

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate online, falling back to the offline cache.

        Offline (per the reachability monitor) the cache is the only
        path.  Online, a network failure or timeout of the sign-in
        request retries against the cache before reporting failure.

        Parameters
        ----------
        email:
            The raw email entered by the user.
        password:
            The raw password entered by the user.

        Returns
        -------
        AuthResult
            ``success=True`` on authentication (``is_offline_login``
            set for cache logins), or a structured error.
        """
        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return self._invalid(email_check)
        if not password:
            return self._invalid(
                ValidationResult(is_valid=False, error_message="Please enter your password"),
            )
        email = normalize_email(email)

        if not self._reachability.is_online():
            return self._offline_login(email, password, NO_CACHED_CREDENTIALS_MESSAGE)

        try:
            identity, _session = await self._remote.sign_in_with_password(
                email, password, timeout_s=self._login_timeout_s,
            )
        except NetworkError as exc:
            self._logger.warning(
                "Network error during login; trying offline cache: %s", exc,
                extra={"event": "LOGIN_NETWORK_ERROR", "email": email},
            )
            result = self._offline_login(email, password, UNABLE_TO_CONNECT_MESSAGE)
            if not result.success and exc.hint:
                result = result.model_copy(update={"hint": exc.hint})
            return result
        except AuthError as exc:
            return self._classify_login_error(exc, email)

        self._markers.clear_sign_out()
        self._cache.store_auth(email, password)
        user = await self._store.refresh_user() or User.from_identity(identity)
        self._cache.store_user(user)

        self._logger.info(
            "User authenticated: %s", email,
            extra={"event": "LOGIN", "email": email, "user_id": identity.id},
        )
        return AuthResult(success=True, user_id=identity.id, email=email)

    def _offline_login(self, email: str, password: str, failure_message: str) -> AuthResult:
        """Log in from the credential cache.

        Only the email is matched unless password verification was
        enabled.
        """
        if not self._cache.can_login_offline(email):
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.NETWORK_ERROR,
                error_message=failure_message,
            )

        if self._verify_offline_password and not self._cache.verify_password(email, password):
            self._logger.warning(
                "Offline login rejected: password mismatch for %s.", email,
                extra={"event": "LOGIN_FAILED", "error_code": "offline_password"},
            )
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.INVALID_CREDENTIALS,
                error_message=(
                    "Offline login failed. "
                    "Please check your credentials or connect to the internet."
                ),
            )

        cached = self._cache.login_offline(email)
        if cached is None:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.NETWORK_ERROR,
                error_message=failure_message,
            )

        self._cache.store_user(cached)
        self._store.adopt_offline_user(cached)
        self._markers.clear_sign_out()
        self._logger.info(
            "Offline login: %s from cache.", email,
            extra={"event": "OFFLINE_LOGIN", "email": email, "user_id": cached.id},
        )
        return AuthResult(
            success=True, user_id=cached.id, email=cached.email, is_offline_login=True,
        )

    def _classify_login_error(self, exc: RemoteServiceError, email: str) -> AuthResult:
        """Map a rejected sign-in to a structured ``AuthResult``."""
        code, message = self._match_error_map(exc)
        self._logger.warning(
            "Login rejected for %s: %s", email, exc,
            extra={"event": "LOGIN_FAILED", "error_code": str(code)},
        )
        return AuthResult(success=False, error_code=code, error_message=message, hint=exc.hint)

    @staticmethod
    def _match_error_map(exc: Exception) -> tuple[AuthErrorCode, str]:
        error_str = str(exc).lower()
        for code_key, (error_code, human_message) in SUPABASE_ERROR_MAP.items():
            if code_key in error_str:
                return error_code, human_message
        return AuthErrorCode.UNKNOWN_ERROR, str(exc) or "An unexpected error occurred"

    # ==================================================================
    # Registration
    # ==================================================================

    async def sign_up(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: str,
        learning_languages: list[str],
        native_language: str = DEFAULT_NATIVE_LANGUAGE,
    ) -> AuthResult:
        """Register a new account, or queue it while offline.

        Parameters
        ----------
        name:
            Display name.
        email:
            The raw email address.
        password, confirm_password:
            The chosen password, typed twice.
        learning_languages:
            Languages to learn; the first becomes ``learning_language``.
        native_language:
            The user's native language.

        Returns
        -------
        AuthResult
            ``is_queued=True`` when the signup was stored for replay.
        """
        for check in (
            self.validate_name(name),
            self.validate_email(email),
            self.validate_password(password, confirm_password),
            self.validate_languages(learning_languages),
        ):
            if not check.is_valid:
                return self._invalid(check)

        name = name.strip()
        email = normalize_email(email)

        if not self._reachability.is_online():
            return self._queue_offline_signup(
                name, email, password, learning_languages, native_language,
            )

        metadata: dict[str, Any] = {
            "name": name,
            "full_name": name,
            "learning_languages": list(learning_languages),
            "native_language": native_language,
        }
        try:
            await self._remote.sign_up(email, password, metadata)
        except NetworkError as exc:
            self._logger.warning(
                "Backend unreachable during signup; queueing: %s", exc,
                extra={"event": "LOGIN_NETWORK_ERROR", "email": email},
            )
            return self._queue_offline_signup(
                name, email, password, learning_languages, native_language,
            )
        except AuthError as exc:
            code, message = self._match_error_map(exc)
            self._logger.warning(
                "Signup rejected for %s: %s", email, exc,
                extra={"event": "SIGNUP_FAILED", "error_code": str(code)},
            )
            return AuthResult(success=False, error_code=code, error_message=message, hint=exc.hint)

        self._logger.info(
            "Account created for %s.", email, extra={"event": "SIGNUP", "email": email},
        )

        try:
            identity, session = await self._remote.sign_in_with_password(
                email, password, timeout_s=self._login_timeout_s,
            )
        except RemoteServiceError as exc:
            # Typically "email not confirmed": the account exists, the
            # session will arrive later.
            self._logger.warning("Auto sign-in after signup failed: %s", exc)
            self._markers.mark_signed_up()
            return AuthResult(success=True, email=email)

        if session is None:
            self._markers.mark_signed_up()
            return AuthResult(success=True, user_id=identity.id, email=email)

        await self._upsert_signup_profile(identity, name, learning_languages, native_language)

        user = User(
            id=identity.id,
            email=email,
            name=name,
            learning_language=learning_languages[0],
            native_language=native_language,
        )
        self._cache.store_auth(email, password)
        self._cache.store_user(user, learning_languages=list(learning_languages))

        if not await self._wait_for_persisted_session():
            self._logger.error("Session not persisted after signup for %s.", email)
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.SESSION_NOT_SAVED,
                error_message=SESSION_NOT_SAVED_MESSAGE,
            )

        self._markers.clear_sign_out()
        self._markers.mark_signed_up()
        await self._store.refresh_user()
        return AuthResult(success=True, user_id=identity.id, email=email)

    def _queue_offline_signup(
        self,
        name: str,
        email: str,
        password: str,
        learning_languages: list[str],
        native_language: str,
    ) -> AuthResult:
        """Queue the signup and grant immediate access with a temporary id."""
        queued = self._cache.queue_signup(
            email=email,
            password=self._secret_box.seal(password),
            name=name,
            learning_languages=list(learning_languages),
            native_language=native_language,
        )
        if not queued and any(e.email == email for e in self._cache.get_queued_signups()):
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.EMAIL_ALREADY_EXISTS,
                error_message="A signup for this email is already waiting to sync.",
            )

        stamp = now_ms(self._clock)
        user = User(
            id=f"temp-{stamp}",
            email=email,
            name=name,
            learning_language=learning_languages[0],
            native_language=native_language,
        )
        self._cache.store_user(user, learning_languages=list(learning_languages))
        self._cache.store_auth(email, password)
        self._markers.mark_signed_up()

        snapshot = self._cache.get_user() or OfflineUser(
            **user.model_dump(),
            cached_at=stamp,
            learning_languages=list(learning_languages),
        )
        self._store.adopt_offline_user(snapshot)

        self._logger.info(
            "Signup queued while offline for %s.", email,
            extra={"event": "SIGNUP_QUEUED", "email": email, "user_id": user.id},
        )
        return AuthResult(success=True, user_id=user.id, email=email, is_queued=True)

    async def _upsert_signup_profile(
        self,
        identity: AuthIdentity,
        name: str,
        learning_languages: list[str],
        native_language: str,
    ) -> None:
        row: dict[str, Any] = {
            "id": identity.id,
            "email": identity.email,
            "name": name,
            "level": 1,
            "total_xp": 0,
            "streak": 0,
            "learning_language": learning_languages[0],
            "native_language": native_language,
        }
        try:
            await self._remote.upsert_profile(row)
            self._logger.info(
                "Profile created for %s.", identity.id,
                extra={"event": "PROFILE_CREATED", "user_id": identity.id},
            )
        except RemoteServiceError as exc:
            self._logger.warning("Profile upsert after signup failed (ignored): %s", exc)

    async def _wait_for_persisted_session(self) -> bool:
        for attempt in range(1, self._session_verify_attempts + 1):
            try:
                session = await self._remote.get_session()
            except RemoteServiceError as exc:
                self._logger.debug("Session check %d failed: %s", attempt, exc)
                session = None
            if identity_from_session(session) is not None:
                return True
            await self._sleep(self._session_verify_interval_s)
        return False

    # ==================================================================
    # OAuth / password reset / logout
    # ==================================================================

    async def sign_in_with_oauth(self, provider: str = "google") -> AuthResult:
        """Start an OAuth flow; ``redirect_url`` holds the page to open."""
        if not self._reachability.is_online():
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.NETWORK_ERROR,
                error_message=UNABLE_TO_CONNECT_MESSAGE,
            )
        try:
            url = await self._remote.sign_in_with_oauth(provider, self._oauth_redirect_url)
        except NetworkError as exc:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.NETWORK_ERROR,
                error_message=UNABLE_TO_CONNECT_MESSAGE,
                hint=exc.hint,
            )
        except AuthError as exc:
            self._logger.warning("%s sign-in error: %s", provider, exc)
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.UNKNOWN_ERROR,
                error_message=exc.message,
            )
        return AuthResult(success=True, redirect_url=url)

    async def request_password_reset(self, email: str) -> AuthResult:
        """Send a password-reset email.

        Uses an anti-enumeration response: the same success message
        whether or not the email is registered.
        """
        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return self._invalid(email_check)
        email = normalize_email(email)

        try:
            await self._remote.reset_password_for_email(email, self._oauth_redirect_url)
            self._logger.info(
                "Password reset requested for %s.", email,
                extra={"event": "PASSWORD_RESET_REQUESTED", "email": email},
            )
        except NetworkError:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.NETWORK_ERROR,
                error_message="Cannot reach the server. Check your internet connection.",
            )
        except AuthError as exc:
            self._logger.warning("Password reset error for %s: %s", email, exc)

        return AuthResult(
            success=True,
            error_message=(
                "If this email is registered, you will receive "
                "a password reset link."
            ),
        )

    async def logout(self) -> None:
        """Sign out locally at once, then remotely (best effort)."""
        await self._store.sign_out()
