"""
Remote Error Taxonomy.

Every failure coming out of the hosted backend is normalised into one
of the classes below before it reaches the auth reconciler or the UI:

- ``NetworkError``: fetch / connection / CORS failure.  Treated as
  "possibly offline".
- ``RemoteTimeoutError``: a remote call outlived its deadline.  A
  subclass of ``NetworkError`` because a timeout is handled exactly
  like an unreachable backend.
- ``NotFoundError``: a ``.single()`` query matched no row
  (PostgREST code ``PGRST116``).  Expected absence, not a failure.
- ``AuthError``: the backend rejected the credentials or the request.
  Terminal for the current attempt.

Each error keeps the backend's ``message`` / ``code`` / ``details`` /
``hint`` quartet so log lines stay diagnosable.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

import httpx

__all__ = [
    "AuthError",
    "CrashKind",
    "NetworkError",
    "NotFoundError",
    "RemoteServiceError",
    "RemoteTimeoutError",
    "classify_crash",
    "classify_remote_error",
]

NO_ROWS_CODE: str = "PGRST116"
UNDEFINED_TABLE_CODE: str = "42P01"
UNDEFINED_COLUMN_CODE: str = "42703"
PERMISSION_DENIED_CODE: str = "42501"

_NETWORK_MARKERS: tuple[str, ...] = (
    "failed to fetch",
    "fetch",
    "network",
    "connection",
    "connect",
    "cors",
    "timed out",
    "name or service not known",
    "offline mode",
)

_CORS_HINT: str = (
    "The backend rejected the request origin. Add this client's origin "
    "to the allowed origins of the Supabase project (Settings > API)."
)


class RemoteServiceError(Exception):
    """Base class for normalised backend failures."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.code: Optional[str] = code
        self.details: Optional[str] = details
        self.hint: Optional[str] = hint


class NetworkError(RemoteServiceError):
    """The backend could not be reached."""


class RemoteTimeoutError(NetworkError):
    """A remote call did not complete before its deadline."""


class NotFoundError(RemoteServiceError):
    """The requested row does not exist."""


class AuthError(RemoteServiceError):
    """The backend rejected the request."""


def _error_field(exc: BaseException, name: str) -> Optional[str]:
    value = getattr(exc, name, None)
    if value is None or value == "":
        return None
    return str(value)


def classify_remote_error(exc: BaseException) -> RemoteServiceError:
    """Map an SDK / transport exception onto the remote error taxonomy.

    Already-classified errors pass through unchanged.  ``RuntimeError``
    from ``DatabaseManager.supabase`` (client not configured) and any
    exception whose text mentions fetch, network, connection or CORS
    become ``NetworkError``; ``PGRST116`` becomes ``NotFoundError``;
    everything else is an ``AuthError``.
    """
    if isinstance(exc, RemoteServiceError):
        return exc

    message: str = _error_field(exc, "message") or str(exc) or type(exc).__name__
    code = _error_field(exc, "code")
    details = _error_field(exc, "details")
    hint = _error_field(exc, "hint")

    if isinstance(exc, (TimeoutError, httpx.TimeoutException)):
        return RemoteTimeoutError(message, code=code, details=details, hint=hint)

    if code == NO_ROWS_CODE:
        return NotFoundError(message, code=code, details=details, hint=hint)

    lowered = message.lower()
    if isinstance(
        exc, (ConnectionError, OSError, RuntimeError, httpx.TransportError)
    ) or any(
        marker in lowered for marker in _NETWORK_MARKERS
    ):
        if "cors" in lowered and hint is None:
            hint = _CORS_HINT
        return NetworkError(message, code=code, details=details, hint=hint)

    return AuthError(message, code=code, details=details, hint=hint)


# ---------------------------------------------------------------------------
# Top-level crash classification
# ---------------------------------------------------------------------------

class CrashKind(StrEnum):
    """How the entry point should present an unhandled failure."""

    OFFLINE = "offline"
    GENERIC = "generic"


_OFFLINE_CRASH_MARKERS: tuple[str, ...] = (
    "failed to load chunk",
    "failed to fetch",
    "network",
    "connection",
)


def classify_crash(exc: BaseException, platform_online: bool = True) -> CrashKind:
    """Decide whether an unhandled exception looks like a connectivity crash.

    An offline platform, a ``NetworkError`` anywhere in the cause chain,
    or a fetch / chunk-load message all count as ``OFFLINE``.
    """
    if not platform_online:
        return CrashKind.OFFLINE

    current: Optional[BaseException] = exc
    while current is not None:
        if isinstance(current, (NetworkError, ConnectionError)):
            return CrashKind.OFFLINE
        lowered = str(current).lower()
        if any(marker in lowered for marker in _OFFLINE_CRASH_MARKERS):
            return CrashKind.OFFLINE
        current = current.__cause__
    return CrashKind.GENERIC
