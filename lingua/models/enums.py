"""
Shared Enumerations for Lingua Models.

StrEnum values compare equal to their string equivalents, so values
read back from the backend (``"SIGNED_IN"``, ``"INSERT"``) can be
compared directly.
"""

from __future__ import annotations
from enum import StrEnum


class AuthState(StrEnum):
    """Lifecycle states of the ``AuthStore``."""

    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    AUTHENTICATED = "AUTHENTICATED"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class AuthChangeEvent(StrEnum):
    """Auth-state-change events the store reacts to.

    The provider emits others (``INITIAL_SESSION``, ``USER_UPDATED``,
    ``PASSWORD_RECOVERY``); those are ignored.
    """

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class GuardPhase(StrEnum):
    """Per-mount phases of the protected-route guard."""

    CHECKING_AUTH = "CHECKING_AUTH"
    CHECKING_OFFLINE_USER = "CHECKING_OFFLINE_USER"
    CHECKING_STORED_SESSION = "CHECKING_STORED_SESSION"
    DECIDING = "DECIDING"
    REDIRECTING = "REDIRECTING"
    DENIED = "DENIED"
    ALLOWED = "ALLOWED"


class GuardOutcome(StrEnum):
    """Final decision of one guard evaluation.

    ``SIGNING_OUT`` means a logout is in flight: render nothing and let
    the logout flow finish its own navigation.
    """

    ALLOWED = "ALLOWED"
    REDIRECTING = "REDIRECTING"
    DENIED = "DENIED"
    SIGNING_OUT = "SIGNING_OUT"


class RealtimeEventType(StrEnum):
    """Row-change events delivered on the notifications channel."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
