from __future__ import annotations

"""
Data Models Package.

Re-exports the Pydantic models for short imports:
    from lingua.models import User, OfflineUser, AuthIdentity
    from lingua.models import AuthResult, AuthErrorCode, QueuedSignup
"""

from lingua.models.auth_models import (
    AuthErrorCode,
    AuthResult,
    OfflineAuthRecord,
    QueuedSignup,
    ValidationResult,
)
from lingua.models.enums import (
    AuthChangeEvent,
    AuthState,
    GuardOutcome,
    GuardPhase,
    RealtimeEventType,
)
from lingua.models.notification import Notification
from lingua.models.user import AuthIdentity, OfflineUser, User

__all__ = [
    "AuthChangeEvent",
    "AuthErrorCode",
    "AuthIdentity",
    "AuthResult",
    "AuthState",
    "GuardOutcome",
    "GuardPhase",
    "Notification",
    "OfflineAuthRecord",
    "OfflineUser",
    "QueuedSignup",
    "RealtimeEventType",
    "User",
    "ValidationResult",
]
