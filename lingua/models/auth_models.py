"""
Authentication Pipeline Models.

Pydantic models and enumerations for the auth request/response
contracts between ``AuthService`` and the UI layer, plus the records
persisted by the credential cache.

Every auth operation returns a structured, inspectable ``AuthResult``
rather than raw strings or exception side-channels.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Enumeration of authentication error categories.

    Used by ``AuthService`` to classify backend errors and by the UI
    layer to decide which feedback to display.
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    USER_BANNED = "user_banned"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    WEAK_PASSWORD = "weak_password"
    NETWORK_ERROR = "network_error"
    TIMEOUT_ERROR = "timeout_error"
    RATE_LIMITED = "rate_limited"
    VALIDATION_ERROR = "validation_error"
    SESSION_NOT_SAVED = "session_not_saved"
    UNKNOWN_ERROR = "unknown_error"


# ---------------------------------------------------------------------------
# Backend error-message mapping
# ---------------------------------------------------------------------------

# Keys are matched as substrings of the lower-cased backend message.
SUPABASE_ERROR_MAP: dict[str, tuple[AuthErrorCode, str]] = {
    "invalid login credentials": (
        AuthErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "invalid_credentials": (
        AuthErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "invalid_grant": (
        AuthErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "email not confirmed": (
        AuthErrorCode.EMAIL_NOT_CONFIRMED,
        "Please confirm your email address before signing in.",
    ),
    "rate limit": (
        AuthErrorCode.RATE_LIMITED,
        "Too many attempts. Please wait a moment and try again.",
    ),
    "too many requests": (
        AuthErrorCode.RATE_LIMITED,
        "Too many attempts. Please wait a moment and try again.",
    ),
    "user already registered": (
        AuthErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
    "user_already_exists": (
        AuthErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
    "password should be": (
        AuthErrorCode.WEAK_PASSWORD,
        "Password is too weak. Use at least 6 characters.",
    ),
    "user_banned": (
        AuthErrorCode.USER_BANNED,
        "This account has been suspended.",
    ),
}

NO_CACHED_CREDENTIALS_MESSAGE: str = (
    "No cached credentials found. Please login while online first "
    "to enable offline access."
)
UNABLE_TO_CONNECT_MESSAGE: str = (
    "Unable to connect. Please check your internet connection or login "
    "with cached credentials."
)
SESSION_NOT_SAVED_MESSAGE: str = (
    "Session not saved. Please try logging in manually."
)


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single client-side field validation check.

    Attributes
    ----------
    is_valid:
        ``True`` when the value passes the validation rule.
    error_message:
        Human-readable description of the failure, or ``None`` on success.
    """

    is_valid: bool
    error_message: Optional[str] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Unified auth response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for login, signup, OAuth and password-reset
    operations.

    Attributes
    ----------
    success:
        ``True`` when the operation completed without error.
    error_code:
        Structured error category (``None`` on success).
    error_message:
        Human-readable error description (``None`` on success).
    hint:
        Optional remediation text (e.g. CORS setup instructions).
    user_id:
        Id of the authenticated / registered user.
    email:
        The user's normalised email address.
    is_offline_login:
        ``True`` when access was granted from the offline cache.
    is_queued:
        ``True`` when a signup was queued for later replay.
    redirect_url:
        Provider URL to open for OAuth sign-in.
    """

    success: bool
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    hint: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    is_offline_login: bool = False
    is_queued: bool = False
    redirect_url: Optional[str] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Credential cache records
# ---------------------------------------------------------------------------

class OfflineAuthRecord(BaseModel):
    """Stored under ``lingua-ai-offline-auth``.

    ``password_hash`` is a salted SHA-256 hex digest; the plaintext is
    never stored.  ``timestamp`` is epoch milliseconds.
    """

    email: str
    password_hash: str = Field(alias="passwordHash")
    timestamp: int

    model_config = {"populate_by_name": True}


class QueuedSignup(BaseModel):
    """A registration captured while offline, awaiting replay.

    ``password`` holds the AES-GCM sealed password token produced by
    ``SecretBox``, never the plaintext.
    """

    email: str
    password: str
    name: str
    learning_languages: list[str] = Field(alias="learningLanguages")
    native_language: str = Field(alias="nativeLanguage")
    timestamp: int

    model_config = {"populate_by_name": True}
