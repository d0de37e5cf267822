"""
User Models.

``User`` is the reconciled view model published by ``AuthStore``; it
merges the profile row with auth-identity defaults when the row is
missing.  ``OfflineUser`` is the cached snapshot kept by the
credential cache.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

DEFAULT_LEVEL: int = 1
DEFAULT_TOTAL_XP: int = 0
DEFAULT_STREAK: int = 0
DEFAULT_LEARNING_LANGUAGE: str = "ar"
DEFAULT_NATIVE_LANGUAGE: str = "en"
GUEST_NAME: str = "Guest"


class AuthIdentity(BaseModel):
    """The authenticated identity as reported by the auth provider."""

    id: str
    email: str = ""
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        """``full_name`` / ``name`` metadata, else the email local-part, else Guest."""
        for key in ("full_name", "name"):
            value = self.user_metadata.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return derive_name(self.email)


def derive_name(email: Optional[str]) -> str:
    """Return the local-part of *email*, or ``"Guest"`` when there is none."""
    if email:
        local_part = email.split("@", 1)[0]
        if local_part:
            return local_part
    return GUEST_NAME


class User(BaseModel):
    """The single authoritative user value visible to the app.

    Replaced wholesale on every reconciliation; never mutated in place.
    """

    id: str
    email: str
    name: str = GUEST_NAME
    level: int = DEFAULT_LEVEL
    total_xp: int = DEFAULT_TOTAL_XP
    streak: int = DEFAULT_STREAK
    learning_language: str = DEFAULT_LEARNING_LANGUAGE
    native_language: str = DEFAULT_NATIVE_LANGUAGE

    model_config = {"from_attributes": True, "frozen": True}

    @classmethod
    def from_identity(cls, identity: AuthIdentity) -> "User":
        """Synthesize a default user from an auth identity alone."""
        return cls(id=identity.id, email=identity.email, name=identity.display_name)

    @classmethod
    def from_profile(cls, identity: AuthIdentity, row: dict[str, Any]) -> "User":
        """Merge a profile row over the identity defaults.

        ``None`` columns fall back to the defaults so a partially filled
        row still produces a complete user.
        """
        base = cls.from_identity(identity)
        merged: dict[str, Any] = base.model_dump()
        for field in ("name", "level", "total_xp", "streak",
                      "learning_language", "native_language"):
            value = row.get(field)
            if value is not None and value != "":
                merged[field] = value
        if row.get("email"):
            merged["email"] = row["email"]
        return cls(**merged)


class OfflineUser(User):
    """Cached user snapshot with its cache timestamp (epoch milliseconds).

    Serialised with ``by_alias=True`` so the stored JSON carries
    ``cachedAt``.

    Attributes
    ----------
    cached_at:
        When the snapshot was written, in milliseconds since the epoch.
    learning_languages:
        Multi-language selection from newer signups; supersedes
        ``learning_language`` when present.
    """

    cached_at: int = Field(alias="cachedAt")
    learning_languages: Optional[list[str]] = None

    model_config = {"from_attributes": True, "frozen": True, "populate_by_name": True}

    def to_user(self) -> User:
        """Drop the cache-only fields."""
        return User(**self.model_dump(exclude={"cached_at", "learning_languages"}))
