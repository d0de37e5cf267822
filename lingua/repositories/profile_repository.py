"""
Profile Repository.

Reads and back-fills the user's profile row.  The ``profiles`` table is
authoritative; when it errors for a reason other than "no row", the
legacy ``users`` table is tried before giving up.
"""

from __future__ import annotations

from typing import Any

from lingua.errors import NetworkError, NotFoundError, RemoteServiceError
from lingua.models.user import (
    DEFAULT_LEARNING_LANGUAGE,
    DEFAULT_LEVEL,
    DEFAULT_NATIVE_LANGUAGE,
    DEFAULT_STREAK,
    DEFAULT_TOTAL_XP,
    AuthIdentity,
)
from lingua.repositories.base_repository import BaseRepository

LEGACY_TABLE: str = "users"
PROFILE_COLUMNS: str = (
    "id, email, name, level, total_xp, streak, native_language, learning_language"
)


class ProfileRepository(BaseRepository):
    """Data access for the ``profiles`` table (with ``users`` fallback)."""

    TABLE = "profiles"

    async def get_by_id(self, user_id: str) -> dict[str, Any]:
        """Fetch the profile row for *user_id*.

        Raises
        ------
        NotFoundError
            No profile row exists (``PGRST116``).
        RemoteServiceError
            Both ``profiles`` and ``users`` failed; the ``profiles``
            error is raised.
        """
        try:
            response = await self._run(
                lambda: self.supabase.table(self.TABLE)
                .select(PROFILE_COLUMNS)
                .eq("id", user_id)
                .single(),
                "get_by_id",
            )
            return dict(response.data)
        except NotFoundError:
            raise
        except RemoteServiceError as primary:
            # An unreachable backend will not fare better on the second table.
            if isinstance(primary, NetworkError):
                raise
            try:
                response = await self._run(
                    lambda: self.supabase.table(LEGACY_TABLE)
                    .select(PROFILE_COLUMNS)
                    .eq("id", user_id)
                    .single(),
                    "get_by_id (legacy users)",
                )
            except RemoteServiceError:
                raise primary
            self._logger.info("Profile for %s served from legacy users table.", user_id)
            return dict(response.data)

    async def create_default(self, identity: AuthIdentity, name: str) -> dict[str, Any]:
        """Upsert a default profile row for *identity* and return it."""
        row: dict[str, Any] = {
            "id": identity.id,
            "email": identity.email,
            "name": name,
            "level": DEFAULT_LEVEL,
            "total_xp": DEFAULT_TOTAL_XP,
            "streak": DEFAULT_STREAK,
            "learning_language": DEFAULT_LEARNING_LANGUAGE,
            "native_language": DEFAULT_NATIVE_LANGUAGE,
        }
        await self._run(
            lambda: self.supabase.table(self.TABLE).upsert(row, on_conflict="id"),
            "create_default",
        )
        return row

    async def upsert(self, row: dict[str, Any]) -> None:
        """Insert or update a full profile row keyed by ``id``."""
        await self._run(
            lambda: self.supabase.table(self.TABLE).upsert(row, on_conflict="id"),
            "upsert",
        )
