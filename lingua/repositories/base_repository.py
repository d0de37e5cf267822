"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference (Supabase client)
- Logger reference
- Request deadline and error normalisation for every remote query
"""

from __future__ import annotations

from typing import Any, Callable

from supabase import AsyncClient

from lingua.database import DatabaseManager
from lingua.errors import (
    NO_ROWS_CODE,
    PERMISSION_DENIED_CODE,
    UNDEFINED_COLUMN_CODE,
    UNDEFINED_TABLE_CODE,
    RemoteServiceError,
    classify_remote_error,
)
from lingua.logger import StructuredLogger
from lingua.utils.timeouts import run_with_timeout

# Codes that mean "this table / column / row simply is not there".
_EXPECTED_ABSENCE_CODES: frozenset[str] = frozenset({
    NO_ROWS_CODE,
    UNDEFINED_TABLE_CODE,
    UNDEFINED_COLUMN_CODE,
})


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(
        self,
        db: DatabaseManager,
        logger: StructuredLogger,
        request_timeout_s: float = 5.0,
    ) -> None:
        self._db = db
        self._logger = logger
        self._request_timeout_s = request_timeout_s

    @property
    def supabase(self) -> AsyncClient:
        """Returns the Supabase client (raises ``RuntimeError`` offline)."""
        return self._db.supabase

    async def _run(self, build_query: Callable[[], Any], operation_name: str) -> Any:
        """Build and execute a PostgREST query under the request deadline.

        *build_query* is called inside the error boundary so the offline
        ``RuntimeError`` from :attr:`supabase` is normalised like any
        transport failure.

        Returns
        -------
        Any
            The ``APIResponse`` of the query.

        Raises
        ------
        RemoteServiceError
            The normalised failure (``NotFoundError`` for ``PGRST116``).
        """
        try:
            query = build_query()
            return await run_with_timeout(
                query.execute(), self._request_timeout_s, operation_name,
            )
        except Exception as exc:
            error = classify_remote_error(exc)
            self._log_failure(error, operation_name)
            raise error from exc

    def _log_failure(self, error: RemoteServiceError, operation_name: str) -> None:
        if error.code in _EXPECTED_ABSENCE_CODES:
            self._logger.debug(
                "%s on %s: %s (%s)", operation_name, self.TABLE, error.message, error.code,
            )
            return

        self._logger.warning(
            "%s on %s failed: %s",
            operation_name,
            self.TABLE,
            error.message,
            extra={"code": error.code, "details": error.details, "hint": error.hint},
        )
        lowered = error.message.lower()
        if (
            error.code == PERMISSION_DENIED_CODE
            or "permission" in lowered
            or "row-level security" in lowered
        ):
            self._logger.warning(
                "Request on %s was blocked by row-level security. Check the "
                "table policies for the authenticated role.",
                self.TABLE,
            )
