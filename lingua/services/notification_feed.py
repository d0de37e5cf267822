"""
Notification Feed.

Keeps the signed-in user's notifications in memory: loads the newest
rows once, then applies realtime row changes from the
``notifications`` channel.

- ``INSERT`` prepends the new row.
- ``UPDATE`` replaces the row with the same id.
- ``DELETE`` removes the row with the same id.

Listeners receive the full list after every change.  Every public
operation requires a signed-in user.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from lingua.auth import AuthStore
from lingua.auth_guard import AuthenticationError, require_auth
from lingua.logger import StructuredLogger
from lingua.models.enums import RealtimeEventType
from lingua.models.notification import Notification
from lingua.repositories.notification_repository import NotificationRepository
from lingua.services.base_service import BaseService
from lingua.services.remote_session import RemoteSessionClient

FeedListener = Callable[[list[Notification]], None]

FEED_LIMIT: int = 50


def parse_change(payload: dict[str, Any]) -> tuple[Optional[str], dict[str, Any], dict[str, Any]]:
    """Extract ``(event_type, new_row, old_row)`` from a realtime payload.

    Accepts both the flat ``{eventType, new, old}`` shape and the nested
    ``{data: {type, record, old_record}}`` shape.
    """
    data = payload.get("data")
    if isinstance(data, dict):
        event = data.get("type") or data.get("eventType")
        new = data.get("record") or {}
        old = data.get("old_record") or {}
    else:
        event = payload.get("eventType") or payload.get("type")
        new = payload.get("new") or payload.get("record") or {}
        old = payload.get("old") or payload.get("old_record") or {}
    return (str(event).upper() if event else None), dict(new), dict(old)


class NotificationFeed(BaseService):
    """In-memory, realtime-updated list of the current user's notifications.

    Parameters
    ----------
    store:
        Supplies the current user; guards every public operation.
    repository:
        Reads and updates the ``notifications`` table.
    remote:
        Opens the realtime channel.
    logger:
        Structured JSON logger.
    limit:
        Number of rows loaded initially.
    """

    def __init__(
        self,
        store: AuthStore,
        repository: NotificationRepository,
        remote: RemoteSessionClient,
        logger: StructuredLogger,
        limit: int = FEED_LIMIT,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._repository = repository
        self._remote = remote
        self._limit = limit

        self._items: list[Notification] = []
        self._listeners: list[FeedListener] = []
        self._unsubscribe: Optional[Callable[[], Awaitable[None]]] = None

        auth_guard = require_auth(store)
        self.load = auth_guard(self.load)  # type: ignore[method-assign]
        self.start = auth_guard(self.start)  # type: ignore[method-assign]
        self.mark_as_read = auth_guard(self.mark_as_read)  # type: ignore[method-assign]
        self.mark_all_as_read = auth_guard(self.mark_all_as_read)  # type: ignore[method-assign]

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._items if not item.is_read)

    def subscribe(self, listener: FeedListener) -> Callable[[], None]:
        """Register *listener*; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.items
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self._logger.error("Notification listener raised.", exc_info=True)

    def _user_id(self) -> str:
        user = self._store.user
        if user is None:
            raise AuthenticationError("Notifications require a signed-in user.")
        return user.id

    # ------------------------------------------------------------------
    # Loading and realtime
    # ------------------------------------------------------------------

    async def load(self) -> list[Notification]:
        """Replace the list with the newest rows from the backend."""
        self._items = await self._repository.list_for_user(self._user_id(), self._limit)
        self._publish()
        return self.items

    async def start(self) -> None:
        """Load, then follow row changes until :meth:`stop`."""
        await self.load()
        if self._unsubscribe is None:
            self._unsubscribe = await self._remote.subscribe_notifications(
                self._user_id(), self.apply_change,
            )

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None
        self._items = []
        self._publish()

    def apply_change(self, payload: dict[str, Any]) -> None:
        """Apply one realtime row change to the in-memory list."""
        event, new, old = parse_change(payload)

        if event == RealtimeEventType.INSERT:
            notification = self._parse(new)
            if notification is None:
                return
            self._items = [notification] + [n for n in self._items if n.id != notification.id]
        elif event == RealtimeEventType.UPDATE:
            notification = self._parse(new)
            if notification is None:
                return
            self._items = [notification if n.id == notification.id else n for n in self._items]
        elif event == RealtimeEventType.DELETE:
            removed_id = old.get("id") or new.get("id")
            if removed_id is None:
                return
            self._items = [n for n in self._items if n.id != str(removed_id)]
        else:
            self._logger.debug("Ignoring realtime event %r.", event)
            return

        self._publish()

    def _parse(self, row: dict[str, Any]) -> Optional[Notification]:
        try:
            return Notification.model_validate(row)
        except ValidationError as exc:
            self._logger.warning("Ignoring malformed notification row: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def mark_as_read(self, notification_id: str) -> None:
        await self._repository.mark_as_read(notification_id)
        self._items = [
            n.model_copy(update={"is_read": True}) if n.id == notification_id else n
            for n in self._items
        ]
        self._publish()

    async def mark_all_as_read(self) -> None:
        await self._repository.mark_all_as_read(self._user_id())
        self._items = [n.model_copy(update={"is_read": True}) for n in self._items]
        self._publish()
