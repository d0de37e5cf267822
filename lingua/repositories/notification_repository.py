"""
Notification Repository.

Data access for the ``notifications`` table.  Rows are scoped by
``user_id``; the realtime side of the feed lives in
``RemoteSessionClient.subscribe_notifications``.
"""

from __future__ import annotations

from typing import Any, Optional

from lingua.models.notification import Notification
from lingua.repositories.base_repository import BaseRepository


class NotificationRepository(BaseRepository):
    """CRUD over the ``notifications`` table."""

    TABLE = "notifications"

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[Notification]:
        """Newest-first notifications addressed to *user_id*."""
        response = await self._run(
            lambda: self.supabase.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit),
            "list_for_user",
        )
        return [Notification.model_validate(row) for row in response.data or []]

    async def create(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = "info",
        data: Optional[dict[str, Any]] = None,
    ) -> Notification:
        response = await self._run(
            lambda: self.supabase.table(self.TABLE).insert([{
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": type,
                "data": data or {},
                "is_read": False,
            }]),
            "create",
        )
        return Notification.model_validate(response.data[0])

    async def mark_as_read(self, notification_id: str) -> None:
        await self._run(
            lambda: self.supabase.table(self.TABLE)
            .update({"is_read": True})
            .eq("id", notification_id),
            "mark_as_read",
        )

    async def mark_all_as_read(self, user_id: str) -> None:
        await self._run(
            lambda: self.supabase.table(self.TABLE)
            .update({"is_read": True})
            .eq("user_id", user_id)
            .eq("is_read", False),
            "mark_all_as_read",
        )

    async def delete(self, notification_id: str) -> None:
        await self._run(
            lambda: self.supabase.table(self.TABLE)
            .delete()
            .eq("id", notification_id),
            "delete",
        )
