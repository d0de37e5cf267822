"""Tests for the realtime notification feed and the auth guard decorator."""

from __future__ import annotations

import pytest

from lingua.auth import AuthStore
from lingua.auth_guard import AuthenticationError, require_auth
from lingua.models.notification import Notification
from lingua.models.user import OfflineUser
from lingua.repositories.notification_repository import NotificationRepository
from lingua.services.notification_feed import NotificationFeed, parse_change
from lingua.services.remote_session import RemoteSessionClient
from tests.fakes import FakeSupabase

USER_ID = "user-1"


def _row(notification_id: str, created_at: str, is_read: bool = False, **extra) -> dict:
    return {
        "id": notification_id,
        "user_id": USER_ID,
        "title": f"Lesson {notification_id}",
        "message": "Keep your streak going",
        "type": "reminder",
        "is_read": is_read,
        "created_at": created_at,
        **extra,
    }


@pytest.fixture
def feed(
    store: AuthStore,
    notification_repo: NotificationRepository,
    remote: RemoteSessionClient,
    logger,
) -> NotificationFeed:
    return NotificationFeed(
        store=store, repository=notification_repo, remote=remote, logger=logger,
    )


@pytest.fixture
def signed_in(store: AuthStore) -> AuthStore:
    store.adopt_offline_user(OfflineUser(id=USER_ID, email="feed@example.com", cached_at=0))
    return store


@pytest.fixture
def seeded(fake_backend: FakeSupabase) -> FakeSupabase:
    fake_backend.tables["notifications"] = [
        _row("n1", "2025-01-01T08:00:00+00:00", is_read=True),
        _row("n2", "2025-01-03T08:00:00+00:00"),
        _row("n3", "2025-01-02T08:00:00+00:00"),
        {**_row("other", "2025-01-04T08:00:00+00:00"), "user_id": "someone-else"},
    ]
    return fake_backend


class TestParseChange:
    def test_nested_shape(self):
        event, new, old = parse_change({
            "data": {"type": "insert", "record": {"id": "n9"}, "old_record": None},
        })
        assert (event, new, old) == ("INSERT", {"id": "n9"}, {})

    def test_flat_shape(self):
        event, new, old = parse_change({"eventType": "DELETE", "new": {}, "old": {"id": "n1"}})
        assert (event, new, old) == ("DELETE", {}, {"id": "n1"})


class TestRequiresAuthentication:
    async def test_load_without_user(self, feed: NotificationFeed, store: AuthStore):
        await store.init()

        with pytest.raises(AuthenticationError):
            await feed.load()

    async def test_mark_all_without_user(self, feed: NotificationFeed):
        with pytest.raises(AuthenticationError):
            await feed.mark_all_as_read()

    async def test_sign_out_during_start_stops_before_subscribing(
        self, feed: NotificationFeed, store: AuthStore, seeded: FakeSupabase,
    ):
        await store.init()
        store.adopt_offline_user(OfflineUser(id=USER_ID, email="feed@example.com", cached_at=0))
        feed.subscribe(lambda items: seeded.auth.emit("SIGNED_OUT", None))

        with pytest.raises(AuthenticationError):
            await feed.start()

        assert seeded.channels == []

    def test_sync_function_guarded(self, store: AuthStore):
        guarded = require_auth(store)(lambda: "ok")

        with pytest.raises(AuthenticationError):
            guarded()

    def test_check_runs_on_every_call(self, store: AuthStore):
        """Signing in after decoration unlocks the function."""
        guarded = require_auth(store)(lambda: "ok")
        store.adopt_offline_user(OfflineUser(id=USER_ID, email="feed@example.com", cached_at=0))

        assert guarded() == "ok"


class TestLoad:
    async def test_newest_first_for_current_user(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        items = await feed.load()

        assert [n.id for n in items] == ["n2", "n3", "n1"]
        assert feed.unread_count == 2

    async def test_listeners_receive_full_list(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        received: list[list[Notification]] = []
        unsubscribe = feed.subscribe(received.append)

        await feed.load()
        unsubscribe()
        await feed.load()

        assert len(received) == 1
        assert len(received[0]) == 3


class TestRealtime:
    async def test_start_subscribes_and_applies_inserts(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        await feed.start()

        channel = seeded.channels[0]
        assert channel.subscribed is True
        assert channel.filter == f"user_id=eq.{USER_ID}"

        channel.push({
            "data": {
                "type": "INSERT",
                "record": _row("n4", "2025-01-05T08:00:00+00:00"),
                "old_record": None,
            },
        })

        assert [n.id for n in feed.items][:2] == ["n4", "n2"]
        assert feed.unread_count == 3

    async def test_update_and_delete(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        await feed.load()

        feed.apply_change({
            "eventType": "UPDATE",
            "new": _row("n2", "2025-01-03T08:00:00+00:00", is_read=True),
            "old": {"id": "n2"},
        })
        feed.apply_change({"eventType": "DELETE", "new": {}, "old": {"id": "n3"}})

        assert [n.id for n in feed.items] == ["n2", "n1"]
        assert feed.unread_count == 0

    async def test_malformed_row_ignored(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        await feed.load()

        feed.apply_change({"eventType": "INSERT", "new": {"title": "no id"}})

        assert len(feed.items) == 3

    async def test_stop_removes_channel_and_clears(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        await feed.start()

        await feed.stop()

        assert seeded.removed_channels == seeded.channels
        assert feed.items == []


class TestMarkAsRead:
    async def test_mark_one(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        await feed.load()

        await feed.mark_as_read("n3")

        assert feed.unread_count == 1
        stored = {row["id"]: row for row in seeded.tables["notifications"]}
        assert stored["n3"]["is_read"] is True

    async def test_mark_all(
        self, feed: NotificationFeed, signed_in: AuthStore, seeded: FakeSupabase,
    ):
        await feed.load()

        await feed.mark_all_as_read()

        assert feed.unread_count == 0
        stored = {row["id"]: row for row in seeded.tables["notifications"]}
        assert stored["other"]["is_read"] is False
