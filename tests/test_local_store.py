"""Tests for the SQLite key-value store and the auth session adapter."""

from __future__ import annotations

from lingua.database import DatabaseManager
from lingua.services.local_store import LocalStore, SessionStorage


class TestLocalStore:
    def test_set_get_remove(self, local_store: LocalStore):
        assert local_store.set_item("b", "2") is True
        assert local_store.set_item("a", "1") is True
        assert local_store.set_item("a", "one") is True

        assert local_store.get_item("a") == "one"
        assert local_store.keys() == ["a", "b"]

        assert local_store.remove_item("a") is True
        assert local_store.remove_item("a") is True
        assert local_store.get_item("a") is None

    def test_json_values(self, local_store: LocalStore):
        local_store.set_json("queue", [{"email": "x@example.com"}])

        assert local_store.get_json("queue") == [{"email": "x@example.com"}]

    def test_malformed_json_reads_as_miss(self, local_store: LocalStore):
        local_store.set_item("broken", "{not json")

        assert local_store.get_json("broken") is None

    def test_unserialisable_value_rejected(self, local_store: LocalStore):
        assert local_store.set_json("bad", {"when": object()}) is False
        assert local_store.get_item("bad") is None

    def test_storage_failures_degrade(self, local_store: LocalStore, db: DatabaseManager):
        """A closed database reads as empty and refuses writes without raising."""
        db.close()

        assert local_store.get_item("a") is None
        assert local_store.set_item("a", "1") is False
        assert local_store.keys() == []


class TestSessionStorage:
    async def test_round_trips_through_local_store(self, local_store: LocalStore):
        storage = SessionStorage(local_store)

        await storage.set_item("sb-project-auth-token", '{"access_token": "t"}')

        assert await storage.get_item("sb-project-auth-token") == '{"access_token": "t"}'
        assert local_store.get_item("sb-project-auth-token") == '{"access_token": "t"}'

        await storage.remove_item("sb-project-auth-token")

        assert await storage.get_item("sb-project-auth-token") is None
