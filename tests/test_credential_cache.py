"""Tests for the offline credential cache and signup queue."""

from __future__ import annotations

from lingua.models.user import OfflineUser, User
from lingua.services.credential_cache import (
    OFFLINE_AUTH_KEY,
    OFFLINE_USER_KEY,
    QUEUED_SIGNUPS_KEY,
    CredentialCache,
    hash_password,
)
from lingua.services.local_store import LocalStore
from tests.fakes import FakeClock

ALICE = User(id="user-a", email="alice@example.com", name="Alice", level=4, total_xp=1200)
BOB = User(id="user-b", email="bob@example.com", name="Bob")

DAY_S = 24 * 60 * 60


class TestAuthRecord:
    """Stored credentials and the offline-login check."""

    def test_stores_hash_not_plaintext(self, cache: CredentialCache, local_store: LocalStore):
        """The persisted record carries a salted digest, never the password."""
        cache.store_auth("alice@example.com", "hunter22")

        raw = local_store.get_json(OFFLINE_AUTH_KEY)
        assert raw["email"] == "alice@example.com"
        assert raw["passwordHash"] == hash_password("hunter22", "test-salt")
        assert "hunter22" not in local_store.get_item(OFFLINE_AUTH_KEY)

    def test_can_login_offline_only_for_cached_email(self, cache: CredentialCache):
        cache.store_auth("alice@example.com", "hunter22")

        assert cache.can_login_offline("alice@example.com") is True
        assert cache.can_login_offline("bob@example.com") is False

    def test_can_login_offline_false_without_record(self, cache: CredentialCache):
        assert cache.can_login_offline("alice@example.com") is False

    def test_verify_password(self, cache: CredentialCache):
        cache.store_auth("alice@example.com", "hunter22")

        assert cache.verify_password("alice@example.com", "hunter22") is True
        assert cache.verify_password("alice@example.com", "wrong-password") is False
        assert cache.verify_password("bob@example.com", "hunter22") is False

    def test_malformed_record_reads_as_missing(self, cache: CredentialCache, local_store: LocalStore):
        local_store.set_item(OFFLINE_AUTH_KEY, "{not json")

        assert cache.get_auth() is None
        assert cache.can_login_offline("alice@example.com") is False


class TestUserSnapshot:
    """The cached user, its lifetime and the single slot."""

    def test_round_trips_user_with_cached_at(self, cache: CredentialCache, clock: FakeClock):
        cache.store_user(ALICE)

        cached = cache.get_user()
        assert cached is not None
        assert cached.id == "user-a"
        assert cached.level == 4
        assert cached.cached_at == int(clock.now * 1000)
        assert cached.to_user() == ALICE

    def test_serialises_cached_at_alias(self, cache: CredentialCache, local_store: LocalStore):
        cache.store_user(ALICE)

        assert "cachedAt" in local_store.get_json(OFFLINE_USER_KEY)

    def test_valid_just_before_max_age(self, cache: CredentialCache, clock: FakeClock):
        cache.store_user(ALICE)
        clock.advance(DAY_S - 1)

        assert cache.get_user() is not None

    def test_expired_at_max_age_removes_user_and_auth(
        self, cache: CredentialCache, clock: FakeClock, local_store: LocalStore,
    ):
        """At exactly 24 h the snapshot is gone, and so is the auth record."""
        cache.store_auth("alice@example.com", "hunter22")
        cache.store_user(ALICE)
        clock.advance(DAY_S)

        assert cache.get_user() is None
        assert local_store.get_item(OFFLINE_USER_KEY) is None
        assert cache.get_auth() is None

    def test_custom_max_age(self, local_store: LocalStore, logger, clock: FakeClock):
        short = CredentialCache(store=local_store, logger=logger, max_age_s=60, clock=clock)
        short.store_user(ALICE)
        clock.advance(60)

        assert short.get_user() is None

    def test_last_writer_wins(self, cache: CredentialCache):
        """One slot per device: caching Bob replaces Alice."""
        cache.store_user(ALICE)
        cache.store_user(BOB)

        cached = cache.get_user()
        assert cached is not None
        assert cached.id == "user-b"

    def test_restoring_refreshes_cached_at(self, cache: CredentialCache, clock: FakeClock):
        cache.store_user(ALICE)
        clock.advance(DAY_S - 10)
        cache.store_user(cache.get_user())
        clock.advance(DAY_S - 10)

        assert cache.get_user() is not None

    def test_keeps_learning_languages(self, cache: CredentialCache):
        cache.store_user(ALICE, learning_languages=["ar", "nl"])
        cached = cache.get_user()
        cache.store_user(cached)

        assert cache.get_user().learning_languages == ["ar", "nl"]


class TestOfflineLogin:
    def test_matches_email_and_ignores_password(self, cache: CredentialCache):
        """Offline login checks the email only."""
        cache.store_auth("alice@example.com", "hunter22")
        cache.store_user(ALICE)

        user = cache.login_offline("alice@example.com")
        assert isinstance(user, OfflineUser)
        assert user.id == "user-a"

    def test_other_email_rejected(self, cache: CredentialCache):
        cache.store_user(ALICE)

        assert cache.login_offline("bob@example.com") is None

    def test_expired_snapshot_rejected(self, cache: CredentialCache, clock: FakeClock):
        cache.store_user(ALICE)
        clock.advance(DAY_S + 1)

        assert cache.login_offline("alice@example.com") is None


class TestSignupQueue:
    def _queue(self, cache: CredentialCache, email: str = "new@example.com") -> bool:
        return cache.queue_signup(
            email=email,
            password="v1:sealed",
            name="New",
            learning_languages=["ar", "th"],
            native_language="en",
        )

    def test_queue_and_read_back(self, cache: CredentialCache, local_store: LocalStore):
        assert self._queue(cache) is True

        entries = cache.get_queued_signups()
        assert len(entries) == 1
        assert entries[0].learning_languages == ["ar", "th"]
        assert "learningLanguages" in local_store.get_json(QUEUED_SIGNUPS_KEY)[0]

    def test_same_email_queued_once(self, cache: CredentialCache):
        assert self._queue(cache) is True
        assert self._queue(cache) is False

        assert len(cache.get_queued_signups()) == 1

    def test_clear_single_entry(self, cache: CredentialCache):
        self._queue(cache, "one@example.com")
        self._queue(cache, "two@example.com")
        cache.clear_queued_signup("one@example.com")

        assert [e.email for e in cache.get_queued_signups()] == ["two@example.com"]


class TestClearAll:
    def test_removes_every_key(self, cache: CredentialCache, local_store: LocalStore):
        cache.store_auth("alice@example.com", "hunter22")
        cache.store_user(ALICE)
        cache.queue_signup("q@example.com", "v1:x", "Q", ["ar"], "en")

        cache.clear_all()

        assert cache.get_auth() is None
        assert cache.get_user() is None
        assert cache.get_queued_signups() == []
        assert local_store.keys() == []
