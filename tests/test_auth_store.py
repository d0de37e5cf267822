"""Tests for the AuthStore reconciler."""

from __future__ import annotations

import asyncio

from lingua.auth import AuthSnapshot, AuthStore
from lingua.models.enums import AuthState
from lingua.models.user import User
from lingua.services.credential_cache import CredentialCache
from lingua.services.reachability import ReachabilityMonitor
from lingua.services.session_markers import SessionMarkers
from tests.fakes import FakeSupabase, make_session

PROFILE_ROW = {
    "id": "user-1",
    "email": "learner@example.com",
    "name": "Learner",
    "level": 7,
    "total_xp": 4200,
    "streak": 12,
    "learning_language": "nl",
    "native_language": "en",
}


def _sign_in_remotely(fake_backend: FakeSupabase, with_profile: bool = True) -> None:
    fake_backend.auth.session = make_session("user-1", "learner@example.com", full_name="Learner")
    if with_profile:
        fake_backend.tables["profiles"] = [dict(PROFILE_ROW)]


class TestInit:
    async def test_no_session_no_cache_is_unauthenticated(self, store: AuthStore):
        await store.init()

        assert store.auth_checked is True
        assert store.state is AuthState.UNAUTHENTICATED
        assert store.user is None

    async def test_session_with_profile_row(self, store: AuthStore, fake_backend: FakeSupabase):
        _sign_in_remotely(fake_backend)

        await store.init()

        assert store.state is AuthState.AUTHENTICATED
        assert store.user == User(**PROFILE_ROW)
        assert store.is_offline_user is False

    async def test_missing_profile_creates_defaults(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        """A session without a profile row still yields a complete user."""
        _sign_in_remotely(fake_backend, with_profile=False)

        await store.init()

        user = store.user
        assert user is not None
        assert (user.level, user.total_xp, user.streak) == (1, 0, 0)
        assert user.name == "Learner"
        assert fake_backend.count("profiles", "upsert") == 1
        assert fake_backend.tables["profiles"][0]["id"] == "user-1"

    async def test_failed_default_profile_write_is_tolerated(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        _sign_in_remotely(fake_backend, with_profile=False)
        fake_backend.failing_actions.add("upsert")

        await store.init()

        assert store.user is not None
        assert store.user.level == 1

    async def test_profile_falls_back_to_legacy_users_table(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        _sign_in_remotely(fake_backend, with_profile=False)
        fake_backend.missing_tables.add("profiles")
        fake_backend.tables["users"] = [dict(PROFILE_ROW, level=3)]

        await store.init()

        assert store.user is not None
        assert store.user.level == 3

    async def test_missing_profile_row_skips_legacy_table(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        """No row in ``profiles`` means defaults, not a ``users`` lookup."""
        _sign_in_remotely(fake_backend, with_profile=False)
        fake_backend.tables["users"] = [dict(PROFILE_ROW, level=3)]

        await store.init()

        assert store.user is not None
        assert store.user.level == 1
        assert fake_backend.count("users", "select") == 0

    async def test_no_session_restores_cached_user(
        self, store: AuthStore, cache: CredentialCache,
    ):
        cache.store_user(User(id="cached-1", email="c@example.com", name="Cached"))

        await store.init()

        assert store.user is not None
        assert store.user.id == "cached-1"
        assert store.is_offline_user is True

    async def test_offline_init_uses_cache_without_network(
        self,
        store: AuthStore,
        cache: CredentialCache,
        reachability: ReachabilityMonitor,
        fake_backend: FakeSupabase,
    ):
        cache.store_user(User(id="cached-1", email="c@example.com"))
        reachability.set_platform_state(False)

        await store.init()

        assert store.user is not None
        assert store.is_offline_user is True
        assert fake_backend.auth.calls == []
        assert fake_backend.queries == []

    async def test_slow_session_lookup_falls_back(
        self,
        remote,
        cache: CredentialCache,
        reachability: ReachabilityMonitor,
        markers: SessionMarkers,
        logger,
        fake_backend: FakeSupabase,
    ):
        """init() settles within its own deadline even if the backend hangs."""
        fake_backend.auth.session_delay_s = 0.5
        cache.store_user(User(id="cached-1", email="c@example.com"))
        quick = AuthStore(
            remote=remote, cache=cache, reachability=reachability,
            markers=markers, logger=logger, init_timeout_s=0.05,
        )

        await quick.init()

        assert quick.auth_checked is True
        assert quick.user is not None
        assert quick.user.id == "cached-1"
        quick.dispose()

    async def test_slow_profile_after_quick_session_completes(
        self,
        remote,
        cache: CredentialCache,
        reachability: ReachabilityMonitor,
        markers: SessionMarkers,
        logger,
        fake_backend: FakeSupabase,
    ):
        """The init deadline covers the session lookup, not profile resolution."""
        _sign_in_remotely(fake_backend)
        fake_backend.auth.session_delay_s = 0.1
        fake_backend.query_delay_s = 0.15
        quick = AuthStore(
            remote=remote, cache=cache, reachability=reachability,
            markers=markers, logger=logger, init_timeout_s=0.2,
        )

        await quick.init()

        assert quick.auth_checked is True
        assert quick.state is AuthState.AUTHENTICATED
        assert quick.user == User(**PROFILE_ROW)
        quick.dispose()

    async def test_init_twice_is_harmless(self, store: AuthStore, fake_backend: FakeSupabase):
        await store.init()
        await store.init()

        assert fake_backend.auth.calls.count("get_session") == 1


class TestAuthChecked:
    async def test_never_reverts(self, store: AuthStore, fake_backend: FakeSupabase):
        """Once a snapshot reports auth_checked, every later one does too."""
        snapshots: list[AuthSnapshot] = []
        store.subscribe(snapshots.append)
        _sign_in_remotely(fake_backend)

        await store.init()
        await store.sign_out()
        await store.refresh_user()

        flags = [snap.auth_checked for snap in snapshots]
        first_true = flags.index(True)
        assert all(flags[first_true:])
        assert snapshots[0].state is AuthState.UNINITIALIZED

    async def test_subscribe_emits_current_state(self, store: AuthStore):
        await store.init()
        received: list[AuthSnapshot] = []

        store.subscribe(received.append)

        assert len(received) == 1
        assert received[0].auth_checked is True


class TestRefresh:
    async def test_concurrent_refreshes_create_profile_once(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        await store.init()
        _sign_in_remotely(fake_backend, with_profile=False)
        upserts_before = fake_backend.count("profiles", "upsert")

        results = await asyncio.gather(
            store.refresh_user(), store.refresh_user(), store.refresh_user(),
        )

        assert fake_backend.count("profiles", "upsert") - upserts_before == 1
        assert all(user is not None and user.id == "user-1" for user in results)

    async def test_network_error_keeps_user(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        _sign_in_remotely(fake_backend)
        await store.init()
        fake_backend.auth.offline = True

        user = await store.refresh_user()

        assert user is not None
        assert store.user is not None
        assert store.user.id == "user-1"

    async def test_stale_result_discarded_after_sign_out(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        """A profile fetch that lands after sign-out must not resurrect the user."""
        await store.init()
        _sign_in_remotely(fake_backend)
        fake_backend.query_delay_s = 0.05

        pending = asyncio.ensure_future(store.refresh_user())
        await asyncio.sleep(0.01)
        await store.sign_out()
        await pending

        assert store.user is None


class TestAuthEvents:
    async def test_signed_out_event_clears_user(
        self, store: AuthStore, fake_backend: FakeSupabase,
    ):
        _sign_in_remotely(fake_backend)
        await store.init()

        fake_backend.auth.emit("SIGNED_OUT", None)

        assert store.user is None
        assert store.state is AuthState.UNAUTHENTICATED

    async def test_signed_in_event_resolves_user(
        self, store: AuthStore, fake_backend: FakeSupabase, markers: SessionMarkers,
    ):
        await store.init()
        markers.begin_sign_out()
        _sign_in_remotely(fake_backend)

        fake_backend.auth.emit("SIGNED_IN", fake_backend.auth.session)
        user = await store.refresh_user()

        assert user is not None
        assert user.level == 7
        assert markers.sign_out_in_progress is False

    async def test_other_events_ignored(self, store: AuthStore, fake_backend: FakeSupabase):
        await store.init()
        calls_before = len(fake_backend.auth.calls)

        fake_backend.auth.emit("USER_UPDATED", None)

        assert len(fake_backend.auth.calls) == calls_before
        assert store.user is None


class TestSignOut:
    async def test_clears_user_before_remote_call(
        self, store: AuthStore, fake_backend: FakeSupabase, cache: CredentialCache,
    ):
        _sign_in_remotely(fake_backend)
        await store.init()
        cache.store_user(store.user)
        seen_at_remote_call: list = []
        original_sign_out = fake_backend.auth.sign_out

        async def observing_sign_out(options=None):
            seen_at_remote_call.append(store.user)
            await original_sign_out(options)

        fake_backend.auth.sign_out = observing_sign_out

        await store.sign_out()

        assert seen_at_remote_call == [None]

    async def test_remote_failure_does_not_restore_user(
        self, store: AuthStore, fake_backend: FakeSupabase, markers: SessionMarkers,
    ):
        _sign_in_remotely(fake_backend)
        await store.init()
        fake_backend.auth.sign_out_error = RuntimeError("boom")

        await store.sign_out()

        assert store.user is None
        assert markers.sign_out_in_progress is False
        assert markers.recently_signed_out is True

    async def test_keeps_offline_cache_and_signup_queue(
        self, store: AuthStore, fake_backend: FakeSupabase, cache: CredentialCache,
    ):
        _sign_in_remotely(fake_backend)
        await store.init()
        cache.store_auth("learner@example.com", "hunter22")
        cache.store_user(store.user)
        cache.queue_signup("queued@example.com", "v1:sealed", "Queued", ["ar"], "en")

        await store.sign_out()

        assert cache.can_login_offline("learner@example.com") is True
        assert cache.get_user() is not None
        assert [entry.email for entry in cache.get_queued_signups()] == ["queued@example.com"]

    async def test_cached_user_not_restored_after_sign_out(
        self,
        store: AuthStore,
        fake_backend: FakeSupabase,
        cache: CredentialCache,
        reachability: ReachabilityMonitor,
    ):
        _sign_in_remotely(fake_backend)
        await store.init()
        cache.store_user(store.user)

        await store.sign_out()
        reachability.set_platform_state(False)

        assert await store.refresh_user() is None
        assert store.state is AuthState.UNAUTHENTICATED

    async def test_signed_in_event_lifts_restore_block(
        self,
        store: AuthStore,
        fake_backend: FakeSupabase,
        markers: SessionMarkers,
    ):
        _sign_in_remotely(fake_backend)
        await store.init()
        await store.sign_out()

        _sign_in_remotely(fake_backend)
        fake_backend.auth.emit("SIGNED_IN", fake_backend.auth.session)
        await store.refresh_user()

        assert markers.recently_signed_out is False
        assert store.user is not None
