"""Shared fixtures: in-memory SQLite, a fake Supabase client and fake time.

Every fixture builds real ``lingua`` objects; only the hosted backend
and the clock are replaced.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterator

import pytest

# Keep log files out of the working tree.  Must run before any logger exists.
os.environ.setdefault("LOG_FILE", str(Path(tempfile.gettempdir()) / "lingua-tests.log"))

from lingua.auth import AuthStore  # noqa: E402
from lingua.database import DatabaseManager  # noqa: E402
from lingua.logger import StructuredLogger  # noqa: E402
from lingua.repositories.notification_repository import NotificationRepository  # noqa: E402
from lingua.repositories.profile_repository import ProfileRepository  # noqa: E402
from lingua.schema import initialize_schema  # noqa: E402
from lingua.services.auth_service import AuthService  # noqa: E402
from lingua.services.credential_cache import CredentialCache  # noqa: E402
from lingua.services.local_store import LocalStore  # noqa: E402
from lingua.services.reachability import ReachabilityMonitor  # noqa: E402
from lingua.services.remote_session import RemoteSessionClient  # noqa: E402
from lingua.services.route_guard import Navigator, RouteGuard  # noqa: E402
from lingua.services.secret_box import SecretBox  # noqa: E402
from lingua.services.session_markers import SessionMarkers  # noqa: E402
from tests.fakes import BACKEND_URL, FakeClock, FakeSupabase  # noqa: E402


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name="lingua.tests")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_backend() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def db(logger: StructuredLogger, fake_backend: FakeSupabase) -> Iterator[DatabaseManager]:
    """SQLite in memory with the schema applied and the fake client attached."""
    manager = DatabaseManager(
        supabase_url="", supabase_key="", sqlite_path=":memory:", logger=logger,
    )
    initialize_schema(manager.sqlite, logger)
    manager.attach_remote(fake_backend)  # type: ignore[arg-type]
    yield manager
    manager.close()


@pytest.fixture
def reachability(logger: StructuredLogger) -> ReachabilityMonitor:
    return ReachabilityMonitor(base_url=BACKEND_URL, logger=logger, initially_online=True)


@pytest.fixture
def markers(clock: FakeClock) -> SessionMarkers:
    return SessionMarkers(clock=clock)


@pytest.fixture
def local_store(db: DatabaseManager, logger: StructuredLogger) -> LocalStore:
    return LocalStore(db=db, logger=logger)


@pytest.fixture
def cache(local_store: LocalStore, logger: StructuredLogger, clock: FakeClock) -> CredentialCache:
    return CredentialCache(store=local_store, logger=logger, salt="test-salt", clock=clock)


@pytest.fixture
def secret_box(tmp_path: Path, logger: StructuredLogger) -> SecretBox:
    return SecretBox(logger=logger, salt_path=tmp_path / "secret_salt", iterations=1_000)


@pytest.fixture
def remote(
    db: DatabaseManager, reachability: ReachabilityMonitor, logger: StructuredLogger,
) -> RemoteSessionClient:
    return RemoteSessionClient(
        db=db,
        profiles=ProfileRepository(db=db, logger=logger, request_timeout_s=1.0),
        reachability=reachability,
        logger=logger,
        session_timeout_s=1.0,
        request_timeout_s=1.0,
    )


@pytest.fixture
def notification_repo(db: DatabaseManager, logger: StructuredLogger) -> NotificationRepository:
    return NotificationRepository(db=db, logger=logger, request_timeout_s=1.0)


@pytest.fixture
def store(
    remote: RemoteSessionClient,
    cache: CredentialCache,
    reachability: ReachabilityMonitor,
    markers: SessionMarkers,
    logger: StructuredLogger,
) -> Iterator[AuthStore]:
    auth_store = AuthStore(
        remote=remote,
        cache=cache,
        reachability=reachability,
        markers=markers,
        logger=logger,
        init_timeout_s=1.0,
    )
    yield auth_store
    auth_store.dispose()


@pytest.fixture
def auth_service(
    remote: RemoteSessionClient,
    store: AuthStore,
    cache: CredentialCache,
    reachability: ReachabilityMonitor,
    markers: SessionMarkers,
    secret_box: SecretBox,
    logger: StructuredLogger,
    clock: FakeClock,
) -> AuthService:
    return AuthService(
        remote=remote,
        store=store,
        cache=cache,
        reachability=reachability,
        markers=markers,
        secret_box=secret_box,
        logger=logger,
        login_timeout_s=1.0,
        session_verify_attempts=3,
        session_verify_interval_s=0.1,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture
def navigations() -> list[str]:
    return []


@pytest.fixture
def navigator(navigations: list[str]) -> Navigator:
    return Navigator(on_navigate=navigations.append, initial_route="/dashboard")


@pytest.fixture
def make_guard(
    store: AuthStore,
    cache: CredentialCache,
    remote: RemoteSessionClient,
    reachability: ReachabilityMonitor,
    markers: SessionMarkers,
    navigator: Navigator,
    logger: StructuredLogger,
    clock: FakeClock,
):
    """Factory for guards sharing the test's store and fake clock."""

    def _make(**overrides) -> RouteGuard:
        options = dict(
            store=store,
            cache=cache,
            remote=remote,
            reachability=reachability,
            markers=markers,
            navigator=navigator,
            logger=logger,
            clock=clock,
            sleep=clock.sleep,
        )
        options.update(overrides)
        return RouteGuard(**options)

    return _make
