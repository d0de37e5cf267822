"""
Service Composition Root.

The ``create_services()`` factory wires every repository and service
together, returning a typed dict that the application layer (views,
entry point) can consume without knowing the internal dependency graph.

Route guards are per view, so they are built on demand with
:func:`create_route_guard`.
"""

from __future__ import annotations

from typing import TypedDict

from lingua.auth import AuthStore
from lingua.config import AppConfig
from lingua.database import DatabaseManager
from lingua.logger import get_logger
from lingua.repositories.notification_repository import NotificationRepository
from lingua.repositories.profile_repository import ProfileRepository
from lingua.services.auth_service import AuthService
from lingua.services.credential_cache import CredentialCache
from lingua.services.local_store import LocalStore
from lingua.services.notification_feed import NotificationFeed
from lingua.services.reachability import ReachabilityMonitor
from lingua.services.remote_session import RemoteSessionClient
from lingua.services.route_guard import Navigator, RouteGuard
from lingua.services.secret_box import SecretBox
from lingua.services.session_markers import SessionMarkers
from lingua.services.signup_sync_worker import SignupSyncWorker


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    # --- Infrastructure ---
    local_store: LocalStore
    reachability: ReachabilityMonitor
    markers: SessionMarkers
    secret_box: SecretBox

    # --- Auth core ---
    credential_cache: CredentialCache
    remote_session: RemoteSessionClient
    auth_store: AuthStore
    auth_service: AuthService

    # --- Background / feeds ---
    signup_sync_worker: SignupSyncWorker
    notification_feed: NotificationFeed


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    reachability: ReachabilityMonitor,
    secret_box: SecretBox,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    application entry point calls this once at startup.

    Args:
        db: DatabaseManager with SQLite ready (Supabase optional).
        config: Application configuration.
        reachability: Shared online/offline signal.
        secret_box: Seals queued signup passwords.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("services")

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    profile_repo = ProfileRepository(
        db=db, logger=logger, request_timeout_s=config.REQUEST_TIMEOUT_S,
    )
    notification_repo = NotificationRepository(
        db=db, logger=logger, request_timeout_s=config.REQUEST_TIMEOUT_S,
    )

    # ------------------------------------------------------------------
    # 2. Leaf services (local state)
    # ------------------------------------------------------------------
    local_store = LocalStore(db=db, logger=logger)
    markers = SessionMarkers()
    credential_cache = CredentialCache(
        store=local_store,
        logger=get_logger("credential_cache"),
        salt=config.OFFLINE_AUTH_SALT.get_secret_value(),
        max_age_s=config.offline_cache_max_age_s,
    )

    # ------------------------------------------------------------------
    # 3. Remote gateway and reconciler
    # ------------------------------------------------------------------
    remote_session = RemoteSessionClient(
        db=db,
        profiles=profile_repo,
        reachability=reachability,
        logger=get_logger("remote_session"),
        session_timeout_s=config.SESSION_INIT_TIMEOUT_S,
        request_timeout_s=config.REQUEST_TIMEOUT_S,
    )
    auth_store = AuthStore(
        remote=remote_session,
        cache=credential_cache,
        reachability=reachability,
        markers=markers,
        logger=get_logger("auth"),
        init_timeout_s=config.AUTH_FALLBACK_TIMEOUT_S,
    )

    # ------------------------------------------------------------------
    # 4. Orchestration services
    # ------------------------------------------------------------------
    auth_service = AuthService(
        remote=remote_session,
        store=auth_store,
        cache=credential_cache,
        reachability=reachability,
        markers=markers,
        secret_box=secret_box,
        logger=get_logger("auth_service"),
        login_timeout_s=config.LOGIN_TIMEOUT_S,
        verify_offline_password=config.OFFLINE_LOGIN_VERIFY_PASSWORD,
        oauth_redirect_url=config.OAUTH_REDIRECT_URL,
    )
    signup_sync_worker = SignupSyncWorker(
        cache=credential_cache,
        remote=remote_session,
        reachability=reachability,
        secret_box=secret_box,
        logger=get_logger("signup_sync"),
        base_interval_s=config.SIGNUP_SYNC_INTERVAL_S,
        max_interval_s=config.SIGNUP_SYNC_MAX_INTERVAL_S,
        db=db,
    )
    notification_feed = NotificationFeed(
        store=auth_store,
        repository=notification_repo,
        remote=remote_session,
        logger=get_logger("notifications"),
    )

    return ServiceContainer(
        local_store=local_store,
        reachability=reachability,
        markers=markers,
        secret_box=secret_box,
        credential_cache=credential_cache,
        remote_session=remote_session,
        auth_store=auth_store,
        auth_service=auth_service,
        signup_sync_worker=signup_sync_worker,
        notification_feed=notification_feed,
    )


def create_route_guard(
    services: ServiceContainer,
    navigator: Navigator,
    config: AppConfig,
    require_auth: bool = True,
    redirect: bool = True,
) -> RouteGuard:
    """Build a guard for one protected view from the shared services."""
    return RouteGuard(
        store=services["auth_store"],
        cache=services["credential_cache"],
        remote=services["remote_session"],
        reachability=services["reachability"],
        markers=services["markers"],
        navigator=navigator,
        logger=get_logger("route_guard"),
        login_route=config.LOGIN_ROUTE,
        require_auth=require_auth,
        redirect=redirect,
        base_wait_s=config.GUARD_BASE_WAIT_S,
        offline_wait_s=config.GUARD_OFFLINE_WAIT_S,
        signup_wait_s=config.GUARD_SIGNUP_WAIT_S,
        session_poll_attempts=config.GUARD_SESSION_POLL_ATTEMPTS,
        session_poll_backoff_s=config.GUARD_SESSION_POLL_BACKOFF_S,
    )
