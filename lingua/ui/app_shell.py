"""Application Host Shell.

The top-level ``CTk`` window that orchestrates the application
lifecycle: boot → login → protected dashboard → logout.

All dependencies are injected via the constructor.  The shell holds no
auth logic; it routes between the ``LoginView`` and the guarded
``DashboardView`` through a ``Navigator`` and starts the background
services on the ``AsyncBridge`` loop.
"""

from __future__ import annotations

from typing import Optional

import customtkinter as ctk

from lingua import __version__ as _APP_VERSION
from lingua.config import AppConfig
from lingua.container import ServiceContainer, create_route_guard
from lingua.database import DatabaseManager
from lingua.logger import StructuredLogger, get_logger
from lingua.services.route_guard import Navigator
from lingua.ui.async_bridge import AsyncBridge
from lingua.ui.dashboard_view import DashboardView
from lingua.ui.login_view import LoginView
from lingua.ui.protected_view import ProtectedView
from lingua.ui.theme import APP_BG, MIN_HEIGHT, MIN_WIDTH, WINDOW_HEIGHT, WINDOW_WIDTH

LOGIN_ROUTE: str = "/auth/login"
DASHBOARD_ROUTE: str = "/dashboard"


class AppShell(ctk.CTk):
    """Host Shell, the main application window.

    Lifecycle
    ---------
    1. On boot: starts reachability, ``AuthStore.init`` and the signup
       sync worker on the async loop, then routes to the dashboard.  The
       dashboard's guard redirects to login when nobody is signed in.
    2. On successful login or signup: routes to the dashboard.
    3. Logout: ``AuthService.logout`` then back to login.
    4. Close: stops background work and the loop before destroying.

    Parameters
    ----------
    config:
        Application configuration.
    db:
        Dual-database manager (Supabase + SQLite).
    services:
        Fully-wired service container.
    bridge:
        Running async bridge shared by every view.
    logger:
        Structured logger instance.
    """

    def __init__(
        self,
        config: AppConfig,
        db: DatabaseManager,
        services: ServiceContainer,
        bridge: AsyncBridge,
        logger: StructuredLogger,
    ) -> None:
        super().__init__()

        self._config = config
        self._db = db
        self._services = services
        self._bridge = bridge
        self._logger = logger

        self._view: Optional[ctk.CTkFrame] = None
        self._closing: bool = False
        self._navigator = Navigator(
            on_navigate=lambda route: bridge.call_soon(self, lambda: self._show_route(route)),
        )

        self.title(f"Lingua AI {_APP_VERSION}")
        self.geometry(f"{WINDOW_WIDTH}x{WINDOW_HEIGHT}")
        self.minsize(MIN_WIDTH, MIN_HEIGHT)
        self.configure(fg_color=APP_BG)
        ctk.set_appearance_mode("dark")

        self.protocol("WM_DELETE_WINDOW", self._on_close)

        self._bridge.run(self, self._boot(), self._on_booted, self._on_boot_error)

    # ==================================================================
    # Startup
    # ==================================================================

    async def _boot(self) -> None:
        """Start background services and resolve the initial auth state."""
        self._services["reachability"].start()
        await self._services["auth_store"].init()
        self._services["signup_sync_worker"].start()

    def _on_booted(self, _: None) -> None:
        self._logger.info("Background services started.")
        self._navigator.navigate(DASHBOARD_ROUTE)

    def _on_boot_error(self, exc: BaseException) -> None:
        self._logger.error("Startup failed: %s", exc)
        self._navigator.navigate(LOGIN_ROUTE)

    # ==================================================================
    # Routing
    # ==================================================================

    def _show_route(self, route: str) -> None:
        """Replace the active view with the one registered for *route*."""
        if self._closing:
            return
        if self._view is not None:
            self._view.destroy()
            self._view = None

        if route == DASHBOARD_ROUTE:
            self._view = self._build_dashboard()
        else:
            self._view = self._build_login()
        self._view.pack(fill="both", expand=True)
        self._logger.info("Switched to route: %s", route)

    def _build_login(self) -> LoginView:
        return LoginView(
            parent=self,
            auth_service=self._services["auth_service"],
            reachability=self._services["reachability"],
            bridge=self._bridge,
            config=self._config,
            on_login_success=self._handle_login_success,
            logger=get_logger("login_view"),
        )

    def _build_dashboard(self) -> ProtectedView:
        guard = create_route_guard(self._services, self._navigator, self._config)
        return ProtectedView(
            parent=self,
            guard=guard,
            store=self._services["auth_store"],
            bridge=self._bridge,
            content_factory=lambda parent: DashboardView(
                parent=parent,
                store=self._services["auth_store"],
                feed=self._services["notification_feed"],
                bridge=self._bridge,
                on_logout=self._handle_logout,
                logger=get_logger("dashboard"),
            ),
            on_sign_in=lambda: self._navigator.navigate(LOGIN_ROUTE),
            logger=get_logger("protected_view"),
        )

    # ==================================================================
    # Auth lifecycle
    # ==================================================================

    def _handle_login_success(self) -> None:
        """Called by ``LoginView`` after a successful login or signup."""
        user = self._services["auth_store"].user
        self._logger.info("Login successful: %s", user.email if user else "(pending)")
        self._navigator.navigate(DASHBOARD_ROUTE)

    def _handle_logout(self) -> None:
        """Delegate logout to AuthService and return to the login screen."""
        self._bridge.run(
            self,
            self._services["auth_service"].logout(),
            lambda _: self._navigator.navigate(LOGIN_ROUTE),
            lambda exc: self._navigator.navigate(LOGIN_ROUTE),
        )

    # ==================================================================
    # Shutdown
    # ==================================================================

    async def _shutdown(self) -> None:
        await self._services["notification_feed"].stop()
        await self._services["signup_sync_worker"].stop()
        await self._services["reachability"].stop()
        self._services["auth_store"].dispose()

    def _on_close(self) -> None:
        """Graceful shutdown: stop background work, then the loop."""
        self._closing = True
        self._logger.info("Shutting down Lingua AI...")
        try:
            self._bridge.submit(self._shutdown()).result(timeout=5.0)
        except Exception as exc:
            self._logger.warning("Background services did not stop cleanly: %s", exc)
        self._bridge.stop()
        self.destroy()
