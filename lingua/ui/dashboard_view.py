"""Dashboard View.

The protected landing frame: greets the user, shows level / XP /
streak, an offline badge for cache-restored sessions, and the
notifications feed with unread count.
"""

from __future__ import annotations

from typing import Callable, Optional

import customtkinter as ctk

from lingua.auth import AuthStore
from lingua.logger import StructuredLogger
from lingua.models.notification import Notification
from lingua.services.notification_feed import NotificationFeed
from lingua.ui.async_bridge import AsyncBridge
from lingua.ui.theme import (
    ACCENT_PRIMARY,
    APP_BG,
    CARD_BG,
    CORNER_RADIUS,
    FONT_BODY,
    FONT_BUTTON,
    FONT_HEADING,
    FONT_LABEL,
    FONT_SMALL,
    LOGOUT_HOVER,
    LOGOUT_PRIMARY,
    PADDING_LG,
    PADDING_MD,
    PADDING_SM,
    STATUS_OFFLINE,
    TEXT_PRIMARY,
    TEXT_SECONDARY,
)


class DashboardView(ctk.CTkFrame):
    """Signed-in home screen.

    Parameters
    ----------
    parent:
        Containing widget (the ``ProtectedView``).
    store:
        Source of the current user.
    feed:
        Notification feed; started on mount when the user is online.
    bridge:
        Runs feed operations on the async loop.
    on_logout:
        Invoked by the Logout button.
    logger:
        Structured logger instance.
    """

    def __init__(
        self,
        parent: ctk.CTkFrame,
        store: AuthStore,
        feed: NotificationFeed,
        bridge: AsyncBridge,
        on_logout: Callable[[], None],
        logger: StructuredLogger,
    ) -> None:
        super().__init__(parent, fg_color=APP_BG)
        self._store = store
        self._feed = feed
        self._bridge = bridge
        self._on_logout = on_logout
        self._logger = logger
        self._list_frame: Optional[ctk.CTkScrollableFrame] = None

        self._build_ui()
        self._unsubscribe_feed = feed.subscribe(
            lambda items: bridge.call_soon(self, lambda: self._render_notifications(items)),
        )
        if not store.is_offline_user:
            bridge.run(self, feed.start(), lambda _: None, self._on_feed_error)

    def destroy(self) -> None:
        self._unsubscribe_feed()
        self._bridge.submit(self._feed.stop())
        super().destroy()

    def _build_ui(self) -> None:
        user = self._store.user
        header = ctk.CTkFrame(self, fg_color="transparent")
        header.pack(fill="x", padx=PADDING_LG, pady=(PADDING_LG, PADDING_MD))

        ctk.CTkLabel(
            header, text=f"Welcome back, {user.name if user else ''}",
            font=FONT_HEADING, text_color=TEXT_PRIMARY,
        ).pack(side="left")
        ctk.CTkButton(
            header, text="Logout", font=FONT_BUTTON, fg_color=LOGOUT_PRIMARY,
            hover_color=LOGOUT_HOVER, corner_radius=CORNER_RADIUS, width=100,
            command=self._on_logout,
        ).pack(side="right")
        if self._store.is_offline_user:
            ctk.CTkLabel(
                header, text="Offline", font=FONT_LABEL, text_color=STATUS_OFFLINE,
            ).pack(side="right", padx=PADDING_MD)

        stats = ctk.CTkFrame(self, fg_color=CARD_BG, corner_radius=12)
        stats.pack(fill="x", padx=PADDING_LG)
        if user is not None:
            for column, (label, value) in enumerate((
                ("LEVEL", str(user.level)),
                ("TOTAL XP", str(user.total_xp)),
                ("STREAK", f"{user.streak} days"),
                ("LEARNING", user.learning_language.upper()),
            )):
                cell = ctk.CTkFrame(stats, fg_color="transparent")
                cell.grid(row=0, column=column, padx=PADDING_MD, pady=PADDING_MD, sticky="w")
                ctk.CTkLabel(cell, text=label, font=FONT_LABEL, text_color=TEXT_SECONDARY).pack(anchor="w")
                ctk.CTkLabel(cell, text=value, font=FONT_HEADING, text_color=TEXT_PRIMARY).pack(anchor="w")

        bar = ctk.CTkFrame(self, fg_color="transparent")
        bar.pack(fill="x", padx=PADDING_LG, pady=(PADDING_LG, PADDING_SM))
        self._unread_label = ctk.CTkLabel(
            bar, text="Notifications", font=FONT_BUTTON, text_color=TEXT_PRIMARY,
        )
        self._unread_label.pack(side="left")
        ctk.CTkButton(
            bar, text="Mark all read", font=FONT_SMALL, fg_color="transparent",
            text_color=ACCENT_PRIMARY, width=100, command=self._mark_all_read,
        ).pack(side="right")

        self._list_frame = ctk.CTkScrollableFrame(self, fg_color=CARD_BG, corner_radius=12)
        self._list_frame.pack(fill="both", expand=True, padx=PADDING_LG, pady=(0, PADDING_LG))

    def _render_notifications(self, items: list[Notification]) -> None:
        if self._list_frame is None:
            return
        for child in self._list_frame.winfo_children():
            child.destroy()
        unread = sum(1 for item in items if not item.is_read)
        self._unread_label.configure(
            text=f"Notifications ({unread} unread)" if unread else "Notifications",
        )
        if not items:
            ctk.CTkLabel(
                self._list_frame, text="No notifications yet.",
                font=FONT_BODY, text_color=TEXT_SECONDARY,
            ).pack(pady=PADDING_MD)
            return
        for item in items:
            row = ctk.CTkFrame(self._list_frame, fg_color="transparent")
            row.pack(fill="x", pady=4, padx=PADDING_SM)
            ctk.CTkLabel(
                row, text=item.title, font=FONT_BUTTON if not item.is_read else FONT_BODY,
                text_color=TEXT_PRIMARY, anchor="w",
            ).pack(fill="x")
            ctk.CTkLabel(
                row, text=item.message, font=FONT_SMALL, text_color=TEXT_SECONDARY,
                anchor="w", justify="left", wraplength=700,
            ).pack(fill="x")

    def _mark_all_read(self) -> None:
        self._bridge.run(self, self._feed.mark_all_as_read(), lambda _: None, self._on_feed_error)

    def _on_feed_error(self, exc: BaseException) -> None:
        self._logger.warning("Notification feed unavailable: %s", exc)
