"""Protected View.

Wraps a gated frame.  Runs a ``RouteGuard`` evaluation on mount and
whenever the signed-in user disappears, and renders the guard phase:

- "Checking authentication..." while the guard is still deciding,
- "Redirecting..." once it navigates to the login route,
- an "Authentication Required" card when redirecting is disabled,
- nothing while a sign-out is in flight,
- the protected content once access is allowed.
"""

from __future__ import annotations

from typing import Callable, Optional

import customtkinter as ctk

from lingua.auth import AuthSnapshot, AuthStore
from lingua.logger import StructuredLogger
from lingua.models.enums import GuardOutcome, GuardPhase
from lingua.services.route_guard import RouteGuard
from lingua.ui.async_bridge import AsyncBridge
from lingua.ui.theme import (
    ACCENT_HOVER,
    ACCENT_PRIMARY,
    APP_BG,
    BUTTON_HEIGHT,
    CORNER_RADIUS,
    ERROR_TEXT,
    FONT_BODY,
    FONT_BUTTON,
    FONT_HEADING,
    PADDING_LG,
    TEXT_PRIMARY,
    TEXT_SECONDARY,
)

ContentFactory = Callable[[ctk.CTkFrame], ctk.CTkFrame]

_WAITING_PHASES: frozenset[GuardPhase] = frozenset({
    GuardPhase.CHECKING_AUTH,
    GuardPhase.CHECKING_OFFLINE_USER,
    GuardPhase.CHECKING_STORED_SESSION,
    GuardPhase.DECIDING,
})


class ProtectedView(ctk.CTkFrame):
    """Renders *content_factory*'s frame only for a signed-in user.

    Parameters
    ----------
    parent:
        Containing widget.
    guard:
        Guard instance dedicated to this view.
    store:
        Watched for the user disappearing (remote sign-out, expiry).
    bridge:
        Runs guard evaluations on the async loop.
    content_factory:
        Builds the protected frame; called once per allowed evaluation.
    on_sign_in:
        "Sign In" button action on the denied card.
    logger:
        Structured logger instance.
    """

    def __init__(
        self,
        parent: ctk.CTk | ctk.CTkFrame,
        guard: RouteGuard,
        store: AuthStore,
        bridge: AsyncBridge,
        content_factory: ContentFactory,
        on_sign_in: Callable[[], None],
        logger: StructuredLogger,
    ) -> None:
        super().__init__(parent, fg_color=APP_BG)
        self._guard = guard
        self._bridge = bridge
        self._content_factory = content_factory
        self._on_sign_in = on_sign_in
        self._logger = logger

        self._body: Optional[ctk.CTkFrame] = None
        self._showing_content: bool = False
        self._evaluating: bool = False

        self._unsubscribe_phase = guard.on_phase(
            lambda phase: bridge.call_soon(self, lambda: self._render_phase(phase)),
        )
        self._unsubscribe_store = store.subscribe(
            lambda snap: bridge.call_soon(self, lambda: self._on_store_change(snap)),
        )
        self._evaluate()

    def destroy(self) -> None:
        self._unsubscribe_phase()
        self._unsubscribe_store()
        super().destroy()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _evaluate(self) -> None:
        if self._evaluating:
            return
        self._evaluating = True
        self._render_status("Checking authentication...")
        self._bridge.run(self, self._guard.evaluate(), self._apply_outcome, self._on_guard_error)

    def _apply_outcome(self, outcome: GuardOutcome) -> None:
        self._evaluating = False
        if outcome is GuardOutcome.ALLOWED:
            self._render_content()
        elif outcome is GuardOutcome.REDIRECTING:
            self._render_status("Redirecting...")
        elif outcome is GuardOutcome.DENIED:
            self._render_denied()
        else:
            self._clear_body()

    def _on_guard_error(self, exc: BaseException) -> None:
        self._evaluating = False
        self._render_denied()

    def _on_store_change(self, snap: AuthSnapshot) -> None:
        if self._showing_content and snap.auth_checked and snap.user is None:
            self._logger.info("User signed out while on a protected view; re-checking.")
            self._evaluate()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_phase(self, phase: GuardPhase) -> None:
        if phase in _WAITING_PHASES and not self._showing_content:
            self._render_status("Checking authentication...")

    def _clear_body(self) -> None:
        if self._body is not None:
            self._body.destroy()
            self._body = None
        self._showing_content = False

    def _render_status(self, text: str) -> None:
        if self._showing_content:
            return
        self._clear_body()
        self._body = ctk.CTkFrame(self, fg_color="transparent")
        self._body.place(relx=0.5, rely=0.5, anchor="center")
        ctk.CTkProgressBar(self._body, mode="indeterminate", progress_color=ACCENT_PRIMARY).pack(
            pady=(0, PADDING_LG),
        )
        ctk.CTkLabel(self._body, text=text, font=FONT_BODY, text_color=TEXT_PRIMARY).pack()

    def _render_denied(self) -> None:
        self._clear_body()
        self._body = ctk.CTkFrame(self, fg_color="transparent")
        self._body.place(relx=0.5, rely=0.5, anchor="center")
        ctk.CTkLabel(self._body, text="!", font=FONT_HEADING, text_color=ERROR_TEXT).pack()
        ctk.CTkLabel(
            self._body, text="Authentication Required", font=FONT_HEADING, text_color=TEXT_PRIMARY,
        ).pack(pady=(8, 4))
        ctk.CTkLabel(
            self._body, text="Please sign in to access this page.",
            font=FONT_BODY, text_color=TEXT_SECONDARY,
        ).pack(pady=(0, PADDING_LG))
        ctk.CTkButton(
            self._body, text="Sign In", font=FONT_BUTTON, fg_color=ACCENT_PRIMARY,
            hover_color=ACCENT_HOVER, height=BUTTON_HEIGHT, corner_radius=CORNER_RADIUS,
            command=self._on_sign_in,
        ).pack()

    def _render_content(self) -> None:
        self._clear_body()
        self._body = self._content_factory(self)
        self._body.pack(fill="both", expand=True)
        self._showing_content = True
