"""Login View: Authentication Screen.

Presents Sign In / Sign Up tabs, delegates every flow to
``AuthService`` and renders the outcome: an inline, dismissible error
banner (with remediation hint when there is one) or the success
callback.

**Thin UI Rule**: This module contains ZERO business logic.  It
gathers inputs, delegates to ``AuthService``, and displays results.
"""

from __future__ import annotations

import tkinter as tk
import webbrowser
from typing import Callable, Optional

import customtkinter as ctk

from lingua.config import AppConfig
from lingua.logger import StructuredLogger
from lingua.models.auth_models import AuthResult
from lingua.services.auth_service import AuthService
from lingua.services.reachability import ReachabilityMonitor
from lingua.ui.async_bridge import AsyncBridge
from lingua.ui.theme import (
    ACCENT_HOVER,
    ACCENT_PRIMARY,
    APP_BG,
    CARD_BG,
    CARD_BORDER,
    CARD_WIDTH,
    CORNER_RADIUS,
    ERROR_BG,
    ERROR_TEXT,
    FONT_BODY,
    FONT_BRAND,
    FONT_BUTTON,
    FONT_LABEL,
    FONT_SMALL,
    FONT_SUBTITLE,
    BUTTON_HEIGHT,
    INPUT_BG,
    INPUT_BORDER,
    INPUT_HEIGHT,
    OFFLINE_NOTICE_BG,
    PADDING_LG,
    PADDING_MD,
    PADDING_SM,
    STATUS_OFFLINE,
    SUCCESS_TEXT,
    TAB_HOVER,
    TEXT_PRIMARY,
    TEXT_SECONDARY,
)

_LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ar": "Arabic",
    "nl": "Dutch",
    "id": "Indonesian",
    "ms": "Malay",
    "th": "Thai",
    "km": "Khmer",
}


class ErrorBanner(ctk.CTkFrame):
    """Inline error message with optional hint and a dismiss button."""

    def __init__(self, parent: ctk.CTkFrame) -> None:
        super().__init__(parent, fg_color=ERROR_BG, corner_radius=CORNER_RADIUS)
        self._message = ctk.CTkLabel(
            self, text="", font=FONT_SMALL, text_color=ERROR_TEXT,
            wraplength=CARD_WIDTH - 110, justify="left", anchor="w",
        )
        self._message.grid(row=0, column=0, sticky="w", padx=(PADDING_SM, 0), pady=(6, 0))
        self._hint = ctk.CTkLabel(
            self, text="", font=FONT_SMALL, text_color=TEXT_SECONDARY,
            wraplength=CARD_WIDTH - 110, justify="left", anchor="w",
        )
        ctk.CTkButton(
            self, text="✕", width=24, height=24, fg_color="transparent",
            hover_color=TAB_HOVER, text_color=ERROR_TEXT, command=self.hide,
        ).grid(row=0, column=1, sticky="ne", padx=4, pady=4)
        self.grid_columnconfigure(0, weight=1)

    def show(self, message: str, hint: Optional[str] = None) -> None:
        self._message.configure(text=message)
        if hint:
            self._hint.configure(text=hint)
            self._hint.grid(row=1, column=0, sticky="w", padx=(PADDING_SM, 0), pady=(2, 6))
        else:
            self._hint.grid_forget()
        self.pack(fill="x", pady=(0, PADDING_SM))

    def hide(self) -> None:
        self.pack_forget()


class LoginView(ctk.CTkFrame):
    """Full-screen frame with Sign In / Sign Up tabs.

    Parameters
    ----------
    parent:
        The root ``CTk`` window this frame belongs to.
    auth_service:
        Centralised authentication service encapsulating all auth logic.
    reachability:
        Drives the offline notice.
    bridge:
        Runs the async flows off the UI thread.
    config:
        Supplies the selectable learning languages.
    on_login_success:
        Callback invoked (on the main thread) after login or signup.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        parent: ctk.CTk,
        auth_service: AuthService,
        reachability: ReachabilityMonitor,
        bridge: AsyncBridge,
        config: AppConfig,
        on_login_success: Callable[[], None],
        logger: StructuredLogger,
    ) -> None:
        super().__init__(parent, fg_color=APP_BG)

        self._auth_service = auth_service
        self._reachability = reachability
        self._bridge = bridge
        self._config = config
        self._on_login_success = on_login_success
        self._logger = logger

        self._active_tab: str = "sign_in"
        self._language_vars: dict[str, tk.BooleanVar] = {}
        self._unsubscribe_reachability: Optional[Callable[[], None]] = None

        self._build_ui()
        self._unsubscribe_reachability = reachability.subscribe(
            lambda online: bridge.call_soon(self, self._refresh_offline_notice),
        )
        self._refresh_offline_notice()

    def destroy(self) -> None:
        if self._unsubscribe_reachability is not None:
            self._unsubscribe_reachability()
            self._unsubscribe_reachability = None
        super().destroy()

    # ------------------------------------------------------------------
    # UI Construction
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        self.grid_rowconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)
        self.grid_columnconfigure(0, weight=1)

        card = ctk.CTkFrame(
            self, width=CARD_WIDTH, fg_color=CARD_BG, corner_radius=16,
            border_width=1, border_color=CARD_BORDER,
        )
        card.grid(row=1, column=0)
        inner = ctk.CTkFrame(card, fg_color="transparent")
        inner.pack(fill="both", expand=True, padx=36, pady=28)

        ctk.CTkLabel(inner, text="Lingua AI", font=FONT_BRAND, text_color=TEXT_PRIMARY).pack()
        ctk.CTkLabel(
            inner, text="Learn languages anywhere, even offline",
            font=FONT_SUBTITLE, text_color=TEXT_SECONDARY,
        ).pack(pady=(0, PADDING_MD))

        self._offline_notice = ctk.CTkLabel(
            inner,
            text="You're offline. Login will use cached credentials if available.",
            font=FONT_SMALL, text_color=STATUS_OFFLINE, fg_color=OFFLINE_NOTICE_BG,
            corner_radius=CORNER_RADIUS, wraplength=CARD_WIDTH - 80,
        )

        tab_bar = ctk.CTkFrame(inner, fg_color="transparent")
        tab_bar.pack(fill="x", pady=(0, PADDING_MD))
        tab_bar.grid_columnconfigure((0, 1), weight=1)
        self._sign_in_tab = self._tab_button(tab_bar, "Sign In", "sign_in")
        self._sign_in_tab.grid(row=0, column=0, sticky="nsew")
        self._sign_up_tab = self._tab_button(tab_bar, "Sign Up", "sign_up")
        self._sign_up_tab.grid(row=0, column=1, sticky="nsew")

        self._error_banner = ErrorBanner(inner)

        self._sign_in_frame = ctk.CTkFrame(inner, fg_color="transparent")
        self._build_sign_in_tab(self._sign_in_frame)
        self._sign_up_frame = ctk.CTkFrame(inner, fg_color="transparent")
        self._build_sign_up_tab(self._sign_up_frame)

        self._sign_in_frame.pack(fill="both", expand=True)
        self._style_tabs()

    def _tab_button(self, parent: ctk.CTkFrame, text: str, tab: str) -> ctk.CTkButton:
        return ctk.CTkButton(
            parent, text=text, font=FONT_BUTTON, fg_color="transparent",
            hover_color=TAB_HOVER, corner_radius=0, border_width=1,
            command=lambda: self._switch_tab(tab),
        )

    def _entry(self, parent: ctk.CTkFrame, label: str, placeholder: str, secret: bool = False) -> ctk.CTkEntry:
        ctk.CTkLabel(
            parent, text=label, font=FONT_LABEL, text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x", pady=(PADDING_SM, 4))
        entry = ctk.CTkEntry(
            parent, placeholder_text=placeholder, font=FONT_BODY, fg_color=INPUT_BG,
            border_color=INPUT_BORDER, text_color=TEXT_PRIMARY, height=INPUT_HEIGHT,
            corner_radius=CORNER_RADIUS, show="*" if secret else "",
        )
        entry.pack(fill="x")
        return entry

    def _primary_button(self, parent: ctk.CTkFrame, text: str, command: Callable[[], None]) -> ctk.CTkButton:
        button = ctk.CTkButton(
            parent, text=text, font=FONT_BUTTON, fg_color=ACCENT_PRIMARY,
            hover_color=ACCENT_HOVER, text_color=TEXT_PRIMARY, height=BUTTON_HEIGHT,
            corner_radius=CORNER_RADIUS, command=command,
        )
        button.pack(fill="x", pady=(PADDING_LG, PADDING_SM))
        return button

    def _build_sign_in_tab(self, parent: ctk.CTkFrame) -> None:
        self._email_entry = self._entry(parent, "EMAIL", "you@example.com")
        self._password_entry = self._entry(parent, "PASSWORD", "•" * 8, secret=True)
        self._login_button = self._primary_button(parent, "Sign In", self._handle_login)

        ctk.CTkButton(
            parent, text="Continue with Google", font=FONT_BODY, fg_color="transparent",
            border_width=1, border_color=INPUT_BORDER, hover_color=TAB_HOVER,
            text_color=TEXT_PRIMARY, height=BUTTON_HEIGHT, corner_radius=CORNER_RADIUS,
            command=self._handle_google,
        ).pack(fill="x", pady=(0, PADDING_SM))

        ctk.CTkButton(
            parent, text="Forgot Password?", font=FONT_SMALL, fg_color="transparent",
            hover_color=TAB_HOVER, text_color=ACCENT_PRIMARY, height=28,
            command=self._handle_forgot_password,
        ).pack()
        self._info_label = ctk.CTkLabel(
            parent, text="", font=FONT_SMALL, text_color=SUCCESS_TEXT,
            wraplength=CARD_WIDTH - 80,
        )

        self._email_entry.bind("<Return>", self._on_enter_key)
        self._password_entry.bind("<Return>", self._on_enter_key)

    def _build_sign_up_tab(self, parent: ctk.CTkFrame) -> None:
        self._su_name_entry = self._entry(parent, "NAME", "Your name")
        self._su_email_entry = self._entry(parent, "EMAIL", "you@example.com")
        self._su_password_entry = self._entry(parent, "PASSWORD", "At least 6 characters", secret=True)
        self._su_confirm_entry = self._entry(parent, "CONFIRM PASSWORD", "Repeat password", secret=True)

        ctk.CTkLabel(
            parent, text="I WANT TO LEARN", font=FONT_LABEL, text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x", pady=(PADDING_MD, 4))
        grid = ctk.CTkFrame(parent, fg_color="transparent")
        grid.pack(fill="x")
        for index, code in enumerate(self._config.SUPPORTED_LEARNING_LANGUAGES):
            var = tk.BooleanVar(value=False)
            self._language_vars[code] = var
            ctk.CTkCheckBox(
                grid, text=_LANGUAGE_NAMES.get(code, code), variable=var,
                font=FONT_SMALL, text_color=TEXT_PRIMARY,
            ).grid(row=index // 3, column=index % 3, sticky="w", pady=2, padx=(0, PADDING_SM))

        ctk.CTkLabel(
            parent, text="MY NATIVE LANGUAGE", font=FONT_LABEL, text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x", pady=(PADDING_MD, 4))
        self._native_var = tk.StringVar(value=_LANGUAGE_NAMES["en"])
        ctk.CTkOptionMenu(
            parent, variable=self._native_var,
            values=[_LANGUAGE_NAMES.get(c, c) for c in self._config.SUPPORTED_LEARNING_LANGUAGES],
            fg_color=INPUT_BG, button_color=ACCENT_PRIMARY,
        ).pack(fill="x")

        self._sign_up_button = self._primary_button(parent, "Create Account", self._handle_sign_up)

    # ------------------------------------------------------------------
    # Tabs / offline notice
    # ------------------------------------------------------------------

    def _switch_tab(self, tab: str) -> None:
        if tab == self._active_tab:
            return
        self._active_tab = tab
        self._error_banner.hide()
        if tab == "sign_in":
            self._sign_up_frame.pack_forget()
            self._sign_in_frame.pack(fill="both", expand=True)
        else:
            self._sign_in_frame.pack_forget()
            self._sign_up_frame.pack(fill="both", expand=True)
        self._style_tabs()

    def _style_tabs(self) -> None:
        for button, tab in ((self._sign_in_tab, "sign_in"), (self._sign_up_tab, "sign_up")):
            active = tab == self._active_tab
            button.configure(
                text_color=TEXT_PRIMARY if active else TEXT_SECONDARY,
                border_color=ACCENT_PRIMARY if active else INPUT_BORDER,
                border_width=2 if active else 1,
            )

    def _refresh_offline_notice(self) -> None:
        if self._reachability.is_online():
            self._offline_notice.pack_forget()
        else:
            self._offline_notice.pack(fill="x", pady=(0, PADDING_MD), ipady=6)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_enter_key(self, event: tk.Event[tk.Misc]) -> None:
        self._handle_login()

    def _handle_login(self) -> None:
        self._error_banner.hide()
        self._set_loading(self._login_button, True, "Signing in...")
        self._bridge.run(
            self,
            self._auth_service.login(self._email_entry.get(), self._password_entry.get()),
            self._show_login_result,
            self._show_unexpected_error,
        )

    def _show_login_result(self, result: AuthResult) -> None:
        self._set_loading(self._login_button, False, "Sign In")
        if result.success:
            self._on_login_success()
            return
        self._error_banner.show(result.error_message or "Login failed.", result.hint)

    def _handle_sign_up(self) -> None:
        self._error_banner.hide()
        names_to_codes = {name: code for code, name in _LANGUAGE_NAMES.items()}
        learning = [code for code, var in self._language_vars.items() if var.get()]
        native = names_to_codes.get(self._native_var.get(), "en")

        self._set_loading(self._sign_up_button, True, "Creating account...")
        self._bridge.run(
            self,
            self._auth_service.sign_up(
                name=self._su_name_entry.get(),
                email=self._su_email_entry.get(),
                password=self._su_password_entry.get(),
                confirm_password=self._su_confirm_entry.get(),
                learning_languages=learning,
                native_language=native,
            ),
            self._show_sign_up_result,
            self._show_unexpected_error,
        )

    def _show_sign_up_result(self, result: AuthResult) -> None:
        self._set_loading(self._sign_up_button, False, "Create Account")
        if result.success:
            self._on_login_success()
            return
        self._error_banner.show(result.error_message or "Signup failed.", result.hint)

    def _handle_google(self) -> None:
        self._error_banner.hide()

        def open_provider(result: AuthResult) -> None:
            if result.success and result.redirect_url:
                webbrowser.open(result.redirect_url)
            else:
                self._error_banner.show(result.error_message or "Google sign-in failed.", result.hint)

        self._bridge.run(
            self, self._auth_service.sign_in_with_oauth("google"),
            open_provider, self._show_unexpected_error,
        )

    def _handle_forgot_password(self) -> None:
        self._error_banner.hide()

        def show_reset_result(result: AuthResult) -> None:
            if result.success:
                self._info_label.configure(text=result.error_message or "")
                self._info_label.pack(fill="x", pady=(PADDING_SM, 0))
            else:
                self._error_banner.show(result.error_message or "Reset failed.", result.hint)

        self._bridge.run(
            self, self._auth_service.request_password_reset(self._email_entry.get()),
            show_reset_result, self._show_unexpected_error,
        )

    # ------------------------------------------------------------------
    # UI helpers
    # ------------------------------------------------------------------

    def _show_unexpected_error(self, exc: BaseException) -> None:
        self._set_loading(self._login_button, False, "Sign In")
        self._set_loading(self._sign_up_button, False, "Create Account")
        self._error_banner.show(f"Unexpected error: {exc}")

    def show_message(self, message: str) -> None:
        self._error_banner.show(message)

    @staticmethod
    def _set_loading(button: ctk.CTkButton, loading: bool, text: str) -> None:
        button.configure(text=text, state="disabled" if loading else "normal")
