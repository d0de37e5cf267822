"""UI Theme Constants for Lingua AI.

Centralises all colour, font, and sizing constants for the
CustomTkinter interface.  Dark slate/purple background with light
cards.

This file contains **zero logic**, only ``Final`` constants.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Colour palette
# ---------------------------------------------------------------------------

APP_BG: Final[str] = "#1e1b3a"
CARD_BG: Final[str] = "#2a2550"
CARD_BORDER: Final[str] = "#3d3670"

ACCENT_PRIMARY: Final[str] = "#7c3aed"
ACCENT_HOVER: Final[str] = "#6d28d9"
ACCENT_SECONDARY: Final[str] = "#3b82f6"
TEXT_PRIMARY: Final[str] = "#ffffff"
TEXT_SECONDARY: Final[str] = "#b8b3d9"

# Status indicators
STATUS_ONLINE: Final[str] = "#22c55e"
STATUS_OFFLINE: Final[str] = "#f59e0b"

# Input / form
INPUT_BG: Final[str] = "#231f45"
INPUT_BORDER: Final[str] = "#4c4585"
ERROR_BG: Final[str] = "#4c1d2a"
ERROR_TEXT: Final[str] = "#fca5a5"
SUCCESS_TEXT: Final[str] = "#86efac"
OFFLINE_NOTICE_BG: Final[str] = "#4a3410"

# Tab / interactive
TAB_HOVER: Final[str] = "#332d63"
LOGOUT_PRIMARY: Final[str] = "#ef4444"
LOGOUT_HOVER: Final[str] = "#b91c1c"

# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------

FONT_FAMILY: Final[str] = "Segoe UI"
FONT_BRAND: Final[tuple[str, int, str]] = (FONT_FAMILY, 22, "bold")
FONT_HEADING: Final[tuple[str, int, str]] = (FONT_FAMILY, 20, "bold")
FONT_SUBTITLE: Final[tuple[str, int]] = (FONT_FAMILY, 12)
FONT_BODY: Final[tuple[str, int]] = (FONT_FAMILY, 13)
FONT_LABEL: Final[tuple[str, int, str]] = (FONT_FAMILY, 11, "bold")
FONT_SMALL: Final[tuple[str, int]] = (FONT_FAMILY, 11)
FONT_BUTTON: Final[tuple[str, int, str]] = (FONT_FAMILY, 13, "bold")

# ---------------------------------------------------------------------------
# Dimensions
# ---------------------------------------------------------------------------

WINDOW_WIDTH: Final[int] = 1000
WINDOW_HEIGHT: Final[int] = 760
MIN_WIDTH: Final[int] = 480
MIN_HEIGHT: Final[int] = 640
CARD_WIDTH: Final[int] = 420
INPUT_HEIGHT: Final[int] = 40
BUTTON_HEIGHT: Final[int] = 44
CORNER_RADIUS: Final[int] = 8
PADDING_SM: Final[int] = 8
PADDING_MD: Final[int] = 16
PADDING_LG: Final[int] = 24
