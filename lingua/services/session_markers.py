"""
Transient session markers.

Process-scoped flags shared by the signup / logout flows and the
protected-route guard (the desktop counterpart of tab-scoped session
storage).  Nothing here is persisted: markers vanish when the app
exits.
"""

from __future__ import annotations

import threading
from typing import Optional

from lingua.utils.general import Clock, now_ms, system_clock

JUST_SIGNED_UP: str = "just_signed_up"
JUST_SIGNED_UP_TIME: str = "just_signed_up_time"
JUST_LOGGED_OUT: str = "just_logged_out"
PREVENT_REDIRECT: str = "prevent_redirect"
LOGGING_OUT: str = "logging_out"

_SIGN_OUT_MARKERS: tuple[str, ...] = (JUST_LOGGED_OUT, PREVENT_REDIRECT, LOGGING_OUT)


class SessionMarkers:
    """Thread-safe in-memory marker store."""

    def __init__(self, clock: Clock = system_clock) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, str] = {}
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str = "true") -> None:
        with self._lock:
            self._values[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    def mark_signed_up(self) -> None:
        """Set ``just_signed_up`` and stamp ``just_signed_up_time`` (ms)."""
        with self._lock:
            self._values[JUST_SIGNED_UP] = "true"
            self._values[JUST_SIGNED_UP_TIME] = str(now_ms(self._clock))

    def signup_age_s(self) -> Optional[float]:
        """Seconds since the signup marker was set.

        ``None`` when there is no marker.  A marker without a usable
        timestamp counts as brand new.
        """
        with self._lock:
            if self._values.get(JUST_SIGNED_UP) != "true":
                return None
            raw = self._values.get(JUST_SIGNED_UP_TIME)
        if raw is None:
            return 0.0
        try:
            stamped = int(raw)
        except ValueError:
            return 0.0
        return max(0.0, (now_ms(self._clock) - stamped) / 1000.0)

    def clear_signup(self) -> None:
        with self._lock:
            self._values.pop(JUST_SIGNED_UP, None)
            self._values.pop(JUST_SIGNED_UP_TIME, None)

    # ------------------------------------------------------------------
    # Sign-out
    # ------------------------------------------------------------------

    def begin_sign_out(self) -> None:
        with self._lock:
            self._values[JUST_LOGGED_OUT] = "true"
            self._values[PREVENT_REDIRECT] = "true"
            self._values[LOGGING_OUT] = "true"

    def finish_sign_out(self) -> None:
        """Drop ``logging_out``; the other markers stay until the next sign-in."""
        self.remove(LOGGING_OUT)

    def clear_sign_out(self) -> None:
        with self._lock:
            for key in _SIGN_OUT_MARKERS:
                self._values.pop(key, None)

    @property
    def sign_out_in_progress(self) -> bool:
        """``True`` between ``begin_sign_out`` and ``finish_sign_out``."""
        return self.get(LOGGING_OUT) == "true"

    @property
    def recently_signed_out(self) -> bool:
        """``True`` from ``begin_sign_out`` until the next sign-in."""
        with self._lock:
            return any(
                self._values.get(key) == "true" for key in (JUST_LOGGED_OUT, PREVENT_REDIRECT)
            )
