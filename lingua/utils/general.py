"""General Utility Functions."""

from __future__ import annotations

import re
import time
from typing import Callable

__all__ = ["Clock", "is_valid_email", "normalize_email", "now_ms", "system_clock"]

Clock = Callable[[], float]
"""Zero-argument callable returning wall-clock seconds since the epoch."""

_EMAIL_RE: re.Pattern[str] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def system_clock() -> float:
    """Default :data:`Clock` backed by ``time.time``."""
    return time.time()


def now_ms(clock: Clock = system_clock) -> int:
    """Current time from *clock* in whole milliseconds."""
    return int(clock() * 1000)


def normalize_email(email: str) -> str:
    """Strip surrounding whitespace and lower-case *email*."""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """Loose ``local@domain.tld`` shape check with no whitespace."""
    return bool(_EMAIL_RE.match(email))
