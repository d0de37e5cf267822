"""Shared utility functions for the Lingua client.

Convenience re-exports so consumers can import directly from
``lingua.utils`` while full module paths remain supported.
"""

from lingua.utils.audit import AuditEvent, log_audit_event
from lingua.utils.general import is_valid_email, normalize_email, now_ms
from lingua.utils.timeouts import run_with_timeout

__all__ = [
    "AuditEvent",
    "is_valid_email",
    "log_audit_event",
    "normalize_email",
    "now_ms",
    "run_with_timeout",
]
