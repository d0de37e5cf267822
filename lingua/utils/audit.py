"""
Structured Audit Logging Utility.

Every state change with security relevance (profile back-fill, queued
signup replay, cache wipe) is logged as a structured JSON object.
Provides a Pydantic-validated model and a single function for
consistent audit trail entries.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from lingua.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event"]

# Scalar type permitted inside the ``details`` mapping.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
    conn: Optional[sqlite3.Connection] = None,
) -> AuditEvent:
    """Log a structured JSON audit event, with optional SQLite persistence.

    Always emits a log line via *logger*.  When *conn* is provided, the
    event is also written to the ``audit_log`` table; persistence
    failures are logged and never propagate to the calling operation.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"CREATE_DEFAULT"``, ``"REPLAY"``).
        entity_type: Type of entity affected (e.g. ``"Profile"``).
        entity_id: Primary key of the affected entity.
        user_id: ID (or email) of the user the action concerns.
        details: Optional additional context.
        conn: Optional SQLite connection for dual logging.

    Returns:
        The validated event.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )
    logger.info(
        "AUDIT: %s", json.dumps(event.model_dump(), default=str),
        extra={"event": "AUDIT"},
    )

    if conn is not None:
        try:
            conn.execute(
                """
                INSERT INTO audit_log (timestamp, action, entity_type, entity_id, user_id, details)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    event.timestamp,
                    event.action,
                    event.entity_type,
                    event.entity_id,
                    event.user_id,
                    json.dumps(event.details, default=str),
                ),
            )
            conn.commit()
        except sqlite3.Error as db_err:
            logger.warning("Failed to persist audit event to SQLite: %s", db_err)

    return event
