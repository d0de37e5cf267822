"""
Notification Model.

Rows of the ``notifications`` table as delivered by both the list query
and the realtime channel.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class Notification(BaseModel):
    """A single in-app notification addressed to one user."""

    id: str
    user_id: str
    title: str = ""
    message: str = ""
    type: str = "info"
    is_read: bool = False
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "extra": "ignore"}
