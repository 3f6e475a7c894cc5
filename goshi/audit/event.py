"""
Audit event model.

One event is one JSON line in a session log. Events are never mutated after
they are written.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

SCHEMA_VERSION = "1"


class EventType(str, Enum):
    """Category of an audit event."""

    PERMISSION = "permission"
    TOOL = "tool"
    SAFETY = "safety"
    DIAGNOSTIC = "diagnostic"
    SESSION = "session"
    MESSAGE = "message"
    RESPONSE = "response"


class EventStatus(str, Enum):
    """Outcome of an audited action."""

    OK = "ok"
    WARN = "warn"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    Append-only audit record.

    ``ts``, ``session_id`` and ``version`` may be left unset by callers;
    the logger fills them in at write time.
    """

    ts: datetime | None = Field(default=None, description="Event timestamp (UTC)")
    type: EventType
    action: str = ""
    status: EventStatus = EventStatus.OK
    message: str = ""
    cwd: str = ""
    details: dict[str, Any] | None = None
    session_id: str = ""
    version: str = ""

    model_config = {"frozen": True}

    def to_json(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return self.model_dump_json(exclude_none=True)


__all__ = ["AuditEvent", "EventStatus", "EventType", "SCHEMA_VERSION"]
