"""Append-only session audit log: writing, formatting, replay and retention."""

from .args import REDACTED, format_tool_args, should_redact_key
from .event import SCHEMA_VERSION, AuditEvent, EventStatus, EventType
from .logger import AuditLogger, cleanup_old_sessions, new_session_id, resolve_dir
from .reader import AuditFilter, AuditLogError, latest_session_file, list_session_files, read_events

__all__ = [
    "AuditEvent",
    "AuditFilter",
    "AuditLogError",
    "AuditLogger",
    "EventStatus",
    "EventType",
    "REDACTED",
    "SCHEMA_VERSION",
    "cleanup_old_sessions",
    "format_tool_args",
    "latest_session_file",
    "list_session_files",
    "new_session_id",
    "read_events",
    "resolve_dir",
    "should_redact_key",
]
