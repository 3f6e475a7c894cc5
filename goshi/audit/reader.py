"""Replay and discovery of session audit logs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .event import AuditEvent, EventStatus, EventType

SESSION_PREFIX = "session-"
SESSION_SUFFIX = ".jsonl"


class AuditLogError(Exception):
    """Audit log could not be created, opened or located."""
    pass


@dataclass
class AuditFilter:
    """
    Predicates applied while scanning a log.

    Empty/None predicates pass everything. A ``limit`` of 0 means unlimited.
    Naive datetimes are interpreted as UTC.
    """

    types: set[EventType] = field(default_factory=set)
    statuses: set[EventStatus] = field(default_factory=set)
    since: datetime | None = None
    until: datetime | None = None
    limit: int = 0

    def matches(self, event: AuditEvent) -> bool:
        if self.types and event.type not in self.types:
            return False
        if self.statuses and event.status not in self.statuses:
            return False
        if self.since is None and self.until is None:
            return True
        if event.ts is None:
            return False
        ts = _as_utc(event.ts)
        if self.since is not None and ts < _as_utc(self.since):
            return False
        if self.until is not None and ts > _as_utc(self.until):
            return False
        return True


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_session_file(path: Path) -> bool:
    return (
        path.is_file()
        and path.name.startswith(SESSION_PREFIX)
        and path.name.endswith(SESSION_SUFFIX)
    )


def read_events(path: Path | str, filter: AuditFilter | None = None) -> list[AuditEvent]:
    """
    Read events from a session log.

    Malformed lines are skipped; the scan never aborts on bad content.

    Args:
        path: Session log file
        filter: Optional predicates and limit

    Returns:
        Matching events in file order

    Raises:
        AuditLogError: If the file cannot be opened or read
    """
    filter = filter or AuditFilter()
    events: list[AuditEvent] = []

    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    event = AuditEvent.model_validate_json(line)
                except ValidationError:
                    continue
                if not filter.matches(event):
                    continue
                events.append(event)
                if filter.limit > 0 and len(events) >= filter.limit:
                    break
    except OSError as e:
        raise AuditLogError(f"failed to open audit log: {e}") from e

    return events


def list_session_files(directory: Path | str) -> list[Path]:
    """List session logs in ``directory``, newest first by modification time."""
    entries = []
    for path in Path(directory).iterdir():
        if not is_session_file(path):
            continue
        try:
            entries.append((path.stat().st_mtime, path))
        except OSError:
            continue
    entries.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in entries]


def latest_session_file(directory: Path | str) -> Path:
    """
    Find the most recently modified session log.

    Raises:
        AuditLogError: If the directory is unreadable or holds no sessions
    """
    try:
        files = list_session_files(directory)
    except OSError as e:
        raise AuditLogError(f"failed to read audit dir: {e}") from e

    if not files:
        raise AuditLogError("no audit sessions found")
    return files[0]


__all__ = [
    "AuditFilter",
    "AuditLogError",
    "SESSION_PREFIX",
    "SESSION_SUFFIX",
    "is_session_file",
    "latest_session_file",
    "list_session_files",
    "read_events",
]
