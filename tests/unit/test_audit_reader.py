"""Tests for audit log replay and discovery."""

import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from goshi.audit import (
    AuditEvent,
    AuditFilter,
    AuditLogError,
    EventStatus,
    EventType,
    latest_session_file,
    list_session_files,
    read_events,
)

BASE = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _event(minutes, type=EventType.TOOL, status=EventStatus.OK, message=""):
    return AuditEvent(
        ts=BASE + timedelta(minutes=minutes),
        type=type,
        status=status,
        message=message or f"event at +{minutes}m",
    )


@pytest.fixture
def log_file(tmp_path):
    events = [
        _event(0, EventType.SESSION, message="start"),
        _event(1, EventType.PERMISSION),
        _event(2, EventType.TOOL, EventStatus.ERROR),
        _event(3, EventType.TOOL, EventStatus.OK),
        _event(4, EventType.SAFETY, EventStatus.WARN),
        _event(5, EventType.SESSION, message="end"),
    ]
    lines = [e.to_json() for e in events]
    # interleave junk
    lines.insert(1, "{not json")
    lines.insert(3, "")
    lines.insert(5, '{"type": "no-such-type"}')
    lines.append("\u0000garbage")
    path = tmp_path / "session-test.jsonl"
    path.write_text("\n".join(lines) + "\n")
    return path


class TestReadEvents:
    """Tests for read_events()."""

    def test_skips_malformed_lines_keeps_order(self, log_file):
        events = read_events(log_file)
        assert len(events) == 6
        assert events[0].message == "start"
        assert events[-1].message == "end"
        assert [e.ts for e in events] == sorted(e.ts for e in events)

    def test_filter_types(self, log_file):
        events = read_events(log_file, AuditFilter(types={EventType.TOOL, EventType.SAFETY}))
        assert [e.type for e in events] == [EventType.TOOL, EventType.TOOL, EventType.SAFETY]

    def test_filter_statuses(self, log_file):
        events = read_events(log_file, AuditFilter(statuses={EventStatus.ERROR, EventStatus.WARN}))
        assert [e.status for e in events] == [EventStatus.ERROR, EventStatus.WARN]

    def test_filter_time_window_inclusive(self, log_file):
        events = read_events(
            log_file,
            AuditFilter(since=BASE + timedelta(minutes=2), until=BASE + timedelta(minutes=4)),
        )
        assert len(events) == 3

    def test_naive_times_are_utc(self, log_file):
        since = (BASE + timedelta(minutes=5)).replace(tzinfo=None)
        events = read_events(log_file, AuditFilter(since=since))
        assert [e.message for e in events] == ["end"]

    def test_limit_stops_scan(self, log_file):
        events = read_events(log_file, AuditFilter(types={EventType.TOOL, EventType.SESSION}, limit=2))
        assert [e.message for e in events] == ["start", "event at +2m"]

    def test_time_filter_excludes_untimed_events(self, tmp_path):
        path = tmp_path / "session-x.jsonl"
        path.write_text(AuditEvent(type=EventType.TOOL).to_json() + "\n")
        assert read_events(path) != []
        assert read_events(path, AuditFilter(since=BASE)) == []

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(AuditLogError):
            read_events(tmp_path / "session-missing.jsonl")


class TestDiscovery:
    """Tests for locating session logs."""

    def _make(self, directory, name, age):
        path = directory / name
        path.write_text("")
        stamp = time.time() - age
        os.utime(path, (stamp, stamp))
        return path

    def test_latest_by_mtime(self, tmp_path):
        self._make(tmp_path, "session-b.jsonl", 300)
        newest = self._make(tmp_path, "session-a.jsonl", 10)
        self._make(tmp_path, "session-c.jsonl", 200)
        self._make(tmp_path, "other.jsonl", 0)

        assert latest_session_file(tmp_path) == newest
        assert [p.name for p in list_session_files(tmp_path)] == [
            "session-a.jsonl",
            "session-c.jsonl",
            "session-b.jsonl",
        ]

    def test_no_sessions(self, tmp_path):
        (tmp_path / "notes.txt").write_text("")
        with pytest.raises(AuditLogError, match="no audit sessions found"):
            latest_session_file(tmp_path)

    def test_missing_dir(self, tmp_path):
        with pytest.raises(AuditLogError):
            latest_session_file(tmp_path / "missing")
