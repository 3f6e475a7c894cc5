"""Tests for the goshi command line."""

import argparse
import io
import json
from datetime import datetime, timedelta, timezone

import pytest

from goshi.audit import AuditLogger, EventStatus
from goshi.cli import build_parser, parse_time_or_duration, run_audit, run_chat
from goshi.config import GoshiConfig
from goshi.session import ChatSession

from tests.fakes import FakeBackend, FakeStream


@pytest.fixture
def recorded_session(audit_config):
    with AuditLogger(audit_config) as audit:
        audit.log_session("START", "session started", "/repo")
        audit.log_permission("GRANT", "FS_READ", "user-approved", "/repo")
        audit.log_tool("fs.read", EventStatus.ERROR, "boom", {"path": "a"}, "/repo")
    return audit


def _audit(config, *argv):
    out = io.StringIO()
    code = run_audit(build_parser().parse_args(["audit", *argv]), config, out)
    return code, out.getvalue()


class TestParseTime:
    def test_duration(self):
        value = parse_time_or_duration("2h")
        expected = datetime.now(timezone.utc) - timedelta(hours=2)
        assert abs((value - expected).total_seconds()) < 5

    def test_iso(self):
        assert parse_time_or_duration("2025-03-01T12:00:00Z") == datetime(2025, 3, 1, 12, tzinfo=timezone.utc)

    def test_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_time_or_duration("yesterday")


class TestAuditCommand:
    """Tests for `goshi audit`."""

    def test_human_output(self, config, recorded_session):
        code, output = _audit(config)
        lines = output.splitlines()

        assert code == 0
        assert len(lines) == 3
        assert "session" in lines[0] and "session started" in lines[0]
        assert "GRANT FS_READ (user-approved)" in lines[1]

    def test_json_filtered(self, config, recorded_session):
        code, output = _audit(config, "--format", "json", "--type", "tool", "--status", "error")
        records = json.loads(output)

        assert code == 0
        assert [r["action"] for r in records] == ["fs.read"]
        assert records[0]["session_id"] == recorded_session.session_id

    def test_limit(self, config, recorded_session):
        _, output = _audit(config, "--limit", "1")
        assert len(output.splitlines()) == 1

    def test_named_session(self, config, recorded_session):
        code, output = _audit(config, "--session", recorded_session.file_path.stem)
        assert code == 0
        assert len(output.splitlines()) == 3

    def test_no_sessions(self, config, audit_dir, capsys):
        audit_dir.mkdir()
        code, output = _audit(config)
        assert code == 1
        assert output == ""
        assert "no audit sessions found" in capsys.readouterr().err

    def test_bad_type_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["audit", "--type", "bogus"])


class TestChatCommand:
    @pytest.mark.asyncio
    async def test_scripted_chat(self, config, workdir):
        backend = FakeBackend(FakeStream(["Hi there"]))
        lines = io.StringIO("/grant FS_READ\nhello\n/perms\n/quit\nignored\n")
        out = io.StringIO()

        with ChatSession("sys", backend, config=config, working_dir=workdir) as session:
            code = await run_chat(session, lines, out)
            assert session.has_permission("FS_READ")

        assert code == 0
        text = out.getvalue()
        assert "ASSISTANT: Hi there" in text
        assert "GRANT FS_READ (user-approved)" in text
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_stream_error_reported(self, config, workdir):
        backend = FakeBackend(RuntimeError("backend down"))
        out = io.StringIO()

        with ChatSession("sys", backend, config=config, working_dir=workdir) as session:
            await run_chat(session, io.StringIO("hello\n"), out)

        assert "error: backend down" in out.getvalue()

    @pytest.mark.asyncio
    async def test_auto_confirm(self, audit_config, workdir):
        config = GoshiConfig(audit=audit_config)
        config.safety.auto_confirm_permissions = True

        with ChatSession("sys", FakeBackend(), config=config, working_dir=workdir) as session:
            await run_chat(session, io.StringIO(""), io.StringIO())
            assert "AUTO_CONFIRM FS_READ" in session.get_audit_log()
