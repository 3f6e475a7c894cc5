#!/usr/bin/env python3
"""
goshi command-line entry point.

Usage:
    # View the latest session's audit log
    goshi audit
    goshi audit --format=json --limit=200
    goshi audit --since=1h --type=tool,permission --status=error

    # Line-oriented chat over the interaction loop
    goshi chat --system "You are a careful repository assistant."

Chat commands:
    /grant CAP   grant a capability (FS_READ, FS_WRITE)
    /deny CAP    deny a capability
    /perms       print the permission audit trail
    /quit        exit
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TextIO

from .audit import (
    AuditFilter,
    AuditLogError,
    EventStatus,
    EventType,
    latest_session_file,
    read_events,
    resolve_dir,
)
from .capabilities import Capability
from .config import GoshiConfig
from .loop import InteractionLoop, Key, KeyPressed, TextTyped
from .session import ChatSession, SessionError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are goshi, a careful repository assistant. To use a tool, reply with only "
    'a JSON object: {"type": "action", "action": {"tool": "<id>", "args": {...}}}. '
    "Available tools: fs.read(path), fs.list(path), fs.write(path, content)."
)

_DURATION = re.compile(r"^(\d+)([smhd])$")
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_time_or_duration(value: str) -> datetime:
    """Parse "90m"/"1h"/"2d" as now-minus-duration, else an ISO-8601 time."""
    match = _DURATION.match(value.strip())
    if match:
        amount, unit = match.groups()
        return datetime.now(timezone.utc) - timedelta(**{_DURATION_UNITS[unit]: int(amount)})
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid time value: {value}") from e


def _csv_enum(enum_cls, value: str) -> set:
    try:
        return {enum_cls(item.strip()) for item in value.split(",") if item.strip()}
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="goshi", description="Interactive agent runtime")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", type=Path, default=None, help="Config file path")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="View audit logs")
    audit.add_argument("--format", choices=["human", "json"], default="human")
    audit.add_argument("--session", default="", help="Session ID or filename (default: latest)")
    audit.add_argument("--since", type=parse_time_or_duration, default=None)
    audit.add_argument("--until", type=parse_time_or_duration, default=None)
    audit.add_argument("--limit", type=int, default=200)
    audit.add_argument("--type", dest="types", type=lambda v: _csv_enum(EventType, v), default=set())
    audit.add_argument("--status", dest="statuses", type=lambda v: _csv_enum(EventStatus, v), default=set())

    chat = sub.add_parser("chat", help="Chat with the model")
    chat.add_argument("--system", default=DEFAULT_SYSTEM_PROMPT, help="System prompt")
    chat.add_argument("--cwd", type=Path, default=None, help="Working directory")

    return parser


def run_audit(args: argparse.Namespace, config: GoshiConfig, out: TextIO) -> int:
    repo_root = config.behavior.repo_root or Path.cwd()
    audit_dir = resolve_dir(config.audit.dir, repo_root)

    try:
        if args.session:
            name = args.session if args.session.endswith(".jsonl") else f"{args.session}.jsonl"
            file_path = audit_dir / name
        else:
            file_path = latest_session_file(audit_dir)

        events = read_events(
            file_path,
            AuditFilter(
                types=args.types,
                statuses=args.statuses,
                since=args.since,
                until=args.until,
                limit=max(args.limit, 0),
            ),
        )
    except AuditLogError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.format == "json":
        json.dump([event.model_dump(mode="json", exclude_none=True) for event in events], out, indent=2)
        out.write("\n")
        return 0

    for event in events:
        stamp = event.ts.strftime("%H:%M:%S") if event.ts else "--:--:--"
        out.write(f"[{stamp}] {event.type.value:<10} {event.status.value:<8} {event.message}\n")
    return 0


async def run_chat(session: ChatSession, lines: TextIO, out: TextIO) -> int:
    loop = InteractionLoop(session)
    shown = 0

    if session.config.safety.auto_confirm_permissions:
        session.auto_confirm_permission(Capability.FS_READ.value)

    while True:
        out.write("You: ")
        out.flush()
        line = await asyncio.to_thread(lines.readline)
        if not line:
            break
        text = line.strip()
        if not text:
            continue
        if text == "/quit":
            break
        if text.startswith(("/grant ", "/deny ")):
            verb, _, capability = text.partition(" ")
            if verb == "/grant":
                session.grant_permission(capability.strip())
            else:
                session.deny_permission(capability.strip())
            continue
        if text == "/perms":
            out.write((session.get_audit_log() or "(no permission decisions)") + "\n")
            continue

        loop.post(TextTyped(text))
        loop.post(KeyPressed(Key.ENTER))
        await loop.wait_idle()

        # skip the echoed user entry
        for entry in loop.state.entries[shown:]:
            if entry.role != "user":
                out.write(f"{entry.role.upper()}: {entry.content}\n")
        shown = len(loop.state.entries)
        if loop.state.status_line == "Error" and loop.state.error is not None:
            out.write(f"error: {loop.state.error}\n")

    await loop.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    config = GoshiConfig.load(args.config)

    if args.command == "audit":
        return run_audit(args, config, sys.stdout)

    from .llm.providers import create_backend

    try:
        backend = create_backend(config.llm)
        session = ChatSession(args.system, backend, config=config, working_dir=args.cwd)
    except SessionError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Backend initialization failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1

    with session:
        return asyncio.run(run_chat(session, sys.stdin, sys.stdout))


if __name__ == "__main__":
    sys.exit(main())
