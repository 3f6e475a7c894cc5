"""
Session audit logger.

One logger owns one JSONL file per session. Writes are serialized behind a
per-logger lock and are best-effort: a failed write is dropped, never raised.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

from ..config import AuditConfig
from .args import format_tool_args, truncate_string
from .event import SCHEMA_VERSION, AuditEvent, EventStatus, EventType
from .reader import SESSION_PREFIX, SESSION_SUFFIX, AuditLogError, is_session_file

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = ".goshi/audit"

# Message/response previews stored in the event message field
PREVIEW_LIMIT = 200

_SECONDS_PER_DAY = 24 * 60 * 60


def new_session_id() -> str:
    """Session id: UTC timestamp with milliseconds plus process id."""
    now = datetime.now(timezone.utc)
    stamp = now.strftime("%Y%m%d-%H%M%S") + f".{now.microsecond // 1000:03d}"
    return f"{stamp}-{os.getpid()}"


def resolve_dir(directory: str, repo_root: Path | str | None = None) -> Path:
    """Resolve the audit directory; relative paths hang off the repo root."""
    path = Path(directory or DEFAULT_AUDIT_DIR).expanduser()
    if path.is_absolute():
        return path
    root = Path(repo_root) if repo_root else Path.cwd()
    return root / path


def cleanup_old_sessions(directory: Path | str, retention_days: int, max_sessions: int) -> list[Path]:
    """
    Apply retention to session logs in ``directory``.

    Files older than ``retention_days`` are removed first; if more than
    ``max_sessions`` remain, the oldest by modification time are removed.
    A value of 0 disables the respective rule. Failures are ignored.

    Returns:
        Paths that were removed
    """
    removed: list[Path] = []
    try:
        candidates = [p for p in Path(directory).iterdir() if is_session_file(p)]
    except OSError:
        return removed

    files: list[tuple[float, Path]] = []
    for path in candidates:
        try:
            files.append((path.stat().st_mtime, path))
        except OSError:
            continue

    if retention_days > 0:
        cutoff = time.time() - retention_days * _SECONDS_PER_DAY
        kept = []
        for mtime, path in files:
            if mtime < cutoff and _remove(path):
                removed.append(path)
            else:
                kept.append((mtime, path))
        files = kept

    if max_sessions > 0 and len(files) > max_sessions:
        files.sort(key=lambda item: item[0], reverse=True)
        for _, path in files[max_sessions:]:
            if _remove(path):
                removed.append(path)

    return removed


def _remove(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except OSError as e:
        logger.debug(f"Retention could not remove {path}: {e}")
        return False


class AuditLogger:
    """
    Append-only audit log for one session.

    A disabled logger accepts every call and writes nothing.

    Usage:
        with AuditLogger(config, repo_root) as audit:
            audit.log_session("START", "session started", cwd)
    """

    def __init__(self, config: AuditConfig | None = None, repo_root: Path | str | None = None):
        """
        Open the session log.

        Args:
            config: Audit configuration (defaults to AuditConfig())
            repo_root: Base for a relative ``config.dir`` (default: cwd)

        Raises:
            AuditLogError: If the directory or file cannot be created
        """
        self.config = config or AuditConfig()
        self.enabled = self.config.enabled
        self.session_id = ""
        self.dir: Path | None = None
        self.file_path: Path | None = None
        self._file: IO[str] | None = None
        self._lock = threading.Lock()

        if not self.enabled:
            return

        try:
            self.dir = resolve_dir(self.config.dir, repo_root)
            self.dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AuditLogError(f"failed to create audit dir: {e}") from e

        cleanup_old_sessions(self.dir, self.config.retention_days, self.config.max_sessions)

        self.session_id = new_session_id()
        self.file_path = self.dir / f"{SESSION_PREFIX}{self.session_id}{SESSION_SUFFIX}"
        try:
            self._file = open(self.file_path, "a", encoding="utf-8")
        except OSError as e:
            raise AuditLogError(f"failed to open audit log: {e}") from e

    @property
    def closed(self) -> bool:
        return self._file is None

    def close(self) -> None:
        """Close the session file. Safe to call more than once."""
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.close()
            finally:
                self._file = None

    def __enter__(self) -> "AuditLogger":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def log_event(self, event: AuditEvent) -> None:
        """
        Append one event, filling timestamp, version and session id.

        Never raises: serialization and I/O failures are dropped.
        """
        if not self.enabled:
            return

        with self._lock:
            if self._file is None:
                return

            updates: dict[str, Any] = {}
            if event.ts is None:
                updates["ts"] = datetime.now(timezone.utc)
            if not event.version:
                updates["version"] = SCHEMA_VERSION
            if not event.session_id:
                updates["session_id"] = self.session_id
            if updates:
                event = event.model_copy(update=updates)

            try:
                line = event.to_json() + "\n"
                self._file.write(line)
                self._file.flush()
            except (ValueError, TypeError, OSError) as e:
                logger.debug(f"Dropped audit event {event.type.value}/{event.action}: {e}")

    def log_permission(self, action: str, capability: str, reason: str, cwd: str) -> None:
        self.log_event(
            AuditEvent(
                type=EventType.PERMISSION,
                action=action,
                status=EventStatus.OK,
                message=f"{action} {capability} ({reason})",
                cwd=cwd,
                details={"capability": capability, "reason": reason},
            )
        )

    def log_tool(
        self,
        name: str,
        status: EventStatus,
        message: str,
        args: dict[str, Any] | None,
        cwd: str,
    ) -> None:
        self.log_event(
            AuditEvent(
                type=EventType.TOOL,
                action=name,
                status=status,
                message=message,
                cwd=cwd,
                details={
                    "args": format_tool_args(
                        args, self.config.tool_arguments_style, self.config.redact
                    )
                },
            )
        )

    def log_diagnostic(self, code: str, status: EventStatus, message: str, cwd: str) -> None:
        self.log_event(
            AuditEvent(type=EventType.DIAGNOSTIC, action=code, status=status, message=message, cwd=cwd)
        )

    def log_safety(self, code: str, status: EventStatus, message: str, cwd: str) -> None:
        self.log_event(
            AuditEvent(type=EventType.SAFETY, action=code, status=status, message=message, cwd=cwd)
        )

    def log_session(self, action: str, message: str, cwd: str) -> None:
        self.log_event(
            AuditEvent(type=EventType.SESSION, action=action, status=EventStatus.OK, message=message, cwd=cwd)
        )

    def log_message(self, content: str, cwd: str) -> None:
        """Record a user message (preview only)."""
        self.log_event(
            AuditEvent(
                type=EventType.MESSAGE,
                action="USER",
                message=truncate_string(content, PREVIEW_LIMIT),
                cwd=cwd,
                details={"length": len(content)},
            )
        )

    def log_response(self, content: str, is_action: bool, cwd: str) -> None:
        """Record a model response; for actions ``content`` is the tool name."""
        self.log_event(
            AuditEvent(
                type=EventType.RESPONSE,
                action="ACTION" if is_action else "TEXT",
                message=truncate_string(content, PREVIEW_LIMIT),
                cwd=cwd,
                details={"length": len(content)},
            )
        )


__all__ = [
    "AuditLogger",
    "DEFAULT_AUDIT_DIR",
    "cleanup_old_sessions",
    "new_session_id",
    "resolve_dir",
]
