"""
Chat session orchestration.

A ChatSession owns the transcript and wires together the permission ledger,
the capability set, the tool router, the audit logger and the model backend.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from .audit import AuditLogger
from .capabilities import Capabilities, Capability
from .config import GoshiConfig
from .llm import ModelBackend, ModelStream, StructuredParser
from .messages import (
    AssistantActionMessage,
    AssistantTextMessage,
    Message,
    ToolResultMessage,
    UserMessage,
    to_backend_message,
)
from .permissions import Permissions
from .tools import ActionDispatcher, ActionRegistry, ToolCall, ToolResult, ToolRouter

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Session construction failed at a specific stage."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"failed to initialize {stage}: {cause}")


class ChatSession:
    """
    A single interactive session.

    The transcript is append-only and is the sole history sent to the
    backend on every turn.

    Usage:
        with ChatSession(system_prompt, backend) as session:
            session.add_user_message("list the repo")
            stream = await session.open_stream()
    """

    def __init__(
        self,
        system_prompt: str,
        backend: ModelBackend,
        config: GoshiConfig | None = None,
        working_dir: Path | str | None = None,
        actions: ActionDispatcher | None = None,
        parser: StructuredParser | None = None,
    ):
        """
        Initialize the session.

        Args:
            system_prompt: System prompt sent with every stream
            backend: Model backend collaborator
            config: Configuration (default: GoshiConfig.load())
            working_dir: Session working directory (default: cwd)
            actions: Dispatcher for concrete tool actions
            parser: Response parser; receives the router's validator

        Raises:
            SessionError: If any construction stage fails
        """
        self.config = config or GoshiConfig.load()
        self.system_prompt = system_prompt
        self.backend = backend
        self.provider = getattr(backend, "name", self.config.llm.provider)
        self.model = getattr(backend, "model", self.config.llm.model)
        self.messages: list[Message] = []

        try:
            self.working_dir = str(Path(working_dir or os.getcwd()).resolve(strict=True))
        except (OSError, RuntimeError) as e:
            raise SessionError("working directory", e) from e

        self.capabilities = Capabilities()
        try:
            self.tool_router = ToolRouter(actions or ActionRegistry(), self.capabilities)
        except Exception as e:
            raise SessionError("tool router", e) from e

        repo_root = self.config.behavior.repo_root or self.working_dir
        try:
            self.audit_logger = AuditLogger(self.config.audit, repo_root)
        except Exception as e:
            raise SessionError("audit logger", e) from e

        self.permissions = Permissions(self.audit_logger)
        self.tool_router.set_audit_logger(self.audit_logger, self.working_dir)
        self.audit_logger.log_session(
            "START",
            f"session started (provider={self.provider} model={self.model})",
            self.working_dir,
        )

        self.parser = parser or StructuredParser()
        self.parser.set_tool_validator(self.tool_router.validate_tool_call)

    @property
    def session_id(self) -> str:
        return self.audit_logger.session_id

    def __enter__(self) -> "ChatSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Log session end and release the audit file. Idempotent."""
        if self.audit_logger.closed:
            return
        self.audit_logger.log_session("END", f"session ended ({len(self.messages)} messages)", self.working_dir)
        self.audit_logger.close()

    # =========================================================================
    # Transcript
    # =========================================================================

    def add_user_message(self, content: str) -> None:
        self.messages.append(UserMessage(content=content))
        self.audit_logger.log_message(content, self.working_dir)

    def add_assistant_text_message(self, content: str) -> None:
        self.messages.append(AssistantTextMessage(content=content))
        self.audit_logger.log_response(content, False, self.working_dir)

    def add_assistant_action_message(self, tool_name: str, tool_args: dict[str, Any]) -> None:
        self.messages.append(AssistantActionMessage(tool_name=tool_name, tool_args=dict(tool_args)))
        self.audit_logger.log_response(tool_name, True, self.working_dir)

    def add_tool_result_message(self, tool_name: str, result: Any) -> None:
        # Tool outcomes are audited by the router
        self.messages.append(ToolResultMessage(tool_name=tool_name, result=result))

    def backend_messages(self) -> list[dict[str, str]]:
        return [to_backend_message(message) for message in self.messages]

    # =========================================================================
    # Authorization
    # =========================================================================

    def grant_permission(self, capability: str) -> None:
        """Grant through the ledger, then mirror into the router's capability set."""
        self.permissions.grant(capability, self.working_dir)
        cap = Capability.from_name(capability)
        if cap is not None:
            self.capabilities.grant(cap)

    def auto_confirm_permission(self, capability: str) -> None:
        self.permissions.auto_confirm(capability, self.working_dir)
        cap = Capability.from_name(capability)
        if cap is not None:
            self.capabilities.grant(cap)

    def deny_permission(self, capability: str) -> None:
        self.permissions.deny(capability, self.working_dir)
        cap = Capability.from_name(capability)
        if cap is not None:
            self.capabilities.revoke(cap)

    def has_permission(self, capability: str) -> bool:
        return self.permissions.has_permission(capability)

    def get_audit_log(self) -> str:
        return self.permissions.get_audit_trail()

    # =========================================================================
    # Collaborators
    # =========================================================================

    async def open_stream(self) -> ModelStream:
        """Open a model stream over the full transcript."""
        return await self.backend.open_stream(self.system_prompt, self.backend_messages())

    def execute_tool(self, tool_name: str, args: dict[str, Any] | None = None) -> ToolResult:
        """Run a tool through the capability-checked router."""
        return self.tool_router.handle(ToolCall(name=tool_name, args=dict(args or {})))


__all__ = ["ChatSession", "SessionError"]
