"""
Transcript message types.

The transcript is a closed union of four immutable variants. Consumers
dispatch exhaustively and reject anything else.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class UserMessage:
    content: str


@dataclass(frozen=True)
class AssistantTextMessage:
    content: str


@dataclass(frozen=True)
class AssistantActionMessage:
    tool_name: str
    tool_args: dict[str, Any] = field(default_factory=dict)
    tool_id: str = "auto"


@dataclass(frozen=True)
class ToolResultMessage:
    tool_name: str
    result: Any = None


Message = Union[UserMessage, AssistantTextMessage, AssistantActionMessage, ToolResultMessage]


def to_backend_message(message: Message) -> dict[str, str]:
    """
    Convert a transcript entry to a role/content dict for the model backend.

    Raises:
        TypeError: For anything outside the Message union
    """
    if isinstance(message, UserMessage):
        return {"role": "user", "content": message.content}
    if isinstance(message, AssistantTextMessage):
        return {"role": "assistant", "content": message.content}
    if isinstance(message, AssistantActionMessage):
        payload = {"type": "action", "action": {"tool": message.tool_name, "args": message.tool_args}}
        return {"role": "assistant", "content": json.dumps(payload, default=str)}
    if isinstance(message, ToolResultMessage):
        body = json.dumps(message.result, indent=2, default=str)
        return {"role": "user", "content": f"Tool result ({message.tool_name}):\n{body}"}
    raise TypeError(f"Unknown transcript message: {type(message).__name__}")


__all__ = [
    "AssistantActionMessage",
    "AssistantTextMessage",
    "Message",
    "ToolResultMessage",
    "UserMessage",
    "to_backend_message",
]
