"""
Parse accumulated model output into a structured response.

A response is exactly one of: plain text, a tool invocation request, or an
error. Recognized shapes, in priority order:

1. JSON object with a ``type`` field ("text" | "action" | "error")
2. Bare JSON tool call: ``{"tool": "fs.read", "args": {...}}``
3. A fenced ```json block containing either of the above
4. Anything else is text
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ToolValidator = Callable[[str, dict[str, Any]], None]


class ResponseType(Enum):
    """Type discriminator for a parsed response."""

    TEXT = "text"
    ACTION = "action"
    ERROR = "error"


@dataclass
class ActionCall:
    tool: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class StructuredResponse:
    """Parsed model response."""

    type: ResponseType
    text: str = ""
    action: ActionCall | None = None
    error: str = ""
    raw_text: str = ""

    @classmethod
    def from_error(cls, message: str, raw_text: str = "") -> "StructuredResponse":
        return cls(type=ResponseType.ERROR, error=message, raw_text=raw_text)


class StructuredParser:
    """
    Turn raw model text into a StructuredResponse.

    A tool validator can be installed so that unknown tools or bad arguments
    come back as ERROR responses instead of reaching execution.
    """

    JSON_BLOCK = re.compile(r"```(?:json)?\s*\n(.*?)```", re.DOTALL)

    def __init__(self, validator: ToolValidator | None = None):
        self._validator = validator

    def set_tool_validator(self, validator: ToolValidator | None) -> None:
        if validator is not None:
            self._validator = validator

    def parse(self, raw: str) -> StructuredResponse:
        """
        Parse and validate a complete response.

        Args:
            raw: Full accumulated model output

        Returns:
            StructuredResponse (never raises for bad model output)
        """
        if not raw or not raw.strip():
            return StructuredResponse.from_error("empty response from LLM", raw)

        response = self._from_json(raw.strip())
        if response is None:
            for block in self.JSON_BLOCK.findall(raw):
                response = self._from_json(block.strip())
                if response is not None:
                    break
        if response is None:
            response = StructuredResponse(type=ResponseType.TEXT, text=raw.strip())

        response.raw_text = raw

        if response.type is ResponseType.ACTION:
            if response.action is None:
                return StructuredResponse.from_error("action response without a tool call", raw)
            if self._validator is None:
                return response
            try:
                self._validator(response.action.tool, response.action.args)
            except Exception as e:
                return StructuredResponse.from_error(f"invalid tool call: {e}", raw)

        return response

    def _from_json(self, text: str) -> StructuredResponse | None:
        if not (text.startswith("{") and text.endswith("}")):
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None

        kind = data.get("type")
        if kind == ResponseType.TEXT.value and isinstance(data.get("text"), str) and data["text"]:
            return StructuredResponse(type=ResponseType.TEXT, text=data["text"])
        if kind == ResponseType.ACTION.value and isinstance(data.get("action"), dict):
            return self._action(data["action"])
        if kind == ResponseType.ERROR.value and isinstance(data.get("error"), str) and data["error"]:
            return StructuredResponse(type=ResponseType.ERROR, error=data["error"])
        if kind is None and "tool" in data:
            return self._action(data)
        return None

    @staticmethod
    def _action(data: dict[str, Any]) -> StructuredResponse | None:
        tool = data.get("tool")
        if not isinstance(tool, str) or not tool:
            return None
        args = data.get("args")
        if not isinstance(args, dict):
            args = {}
        return StructuredResponse(type=ResponseType.ACTION, action=ActionCall(tool=tool, args=args))


def parse_response(raw: str) -> StructuredResponse:
    """Convenience function to parse without tool validation."""
    return StructuredParser().parse(raw)


__all__ = [
    "ActionCall",
    "ResponseType",
    "StructuredParser",
    "StructuredResponse",
    "ToolValidator",
    "parse_response",
]
