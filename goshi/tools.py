"""
Tool registry and capability-checked router.

The router mediates between model tool requests and local actions. A call
runs only if the tool is registered, its arguments match the schema and the
required capability is currently granted. Concrete actions are supplied by
the caller through an ActionDispatcher.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .audit import AuditLogger, EventStatus
from .capabilities import Capabilities, Capability

logger = logging.getLogger(__name__)

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list, tuple),
}


class ToolError(Exception):
    """Base error for tool routing."""
    pass


class UnknownToolError(ToolError):
    pass


class ToolValidationError(ToolError):
    pass


class ToolPermissionError(ToolError):
    pass


class UnknownActionError(ToolError):
    pass


@dataclass
class ToolDefinition:
    """Describes a tool the model may invoke."""

    id: str
    name: str
    description: str
    required_permission: Capability
    schema: dict[str, Any] = field(default_factory=dict)

    def validate_args(self, args: dict[str, Any]) -> None:
        """
        Check ``args`` against the schema.

        Raises:
            ToolValidationError: On a missing, unexpected or mistyped argument
        """
        properties: dict[str, Any] = self.schema.get("properties", {})
        for key in self.schema.get("required", []):
            if key not in args:
                raise ToolValidationError(f"invalid arguments for {self.id}: missing '{key}'")

        for key, value in args.items():
            prop = properties.get(key)
            if prop is None:
                if not self.schema.get("additionalProperties", False):
                    raise ToolValidationError(f"invalid arguments for {self.id}: unexpected '{key}'")
                continue
            expected = _JSON_TYPES.get(prop.get("type", ""))
            if expected and not isinstance(value, expected):
                raise ToolValidationError(
                    f"invalid value for {self.id}.{key}: expected {prop['type']}"
                )


def _path_schema(description: str, extra: dict[str, Any] | None = None) -> dict[str, Any]:
    properties = {"path": {"type": "string", "description": description}}
    required = ["path"]
    if extra:
        properties.update(extra)
        required.extend(extra)
    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


FS_READ_TOOL = ToolDefinition(
    id="fs.read",
    name="Read File",
    description="Read the contents of a file from the repository. Path must be relative to the repository root.",
    required_permission=Capability.FS_READ,
    schema=_path_schema("Relative path to the file within the repository"),
)

FS_WRITE_TOOL = ToolDefinition(
    id="fs.write",
    name="Write File",
    description="Write or create a file in the repository. Path must be relative to the repository root.",
    required_permission=Capability.FS_WRITE,
    schema=_path_schema(
        "Relative path to the file within the repository",
        {"content": {"type": "string", "description": "Content to write to the file"}},
    ),
)

FS_LIST_TOOL = ToolDefinition(
    id="fs.list",
    name="List Files",
    description="List files and directories in a given path. Path must be relative to the repository root.",
    required_permission=Capability.FS_READ,
    schema=_path_schema("Relative path to the directory within the repository"),
)


class ToolRegistry:
    """Registry of tool definitions keyed by id."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._lock = threading.RLock()

    def register(self, definition: ToolDefinition) -> None:
        if not definition.id:
            raise ValueError("tool definition must have an ID")
        if not definition.name:
            raise ValueError("tool definition must have a name")
        if not definition.description:
            raise ValueError("tool definition must have a description")
        with self._lock:
            self._tools[definition.id] = definition

    def get(self, tool_id: str) -> ToolDefinition | None:
        with self._lock:
            return self._tools.get(tool_id)

    def all(self) -> list[ToolDefinition]:
        with self._lock:
            return sorted(self._tools.values(), key=lambda d: d.id)

    def __contains__(self, tool_id: str) -> bool:
        return self.get(tool_id) is not None


def default_tool_registry() -> ToolRegistry:
    registry = ToolRegistry()
    for definition in (FS_READ_TOOL, FS_WRITE_TOOL, FS_LIST_TOOL):
        registry.register(definition)
    return registry


class ActionDispatcher(Protocol):
    """Executes a named action. Implementations live outside the core."""

    def dispatch(self, action: str, args: dict[str, Any]) -> dict[str, Any]:
        ...


ActionHandler = Callable[[dict[str, Any]], dict[str, Any]]


class ActionRegistry:
    """ActionDispatcher backed by a name -> handler mapping."""

    def __init__(self, handlers: dict[str, ActionHandler] | None = None):
        self._handlers: dict[str, ActionHandler] = dict(handlers or {})

    def register(self, action: str, handler: ActionHandler) -> None:
        self._handlers[action] = handler

    def dispatch(self, action: str, args: dict[str, Any]) -> dict[str, Any]:
        handler = self._handlers.get(action)
        if handler is None:
            raise UnknownActionError(f"unknown action: {action}")
        return handler(args)


@dataclass
class ToolCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of a routed tool call: ``output`` on success, ``error`` on failure."""

    name: str
    output: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        return {"result": self.output}


class ToolRouter:
    """Capability-checked gateway from tool requests to the action dispatcher."""

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        capabilities: Capabilities,
        registry: ToolRegistry | None = None,
    ):
        self.dispatcher = dispatcher
        self.capabilities = capabilities
        self.registry = registry or default_tool_registry()
        self._audit: AuditLogger | None = None
        self._cwd = ""

    def set_audit_logger(self, audit_logger: AuditLogger | None, cwd: str) -> None:
        self._audit = audit_logger
        self._cwd = cwd

    def validate_tool_call(self, tool_name: str, args: dict[str, Any]) -> None:
        """
        Check that a tool exists and its arguments match the schema.

        Capabilities are not consulted here; they are enforced at execution.

        Raises:
            UnknownToolError: If the tool is not registered
            ToolValidationError: If the arguments are invalid
        """
        definition = self.registry.get(tool_name)
        if definition is None:
            raise UnknownToolError(f"unknown tool: {tool_name}")
        definition.validate_args(args)

    def check_permission(self, tool_name: str) -> None:
        definition = self.registry.get(tool_name)
        if definition is None:
            raise UnknownToolError(f"unknown tool: {tool_name}")
        if not self.capabilities.has(definition.required_permission):
            raise ToolPermissionError(
                f"permission denied: {definition.required_permission.value} required for {tool_name}"
            )

    def handle(self, call: ToolCall) -> ToolResult:
        """
        Execute a tool call. Failures come back as a ToolResult error, never raised.
        """
        try:
            self.validate_tool_call(call.name, call.args)
            self.check_permission(call.name)
        except ToolPermissionError as e:
            self._log(call, EventStatus.WARN, str(e))
            return ToolResult(name=call.name, error=str(e))
        except ToolError as e:
            self._log(call, EventStatus.ERROR, str(e))
            return ToolResult(name=call.name, error=str(e))

        try:
            output = self.dispatcher.dispatch(call.name, call.args)
        except Exception as e:
            logger.warning(f"Tool {call.name} failed: {e}")
            self._log(call, EventStatus.ERROR, str(e))
            return ToolResult(name=call.name, error=str(e))

        self._log(call, EventStatus.OK, f"{call.name} executed")
        return ToolResult(name=call.name, output=output)

    def _log(self, call: ToolCall, status: EventStatus, message: str) -> None:
        if self._audit is not None:
            self._audit.log_tool(call.name, status, message, call.args, self._cwd)


__all__ = [
    "ActionDispatcher",
    "ActionRegistry",
    "FS_LIST_TOOL",
    "FS_READ_TOOL",
    "FS_WRITE_TOOL",
    "ToolCall",
    "ToolDefinition",
    "ToolError",
    "ToolPermissionError",
    "ToolRegistry",
    "ToolResult",
    "ToolRouter",
    "ToolValidationError",
    "UnknownActionError",
    "UnknownToolError",
    "default_tool_registry",
]
