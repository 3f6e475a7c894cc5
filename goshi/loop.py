"""
Interaction loop.

A single cooperative consumer owns all UI and transcript state. Input events
and the results of background work arrive as typed messages on one queue;
``update`` reduces each message into state and may return a command. A
command is a zero-argument coroutine function that runs as its own task and
posts exactly one message back when it finishes. The loop never awaits a
command directly.

Flow for one turn:
    KeyPressed(ENTER) -> stream command -> StreamCompleted | StreamFailed
    StreamCompleted(action) -> tool command -> ToolCompleted

A new send is refused until the turn's stream and tool call have both
finished. A command that raises posts StreamFailed in place of its result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Union

from .audit import AuditEvent, AuditFilter, AuditLogError, read_events
from .llm import ActionCall, ResponseType, StructuredResponse
from .session import ChatSession
from .tools import ToolResult

logger = logging.getLogger(__name__)

AUDIT_PANEL_EVENTS = 50
EXECUTING_PREFIX = "[Executing tool: "


class FocusRegion(IntEnum):
    OUTPUT_STREAM = 0
    INSPECT_PANEL = 1
    AUDIT_PANEL = 2
    INPUT = 3


class Mode(IntEnum):
    CHAT = 0
    COMMAND = 1
    DIFF = 2

    def next(self) -> "Mode":
        return Mode((self + 1) % len(Mode))


class Key(Enum):
    ENTER = "enter"
    TAB = "tab"
    SHIFT_TAB = "shift+tab"
    CTRL_A = "ctrl+a"
    CTRL_C = "ctrl+c"
    CTRL_D = "ctrl+d"
    CTRL_H = "ctrl+h"
    CTRL_L = "ctrl+l"
    CTRL_Q = "ctrl+q"
    CTRL_T = "ctrl+t"


# --- loop messages -----------------------------------------------------------


@dataclass(frozen=True)
class KeyPressed:
    key: Key


@dataclass(frozen=True)
class TextTyped:
    """Replace the input buffer (the input widget owns editing)."""

    text: str


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True)
class StreamCompleted:
    full_response: str
    response: StructuredResponse


@dataclass(frozen=True)
class StreamFailed:
    error: BaseException


@dataclass(frozen=True)
class ToolCompleted:
    tool_name: str
    result: ToolResult


LoopMessage = Union[KeyPressed, TextTyped, Resized, StreamCompleted, StreamFailed, ToolCompleted]
Command = Callable[[], Awaitable[LoopMessage]]


# --- state -------------------------------------------------------------------


@dataclass
class DisplayEntry:
    """Render mirror of one transcript line."""

    role: str
    content: str
    in_progress: bool = False


@dataclass
class InputToggles:
    dry_run: bool = False
    deterministic: bool = False


@dataclass
class InteractionState:
    focus: FocusRegion = FocusRegion.INPUT
    mode: Mode = Mode.CHAT
    toggles: InputToggles = field(default_factory=InputToggles)
    streaming: bool = False
    tool_running: bool = False
    entries: list[DisplayEntry] = field(default_factory=list)
    placeholder: DisplayEntry | None = None
    audit_visible: bool = False
    help_visible: bool = False
    audit_events: list[AuditEvent] = field(default_factory=list)
    status_line: str = "Ready"
    error: BaseException | None = None
    width: int = 80
    height: int = 24
    input_buffer: str = ""
    quitting: bool = False

    @property
    def busy(self) -> bool:
        """A turn is in flight until its stream and any tool call finish."""
        return self.streaming or self.tool_running

    def take_placeholder(self) -> DisplayEntry | None:
        entry, self.placeholder = self.placeholder, None
        if entry is not None:
            entry.in_progress = False
        return entry


def focus_cycle(audit_visible: bool) -> list[FocusRegion]:
    """Regions reachable with Tab, in order."""
    if audit_visible:
        return list(FocusRegion)
    return [FocusRegion.OUTPUT_STREAM, FocusRegion.INSPECT_PANEL, FocusRegion.INPUT]


# --- the loop ----------------------------------------------------------------


class InteractionLoop:
    """
    Cooperative state machine driving one ChatSession.

    Usage:
        loop = InteractionLoop(session)
        runner = asyncio.create_task(loop.run())
        loop.post(TextTyped("hello"))
        loop.post(KeyPressed(Key.ENTER))
    """

    def __init__(self, session: ChatSession, on_change: Callable[[InteractionState], None] | None = None):
        self.session = session
        self.state = InteractionState(toggles=InputToggles(dry_run=session.config.safety.dry_run_by_default))
        self.on_change = on_change
        self._queue: asyncio.Queue[LoopMessage] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()

    # --- driving ---------------------------------------------------------

    def post(self, message: LoopMessage) -> None:
        self._queue.put_nowait(message)

    async def run(self) -> InteractionState:
        """Drain messages until a quit key; outstanding tasks are cancelled on exit."""
        try:
            while not self.state.quitting:
                message = await self._queue.get()
                self.dispatch(message)
        finally:
            await self.shutdown()
        return self.state

    def dispatch(self, message: LoopMessage) -> None:
        """Apply one message and spawn any resulting command."""
        command = self.update(message)
        if command is not None:
            self.spawn(command)
        if self.on_change is not None:
            self.on_change(self.state)

    def spawn(self, command: Command) -> asyncio.Task:
        task = asyncio.create_task(self._run_command(command))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_command(self, command: Command) -> None:
        try:
            message = await command()
        except Exception as e:
            # a failed command still ends the turn
            logger.error(f"Background command failed: {e}")
            message = StreamFailed(error=e)
        self.post(message)

    async def wait_idle(self) -> None:
        """
        Apply queued messages until no command is outstanding.

        For driving the loop without ``run`` (scripts, tests); do not mix the two.
        """
        while True:
            while not self._queue.empty():
                self.dispatch(self._queue.get_nowait())
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                if self._queue.empty():
                    return
                continue
            await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # --- reducer ---------------------------------------------------------

    def update(self, message: LoopMessage) -> Command | None:
        if isinstance(message, KeyPressed):
            return self._handle_key(message.key)
        if isinstance(message, TextTyped):
            self.state.input_buffer = message.text
            return None
        if isinstance(message, Resized):
            self.state.width = message.width
            self.state.height = message.height
            return None
        if isinstance(message, StreamCompleted):
            return self._handle_stream_completed(message)
        if isinstance(message, StreamFailed):
            self._handle_stream_failed(message)
            return None
        if isinstance(message, ToolCompleted):
            self._handle_tool_completed(message)
            return None
        raise TypeError(f"Unknown loop message: {type(message).__name__}")

    def _handle_key(self, key: Key) -> Command | None:
        state = self.state
        if key in (Key.CTRL_C, Key.CTRL_Q):
            state.quitting = True
        elif key is Key.ENTER:
            if state.focus is FocusRegion.INPUT:
                return self.send_message()
        elif key is Key.TAB:
            self.cycle_focus(1)
        elif key is Key.SHIFT_TAB:
            self.cycle_focus(-1)
        elif key is Key.CTRL_L:
            state.mode = state.mode.next()
        elif key is Key.CTRL_D:
            state.toggles.dry_run = not state.toggles.dry_run
        elif key is Key.CTRL_T:
            state.toggles.deterministic = not state.toggles.deterministic
        elif key is Key.CTRL_H:
            state.help_visible = not state.help_visible
        elif key is Key.CTRL_A:
            state.audit_visible = not state.audit_visible
            if state.audit_visible:
                self.refresh_audit_events()
            elif state.focus is FocusRegion.AUDIT_PANEL:
                state.focus = FocusRegion.INPUT
        return None

    def cycle_focus(self, step: int) -> FocusRegion:
        cycle = focus_cycle(self.state.audit_visible)
        current = self.state.focus
        index = cycle.index(current) if current in cycle else cycle.index(FocusRegion.INPUT)
        self.state.focus = cycle[(index + step) % len(cycle)]
        return self.state.focus

    def refresh_audit_events(self) -> None:
        path = self.session.audit_logger.file_path
        if path is None:
            self.state.audit_events = []
            return
        try:
            events = read_events(path, AuditFilter())
        except AuditLogError as e:
            logger.debug(f"Audit panel refresh failed: {e}")
            return
        self.state.audit_events = events[-AUDIT_PANEL_EVENTS:]

    # --- send protocol ---------------------------------------------------

    def send_message(self) -> Command | None:
        state = self.state
        text = state.input_buffer.strip()
        if not text or state.busy:
            return None

        state.entries.append(DisplayEntry(role="user", content=text))
        self.session.add_user_message(text)
        state.input_buffer = ""

        state.status_line = "Thinking..."
        state.streaming = True
        state.error = None
        state.placeholder = DisplayEntry(role="assistant", content="", in_progress=True)
        state.entries.append(state.placeholder)
        return self._stream_command()

    def _stream_command(self) -> Command:
        session = self.session

        async def stream_response() -> LoopMessage:
            stream = None
            try:
                stream = await session.open_stream()
                parts: list[str] = []
                async for chunk in stream:
                    if chunk:
                        parts.append(chunk)
                full_response = "".join(parts)
                response = session.parser.parse(full_response)
            except Exception as e:
                return StreamFailed(error=e)
            finally:
                if stream is not None:
                    try:
                        await stream.aclose()
                    except Exception as e:
                        logger.warning(f"Failed to release model stream: {e}")

            return StreamCompleted(full_response=full_response, response=response)

        return stream_response

    def _handle_stream_completed(self, message: StreamCompleted) -> Command | None:
        state = self.state
        state.streaming = False
        state.status_line = "Ready"

        entry = state.take_placeholder()
        if entry is None:
            logger.warning("Stream completed with no pending response entry")
            return None

        response = message.response
        if response.type is ResponseType.ACTION and response.action is not None:
            entry.content = f"{EXECUTING_PREFIX}{response.action.tool}]"
            self.session.add_assistant_action_message(response.action.tool, response.action.args)
            state.status_line = f"Running {response.action.tool}..."
            state.tool_running = True
            return self._tool_command(response.action)

        if response.type is ResponseType.ERROR:
            entry.content = f"Error: {response.error}"
            state.error = RuntimeError(response.error)
            return None

        text = response.text or message.full_response
        entry.content = text
        self.session.add_assistant_text_message(text)
        return None

    def _tool_command(self, action: ActionCall) -> Command:
        session = self.session

        async def execute_tool() -> LoopMessage:
            try:
                result = await asyncio.to_thread(session.execute_tool, action.tool, action.args)
            except Exception as e:
                logger.warning(f"Tool {action.tool} raised: {e}")
                result = ToolResult(name=action.tool, error=str(e))
            return ToolCompleted(tool_name=action.tool, result=result)

        return execute_tool

    def _handle_tool_completed(self, message: ToolCompleted) -> None:
        state = self.state
        state.tool_running = False
        state.status_line = "Ready"
        result = message.result

        self.session.add_tool_result_message(message.tool_name, result.to_dict())
        if result.ok:
            state.entries.append(
                DisplayEntry(role="tool", content=f"✓ Tool executed: {message.tool_name}\n\nResult: {result.output}")
            )
        else:
            state.entries.append(
                DisplayEntry(role="tool", content=f"✗ Tool failed: {message.tool_name}\n\nError: {result.error}")
            )
            state.error = RuntimeError(result.error)

        if state.audit_visible:
            self.refresh_audit_events()

    def _handle_stream_failed(self, message: StreamFailed) -> None:
        state = self.state
        state.streaming = False
        state.tool_running = False
        state.error = message.error
        state.status_line = "Error"
        entry = state.take_placeholder()
        if entry is not None:
            state.entries = [e for e in state.entries if e is not entry]


__all__ = [
    "Command",
    "DisplayEntry",
    "FocusRegion",
    "InputToggles",
    "InteractionLoop",
    "InteractionState",
    "Key",
    "KeyPressed",
    "LoopMessage",
    "Mode",
    "Resized",
    "StreamCompleted",
    "StreamFailed",
    "TextTyped",
    "ToolCompleted",
    "focus_cycle",
]
