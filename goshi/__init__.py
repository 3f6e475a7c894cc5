"""goshi: interactive agent runtime.

Session orchestration, a capability/permission ledger, an append-only
audit trail, and the cooperative interaction loop that streams model
output and coordinates tool execution.
"""

__version__ = "0.1.0"

# Audit
from .audit import AuditEvent, AuditFilter, AuditLogError, AuditLogger, EventStatus, EventType

# Authorization
from .capabilities import Capabilities, Capability
from .permissions import PermissionAction, PermissionEntry, Permissions

# Session & loop
from .loop import FocusRegion, InteractionLoop, InteractionState, Key, Mode
from .messages import AssistantActionMessage, AssistantTextMessage, Message, ToolResultMessage, UserMessage
from .session import ChatSession, SessionError
from .tools import ActionRegistry, ToolRouter

# Config
from .config import GoshiConfig

__all__ = [
    # Audit
    "AuditEvent",
    "AuditFilter",
    "AuditLogError",
    "AuditLogger",
    "EventStatus",
    "EventType",
    # Authorization
    "Capabilities",
    "Capability",
    "PermissionAction",
    "PermissionEntry",
    "Permissions",
    # Session & loop
    "ActionRegistry",
    "AssistantActionMessage",
    "AssistantTextMessage",
    "ChatSession",
    "FocusRegion",
    "InteractionLoop",
    "InteractionState",
    "Key",
    "Message",
    "Mode",
    "SessionError",
    "ToolResultMessage",
    "ToolRouter",
    "UserMessage",
    # Config
    "GoshiConfig",
]
