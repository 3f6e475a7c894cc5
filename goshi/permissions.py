"""
Permission ledger.

Every decision is appended as a PermissionEntry and forwarded to the audit
log before the corresponding flag changes. Current state is the fold of the
entry sequence: the last decision per capability wins.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from .audit import AuditLogger
from .capabilities import Capability

REASON_USER_APPROVED = "user-approved"
REASON_USER_DENIED = "user-denied"
REASON_AUTO_CONFIRM = "auto-confirm-enabled"


class PermissionAction(str, Enum):
    GRANT = "GRANT"
    DENY = "DENY"
    AUTO_CONFIRM = "AUTO_CONFIRM"


class PermissionEntry(BaseModel):
    """A single permission decision. Never mutated or removed."""

    capability: str
    action: PermissionAction
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: str
    request_cwd: str

    model_config = {"frozen": True}

    def render(self) -> str:
        return (
            f"[{self.timestamp.strftime('%H:%M:%S')}] {self.action.value} "
            f"{self.capability} ({self.reason}) in {self.request_cwd}"
        )


class Permissions:
    """
    Session permissions with a complete decision history.

    Only names present in the capability table ever hold a flag; other names
    are recorded in the ledger but stay denied.
    """

    def __init__(self, audit_logger: AuditLogger | None = None):
        self.audit_log: list[PermissionEntry] = []
        self.logger = audit_logger
        self._flags: dict[Capability, bool] = {}

    def grant(self, capability: str, cwd: str) -> PermissionEntry:
        return self._record(capability, PermissionAction.GRANT, REASON_USER_APPROVED, cwd, True)

    def deny(self, capability: str, cwd: str) -> PermissionEntry:
        return self._record(capability, PermissionAction.DENY, REASON_USER_DENIED, cwd, False)

    def auto_confirm(self, capability: str, cwd: str) -> PermissionEntry:
        return self._record(capability, PermissionAction.AUTO_CONFIRM, REASON_AUTO_CONFIRM, cwd, True)

    def _record(
        self,
        capability: str,
        action: PermissionAction,
        reason: str,
        cwd: str,
        allowed: bool,
    ) -> PermissionEntry:
        entry = PermissionEntry(
            capability=capability,
            action=action,
            reason=reason,
            request_cwd=cwd,
        )
        self.audit_log.append(entry)
        if self.logger is not None:
            self.logger.log_permission(action.value, capability, reason, cwd)

        cap = Capability.from_name(capability)
        if cap is not None:
            self._flags[cap] = allowed
        return entry

    def has_permission(self, capability: str) -> bool:
        """Check if a capability is currently granted. Unknown names are denied."""
        cap = Capability.from_name(capability)
        if cap is None:
            return False
        return self._flags.get(cap, False)

    def get_audit_trail(self) -> str:
        """One line per decision, in order. Empty when nothing was decided."""
        return "\n".join(entry.render() for entry in self.audit_log)


__all__ = [
    "PermissionAction",
    "PermissionEntry",
    "Permissions",
    "REASON_AUTO_CONFIRM",
    "REASON_USER_APPROVED",
    "REASON_USER_DENIED",
]
