"""Coarse capability flags checked by the tool router."""

from __future__ import annotations

from enum import Enum


class Capability(str, Enum):
    """Named permission gating a class of tool actions."""

    FS_READ = "FS_READ"
    FS_WRITE = "FS_WRITE"

    @classmethod
    def from_name(cls, name: str) -> "Capability | None":
        """Look up a capability by name; unknown names return None."""
        return CAPABILITY_TABLE.get(name)


# name -> capability; the single place new capabilities are wired in
CAPABILITY_TABLE: dict[str, Capability] = {cap.value: cap for cap in Capability}


class Capabilities:
    """Current capability state. Everything starts denied."""

    def __init__(self) -> None:
        self._granted: dict[Capability, bool] = {}

    def grant(self, cap: Capability) -> None:
        self._granted[cap] = True

    def revoke(self, cap: Capability) -> None:
        self._granted[cap] = False

    def has(self, cap: Capability) -> bool:
        return self._granted.get(cap, False)

    def granted(self) -> list[Capability]:
        return [cap for cap, on in self._granted.items() if on]


__all__ = ["CAPABILITY_TABLE", "Capabilities", "Capability"]
