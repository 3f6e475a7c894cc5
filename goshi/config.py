"""
Configuration management for goshi.

Settings are read once at session start and treated as read-only afterwards.
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv

ToolArgumentsStyle = Literal["full", "long", "short", "summaries"]

TOOL_ARGUMENT_STYLES = ("full", "long", "short", "summaries")

CONFIG_PATH = Path.home() / ".goshi" / "config.json"


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AuditConfig:
    """
    Configuration for the session audit log.

    Relative ``dir`` values are resolved against the repository root.
    """

    enabled: bool = True
    dir: str = ".goshi/audit"
    retention_days: int = 30
    max_sessions: int = 50
    redact: bool = True
    tool_arguments_style: ToolArgumentsStyle = "summaries"


@dataclass
class LLMConfig:
    """Configuration for the model backend."""

    provider: Literal["anthropic", "openai"] = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    # 0.0 = deterministic
    temperature: float = 0.0


@dataclass
class SafetyConfig:
    """Permission and side-effect defaults."""

    auto_confirm_permissions: bool = False
    dry_run_by_default: bool = True


@dataclass
class BehaviorConfig:
    """Repository-level behavior."""

    repo_root: str = ""


@dataclass
class GoshiConfig:
    """Complete goshi configuration."""

    audit: AuditConfig = field(default_factory=AuditConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)

    @classmethod
    def load(cls, path: Path | None = None, use_env: bool = True) -> "GoshiConfig":
        """
        Load configuration from file with defaults.

        Args:
            path: Optional config file path. Defaults to $GOSHI_CONFIG or
                ~/.goshi/config.json
            use_env: Apply GOSHI_* environment overrides (and .env)

        Returns:
            GoshiConfig with user settings merged over defaults
        """
        if use_env:
            load_dotenv()

        if path is None:
            env_path = os.getenv("GOSHI_CONFIG")
            path = Path(env_path) if env_path else CONFIG_PATH

        data: dict[str, Any] = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError):
                # Use defaults on error
                data = {}
        if not isinstance(data, dict):
            data = {}

        config = cls(
            audit=AuditConfig(**_filter_dataclass_fields(data.get("audit", {}), AuditConfig)),
            llm=LLMConfig(**_filter_dataclass_fields(data.get("llm", {}), LLMConfig)),
            safety=SafetyConfig(**_filter_dataclass_fields(data.get("safety", {}), SafetyConfig)),
            behavior=BehaviorConfig(**_filter_dataclass_fields(data.get("behavior", {}), BehaviorConfig)),
        )

        if use_env:
            config.apply_env()

        if config.audit.tool_arguments_style not in TOOL_ARGUMENT_STYLES:
            config.audit.tool_arguments_style = "summaries"

        return config

    def apply_env(self) -> None:
        """Apply GOSHI_* environment variable overrides in place."""
        env = os.environ

        if "GOSHI_AUDIT_ENABLED" in env:
            self.audit.enabled = _env_bool(env["GOSHI_AUDIT_ENABLED"])
        if "GOSHI_AUDIT_DIR" in env:
            self.audit.dir = env["GOSHI_AUDIT_DIR"]
        if "GOSHI_AUDIT_RETENTION_DAYS" in env:
            self.audit.retention_days = int(env["GOSHI_AUDIT_RETENTION_DAYS"])
        if "GOSHI_AUDIT_MAX_SESSIONS" in env:
            self.audit.max_sessions = int(env["GOSHI_AUDIT_MAX_SESSIONS"])
        if "GOSHI_AUDIT_REDACT" in env:
            self.audit.redact = _env_bool(env["GOSHI_AUDIT_REDACT"])
        if "GOSHI_AUDIT_TOOL_ARGUMENTS_STYLE" in env:
            self.audit.tool_arguments_style = env["GOSHI_AUDIT_TOOL_ARGUMENTS_STYLE"]  # type: ignore[assignment]

        if "GOSHI_LLM_PROVIDER" in env:
            self.llm.provider = env["GOSHI_LLM_PROVIDER"]  # type: ignore[assignment]
        if "GOSHI_LLM_MODEL" in env:
            self.llm.model = env["GOSHI_LLM_MODEL"]

        if "GOSHI_REPO_ROOT" in env:
            self.behavior.repo_root = env["GOSHI_REPO_ROOT"]

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)


__all__ = [
    "AuditConfig",
    "BehaviorConfig",
    "GoshiConfig",
    "LLMConfig",
    "SafetyConfig",
    "TOOL_ARGUMENT_STYLES",
    "ToolArgumentsStyle",
]
