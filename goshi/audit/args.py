"""
Tool argument formatting for audit records.

Arguments are sanitized first (sensitive keys redacted), then reduced
according to the configured style so that large payloads never land in the
log verbatim.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

REDACTED = "***redacted***"
ELLIPSIS = "..."
TRUNCATED_KEY = "_truncated"

REDACT_MARKERS = (
    "token",
    "secret",
    "password",
    "apikey",
    "api_key",
    "authorization",
    "auth",
    "key",
)

# style -> (max string length, max container items)
STYLE_LIMITS: dict[str, tuple[int, int]] = {
    "long": (200, 20),
    "short": (80, 5),
}

SUMMARY_STRING_LIMIT = 40


def format_tool_args(
    args: Mapping[str, Any] | None,
    style: str = "summaries",
    redact: bool = True,
) -> dict[str, Any] | None:
    """
    Sanitize and reduce tool arguments for storage.

    Args:
        args: Raw tool arguments
        style: One of "full", "long", "short", "summaries". Unknown styles
            are treated as "summaries".
        redact: Replace values under sensitive keys with REDACTED

    Returns:
        Formatted copy of ``args`` (None when ``args`` is None)
    """
    if args is None:
        return None

    clean = sanitize_map(args, redact)

    if style == "full":
        return clean
    if style in STYLE_LIMITS:
        max_string, max_items = STYLE_LIMITS[style]
        return truncate_map(clean, max_string, max_items)
    return summarize_map(clean)


def should_redact_key(key: Any) -> bool:
    """Check whether a key names a sensitive value."""
    lower = str(key).lower()
    return any(marker in lower for marker in REDACT_MARKERS)


def sanitize_map(data: Mapping[str, Any], redact: bool) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        if redact and should_redact_key(key):
            out[key] = REDACTED
            continue
        out[key] = _sanitize_value(value, redact)
    return out


def _sanitize_value(value: Any, redact: bool) -> Any:
    if isinstance(value, Mapping):
        return sanitize_map(value, redact)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item, redact) for item in value]
    return value


def truncate_string(value: str, limit: int) -> str:
    if limit <= 0 or len(value) <= limit:
        return value
    return value[:limit] + ELLIPSIS


def summarize_map(data: Mapping[str, Any]) -> dict[str, Any]:
    """Replace containers with size placeholders and clip strings."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            out[key] = truncate_string(value, SUMMARY_STRING_LIMIT)
        elif isinstance(value, (list, tuple)):
            out[key] = f"array[{len(value)}]"
        elif isinstance(value, Mapping):
            out[key] = f"object[{len(value)}]"
        else:
            out[key] = value
    return out


def truncate_map(data: Mapping[str, Any], max_string: int, max_items: int) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for count, (key, value) in enumerate(data.items()):
        if max_items > 0 and count >= max_items:
            out[TRUNCATED_KEY] = f"{len(data)}+ keys"
            break
        out[key] = _truncate_value(value, max_string, max_items)
    return out


def truncate_sequence(items: list[Any] | tuple[Any, ...], max_string: int, max_items: int) -> list[Any]:
    truncated = max_items > 0 and len(items) > max_items
    kept = items[:max_items] if truncated else items
    out = [_truncate_value(item, max_string, max_items) for item in kept]
    if truncated:
        out.append(ELLIPSIS)
    return out


def _truncate_value(value: Any, max_string: int, max_items: int) -> Any:
    if isinstance(value, str):
        return truncate_string(value, max_string)
    if isinstance(value, (list, tuple)):
        return truncate_sequence(value, max_string, max_items)
    if isinstance(value, Mapping):
        return truncate_map(value, max_string, max_items)
    return value


__all__ = [
    "ELLIPSIS",
    "REDACTED",
    "REDACT_MARKERS",
    "STYLE_LIMITS",
    "SUMMARY_STRING_LIMIT",
    "TRUNCATED_KEY",
    "format_tool_args",
    "sanitize_map",
    "should_redact_key",
    "summarize_map",
    "truncate_map",
    "truncate_string",
]
