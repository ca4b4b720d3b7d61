"""Shared helpers for building chat message payloads."""

from __future__ import annotations

from typing import Any, Mapping

from sidekick.priority import Priority

__all__ = [
    "ALL",
    "FIELDS",
    "TEXT",
    "RULE",
    "PRIORITY",
    "SOURCE",
    "TAGS",
    "TIME",
    "HOSTNAME",
    "RED",
    "ORANGE",
    "YELLOW",
    "LIGHT_CYAN",
    "LIGHT_BLUE",
    "PALE_CYAN",
    "DEFAULT_FOOTER",
    "DEFAULT_ICON_URL",
    "sorted_string_keys",
    "priority_color",
]

# Output formats.
ALL = "all"
FIELDS = "fields"
TEXT = "text"

# Field titles.
RULE = "rule"
PRIORITY = "priority"
SOURCE = "source"
TAGS = "tags"
TIME = "time"
HOSTNAME = "hostname"

# Attachment colours.
RED = "#e20b0b"
ORANGE = "#ff5400"
YELLOW = "#ffc700"
LIGHT_CYAN = "#5bffb5"
LIGHT_BLUE = "#68c2ff"
PALE_CYAN = "#ccfff2"

DEFAULT_FOOTER = "https://example.com/sidekick"
DEFAULT_ICON_URL = "https://example.com/sidekick/icon.png"

_COLORS = {
    Priority.EMERGENCY: RED,
    Priority.ALERT: ORANGE,
    Priority.CRITICAL: ORANGE,
    Priority.ERROR: RED,
    Priority.WARNING: YELLOW,
    Priority.NOTICE: LIGHT_CYAN,
    Priority.INFORMATIONAL: LIGHT_BLUE,
    Priority.DEBUG: PALE_CYAN,
}


def sorted_string_keys(fields: Mapping[str, Any]) -> list[str]:
    """Keys of ``fields`` whose values are strings, in sorted order."""
    return sorted(key for key, value in fields.items() if isinstance(value, str))


def priority_color(priority: int) -> str:
    """The attachment colour for a priority; empty when it has none."""
    try:
        return _COLORS.get(Priority(priority), "")
    except ValueError:
        return ""