"""Falco event priorities and their JSON form."""

from __future__ import annotations

import json
from enum import IntEnum

__all__ = ["Priority", "parse_priority", "priority_to_json", "priority_from_json"]


class Priority(IntEnum):
    """Severity of a Falco event, ordered from least to most severe."""

    DEFAULT = 0
    DEBUG = 1
    INFORMATIONAL = 2
    NOTICE = 3
    WARNING = 4
    ERROR = 5
    CRITICAL = 6
    ALERT = 7
    EMERGENCY = 8

    @property
    def label(self) -> str:
        """The display name, empty for the default priority."""
        return _LABELS[self]

    def __str__(self) -> str:
        return self.label

    def __format__(self, spec: str) -> str:
        return format(self.label, spec)


_LABELS = {
    Priority.DEFAULT: "",
    Priority.DEBUG: "Debug",
    Priority.INFORMATIONAL: "Informational",
    Priority.NOTICE: "Notice",
    Priority.WARNING: "Warning",
    Priority.ERROR: "Error",
    Priority.CRITICAL: "Critical",
    Priority.ALERT: "Alert",
    Priority.EMERGENCY: "Emergency",
}

_BY_NAME = {
    "emergency": Priority.EMERGENCY,
    "alert": Priority.ALERT,
    "critical": Priority.CRITICAL,
    "error": Priority.ERROR,
    "warning": Priority.WARNING,
    "notice": Priority.NOTICE,
    "informational": Priority.INFORMATIONAL,
    "info": Priority.INFORMATIONAL,
    "debug": Priority.DEBUG,
}


def parse_priority(value: str) -> Priority:
    """Return the priority named by ``value``, case-insensitively; DEFAULT if unknown."""
    return _BY_NAME.get(value.lower(), Priority.DEFAULT)


def priority_to_json(priority: int) -> str:
    """Encode a priority as a JSON string; unknown values encode as ``""``."""
    try:
        label = Priority(priority).label
    except ValueError:
        label = ""
    return json.dumps(label)


def priority_from_json(raw: str | bytes) -> Priority:
    """Decode a JSON string into a priority.

    Raises ValueError when ``raw`` is not a JSON string.
    """
    value = json.loads(raw)
    if not isinstance(value, str):
        raise ValueError(f"priority must be a JSON string, got {type(value).__name__}")
    return parse_priority(value)