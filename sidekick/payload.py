"""The Falco event payload and its JSON form."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sidekick.priority import Priority, parse_priority

__all__ = ["FalcoPayload", "format_go_time", "parse_payload"]

_ZERO_TIME_STRING = "0001-01-01 00:00:00 +0000 UTC"
_ZERO_TIME_JSON = "0001-01-01T00:00:00Z"

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?"
    r"([Zz]|[+-]\d{2}:\d{2})$"
)

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _offset_parts(value: datetime) -> tuple[str, int, int]:
    offset = value.utcoffset() or timedelta(0)
    total = int(offset.total_seconds()) // 60
    sign = "-" if total < 0 else "+"
    hours, minutes = divmod(abs(total), 60)
    return sign, hours, minutes


def _fraction(value: datetime) -> str:
    if not value.microsecond:
        return ""
    return "." + f"{value.microsecond:06d}".rstrip("0")


def format_go_time(value: datetime | None) -> str:
    """Render a time as ``2006-01-02 15:04:05.999999 -0700 MST``.

    ``None`` stands for the zero time. Naive datetimes are taken as UTC.
    """
    if value is None:
        return _ZERO_TIME_STRING
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    sign, hours, minutes = _offset_parts(value)
    offset = f"{sign}{hours:02d}{minutes:02d}"
    zone = "UTC" if (hours, minutes) == (0, 0) else offset
    return f"{value:%Y-%m-%d %H:%M:%S}{_fraction(value)} {offset} {zone}"


def _format_rfc3339(value: datetime | None) -> str:
    if value is None:
        return _ZERO_TIME_JSON
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    sign, hours, minutes = _offset_parts(value)
    zone = "Z" if (hours, minutes) == (0, 0) else f"{sign}{hours:02d}:{minutes:02d}"
    return f"{value:%Y-%m-%dT%H:%M:%S}{_fraction(value)}{zone}"


def _parse_rfc3339(text: str) -> datetime | None:
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int((frac or "")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        delta = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])) * sign
        tz = timezone.utc if not delta else timezone(delta)
    result = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )
    if result == datetime(1, 1, 1, tzinfo=timezone.utc):
        return None
    return result


def _sorted_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _sorted_value(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [_sorted_value(item) for item in value]
    return value


@dataclass
class FalcoPayload:
    """A single Falco event."""

    uuid: str = ""
    output: str = ""
    priority: Priority = Priority.DEFAULT
    rule: str = ""
    time: datetime | None = None
    output_fields: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    tags: list[str] = field(default_factory=list)
    hostname: str = ""

    def check(self) -> bool:
        """Whether the event carries a priority, a rule, a time and output fields."""
        try:
            label = Priority(self.priority).label
        except ValueError:
            label = ""
        if not label or not self.rule or self.time is None:
            return False
        return bool(self.output_fields)

    def to_dict(self) -> dict[str, Any]:
        """The event as a JSON-ready mapping, with empty optional fields left out."""
        try:
            label = Priority(self.priority).label
        except ValueError:
            label = ""
        data: dict[str, Any] = {}
        if self.uuid:
            data["uuid"] = self.uuid
        data["output"] = self.output
        data["priority"] = label
        data["rule"] = self.rule
        data["time"] = _format_rfc3339(self.time)
        data["output_fields"] = _sorted_value(self.output_fields)
        data["source"] = self.source
        if self.tags:
            data["tags"] = list(self.tags)
        if self.hostname:
            data["hostname"] = self.hostname
        return data

    def to_json(self) -> str:
        """Compact JSON with HTML-sensitive characters escaped."""
        text = json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)
        for char, escape in _HTML_ESCAPES.items():
            text = text.replace(char, escape)
        return text

    def __str__(self) -> str:
        return self.to_json()


def _string_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def parse_payload(text: str | bytes) -> FalcoPayload:
    """Decode a Falco event from JSON. Raises ValueError on malformed input."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("payload must be a JSON object")

    raw_priority = data.get("priority")
    if raw_priority is None:
        priority = Priority.DEFAULT
    elif isinstance(raw_priority, str):
        priority = parse_priority(raw_priority)
    else:
        raise ValueError("field 'priority' must be a string")

    raw_time = data.get("time")
    if raw_time is None:
        when = None
    elif isinstance(raw_time, str):
        when = _parse_rfc3339(raw_time)
    else:
        raise ValueError("field 'time' must be a string")

    fields = data.get("output_fields")
    if fields is None:
        fields = {}
    elif not isinstance(fields, dict):
        raise ValueError("field 'output_fields' must be an object")

    tags = data.get("tags")
    if tags is None:
        tags = []
    elif not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValueError("field 'tags' must be a list of strings")

    return FalcoPayload(
        uuid=_string_field(data, "uuid"),
        output=_string_field(data, "output"),
        priority=priority,
        rule=_string_field(data, "rule"),
        time=when,
        output_fields=fields,
        source=_string_field(data, "source"),
        tags=tags,
        hostname=_string_field(data, "hostname"),
    )