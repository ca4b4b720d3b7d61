"""Messages for a remote syslog server, as JSON or CEF."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sidekick.config import Configuration
from sidekick.payload import FalcoPayload
from sidekick.priority import Priority

__all__ = [
    "TCP",
    "UDP",
    "is_valid_protocol",
    "cef_severity",
    "syslog_level",
    "format_cef",
    "build_syslog_message",
]

TCP = "tcp"
UDP = "udp"
CEF = "cef"

_CEF_SEVERITIES = {
    Priority.DEBUG: "0",
    Priority.INFORMATIONAL: "3",
    Priority.NOTICE: "4",
    Priority.WARNING: "6",
    Priority.ERROR: "7",
    Priority.CRITICAL: "8",
    Priority.ALERT: "9",
    Priority.EMERGENCY: "10",
}

# Syslog severities as defined by RFC 5424.
_LOG_EMERG = 0
_SYSLOG_LEVELS = {
    Priority.EMERGENCY: _LOG_EMERG,
    Priority.ALERT: 1,
    Priority.CRITICAL: 2,
    Priority.ERROR: 3,
    Priority.WARNING: 4,
    Priority.NOTICE: 5,
    Priority.INFORMATIONAL: 6,
    Priority.DEBUG: 7,
}


def _as_priority(priority: int) -> Priority | None:
    try:
        return Priority(priority)
    except ValueError:
        return None


def is_valid_protocol(protocol: str) -> bool:
    """Whether ``protocol`` names TCP or UDP, case-insensitively."""
    return protocol.lower() in (TCP, UDP)


def cef_severity(priority: int) -> str:
    """The CEF severity for a priority."""
    return _CEF_SEVERITIES.get(_as_priority(priority), "Uknown")


def syslog_level(priority: int) -> int:
    """The syslog severity for a priority; emergency when it has none."""
    return _SYSLOG_LEVELS.get(_as_priority(priority), _LOG_EMERG)


def _rfc3339(value: datetime | None) -> str:
    if value is None:
        return "0001-01-01T00:00:00Z"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    offset = value.utcoffset()
    if not offset:
        zone = "Z"
    else:
        minutes = int(offset.total_seconds()) // 60
        sign = "-" if minutes < 0 else "+"
        hours, minutes = divmod(abs(minutes), 60)
        zone = f"{sign}{hours:02d}:{minutes:02d}"
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}{zone}"
    )


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def format_cef(payload: FalcoPayload) -> str:
    """Render an event in Common Event Format."""
    message = (
        "CEF:0|Falcosecurity|Falco|1.0|Falco Event|"
        f"{payload.rule}|{cef_severity(payload.priority)}|"
        f"uuid={payload.uuid} start={_rfc3339(payload.time)} "
        f"msg={payload.output} source={payload.source}"
    )
    if payload.hostname:
        message += " hostname=" + payload.hostname
    message += " outputfields="
    message += "".join(
        f"{key}:{_text(payload.output_fields[key])} " for key in sorted(payload.output_fields)
    )
    if payload.tags:
        message += "tags=" + ",".join(payload.tags)
    return message.removesuffix(" ")


def build_syslog_message(payload: FalcoPayload, config: Configuration) -> bytes:
    """The bytes written to syslog: CEF when so configured, JSON otherwise."""
    if config.syslog.format == CEF:
        return format_cef(payload).encode("utf-8")
    return payload.to_json().encode("utf-8")