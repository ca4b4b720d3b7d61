"""Spyderbat source registration data and event payloads."""

from __future__ import annotations

import posixpath
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from sidekick.config import Configuration
from sidekick.payload import FalcoPayload
from sidekick.priority import Priority

__all__ = [
    "SCHEMA",
    "PRIORITY_MAP",
    "SpyderbatPayload",
    "source_uid",
    "sources_url",
    "data_url",
    "source_body",
    "has_source",
    "new_spyderbat_payload",
]

SCHEMA = "falco_alert::1.0.0"

PRIORITY_MAP = {
    Priority.EMERGENCY: "critical",
    Priority.ALERT: "high",
    Priority.CRITICAL: "critical",
    Priority.ERROR: "high",
    Priority.WARNING: "medium",
    Priority.NOTICE: "low",
    Priority.INFORMATIONAL: "info",
    Priority.DEBUG: "info",
}

_NANOS = 1_000_000_000


def _join_url(base: str, elem: str) -> str:
    parts = urlsplit(base)
    joined = re.sub(r"/+", "/", "/" + parts.path + "/" + elem)
    path = posixpath.normpath(joined)
    if elem.endswith("/") and not path.endswith("/"):
        path += "/"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def source_uid(config: Configuration) -> str:
    """The identifier of the event source registered for the organisation."""
    return "falcosidekick_" + config.spyderbat.org_uid


def sources_url(config: Configuration) -> str:
    """The URL listing and creating the organisation's sources."""
    return _join_url(
        config.spyderbat.api_url, f"api/v1/org/{config.spyderbat.org_uid}/source/"
    )


def data_url(config: Configuration) -> str:
    """The URL events are posted to."""
    return _join_url(
        config.spyderbat.api_url,
        f"api/v1/org/{config.spyderbat.org_uid}/source/{source_uid(config)}/data/sb-agent",
    )


def source_body(config: Configuration) -> dict[str, str]:
    """The request body that registers the source."""
    return {
        "name": config.spyderbat.source,
        "description": config.spyderbat.source_description,
        "uid": source_uid(config),
    }


def has_source(sources: Iterable[Mapping[str, Any]], config: Configuration) -> bool:
    """Whether the listed sources include the one for this organisation."""
    wanted = source_uid(config)
    return any(source.get("uid") == wanted for source in sources)


@dataclass
class SpyderbatPayload:
    """A single event record for the Spyderbat agent endpoint."""

    schema: str
    id: str
    monotonic_time: int
    orc_time: float
    time: float
    pid: int
    level: str
    message: Optional[list[str]]
    arguments: str
    container: str

    def to_dict(self) -> dict[str, Any]:
        """The JSON-ready mapping."""
        return {
            "schema": self.schema,
            "id": self.id,
            "monotonic_time": self.monotonic_time,
            "orc_time": self.orc_time,
            "time": self.time,
            "pid": self.pid,
            "level": self.level,
            "msg": self.message,
            "args": self.arguments,
            "container": self.container,
        }


def _integer_field(payload: FalcoPayload, name: str) -> int:
    value = payload.output_fields.get(name)
    if value is None:
        raise ValueError(f"{name} is nil for rule {payload.rule}")
    if isinstance(value, bool):
        raise ValueError(f"{name} is not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 10)
        except ValueError:
            raise ValueError(f"{name} is not an integer: {value!r}") from None
    raise ValueError(f"{name} is not an integer: {value!r}")


def _string_field(payload: FalcoPayload, name: str) -> str:
    value = payload.output_fields.get(name)
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string for rule {payload.rule}")
    return value


def _to_int32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def _whole_seconds(nanos: int) -> float:
    seconds = abs(nanos) // _NANOS
    return float(-seconds if nanos < 0 else seconds)


def new_spyderbat_payload(
    payload: FalcoPayload, now: Optional[datetime] = None
) -> SpyderbatPayload:
    """Build the Spyderbat record for an event.

    Raises ValueError when evt.time or proc.pid is missing or not an integer,
    or when proc.cmdline or container.id is not a string.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    event_nanos = _integer_field(payload, "evt.time")
    pid = _integer_field(payload, "proc.pid")

    words = payload.output.split(" ")
    message = words[2:] if len(words) > 2 else None

    try:
        level = PRIORITY_MAP.get(Priority(payload.priority), "")
    except ValueError:
        level = ""

    return SpyderbatPayload(
        schema=SCHEMA,
        id=str(uuid.uuid4()),
        monotonic_time=now.microsecond * 1000,
        orc_time=now.timestamp(),
        time=_whole_seconds(event_nanos),
        pid=_to_int32(pid),
        level=level,
        message=message,
        arguments=_string_field(payload, "proc.cmdline"),
        container=_string_field(payload, "container.id"),
    )