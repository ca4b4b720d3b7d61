"""Rows for a TimescaleDB hypertable built from Falco events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sidekick.config import Configuration
from sidekick.formatting import HOSTNAME, PRIORITY, RULE, SOURCE, TAGS, TIME
from sidekick.payload import FalcoPayload

__all__ = ["TimescaleDBPayload", "new_timescaledb_payload"]

_OUTPUT = "output"


@dataclass
class TimescaleDBPayload:
    """A parameterised INSERT statement and its values."""

    sql: str = ""
    values: list[Any] = field(default_factory=list)


def _column_values(payload: FalcoPayload, config: Configuration) -> dict[str, Any]:
    columns: dict[str, Any] = {
        TIME: payload.time,
        RULE: payload.rule,
        PRIORITY: payload.priority.label,
        SOURCE: payload.source,
        _OUTPUT: payload.output,
    }
    if payload.tags:
        columns[TAGS] = ",".join(payload.tags)
    if payload.hostname:
        columns[HOSTNAME] = payload.hostname

    wanted = set(config.customfields) | set(config.templatedfields)
    for key, value in payload.output_fields.items():
        if isinstance(value, str) and key in wanted:
            columns[key] = value.replace('"', "")
    return columns


def _sql_value(value: Any) -> Any:
    if isinstance(value, str) and value.lower() == "null":
        return None
    return value


def new_timescaledb_payload(payload: FalcoPayload, config: Configuration) -> TimescaleDBPayload:
    """Build the INSERT statement for an event.

    String values spelled "null" (in any case) are stored as SQL NULL.
    """
    columns = _column_values(payload, config)
    names = ",".join(columns)
    placeholders = ",".join(f"${position}" for position in range(1, len(columns) + 1))
    sql = f"INSERT INTO {config.timescaledb.hypertable_name} ({names}) VALUES ({placeholders})"
    return TimescaleDBPayload(sql=sql, values=[_sql_value(value) for value in columns.values()])