import re
from datetime import datetime, timezone

from sidekick.config import Configuration, TimescaleDBConfig
from sidekick.payload import parse_payload
from sidekick.timescaledb import TimescaleDBPayload, new_timescaledb_payload

FALCO_TEST_INPUT = (
    '{"output":"This is a test from falcosidekick","priority":"Debug",'
    '"rule":"Test rule","time":"2001-01-01T01:10:00Z",'
    '"output_fields":{"proc.name":"falcosidekick","proc.tty":1234},'
    '"source":"syscalls","tags":["test","example"],"hostname":"test-host"}'
)

INSERT_RE = re.compile(r"INSERT\s+INTO\s+(test_hypertable)\s+\((.*)\)\s+VALUES\s+\((.*)\)")


def _config(**kwargs):
    return Configuration(
        timescaledb=TimescaleDBConfig(hypertable_name="test_hypertable"), **kwargs
    )


def test_new_timescaledb_payload():
    expected_time = datetime(2001, 1, 1, 1, 10, tzinfo=timezone.utc)
    expected_values = {
        "time": expected_time,
        "rule": "Test rule",
        "priority": "Debug",
        "source": "syscalls",
        "output": "This is a test from falcosidekick",
        "tags": "test,example",
        "hostname": "test-host",
        "custom_field_1": "test-custom-value-1",
        "template_field_1": "falcosidekick",
    }
    payload = parse_payload(FALCO_TEST_INPUT)
    payload.output_fields["custom_field_1"] = "test-custom-value-1"
    payload.output_fields["template_field_1"] = "falcosidekick"
    config = _config(
        customfields={"custom_field_1": "test-custom-value-1"},
        templatedfields={"template_field_1": '{{ or (index . "proc.name") "null" }}'},
    )

    output = new_timescaledb_payload(payload, config)

    match = INSERT_RE.search(output.sql)
    assert match is not None
    assert match.group(1) == "test_hypertable"
    cols = match.group(2).split(",")
    assert len(cols) == 9
    for position, column in enumerate(cols):
        assert column in expected_values
        assert output.values[position] == expected_values[column]


def test_placeholders_match_values():
    payload = parse_payload(FALCO_TEST_INPUT)
    output = new_timescaledb_payload(payload, _config())
    match = INSERT_RE.search(output.sql)
    placeholders = match.group(3).split(",")
    assert placeholders == [f"${n}" for n in range(1, len(output.values) + 1)]
    assert len(match.group(2).split(",")) == len(output.values)


def test_optional_columns_left_out():
    payload = parse_payload(FALCO_TEST_INPUT)
    payload.tags = []
    payload.hostname = ""
    output = new_timescaledb_payload(payload, _config())
    cols = INSERT_RE.search(output.sql).group(2).split(",")
    assert cols == ["time", "rule", "priority", "source", "output"]


def test_null_string_becomes_none_and_quotes_are_dropped():
    payload = parse_payload(FALCO_TEST_INPUT)
    payload.output_fields["a"] = "NULL"
    payload.output_fields["b"] = 'say "hi"'
    output = new_timescaledb_payload(payload, _config(customfields={"a": "", "b": ""}))
    cols = INSERT_RE.search(output.sql).group(2).split(",")
    values = dict(zip(cols, output.values))
    assert values["a"] is None
    assert values["b"] == "say hi"


def test_non_string_and_unlisted_fields_ignored():
    payload = parse_payload(FALCO_TEST_INPUT)
    output = new_timescaledb_payload(payload, _config(customfields={"proc.tty": ""}))
    cols = INSERT_RE.search(output.sql).group(2).split(",")
    assert "proc.tty" not in cols
    assert "proc.name" not in cols
    assert isinstance(output, TimescaleDBPayload) and len(cols) == 7