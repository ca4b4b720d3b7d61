# sidekick

Turn Falco security events into messages for the places you watch.

`sidekick` reads Falco event JSON into a `FalcoPayload` (`sidekick.payload.parse_payload`)
and builds the request bodies that different outputs expect. It has no
dependencies beyond the standard library.

## What it builds

| Output | Function | Module |
| --- | --- | --- |
| Slack attachments | `new_slack_payload` | `sidekick.slack` |
| Rocket.Chat attachments | `new_rocketchat_payload` | `sidekick.slack` |
| Microsoft Teams message cards | `new_teams_payload` | `sidekick.teams` |
| Telegram MarkdownV2 messages | `new_telegram_payload`, `render_telegram_text` | `sidekick.telegram` |
| TimescaleDB `INSERT` statements with bound values | `new_timescaledb_payload` | `sidekick.timescaledb` |
| Syslog lines, JSON or CEF | `build_syslog_message`, `format_cef` | `sidekick.syslog` |
| Spyderbat agent records and source registration | `new_spyderbat_payload`, `source_body`, `sources_url`, `data_url`, `has_source` | `sidekick.spyderbat` |
| Kubernetes policy reports | `PolicyReportManager`, `new_result` | `sidekick.policyreport` |

The message payload classes have a `to_dict()` method returning the JSON-ready
mapping, with empty optional members left out. `FalcoPayload` has `to_dict()`,
`to_json()` and `check()`, which tells whether an event carries a priority, a
rule, a time and output fields.

Priorities live in `sidekick.priority`: the `Priority` enum, `parse_priority`
(case-insensitive, unknown names give `Priority.DEFAULT`) and the JSON helpers
`priority_to_json` and `priority_from_json`.

Settings for each output are dataclasses in `sidekick.config`, gathered in
`Configuration`. A Slack or Rocket.Chat `message_format_template` is any callable
that takes a `FalcoPayload` and returns the message text.

## Example

```python
from sidekick.config import Configuration
from sidekick.payload import parse_payload
from sidekick.slack import new_slack_payload

event = parse_payload(
    '{"output": "Shell spawned", "priority": "Warning", "rule": "Terminal shell",'
    ' "time": "2001-01-01T01:10:00Z", "output_fields": {"proc.name": "bash"},'
    ' "source": "syscalls"}'
)
if event.check():
    message = new_slack_payload(event, Configuration())
    print(message.to_dict())
```

## Policy reports

`PolicyReportManager` keeps one `PolicyReport` per namespace and one cluster-wide
report. Each report holds at most `config.policy_report.max_events` results; when
full, the oldest result is dropped, or with `prune_by_priority` the first result
of medium severity or below. Reports are saved through a `ReportStore` you pass
in, an object with `get`, `create` and `update` methods; updates that raise
`ReportConflictError` are retried.

## Delivery

`sidekick.delivery.OutputClient` sends events and counts the outcome in a
`Statistics` object:

- `webhook_post`, `tekton_post`, `webui_post`, `zincsearch_post` make HTTP requests
  to `endpoint_url`, through `urllib` by default or through a `transport`
  callable you supply; a failure is logged and counted, not raised.
- `redis_post`, `rabbitmq_publish` and `wavefront_post` take a client object you
  provide (anything with `hset`/`rpush`, `publish`, or `send_metric`/`flush`).

An optional `count_metric` callable receives the StatsD-style metric for each
delivery.

## Metrics

`sidekick.metrics` has `new_statistics()` (every input, output and priority
counter at zero), `Statistics.add`, `Statistics.get` and `Statistics.snapshot`,
`falco_label_names` for the label names of a Prometheus event counter, and
`statsd_metric_name` for StatsD metric names.

## What it does not do

There is no server that receives events, no configuration file loader and no
Prometheus or StatsD exporter. Apart from the HTTP outputs above, it does not
open connections itself: Redis, RabbitMQ, Wavefront and Kubernetes access come
from objects you supply, and messages for Slack, Teams, Telegram, TimescaleDB,
syslog and Spyderbat are built but not sent.

## Version information

```
sidekick-version
sidekick-version --json
```

prints the version, commit, tree state, build date, Python version,
implementation and platform.

## Install and test

```
pip install .
pip install .[test]
pytest
```