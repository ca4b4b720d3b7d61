"""Counters for inputs, outputs and event priorities, plus metric naming helpers."""

from __future__ import annotations

import logging
import os
import re
import threading
from typing import Iterable

from sidekick.config import Configuration

__all__ = [
    "TOTAL",
    "REJECTED",
    "ACCEPTED",
    "ERROR",
    "OK",
    "INPUTS",
    "OUTPUTS",
    "PRIORITY_KEYS",
    "FALCO_GROUP",
    "BASE_LABEL_NAMES",
    "Statistics",
    "new_statistics",
    "falco_label_names",
    "statsd_metric_name",
]

log = logging.getLogger(__name__)

TOTAL = "total"
REJECTED = "rejected"
ACCEPTED = "accepted"
ERROR = "error"
OK = "ok"

INPUTS = ("requests", "fifo", "grpc")

OUTPUTS = (
    "slack",
    "cliq",
    "rocketchat",
    "mattermost",
    "teams",
    "datadog",
    "discord",
    "alertmanager",
    "elasticsearch",
    "loki",
    "nats",
    "stan",
    "influxdb",
    "awslambda",
    "awssqs",
    "awssns",
    "awscloudwatchlogs",
    "awss3",
    "awssecuritylake",
    "awskinesis",
    "smtp",
    "opsgenie",
    "statsd",
    "dogstatsd",
    "webhook",
    "cloudevents",
    "azureeventhub",
    "gcppubsub",
    "gcpstorage",
    "gcpcloudfunctions",
    "gcpcloudrun",
    "googlechat",
    "kafka",
    "kafkarest",
    "pagerduty",
    "kubeless",
    "openfaas",
    "tekton",
    "webui",
    "rabbitmq",
    "wavefront",
    "fission",
    "grafana",
    "grafanaoncall",
    "yandexs3",
    "yandexdatastreams",
    "syslog",
    "mqtt",
    "spyderbat",
    "policyreport",
    "nodered",
    "zincsearch",
    "gotify",
    "timescaledb",
    "redis",
    "telegram",
    "n8n",
    "openobserve",
)

PRIORITY_KEYS = (
    "emergency",
    "alert",
    "critical",
    "error",
    "warning",
    "notice",
    "informational",
    "debug",
    "none",
)

FALCO_GROUP = "falco.priority"

BASE_LABEL_NAMES = ("hostname", "rule", "priority", "k8s_ns_name", "k8s_pod_name")

_PROM_LABEL = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")


class Statistics:
    """Named groups of integer counters, safe to update from several threads."""

    def __init__(self) -> None:
        self._groups: dict[str, dict[str, int]] = {}
        self._lock = threading.Lock()

    def declare(self, group: str, keys: Iterable[str]) -> None:
        """Create a group whose counters all start at zero."""
        with self._lock:
            counters = self._groups.setdefault(group, {})
            for key in keys:
                counters.setdefault(key, 0)

    def add(self, group: str, key: str, value: int = 1) -> int:
        """Add ``value`` to a counter and return its new value.

        Raises KeyError when the group was never declared.
        """
        with self._lock:
            counters = self._groups[group]
            counters[key] = counters.get(key, 0) + value
            return counters[key]

    def get(self, group: str, key: str) -> int:
        """The value of a counter, zero if it was never touched.

        Raises KeyError when the group was never declared.
        """
        with self._lock:
            return self._groups[group].get(key, 0)

    def snapshot(self) -> dict[str, object]:
        """A copy of every counter group, plus thread and CPU counts."""
        with self._lock:
            data: dict[str, object] = {
                name: dict(counters) for name, counters in self._groups.items()
            }
        data["threads"] = str(threading.active_count())
        data["cpu"] = str(os.cpu_count() or 0)
        return data


def new_statistics() -> Statistics:
    """Statistics with every input, output and priority counter at zero."""
    stats = Statistics()
    for name in INPUTS:
        stats.declare("inputs." + name, (TOTAL, REJECTED, ACCEPTED))
    stats.declare(FALCO_GROUP, PRIORITY_KEYS)
    for name in OUTPUTS:
        stats.declare("outputs." + name, (TOTAL, ERROR, OK))
    return stats


def falco_label_names(config: Configuration) -> list[str]:
    """Label names of the Falco event counter.

    Custom fields and extra labels that are not valid Prometheus label names
    are logged and left out; dots in extra labels become underscores.
    """
    names = list(BASE_LABEL_NAMES)
    for field_name in config.customfields:
        if not _PROM_LABEL.fullmatch(field_name):
            log.error("Custom field '%s' is not a valid prometheus label", field_name)
            continue
        names.append(field_name)
    for extra in config.prometheus.extra_labels_list:
        label = extra.replace(".", "_")
        if not _PROM_LABEL.fullmatch(label):
            log.error("Extra field '%s' is not a valid prometheus label", extra)
            continue
        names.append(label)
    return names


def statsd_metric_name(metric: str, tags: Iterable[str]) -> str:
    """The StatsD metric name: the metric followed by each tag's value, dot separated.

    Spaces are stripped from tag values. Raises ValueError for a tag without ':'.
    """
    suffix = ""
    for tag in tags:
        parts = tag.split(":")
        if len(parts) < 2:
            raise ValueError(f"tag {tag!r} has no value")
        suffix += "." + parts[1].replace(" ", "")
    return metric + suffix