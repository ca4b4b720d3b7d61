"""Kubernetes PolicyReport and ClusterPolicyReport bookkeeping for Falco events."""

from __future__ import annotations

import logging
import math
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, NamedTuple, Optional, Protocol

from sidekick.config import Configuration
from sidekick.payload import FalcoPayload, format_go_time
from sidekick.priority import Priority

__all__ = [
    "CLUSTER_POLICY_REPORT_BASE_NAME",
    "POLICY_REPORT_BASE_NAME",
    "POLICY_REPORT_SOURCE",
    "RESOURCE_MAPPING",
    "Severity",
    "PolicyResult",
    "PolicyReportError",
    "ReportNotFoundError",
    "ReportConflictError",
    "ReportStore",
    "PolicySummary",
    "ObjectReference",
    "PolicyReportResult",
    "PolicyReport",
    "PolicyReportManager",
    "to_go_string",
    "map_result",
    "map_severity",
    "determine_resource_name",
    "map_resource",
    "new_result",
    "check_low",
]

log = logging.getLogger(__name__)

CLUSTER_POLICY_REPORT_BASE_NAME = "falco-cluster-policy-report-"
POLICY_REPORT_BASE_NAME = "falco-policy-report-"
POLICY_REPORT_SOURCE = "Falco"
POLICY_CATEGORY = "SI - System and Information Integrity"

POLICY_REPORT_KIND = "PolicyReport"
CLUSTER_POLICY_REPORT_KIND = "ClusterPolicyReport"

CREATED_BY_LABEL = "app.kubernetes.io/created-by"
CREATED_BY = "falcosidekick"

TARGET_NS = "ka.target.namespace"
TARGET_RESOURCE = "ka.target.resource"
TARGET_NAME = "ka.target.name"
RESPONSE_NAME = "ka.resp.name"
K8S_NS_NAME = "k8s.ns.name"

_RETRY_STEPS = 5
_RETRY_DELAY = 0.01


class Severity(str, Enum):
    """Severity of a policy report result."""

    HIGH = "high"
    LOW = "low"
    MEDIUM = "medium"
    INFO = "info"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class PolicyResult(str, Enum):
    """Outcome of a policy report result."""

    FAIL = "fail"
    WARN = "warn"
    SKIP = "skip"

    def __str__(self) -> str:
        return self.value


class _Resource(NamedTuple):
    api_version: str
    kind: str


# Resources used by the Kubernetes audit ruleset.
RESOURCE_MAPPING: dict[str, _Resource] = {
    "pods": _Resource("v1", "Pod"),
    "services": _Resource("v1", "Service"),
    "secrets": _Resource("v1", "Secrets"),
    "configmaps": _Resource("v1", "ConfigMap"),
    "namespaces": _Resource("v1", "Namespace"),
    "serviceaccounts": _Resource("v1", "ServiceAccount"),
    "daemonsets": _Resource("apps/v1", "DaemonSet"),
    "deployments": _Resource("apps/v1", "Deployments"),
    "cronjobs": _Resource("batch/v1", "CronJob"),
    "jobs": _Resource("batch/v1", "Job"),
    "clusterroles": _Resource("rbac.authorization.k8s.io/v1", "ClusterRole"),
    "clusterrolebindings": _Resource("rbac.authorization.k8s.io/v1", "ClusterRoleBinding"),
    "roles": _Resource("rbac.authorization.k8s.io/v1", "Role"),
    "rolebindings": _Resource("rbac.authorization.k8s.io/v1", "RoleBinding"),
}


class PolicyReportError(Exception):
    """A report could not be stored."""


class ReportNotFoundError(PolicyReportError):
    """The report does not exist in the store."""


class ReportConflictError(PolicyReportError):
    """The store rejected an update made against a stale version."""


class ReportStore(Protocol):
    """Where reports are kept, such as a Kubernetes API server."""

    def get(self, report: "PolicyReport") -> str:
        """Return the stored resource version; raise ReportNotFoundError if absent."""

    def create(self, report: "PolicyReport") -> None:
        """Store a new report."""

    def update(self, report: "PolicyReport") -> None:
        """Replace a stored report; raise ReportConflictError on a stale version."""


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    number = Decimal(repr(value)).normalize()
    exponent = number.adjusted()
    if -4 <= exponent < 6:
        return format(number, "f")
    sign, digits, _ = number.as_tuple()
    text = "".join(str(digit) for digit in digits)
    mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
    exp_sign = "-" if exponent < 0 else "+"
    return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(exponent):02d}"


def to_go_string(value: Any) -> str:
    """Render a decoded JSON value as plain text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Priority):
        return value.label
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if value is None:
        return "<nil>"
    if isinstance(value, datetime):
        return format_go_time(value)
    if isinstance(value, Mapping):
        items = " ".join(
            f"{to_go_string(key)}:{to_go_string(value[key])}" for key in sorted(value)
        )
        return f"map[{items}]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(to_go_string(item) for item in value) + "]"
    return str(value)


def map_result(priority: int) -> PolicyResult:
    """The result recorded for an event of the given priority."""
    if priority <= Priority.NOTICE:
        return PolicyResult.SKIP
    if priority == Priority.WARNING:
        return PolicyResult.WARN
    return PolicyResult.FAIL


def map_severity(priority: int) -> Severity:
    """The severity recorded for an event of the given priority."""
    if priority <= Priority.INFORMATIONAL:
        return Severity.INFO
    if priority <= Priority.NOTICE:
        return Severity.LOW
    if priority <= Priority.WARNING:
        return Severity.MEDIUM
    if priority <= Priority.ERROR:
        return Severity.HIGH
    return Severity.CRITICAL


def determine_resource_name(output_fields: Mapping[str, Any]) -> str:
    """The name of the targeted resource, or of the response when there is none."""
    if TARGET_NAME in output_fields:
        return to_go_string(output_fields[TARGET_NAME])
    return to_go_string(output_fields.get(RESPONSE_NAME))


@dataclass
class ObjectReference:
    """A reference to a Kubernetes object."""

    namespace: str = ""
    name: str = ""
    kind: str = ""
    api_version: str = ""


def map_resource(
    output_fields: Mapping[str, Any], namespace: str
) -> Optional[list[ObjectReference]]:
    """The subjects of a result; None whenever a resource name is present."""
    name = determine_resource_name(output_fields)
    if name != "":
        return None

    if TARGET_RESOURCE not in output_fields:
        return [ObjectReference(namespace=namespace, name=name)]

    target = to_go_string(output_fields[TARGET_RESOURCE])
    resource = RESOURCE_MAPPING.get(target, _Resource("", target))
    return [
        ObjectReference(
            namespace=namespace,
            name=name,
            kind=resource.kind,
            api_version=resource.api_version,
        )
    ]


@dataclass
class PolicyReportResult:
    """One entry of a policy report."""

    policy: str
    severity: Severity
    result: PolicyResult
    description: str = ""
    category: str = POLICY_CATEGORY
    source: str = POLICY_REPORT_SOURCE
    scored: bool = False
    timestamp_seconds: int = 0
    timestamp_nanos: int = 0
    properties: dict[str, str] = field(default_factory=dict)
    subjects: Optional[list[ObjectReference]] = None


def new_result(payload: FalcoPayload) -> tuple[PolicyReportResult, str]:
    """Build the report entry for an event and the namespace it belongs to.

    The namespace is empty for events that are not namespace specific.
    """
    namespace = ""
    properties: dict[str, str] = {}
    for key, value in payload.output_fields.items():
        text = to_go_string(value)
        if key in (TARGET_NS, K8S_NS_NAME):
            namespace = text
        properties[key] = text

    seconds = payload.time.second if payload.time is not None else 0
    nanos = payload.time.microsecond * 1000 if payload.time is not None else 0

    result = PolicyReportResult(
        policy=payload.rule,
        severity=map_severity(payload.priority),
        result=map_result(payload.priority),
        description=payload.output,
        timestamp_seconds=seconds,
        timestamp_nanos=nanos,
        properties=properties,
        subjects=map_resource(payload.output_fields, namespace),
    )
    return result, namespace


_LOW_SEVERITIES = (Severity.MEDIUM, Severity.LOW, Severity.INFO)


def check_low(results: list[PolicyReportResult]) -> int:
    """Index of the first result of medium severity or below, or -1."""
    return next(
        (index for index, item in enumerate(results) if item.severity in _LOW_SEVERITIES),
        -1,
    )


@dataclass
class PolicySummary:
    """Counts of results by outcome."""

    fail: int = 0
    warn: int = 0
    skip: int = 0

    def add(self, result: PolicyResult) -> None:
        """Count a new result; anything that is not a failure counts as a warning."""
        if result == PolicyResult.FAIL:
            self.fail += 1
        else:
            self.warn += 1

    def remove(self, result: PolicyResult) -> None:
        """Uncount a result that has been dropped."""
        if result == PolicyResult.FAIL:
            self.fail -= 1
        elif result == PolicyResult.WARN:
            self.warn -= 1
        elif result == PolicyResult.SKIP:
            self.skip -= 1


def _default_labels() -> dict[str, str]:
    return {CREATED_BY_LABEL: CREATED_BY}


@dataclass
class PolicyReport:
    """A namespaced policy report, or the cluster-wide one when namespace is empty."""

    name: str
    namespace: str = ""
    kind: str = POLICY_REPORT_KIND
    labels: dict[str, str] = field(default_factory=_default_labels)
    summary: PolicySummary = field(default_factory=PolicySummary)
    results: list[PolicyReportResult] = field(default_factory=list)
    owner_references: list[dict[str, Any]] = field(default_factory=list)
    resource_version: str = ""

    def append(
        self, result: PolicyReportResult, max_events: int, prune_by_priority: bool
    ) -> None:
        """Add a result, dropping one first when the report holds max_events.

        Without pruning by priority the oldest result is dropped; with it, the
        first result of medium severity or below goes, or the oldest if none.
        """
        self.summary.add(result.result)
        if self.results and len(self.results) == max_events:
            if prune_by_priority:
                self._prune_by_priority()
            else:
                self.summary.remove(self.results.pop(0).result)
        self.results.append(result)

    def _prune_by_priority(self) -> None:
        index = check_low(self.results)
        removed = self.results[0]
        if index > 0:
            removed = self.results[index]
            self.results[index] = self.results[0]
        self.summary.remove(removed.result)
        del self.results[0]


def _short_id() -> str:
    return str(uuid.uuid4())[:8]


class PolicyReportManager:
    """Keeps one report per namespace plus a cluster report, and stores them."""

    def __init__(
        self,
        config: Configuration,
        store: ReportStore,
        namespace: str = "",
        namespace_uid: str = "",
    ) -> None:
        self.config = config
        self.namespace = namespace
        self.namespace_uid = namespace_uid
        self.reports: dict[str, PolicyReport] = {}
        self.cluster_report = PolicyReport(
            name=CLUSTER_POLICY_REPORT_BASE_NAME + _short_id(),
            kind=CLUSTER_POLICY_REPORT_KIND,
        )
        self.stats: Counter[str] = Counter(total=0, ok=0, error=0)
        self._store = store

    def update_or_create(self, payload: FalcoPayload) -> None:
        """Record an event in the report it belongs to and count the outcome."""
        self.stats["total"] += 1
        result, namespace = new_result(payload)
        try:
            if namespace:
                self.update_policy_report(namespace, result)
            else:
                self.update_cluster_policy_report(result)
        except Exception as exc:  # the store may fail in any way
            log.error("PolicyReport - %s", exc)
            self.stats["error"] += 1
        else:
            self.stats["ok"] += 1

    def update_policy_report(self, namespace: str, result: PolicyReportResult) -> PolicyReport:
        """Add a result to the namespace's report and store it."""
        report = self.reports.get(namespace)
        if report is None:
            report = PolicyReport(
                name=POLICY_REPORT_BASE_NAME + _short_id(),
                namespace=namespace,
            )
            if self.namespace and self.namespace_uid:
                report.owner_references = [
                    {
                        "apiVersion": "v1",
                        "kind": "Namespace",
                        "name": self.namespace,
                        "uid": self.namespace_uid,
                        "controller": False,
                    }
                ]
            self.reports[namespace] = report

        pr = self.config.policy_report
        report.append(result, pr.max_events, pr.prune_by_priority)
        self._save(report)
        return report

    def update_cluster_policy_report(self, result: PolicyReportResult) -> PolicyReport:
        """Add a result to the cluster report and store it."""
        pr = self.config.policy_report
        self.cluster_report.append(result, pr.max_events, pr.prune_by_priority)
        self._save(self.cluster_report)
        return self.cluster_report

    def _save(self, report: PolicyReport) -> None:
        try:
            self._store.get(report)
        except ReportNotFoundError:
            self._store.create(report)
            log.info("PolicyReport - Create %s %s", report.kind, report.name)
            return
        except Exception:  # any other lookup failure falls through to an update
            pass
        self._update_with_retry(report)
        log.info("PolicyReport - %s %s has been updated", report.kind, report.name)

    def _update_with_retry(self, report: PolicyReport) -> None:
        for attempt in range(_RETRY_STEPS):
            try:
                report.resource_version = self._store.get(report)
                self._store.update(report)
                return
            except ReportConflictError:
                if attempt == _RETRY_STEPS - 1:
                    raise
                time.sleep(_RETRY_DELAY)