from datetime import datetime, timezone

import pytest

from sidekick.config import Configuration, PolicyReportConfig
from sidekick.payload import FalcoPayload
from sidekick.policyreport import (
    CLUSTER_POLICY_REPORT_BASE_NAME,
    POLICY_REPORT_BASE_NAME,
    ObjectReference,
    PolicyReport,
    PolicyReportManager,
    PolicyReportResult,
    PolicyResult,
    PolicySummary,
    ReportConflictError,
    ReportNotFoundError,
    Severity,
    check_low,
    determine_resource_name,
    map_resource,
    map_result,
    map_severity,
    new_result,
    to_go_string,
)
from sidekick.priority import Priority


class MemoryStore:
    def __init__(self, conflicts=0, fail_create=False):
        self.objects = {}
        self.created = []
        self.update_attempts = 0
        self.conflicts = conflicts
        self.fail_create = fail_create

    def _key(self, report):
        return (report.namespace, report.name)

    def get(self, report):
        key = self._key(report)
        if key not in self.objects:
            raise ReportNotFoundError(report.name)
        return self.objects[key]

    def create(self, report):
        if self.fail_create:
            raise RuntimeError("create refused")
        self.objects[self._key(report)] = "1"
        self.created.append(report.name)

    def update(self, report):
        self.update_attempts += 1
        if self.conflicts:
            self.conflicts -= 1
            raise ReportConflictError(report.name)
        key = self._key(report)
        self.objects[key] = str(int(self.objects[key]) + 1)


def make_payload(priority=Priority.WARNING, fields=None):
    return FalcoPayload(
        output="something happened",
        priority=priority,
        rule="Test rule",
        time=datetime(2001, 1, 1, 1, 10, 7, 250000, tzinfo=timezone.utc),
        output_fields=fields if fields is not None else {"proc.name": "falcosidekick"},
        source="syscalls",
    )


def make_result(result, severity):
    return PolicyReportResult(policy="rule", severity=severity, result=result)


def make_config(max_events=10, prune=False):
    return Configuration(
        policy_report=PolicyReportConfig(max_events=max_events, prune_by_priority=prune)
    )


@pytest.mark.parametrize(
    "priority, expected",
    [
        (Priority.DEBUG, PolicyResult.SKIP),
        (Priority.NOTICE, PolicyResult.SKIP),
        (Priority.WARNING, PolicyResult.WARN),
        (Priority.ERROR, PolicyResult.FAIL),
        (Priority.EMERGENCY, PolicyResult.FAIL),
    ],
)
def test_map_result(priority, expected):
    assert map_result(priority) == expected


@pytest.mark.parametrize(
    "priority, expected",
    [
        (Priority.DEBUG, Severity.INFO),
        (Priority.INFORMATIONAL, Severity.INFO),
        (Priority.NOTICE, Severity.LOW),
        (Priority.WARNING, Severity.MEDIUM),
        (Priority.ERROR, Severity.HIGH),
        (Priority.CRITICAL, Severity.CRITICAL),
        (Priority.EMERGENCY, Severity.CRITICAL),
    ],
)
def test_map_severity(priority, expected):
    assert map_severity(priority) == expected


def test_to_go_string_scalars():
    assert to_go_string("abc") == "abc"
    assert to_go_string(1234) == "1234"
    assert to_go_string(True) == "true"
    assert to_go_string(None) == "<nil>"
    assert to_go_string(2.5) == "2.5"
    assert to_go_string(1e6) == "1e+06"


def test_determine_resource_name_prefers_target():
    fields = {"ka.target.name": "web", "ka.resp.name": "other"}
    assert determine_resource_name(fields) == "web"
    assert determine_resource_name({"ka.resp.name": "other"}) == "other"
    assert determine_resource_name({}) == to_go_string(None)


def test_map_resource_with_name_returns_none():
    assert map_resource({"ka.target.name": "web"}, "default") is None
    assert map_resource({}, "default") is None


def test_map_resource_known_kind():
    fields = {"ka.target.name": "", "ka.target.resource": "pods"}
    assert map_resource(fields, "default") == [
        ObjectReference(namespace="default", name="", kind="Pod", api_version="v1")
    ]


def test_map_resource_unknown_kind_and_missing_resource():
    fields = {"ka.target.name": "", "ka.target.resource": "widgets"}
    assert map_resource(fields, "ns") == [
        ObjectReference(namespace="ns", name="", kind="widgets", api_version="")
    ]
    assert map_resource({"ka.target.name": ""}, "ns") == [ObjectReference("ns", "")]


def test_new_result_fields():
    payload = make_payload(
        Priority.ERROR, {"k8s.ns.name": "prod", "proc.pid": 42, "proc.name": "sh"}
    )
    result, namespace = new_result(payload)
    assert namespace == "prod"
    assert result.policy == payload.rule
    assert result.description == payload.output
    assert result.source == "Falco"
    assert result.category == "SI - System and Information Integrity"
    assert result.scored is False
    assert result.severity == Severity.HIGH
    assert result.result == PolicyResult.FAIL
    assert result.properties == {"k8s.ns.name": "prod", "proc.pid": "42", "proc.name": "sh"}
    assert result.timestamp_seconds == payload.time.second
    assert result.timestamp_nanos == payload.time.microsecond * 1000


def test_new_result_target_namespace_and_cluster_scope():
    _, namespace = new_result(make_payload(fields={"ka.target.namespace": "kube"}))
    assert namespace == "kube"
    _, namespace = new_result(make_payload())
    assert namespace == ""


def test_check_low():
    results = [
        make_result(PolicyResult.FAIL, Severity.CRITICAL),
        make_result(PolicyResult.FAIL, Severity.HIGH),
        make_result(PolicyResult.WARN, Severity.MEDIUM),
        make_result(PolicyResult.SKIP, Severity.INFO),
    ]
    assert check_low(results) == 2
    assert check_low(results[:2]) == -1
    assert check_low([]) == -1


def test_summary_add_and_remove():
    summary = PolicySummary()
    summary.add(PolicyResult.FAIL)
    summary.add(PolicyResult.WARN)
    summary.add(PolicyResult.SKIP)
    assert (summary.fail, summary.warn, summary.skip) == (1, 2, 0)
    summary.remove(PolicyResult.FAIL)
    summary.remove(PolicyResult.WARN)
    assert (summary.fail, summary.warn, summary.skip) == (0, 1, 0)


def test_append_drops_oldest_when_full():
    report = PolicyReport(name="r")
    items = [
        make_result(PolicyResult.FAIL, Severity.HIGH),
        make_result(PolicyResult.WARN, Severity.MEDIUM),
        make_result(PolicyResult.FAIL, Severity.CRITICAL),
        make_result(PolicyResult.WARN, Severity.MEDIUM),
    ]
    for item in items:
        report.append(item, 3, False)
    assert report.results == items[1:]
    fails = sum(item.result == PolicyResult.FAIL for item in report.results)
    assert report.summary.fail == fails
    assert report.summary.warn == len(report.results) - fails


def test_append_prunes_low_priority_first():
    report = PolicyReport(name="r")
    high = make_result(PolicyResult.FAIL, Severity.HIGH)
    low = make_result(PolicyResult.WARN, Severity.MEDIUM)
    crit = make_result(PolicyResult.FAIL, Severity.CRITICAL)
    newest = make_result(PolicyResult.FAIL, Severity.HIGH)
    for item in (high, low, crit, newest):
        report.append(item, 3, True)
    assert low not in report.results
    assert report.results == [high, crit, newest]
    assert report.summary.warn == 0
    assert report.summary.fail == 3


def test_manager_cluster_report_created_then_updated():
    store = MemoryStore()
    manager = PolicyReportManager(make_config(), store)
    manager.update_or_create(make_payload())
    manager.update_or_create(make_payload(Priority.CRITICAL))
    report = manager.cluster_report
    assert report.name.startswith(CLUSTER_POLICY_REPORT_BASE_NAME)
    assert len(report.name) == len(CLUSTER_POLICY_REPORT_BASE_NAME) + 8
    assert store.created == [report.name]
    assert store.update_attempts == 1
    assert len(report.results) == 2
    assert manager.stats == {"total": 2, "ok": 2, "error": 0}


def test_manager_namespaced_report_with_owner():
    store = MemoryStore()
    manager = PolicyReportManager(make_config(), store, namespace="falco", namespace_uid="uid-1")
    manager.update_or_create(make_payload(fields={"k8s.ns.name": "prod"}))
    report = manager.reports["prod"]
    assert report.name.startswith(POLICY_REPORT_BASE_NAME)
    assert report.namespace == "prod"
    assert report.labels == {"app.kubernetes.io/created-by": "falcosidekick"}
    assert report.owner_references[0]["name"] == "falco"
    assert report.owner_references[0]["uid"] == "uid-1"
    assert manager.cluster_report.results == []
    assert store.created == [report.name]


def test_manager_no_owner_without_uid():
    manager = PolicyReportManager(make_config(), MemoryStore(), namespace="falco")
    manager.update_or_create(make_payload(fields={"k8s.ns.name": "prod"}))
    assert manager.reports["prod"].owner_references == []


def test_manager_retries_on_conflict():
    store = MemoryStore(conflicts=2)
    manager = PolicyReportManager(make_config(), store)
    manager.update_or_create(make_payload())
    manager.update_or_create(make_payload())
    assert store.update_attempts == 3
    assert manager.stats["ok"] == 2


def test_manager_counts_error_after_exhausted_retries():
    store = MemoryStore(conflicts=100)
    manager = PolicyReportManager(make_config(), store)
    manager.update_or_create(make_payload())
    manager.update_or_create(make_payload())
    assert store.update_attempts == 5
    assert manager.stats == {"total": 2, "ok": 1, "error": 1}


def test_update_cluster_policy_report_raises_on_store_failure():
    manager = PolicyReportManager(make_config(), MemoryStore(fail_create=True))
    result, _ = new_result(make_payload())
    with pytest.raises(RuntimeError):
        manager.update_cluster_policy_report(result)
    manager.update_or_create(make_payload())
    assert manager.stats["error"] == 1