from sidekick.config import (
    Configuration,
    PrometheusConfig,
    RedisConfig,
    SlackOutputConfig,
    TelegramConfig,
)
from sidekick.payload import FalcoPayload


def test_defaults_are_empty():
    config = Configuration()
    assert config.customfields == {}
    assert config.templatedfields == {}
    assert config.slack.message_format_template is None
    assert config.prometheus.extra_labels_list == []
    assert config.debug is False


def test_mutable_defaults_not_shared():
    first = Configuration()
    first.customfields["test"] = "foo"
    first.prometheus.extra_labels_list.append("k8s.ns.name")
    first.webhook.custom_headers["X-Test"] = "1"
    second = Configuration()
    assert second.customfields == {}
    assert second.prometheus.extra_labels_list == []
    assert second.webhook.custom_headers == {}


def test_statsd_and_dogstatsd_are_separate():
    config = Configuration()
    config.statsd.tags.append("env:test")
    assert config.dogstatsd.tags == []
    assert config.statsd.tags == ["env:test"]


def test_nested_configs_set_by_keyword():
    config = Configuration(
        redis=RedisConfig(storage_type="hashmap", key="falco"),
        telegram=TelegramConfig(chat_id="-987654321"),
        prometheus=PrometheusConfig(extra_labels_list=["a.b"]),
    )
    assert config.redis.storage_type == "hashmap"
    assert config.redis.key == "falco"
    assert config.telegram.chat_id == "-987654321"
    assert config.prometheus.extra_labels_list == ["a.b"]


def test_message_template_is_callable_on_payload():
    slack = SlackOutputConfig(message_format_template=lambda p: f"Rule: {p.rule}")
    config = Configuration(slack=slack)
    rendered = config.slack.message_format_template(FalcoPayload(rule="Test rule"))
    assert rendered == "Rule: Test rule"


def test_equality_compares_values():
    assert Configuration(listen_port=2801) == Configuration(listen_port=2801)
    assert Configuration(listen_port=2801) != Configuration()