"""Configuration of the event forwarder and its outputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from sidekick.payload import FalcoPayload

__all__ = [
    "Configuration",
    "SlackOutputConfig",
    "RocketchatOutputConfig",
    "TeamsOutputConfig",
    "TelegramConfig",
    "TimescaleDBConfig",
    "SyslogConfig",
    "SpyderbatConfig",
    "PolicyReportConfig",
    "PrometheusConfig",
    "StatsdOutputConfig",
    "WebhookOutputConfig",
    "ZincsearchOutputConfig",
    "RedisConfig",
    "RabbitmqConfig",
    "WavefrontOutputConfig",
]

MessageTemplate = Callable[["FalcoPayload"], str]


@dataclass
class SlackOutputConfig:
    """Settings for Slack."""

    webhook_url: str = ""
    channel: str = ""
    footer: str = ""
    icon: str = ""
    username: str = ""
    output_format: str = ""
    minimum_priority: str = ""
    message_format: str = ""
    message_format_template: Optional[MessageTemplate] = None
    check_cert: bool = False
    mutual_tls: bool = False


@dataclass
class RocketchatOutputConfig:
    """Settings for Rocket.Chat."""

    webhook_url: str = ""
    footer: str = ""
    icon: str = ""
    username: str = ""
    output_format: str = ""
    minimum_priority: str = ""
    message_format: str = ""
    message_format_template: Optional[MessageTemplate] = None
    check_cert: bool = False
    mutual_tls: bool = False


@dataclass
class TeamsOutputConfig:
    """Settings for Microsoft Teams."""

    webhook_url: str = ""
    activity_image: str = ""
    output_format: str = ""
    minimum_priority: str = ""
    check_cert: bool = False
    mutual_tls: bool = False


@dataclass
class TelegramConfig:
    """Settings for Telegram."""

    token: str = ""
    chat_id: str = ""
    minimum_priority: str = ""
    check_cert: bool = False


@dataclass
class TimescaleDBConfig:
    """Settings for TimescaleDB."""

    host: str = ""
    port: str = ""
    user: str = ""
    password: str = ""
    database: str = ""
    hypertable_name: str = ""
    minimum_priority: str = ""


@dataclass
class SyslogConfig:
    """Settings for a remote syslog server; protocol is "tcp" or "udp"."""

    host: str = ""
    port: str = ""
    protocol: str = ""
    format: str = ""
    minimum_priority: str = ""


@dataclass
class SpyderbatConfig:
    """Settings for Spyderbat."""

    org_uid: str = ""
    api_key: str = ""
    api_url: str = ""
    source: str = ""
    source_description: str = ""
    minimum_priority: str = ""


@dataclass
class PolicyReportConfig:
    """Settings for Kubernetes policy reports."""

    enabled: bool = False
    prune_by_priority: bool = False
    kubeconfig: str = ""
    minimum_priority: str = ""
    max_events: int = 0


@dataclass
class PrometheusConfig:
    """Settings for Prometheus metrics."""

    extra_labels: str = ""
    extra_labels_list: list[str] = field(default_factory=list)


@dataclass
class StatsdOutputConfig:
    """Settings for StatsD or DogStatsD."""

    forwarder: str = ""
    namespace: str = ""
    tags: list[str] = field(default_factory=list)


@dataclass
class WebhookOutputConfig:
    """Settings for a generic webhook."""

    address: str = ""
    method: str = ""
    custom_headers: dict[str, str] = field(default_factory=dict)
    minimum_priority: str = ""
    check_cert: bool = False
    mutual_tls: bool = False


@dataclass
class ZincsearchOutputConfig:
    """Settings for Zincsearch."""

    host_port: str = ""
    index: str = ""
    username: str = ""
    password: str = ""
    check_cert: bool = False
    minimum_priority: str = ""


@dataclass
class RedisConfig:
    """Settings for Redis."""

    address: str = ""
    password: str = ""
    database: int = 0
    storage_type: str = ""
    key: str = ""
    version: int = 0
    minimum_priority: str = ""
    check_cert: bool = False
    mutual_tls: bool = False


@dataclass
class RabbitmqConfig:
    """Settings for RabbitMQ."""

    url: str = ""
    queue: str = ""
    minimum_priority: str = ""


@dataclass
class WavefrontOutputConfig:
    """Settings for Wavefront; endpoint_type is "direct" or "proxy"."""

    endpoint_type: str = ""
    endpoint_host: str = ""
    endpoint_token: str = ""
    endpoint_metric_port: int = 0
    metric_name: str = ""
    flush_interval_seconds: int = 0
    batch_size: int = 0
    minimum_priority: str = ""


@dataclass
class Configuration:
    """The whole configuration."""

    debug: bool = False
    listen_address: str = ""
    listen_port: int = 0
    bracket_replacer: str = ""
    customfields: dict[str, str] = field(default_factory=dict)
    templatedfields: dict[str, str] = field(default_factory=dict)
    prometheus: PrometheusConfig = field(default_factory=PrometheusConfig)
    slack: SlackOutputConfig = field(default_factory=SlackOutputConfig)
    rocketchat: RocketchatOutputConfig = field(default_factory=RocketchatOutputConfig)
    teams: TeamsOutputConfig = field(default_factory=TeamsOutputConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    timescaledb: TimescaleDBConfig = field(default_factory=TimescaleDBConfig)
    syslog: SyslogConfig = field(default_factory=SyslogConfig)
    spyderbat: SpyderbatConfig = field(default_factory=SpyderbatConfig)
    policy_report: PolicyReportConfig = field(default_factory=PolicyReportConfig)
    statsd: StatsdOutputConfig = field(default_factory=StatsdOutputConfig)
    dogstatsd: StatsdOutputConfig = field(default_factory=StatsdOutputConfig)
    webhook: WebhookOutputConfig = field(default_factory=WebhookOutputConfig)
    zincsearch: ZincsearchOutputConfig = field(default_factory=ZincsearchOutputConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    rabbitmq: RabbitmqConfig = field(default_factory=RabbitmqConfig)
    wavefront: WavefrontOutputConfig = field(default_factory=WavefrontOutputConfig)