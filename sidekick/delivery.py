"""Delivery of Falco events to HTTP endpoints, Redis, RabbitMQ and Wavefront."""

from __future__ import annotations

import base64
import json
import logging
import threading
import urllib.error
import urllib.request
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Protocol, Union

from sidekick.config import Configuration
from sidekick.formatting import HOSTNAME
from sidekick.metrics import ERROR, OK, TOTAL, Statistics, new_statistics
from sidekick.payload import FalcoPayload

__all__ = [
    "HTTP_POST",
    "HTTP_PUT",
    "DeliveryError",
    "Transport",
    "MetricCounter",
    "RedisWriter",
    "MessageChannel",
    "WavefrontSender",
    "OutputClient",
    "wavefront_tags",
    "webui_payload",
]

log = logging.getLogger(__name__)

HTTP_POST = "POST"
HTTP_PUT = "PUT"

DEFAULT_CONTENT_TYPE = "application/json"
WAVEFRONT_SOURCE = "falco-exporter"
_OUTPUTS_METRIC = "outputs"
_HTTP_TIMEOUT = 10.0
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Transport = Callable[[str, str, bytes, dict], int]
"""Send a request (method, url, body, headers) and return the HTTP status."""

MetricCounter = Callable[[str, int, list], None]
"""Count a metric (name, value, tags), such as a StatsD client."""


class DeliveryError(Exception):
    """An event could not be delivered."""


class RedisWriter(Protocol):
    """The part of a Redis client used to store events."""

    def hset(self, name: str, key: str, value: bytes) -> Any: ...

    def rpush(self, name: str, *values: bytes) -> Any: ...


class MessageChannel(Protocol):
    """The part of an AMQP channel used to publish events."""

    def publish(self, exchange: str, routing_key: str, body: bytes, content_type: str) -> Any: ...


class WavefrontSender(Protocol):
    """The part of a Wavefront sender used to report events."""

    def send_metric(
        self, name: str, value: float, timestamp: int, source: str, tags: dict
    ) -> Any: ...

    def flush(self) -> Any: ...


def _urllib_transport(method: str, url: str, body: bytes, headers: dict) -> int:
    request = urllib.request.Request(url, data=body, headers=headers, method=method)
    try:
        with urllib.request.urlopen(request, timeout=_HTTP_TIMEOUT) as response:
            return response.status
    except urllib.error.HTTPError as exc:
        return exc.code


def _unix_nanos(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 10**9 + delta.microseconds * 1000


def wavefront_tags(payload: FalcoPayload) -> dict[str, str]:
    """The point tags reported to Wavefront for an event."""
    tags = {
        "severity": payload.priority.label,
        "rule": payload.rule,
        "source": payload.source,
    }
    if payload.hostname:
        tags[HOSTNAME] = payload.hostname
    tags.update(
        (name, value) for name, value in payload.output_fields.items() if isinstance(value, str)
    )
    if payload.tags:
        tags["tags"] = ", ".join(payload.tags)
    return tags


def webui_payload(
    payload: FalcoPayload, enabled_outputs: Optional[Iterable[str]]
) -> dict[str, Any]:
    """The body sent to the web UI: the event and the outputs it went to."""
    return {
        "event": payload.to_dict(),
        "outputs": None if enabled_outputs is None else list(enabled_outputs),
    }


class OutputClient:
    """Sends events to one output and counts how each delivery went."""

    def __init__(
        self,
        output_type: str,
        config: Configuration,
        endpoint_url: str = "",
        stats: Optional[Statistics] = None,
        transport: Optional[Transport] = None,
        count_metric: Optional[MetricCounter] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        self.output_type = output_type
        self.config = config
        self.endpoint_url = endpoint_url
        self.stats = stats if stats is not None else new_statistics()
        self.content_type = content_type
        self.headers: dict[str, str] = {}
        self._transport = transport or _urllib_transport
        self._count_metric = count_metric
        self._lock = threading.Lock()

    def add_header(self, name: str, value: str) -> None:
        """Send a header with every following request."""
        self.headers[name] = value

    def basic_auth(self, username: str, secret: str) -> None:
        """Authenticate every following request with HTTP basic auth."""
        credentials = base64.b64encode(f"{username}:{secret}".encode("utf-8")).decode("ascii")
        self.headers["Authorization"] = "Basic " + credentials

    def _send(self, method: str, data: Union[FalcoPayload, dict]) -> None:
        if isinstance(data, FalcoPayload):
            body = data.to_json().encode("utf-8")
        else:
            body = json.dumps(data, separators=(",", ":")).encode("utf-8")
        headers = {**self.headers, "Content-Type": self.content_type}
        try:
            status = self._transport(method, self.endpoint_url, body, headers)
        except OSError as exc:
            raise DeliveryError(f"{method} {self.endpoint_url}: {exc}") from exc
        if not 200 <= status < 300:
            raise DeliveryError(f"{method} {self.endpoint_url}: HTTP status {status}")

    def _count(self, destination: str, status: str) -> None:
        if self._count_metric is not None:
            self._count_metric(
                _OUTPUTS_METRIC, 1, [f"output:{destination}", f"status:{status}"]
            )

    def _succeeded(self, destination: str) -> None:
        self._count(destination, OK)
        self.stats.add("outputs." + destination, OK)

    def _failed(self, destination: str, service: str, exc: BaseException) -> None:
        self._count(destination, ERROR)
        self.stats.add("outputs." + destination, ERROR)
        log.error("%s - %s", service, exc)

    def _deliver(self, destination: str, service: str, method: str, data: Any) -> None:
        try:
            self._send(method, data)
        except DeliveryError as exc:
            self._failed(destination, service, exc)
            return
        self._succeeded(destination)

    def webhook_post(self, payload: FalcoPayload) -> None:
        """Send an event to the webhook, with PUT or POST as configured."""
        self.stats.add("outputs.webhook", TOTAL)
        webhook = self.config.webhook
        method = HTTP_PUT if webhook.method.upper() == HTTP_PUT else HTTP_POST
        with self._lock:
            for name, value in webhook.custom_headers.items():
                self.add_header(name, value)
            self._deliver("webhook", "WebHook", method, payload)

    def tekton_post(self, payload: FalcoPayload) -> None:
        """Send an event to a Tekton event listener."""
        self.stats.add("outputs.tekton", TOTAL)
        with self._lock:
            self._deliver("tekton", "Tekton", HTTP_POST, payload)

    def webui_post(
        self, payload: FalcoPayload, enabled_outputs: Optional[Iterable[str]]
    ) -> None:
        """Send an event and the enabled outputs to the web UI."""
        self.stats.add("outputs.webui", TOTAL)
        with self._lock:
            self._deliver("webui", "WebUI", HTTP_POST, webui_payload(payload, enabled_outputs))

    def zincsearch_post(self, payload: FalcoPayload) -> None:
        """Send an event to Zincsearch, with basic auth when credentials are set."""
        self.stats.add("outputs.zincsearch", TOTAL)
        zinc = self.config.zincsearch
        with self._lock:
            if zinc.username and zinc.password:
                self.basic_auth(zinc.username, zinc.password)
            log.debug("Zincsearch - %s", self.endpoint_url)
            self._deliver("zincsearch", "Zincsearch", HTTP_POST, payload)

    def redis_post(self, payload: FalcoPayload, redis: RedisWriter) -> None:
        """Store an event in Redis, in a hash keyed by UUID or at the end of a list.

        A failed write is counted as an error, and the delivery is counted as
        successful all the same.
        """
        self.stats.add("outputs.redis", TOTAL)
        settings = self.config.redis
        body = payload.to_json().encode("utf-8")
        try:
            if settings.storage_type.lower() == "hashmap":
                redis.hset(settings.key, payload.uuid, body)
            else:
                redis.rpush(settings.key, body)
        except Exception as exc:  # the client may fail in any way
            self._failed("redis", "Redis", exc)
        self._succeeded("redis")

    def rabbitmq_publish(self, payload: FalcoPayload, channel: MessageChannel) -> None:
        """Publish an event to the configured RabbitMQ queue."""
        self.stats.add("outputs.rabbitmq", TOTAL)
        body = payload.to_json().encode("utf-8")
        try:
            channel.publish("", self.config.rabbitmq.queue, body, "text/plain")
        except Exception as exc:  # the channel may fail in any way
            self._failed("rabbitmq", "RabbitMQ", exc)
            return
        log.info("RabbitMQ - Send to message OK")
        self._succeeded("rabbitmq")

    def wavefront_post(
        self, payload: FalcoPayload, sender: Optional[WavefrontSender]
    ) -> None:
        """Report an event to Wavefront as a metric point and flush it."""
        tags = wavefront_tags(payload)
        self.stats.add("outputs.wavefront", TOTAL)
        if sender is None:
            return
        try:
            sender.send_metric(
                self.config.wavefront.metric_name,
                1,
                _unix_nanos(payload.time),
                WAVEFRONT_SOURCE,
                tags,
            )
        except Exception as exc:  # the sender may fail in any way
            self.stats.add("outputs.wavefront", ERROR)
            log.error("Wavefront - Unable to send event %s: %s", payload.rule, exc)
            return
        try:
            sender.flush()
        except Exception as exc:  # the sender may fail in any way
            self.stats.add("outputs.wavefront", ERROR)
            log.error("Wavefront - Unable to flush event %s: %s", payload.rule, exc)
            return
        self.stats.add("outputs.wavefront", OK)
        log.info("Wavefront - Send Event OK %s", payload.rule)