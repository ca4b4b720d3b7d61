"""Slack and Rocket.Chat message payloads."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sidekick.config import Configuration, MessageTemplate
from sidekick.formatting import (
    ALL,
    DEFAULT_FOOTER,
    DEFAULT_ICON_URL,
    FIELDS,
    HOSTNAME,
    PRIORITY,
    RULE,
    SOURCE,
    TAGS,
    TEXT,
    TIME,
    priority_color,
    sorted_string_keys,
)
from sidekick.payload import FalcoPayload, format_go_time

__all__ = [
    "SlackAttachmentField",
    "SlackAttachment",
    "SlackPayload",
    "new_slack_payload",
    "new_rocketchat_payload",
]

log = logging.getLogger(__name__)

ROCKETCHAT_USERNAME = "Falcosidekick"
_SHORT_LIMIT = 36


@dataclass
class SlackAttachmentField:
    """One titled value in an attachment."""

    title: str = ""
    value: str = ""
    short: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "value": self.value, "short": self.short}


@dataclass
class SlackAttachment:
    """A coloured attachment with fields."""

    fallback: str = ""
    color: str = ""
    text: str = ""
    fields: list[SlackAttachmentField] = field(default_factory=list)
    footer: str = ""
    footer_icon: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"fallback": self.fallback, "color": self.color}
        if self.text:
            data["text"] = self.text
        data["fields"] = [item.to_dict() for item in self.fields] if self.fields else None
        if self.footer:
            data["footer"] = self.footer
        if self.footer_icon:
            data["footer_icon"] = self.footer_icon
        return data


@dataclass
class SlackPayload:
    """A message for a Slack-compatible incoming webhook."""

    text: str = ""
    username: str = ""
    icon_url: str = ""
    channel: str = ""
    attachments: list[SlackAttachment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """The JSON-ready mapping, with empty members left out."""
        data: dict[str, Any] = {}
        if self.text:
            data["text"] = self.text
        if self.username:
            data["username"] = self.username
        if self.icon_url:
            data["icon_url"] = self.icon_url
        if self.channel:
            data["channel"] = self.channel
        if self.attachments:
            data["attachments"] = [item.to_dict() for item in self.attachments]
        return data


def _wants(output_format: str, kind: str) -> bool:
    return output_format in (ALL, kind, "")


def _output_fields(payload: FalcoPayload) -> list[SlackAttachmentField]:
    return [
        SlackAttachmentField(
            key,
            payload.output_fields[key],
            len(payload.output_fields[key]) < _SHORT_LIMIT,
        )
        for key in sorted_string_keys(payload.output_fields)
    ]


def _leading_fields(payload: FalcoPayload) -> list[SlackAttachmentField]:
    return [
        SlackAttachmentField(RULE, payload.rule, True),
        SlackAttachmentField(PRIORITY, payload.priority.label, True),
        SlackAttachmentField(SOURCE, payload.source, True),
    ]


def _tags_field(payload: FalcoPayload) -> list[SlackAttachmentField]:
    if not payload.tags:
        return []
    return [SlackAttachmentField(TAGS, ", ".join(payload.tags), True)]


def _hostname_field(payload: FalcoPayload) -> list[SlackAttachmentField]:
    if not payload.hostname:
        return []
    return [SlackAttachmentField(HOSTNAME, payload.hostname, True)]


def _time_field(payload: FalcoPayload) -> SlackAttachmentField:
    return SlackAttachmentField(TIME, format_go_time(payload.time), False)


def _render_message(template: Optional[MessageTemplate], payload: FalcoPayload, service: str) -> str:
    if template is None:
        return ""
    try:
        return template(payload)
    except Exception as exc:  # a user-supplied template may fail in any way
        log.error("%s - Error expanding %s message %s", service, service, exc)
        return ""


def new_slack_payload(payload: FalcoPayload, config: Configuration) -> SlackPayload:
    """Build the Slack message for an event."""
    slack = config.slack
    attachment = SlackAttachment(fallback=payload.output)

    if _wants(slack.output_format, FIELDS):
        attachment.fields = [
            *_leading_fields(payload),
            *_hostname_field(payload),
            *_tags_field(payload),
            *_output_fields(payload),
            _time_field(payload),
        ]
        attachment.footer = slack.footer or DEFAULT_FOOTER

    if _wants(slack.output_format, TEXT):
        attachment.text = payload.output

    message = _render_message(slack.message_format_template, payload, "Slack")
    attachment.color = priority_color(payload.priority)

    return SlackPayload(
        text=message,
        username=slack.username,
        icon_url=slack.icon,
        channel=slack.channel,
        attachments=[attachment],
    )


def new_rocketchat_payload(payload: FalcoPayload, config: Configuration) -> SlackPayload:
    """Build the Rocket.Chat message for an event."""
    rocket = config.rocketchat
    attachment = SlackAttachment(fallback=payload.output)
    with_fields = _wants(rocket.output_format, FIELDS)

    if with_fields:
        attachment.fields = [
            *_leading_fields(payload),
            *_tags_field(payload),
            *_output_fields(payload),
            _time_field(payload),
            *_hostname_field(payload),
        ]

    if _wants(rocket.output_format, TEXT):
        attachment.text = payload.output

    message = _render_message(rocket.message_format_template, payload, "RocketChat")

    attachments: list[SlackAttachment] = []
    if with_fields:
        attachment.color = priority_color(payload.priority)
        attachments.append(attachment)

    return SlackPayload(
        text=message,
        username=ROCKETCHAT_USERNAME,
        icon_url=rocket.icon or DEFAULT_ICON_URL,
        attachments=attachments,
    )