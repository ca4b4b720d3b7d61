"""Telegram MarkdownV2 message payloads."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sidekick.config import Configuration
from sidekick.payload import FalcoPayload, format_go_time
from sidekick.priority import Priority

__all__ = ["TelegramPayload", "markdown_v2_escape", "render_telegram_text", "new_telegram_payload"]

_ESCAPES = str.maketrans({char: "\\" + char for char in "_*[]()~`>#+-=|{}.!"})


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    number = Decimal(repr(value)).normalize()
    exponent = number.adjusted()
    if -4 <= exponent < 21:
        return format(number, "f")
    sign, digits, _ = number.as_tuple()
    text = "".join(str(digit) for digit in digits)
    mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
    exp_sign = "-" if exponent < 0 else "+"
    return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(exponent):02d}"


def _go_value(value: Any) -> str:
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
    if isinstance(value, dict):
        items = " ".join(f"{_go_value(key)}:{_go_value(value[key])}" for key in sorted(value))
        return f"map[{items}]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_go_value(item) for item in value) + "]"
    return str(value)


def markdown_v2_escape(value: Any) -> str:
    """Render ``value`` as text and escape the characters MarkdownV2 reserves."""
    return _go_value(value).translate(_ESCAPES)


def render_telegram_text(payload: FalcoPayload) -> str:
    """The MarkdownV2 message body for an event."""
    esc = markdown_v2_escape
    tags = "".join(f"{esc(tag)} " for tag in payload.tags)
    fields = "".join(
        f"\t  • *{esc(key)}*: {esc(payload.output_fields[key])}\n"
        for key in sorted(payload.output_fields)
    )
    return (
        f"*\\[Falco\\] \\[{esc(payload.priority)}\\] {esc(payload.rule)}*\n"
        "\n"
        f"• *Time*: {esc(format_go_time(payload.time))}\n"
        f"• *Source*: {esc(payload.source)}\n"
        f"• *Hostname*: {esc(payload.hostname)}\n"
        f"• *Tags*: {tags}\n"
        "• *Fields*:\n"
        f"{fields}"
        "\n"
        "\n"
        f"**Output**: {esc(payload.output)}\n"
    )


@dataclass
class TelegramPayload:
    """A sendMessage request for the Telegram bot API."""

    text: str = ""
    parse_mode: str = ""
    disable_web_page_preview: bool = False
    chat_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        """The JSON-ready mapping, with empty members left out."""
        data: dict[str, Any] = {}
        if self.text:
            data["text"] = self.text
        if self.parse_mode:
            data["parse_mode"] = self.parse_mode
        if self.disable_web_page_preview:
            data["disable_web_page_preview"] = True
        if self.chat_id:
            data["chat_id"] = self.chat_id
        return data


def new_telegram_payload(payload: FalcoPayload, config: Configuration) -> TelegramPayload:
    """Build the Telegram message for an event."""
    return TelegramPayload(
        text=render_telegram_text(payload),
        parse_mode="MarkdownV2",
        disable_web_page_preview=True,
        chat_id=config.telegram.chat_id,
    )