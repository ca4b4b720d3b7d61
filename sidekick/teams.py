"""Microsoft Teams message card payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sidekick.config import Configuration
from sidekick.formatting import ALL, HOSTNAME, PRIORITY, RULE, SOURCE, TAGS, TEXT
from sidekick.payload import FalcoPayload, format_go_time
from sidekick.priority import Priority

__all__ = ["TeamsFact", "TeamsSection", "TeamsPayload", "new_teams_payload"]

_FACTS = "facts"

_THEME_COLORS = {
    Priority.EMERGENCY: "e20b0b",
    Priority.ALERT: "ff5400",
    Priority.CRITICAL: "ff9000",
    Priority.ERROR: "ffc700",
    Priority.WARNING: "ffff00",
    Priority.NOTICE: "5bffb5",
    Priority.INFORMATIONAL: "68c2ff",
    Priority.DEBUG: "ccfff2",
}


@dataclass
class TeamsFact:
    """A name and value shown in a card section."""

    name: str = ""
    value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass
class TeamsSection:
    """A section of a message card."""

    activity_title: str = ""
    activity_subtitle: str = ""
    activity_image: str = ""
    text: str = ""
    facts: list[TeamsFact] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "activityTitle": self.activity_title,
            "activitySubtitle": self.activity_subtitle,
        }
        if self.activity_image:
            data["activityImage"] = self.activity_image
        data["text"] = self.text
        if self.facts:
            data["facts"] = [fact.to_dict() for fact in self.facts]
        return data


@dataclass
class TeamsPayload:
    """A Teams message card."""

    type: str = "MessageCard"
    summary: str = ""
    theme_color: str = ""
    sections: list[TeamsSection] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """The JSON-ready mapping, with empty optional members left out."""
        data: dict[str, Any] = {"@type": self.type}
        if self.summary:
            data["summary"] = self.summary
        if self.theme_color:
            data["themeColor"] = self.theme_color
        data["sections"] = [section.to_dict() for section in self.sections]
        return data


def _theme_color(priority: int) -> str:
    try:
        return _THEME_COLORS.get(Priority(priority), "")
    except ValueError:
        return ""


def _facts(payload: FalcoPayload) -> list[TeamsFact]:
    facts = [
        TeamsFact(name, value)
        for name, value in payload.output_fields.items()
        if isinstance(value, str)
    ]
    facts += [
        TeamsFact(RULE, payload.rule),
        TeamsFact(PRIORITY, payload.priority.label),
        TeamsFact(SOURCE, payload.source),
    ]
    if payload.hostname:
        facts.append(TeamsFact(HOSTNAME, payload.hostname))
    if payload.tags:
        facts.append(TeamsFact(TAGS, ", ".join(payload.tags)))
    return facts


def new_teams_payload(payload: FalcoPayload, config: Configuration) -> TeamsPayload:
    """Build the Teams message card for an event."""
    teams = config.teams
    section = TeamsSection(
        activity_title="Falco Sidekick",
        activity_subtitle=format_go_time(payload.time),
        activity_image=teams.activity_image,
    )
    if teams.output_format in (ALL, TEXT, ""):
        section.text = payload.output
    if teams.output_format in (ALL, _FACTS, ""):
        section.facts = _facts(payload)

    return TeamsPayload(
        type="MessageCard",
        summary=payload.output,
        theme_color=_theme_color(payload.priority),
        sections=[section],
    )