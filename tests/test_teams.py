import pytest

from sidekick.config import Configuration, TeamsOutputConfig
from sidekick.payload import parse_payload
from sidekick.priority import Priority
from sidekick.teams import TeamsFact, TeamsPayload, TeamsSection, new_teams_payload

FALCO_TEST_INPUT = (
    '{"output":"This is a test from falcosidekick","priority":"Debug","rule":"Test rule",'
    '"time":"2001-01-01T01:10:00Z","output_fields":{"proc.name":"falcosidekick","proc.tty":1234},'
    '"source":"syscalls","tags":["test","example"],"hostname":"test-host"}'
)


@pytest.fixture
def event():
    return parse_payload(FALCO_TEST_INPUT)


def test_new_teams_payload(event):
    expected = TeamsPayload(
        type="MessageCard",
        summary="This is a test from falcosidekick",
        theme_color="ccfff2",
        sections=[
            TeamsSection(
                activity_title="Falco Sidekick",
                activity_subtitle="2001-01-01 01:10:00 +0000 UTC",
                activity_image="",
                text="This is a test from falcosidekick",
                facts=[
                    TeamsFact("proc.name", "falcosidekick"),
                    TeamsFact("rule", "Test rule"),
                    TeamsFact("priority", "Debug"),
                    TeamsFact("source", "syscalls"),
                    TeamsFact("hostname", "test-host"),
                    TeamsFact("tags", "test, example"),
                ],
            )
        ],
    )
    assert new_teams_payload(event, Configuration()) == expected


def test_teams_facts_format_omits_text(event):
    config = Configuration(teams=TeamsOutputConfig(output_format="facts"))
    section = new_teams_payload(event, config).sections[0]
    assert section.text == ""
    assert [fact.name for fact in section.facts][-1] == "tags"


def test_teams_text_format_omits_facts(event):
    config = Configuration(teams=TeamsOutputConfig(output_format="text"))
    result = new_teams_payload(event, config)
    assert result.sections[0].facts == []
    assert "facts" not in result.to_dict()["sections"][0]


def test_teams_activity_image(event):
    config = Configuration(teams=TeamsOutputConfig(activity_image="https://example.com/i.png"))
    data = new_teams_payload(event, config).to_dict()
    assert data["sections"][0]["activityImage"] == "https://example.com/i.png"


@pytest.mark.parametrize(
    "priority, color",
    [
        (Priority.EMERGENCY, "e20b0b"),
        (Priority.ALERT, "ff5400"),
        (Priority.CRITICAL, "ff9000"),
        (Priority.ERROR, "ffc700"),
        (Priority.WARNING, "ffff00"),
        (Priority.NOTICE, "5bffb5"),
        (Priority.INFORMATIONAL, "68c2ff"),
        (Priority.DEBUG, "ccfff2"),
    ],
)
def test_teams_theme_colors(event, priority, color):
    event.priority = priority
    assert new_teams_payload(event, Configuration()).theme_color == color


def test_teams_default_priority_has_no_color(event):
    event.priority = Priority.DEFAULT
    data = new_teams_payload(event, Configuration()).to_dict()
    assert "themeColor" not in data
    assert data["@type"] == "MessageCard"


def test_teams_no_hostname_or_tags(event):
    event.hostname = ""
    event.tags = []
    names = [fact.name for fact in new_teams_payload(event, Configuration()).sections[0].facts]
    assert "hostname" not in names
    assert "tags" not in names
    assert names[-1] == "source"