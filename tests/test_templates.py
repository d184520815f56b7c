"""Tests for template compilation, lookup and rendering."""

import pytest

from ircrelay.errors import ConfigError, TemplateRenderError, TemplateSyntaxError
from ircrelay.irc import irc_parse_response
from ircrelay.message import Message
from ircrelay.templates import CompiledTemplate, TemplateSet


def privmsg(line=":alice!~alice@host.example PRIVMSG #a :hi", network="X"):
    return Message.from_response(network, "PRIVMSG", irc_parse_response(line))


def test_default_template_renders_message_fields():
    templates = TemplateSet.compile({"default": "[{network}] <{nick}> {body}"})

    assert templates.format(privmsg()) == "[X] <alice> hi"


def test_resolve_falls_back_to_default():
    templates = TemplateSet.compile({"default": "{body}", "TOPIC": "* {body}"})

    assert templates.resolve("PRIVMSG") is templates.default
    assert templates.resolve("NOTICE").key == "default"
    assert templates.resolve("TOPIC").source == "* {body}"


def test_event_codes_are_case_insensitive():
    templates = TemplateSet.compile({"Default": "{body}", "topic": "* {body}"})

    assert "TOPIC" in templates
    assert templates.resolve("Topic").source == "* {body}"
    assert templates.default.source == "{body}"


def test_missing_default_is_a_config_error():
    with pytest.raises(ConfigError, match="default"):
        TemplateSet.compile({"PRIVMSG": "{body}"})


@pytest.mark.parametrize(
    "source",
    [
        "[{network] {body}",
        "{body}}",
        "{}",
        "{0}",
        "{password}",
        "{nick!x}",
    ],
)
def test_malformed_templates_fail_to_compile(source):
    with pytest.raises(TemplateSyntaxError):
        TemplateSet.compile({"default": source})


def test_syntax_errors_are_config_errors():
    assert issubclass(TemplateSyntaxError, ConfigError)


def test_raw_event_accessors():
    template = CompiledTemplate("PRIVMSG", "{event.user}@{event.host} -> {event.args[0]}")

    assert template.render(privmsg()) == "~alice@host.example -> #a"
    assert template.fields == frozenset({"event"})


def test_render_failure_raises():
    template = CompiledTemplate("KICK", "{nick} kicked {event.args[1]}")

    with pytest.raises(TemplateRenderError):
        template.render(privmsg())


def test_default_never_fails_for_server_events():
    templates = TemplateSet.compile({"default": "[{network}] <{nick}> {body}"})
    message = Message.from_response(
        "X", "NOTICE", irc_parse_response(":irc.example NOTICE * :Looking up your host")
    )

    assert templates.format(message) == "[X] <> Looking up your host"


def test_render_through_template_set():
    templates = TemplateSet.compile({"default": "{body}", "PRIVMSG": "<{nick}> {body}"})

    assert templates.render(templates.resolve("PRIVMSG"), privmsg()) == "<alice> hi"
