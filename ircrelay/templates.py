"""
Event templates: the formatting of relay Messages into text.

Templates are plain Python format strings, compiled once from
the configuration, e.g.:

    "[{network}] <{nick}> {body}"

Raw event fields are available as {event.origin}, {event.args[0]},
{event.data} and so on.
"""

import logging
import re
import string
from typing import Dict, FrozenSet, Iterator, Mapping

from ircrelay.errors import ConfigError, TemplateRenderError, TemplateSyntaxError
from ircrelay.message import FIELD_NAMES, Message

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"

_ROOT_NAME = re.compile(r"[^.\[]*")
_FORMATTER = string.Formatter()


def _field_names(key: str, source: str) -> Iterator[str]:
    try:
        parsed = list(_FORMATTER.parse(source))

    except ValueError as err:
        raise TemplateSyntaxError(
            "Could not create template for '{}': {}".format(key, err)
        ) from err

    for _, field_name, format_spec, conversion in parsed:
        if field_name is None:
            continue

        if conversion not in (None, "r", "s", "a"):
            raise TemplateSyntaxError(
                "Could not create template for '{}': unknown conversion "
                "'!{}'".format(key, conversion)
            )

        yield field_name

        if format_spec:
            yield from _field_names(key, format_spec)


class CompiledTemplate:
    """
    A parsed, reusable formatter for one event code.

    Compiled templates are never mutated, and so are safely
    shared by every connection actor.
    """

    def __init__(self, key: str, source: str):
        """Parses and validates a format string.

            >>> sorted(CompiledTemplate('default', '<{nick}> {event.args[0]}').fields)
            ['event', 'nick']

        Arguments:
            key {str} -- The event code (or 'default') this template is for.
            source {str} -- The format string.

        Raises:
            TemplateSyntaxError: The format string is malformed, or refers to
                                 positional or unknown fields.
        """

        roots = set()

        for field_name in _field_names(key, source):
            root = _ROOT_NAME.match(field_name).group(0)

            if not root or root.isdigit():
                raise TemplateSyntaxError(
                    "Could not create template for '{}': positional fields "
                    "are not supported, use one of {}".format(
                        key, ", ".join(sorted(FIELD_NAMES))
                    )
                )

            if root not in FIELD_NAMES:
                raise TemplateSyntaxError(
                    "Could not create template for '{}': unknown field "
                    "'{}'".format(key, root)
                )

            roots.add(root)

        self.key = key
        self.source = source
        self.fields = frozenset(roots)  # type: FrozenSet[str]

    def render(self, message: Message) -> str:
        """Formats a Message into text.

        Raises:
            TemplateRenderError: The Message does not satisfy this template.
        """

        try:
            return self.source.format_map(message.fields())

        except (KeyError, AttributeError, IndexError, ValueError, TypeError) as err:
            raise TemplateRenderError(
                "Invalid template '{}' for {!r}: {}: {}".format(
                    self.key, message, type(err).__name__, err
                )
            ) from err

    def __repr__(self) -> str:
        return "CompiledTemplate({}: {!r})".format(self.key, self.source)


class TemplateSet:
    """All compiled templates, keyed by upper-cased event code."""

    def __init__(self, templates: Mapping[str, CompiledTemplate]):
        if DEFAULT_KEY not in templates:
            raise ConfigError(
                "No '{}' template defined; one is required as the fallback "
                "for every event code.".format(DEFAULT_KEY)
            )

        self._templates = dict(templates)  # type: Dict[str, CompiledTemplate]

    @classmethod
    def compile(cls, definition: Mapping[str, str]) -> "TemplateSet":
        """Compiles every configured format string.

            >>> templates = TemplateSet.compile({'default': '{body}', 'topic': '* {body}'})
            >>> templates.resolve('TOPIC').source
            '* {body}'
            >>> templates.resolve('PRIVMSG').key
            'default'

        Arguments:
            definition {Mapping[str, str]} -- Event code to format string. Must
                                              contain the 'default' key.

        Raises:
            TemplateSyntaxError: A format string is malformed.
            ConfigError: There is no 'default' format string.
        """

        compiled = {}

        for key, source in definition.items():
            key = DEFAULT_KEY if key.lower() == DEFAULT_KEY else key.upper()
            compiled[key] = CompiledTemplate(key, source)

        templates = cls(compiled)
        logger.debug("Compiled %d templates: %s", len(compiled), sorted(compiled))

        return templates

    @property
    def default(self) -> CompiledTemplate:
        return self._templates[DEFAULT_KEY]

    def resolve(self, event_code: str) -> CompiledTemplate:
        """Returns the template for an event code, or the default one."""

        return self._templates.get(event_code.upper(), self.default)

    def render(self, template: CompiledTemplate, message: Message) -> str:
        return template.render(message)

    def format(self, message: Message) -> str:
        """Resolves the template for a Message's event code and renders it."""

        return self.resolve(message.event_code).render(message)

    def __contains__(self, event_code: str) -> bool:
        return event_code.upper() in self._templates

    def __len__(self) -> int:
        return len(self._templates)
