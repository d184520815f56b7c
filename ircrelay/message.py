"""
The relay's unit of work.

A Message is created by a connection actor whenever a forwarded
event is received, and is then passed around, unchanged, through
the hub to every other actor.
"""

import typing
from typing import Any, Dict, Tuple

import attr

if typing.TYPE_CHECKING:
    from ircrelay.irc import IRCResponse

CHANNEL_PREFIXES = "#&+!"

# root names a template may reference; see Message.fields
FIELD_NAMES = frozenset(("network", "event_code", "nick", "body", "channel", "event"))


def is_channel_name(name: str) -> bool:
    """Whether an IRC target names a channel rather than a user.

        >>> is_channel_name('#python')
        True
        >>> is_channel_name('alice')
        False
    """
    return bool(name) and name[0] in CHANNEL_PREFIXES


@attr.s(auto_attribs=True, frozen=True)
class EventFields:
    """
    The raw protocol fields of the event a Message was made from.

    Only this bounded set of fields is ever exposed to templates,
    as {event.origin}, {event.args[0]} and so on.
    """

    origin: str = ""
    user: str = ""
    host: str = ""
    command: str = ""
    args: Tuple[str, ...] = ()
    data: str = ""
    line: str = ""

    @classmethod
    def from_response(cls, response: "IRCResponse") -> "EventFields":
        return cls(
            origin=response.origin,
            user=response.user,
            host=response.host,
            command=response.kind,
            args=tuple(response.args),
            data=response.data,
            line=response.line,
        )


@attr.s(auto_attribs=True, frozen=True, repr=False)
class Message:
    network: str
    event_code: str
    nick: str = ""
    body: str = ""
    channel: str = ""
    event: EventFields = EventFields()

    @classmethod
    def from_response(
        cls, network: str, event_code: str, response: "IRCResponse"
    ) -> "Message":
        """Tags a received IRC response with its origin network.

        Arguments:
            network {str} -- The name of the network the response came from.
            event_code {str} -- The event code the response was received as.
            response {IRCResponse} -- The parsed IRC response.

        Returns:
            Message -- The new relay message.
        """

        channel = ""

        if response.args and is_channel_name(response.args[0]):
            channel = response.args[0]

        elif response.kind == "JOIN" and is_channel_name(response.data):
            # most servers send JOIN with the channel as trailing data
            channel = response.data

        return cls(
            network=network,
            event_code=event_code.upper(),
            nick=response.nick,
            body=response.data,
            channel=channel,
            event=EventFields.from_response(response),
        )

    def fields(self) -> Dict[str, Any]:
        """The fields a template may reference."""

        return {
            "network": self.network,
            "event_code": self.event_code,
            "nick": self.nick,
            "body": self.body,
            "channel": self.channel,
            "event": self.event,
        }

    def __repr__(self) -> str:
        return "{}({} from {} on {}: {})".format(
            type(self).__name__,
            self.event_code,
            self.nick or "<server>",
            self.network,
            repr(self.body),
        )
