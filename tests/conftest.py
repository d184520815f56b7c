"""Shared fixtures and fakes for the ircrelay test suite."""

import math

import pytest
import trio

from ircrelay.config import BridgeConfig, NetworkConfig, ReconnectPolicy
from ircrelay.errors import ConnectionFailedError
from ircrelay.hub import RelayHub
from ircrelay.irc import irc_parse_response


class FakeConnection:
    """
    Stands in for an IRCConnection: records every command instead of
    sending it, and dispatches fed lines to listeners while running.
    """

    def __init__(self, host, port=6667, nickname="ircrelay", username="ircrelay",
                 realname=None, fail=False, **kwargs):
        self.host = host
        self.port = port
        self.nickname = nickname
        self.username = username
        self.realname = realname
        self.fail = fail
        self.connected = False
        self.sent = []

        self._listeners = {}
        self._lines_send, self._lines_receive = trio.open_memory_channel(math.inf)

    def listen(self, name):
        def _decorator(func):
            self._listeners.setdefault(name.upper(), []).append(func)
            return func

        return _decorator

    async def connect(self):
        if self.fail:
            raise ConnectionFailedError("Can't connect to {}: refused".format(self.host))

        self.connected = True

    async def emit(self, line):
        response = irc_parse_response(line)

        for listener in self._listeners.get(response.kind, ()):
            await listener(response.kind, response)

    def feed(self, line):
        """Queues a line to be dispatched by run; None disconnects."""

        if line is None:
            self.disconnect()

        else:
            self._lines_send.send_nowait(line)

    def disconnect(self):
        self._lines_send.close()

    async def run(self):
        async for line in self._lines_receive:
            await self.emit(line)

        self.connected = False

    async def join(self, channel):
        self.sent.append("JOIN {}".format(channel))

    async def message(self, target, message):
        self.sent.append("PRIVMSG {} :{}".format(target, message))

    async def topic(self, channel, topic):
        self.sent.append("TOPIC {} :{}".format(channel, topic))

    async def change_nick(self, nickname):
        self.nickname = nickname
        self.sent.append("NICK {}".format(nickname))


class FakeNetwork:
    """A connection factory handing out FakeConnections.

    Keeps the latest connection made to every host, and can be told to
    refuse connections to some hosts, to drop them as soon as they run,
    or to feed scripted lines.
    """

    def __init__(self, failing=(), scripts=None, dropping=()):
        self.failing = set(failing)
        self.dropping = set(dropping)
        self.scripts = dict(scripts or {})
        self.connections = {}
        self.created = []

    def __call__(self, host, port, **kwargs):
        conn = FakeConnection(host, port, fail=host in self.failing, **kwargs)

        for line in self.scripts.pop(host, ()):
            conn.feed(line)

        if host in self.dropping:
            conn.disconnect()

        self.connections[host] = conn
        self.created.append(conn)

        return conn

    def attempts(self, host):
        return len([conn for conn in self.created if conn.host == host])


class RecordingHub(RelayHub):
    """A hub that records published Messages instead of broadcasting them."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.published = []

    async def publish(self, message):
        self.published.append(message)


def make_config(**overrides):
    settings = dict(
        nicks=("relay", "relay_", "relay__"),
        username="relay",
        networks=(
            NetworkConfig("X", "x.example:6667", "#a"),
            NetworkConfig("Y", "y.example:6667", "#b"),
        ),
        forward=frozenset({"PRIVMSG", "TOPIC"}),
        templates={"default": "[{network}] <{nick}> {body}"},
        reconnect=ReconnectPolicy(min_delay=1.0, max_delay=8.0),
    )
    settings.update(overrides)

    return BridgeConfig(**settings)


@pytest.fixture
def bridge_config():
    return make_config()


@pytest.fixture
def fake_network():
    return FakeNetwork()
