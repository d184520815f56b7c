"""
Connection actors: one per configured network.

An actor bridges a single IRC connection to the relay bus. Forwarded
events received on its connection are published to the hub, and
Messages the hub delivers are sent to its channel, unless they
originated on its own network.
"""

import logging
from typing import Callable, Optional

import trio

from ircrelay.config import BridgeConfig, NetworkConfig
from ircrelay.errors import ConnectionFailedError, ConnectionLostError
from ircrelay.hub import RelayHub
from ircrelay.irc import IRCConnection, IRCResponse
from ircrelay.message import Message
from ircrelay.nicks import NickNegotiator
from ircrelay.templates import TemplateSet

# Reconnection failures are logged as errors from this attempt on.
RECONNECT_ERROR_ATTEMPTS = 5

WELCOME = "001"
NICK = "NICK"
NICKNAME_IN_USE = "433"


class ConnectionActor:
    def __init__(
        self,
        network: NetworkConfig,
        config: BridgeConfig,
        templates: TemplateSet,
        hub: RelayHub,
        connection_factory: Callable[..., IRCConnection] = IRCConnection,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            network {NetworkConfig} -- The network this actor connects to.
            config {BridgeConfig} -- The bridge configuration.
            templates {TemplateSet} -- The compiled templates.
            hub {RelayHub} -- The hub to publish to, and subscribe on.

        Keyword Arguments:
            connection_factory {Callable} -- Builds the underlying connection.
                                             (default: IRCConnection)
            logger {logging.Logger} -- The logger to use. (default: this module's)
        """

        self.network = network
        self.config = config
        self.templates = templates
        self.hub = hub
        self.connection_factory = connection_factory
        self.logger = logger or logging.getLogger(__name__)

        self.nicks = NickNegotiator(config.nicks)
        self.inbox = hub.subscribe(network.name)
        self.connection = None  # type: Optional[IRCConnection]

        # consecutive failed or unregistered connections, for backoff
        self._failures = 0

    @property
    def name(self) -> str:
        return self.network.name

    async def connect(self):
        """Connects to this actor's network, with the current nickname.

        Raises:
            ConnectionFailedError: The network could not be reached.
        """

        self.nicks.release()

        self.logger.info(
            "[%s] Connecting to %s (%s) as %s",
            self.name,
            self.network.address,
            self.network.channel,
            self.nicks.current,
        )

        connection = self.connection_factory(
            self.network.host,
            self.network.port,
            nickname=self.nicks.current,
            username=self.config.username,
            realname=self.config.display_realname,
            throttle=self.config.throttle,
            logger=self.logger,
        )

        connection.listen(WELCOME)(self.on_welcome)
        connection.listen(NICKNAME_IN_USE)(self.on_nick_in_use)

        for event_code in sorted(self.config.forward):
            connection.listen(event_code)(self.on_forwarded)

        # after forwarding, so a relayed NICK still sees the old nickname
        connection.listen(NICK)(self.on_nick_change)

        await connection.connect()
        self.connection = connection

    # === Inbound path ===

    async def on_welcome(self, kind: str, response: IRCResponse):
        self._failures = 0

        self.logger.info("[%s] Joining %s", self.name, self.network.channel)
        await self.connection.join(self.network.channel)

    async def on_nick_in_use(self, kind: str, response: IRCResponse):
        taken = self.nicks.current
        nick = self.nicks.next_nick()

        self.logger.info(
            "[%s] Nickname %s is in use, trying %s instead", self.name, taken, nick
        )
        await self.connection.change_nick(nick)

    async def on_nick_change(self, kind: str, response: IRCResponse):
        if not self.nicks.is_self(response.nick):
            return

        nick = response.data or (response.args[0] if response.args else None)

        if not nick:
            return

        self.nicks.rename(nick)
        self.connection.nickname = self.nicks.current

        self.logger.info(
            "[%s] Nickname changed from %s to %s", self.name, response.nick, self.nicks.current
        )

    def accepts(self, response: IRCResponse, message: Message) -> bool:
        """Whether a received event should be relayed at all."""

        if self.nicks.is_self(response.nick):
            # never relay the bridge's own actions
            return False

        if response.args and self.nicks.is_self(response.args[0]):
            # private to the bridge
            return False

        if message.channel:
            return message.channel.casefold() == self.network.channel.casefold()

        return True

    async def on_forwarded(self, kind: str, response: IRCResponse):
        message = Message.from_response(self.name, kind, response)

        if not self.accepts(response, message):
            self.logger.debug("[%s] Not relaying %r", self.name, message)
            return

        self.logger.info("[%s] %s", self.name, self.templates.format(message))
        await self.hub.publish(message)

    # === Outbound path ===

    async def deliver(self, message: Message):
        """Sends a Message received from the hub to this actor's channel."""

        if message.network == self.name:
            return

        text = self.templates.format(message)

        if not text:
            return

        if self.connection is None:
            self.logger.warning(
                "[%s] Not connected, dropping %r", self.name, message
            )
            return

        channel = self.network.channel

        try:
            if message.event_code == "TOPIC":
                topic = "{} ({})".format(text, message.nick) if message.nick else text

                self.logger.info("[%s] topic %s -> %s", self.name, channel, topic)
                await self.connection.topic(channel, topic)

            else:
                self.logger.info("[%s] %s -> %s", self.name, channel, text)
                await self.connection.message(channel, text)

        except ConnectionLostError as err:
            self.logger.warning("[%s] %s Dropping %r", self.name, err, message)

    async def relay_outbound(self):
        async for message in self.inbox:
            await self.deliver(message)

    # === Supervision ===

    async def serve(self):
        """Runs the connection, reconnecting with backoff whenever it is
        lost.

        Raises:
            ConnectionFailedError: There is no connection yet, and the
                                   first attempt failed.
            ConnectionLostError: The connection was lost and reconnecting
                                 is disabled.
        """

        if self.connection is None:
            await self.connect()

        while True:
            await self.connection.run()

            self.connection = None
            self.logger.warning("[%s] Disconnected from %s", self.name, self.network.address)

            if not self.config.reconnect.enabled:
                raise ConnectionLostError(
                    "Lost connection to network {}.".format(self.name)
                )

            await self._reconnect()

    async def _reconnect(self):
        """Connects again, after a delay growing with every connection
        that failed or dropped before the server welcomed it.
        """

        policy = self.config.reconnect

        while True:
            delay = policy.delay(self._failures)

            self.logger.info("[%s] Reconnecting in %.1f seconds", self.name, delay)
            await trio.sleep(delay)

            self._failures += 1

            try:
                await self.connect()
                return

            except ConnectionFailedError as err:
                log = self.logger.warning

                if self._failures >= RECONNECT_ERROR_ATTEMPTS:
                    log = self.logger.error

                log("[%s] Reconnection attempt %d failed: %s", self.name, self._failures, err)

    async def run(self):
        """Runs both the connection and the outbound path, forever."""

        async with trio.open_nursery() as nursery:
            nursery.start_soon(self.serve)
            nursery.start_soon(self.relay_outbound)

    def __repr__(self) -> str:
        return "ConnectionActor({}: {} {})".format(
            self.name, self.network.address, self.network.channel
        )
