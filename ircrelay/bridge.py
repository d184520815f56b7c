"""
The Bridge: the relay hub, plus one connection actor per network.
"""

import logging
from typing import Callable, List, Optional

import trio

from ircrelay.actor import ConnectionActor
from ircrelay.config import BridgeConfig
from ircrelay.errors import RelayError
from ircrelay.hub import RelayHub
from ircrelay.irc import IRCConnection
from ircrelay.templates import TemplateSet


def _first_leaf(error: BaseException) -> BaseException:
    while isinstance(error, BaseExceptionGroup):
        error = error.exceptions[0]

    return error


class Bridge:
    def __init__(
        self,
        config: BridgeConfig,
        connection_factory: Callable[..., IRCConnection] = IRCConnection,
        logger: Optional[logging.Logger] = None,
    ):
        """Compiles the templates and sets up every actor. Nothing is
        connected yet.

        Arguments:
            config {BridgeConfig} -- The bridge configuration.

        Keyword Arguments:
            connection_factory {Callable} -- Builds the actors' connections.
                                             (default: IRCConnection)
            logger {logging.Logger} -- The logger to use. (default: this module's)

        Raises:
            ConfigError: A template is malformed, or there is no default one.
        """

        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self.templates = TemplateSet.compile(config.templates)
        self.hub = RelayHub(config.queue_size)
        self.actors = [
            ConnectionActor(network, config, self.templates, self.hub, connection_factory)
            for network in config.networks
        ]  # type: List[ConnectionActor]

    async def connect(self):
        """Connects every actor, in configuration order.

        Raises:
            ConnectionFailedError: Any network could not be reached.
        """

        for actor in self.actors:
            await actor.connect()

    async def run(self):
        """Connects every actor, then relays forever.

        Raises:
            RelayError: A fatal error happened in any actor.
        """

        await self.connect()

        self.logger.info(
            "Relaying between %s", ", ".join(actor.name for actor in self.actors)
        )

        try:
            async with trio.open_nursery() as nursery:
                nursery.start_soon(self.hub.run)

                for actor in self.actors:
                    nursery.start_soon(actor.run)

        except BaseExceptionGroup as group:
            fatal, _ = group.split(RelayError)

            if fatal is None:
                raise

            raise _first_leaf(fatal) from group

    def __repr__(self):
        return "{}({} networks)".format(type(self).__name__, len(self.actors))
