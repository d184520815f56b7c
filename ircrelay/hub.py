"""
The relay hub: the single fan-out point of the bus.

Every connection actor publishes the Messages it receives to the
hub's inbound queue. A single broadcast loop takes them out, in
arrival order, and hands each to every subscribed actor's queue,
in subscription order. The hub never drops a Message; echo
filtering is left to the actors.

With the default queue size of 0, every hand-off is a rendezvous:
an actor that stops consuming its queue stalls delivery to all
actors, not just itself. An actor stops consuming while its
connection's outgoing queue is full, so a throttled network slows
the whole bus down rather than buffering without bound.
"""

import logging
from typing import List, Optional, Tuple

import trio

from ircrelay.message import Message


class RelayHub:
    def __init__(self, queue_size: int = 0, logger: Optional[logging.Logger] = None):
        """
        Keyword Arguments:
            queue_size {int} -- The capacity of the inbound queue and of every
                                subscriber queue. (default: 0, unbuffered)
            logger {logging.Logger} -- The logger to use. (default: this module's)
        """

        self.queue_size = queue_size
        self.logger = logger or logging.getLogger(__name__)

        self._inbound_send, self._inbound_receive = trio.open_memory_channel(queue_size)
        self._outlets = []  # type: List[Tuple[str, trio.MemorySendChannel]]

    @property
    def subscribers(self) -> List[str]:
        return [name for name, _ in self._outlets]

    def subscribe(self, name: str) -> trio.MemoryReceiveChannel:
        """Adds a subscriber queue. Must be called before the hub runs.

        Arguments:
            name {str} -- The subscriber's name, for logging.

        Returns:
            trio.MemoryReceiveChannel -- The queue every published Message
                                         will be delivered to.
        """

        send_channel, receive_channel = trio.open_memory_channel(self.queue_size)
        self._outlets.append((name, send_channel))

        return receive_channel

    async def publish(self, message: Message):
        """Enqueues a Message on the inbound queue. Blocks while the
        queue is full.
        """

        await self._inbound_send.send(message)

    async def run(self):
        """The broadcast loop. Runs forever."""

        self.logger.debug("Relay hub running with subscribers %s", self.subscribers)

        async for message in self._inbound_receive:
            for name, outlet in self._outlets:
                self.logger.debug("Delivering %r to %s", message, name)
                await outlet.send(message)
