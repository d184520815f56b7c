"""
The IRC transport. Use with great care, as IRC networks can be
rather rigid with client behavior, which includes throttling
(and is why throttling is by default enabled).
"""

import logging
from typing import Awaitable, Callable, Iterable, Iterator, Optional, Tuple

import trio

from ircrelay.errors import ConnectionFailedError, ConnectionLostError

Listener = Callable[[str, "IRCResponse"], Awaitable[None]]

# IRC lines are at most 512 bytes long, including the command and target.
IRC_SPLIT_SIZE = 300


def irc_lex_response(resp: str) -> Tuple[str, str, str, bool, Tuple[str, ...], str]:
    line = resp

    # IRCv3 message tags are not used by the relay.
    if resp.startswith("@"):
        resp = resp.split(" ", 1)[1] if " " in resp else ""

    if resp.startswith(":"):
        origin, _, resp = resp[1:].partition(" ")

    else:
        origin = ""

    tokens = iter(resp.split(" "))
    kind = next(tokens).upper()
    is_numeric = kind.isdigit() and len(kind) == 3

    args = []
    data = []

    for tok in tokens:
        if data:
            data.append(" " + tok)

        elif tok.startswith(":"):
            data.append(tok[1:])

        elif tok:
            args.append(tok)

    dataline = "".join(data)
    del data

    return (line, origin, kind, is_numeric, tuple(args), dataline)


class IRCParams:
    def __init__(self, args: Iterable[str], data: Optional[str] = None):
        self.args = tuple(args)
        self.data = data and str(data) or ""


class IRCResponse:
    def __init__(
        self,
        line: str,
        origin: str,
        is_numeric: bool,
        kind: str,
        args: Iterable[str],
        data: Optional[str] = None,
    ):
        self.line = line
        self.origin = origin
        self.is_numeric = is_numeric
        self.kind = kind
        self.params = IRCParams(args, data)

    def __repr__(self):
        return "IRCResponse({})".format(repr(self.line))

    @property
    def args(self) -> Tuple[str, ...]:
        return self.params.args

    @property
    def data(self) -> str:
        return self.params.data

    @property
    def is_user(self) -> bool:
        """Whether this response was caused by another client, rather than
        by a server.

            >>> irc_parse_response(':alice!~al@example.org QUIT :bye').is_user
            True
            >>> irc_parse_response(':zirconium.libera.chat 001 relay :Welcome').is_user
            False
        """

        if "!" in self.origin or "@" in self.origin:
            return True

        return bool(self.origin) and "." not in self.origin

    @property
    def nick(self) -> str:
        """
            >>> irc_parse_response(':alice!~al@example.org PRIVMSG #a :hi').nick
            'alice'
        """
        if not self.is_user:
            return ""

        return self.origin.split("!")[0].split("@")[0]

    @property
    def user(self) -> str:
        if "!" not in self.origin:
            return ""

        return self.origin.split("!", 1)[1].split("@")[0]

    @property
    def host(self) -> str:
        if "@" not in self.origin:
            return ""

        return self.origin.split("@", 1)[1]


def irc_parse_response(resp: str) -> Optional[IRCResponse]:
    """Parses an IRC server response, according to RFC 1459.

        >>> irc_parse_response(':zirconium.libera.chat 404 :Not Found').kind
        '404'

        >>> print(irc_parse_response(':zirconium.libera.chat IS okay :a Good Word').args[0])
        okay

        >>> irc_parse_response('PING :zirconium.libera.chat').data
        'zirconium.libera.chat'

    Arguments:
        resp {str} -- The IRC response to parse.

    Returns:
        Optional[IRCResponse] -- The parsed representation, or None if the
                                 line holds no command.
    """

    line, origin, kind, is_numeric, args, data = irc_lex_response(resp)

    if not kind:
        return None

    return IRCResponse(line, origin, is_numeric, kind, args, data)


def split_message(message: str, size: int = IRC_SPLIT_SIZE) -> Iterator[str]:
    """Splits a message into lines that fit in a PRIVMSG.

        >>> list(split_message('one\\ntwo'))
        ['one', 'two']
        >>> list(split_message('abcdef', 4))
        ['abcd', 'ef']
    """

    for line in message.splitlines():
        while line:
            yield line[:size]
            line = line[size:]


class IRCConnection:
    """A single IRC client connection."""

    def __init__(
        self,
        host: str,
        port: int = 6667,
        nickname: str = "ircrelay",
        username: str = "ircrelay",
        realname: Optional[str] = None,
        cooldown_hertz: float = 1.2,
        max_heat: int = 5,
        throttle: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        """Sets up an IRC connection.

            >>> conn = IRCConnection('abcd')
            >>> conn._heat
            0
            >>> conn.running()
            False

        Arguments:
            host {str} -- The host of the IRC server.

        Keyword Arguments:
            port {int} -- The port of the IRC server. (default: 6667)

            nickname {str} -- The nickname used by this connection. (default: 'ircrelay')

            username {str} -- The IRC user name sent on registration. (default: 'ircrelay')

            realname {str} -- The IRC 'real name' used by this connection.
                              (default: the user name)

            cooldown_hertz {float} -- How many times a second the heat of this
                                      connection goes down by one. (default: 1.2)

            max_heat {int} -- How many lines may be sent in a burst before
                              throttling commences. As many lines may wait
                              in the outgoing queue; further sends block.
                              (default: 5)

            throttle {bool} -- Whether outgoing lines are throttled. (default: True)

            logger {logging.Logger} -- The logger to use. (default: this module's)
        """

        self.host = host
        self.port = port
        self.connection = None  # type: Optional[trio.SocketStream]

        self.nickname = nickname
        self.username = username
        self.realname = realname or username

        self.cooldown_hertz = cooldown_hertz
        self.throttle = throttle
        self.logger = logger or logging.getLogger(__name__)

        self._heat = 0
        self._max_heat = max_heat
        self._out_send, self._out_receive = trio.open_memory_channel(max_heat)

        self._listeners = {}

        self._running = False
        self._stop_scope = None  # type: Optional[trio.CancelScope]

    def running(self) -> bool:
        """Returns whether this IRC connection is still up and running."""

        return self._running

    def listen(self, name: str):
        """Adds a listener for a specific kind of IRC response, e.g. 'PRIVMSG'
        or '433'. Use as a decorator generating method.

        Arguments:
            name {str} -- The command or numeric to listen for.

        Returns:
            function -- The decorator method.
        """

        def _decorator(func: Listener) -> Listener:
            self._listeners.setdefault(name.upper(), []).append(func)
            return func

        return _decorator

    async def receive_message(self, kind: str, data: any):
        """Called whenever a response is received in this connection.
        Also used to 'simulate' responses.

            >>> conn = IRCConnection('i.have.no.mouth.and.i.must.scream')
            ...
            >>> @conn.listen('PRIVMSG')
            ... async def print_received(kind, resp):
            ...     print(kind, resp.nick, resp.data)
            ...
            >>> trio.run(conn.receive_message, 'PRIVMSG',
            ...     irc_parse_response(':skynet!ai@sky.net PRIVMSG #a :AAAAAAAAA'))
            PRIVMSG skynet AAAAAAAAA

        Arguments:
            kind {str} -- The kind of response (aka name argument in listen).
            data {any} -- The response's data.
        """

        for listener in list(self._listeners.get(kind, ())):
            await listener(kind, data)

    async def connect(self):
        """Opens the underlying TCP stream.

        Raises:
            ConnectionFailedError: The server could not be reached.
        """

        try:
            self.connection = await trio.open_tcp_stream(self.host, self.port)

        except OSError as err:
            raise ConnectionFailedError(
                "Can't connect to {}:{}: {}".format(self.host, self.port, err)
            ) from err

    async def run(self):
        """Drives this connection until the server closes it, the
        stream breaks, or stop is called.
        """

        if self.connection is None:
            raise RuntimeError("Tried to run an IRC connection before connecting!")

        self._running = True

        try:
            async with trio.open_nursery() as nursery:
                self._stop_scope = nursery.cancel_scope

                if self.throttle:
                    nursery.start_soon(self._cooldown)

                nursery.start_soon(self._sender)
                nursery.start_soon(self.send_irc_handshake)

                await self._receiver()
                nursery.cancel_scope.cancel()

        finally:
            self._running = False
            self._stop_scope = None
            self._out_receive.close()
            await trio.aclose_forcefully(self.connection)

    async def stop(self):
        if self._stop_scope is not None:
            self._stop_scope.cancel()

    async def _cooldown(self):
        """
        This async loop is responsible for 'cooling' the connection
        down, at a specified frequency. It's part of the
        throttling mechanism.
        """

        while True:
            self._heat = max(self._heat - 1, 0)
            await trio.sleep(1 / self.cooldown_hertz)

    async def send(self, line: str):
        """Queues a raw IRC command (string) to be sent.
        May be throttled, and blocks while the outgoing queue is full.

        Arguments:
            line {str} -- The line to send.

        Raises:
            ConnectionLostError: The connection stopped running.
        """

        try:
            await self._out_send.send(line)

        except trio.BrokenResourceError as err:
            raise ConnectionLostError(
                "Connection to {} is closed.".format(self.host)
            ) from err

    async def _sender(self):
        """
        This async loop is responsible for sending queued lines,
        handling throttling.
        """

        async for line in self._out_receive:
            if self.throttle:
                while self._heat >= self._max_heat:
                    await trio.sleep(1 / self.cooldown_hertz)

                self._heat += 1

            try:
                await self._send(line)

            except (trio.BrokenResourceError, trio.ClosedResourceError) as err:
                self.logger.warning("Lost connection to %s while sending: %s", self.host, err)
                await self.stop()
                return

    async def _send(self, item: str):
        await self.connection.send_all(str(item).encode("utf-8") + b"\r\n")

    async def _receive(self, line: str) -> bool:
        """
        This function is called asynchronously everytime
        the connection receives a line from the remote
        host (server).

        Arguments:
            line {str} --   A single line, after being extracted from received data, and
                            stripped of its trailing CRLF.

        Returns:
            bool -- Whether the line is valid IRC data.
        """

        response = irc_parse_response(line)

        if not response:
            return False

        if response.kind == "PING":
            await self.send("PONG :{}".format(response.data or " ".join(response.args)))

        await self.receive_message(response.kind, response)

        return True

    async def _receiver(self):
        buf = b""

        try:
            async for data in self.connection:
                buf += data

                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    line = line.rstrip(b"\r").decode("utf-8", errors="replace")

                    if line:
                        await self._receive(line)

        except (trio.BrokenResourceError, trio.ClosedResourceError) as err:
            self.logger.warning("Lost connection to %s: %s", self.host, err)

    async def send_irc_handshake(self):
        """
        Sends the IRC handshake, including
        nickname, user name and real name.
        """

        await self.send("NICK " + self.nickname.split(" ")[0])
        await self.send(
            "USER {} 0 * :{}".format(self.username.split(" ")[0], self.realname)
        )

    # === IRC commands ===

    async def join(self, channel: str):
        """Joins an IRC channel

        Arguments:
            channel {str} -- The name of the channel.
        """

        await self.send("JOIN {}".format(channel))

    async def message(self, target: str, message: str):
        """Sends a message to an IRC target (nickname or channel). Long or
        multi-line messages are split into several PRIVMSGs.

        Arguments:
            target {str} -- The IRC target. Can either be another client or a channel.
            message {str} -- The message.
        """

        for line in split_message(message):
            await self.send("PRIVMSG {} :{}".format(target, line))

    async def topic(self, channel: str, topic: str):
        """Sets the topic of an IRC channel.

        Arguments:
            channel {str} -- The channel.
            topic {str} -- The new topic, on a single line.
        """

        await self.send("TOPIC {} :{}".format(channel, " ".join(topic.splitlines())))

    async def change_nick(self, nickname: str):
        """Asks the server for a new nickname.

        Arguments:
            nickname {str} -- The new nickname.
        """

        self.nickname = nickname
        await self.send("NICK {}".format(nickname))
