"""Nickname negotiation."""

from typing import Iterable, Optional, Tuple

from ircrelay.errors import ConfigError


class NickNegotiator:
    """
    Picks the nickname a connection uses, out of an ordered list of
    candidates, moving on to the next candidate every time the
    server reports the current one as already in use.

    Once every candidate was tried, negotiation wraps around to the
    first one; it never gives up.

        >>> nicks = NickNegotiator(['a', 'b', 'c'])
        >>> nicks.current
        'a'
        >>> [nicks.next_nick() for _ in range(3)]
        ['b', 'c', 'a']
    """

    def __init__(self, nicks: Iterable[str]):
        self.nicks = tuple(nicks)  # type: Tuple[str, ...]

        if not self.nicks:
            raise ConfigError("At least one nickname must be configured.")

        self._index = 0
        self._forced = None  # type: Optional[str]

    @property
    def index(self) -> int:
        return self._index

    @property
    def candidate(self) -> str:
        """The configured nickname the cursor points at."""
        return self.nicks[self._index]

    @property
    def current(self) -> str:
        """The nickname in use: the candidate, unless the server forced
        another one on the connection.
        """
        return self._forced or self.candidate

    def next_nick(self) -> str:
        """Moves on to the next candidate nickname, and returns it."""

        self._forced = None
        self._index = (self._index + 1) % len(self.nicks)
        return self.current

    def rename(self, nick: str):
        """Follows a nickname change the server made on its own, e.g. a
        services rename. Candidates move the cursor; anything else is
        used until the next negotiation.

            >>> nicks = NickNegotiator(['a', 'b'])
            >>> nicks.rename('Guest42')
            >>> nicks.current, nicks.candidate
            ('Guest42', 'a')
            >>> nicks.rename('B')
            >>> nicks.current, nicks.index
            ('b', 1)
        """

        for index, candidate in enumerate(self.nicks):
            if candidate.casefold() == nick.casefold():
                self._index = index
                self._forced = None
                return

        self._forced = nick

    def release(self):
        """Drops a forced nickname, going back to the candidate."""

        self._forced = None

    def reset(self):
        self._index = 0
        self._forced = None

    def is_self(self, nick: str) -> bool:
        """Whether a nickname is the one currently in use.

        IRC nicknames are case insensitive.

            >>> NickNegotiator(['Relay']).is_self('relay')
            True
        """
        return bool(nick) and nick.casefold() == self.current.casefold()

    def __repr__(self) -> str:
        return "NickNegotiator({!r} of {})".format(self.current, self.nicks)
