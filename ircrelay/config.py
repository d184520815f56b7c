"""
Bridge configuration.

The configuration is read once, from a JSON file, at startup, and
is never mutated afterwards; every record here is frozen so that it
can be shared by all connection actors without locking.
"""

import json
import logging
import os
import typing
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

import attr

from ircrelay.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6667


@attr.s(auto_attribs=True, frozen=True)
class NetworkConfig:
    """A single network the bridge connects to, and the channel it joins."""

    name: str
    address: str
    channel: str

    @property
    def host(self) -> str:
        """
            >>> NetworkConfig('x', 'irc.libera.chat:6697', '#a').host
            'irc.libera.chat'
        """
        return self._split_address()[0]

    @property
    def port(self) -> int:
        """
            >>> NetworkConfig('x', 'irc.libera.chat:6697', '#a').port
            6697
            >>> NetworkConfig('x', 'irc.libera.chat', '#a').port
            6667
        """
        return self._split_address()[1]

    def _split_address(self) -> Tuple[str, int]:
        host, sep, port = self.address.rpartition(":")

        if not sep or not port.isdigit():
            return self.address, DEFAULT_PORT

        return host, int(port)


@attr.s(auto_attribs=True, frozen=True)
class ReconnectPolicy:
    """Bounded exponential backoff used when a connection drops."""

    enabled: bool = True
    min_delay: float = 2.0
    max_delay: float = 60.0

    def delay(self, attempt: int) -> float:
        """Returns the time to wait before the given reconnection attempt.

            >>> policy = ReconnectPolicy(min_delay=2.0, max_delay=10.0)
            >>> [policy.delay(n) for n in range(5)]
            [2.0, 4.0, 8.0, 10.0, 10.0]

        Arguments:
            attempt {int} -- How many attempts failed in a row so far.

        Returns:
            float -- The delay, in seconds.
        """

        return min(self.max_delay, self.min_delay * 2 ** attempt)


@attr.s(auto_attribs=True, frozen=True)
class BridgeConfig:
    """The whole, read-only bridge configuration."""

    nicks: Tuple[str, ...]
    username: str
    networks: Tuple[NetworkConfig, ...]
    forward: FrozenSet[str]
    templates: Mapping[str, str]
    realname: Optional[str] = None
    queue_size: int = 0
    throttle: bool = True
    reconnect: ReconnectPolicy = ReconnectPolicy()

    @property
    def display_realname(self) -> str:
        return self.realname or self.username


def _require(raw: Mapping[str, Any], key: str, kind: type, where: str = "config"):
    if key not in raw:
        raise ConfigError("Missing '{}' in {}.".format(key, where))

    value = raw[key]

    if not isinstance(value, kind):
        raise ConfigError(
            "'{}' in {} must be of type {}, not {}.".format(
                key, where, kind.__name__, type(value).__name__
            )
        )

    return value


def _flag(raw: Mapping[str, Any], key: str, default: bool, where: str = "config") -> bool:
    if key not in raw:
        return default

    return _require(raw, key, bool, where)


def _parse_network(index: int, raw: Any) -> NetworkConfig:
    where = "network #{}".format(index)

    if not isinstance(raw, dict):
        raise ConfigError("{} must be an object.".format(where))

    return NetworkConfig(
        name=_require(raw, "name", str, where),
        address=_require(raw, "address", str, where),
        channel=_require(raw, "channel", str, where),
    )


def _parse_reconnect(raw: Any) -> ReconnectPolicy:
    if raw is None:
        return ReconnectPolicy()

    if not isinstance(raw, dict):
        raise ConfigError("'reconnect' must be an object.")

    try:
        policy = ReconnectPolicy(
            enabled=_flag(raw, "enabled", True, "reconnect"),
            min_delay=float(raw.get("min_delay", 2.0)),
            max_delay=float(raw.get("max_delay", 60.0)),
        )

    except (TypeError, ValueError) as err:
        raise ConfigError("Invalid reconnect delays: {}".format(err)) from err

    if policy.min_delay <= 0 or policy.max_delay < policy.min_delay:
        raise ConfigError(
            "Invalid reconnect delays: min_delay must be positive and "
            "no greater than max_delay."
        )

    return policy


def parse_config(raw: Any) -> BridgeConfig:
    """Builds a BridgeConfig out of already decoded JSON data.

    Arguments:
        raw {Any} -- The decoded JSON document.

    Raises:
        ConfigError: The document does not describe a valid bridge.

    Returns:
        BridgeConfig -- The validated configuration.
    """

    if not isinstance(raw, dict):
        raise ConfigError("The configuration must be a JSON object.")

    nicks = _require(raw, "nicks", list)

    if not nicks or not all(isinstance(nick, str) and nick for nick in nicks):
        raise ConfigError("'nicks' must be a non-empty list of non-empty strings.")

    # older configuration files call them servers
    networks_key = "networks" if "networks" in raw else "servers"
    networks = tuple(
        _parse_network(i, item)
        for i, item in enumerate(_require(raw, networks_key, list))
    )

    names = [network.name for network in networks]

    if len(set(names)) != len(names):
        raise ConfigError("Network names must be unique; got {}.".format(names))

    forward = _require(raw, "forward", list)

    if not all(isinstance(code, str) for code in forward):
        raise ConfigError("'forward' must be a list of event code strings.")

    templates = _require(raw, "templates", dict)  # type: Dict[str, Any]

    if not all(isinstance(value, str) for value in templates.values()):
        raise ConfigError("Every template must be a format string.")

    realname = raw.get("realname")

    if realname is not None and not isinstance(realname, str):
        raise ConfigError("'realname' must be a string.")

    queue_size = raw.get("queue_size", 0)

    if not isinstance(queue_size, int) or isinstance(queue_size, bool) or queue_size < 0:
        raise ConfigError("'queue_size' must be a non-negative integer.")

    return BridgeConfig(
        nicks=tuple(nicks),
        username=_require(raw, "username", str),
        networks=networks,
        forward=frozenset(code.upper() for code in forward),
        templates=dict(templates),
        realname=realname,
        queue_size=queue_size,
        throttle=_flag(raw, "throttle", True),
        reconnect=_parse_reconnect(raw.get("reconnect")),
    )


def load_config(path: typing.Union[str, os.PathLike]) -> BridgeConfig:
    """Loads the bridge configuration from a JSON file.

    Arguments:
        path {str} -- The path to the configuration file.

    Raises:
        ConfigError: The file can not be read, is not JSON, or is not a
                     valid bridge configuration.

    Returns:
        BridgeConfig -- The loaded configuration.
    """

    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)

    except OSError as err:
        raise ConfigError("Can't open config file {}: {}".format(path, err)) from err

    except ValueError as err:
        raise ConfigError("Can't parse config file {}: {}".format(path, err)) from err

    config = parse_config(raw)

    logger.debug("Loaded configuration from %s: %r", path, config)

    return config
