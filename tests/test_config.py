"""Tests for configuration loading."""

import json

import pytest

from ircrelay.config import NetworkConfig, ReconnectPolicy, load_config, parse_config
from ircrelay.errors import ConfigError

RAW = {
    "nicks": ["relay", "relay_"],
    "username": "relay",
    "networks": [
        {"name": "X", "address": "x.example:6697", "channel": "#a"},
        {"name": "Y", "address": "y.example", "channel": "#b"},
    ],
    "forward": ["privmsg", "TOPIC"],
    "templates": {"default": "[{network}] <{nick}> {body}"},
}


def write_config(tmp_path, raw):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(raw), encoding="utf-8")
    return path


def test_load_config(tmp_path):
    config = load_config(write_config(tmp_path, RAW))

    assert config.nicks == ("relay", "relay_")
    assert config.username == "relay"
    assert config.networks == (
        NetworkConfig("X", "x.example:6697", "#a"),
        NetworkConfig("Y", "y.example", "#b"),
    )
    assert config.forward == frozenset({"PRIVMSG", "TOPIC"})
    assert config.templates["default"] == "[{network}] <{nick}> {body}"


def test_defaults():
    config = parse_config(RAW)

    assert config.queue_size == 0
    assert config.throttle is True
    assert config.reconnect == ReconnectPolicy()
    assert config.display_realname == "relay"


def test_network_address():
    x, y = parse_config(RAW).networks

    assert (x.host, x.port) == ("x.example", 6697)
    assert (y.host, y.port) == ("y.example", 6667)


def test_servers_is_accepted_for_networks():
    raw = dict(RAW)
    raw["servers"] = raw.pop("networks")

    assert [network.name for network in parse_config(raw).networks] == ["X", "Y"]


def test_optional_settings():
    raw = dict(
        RAW,
        realname="The Relay",
        queue_size=16,
        throttle=False,
        reconnect={"enabled": False, "min_delay": 1, "max_delay": 30},
    )
    config = parse_config(raw)

    assert config.display_realname == "The Relay"
    assert config.queue_size == 16
    assert config.throttle is False
    assert config.reconnect == ReconnectPolicy(False, 1.0, 30.0)


def test_reconnect_delays_are_bounded():
    policy = ReconnectPolicy(min_delay=2.0, max_delay=60.0)

    assert [policy.delay(n) for n in range(7)] == [2.0, 4.0, 8.0, 16.0, 32.0, 60.0, 60.0]


def test_unreadable_file(tmp_path):
    with pytest.raises(ConfigError, match="Can't open"):
        load_config(tmp_path / "missing.json")


def test_malformed_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"nicks": [', encoding="utf-8")

    with pytest.raises(ConfigError, match="Can't parse"):
        load_config(path)


@pytest.mark.parametrize(
    "change",
    [
        {"nicks": []},
        {"nicks": "relay"},
        {"username": 5},
        {"forward": "PRIVMSG"},
        {"templates": ["default"]},
        {"templates": {"default": 5}},
        {"queue_size": -1},
        {"reconnect": {"min_delay": 10, "max_delay": 1}},
        {"reconnect": {"min_delay": "soon"}},
        {"reconnect": {"enabled": "false"}},
        {"throttle": "false"},
        {"throttle": 0},
        {"networks": [{"name": "X", "address": "x.example"}]},
        {"networks": [
            {"name": "X", "address": "x.example", "channel": "#a"},
            {"name": "X", "address": "y.example", "channel": "#b"},
        ]},
    ],
)
def test_invalid_configs(change):
    with pytest.raises(ConfigError):
        parse_config(dict(RAW, **change))


def test_missing_key():
    raw = dict(RAW)
    del raw["username"]

    with pytest.raises(ConfigError, match="username"):
        parse_config(raw)


def test_not_an_object():
    with pytest.raises(ConfigError):
        parse_config([RAW])
