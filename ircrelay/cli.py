"""
Runs the relay from the command line:

    ircrelay config.json
"""

import argparse
import logging
from typing import Optional, Sequence

import trio

from ircrelay.bridge import Bridge
from ircrelay.config import load_config
from ircrelay.errors import RelayError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("ircrelay")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ircrelay",
        description="Relays messages between channels on several IRC networks.",
    )
    parser.add_argument("config", help="path to the JSON configuration file")

    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """The command line entry point. Returns the exit status."""

    args = parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    try:
        config = load_config(args.config)
        bridge = Bridge(config)

    except RelayError as err:
        logger.error("%s", err)
        return 1

    logger.info("Starting %r from %s", bridge, args.config)

    try:
        trio.run(bridge.run)

    except RelayError as err:
        logger.error("%s", err)
        return 1

    return 0
