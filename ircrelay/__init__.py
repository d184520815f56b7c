"""
ircrelay: relays chat messages between channels on several IRC
networks, so that their users share one conversation.
"""

from ircrelay.bridge import Bridge
from ircrelay.config import BridgeConfig, NetworkConfig, load_config
from ircrelay.message import Message

__all__ = ["Bridge", "BridgeConfig", "NetworkConfig", "Message", "load_config"]
