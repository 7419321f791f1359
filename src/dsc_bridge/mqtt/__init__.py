"""MQTT side of the bridge: transport client, status publisher and command routing."""

from .client import MQTTClient
from .command_routing import CommandRouter, guard_allows, parse_command
from .state_updates import StatusPublisher

__all__ = [
    "CommandRouter",
    "MQTTClient",
    "StatusPublisher",
    "guard_allows",
    "parse_command",
]
