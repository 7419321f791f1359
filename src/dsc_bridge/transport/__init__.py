"""Broker connection supervision."""

from .connection_manager import ConnectionState, ConnectionSupervisor
from .exceptions import BridgeConnectionError, CommandParseError, DscBridgeError

__all__ = [
    "BridgeConnectionError",
    "CommandParseError",
    "ConnectionState",
    "ConnectionSupervisor",
    "DscBridgeError",
]
