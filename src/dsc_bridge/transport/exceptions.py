"""Exception types for the bridge.

None of these ever escape the scheduling loop: connect failures arm the
retry timer and malformed commands are dropped where they are parsed.
"""

from __future__ import annotations


class DscBridgeError(Exception):
    """Base class for bridge errors."""


class BridgeConnectionError(DscBridgeError):
    """Broker connection failed or was lost.

    Attributes:
        reason: Specific failure reason
        state: Supervisor state when the error occurred

    """

    def __init__(self, reason: str, state: str = "unknown") -> None:
        self.reason: str = reason
        self.state: str = state
        super().__init__(f"Connection error: {reason} (state: {state})")


class CommandParseError(DscBridgeError):
    """Inbound command payload could not be parsed (empty, truncated or unknown code).

    Attributes:
        payload: Raw payload as received
        reason: Why it was rejected

    """

    def __init__(self, payload: bytes, reason: str) -> None:
        self.payload: bytes = payload
        self.reason: str = reason
        super().__init__(f"Malformed command {payload[:3]!r}: {reason}")
