"""Broker connection supervision with a non-blocking retry timer.

The supervisor never sleeps or retries in a loop. Each tick it checks the
transport once and attempts at most one connect, then ``advance()`` counts the
retry timer down by the time that actually passed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from dsc_bridge.const import AVAILABLE_PAYLOAD
from dsc_bridge.logging_abstraction import get_logger
from dsc_bridge.metrics import registry

if TYPE_CHECKING:
    from dsc_bridge.structs import BusTransportProtocol
    from dsc_bridge.topics import TopicSet

logger = get_logger(__name__)

_DEFAULT_RETRY_INTERVAL_MS = 2000


class ConnectionState(Enum):
    """Connection state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ConnectionSupervisor:
    """Keeps the bus connection alive without blocking the cooperative loop.

    Invariant: a connect attempt is made only while disconnected and while the
    retry timer reads zero; a failed attempt arms the timer with the retry
    interval.
    """

    lp: str = "supervisor:"

    def __init__(
        self,
        transport: BusTransportProtocol,
        topics: TopicSet,
        retry_interval_ms: int = _DEFAULT_RETRY_INTERVAL_MS,
        availability_interval: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the connection supervisor.

        Args:
            transport: Bus transport to connect and subscribe
            topics: Topic names (command topic is subscribed, availability announced)
            retry_interval_ms: Wait between failed connect attempts
            availability_interval: Seconds between ``online`` republishes, 0 disables
            clock: Monotonic clock in seconds, injectable for tests

        """
        self.transport: BusTransportProtocol = transport
        self.topics: TopicSet = topics
        self.retry_interval_ms: int = retry_interval_ms
        self.availability_interval: int = availability_interval
        self.clock: Callable[[], float] = clock

        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self.retry_timer_ms: int = 0
        self.connect_attempts: int = 0
        self._last_advance_ms: int = self._now_ms()
        self._last_announce: float = 0.0
        registry.record_connection_state(self.state.value)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        logger.debug("%s state %s -> %s", self.lp, self.state.value, state.value)
        self.state = state
        registry.record_connection_state(state.value)

    async def service(self) -> bool:
        """Run one supervision step. Returns True when the transport is connected afterwards."""
        lp = f"{self.lp}service:"
        if self.transport.is_connected:
            self._set_state(ConnectionState.CONNECTED)
            await self._maybe_announce()
            return True

        if self.state is ConnectionState.CONNECTED:
            logger.warning("%s MQTT connection lost, reconnecting", lp)
            self._set_state(ConnectionState.DISCONNECTED)

        if self.retry_timer_ms > 0:
            return False

        self.connect_attempts += 1
        if not await self.transport.connect():
            # countdown starts when the attempt gave up, not when it began
            self.retry_timer_ms = self.retry_interval_ms
            self._last_advance_ms = self._now_ms()
            registry.record_connect("failed")
            logger.warning(
                "%s MQTT connect attempt %d failed, retrying in %d ms",
                lp,
                self.connect_attempts,
                self.retry_interval_ms,
            )
            return False

        registry.record_connect("success")
        self.retry_timer_ms = 0
        self.connect_attempts = 0
        self._set_state(ConnectionState.CONNECTED)
        if not await self.transport.subscribe(self.topics.command):
            logger.warning("%s Subscribe to %s failed", lp, self.topics.command)
        await self._announce()
        logger.info("%s MQTT connected, listening on %s", lp, self.topics.command)
        return self.transport.is_connected

    async def _announce(self) -> None:
        if await self.transport.publish(self.topics.available, AVAILABLE_PAYLOAD, True):
            self._last_announce = self.clock()

    async def _maybe_announce(self) -> None:
        if self.availability_interval <= 0:
            return
        if self.clock() - self._last_announce >= self.availability_interval:
            logger.debug("%s Periodic availability announce", self.lp)
            await self._announce()

    def _now_ms(self) -> int:
        return round(self.clock() * 1000)

    def advance(self) -> int:
        """Count the retry timer down by the whole milliseconds elapsed since the last call."""
        now_ms = self._now_ms()
        elapsed_ms = now_ms - self._last_advance_ms
        if elapsed_ms <= 0:
            return self.retry_timer_ms
        self._last_advance_ms = now_ms
        self.retry_timer_ms = max(0, self.retry_timer_ms - elapsed_ms)
        return self.retry_timer_ms
