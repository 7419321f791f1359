"""Shared fixtures for unit tests.

This module provides in-memory stand-ins for the bus transport and the Keybus
decoder so the publisher, router and loop can be driven without a broker or
a panel.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from dsc_bridge.structs import BridgeEnv, PanelStatus
from dsc_bridge.topics import TopicSet

TEST_PREFIX = "alarmsys"


@dataclass
class PublishCall:
    topic: str
    payload: str
    retain: bool


class FakeTransport:
    """Bus transport that records publishes and fails on demand.

    ``fail_topics`` fails every publish to those topics; ``fail_next`` fails
    the next N publishes regardless of topic.
    """

    def __init__(self, connected: bool = True) -> None:
        self.connected: bool = connected
        self.published: list[PublishCall] = []
        self.subscriptions: list[str] = []
        self.inbound: list[tuple[str, bytes]] = []
        self.fail_topics: set[str] = set()
        self.fail_next: int = 0
        self.connect_results: list[bool] = []
        self.connect_calls: int = 0
        self.disconnect_calls: int = 0

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> bool:
        self.connect_calls += 1
        result = self.connect_results.pop(0) if self.connect_results else True
        self.connected = result
        return result

    async def subscribe(self, topic: str) -> bool:
        self.subscriptions.append(topic)
        return self.connected

    async def publish(self, topic: str, payload: str, retain: bool = False) -> bool:
        if not self.connected:
            return False
        if self.fail_next > 0:
            self.fail_next -= 1
            return False
        if topic in self.fail_topics:
            return False
        self.published.append(PublishCall(topic, payload, retain))
        return True

    def drain_inbound(self) -> list[tuple[str, bytes]]:
        drained, self.inbound = self.inbound, []
        return drained

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    def payloads_for(self, topic: str) -> list[str]:
        return [call.payload for call in self.published if call.topic == topic]


@dataclass
class FakeDecoder:
    """Keybus decoder stub with a controllable write-ready flag."""

    status: PanelStatus = field(default_factory=PanelStatus)
    ready_for_write: bool = True
    writes: list[tuple[str, int | None]] = field(default_factory=list)
    loop_calls: int = 0

    @property
    def write_ready(self) -> bool:
        return self.ready_for_write

    def loop(self) -> None:
        self.loop_calls += 1

    def write(self, token: str, partition: int | None = None) -> None:
        self.writes.append((token, partition))


class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self, start_s: int = 1000) -> None:
        self.us: int = start_s * 1_000_000

    def __call__(self) -> float:
        return self.us / 1_000_000

    def advance_ms(self, ms: int) -> None:
        self.us += ms * 1000

    def advance_us(self, us: int) -> None:
        self.us += us


@pytest.fixture
def topics() -> TopicSet:
    return TopicSet(TEST_PREFIX)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def status(decoder: FakeDecoder) -> PanelStatus:
    return decoder.status


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def env() -> BridgeEnv:
    return BridgeEnv(topic=TEST_PREFIX, access_code="1234", tick_interval_ms=1)
