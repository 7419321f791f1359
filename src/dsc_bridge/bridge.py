"""The cooperative scheduling loop tying the decoder, publisher and router together.

One tick, in order:

1. service the broker connection (at most one connect attempt)
2. let the decoder drain pending Keybus traffic
3. on a decoder status signal (or markers left by a failed scan) run the
   status scan
4. route inbound set-topic messages and issue accepted panel writes
5. advance the reconnect timer

Nothing in a tick blocks; the loop sleeps only between ticks.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

from dsc_bridge.correlation import tick_label, trace_scope
from dsc_bridge.logging_abstraction import get_logger
from dsc_bridge.metrics import registry
from dsc_bridge.mqtt.command_routing import CommandRouter
from dsc_bridge.mqtt.state_updates import StatusPublisher
from dsc_bridge.panel.writer import WriteDispatcher
from dsc_bridge.topics import TopicSet
from dsc_bridge.transport.connection_manager import ConnectionSupervisor

if TYPE_CHECKING:
    from collections.abc import Callable

    from dsc_bridge.structs import BridgeEnv, BusTransportProtocol, KeybusDecoderProtocol

logger = get_logger(__name__)


class DscBridge:
    """Owns one decoder/transport pair and runs the tick loop over them."""

    lp: str = "bridge:"

    def __init__(
        self,
        env: BridgeEnv,
        decoder: KeybusDecoderProtocol,
        transport: BusTransportProtocol,
        topics: TopicSet | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.env: BridgeEnv = env
        self.decoder: KeybusDecoderProtocol = decoder
        self.transport: BusTransportProtocol = transport
        self.topics: TopicSet = topics or TopicSet(env.topic)

        self.publisher: StatusPublisher = StatusPublisher(transport, self.topics)
        self.router: CommandRouter = CommandRouter(
            decoder.status,
            self.topics,
            env.access_code,
            env.default_partition,
        )
        self.dispatcher: WriteDispatcher = WriteDispatcher(decoder, env.access_code, env.write_queue_size)
        self.supervisor: ConnectionSupervisor = ConnectionSupervisor(
            transport,
            self.topics,
            retry_interval_ms=env.reconnect_interval_ms,
            availability_interval=env.availability_interval,
            clock=clock or time.monotonic,
        )

        self.rescan_pending: bool = False
        self.tick_count: int = 0
        self.running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        for number in env.disabled_partitions:
            decoder.status.partition(number).disabled = True
            logger.info("%s Partition %s disabled by configuration", self.lp, number)

    async def tick(self) -> None:
        """Run one iteration of the scheduling loop."""
        self.tick_count += 1
        with trace_scope(tick_label(self.tick_count)):
            await self._tick()

    async def _tick(self) -> None:
        await self.supervisor.service()
        self.decoder.loop()
        status = self.decoder.status

        if status.buffer_overflow:
            status.buffer_overflow = False
            registry.record_buffer_overflow()
            logger.warning("%s Keybus buffer overflow, status updates were lost", self.lp)

        if status.status_changed or self.rescan_pending:
            status.status_changed = False
            _ = self.dispatcher.answer_access_code_prompt()
            await self.scan()

        for seq, (topic, payload) in enumerate(self.transport.drain_inbound(), start=1):
            with trace_scope(tick_label(self.tick_count, seq)):
                request = self.router.handle_inbound(topic, payload)
                if request is not None:
                    _ = self.dispatcher.submit(request)
        _ = self.dispatcher.flush()

        _ = self.supervisor.advance()

    async def scan(self) -> None:
        """Publish raised markers, keeping a rescan pending while any survive."""
        if not self.transport.is_connected:
            # Markers stay raised; publish once the broker is back
            self.rescan_pending = self.decoder.status.has_pending_changes()
            return
        clean = await self.publisher.publish_changes(self.decoder.status)
        self.rescan_pending = not clean

    async def run(self) -> None:
        """Tick until ``stop()`` is called. Unexpected errors are logged and the loop continues."""
        lp = f"{self.lp}run:"
        self.running = True
        interval = self.env.tick_interval_ms / 1000
        logger.info("%s Bridge loop started", lp, extra={"topic_prefix": self.topics.prefix})
        try:
            while not self._stop_event.is_set():
                try:
                    await self.tick()
                except Exception:
                    logger.exception("%s Unexpected error during tick", lp)
                with contextlib.suppress(TimeoutError):
                    _ = await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
        finally:
            self.running = False
            await self.transport.disconnect()
            logger.info("%s Bridge loop stopped", lp)

    def stop(self) -> None:
        self._stop_event.set()
