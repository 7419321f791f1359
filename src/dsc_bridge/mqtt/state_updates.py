"""MQTT state publishing for partitions, zones, PGM outputs and panel flags.

Every published dimension has its own changed marker in the entity model.
A marker is cleared only after the transport confirms the publish; a failed
publish leaves it raised so the next scan sends the same topic and payload
again.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from dsc_bridge.const import (
    ARM_AWAY_PAYLOAD,
    ARM_HOME_PAYLOAD,
    ARM_NIGHT_PAYLOAD,
    AVAILABLE_PAYLOAD,
    DISARMED_PAYLOAD,
    FLAG_OFF_PAYLOAD,
    FLAG_ON_PAYLOAD,
    PENDING_PAYLOAD,
    TRIGGERED_PAYLOAD,
    UNAVAILABLE_PAYLOAD,
)
from dsc_bridge.instrumentation import timed_async
from dsc_bridge.logging_abstraction import get_logger
from dsc_bridge.metrics import registry

if TYPE_CHECKING:
    from dsc_bridge.structs import BitBank, BusTransportProtocol, PanelStatus, PartitionStatus
    from dsc_bridge.topics import TopicSet

logger = get_logger(__name__)

__all__ = [
    "StatusPublisher",
    "alarm_payload",
    "armed_state_payload",
    "exit_delay_payload",
    "fire_payload",
]


def armed_state_payload(partition: PartitionStatus) -> str | None:
    """Payload for the armed-state dimension, or None when there is nothing to publish."""
    if partition.armed:
        if (partition.armed_away or partition.armed_stay) and partition.no_entry_delay:
            return ARM_NIGHT_PAYLOAD
        if partition.armed_away:
            return ARM_AWAY_PAYLOAD
        if partition.armed_stay:
            return ARM_HOME_PAYLOAD
        return None
    return DISARMED_PAYLOAD


def exit_delay_payload(partition: PartitionStatus) -> str | None:
    if partition.exit_delay:
        return PENDING_PAYLOAD
    if not partition.armed:
        return DISARMED_PAYLOAD
    # Armed with exit delay over: the armed-state dimension already covers it
    return None


def alarm_payload(partition: PartitionStatus, armed_state_fired: bool) -> str | None:
    """Payload for the alarm dimension.

    An alarm restore publishes ``disarmed`` only when the armed-state dimension
    did not already publish this tick, so a disarm that also ends an alarm is
    reported once.
    """
    if partition.alarm:
        return TRIGGERED_PAYLOAD
    if not armed_state_fired:
        return DISARMED_PAYLOAD
    return None


def fire_payload(partition: PartitionStatus) -> str:
    return FLAG_ON_PAYLOAD if partition.fire else FLAG_OFF_PAYLOAD


class StatusPublisher:
    """Converts raised changed markers into MQTT publishes."""

    lp: str = "publisher:"

    def __init__(self, transport: BusTransportProtocol, topics: TopicSet) -> None:
        """Initialize the status publisher.

        Args:
            transport: Bus transport used for every publish
            topics: Topic names derived from the configured prefix

        """
        self.transport: BusTransportProtocol = transport
        self.topics: TopicSet = topics
        self._reported_keybus: bool | None = None

    async def _publish(self, topic: str, payload: str, retain: bool, kind: str) -> bool:
        sent = await self.transport.publish(topic, payload, retain)
        registry.record_publish(kind, "sent" if sent else "failed")
        if sent:
            logger.debug("%s MQTT out: %s %s", self.lp, topic, payload)
        else:
            logger.debug(
                "%s publish failed, marker kept for retry: %s %s",
                self.lp,
                topic,
                payload,
            )
        return sent

    @timed_async("status_scan")
    async def publish_changes(self, status: PanelStatus) -> bool:
        """Publish every raised marker once.

        Returns:
            True when the scan left no marker raised

        """
        if status.keybus_changed:
            await self.publish_keybus_availability(status)

        if status.trouble_changed:
            await self.publish_trouble(status)

        for partition in status.active_partitions():
            if partition.has_changes:
                await self.publish_partition(partition)

        if status.zones.summary_changed:
            await self.publish_bank(status.zones, self.topics.zone_topic, "zone")

        if status.pgm_outputs.summary_changed:
            await self.publish_bank(status.pgm_outputs, self.topics.pgm_topic, "pgm")

        return not status.has_pending_changes()

    async def publish_keybus_availability(self, status: PanelStatus) -> bool:
        payload = AVAILABLE_PAYLOAD if status.keybus_connected else UNAVAILABLE_PAYLOAD
        # once per transition, not once per retried publish
        if status.keybus_connected != self._reported_keybus:
            self._reported_keybus = status.keybus_connected
            if status.keybus_connected:
                logger.info("%s Keybus connected", self.lp)
            else:
                logger.warning("%s Keybus disconnected", self.lp)
        sent = await self._publish(self.topics.available, payload, True, "available")
        if sent:
            status.keybus_changed = False
        return sent

    async def publish_trouble(self, status: PanelStatus) -> bool:
        payload = FLAG_ON_PAYLOAD if status.trouble else FLAG_OFF_PAYLOAD
        sent = await self._publish(self.topics.trouble, payload, True, "trouble")
        if sent:
            status.trouble_changed = False
        return sent

    async def publish_partition(self, partition: PartitionStatus) -> None:
        """Publish the armed-state, exit-delay, alarm and fire dimensions in that order.

        Each dimension is handled at most once per call and clears only its own
        marker. A dimension with nothing to publish counts as delivered.
        """
        topic = self.topics.partition_topic(partition.number)
        armed_state_fired = False

        if partition.armed_changed:
            payload = armed_state_payload(partition)
            if payload is None:
                partition.armed_changed = False
            else:
                armed_state_fired = True
                if await self._publish(topic, payload, True, "partition"):
                    partition.armed_changed = False

        if partition.exit_delay_changed:
            payload = exit_delay_payload(partition)
            if payload is None or await self._publish(topic, payload, True, "partition"):
                partition.exit_delay_changed = False

        if partition.alarm_changed:
            payload = alarm_payload(partition, armed_state_fired)
            if payload is None or await self._publish(topic, payload, True, "partition"):
                partition.alarm_changed = False

        if partition.fire_changed:
            fire_topic = self.topics.fire_topic(partition.number)
            if await self._publish(fire_topic, fire_payload(partition), False, "fire"):
                partition.fire_changed = False

    async def publish_bank(self, bank: BitBank, topic_for: Callable[[int], str], kind: str) -> bool:
        """Sweep a zone or PGM bank, publishing each changed bit.

        The group summary flag is cleared only when every publish in the sweep
        succeeded. Bits already delivered keep their cleared marker, so a later
        re-sweep only resends the failures.
        """
        all_sent = True
        for index in list(bank.changed_indexes()):
            payload = FLAG_ON_PAYLOAD if bank.is_set(index) else FLAG_OFF_PAYLOAD
            if await self._publish(topic_for(index), payload, True, kind):
                bank.clear_changed(index)
            else:
                all_sent = False

        if all_sent:
            bank.clear_summary()
        else:
            logger.debug("%s %s sweep incomplete, summary flag kept", self.lp, kind)
        return all_sent
