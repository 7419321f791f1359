"""MQTT client core for the DSC bridge.

Wraps ``aiomqtt.Client`` behind the small transport surface the bridge needs:
connect, subscribe, publish (returning success instead of raising) and a
non-blocking drain of received messages.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import aiomqtt

from dsc_bridge.const import AVAILABLE_PAYLOAD, UNAVAILABLE_PAYLOAD
from dsc_bridge.logging_abstraction import get_logger
from dsc_bridge.transport.exceptions import BridgeConnectionError

if TYPE_CHECKING:
    from dsc_bridge.structs import BridgeEnv
    from dsc_bridge.topics import TopicSet

logger = get_logger(__name__)


class MQTTClient:
    """aiomqtt-backed bus transport."""

    lp: str = "mqtt:"

    def __init__(self, env: BridgeEnv, topics: TopicSet) -> None:
        self.env: BridgeEnv = env
        self.topics: TopicSet = topics
        self.client: aiomqtt.Client | None = None
        self.receiver_task: asyncio.Task[None] | None = None
        self.inbound: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue()
        self._connected: bool = False

    @property
    def is_connected(self) -> bool:
        """Check if MQTT client is connected to the broker."""
        return self._connected

    def _build_client(self) -> aiomqtt.Client:
        will = aiomqtt.Will(
            topic=self.topics.available,
            payload=UNAVAILABLE_PAYLOAD.encode(),
            qos=0,
            retain=True,
        )
        return aiomqtt.Client(
            hostname=self.env.mqtt_host,
            port=self.env.mqtt_port,
            username=self.env.mqtt_user,
            password=self.env.mqtt_pass,
            identifier=self.env.mqtt_client_id,
            keepalive=self.env.mqtt_keepalive,
            will=will,
        )

    async def connect(self) -> bool:
        """Single connect attempt. Returns False on failure; never raises MqttError."""
        lp = f"{self.lp}connect:"
        await self._teardown()
        logger.debug("%s Connecting to MQTT broker %s:%s...", lp, self.env.mqtt_host, self.env.mqtt_port)
        try:
            self.client = await self._open()
        except BridgeConnectionError as conn_err:
            logger.warning(
                "%s Connection failed: %s",
                lp,
                conn_err.reason,
                extra={"state": conn_err.state},
            )
            self._connected = False
            return False

        self._connected = True
        logger.info(
            "%s Connected to MQTT broker: %s port: %s",
            lp,
            self.env.mqtt_host,
            self.env.mqtt_port,
        )
        self.receiver_task = asyncio.create_task(self._receive(), name="dsc_bridge_mqtt_receiver")
        return True

    async def _open(self) -> aiomqtt.Client:
        client = self._build_client()
        try:
            _ = await client.__aenter__()
        except aiomqtt.MqttError as mqtt_err_exc:
            # -> [Errno 111] Connection refused
            # [code:134] Bad user name or password
            raise BridgeConnectionError(str(mqtt_err_exc), "connecting") from mqtt_err_exc
        return client

    async def _receive(self) -> None:
        """Move received messages into the inbound queue until the connection drops."""
        lp = f"{self.lp}rcv:"
        assert self.client is not None, "client must be initialized"
        try:
            async for message in self.client.messages:
                payload = message.payload
                if isinstance(payload, str):
                    payload = payload.encode()
                elif not isinstance(payload, bytes | bytearray):
                    payload = b""
                self.inbound.put_nowait((message.topic.value, bytes(payload)))
        except aiomqtt.MqttError as msg_err:
            logger.warning("%s MQTT connection lost: %s", lp, msg_err)
            self._connected = False

    def drain_inbound(self) -> list[tuple[str, bytes]]:
        """Return every message received since the last drain without waiting."""
        drained: list[tuple[str, bytes]] = []
        while True:
            try:
                drained.append(self.inbound.get_nowait())
            except asyncio.QueueEmpty:
                return drained

    async def subscribe(self, topic: str) -> bool:
        lp = f"{self.lp}subscribe:"
        if not self._connected or self.client is None:
            return False
        try:
            _ = await self.client.subscribe(topic, qos=0)
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] -> %s", lp, mqtt_err)
            self._connected = False
            return False
        logger.debug("%s Subscribed to %s", lp, topic)
        return True

    async def publish(self, topic: str, payload: str, retain: bool = False) -> bool:
        """Publish a message to the MQTT broker. Returns True on success."""
        lp = f"{self.lp}publish:"
        if not self._connected or self.client is None:
            return False
        try:
            _ = await self.client.publish(topic, payload.encode(), qos=0, retain=retain)
        except aiomqtt.MqttCodeError as mqtt_code_exc:
            logger.warning("%s [MqttCodeError] -> %s", lp, mqtt_code_exc)
            self._connected = False
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] -> %s", lp, mqtt_err)
            self._connected = False
        else:
            return True
        return False

    async def publish_availability(self, online: bool) -> bool:
        payload = AVAILABLE_PAYLOAD if online else UNAVAILABLE_PAYLOAD
        return await self.publish(self.topics.available, payload, retain=True)

    async def _teardown(self) -> None:
        """Stop the receiver and close any previous client session."""
        if self.receiver_task is not None and not self.receiver_task.done():
            _ = self.receiver_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.receiver_task
        self.receiver_task = None
        if self.client is not None:
            try:
                await self.client.__aexit__(None, None, None)
            except aiomqtt.MqttError as ce:
                logger.debug("%s Closing stale MQTT session failed: %s", self.lp, ce)
            self.client = None
        self._connected = False

    async def disconnect(self) -> None:
        """Publish ``offline`` and close the session cleanly (the broker skips the will)."""
        lp = f"{self.lp}disconnect:"
        if self._connected:
            _ = await self.publish_availability(False)
        await self._teardown()
        logger.info("%s Disconnected from MQTT broker", lp)
