"""Entity model and typing protocols for the DSC bridge.

The panel decoder owns every status field and is the only writer of values
and of "changed" markers being raised. The bridge only reads status fields
and lowers markers once the matching publish has been acknowledged.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, Field, field_validator

from dsc_bridge.const import (
    DSC_ACCESS_CODE,
    DSC_AVAILABILITY_INTERVAL,
    DSC_DEBUG,
    DSC_DEFAULT_PARTITION,
    DSC_DISABLED_PARTITIONS,
    DSC_METRICS_PORT,
    DSC_MQTT_CLIENT_ID,
    DSC_MQTT_HOST,
    DSC_MQTT_KEEPALIVE,
    DSC_MQTT_PASS,
    DSC_MQTT_PORT,
    DSC_MQTT_USER,
    DSC_RECONNECT_INTERVAL_MS,
    DSC_TICK_INTERVAL_MS,
    DSC_TOPIC,
    DSC_WRITE_QUEUE_SIZE,
    MAX_PARTITIONS,
    MAX_PGM_OUTPUTS,
    MAX_ZONES,
    YES_ANSWER,
)

BANK_BITS = 8


class PanelCommand(StrEnum):
    """Inbound command codes accepted on the set topic."""

    ARM_STAY = "S"
    ARM_AWAY = "A"
    ARM_NIGHT = "N"
    DISARM = "D"
    SILENCE_TROUBLE = "T"
    PANIC = "P"


@dataclass(frozen=True, slots=True)
class WriteRequest:
    """A single keypad write accepted by the guard evaluator."""

    partition: int
    command: PanelCommand
    token: str


@dataclass
class PartitionStatus:
    """Status of one partition plus its per-dimension changed markers."""

    number: int
    armed: bool = False
    armed_away: bool = False
    armed_stay: bool = False
    no_entry_delay: bool = False
    exit_delay: bool = False
    entry_delay: bool = False
    alarm: bool = False
    fire: bool = False
    ready: bool = True
    disabled: bool = False

    armed_changed: bool = False
    exit_delay_changed: bool = False
    alarm_changed: bool = False
    fire_changed: bool = False

    @property
    def has_changes(self) -> bool:
        return self.armed_changed or self.exit_delay_changed or self.alarm_changed or self.fire_changed

    # Decoder-side mutators: set the value and raise the matching marker.

    def set_armed(self, armed: bool, *, away: bool = False, stay: bool = False, no_entry_delay: bool = False) -> None:
        self.armed = armed
        self.armed_away = armed and away
        self.armed_stay = armed and stay
        self.no_entry_delay = armed and no_entry_delay
        self.armed_changed = True

    def set_exit_delay(self, exit_delay: bool) -> None:
        self.exit_delay = exit_delay
        self.exit_delay_changed = True

    def set_alarm(self, alarm: bool) -> None:
        self.alarm = alarm
        self.alarm_changed = True

    def set_fire(self, fire: bool) -> None:
        self.fire = fire
        self.fire_changed = True


class BitBank:
    """Fixed-size bitset stored as 8-bit banks with a parallel changed bitset.

    Indexes are 1-based as published (zone 9 lives in bank 1, bit 0).
    ``summary_changed`` mirrors the decoder's group-level "any changed" flag.
    """

    __slots__ = ("_changed", "_values", "size", "summary_changed")

    def __init__(self, size: int) -> None:
        if size <= 0:
            msg = f"BitBank size must be positive, got {size}"
            raise ValueError(msg)
        self.size: int = size
        bank_count = (size + BANK_BITS - 1) // BANK_BITS
        self._values: list[int] = [0] * bank_count
        self._changed: list[int] = [0] * bank_count
        self.summary_changed: bool = False

    def __repr__(self) -> str:
        return f"BitBank(size={self.size}, values={self.banks()!r}, changed={self.changed_banks()!r})"

    def _locate(self, index: int) -> tuple[int, int]:
        if not 1 <= index <= self.size:
            msg = f"Index {index} out of range 1..{self.size}"
            raise IndexError(msg)
        position = index - 1
        return position // BANK_BITS, position % BANK_BITS

    def set(self, index: int, value: bool, *, force: bool = False) -> bool:
        """Decoder-side write. Returns True when the changed marker was raised."""
        group, bit = self._locate(index)
        mask = 1 << bit
        current = bool(self._values[group] & mask)
        if current == value and not force:
            return False
        if value:
            self._values[group] |= mask
        else:
            self._values[group] &= ~mask
        self._changed[group] |= mask
        self.summary_changed = True
        return True

    def is_set(self, index: int) -> bool:
        group, bit = self._locate(index)
        return bool(self._values[group] & (1 << bit))

    def is_changed(self, index: int) -> bool:
        group, bit = self._locate(index)
        return bool(self._changed[group] & (1 << bit))

    def clear_changed(self, index: int) -> None:
        group, bit = self._locate(index)
        self._changed[group] &= ~(1 << bit)

    def clear_summary(self) -> None:
        self.summary_changed = False

    def changed_indexes(self) -> Iterator[int]:
        """Yield 1-based indexes whose changed bit is set, bank by bank, bit by bit."""
        for group, changed in enumerate(self._changed):
            if not changed:
                continue
            for bit in range(BANK_BITS):
                index = group * BANK_BITS + bit + 1
                if index > self.size:
                    return
                if changed & (1 << bit):
                    yield index

    def banks(self) -> tuple[int, ...]:
        return tuple(self._values)

    def changed_banks(self) -> tuple[int, ...]:
        return tuple(self._changed)

    def load_banks(self, banks: Sequence[int]) -> None:
        """Decoder-side bulk update from raw bank bytes; raises markers on every flipped bit."""
        if len(banks) != len(self._values):
            msg = f"Expected {len(self._values)} banks, got {len(banks)}"
            raise ValueError(msg)
        for group, raw in enumerate(banks):
            # bits past the last index (PGM 15/16) are never tracked
            valid = (1 << min(BANK_BITS, self.size - group * BANK_BITS)) - 1
            flipped = (self._values[group] ^ raw) & valid
            if flipped:
                self._values[group] = raw & valid
                self._changed[group] |= flipped
                self.summary_changed = True


@dataclass
class PanelStatus:
    """Whole-panel entity model shared between the decoder and the bridge."""

    partitions: list[PartitionStatus] = field(
        default_factory=lambda: [PartitionStatus(number=n) for n in range(1, MAX_PARTITIONS + 1)],
    )
    zones: BitBank = field(default_factory=lambda: BitBank(MAX_ZONES))
    pgm_outputs: BitBank = field(default_factory=lambda: BitBank(MAX_PGM_OUTPUTS))
    trouble: bool = False
    trouble_changed: bool = False
    keybus_connected: bool = False
    keybus_changed: bool = False

    # Decoder-owned top-level flags
    status_changed: bool = False
    buffer_overflow: bool = False
    access_code_prompt: bool = False

    def partition(self, number: int) -> PartitionStatus:
        """Return the partition with the given 1-based number."""
        if not 1 <= number <= len(self.partitions):
            msg = f"Partition {number} out of range 1..{len(self.partitions)}"
            raise IndexError(msg)
        return self.partitions[number - 1]

    def active_partitions(self) -> Iterator[PartitionStatus]:
        return (p for p in self.partitions if not p.disabled)

    def set_trouble(self, trouble: bool) -> None:
        self.trouble = trouble
        self.trouble_changed = True

    def set_keybus_connected(self, connected: bool) -> None:
        self.keybus_connected = connected
        self.keybus_changed = True

    def has_pending_changes(self) -> bool:
        """True while any marker the publisher is responsible for is still raised."""
        if self.trouble_changed or self.keybus_changed:
            return True
        if self.zones.summary_changed or self.pgm_outputs.summary_changed:
            return True
        return any(p.has_changes for p in self.active_partitions())


class KeybusDecoderProtocol(Protocol):
    """Panel decoder collaborator: owns the status model and the keypad write path."""

    status: PanelStatus

    @property
    def write_ready(self) -> bool:
        """True when the decoder can accept a keypad write right now."""
        ...

    def loop(self) -> None:
        """Drain pending Keybus traffic into the status model."""
        ...

    def write(self, token: str, partition: int | None = None) -> None:
        """Queue keys on the Keybus for a 1-based partition (None keeps the current one)."""
        ...


class BusTransportProtocol(Protocol):
    """Message-bus collaborator consumed by the publisher and supervisor."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> bool: ...

    async def subscribe(self, topic: str) -> bool: ...

    async def publish(self, topic: str, payload: str, retain: bool = False) -> bool: ...

    def drain_inbound(self) -> list[tuple[str, bytes]]: ...

    async def disconnect(self) -> None: ...


class BridgeEnv(BaseModel):
    """Runtime configuration, read from environment variables.

    Built through ``from_environ()`` so values loaded from a dotenv file after
    import are honoured.
    """

    mqtt_host: str = DSC_MQTT_HOST
    mqtt_port: int = DSC_MQTT_PORT
    mqtt_user: str | None = DSC_MQTT_USER
    mqtt_pass: str | None = DSC_MQTT_PASS
    mqtt_client_id: str = DSC_MQTT_CLIENT_ID
    mqtt_keepalive: int = Field(default=DSC_MQTT_KEEPALIVE, ge=1)
    topic: str = DSC_TOPIC
    reconnect_interval_ms: int = Field(default=DSC_RECONNECT_INTERVAL_MS, ge=0)
    tick_interval_ms: int = Field(default=DSC_TICK_INTERVAL_MS, ge=1)
    availability_interval: int = Field(default=DSC_AVAILABILITY_INTERVAL, ge=0)
    access_code: str = DSC_ACCESS_CODE
    default_partition: int = Field(default=DSC_DEFAULT_PARTITION, ge=1, le=MAX_PARTITIONS)
    disabled_partitions: tuple[int, ...] = DSC_DISABLED_PARTITIONS
    write_queue_size: int = Field(default=DSC_WRITE_QUEUE_SIZE, ge=1)
    metrics_port: int = Field(default=DSC_METRICS_PORT, ge=0)
    debug: bool = DSC_DEBUG

    @field_validator("disabled_partitions")
    @classmethod
    def _check_partitions(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        for number in value:
            if not 1 <= number <= MAX_PARTITIONS:
                msg = f"Partition {number} out of range 1..{MAX_PARTITIONS}"
                raise ValueError(msg)
        return value

    @classmethod
    def from_environ(cls) -> BridgeEnv:
        """Re-evaluate environment variables; unset ones keep their defaults."""
        mapping = {
            "DSC_MQTT_HOST": "mqtt_host",
            "DSC_MQTT_PORT": "mqtt_port",
            "DSC_MQTT_USER": "mqtt_user",
            "DSC_MQTT_PASS": "mqtt_pass",
            "DSC_MQTT_CLIENT_ID": "mqtt_client_id",
            "DSC_MQTT_KEEPALIVE": "mqtt_keepalive",
            "DSC_TOPIC": "topic",
            "DSC_RECONNECT_INTERVAL_MS": "reconnect_interval_ms",
            "DSC_TICK_INTERVAL_MS": "tick_interval_ms",
            "DSC_AVAILABILITY_INTERVAL": "availability_interval",
            "DSC_ACCESS_CODE": "access_code",
            "DSC_DEFAULT_PARTITION": "default_partition",
            "DSC_WRITE_QUEUE_SIZE": "write_queue_size",
            "DSC_METRICS_PORT": "metrics_port",
        }
        values: dict[str, object] = {
            attr: os.environ[var] for var, attr in mapping.items() if os.environ.get(var)
        }
        disabled = os.environ.get("DSC_DISABLED_PARTITIONS")
        if disabled:
            values["disabled_partitions"] = tuple(int(x) for x in disabled.split(",") if x.strip().isdigit())
        debug = os.environ.get("DSC_DEBUG")
        if debug:
            values["debug"] = debug.casefold() in YES_ANSWER
        return cls.model_validate(values)
