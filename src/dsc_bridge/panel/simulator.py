"""Simulated Keybus decoder.

Stands in for the hardware decoder when no panel is attached: it owns a
``PanelStatus``, reacts to keypad writes the way a DSC panel does (exit delay,
then armed; access code disarms) and raises the same changed markers the
real decoder would. Initial state can be loaded from a YAML scenario file.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from dsc_bridge.logging_abstraction import get_logger
from dsc_bridge.structs import PanelStatus

logger = get_logger(__name__)

__all__ = ["SimulatedKeybus", "load_scenario"]

ARMING_KEYS = {"s", "w", "n"}


def load_scenario(path: Path) -> dict[str, Any]:
    """Read a YAML scenario describing the panel's initial state."""
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        msg = f"Scenario {path} must be a mapping, got {type(data).__name__}"
        raise ValueError(msg)
    return data


class SimulatedKeybus:
    """In-memory panel that implements the decoder protocol."""

    lp: str = "simulator:"

    def __init__(
        self,
        access_code: str = "",
        exit_delay_ticks: int = 100,
        write_busy_ticks: int = 1,
    ) -> None:
        self.status: PanelStatus = PanelStatus()
        self.access_code: str = access_code
        self.exit_delay_ticks: int = exit_delay_ticks
        self.write_busy_ticks: int = write_busy_ticks
        self.write_partition: int = 1
        self.writes: list[tuple[str, int]] = []
        self._tick: int = 0
        self._busy_until: int = 0
        self._scheduled: list[tuple[int, Callable[[], None]]] = []
        self._started: bool = False

    @classmethod
    def from_scenario(cls, scenario: dict[str, Any], access_code: str = "") -> SimulatedKeybus:
        sim = cls(
            access_code=access_code,
            exit_delay_ticks=int(scenario.get("exit_delay_ticks", 100)),
            write_busy_ticks=int(scenario.get("write_busy_ticks", 1)),
        )
        status = sim.status
        for number, fields in (scenario.get("partitions") or {}).items():
            partition = status.partition(int(number))
            fields = fields or {}
            partition.disabled = bool(fields.get("disabled", False))
            partition.ready = bool(fields.get("ready", True))
            mode = fields.get("armed")
            if mode:
                partition.set_armed(
                    True,
                    away=mode == "away",
                    stay=mode in ("stay", "night"),
                    no_entry_delay=mode == "night",
                )
            if fields.get("alarm"):
                partition.set_alarm(True)
            if fields.get("fire"):
                partition.set_fire(True)
        # raw bank bytes, as the panel reports them on the bus
        if scenario.get("zone_banks"):
            status.zones.load_banks([int(raw) for raw in scenario["zone_banks"]])
        if scenario.get("pgm_banks"):
            status.pgm_outputs.load_banks([int(raw) for raw in scenario["pgm_banks"]])
        for zone in scenario.get("zones_open") or []:
            status.zones.set(int(zone), True)
        for output in scenario.get("pgm_on") or []:
            status.pgm_outputs.set(int(output), True)
        if scenario.get("trouble"):
            status.set_trouble(True)
        status.status_changed = True
        return sim

    @property
    def write_ready(self) -> bool:
        return self._tick >= self._busy_until

    def _schedule(self, delay: int, action: Callable[[], None]) -> None:
        self._scheduled.append((self._tick + delay, action))

    def loop(self) -> None:
        """Advance one decoder cycle, applying any due panel reactions."""
        self._tick += 1
        if not self._started:
            self._started = True
            self.status.set_keybus_connected(True)
            self.status.status_changed = True

        due = [action for when, action in self._scheduled if when <= self._tick]
        if due:
            self._scheduled = [(when, action) for when, action in self._scheduled if when > self._tick]
            for action in due:
                action()
            self.status.status_changed = True

    def write(self, token: str, partition: int | None = None) -> None:
        if partition is not None:
            self.write_partition = partition
        target = self.write_partition
        self.writes.append((token, target))
        self._busy_until = self._tick + self.write_busy_ticks
        logger.debug("%s keys %r -> partition %s", self.lp, token, target)

        if token in ARMING_KEYS:
            self._schedule(1, lambda: self._begin_arming(target, token))
        elif token == "#":
            self._schedule(1, self._silence_trouble)
        elif token == "p":
            self._schedule(1, lambda: self.status.partition(target).set_alarm(True))
        elif self.access_code and token == self.access_code:
            self._schedule(1, lambda: self._disarm(target))

    def _begin_arming(self, number: int, key: str) -> None:
        partition = self.status.partition(number)
        if partition.armed or partition.exit_delay:
            return
        partition.set_exit_delay(True)
        self._schedule(self.exit_delay_ticks, lambda: self._finish_arming(number, key))

    def _finish_arming(self, number: int, key: str) -> None:
        partition = self.status.partition(number)
        if not partition.exit_delay:
            # Disarmed during the exit delay
            return
        partition.set_exit_delay(False)
        partition.set_armed(True, away=key == "w", stay=key in ("s", "n"), no_entry_delay=key == "n")

    def _disarm(self, number: int) -> None:
        partition = self.status.partition(number)
        if partition.exit_delay:
            partition.set_exit_delay(False)
        partition.entry_delay = False
        if partition.armed:
            partition.set_armed(False)
        if partition.alarm:
            partition.set_alarm(False)

    def _silence_trouble(self) -> None:
        if self.status.trouble:
            self.status.set_trouble(False)

    # Scenario helpers for driving the simulated panel
    def set_zone(self, zone: int, is_open: bool) -> None:
        if self.status.zones.set(zone, is_open):
            self.status.status_changed = True

    def set_pgm(self, output: int, active: bool) -> None:
        if self.status.pgm_outputs.set(output, active):
            self.status.status_changed = True
