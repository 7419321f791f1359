"""MQTT topic names for the bridge.

Every outbound topic hangs off ``<prefix>/get`` and the single inbound
command topic is ``<prefix>/set``. Per-entity topics append the 1-based
decimal index with no padding (``alarmsys/get/zone9``, never ``zone09``).
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["TopicSet", "build_topic"]


def build_topic(template: str, index: int) -> str:
    """Concatenate a topic template with a 1-based decimal index."""
    if index < 1:
        msg = f"Topic index must be 1-based, got {index}"
        raise ValueError(msg)
    return f"{template}{index:d}"


@dataclass(frozen=True)
class TopicSet:
    """All topics derived from one configured prefix."""

    prefix: str

    @property
    def partition(self) -> str:
        return f"{self.prefix}/get/partition"

    @property
    def fire(self) -> str:
        return f"{self.prefix}/get/fire"

    @property
    def zone(self) -> str:
        return f"{self.prefix}/get/zone"

    @property
    def pgm(self) -> str:
        return f"{self.prefix}/get/pgm"

    @property
    def trouble(self) -> str:
        return f"{self.prefix}/get/trouble"

    @property
    def available(self) -> str:
        return f"{self.prefix}/get/available"

    @property
    def command(self) -> str:
        return f"{self.prefix}/set"

    def partition_topic(self, number: int) -> str:
        return build_topic(self.partition, number)

    def fire_topic(self, number: int) -> str:
        return build_topic(self.fire, number)

    def zone_topic(self, number: int) -> str:
        return build_topic(self.zone, number)

    def pgm_topic(self, number: int) -> str:
        return build_topic(self.pgm, number)
