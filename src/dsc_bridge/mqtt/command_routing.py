"""MQTT command routing for the set topic.

Parses ``[partition digit]<code>`` payloads into guarded keypad writes.
Guards are evaluated against the current status snapshot; a rejected or
malformed command is dropped without touching panel state, except for the
not-ready case which asks the publisher to resend the partition's real state.

Disarm and panic skip the not-ready check. A DSC partition with an open zone
reports not-ready, and it must still be possible to disarm it while armed or
in a delay; panic has no guard at all on this panel family.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dsc_bridge.logging_abstraction import get_logger
from dsc_bridge.metrics import registry
from dsc_bridge.structs import PanelCommand, WriteRequest
from dsc_bridge.transport.exceptions import CommandParseError

if TYPE_CHECKING:
    from dsc_bridge.structs import PanelStatus, PartitionStatus
    from dsc_bridge.topics import TopicSet

logger = get_logger(__name__)

__all__ = [
    "CommandRouter",
    "ParsedCommand",
    "guard_allows",
    "parse_command",
]

# Virtual keypad keys per command; disarm sends the access code instead
KEYPAD_TOKENS: dict[PanelCommand, str] = {
    PanelCommand.ARM_STAY: "s",
    PanelCommand.ARM_AWAY: "w",
    PanelCommand.ARM_NIGHT: "n",
    PanelCommand.SILENCE_TROUBLE: "#",
    PanelCommand.PANIC: "p",
}

# A partition that is not ready still accepts these
READY_EXEMPT: frozenset[PanelCommand] = frozenset({PanelCommand.DISARM, PanelCommand.PANIC})

_PARTITION_DIGITS = range(ord("1"), ord("8") + 1)


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    partition: int
    command: PanelCommand


def parse_command(payload: bytes, default_partition: int = 1) -> ParsedCommand:
    """Split a raw payload into target partition and command code.

    A leading ASCII digit 1-8 selects the partition and the command code is
    the next byte; otherwise the code is the first byte and the default
    partition is targeted. Trailing bytes are ignored.

    Raises:
        CommandParseError: payload is empty, truncated or carries an unknown code

    """
    if not payload:
        raise CommandParseError(payload, "empty payload")

    partition = default_partition
    code_index = 0
    if payload[0] in _PARTITION_DIGITS:
        partition = payload[0] - ord("0")
        code_index = 1

    if len(payload) <= code_index:
        raise CommandParseError(payload, "missing command code")

    code = chr(payload[code_index])
    try:
        command = PanelCommand(code)
    except ValueError as e:
        raise CommandParseError(payload, f"unknown command code {code!r}") from e
    return ParsedCommand(partition=partition, command=command)


def guard_allows(command: PanelCommand, partition: PartitionStatus) -> bool:
    """Check whether the partition's current state permits the transition."""
    if command is PanelCommand.PANIC:
        return True
    if command is PanelCommand.DISARM:
        return partition.armed or partition.exit_delay or partition.entry_delay
    # Arm stay / away / night and silence trouble
    return not partition.armed and not partition.exit_delay


class CommandRouter:
    """Turns inbound set-topic messages into accepted write requests."""

    lp: str = "router:"

    def __init__(
        self,
        status: PanelStatus,
        topics: TopicSet,
        access_code: str,
        default_partition: int = 1,
    ) -> None:
        """Initialize the command router.

        Args:
            status: Entity model read for guard evaluation
            topics: Topic names, used to recognise the command topic
            access_code: Code written to the panel for disarm
            default_partition: Partition targeted when the payload has no leading digit

        """
        self.status: PanelStatus = status
        self.topics: TopicSet = topics
        self.access_code: str = access_code
        self.default_partition: int = default_partition

    def _token_for(self, command: PanelCommand) -> str | None:
        if command is PanelCommand.DISARM:
            return self.access_code or None
        return KEYPAD_TOKENS[command]

    def handle_inbound(self, topic: str, payload: bytes) -> WriteRequest | None:
        """Parse and guard one inbound message.

        Returns:
            The accepted write request, or None when the message is dropped

        """
        lp = f"{self.lp}handle_inbound:"
        logger.debug("%s MQTT in: %s %r", lp, topic, payload[:3])

        if topic != self.topics.command:
            logger.debug("%s Ignoring message on unexpected topic: %s", lp, topic)
            return None

        try:
            parsed = parse_command(payload, self.default_partition)
        except CommandParseError as e:
            logger.debug("%s Dropping command: %s", lp, e)
            registry.record_command("unknown", "malformed")
            return None

        command = parsed.command
        partition = self.status.partition(parsed.partition)

        if partition.disabled:
            logger.debug("%s Partition %s is disabled, dropping %s", lp, partition.number, command.name)
            registry.record_command(command.name, "rejected")
            return None

        if command not in READY_EXEMPT and not partition.ready:
            # Roll back Home Assistant's optimistic state by republishing the current one
            partition.armed_changed = True
            self.status.status_changed = True
            logger.info(
                "%s Partition %s not ready, rejecting %s and republishing state",
                lp,
                partition.number,
                command.name,
            )
            registry.record_command(command.name, "not_ready")
            return None

        if not guard_allows(command, partition):
            logger.debug(
                "%s Guard rejected %s for partition %s",
                lp,
                command.name,
                partition.number,
                extra={
                    "armed": partition.armed,
                    "exit_delay": partition.exit_delay,
                    "entry_delay": partition.entry_delay,
                },
            )
            registry.record_command(command.name, "rejected")
            return None

        token = self._token_for(command)
        if token is None:
            logger.warning("%s No access code configured, cannot %s partition %s", lp, command.name, partition.number)
            registry.record_command(command.name, "rejected")
            return None

        logger.info("%s Accepted %s for partition %s", lp, command.name, partition.number)
        registry.record_command(command.name, "accepted")
        return WriteRequest(partition=partition.number, command=command, token=token)
