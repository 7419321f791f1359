"""Non-blocking keypad write path.

The decoder can only take a write when its ``write_ready`` flag is up.
Requests arriving while it is busy wait in a bounded FIFO and are issued one
per tick from ``flush()``; nothing here ever waits for the panel.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Literal

from dsc_bridge.logging_abstraction import get_logger
from dsc_bridge.metrics import registry

if TYPE_CHECKING:
    from dsc_bridge.structs import KeybusDecoderProtocol, WriteRequest

logger = get_logger(__name__)

SubmitOutcome = Literal["written", "deferred"]


class WriteDispatcher:
    """Issues accepted write requests to the decoder without blocking the loop."""

    lp: str = "writer:"

    def __init__(self, decoder: KeybusDecoderProtocol, access_code: str = "", max_pending: int = 8) -> None:
        self.decoder: KeybusDecoderProtocol = decoder
        self.access_code: str = access_code
        self.pending: deque[WriteRequest] = deque(maxlen=max(1, max_pending))

    def _write(self, request: WriteRequest) -> None:
        logger.debug(
            "%s Writing %s to partition %s",
            self.lp,
            request.command.name,
            request.partition,
        )
        self.decoder.write(request.token, request.partition)

    def submit(self, request: WriteRequest) -> SubmitOutcome:
        """Write now if the decoder is ready and nothing is queued, otherwise defer."""
        if not self.pending and self.decoder.write_ready:
            self._write(request)
            return "written"

        if len(self.pending) == self.pending.maxlen:
            dropped = self.pending.popleft()
            logger.warning(
                "%s Write queue full, dropping oldest request: %s for partition %s",
                self.lp,
                dropped.command.name,
                dropped.partition,
            )
            registry.record_command(dropped.command.name, "dropped")
        self.pending.append(request)
        registry.record_command(request.command.name, "deferred")
        logger.debug("%s Decoder busy, deferred %s (%d queued)", self.lp, request.command.name, len(self.pending))
        return "deferred"

    def flush(self) -> int:
        """Issue at most one queued write if the decoder is ready. Returns writes issued."""
        if not self.pending or not self.decoder.write_ready:
            return 0
        self._write(self.pending.popleft())
        return 1

    def answer_access_code_prompt(self) -> bool:
        """Send the access code when the panel asks for one during arming."""
        status = self.decoder.status
        if not status.access_code_prompt or not self.decoder.write_ready:
            return False
        status.access_code_prompt = False
        if not self.access_code:
            logger.warning("%s Panel requested an access code but none is configured", self.lp)
            return False
        logger.info("%s Panel requested access code, sending", self.lp)
        self.decoder.write(self.access_code)
        return True
