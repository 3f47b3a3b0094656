"""
Mock Link - For testing without hardware.

Records everything written instead of sending it anywhere.
"""

import asyncio
import logging
from typing import List, Optional

from tiltdrive.encoder import get_encoder
from tiltdrive.interfaces import LinkError
from tiltdrive.types import ControlCommand, LinkStatus, WireProtocol

from .base import StatusNotifier


logger = logging.getLogger(__name__)


class MockLink(StatusNotifier):
    """
    Mock link for testing.

    Logs writes instead of sending them and can simulate write failures
    and link drops.
    """

    def __init__(
        self,
        protocol: WireProtocol = WireProtocol.LINE,
        connection_delay: float = 0.0,
    ) -> None:
        """
        Initialize mock link.

        Args:
            protocol: Wire protocol used to decode recorded writes
            connection_delay: Delay to simulate connection time
        """
        super().__init__()
        self._decoder = get_encoder(protocol)
        self._connection_delay = connection_delay

        self.writes: List[bytes] = []
        self._failures_pending = 0
        self._fail_always = False

    async def connect(self) -> bool:
        """Simulate connection"""
        logger.info("[MOCK] Connecting to vehicle")
        self._set_status(LinkStatus.CONNECTING)

        if self._connection_delay:
            await asyncio.sleep(self._connection_delay)

        self._set_status(LinkStatus.CONNECTED)
        logger.info("[MOCK] Connected successfully")
        return True

    async def disconnect(self) -> None:
        """Simulate orderly disconnection"""
        logger.info("[MOCK] Disconnecting")
        self._set_status(LinkStatus.DISCONNECTED)

    def drop(self) -> None:
        """Simulate the remote end going away"""
        logger.info("[MOCK] Link dropped")
        self._set_status(LinkStatus.DISCONNECTED)

    def fail_writes(self, count: Optional[int] = None) -> None:
        """
        Make upcoming writes fail.

        Args:
            count: Number of writes to fail, or None for all until
                fail_writes(0) is called
        """
        if count is None:
            self._fail_always = True
            self._failures_pending = 0
        else:
            self._fail_always = False
            self._failures_pending = count

    async def write(self, data: bytes) -> int:
        """Record data instead of sending it"""
        if self.status != LinkStatus.CONNECTED:
            raise LinkError("Mock link not connected")

        if self._fail_always or self._failures_pending > 0:
            if self._failures_pending > 0:
                self._failures_pending -= 1
            raise LinkError("Simulated write failure")

        self.writes.append(bytes(data))
        logger.debug(f"[MOCK] Write #{len(self.writes)}: {data!r}")
        return len(data)

    @property
    def commands(self) -> List[ControlCommand]:
        """All commands written so far, decoded"""
        return self._decoder.decode(b"".join(self.writes))

    @property
    def last_command(self) -> Optional[ControlCommand]:
        """Last command written (for testing)"""
        commands = self.commands
        return commands[-1] if commands else None

    @property
    def write_count(self) -> int:
        """Total successful writes (for testing)"""
        return len(self.writes)


__all__ = ["MockLink", "StatusNotifier"]
