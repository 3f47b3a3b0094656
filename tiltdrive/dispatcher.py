"""
Dispatcher - rate-limited, de-duplicated command transmission.

The dispatcher is the consumer half of the pipeline. It:
- Ticks at a fixed 100 ms period, independent of the sensor rate
- Reads the latest computed command (latest-value, never a queue)
- Writes it only when it differs from the last successful write
- Sends one unconditional neutral command on stop
- Halts when the link drops and waits for an explicit resume

A failed write leaves the last-sent command untouched, so the same
value is retried on the next tick for as long as it stays current.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from .encoder import CommandEncoder, LineEncoder
from .interfaces import ConnectionLink, LinkError
from .types import (
    ControlCommand,
    DispatcherState,
    LinkStats,
    LinkStatus,
    TICK_INTERVAL_MS,
)


logger = logging.getLogger(__name__)


class CommandDispatcher:
    """
    Periodic transmitter between the controller and the link.

    Owns last_sent and the tick task exclusively.
    """

    def __init__(
        self,
        link: ConnectionLink,
        latest_command: Callable[[], ControlCommand],
        encoder: Optional[CommandEncoder] = None,
        tick_interval_ms: int = TICK_INTERVAL_MS,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            link: Link to write encoded commands to
            latest_command: Returns the most recently computed command
            encoder: Wire encoder (defaults to the LINE protocol)
            tick_interval_ms: Tick period
        """
        self.link = link
        self.encoder = encoder or LineEncoder()
        self.tick_interval = tick_interval_ms / 1000.0
        self.stats = LinkStats()

        self.state = DispatcherState.IDLE
        self._latest_command = latest_command
        self._last_sent: Optional[ControlCommand] = None
        self._tick_task: Optional[asyncio.Task] = None
        # Held for the whole of every link write, including the executor part
        self._write_lock = asyncio.Lock()

        self._state_callbacks: list[Callable[[DispatcherState, DispatcherState], Any]] = []

        link.add_status_callback(self._on_link_status)
        if link.status == LinkStatus.CONNECTED:
            self.stats.connected_at = time.time()

    def add_state_callback(self, callback: Callable[[DispatcherState, DispatcherState], Any]) -> None:
        """
        Register callback for state changes.

        Callback signature: callback(old_state, new_state)
        """
        self._state_callbacks.append(callback)

    @property
    def last_sent(self) -> Optional[ControlCommand]:
        """Last command successfully written, or None"""
        return self._last_sent

    @property
    def is_ticking(self) -> bool:
        """Check if the tick task is alive"""
        return self._tick_task is not None and not self._tick_task.done()

    async def start(self) -> None:
        """Begin a session: IDLE -> ACTIVE"""
        if self.state != DispatcherState.IDLE:
            logger.warning(f"start() ignored in state {self.state.value}")
            return

        self._last_sent = None
        self.stats.reset()
        if self.link.status == LinkStatus.CONNECTED:
            self.stats.connected_at = time.time()
        self._transition_to(DispatcherState.ACTIVE)

        if self.link.status == LinkStatus.CONNECTED:
            self._arm()
        else:
            logger.warning("Link not connected, dispatcher halted until resume()")
            self._transition_to(DispatcherState.HALTED)

    async def resume(self) -> bool:
        """
        Re-arm ticking after the link came back: HALTED -> ACTIVE.

        last_sent is kept, so the current command is only resent if it
        changed since the last successful write.

        Returns:
            True if ticking again
        """
        if self.state != DispatcherState.HALTED:
            logger.warning(f"resume() ignored in state {self.state.value}")
            return self.state == DispatcherState.ACTIVE

        if self.link.status != LinkStatus.CONNECTED:
            logger.warning("Cannot resume - link not connected")
            return False

        async with self._write_lock:
            # A halted loop may still be finishing its last write
            await self._cancel_tick()
            self._transition_to(DispatcherState.ACTIVE)
            self._arm()
        return True

    async def stop(self) -> None:
        """
        End the session: any state -> IDLE.

        Waits for a write already in flight, cancels the tick and, if
        connected, writes one neutral command regardless of what was sent
        before. On return the tick task is gone, the neutral command is
        the last write and last_sent is cleared.
        """
        if self.state == DispatcherState.IDLE:
            return

        async with self._write_lock:
            await self._cancel_tick()
            self._transition_to(DispatcherState.IDLE)

            if self.link.status == LinkStatus.CONNECTED:
                logger.info("Sending final neutral command")
                await self._write(ControlCommand.neutral())

            self._last_sent = None

    async def tick(self) -> bool:
        """
        Single dispatch step.

        Returns:
            True if a command was written
        """
        async with self._write_lock:
            if self.state != DispatcherState.ACTIVE:
                return False
            if self.link.status != LinkStatus.CONNECTED:
                return False

            command = self._latest_command()
            if command == self._last_sent:
                return False

            if await self._write(command):
                self._last_sent = command
                return True
            return False

    def _arm(self) -> None:
        """Start the periodic tick task"""
        self._tick_task = asyncio.create_task(self._run(), name="command-dispatcher")

    async def _run(self) -> None:
        """Tick loop - fixed period, no catch-up bursts"""
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.tick_interval

        while self.state == DispatcherState.ACTIVE:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Error in dispatcher tick: {e}", exc_info=True)

            # A slow write skips ticks instead of queueing them
            next_tick += self.tick_interval
            now = loop.time()
            if next_tick <= now:
                next_tick = now + self.tick_interval

    async def _cancel_tick(self) -> None:
        """Cancel the tick task and wait until it is gone"""
        task = self._tick_task
        self._tick_task = None
        if task is None or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _write(self, command: ControlCommand) -> bool:
        """Encode and write one command, bookkeeping only"""
        data = self.encoder.encode(command)
        try:
            written = await self.link.write(data)
        except LinkError as e:
            self.stats.write_failures += 1
            logger.warning(f"Write failed, will retry on next tick: {e}")
            return False

        self.stats.record_write(written)
        logger.debug(f"Sent {data!r} ({written} bytes)")
        return True

    def _on_link_status(self, old_status: LinkStatus, new_status: LinkStatus) -> None:
        """React to link status transitions"""
        if new_status == LinkStatus.CONNECTED:
            self.stats.connected_at = time.time()
            if self.state == DispatcherState.HALTED:
                logger.info("Link is back - call resume() to continue transmitting")
            return

        if old_status == LinkStatus.CONNECTED:
            self.stats.connected_at = None

        if self.state == DispatcherState.ACTIVE:
            logger.warning(f"Link {new_status.value}, halting dispatcher")
            self._transition_to(DispatcherState.HALTED)
            # Mid-write the loop is left to finish and exit on its own
            if self._tick_task is not None and not self._write_lock.locked():
                self._tick_task.cancel()
                self._tick_task = None

    def _transition_to(self, new_state: DispatcherState) -> None:
        """
        Transition to new state.

        Args:
            new_state: State to transition to
        """
        if new_state == self.state:
            return

        old_state = self.state
        logger.info(f"Dispatcher: {old_state.value} -> {new_state.value}")
        self.state = new_state

        for callback in self._state_callbacks:
            try:
                callback(old_state, new_state)
            except Exception as e:
                logger.error(f"Error in state callback: {e}", exc_info=True)
