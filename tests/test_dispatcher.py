"""Tests for CommandDispatcher"""

import asyncio
import time

import pytest
from tiltdrive.dispatcher import CommandDispatcher
from tiltdrive.encoder import AxisPairEncoder
from tiltdrive.interfaces import LinkError
from tiltdrive.transport import MockLink
from tiltdrive.types import ControlCommand, DispatcherState, LinkStatus


# Long enough that the background tick never fires during a test
MANUAL_TICK_MS = 60_000


class Slot:
    """Latest-value slot standing in for the controller"""

    def __init__(self, command=None):
        self.command = command or ControlCommand.neutral()

    def __call__(self):
        return self.command


def make_dispatcher(slot, link, **kwargs):
    kwargs.setdefault("tick_interval_ms", MANUAL_TICK_MS)
    return CommandDispatcher(link=link, latest_command=slot, **kwargs)


async def connected_link():
    link = MockLink()
    await link.connect()
    return link


class ThreadedLink(MockLink):
    """Mock link whose writes block in a worker thread like the real links"""

    def __init__(self, write_delay):
        super().__init__()
        self.write_delay = write_delay
        self.arrived = []

    def _send(self, data):
        time.sleep(self.write_delay)
        self.arrived.append(bytes(data))

    async def write(self, data):
        if self.status != LinkStatus.CONNECTED:
            raise LinkError("Threaded link not connected")
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send, data)
        return len(data)


def test_first_tick_sends_current_command():
    """Test unset last_sent means the first tick always writes"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(), link)
        await dispatcher.start()

        assert dispatcher.state == DispatcherState.ACTIVE
        assert dispatcher.last_sent is None
        assert await dispatcher.tick() is True
        assert link.writes == [b"T0:S90\n"]
        assert dispatcher.last_sent == ControlCommand.neutral()
        await dispatcher.stop()

    asyncio.run(scenario())


def test_unchanged_command_is_not_resent():
    """Test equal latest and last_sent produce no write"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(ControlCommand(0, 90)), link)
        await dispatcher.start()

        await dispatcher.tick()
        assert link.write_count == 1

        assert await dispatcher.tick() is False
        assert await dispatcher.tick() is False
        assert link.write_count == 1
        await dispatcher.stop()

    asyncio.run(scenario())


def test_changed_command_is_sent():
    """Test every change is written once"""
    async def scenario():
        link = await connected_link()
        slot = Slot()
        dispatcher = make_dispatcher(slot, link)
        await dispatcher.start()

        await dispatcher.tick()
        slot.command = ControlCommand(25, 100)
        await dispatcher.tick()
        await dispatcher.tick()
        slot.command = ControlCommand(30, 100)
        await dispatcher.tick()

        assert link.commands == [
            ControlCommand(0, 90),
            ControlCommand(25, 100),
            ControlCommand(30, 100),
        ]
        await dispatcher.stop()

    asyncio.run(scenario())


def test_latest_value_wins():
    """Test intermediate values between ticks are never sent"""
    async def scenario():
        link = await connected_link()
        slot = Slot()
        dispatcher = make_dispatcher(slot, link)
        await dispatcher.start()

        for throttle_pct in range(0, 60, 5):
            slot.command = ControlCommand(throttle_pct, 90)
        await dispatcher.tick()

        assert link.commands == [ControlCommand(55, 90)]
        await dispatcher.stop()

    asyncio.run(scenario())


def test_stop_sends_one_neutral_and_clears():
    """Test stop writes exactly one neutral command when connected"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(ControlCommand(40, 120)), link)
        await dispatcher.start()
        await dispatcher.tick()
        assert dispatcher.last_sent == ControlCommand(40, 120)

        await dispatcher.stop()

        assert link.commands == [ControlCommand(40, 120), ControlCommand(0, 90)]
        assert dispatcher.last_sent is None
        assert dispatcher.state == DispatcherState.IDLE
        assert dispatcher.is_ticking is False

    asyncio.run(scenario())


def test_stop_sends_neutral_even_if_neutral_was_last():
    """Test the stop command bypasses de-duplication"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(), link)
        await dispatcher.start()
        await dispatcher.tick()
        await dispatcher.stop()

        assert link.commands == [ControlCommand.neutral(), ControlCommand.neutral()]

    asyncio.run(scenario())


def test_stop_when_idle_is_noop():
    """Test stop without start writes nothing"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(), link)
        await dispatcher.stop()
        assert link.write_count == 0

    asyncio.run(scenario())


def test_write_failure_keeps_last_sent_and_retries():
    """Test failed write is retried verbatim on the next tick"""
    async def scenario():
        link = await connected_link()
        slot = Slot(ControlCommand(50, 90))
        dispatcher = make_dispatcher(slot, link)
        await dispatcher.start()

        link.fail_writes(2)
        assert await dispatcher.tick() is False
        assert await dispatcher.tick() is False
        assert dispatcher.last_sent is None
        assert dispatcher.stats.write_failures == 2

        assert await dispatcher.tick() is True
        assert link.commands == [ControlCommand(50, 90)]
        assert dispatcher.last_sent == ControlCommand(50, 90)
        assert dispatcher.stats.commands_sent == 1
        await dispatcher.stop()

    asyncio.run(scenario())


def test_write_failure_after_success_keeps_previous_last_sent():
    """Test a failed change leaves the older command as last_sent"""
    async def scenario():
        link = await connected_link()
        slot = Slot(ControlCommand(10, 90))
        dispatcher = make_dispatcher(slot, link)
        await dispatcher.start()
        await dispatcher.tick()

        slot.command = ControlCommand(20, 90)
        link.fail_writes(1)
        await dispatcher.tick()
        assert dispatcher.last_sent == ControlCommand(10, 90)

        await dispatcher.tick()
        assert dispatcher.last_sent == ControlCommand(20, 90)
        await dispatcher.stop()

    asyncio.run(scenario())


def test_link_drop_halts_dispatcher():
    """Test disconnection stops ticking without auto-resume"""
    async def scenario():
        link = await connected_link()
        slot = Slot(ControlCommand(30, 90))
        dispatcher = make_dispatcher(slot, link)
        await dispatcher.start()
        await dispatcher.tick()

        link.drop()
        assert dispatcher.state == DispatcherState.HALTED
        assert dispatcher.is_ticking is False

        slot.command = ControlCommand(60, 90)
        assert await dispatcher.tick() is False

        await link.connect()
        assert dispatcher.state == DispatcherState.HALTED
        assert await dispatcher.tick() is False
        assert link.commands == [ControlCommand(30, 90)]

        assert await dispatcher.resume() is True
        assert dispatcher.state == DispatcherState.ACTIVE
        await dispatcher.tick()
        assert link.commands == [ControlCommand(30, 90), ControlCommand(60, 90)]
        await dispatcher.stop()

    asyncio.run(scenario())


def test_resume_does_not_resend_unchanged_command():
    """Test last_sent survives a link drop"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(ControlCommand(30, 90)), link)
        await dispatcher.start()
        await dispatcher.tick()

        link.drop()
        await link.connect()
        await dispatcher.resume()

        assert await dispatcher.tick() is False
        assert link.write_count == 1
        await dispatcher.stop()

    asyncio.run(scenario())


def test_resume_requires_connection():
    """Test resume fails while the link is down"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(), link)
        await dispatcher.start()
        link.drop()

        assert await dispatcher.resume() is False
        assert dispatcher.state == DispatcherState.HALTED

        await dispatcher.stop()
        assert dispatcher.state == DispatcherState.IDLE
        assert link.write_count == 0

    asyncio.run(scenario())


def test_start_while_disconnected_is_halted():
    """Test session started without link waits for resume"""
    async def scenario():
        link = MockLink()
        dispatcher = make_dispatcher(Slot(), link)
        await dispatcher.start()
        assert dispatcher.state == DispatcherState.HALTED
        assert dispatcher.is_ticking is False
        await dispatcher.stop()

    asyncio.run(scenario())


def test_state_callbacks():
    """Test state change notifications"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(), link)
        transitions = []
        dispatcher.add_state_callback(lambda old, new: transitions.append((old, new)))

        def broken(old, new):
            raise RuntimeError("callback failure")
        dispatcher.add_state_callback(broken)

        await dispatcher.start()
        link.drop()
        await dispatcher.stop()

        assert transitions == [
            (DispatcherState.IDLE, DispatcherState.ACTIVE),
            (DispatcherState.ACTIVE, DispatcherState.HALTED),
            (DispatcherState.HALTED, DispatcherState.IDLE),
        ]

    asyncio.run(scenario())


def test_custom_encoder():
    """Test dispatcher writes with the configured encoder"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(ControlCommand(-40, 120)), link, encoder=AxisPairEncoder())
        await dispatcher.start()
        await dispatcher.tick()
        await dispatcher.stop()
        assert link.writes == [b"A-040\nD120\n", b"A+000\nD090\n"]

    asyncio.run(scenario())


def test_stats_track_bytes():
    """Test byte and command counters"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(ControlCommand(75, 90)), link)
        assert dispatcher.stats.connected_at is not None
        await dispatcher.start()
        await dispatcher.tick()
        await dispatcher.stop()

        assert dispatcher.stats.commands_sent == 2
        assert dispatcher.stats.bytes_sent == len(b"T75:S90\n") + len(b"T0:S90\n")

    asyncio.run(scenario())


def test_tick_loop_is_rate_limited():
    """Test the real 100 ms tick sends at most one command per period"""
    async def scenario():
        link = await connected_link()
        slot = Slot()
        dispatcher = CommandDispatcher(link=link, latest_command=slot)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await dispatcher.start()
        assert dispatcher.is_ticking is True

        # Change the command every 10 ms for ~350 ms
        for i in range(35):
            slot.command = ControlCommand(i % 100, 90)
            await asyncio.sleep(0.01)

        await dispatcher.stop()
        return link, loop.time() - started

    link, elapsed = asyncio.run(scenario())

    ticked = link.write_count - 1  # minus the final neutral
    assert ticked >= 1
    assert ticked <= int(elapsed / 0.1)
    assert link.last_command == ControlCommand.neutral()


def test_link_status_enum_drives_transmission():
    """Test no writes happen while the link is only connecting"""
    async def scenario():
        link = MockLink()
        dispatcher = make_dispatcher(Slot(ControlCommand(10, 90)), link)
        link._set_status(LinkStatus.CONNECTING)
        await dispatcher.start()
        assert await dispatcher.tick() is False
        assert link.write_count == 0
        await dispatcher.stop()

    asyncio.run(scenario())


def test_stop_waits_for_write_in_flight():
    """Test the final neutral lands after a slow tick write, never before it"""
    async def scenario():
        link = ThreadedLink(write_delay=0.2)
        await link.connect()
        dispatcher = CommandDispatcher(
            link=link,
            latest_command=Slot(ControlCommand(80, 150)),
            tick_interval_ms=50,
        )
        await dispatcher.start()

        # First tick fires at 50 ms and is still writing at 100 ms
        await asyncio.sleep(0.1)
        await dispatcher.stop()

        assert dispatcher.is_ticking is False
        assert dispatcher.last_sent is None
        return link

    link = asyncio.run(scenario())
    assert link.arrived == [b"T80:S150\n", b"T0:S90\n"]


def test_tick_waits_for_stop_neutral():
    """Test no tick write can follow the final neutral"""
    async def scenario():
        link = ThreadedLink(write_delay=0.05)
        await link.connect()
        slot = Slot(ControlCommand(80, 150))
        dispatcher = CommandDispatcher(link=link, latest_command=slot, tick_interval_ms=20)
        await dispatcher.start()
        await asyncio.sleep(0.1)

        slot.command = ControlCommand(-50, 30)
        await dispatcher.stop()
        await asyncio.sleep(0.1)
        return link

    link = asyncio.run(scenario())
    assert link.arrived[-1] == b"T0:S90\n"


def test_stats_restart_with_each_session():
    """Test counters cover the current session only"""
    async def scenario():
        link = await connected_link()
        dispatcher = make_dispatcher(Slot(ControlCommand(75, 90)), link)

        await dispatcher.start()
        await dispatcher.tick()
        await dispatcher.stop()
        assert dispatcher.stats.commands_sent == 2

        await dispatcher.start()
        assert dispatcher.stats.commands_sent == 0
        assert dispatcher.stats.bytes_sent == 0
        assert dispatcher.stats.connected_at is not None

        await dispatcher.tick()
        await dispatcher.stop()
        assert dispatcher.stats.commands_sent == 2

    asyncio.run(scenario())
