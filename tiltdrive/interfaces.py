"""
Core interfaces (protocols) for the external collaborators.

The motion sensor and the vehicle link are black boxes to the core:
these Protocols are the only surface the controller relies on.
"""

from typing import Any, Callable, Protocol

from .types import LinkStatus, RawMotionSample


SampleHandler = Callable[[RawMotionSample], Any]
StatusCallback = Callable[[LinkStatus, LinkStatus], Any]


class SensorUnavailableError(RuntimeError):
    """The motion sensor could not be subscribed"""


class LinkError(RuntimeError):
    """A write to the vehicle link failed"""


class MotionSource(Protocol):
    """
    Interface for motion sensors (phone stream, gamepad, scripted mock).

    Subscribing, changing rate and unsubscribing are the only
    operations the controller uses.
    """

    async def start(self, handler: SampleHandler, interval_ms: int) -> None:
        """
        Subscribe to samples.

        The handler is called once per sample, on the event loop,
        roughly every interval_ms.

        Raises:
            SensorUnavailableError: if the sensor cannot deliver samples
        """
        ...

    def set_interval(self, interval_ms: int) -> None:
        """Change the sample rate of a live subscription"""
        ...

    async def stop(self) -> None:
        """
        Unsubscribe.

        No handler call may happen after this returns.
        """
        ...


class ConnectionLink(Protocol):
    """
    Interface for the point-to-point link to the vehicle controller.

    The core never discovers or pairs devices; it only writes while the
    status is CONNECTED and watches status transitions.
    """

    async def connect(self) -> bool:
        """Open the link. Returns True once CONNECTED."""
        ...

    async def disconnect(self) -> None:
        """Close the link"""
        ...

    async def write(self, data: bytes) -> int:
        """
        Write encoded bytes to the vehicle.

        Returns:
            Number of bytes written

        Raises:
            LinkError: if the write failed
        """
        ...

    @property
    def status(self) -> LinkStatus:
        """Current connection status"""
        ...

    def add_status_callback(self, callback: StatusCallback) -> None:
        """Register callback(old_status, new_status) for status changes"""
        ...
