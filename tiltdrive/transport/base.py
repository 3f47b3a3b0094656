"""
Shared status and framing bookkeeping for link implementations.
"""

import logging

from tiltdrive.interfaces import StatusCallback
from tiltdrive.types import LinkStatus


logger = logging.getLogger(__name__)


class StatusNotifier:
    """
    Holds a LinkStatus and notifies registered callbacks on change.

    Callbacks run synchronously on the caller's thread; link
    implementations only change status from the event loop.
    """

    def __init__(self) -> None:
        self._status = LinkStatus.DISCONNECTED
        self._status_callbacks: list[StatusCallback] = []
        self._resync_pending = False

    @property
    def status(self) -> LinkStatus:
        """Current connection status"""
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == LinkStatus.CONNECTED

    def add_status_callback(self, callback: StatusCallback) -> None:
        """
        Register callback for status changes.

        Callback signature: callback(old_status, new_status)
        """
        self._status_callbacks.append(callback)

    def _frame(self, data: bytes) -> bytes:
        """
        Bytes to put on the wire for data.

        A timed-out write may have left part of a line at the receiver,
        so the next write starts with a newline that terminates it.
        """
        if self._resync_pending:
            return b"\n" + data
        return data

    def _set_status(self, new_status: LinkStatus) -> None:
        if new_status == self._status:
            return

        old_status = self._status
        logger.info(f"Link status: {old_status.value} -> {new_status.value}")
        self._status = new_status

        for callback in self._status_callbacks:
            try:
                callback(old_status, new_status)
            except Exception as e:
                logger.error(f"Error in status callback: {e}", exc_info=True)
