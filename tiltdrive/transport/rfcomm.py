"""
RFCOMM Link - Bluetooth Classic SPP over a raw Linux socket.

Most hobby receivers (HC-05, HC-06, ESP32 BluetoothSerial) speak the
Serial Port Profile. Linux can talk to them directly through an
AF_BLUETOOTH/BTPROTO_RFCOMM socket; the device must already be paired.
"""

import asyncio
import logging
import socket
from typing import Optional

from tiltdrive.interfaces import LinkError
from tiltdrive.types import LinkStatus

from .base import StatusNotifier


logger = logging.getLogger(__name__)


class RfcommLink(StatusNotifier):
    """Link over a Bluetooth RFCOMM stream socket."""

    AF_BLUETOOTH = 31
    BTPROTO_RFCOMM = 3

    def __init__(
        self,
        address: str,
        channel: int = 1,
        connect_timeout: float = 10.0,
        write_timeout: float = 0.5,
    ) -> None:
        """
        Initialize RFCOMM link.

        Args:
            address: Receiver MAC address (AA:BB:CC:DD:EE:FF)
            channel: RFCOMM channel (SPP modules usually use 1)
            connect_timeout: Seconds to wait for the connection
            write_timeout: Max seconds a single send may block
        """
        super().__init__()
        self.address = address
        self.channel = int(channel)
        self.connect_timeout = connect_timeout
        self.write_timeout = write_timeout
        self._sock: Optional[socket.socket] = None

    async def connect(self) -> bool:
        """Establish the SPP connection"""
        if self.is_connected:
            return True

        logger.info(f"Connecting to {self.address} channel {self.channel}")
        self._set_status(LinkStatus.CONNECTING)

        loop = asyncio.get_running_loop()
        try:
            self._sock = await loop.run_in_executor(None, self._open)
        except OSError as e:
            logger.error(f"Connection failed: {e}")
            self._sock = None
            self._set_status(LinkStatus.DISCONNECTED)
            return False

        self._resync_pending = False
        self._set_status(LinkStatus.CONNECTED)
        logger.info("Connected successfully")
        return True

    def _create_socket(self) -> socket.socket:
        return socket.socket(self.AF_BLUETOOTH, socket.SOCK_STREAM, self.BTPROTO_RFCOMM)

    def _open(self) -> socket.socket:
        sock = self._create_socket()
        try:
            sock.settimeout(self.connect_timeout)
            sock.connect((self.address, self.channel))
            sock.settimeout(self.write_timeout)
        except OSError:
            sock.close()
            raise
        return sock

    async def disconnect(self) -> None:
        """Close the SPP connection"""
        sock = self._sock
        self._sock = None
        if sock is not None:
            try:
                sock.close()
            except OSError as e:
                logger.error(f"Error during disconnect: {e}")
        self._set_status(LinkStatus.DISCONNECTED)
        logger.info("Disconnected")

    async def write(self, data: bytes) -> int:
        """
        Send bytes to the receiver.

        A send timeout is reported as a failed write and the link stays
        up, and the next write resynchronises the receiver; any other
        socket error drops the link.
        """
        sock = self._sock
        if sock is None or not self.is_connected:
            raise LinkError(f"{self.address} not connected")

        payload = self._frame(data)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, sock.sendall, payload)
        except socket.timeout as e:
            self._resync_pending = True
            raise LinkError(f"Send timeout to {self.address}") from e
        except OSError as e:
            logger.error(f"Socket error to {self.address}: {e}")
            self._sock = None
            self._set_status(LinkStatus.DISCONNECTED)
            sock.close()
            raise LinkError(str(e)) from e

        self._resync_pending = False
        return len(payload)
