"""
Serial Link - SPP module exposed as a serial port.

Works with any already-paired Bluetooth Classic serial device that the OS
exposes as a port (/dev/rfcomm0 after `rfcomm bind`, a COMx port on
Windows) and with a plain USB-serial cable to the receiver.
Pairing and binding happen outside this program.
"""

import asyncio
import logging
from typing import Optional

import serial

from tiltdrive.interfaces import LinkError
from tiltdrive.types import LinkStatus

from .base import StatusNotifier


logger = logging.getLogger(__name__)


class SerialLink(StatusNotifier):
    """
    Link over a pyserial port.

    Blocking port calls run in the default executor so the event loop
    (sensor handler and dispatcher tick) is never blocked.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        write_timeout: float = 0.05,
    ) -> None:
        """
        Initialize serial link.

        Args:
            port: Serial device, e.g. /dev/rfcomm0 or COM5
            baudrate: Line speed (HC-05/HC-06 modules default to 9600)
            write_timeout: Max seconds a single write may block
        """
        super().__init__()
        self.port = port
        self.baudrate = int(baudrate)
        self.write_timeout = float(write_timeout)
        self._ser: Optional[serial.Serial] = None

    async def connect(self) -> bool:
        """Open the serial port"""
        if self.is_connected:
            return True

        logger.info(f"Opening {self.port} @ {self.baudrate} baud")
        self._set_status(LinkStatus.CONNECTING)

        loop = asyncio.get_running_loop()
        try:
            self._ser = await loop.run_in_executor(None, self._open)
        except (serial.SerialException, OSError) as e:
            logger.error(f"Failed to open {self.port}: {e}")
            self._ser = None
            self._set_status(LinkStatus.DISCONNECTED)
            return False

        self._resync_pending = False
        self._set_status(LinkStatus.CONNECTED)
        logger.info("Connected successfully")
        return True

    def _open(self) -> serial.Serial:
        return serial.Serial(
            self.port,
            self.baudrate,
            timeout=0.1,
            write_timeout=self.write_timeout,
        )

    async def disconnect(self) -> None:
        """Close the serial port"""
        ser = self._ser
        self._ser = None
        if ser is not None:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, ser.close)
            except (serial.SerialException, OSError) as e:
                logger.error(f"Error closing {self.port}: {e}")
        self._set_status(LinkStatus.DISCONNECTED)
        logger.info("Disconnected")

    async def write(self, data: bytes) -> int:
        """
        Write bytes to the port.

        A write timeout is reported as a failed write and the link stays
        up, and the next write resynchronises the receiver; any other port
        error means the device is gone and the link
        goes DISCONNECTED.
        """
        ser = self._ser
        if ser is None or not self.is_connected:
            raise LinkError(f"{self.port} not connected")

        payload = self._frame(data)
        loop = asyncio.get_running_loop()
        try:
            written = await loop.run_in_executor(None, ser.write, payload)
        except serial.SerialTimeoutException as e:
            self._resync_pending = True
            raise LinkError(f"Write timeout on {self.port}") from e
        except (serial.SerialException, OSError) as e:
            logger.error(f"Serial port error on {self.port}: {e}")
            self._ser = None
            self._set_status(LinkStatus.DISCONNECTED)
            try:
                ser.close()
            except (serial.SerialException, OSError) as close_error:
                logger.debug(f"Ignoring close error on {self.port}: {close_error}")
            raise LinkError(str(e)) from e

        self._resync_pending = False
        return written if written is not None else len(payload)
