"""
Command encoders - ControlCommand to wire bytes and back.

Two receiver dialects exist in the field:

    LINE        T<throttle>:S<steering>\\n           e.g. b"T75:S90\\n"
    AXIS_PAIR   A<sign><ddd>\\n D<ddd>\\n             e.g. b"A+075\\nD090\\n"

LINE is the default. Encoders do no clamping; commands are validated
when they are built.
"""

import logging
import re
from typing import List, Union

from .types import ControlCommand, WireProtocol


logger = logging.getLogger(__name__)


class LineEncoder:
    """Single-line "T<throttle>:S<steering>" protocol"""

    protocol = WireProtocol.LINE

    _LINE = re.compile(r"^T(-?\d+):S(\d+)$")

    def encode(self, command: ControlCommand) -> bytes:
        """Encode one command as a newline-terminated ASCII line"""
        return f"T{command.throttle_pct}:S{command.steering_deg}\n".encode("ascii")

    def decode(self, data: bytes) -> List[ControlCommand]:
        """
        Parse every complete command line in data.

        Malformed lines are logged and skipped.
        """
        commands = []
        for line in data.decode("ascii", errors="ignore").splitlines():
            line = line.strip()
            if not line:
                continue
            match = self._LINE.match(line)
            if not match:
                logger.warning(f"Skipping malformed line: {line!r}")
                continue
            commands.append(ControlCommand(
                throttle_pct=int(match.group(1)),
                steering_deg=int(match.group(2)),
            ))
        return commands


class AxisPairEncoder:
    """Two-line fixed-width "A<sign><ddd>" / "D<ddd>" protocol"""

    protocol = WireProtocol.AXIS_PAIR

    _THROTTLE = re.compile(r"^A([+-])(\d{3})$")
    _STEERING = re.compile(r"^D(\d{3})$")

    def encode(self, command: ControlCommand) -> bytes:
        """Encode throttle and steering as two fixed-width lines"""
        sign = "-" if command.throttle_pct < 0 else "+"
        return (
            f"A{sign}{abs(command.throttle_pct):03d}\n"
            f"D{command.steering_deg:03d}\n"
        ).encode("ascii")

    def decode(self, data: bytes) -> List[ControlCommand]:
        """
        Parse A/D line pairs in data.

        A D line without a preceding A line is skipped.
        """
        commands = []
        pending_throttle = None
        for line in data.decode("ascii", errors="ignore").splitlines():
            line = line.strip()
            if not line:
                continue

            match = self._THROTTLE.match(line)
            if match:
                value = int(match.group(2))
                pending_throttle = -value if match.group(1) == "-" else value
                continue

            match = self._STEERING.match(line)
            if match and pending_throttle is not None:
                commands.append(ControlCommand(
                    throttle_pct=pending_throttle,
                    steering_deg=int(match.group(1)),
                ))
                pending_throttle = None
                continue

            logger.warning(f"Skipping unexpected line: {line!r}")
        return commands


CommandEncoder = Union[LineEncoder, AxisPairEncoder]


def get_encoder(protocol: WireProtocol = WireProtocol.LINE) -> CommandEncoder:
    """
    Get the encoder for a wire protocol.

    Args:
        protocol: Receiver dialect

    Returns:
        Encoder instance
    """
    encoders = {
        WireProtocol.LINE: LineEncoder,
        WireProtocol.AXIS_PAIR: AxisPairEncoder,
    }
    return encoders[WireProtocol(protocol)]()
