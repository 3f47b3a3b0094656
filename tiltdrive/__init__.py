"""
TiltDrive Core - tilt-to-command pipeline for remote vehicles.

This package turns handheld orientation readings into throttle/steering
commands and sends them over a serial link:
- Types: Data classes for samples, angles, commands, configuration
- Interfaces: Protocols for the motion source and the vehicle link
- Orientation / Smoothing / Calibration / Response: the signal pipeline
- Encoder: Wire protocol
- Dispatcher: Rate-limited, de-duplicated transmission
- Controller: Session owner tying it all together
"""

from .types import (
    CalibrationOffset,
    ControlCommand,
    ControllerConfig,
    ControllerSnapshot,
    DeviceOrientation,
    DispatcherState,
    LinkStats,
    LinkStatus,
    RawMotionSample,
    VehicleAngles,
    WireProtocol,
)
from .interfaces import (
    ConnectionLink,
    LinkError,
    MotionSource,
    SensorUnavailableError,
)
from .controller import TiltController
from .dispatcher import CommandDispatcher

__all__ = [
    "CalibrationOffset",
    "ControlCommand",
    "ControllerConfig",
    "ControllerSnapshot",
    "DeviceOrientation",
    "DispatcherState",
    "LinkStats",
    "LinkStatus",
    "RawMotionSample",
    "VehicleAngles",
    "WireProtocol",
    "ConnectionLink",
    "LinkError",
    "MotionSource",
    "SensorUnavailableError",
    "TiltController",
    "CommandDispatcher",
]
