"""
Core data types for the TiltDrive control pipeline.

All the data structures that flow from the motion sensor to the wire,
fully typed.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


# Smallest tilt range accepted for max_pitch_deg / max_roll_deg
MIN_ANGLE_RANGE_DEG = 1e-3

# Dispatcher period, independent of the sensor sample interval
TICK_INTERVAL_MS = 100

NEUTRAL_THROTTLE = 0
NEUTRAL_STEERING = 90


class DeviceOrientation(Enum):
    """Screen orientation of the handheld device"""
    PORTRAIT_UP = "portrait_up"
    LANDSCAPE_LEFT = "landscape_left"      # Home button on the left
    LANDSCAPE_RIGHT = "landscape_right"    # Home button on the right


class LinkStatus(Enum):
    """Connection status reported by a ConnectionLink"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DispatcherState(Enum):
    """CommandDispatcher state machine states"""
    IDLE = "idle"          # No active session
    ACTIVE = "active"      # Ticking and transmitting on change
    HALTED = "halted"      # Session alive but link dropped, tick cancelled


class WireProtocol(Enum):
    """Wire format understood by the vehicle receiver"""
    LINE = "line"            # "T<throttle>:S<steering>\n"
    AXIS_PAIR = "axis-pair"  # "A<sign><ddd>\n" + "D<ddd>\n"


@dataclass(frozen=True)
class RawMotionSample:
    """
    Device-frame rotation reported by the motion sensor.

    Angles are in radians, exactly as the sensor delivers them.
    """
    beta_rad: float
    gamma_rad: float

    @property
    def is_finite(self) -> bool:
        """False for NaN or infinite readings, which must be discarded"""
        return math.isfinite(self.beta_rad) and math.isfinite(self.gamma_rad)


@dataclass(frozen=True)
class VehicleAngles:
    """
    Tilt in the vehicle frame.

    pitch > 0 means tilt forward (accelerate),
    roll > 0 means tilt right (steer right).
    """
    pitch_deg: float = 0.0
    roll_deg: float = 0.0


@dataclass(frozen=True)
class CalibrationOffset:
    """Zero point subtracted from the filtered vehicle angles"""
    zero_pitch: float = 0.0
    zero_roll: float = 0.0


@dataclass(frozen=True)
class ControlCommand:
    """
    Command for the vehicle controller.

    This is the output of the response curves and the input to the
    encoder. Compared by value for de-duplication.
    """
    throttle_pct: int            # -100 (full reverse) to 100 (full forward)
    steering_deg: int            # 0 (full left) to 180 (full right), 90 = center

    def __post_init__(self) -> None:
        """Validate ranges"""
        assert -100 <= self.throttle_pct <= 100, f"throttle_pct out of range: {self.throttle_pct}"
        assert 0 <= self.steering_deg <= 180, f"steering_deg out of range: {self.steering_deg}"

    @property
    def is_neutral(self) -> bool:
        """Check if this is the stop/center command"""
        return self.throttle_pct == NEUTRAL_THROTTLE and self.steering_deg == NEUTRAL_STEERING

    @classmethod
    def neutral(cls) -> "ControlCommand":
        """Create the stop/center command"""
        return cls(throttle_pct=NEUTRAL_THROTTLE, steering_deg=NEUTRAL_STEERING)


@dataclass
class ControllerConfig:
    """
    Tuning for the tilt-to-command pipeline.

    May be changed mid-session through TiltController.update_config().
    """
    max_pitch_deg: float = 35.0        # Forward/backward tilt for full throttle
    max_roll_deg: float = 25.0         # Side-to-side tilt for full steering lock
    smoothing_factor: float = 0.3      # EMA weight of each new sample, in [0, 1)
    pitch_threshold_deg: float = 4.0   # Dead zone for throttle
    roll_threshold_deg: float = 2.0    # Dead zone for steering
    sample_interval_ms: int = 50       # Sensor update interval (20 Hz)

    def __post_init__(self) -> None:
        """Clamp tilt ranges and validate the rest"""
        if not self.max_pitch_deg >= MIN_ANGLE_RANGE_DEG:
            logger.warning(
                f"max_pitch_deg={self.max_pitch_deg} is not positive, using {MIN_ANGLE_RANGE_DEG}"
            )
            self.max_pitch_deg = MIN_ANGLE_RANGE_DEG
        if not self.max_roll_deg >= MIN_ANGLE_RANGE_DEG:
            logger.warning(
                f"max_roll_deg={self.max_roll_deg} is not positive, using {MIN_ANGLE_RANGE_DEG}"
            )
            self.max_roll_deg = MIN_ANGLE_RANGE_DEG

        if not 0.0 <= self.smoothing_factor < 1.0:
            raise ValueError(f"smoothing_factor must be in [0, 1): {self.smoothing_factor}")
        if self.pitch_threshold_deg < 0 or self.roll_threshold_deg < 0:
            raise ValueError("Dead zone thresholds must be >= 0")
        if int(self.sample_interval_ms) <= 0:
            raise ValueError(f"sample_interval_ms must be > 0: {self.sample_interval_ms}")
        self.sample_interval_ms = int(self.sample_interval_ms)


@dataclass
class LinkStats:
    """Transmission counters kept by the dispatcher"""
    bytes_sent: int = 0
    commands_sent: int = 0
    write_failures: int = 0
    last_command_at: Optional[float] = None
    connected_at: Optional[float] = None

    def record_write(self, byte_count: int) -> None:
        self.bytes_sent += byte_count
        self.commands_sent += 1
        self.last_command_at = time.time()

    def reset(self) -> None:
        self.bytes_sent = 0
        self.commands_sent = 0
        self.write_failures = 0
        self.last_command_at = None
        self.connected_at = None


@dataclass
class ControllerSnapshot:
    """
    Read-only view of the controller for display and logging.
    """
    throttle_pct: int
    steering_deg: int
    pitch_deg: float
    roll_deg: float
    raw_beta_deg: float
    raw_gamma_deg: float
    is_active: bool
    orientation: DeviceOrientation
    timestamp: float = field(default_factory=time.time)
