"""
Response curves - calibrated tilt to throttle and steering.

Each axis goes through the same pipeline:
- Dead zone to ignore hand tremor around neutral
- Normalization against the configured tilt range
- Power-law curve for fine control near center
- Scaling to the wire range

The exponents are super-linear so small tilts give small outputs and
full authority only arrives near the physical tilt limit. Steering uses
the steeper curve for finer low-speed steering.
"""

import math

from .types import MIN_ANGLE_RANGE_DEG, NEUTRAL_STEERING, NEUTRAL_THROTTLE


THROTTLE_EXPONENT = 1.3
STEERING_EXPONENT = 1.5

MAX_THROTTLE_PCT = 100
MAX_STEERING_DEG = 180


def throttle(pitch_adj: float, max_pitch: float, threshold: float = 0.0) -> int:
    """
    Calculate throttle percentage from calibrated pitch.

    Args:
        pitch_adj: Pitch minus calibration zero, degrees
        max_pitch: Pitch giving full throttle, degrees
        threshold: Dead zone half-width, degrees

    Returns:
        Throttle in [-100, 100]
    """
    if not math.isfinite(pitch_adj) or abs(pitch_adj) < threshold:
        return NEUTRAL_THROTTLE

    normalized = _clamp(pitch_adj / _guard_range(max_pitch), -1.0, 1.0)
    curved = _apply_curve(normalized, THROTTLE_EXPONENT)

    return _round_half_away(curved * MAX_THROTTLE_PCT)


def steering(roll_adj: float, max_roll: float, threshold: float = 0.0) -> int:
    """
    Calculate steering angle from calibrated roll.

    Args:
        roll_adj: Roll minus calibration zero, degrees
        max_roll: Roll giving full steering lock, degrees
        threshold: Dead zone half-width, degrees

    Returns:
        Steering angle in [0, 180], 90 = straight ahead
    """
    if not math.isfinite(roll_adj) or abs(roll_adj) < threshold:
        return NEUTRAL_STEERING

    normalized = _clamp(roll_adj / _guard_range(max_roll), -1.0, 1.0)
    curved = _apply_curve(normalized, STEERING_EXPONENT)

    # Round the deflection, not the angle, so left and right stay mirrored
    deflection = _round_half_away(curved * NEUTRAL_STEERING)
    return int(_clamp(NEUTRAL_STEERING + deflection, 0, MAX_STEERING_DEG))


def _guard_range(value: float) -> float:
    """Substitute the minimum range for zero or negative tilt limits"""
    if not value >= MIN_ANGLE_RANGE_DEG:
        return MIN_ANGLE_RANGE_DEG
    return value


def _apply_curve(value: float, exponent: float) -> float:
    """Sign-preserving power curve on a value in [-1, 1]"""
    if value == 0.0:
        return 0.0

    sign = 1.0 if value > 0 else -1.0
    return sign * math.pow(abs(value), exponent)


def _clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp value to range [min_val, max_val]"""
    return max(min_val, min(max_val, value))


def _round_half_away(value: float) -> int:
    """Round to nearest integer, halves away from zero (odd-symmetric)"""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))
