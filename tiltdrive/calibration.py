"""
Calibration - the operator's neutral hold becomes the zero point.
"""

from .types import CalibrationOffset, VehicleAngles


def calibrate(filtered: VehicleAngles) -> CalibrationOffset:
    """Capture the current filtered angles as the new zero point"""
    return CalibrationOffset(zero_pitch=filtered.pitch_deg, zero_roll=filtered.roll_deg)


def apply_offset(filtered: VehicleAngles, offset: CalibrationOffset) -> VehicleAngles:
    """Subtract the zero point from filtered angles"""
    return VehicleAngles(
        pitch_deg=filtered.pitch_deg - offset.zero_pitch,
        roll_deg=filtered.roll_deg - offset.zero_roll,
    )
