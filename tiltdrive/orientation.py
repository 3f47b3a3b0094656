"""
Orientation mapping - device frame to vehicle frame.

Rotating the screen swaps which physical rotation axis means "tilt
forward" and which means "tilt sideways". The two landscape variants
are mirror images of each other.
"""

from typing import Optional

from .types import DeviceOrientation, VehicleAngles


def map_to_vehicle(
    beta_deg: float,
    gamma_deg: float,
    orientation: Optional[DeviceOrientation],
) -> VehicleAngles:
    """
    Map device-frame angles to vehicle pitch/roll.

    Racing game convention: tilting the device away from you accelerates,
    tilting it right (like a steering wheel) steers right.

    Args:
        beta_deg: Rotation around the device X axis, degrees
        gamma_deg: Rotation around the device Y axis, degrees
        orientation: Current screen orientation; anything that is not a
            landscape orientation falls back to portrait

    Returns:
        VehicleAngles in the vehicle frame
    """
    if orientation == DeviceOrientation.LANDSCAPE_LEFT:
        return VehicleAngles(pitch_deg=-gamma_deg, roll_deg=-beta_deg)

    if orientation == DeviceOrientation.LANDSCAPE_RIGHT:
        return VehicleAngles(pitch_deg=gamma_deg, roll_deg=beta_deg)

    return VehicleAngles(pitch_deg=beta_deg, roll_deg=gamma_deg)
