"""
Exponential moving average over vehicle-frame angles.
"""

from .types import VehicleAngles


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation from a towards b by fraction t"""
    return a + (b - a) * t


class SmoothingFilter:
    """
    Stateful EMA filter, one instance per active session.

    Each apply() moves the filtered value towards the target by
    smoothing_factor of the remaining distance. No clamping is done:
    the filter only adds lag, never changes magnitude.
    """

    def __init__(self, smoothing_factor: float) -> None:
        """
        Args:
            smoothing_factor: Weight of each new sample, in [0, 1)
        """
        self.smoothing_factor = smoothing_factor
        self._pitch = 0.0
        self._roll = 0.0

    @property
    def value(self) -> VehicleAngles:
        """Current filtered angles"""
        return VehicleAngles(pitch_deg=self._pitch, roll_deg=self._roll)

    def apply(self, target: VehicleAngles) -> VehicleAngles:
        """
        Fold one sample into the filter.

        Args:
            target: Freshly mapped vehicle angles

        Returns:
            Updated filtered angles
        """
        self._pitch = lerp(self._pitch, target.pitch_deg, self.smoothing_factor)
        self._roll = lerp(self._roll, target.roll_deg, self.smoothing_factor)
        return self.value

    def reset(self) -> None:
        """Start over from a neutral state"""
        self._pitch = 0.0
        self._roll = 0.0
