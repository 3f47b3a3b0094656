"""Tests for orientation mapping, smoothing and calibration"""

import math

import pytest
from tiltdrive.calibration import apply_offset, calibrate
from tiltdrive.orientation import map_to_vehicle
from tiltdrive.smoothing import SmoothingFilter, lerp
from tiltdrive.types import CalibrationOffset, DeviceOrientation, VehicleAngles


def test_map_landscape_left():
    """Test landscape left negates and swaps axes"""
    angles = map_to_vehicle(10.0, -20.0, DeviceOrientation.LANDSCAPE_LEFT)
    assert angles == VehicleAngles(pitch_deg=20.0, roll_deg=-10.0)


def test_map_landscape_right():
    """Test landscape right swaps axes"""
    angles = map_to_vehicle(10.0, -20.0, DeviceOrientation.LANDSCAPE_RIGHT)
    assert angles == VehicleAngles(pitch_deg=-20.0, roll_deg=10.0)


def test_map_portrait():
    """Test portrait passes angles through"""
    angles = map_to_vehicle(10.0, -20.0, DeviceOrientation.PORTRAIT_UP)
    assert angles == VehicleAngles(pitch_deg=10.0, roll_deg=-20.0)


def test_map_unknown_orientation_falls_back_to_portrait():
    """Test missing orientation uses portrait convention"""
    assert map_to_vehicle(3.0, 4.0, None) == VehicleAngles(pitch_deg=3.0, roll_deg=4.0)


def test_landscape_variants_are_mirrored():
    """Test the two landscape mappings are mirror images"""
    left = map_to_vehicle(12.0, 7.0, DeviceOrientation.LANDSCAPE_LEFT)
    right = map_to_vehicle(12.0, 7.0, DeviceOrientation.LANDSCAPE_RIGHT)
    assert left.pitch_deg == -right.pitch_deg
    assert left.roll_deg == -right.roll_deg


def test_lerp():
    """Test linear interpolation"""
    assert lerp(0.0, 10.0, 0.3) == pytest.approx(3.0)
    assert lerp(10.0, 10.0, 0.3) == 10.0


def test_filter_single_step():
    """Test one EMA step moves by smoothing_factor of the distance"""
    smoothing = SmoothingFilter(0.3)
    result = smoothing.apply(VehicleAngles(pitch_deg=10.0, roll_deg=-20.0))

    assert result.pitch_deg == pytest.approx(3.0)
    assert result.roll_deg == pytest.approx(-6.0)
    assert smoothing.value == result


def test_filter_converges_without_overshoot():
    """Test repeated samples converge on the target from below"""
    smoothing = SmoothingFilter(0.3)
    target = VehicleAngles(pitch_deg=15.0, roll_deg=0.0)

    previous = 0.0
    for _ in range(50):
        pitch = smoothing.apply(target).pitch_deg
        assert previous <= pitch <= 15.0
        previous = pitch

    assert previous == pytest.approx(15.0, abs=1e-3)


def test_filter_does_not_clamp():
    """Test large inputs pass through with lag only"""
    smoothing = SmoothingFilter(0.5)
    for _ in range(60):
        result = smoothing.apply(VehicleAngles(pitch_deg=720.0, roll_deg=-720.0))

    assert result.pitch_deg == pytest.approx(720.0)
    assert result.roll_deg == pytest.approx(-720.0)


def test_filter_reset():
    """Test reset returns to neutral"""
    smoothing = SmoothingFilter(0.3)
    smoothing.apply(VehicleAngles(pitch_deg=10.0, roll_deg=10.0))
    smoothing.reset()
    assert smoothing.value == VehicleAngles()


def test_calibrate_then_apply_is_zero():
    """Test calibration zeroes the angles it was taken from"""
    filtered = VehicleAngles(pitch_deg=7.25, roll_deg=-3.5)
    offset = calibrate(filtered)

    assert offset == CalibrationOffset(zero_pitch=7.25, zero_roll=-3.5)
    assert apply_offset(filtered, offset) == VehicleAngles(pitch_deg=0.0, roll_deg=0.0)


def test_default_offset_is_identity():
    """Test uncalibrated offset changes nothing"""
    filtered = VehicleAngles(pitch_deg=4.0, roll_deg=-2.0)
    assert apply_offset(filtered, CalibrationOffset()) == filtered


def test_offset_subtracts_baseline():
    """Test offset is subtracted per axis"""
    offset = CalibrationOffset(zero_pitch=5.0, zero_roll=-5.0)
    adjusted = apply_offset(VehicleAngles(pitch_deg=20.0, roll_deg=0.0), offset)
    assert adjusted.pitch_deg == 15.0
    assert adjusted.roll_deg == 5.0
    assert math.isfinite(adjusted.pitch_deg)
