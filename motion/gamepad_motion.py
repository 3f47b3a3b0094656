"""
Gamepad Motion Source

Simulates device tilt with a USB/wireless game controller so the full
pipeline can be driven from a desktop. The left stick stands in for the
phone: push forward to tilt forward, push right to tilt right.
"""

import asyncio
import logging
import math
from typing import Optional

import pygame

from tiltdrive.interfaces import SampleHandler, SensorUnavailableError
from tiltdrive.types import RawMotionSample


logger = logging.getLogger(__name__)


class GamepadMotionSource:
    """
    Game controller posing as a motion sensor.

    Samples are produced for a device held in LANDSCAPE_LEFT, so
    stick forward maps to positive pitch and stick right to positive
    roll after orientation mapping.
    """

    def __init__(
        self,
        max_tilt_deg: float = 45.0,
        invert_y: bool = False,
        calibrate_button: int = 0,
    ) -> None:
        """
        Initialize gamepad source.

        Args:
            max_tilt_deg: Tilt produced by full stick deflection
            invert_y: Invert Y-axis (some controllers are backwards)
            calibrate_button: Button index reported by calibrate_pressed()
        """
        self._max_tilt_rad = math.radians(max_tilt_deg)
        self._invert_y = invert_y
        self._calibrate_button = calibrate_button

        self._joystick: Optional[pygame.joystick.Joystick] = None
        self._handler: Optional[SampleHandler] = None
        self._task: Optional[asyncio.Task] = None
        self._interval_ms = 50
        self._button_was_down = False
        self._calibrate_requested = False

        self._axis_x = 0    # Left stick X
        self._axis_y = 1    # Left stick Y

    async def start(self, handler: SampleHandler, interval_ms: int) -> None:
        """Initialize pygame, open the first controller and start polling"""
        logger.info("Initializing gamepad motion source...")

        pygame.init()
        pygame.joystick.init()

        joystick_count = pygame.joystick.get_count()
        logger.info(f"Found {joystick_count} game controller(s)")

        if joystick_count == 0:
            pygame.joystick.quit()
            raise SensorUnavailableError("No game controllers found")

        self._joystick = pygame.joystick.Joystick(0)
        self._joystick.init()
        logger.info(f"Selected: {self._joystick.get_name()}")
        logger.info(f"Axes: {self._joystick.get_numaxes()}")
        logger.info("Controls:")
        logger.info("  Left stick: Tilt (forward/back, left/right)")
        logger.info(f"  Button {self._calibrate_button}: Calibrate neutral")

        self._handler = handler
        self._interval_ms = interval_ms
        self._task = asyncio.create_task(self._run(), name="gamepad-motion")

    def set_interval(self, interval_ms: int) -> None:
        """Change the polling rate"""
        self._interval_ms = interval_ms

    async def stop(self) -> None:
        """Stop polling and release the controller"""
        logger.info("Stopping gamepad motion source")
        task = self._task
        self._task = None
        self._handler = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._joystick:
            self._joystick.quit()
            self._joystick = None

        pygame.joystick.quit()
        pygame.quit()

    def calibrate_pressed(self) -> bool:
        """
        Return True once per press of the calibrate button.

        The launcher polls this and calls TiltController.calibrate().
        """
        requested = self._calibrate_requested
        self._calibrate_requested = False
        return requested

    def read_sample(self) -> Optional[RawMotionSample]:
        """Read current stick position as a tilt sample"""
        if not self._joystick:
            return None

        # Process pygame events (required to update joystick state)
        pygame.event.pump()

        x = self._joystick.get_axis(self._axis_x)
        y = self._joystick.get_axis(self._axis_y)

        # Most controllers have up=negative, we want up=forward
        if not self._invert_y:
            y = -y

        pressed = bool(self._joystick.get_button(self._calibrate_button))
        if pressed and not self._button_was_down:
            self._calibrate_requested = True
        self._button_was_down = pressed

        # LANDSCAPE_LEFT: pitch = -gamma, roll = -beta
        return RawMotionSample(
            beta_rad=-x * self._max_tilt_rad,
            gamma_rad=-y * self._max_tilt_rad,
        )

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_ms / 1000.0)
            handler = self._handler
            if handler is None:
                return
            sample = self.read_sample()
            if sample is None:
                continue
            try:
                handler(sample)
            except Exception as e:
                logger.error(f"Error in sample handler: {e}", exc_info=True)
