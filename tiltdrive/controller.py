"""
TiltController - the producer half of the pipeline and session owner.

Each sensor sample runs through:
    radians -> degrees -> orientation mapping -> EMA smoothing
    -> calibration offset -> response curves -> latest command slot

The dispatcher reads the latest command slot on its own tick. Both the
sample handler and the dispatcher tick run on the same event loop, and
the slot holds one immutable ControlCommand replaced by a single
assignment, so a tick never sees a half-updated command.
"""

import dataclasses
import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from .calibration import apply_offset, calibrate
from .dispatcher import CommandDispatcher
from .encoder import get_encoder
from .interfaces import ConnectionLink, MotionSource, SensorUnavailableError
from .orientation import map_to_vehicle
from .response import steering, throttle
from .smoothing import SmoothingFilter
from .types import (
    CalibrationOffset,
    ControlCommand,
    ControllerConfig,
    ControllerSnapshot,
    DeviceOrientation,
    RawMotionSample,
    VehicleAngles,
    WireProtocol,
)


logger = logging.getLogger(__name__)


class TiltController:
    """
    Owns filter state, calibration, the latest command and the dispatcher.

    Explicit start/stop/update_config/calibrate operations replace any
    implicit re-subscription: configuration and orientation changes are
    applied in place.
    """

    def __init__(
        self,
        source: MotionSource,
        link: ConnectionLink,
        config: Optional[ControllerConfig] = None,
        protocol: WireProtocol = WireProtocol.LINE,
    ) -> None:
        """
        Initialize controller.

        Args:
            source: Motion sensor delivering RawMotionSample
            link: Link to the vehicle
            config: Pipeline tuning (defaults if omitted)
            protocol: Wire protocol of the receiver
        """
        self.source = source
        self.link = link
        self.config = config or ControllerConfig()

        self._filter = SmoothingFilter(self.config.smoothing_factor)
        self._offset = CalibrationOffset()
        self._orientation = DeviceOrientation.LANDSCAPE_LEFT
        self._latest = ControlCommand.neutral()
        self._raw = (0.0, 0.0)
        self._active = False
        self._discarded = 0

        self.dispatcher = CommandDispatcher(
            link=link,
            latest_command=lambda: self._latest,
            encoder=get_encoder(protocol),
        )

    # Session lifecycle

    async def start(self) -> None:
        """
        Activate: subscribe to the sensor, then start dispatching.

        Raises:
            SensorUnavailableError: sensor could not be subscribed; the
                controller stays idle and nothing is computed
        """
        if self._active:
            logger.warning("Controller already active")
            return

        logger.info(f"Activating (sample interval {self.config.sample_interval_ms} ms)")
        try:
            await self.source.start(self.handle_sample, self.config.sample_interval_ms)
        except SensorUnavailableError as e:
            logger.error(f"Motion sensor unavailable: {e}")
            raise

        try:
            await self.dispatcher.start()
        except BaseException:
            await self.source.stop()
            raise

        self._active = True

    async def stop(self) -> None:
        """
        Deactivate.

        On return the sensor subscription and the tick are cancelled, the
        outputs are back at neutral and, if still connected, the neutral
        command has been written.
        """
        if not self._active:
            return

        logger.info("Deactivating")
        self._active = False
        try:
            await self.source.stop()
        finally:
            self._latest = ControlCommand.neutral()
            await self.dispatcher.stop()

    @asynccontextmanager
    async def session(self) -> AsyncIterator["TiltController"]:
        """
        Scoped activation.

        Usage:
            async with controller.session():
                ...
        """
        await self.start()
        try:
            yield self
        finally:
            await self.stop()

    async def resume(self) -> bool:
        """Resume transmitting after a link drop (see CommandDispatcher.resume)"""
        return await self.dispatcher.resume()

    # Producer side

    def handle_sample(self, sample: RawMotionSample) -> Optional[ControlCommand]:
        """
        Process one sensor sample into the latest command.

        Samples arriving while inactive are ignored, so a late delivery
        after stop() cannot replace the neutral command. Non-finite
        samples are discarded before they reach the filter.

        Returns:
            The new command, or None if the sample was ignored or discarded
        """
        if not self._active:
            logger.debug("Ignoring sample while inactive")
            return None

        if not sample.is_finite:
            self._discarded += 1
            logger.debug(f"Discarding non-finite sample ({self._discarded} so far)")
            return None

        config = self.config
        beta_deg = math.degrees(sample.beta_rad)
        gamma_deg = math.degrees(sample.gamma_rad)
        self._raw = (beta_deg, gamma_deg)

        angles = map_to_vehicle(beta_deg, gamma_deg, self._orientation)
        filtered = self._filter.apply(angles)
        adjusted = apply_offset(filtered, self._offset)

        command = ControlCommand(
            throttle_pct=throttle(adjusted.pitch_deg, config.max_pitch_deg, config.pitch_threshold_deg),
            steering_deg=steering(adjusted.roll_deg, config.max_roll_deg, config.roll_threshold_deg),
        )
        self._latest = command
        return command

    def calibrate(self) -> CalibrationOffset:
        """
        Use the current filtered angles as the new neutral position.

        Returns:
            The offset now in effect
        """
        offset = calibrate(self._filter.value)
        self._offset = offset
        logger.info(f"Calibrated: zero pitch={offset.zero_pitch:+.1f} roll={offset.zero_roll:+.1f}")
        return offset

    def set_orientation(self, orientation: DeviceOrientation) -> None:
        """Record the most recent screen orientation"""
        if orientation != self._orientation:
            logger.info(f"Orientation: {self._orientation.value} -> {orientation.value}")
            self._orientation = orientation

    def update_config(self, **changes) -> ControllerConfig:
        """
        Merge configuration changes.

        Changing the sample interval re-rates a live subscription.
        Changing the sample interval or the smoothing factor restarts the
        filter from a fresh state.

        Raises:
            ValueError: for invalid values (tilt ranges are clamped instead)
            TypeError: for unknown fields
        """
        old = self.config
        new = dataclasses.replace(old, **changes)
        self.config = new

        interval_changed = new.sample_interval_ms != old.sample_interval_ms
        if interval_changed and self._active:
            self.source.set_interval(new.sample_interval_ms)

        if interval_changed or new.smoothing_factor != old.smoothing_factor:
            self._filter = SmoothingFilter(new.smoothing_factor)
            logger.info("Filter reset after configuration change")

        return new

    # Read-only views

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def latest_command(self) -> ControlCommand:
        """Most recently computed command"""
        return self._latest

    @property
    def offset(self) -> CalibrationOffset:
        return self._offset

    @property
    def orientation(self) -> DeviceOrientation:
        return self._orientation

    @property
    def filtered_angles(self) -> VehicleAngles:
        return self._filter.value

    @property
    def discarded_samples(self) -> int:
        return self._discarded

    def snapshot(self) -> ControllerSnapshot:
        """Capture the current outputs for display"""
        adjusted = apply_offset(self._filter.value, self._offset)
        command = self._latest
        return ControllerSnapshot(
            throttle_pct=command.throttle_pct,
            steering_deg=command.steering_deg,
            pitch_deg=adjusted.pitch_deg,
            roll_deg=adjusted.roll_deg,
            raw_beta_deg=self._raw[0],
            raw_gamma_deg=self._raw[1],
            is_active=self._active,
            orientation=self._orientation,
        )
