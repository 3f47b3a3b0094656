"""
Mock (test) motion source.

Replays scripted sensor samples for testing without a phone.
"""

import asyncio
import logging
import math
from typing import List, Optional

from tiltdrive.interfaces import SampleHandler, SensorUnavailableError
from tiltdrive.types import RawMotionSample


logger = logging.getLogger(__name__)


class MockMotionSource:
    """
    Mock motion source for testing.

    Calls the handler with the next scripted sample every interval and
    holds the last sample once the script is exhausted.
    """

    def __init__(
        self,
        samples: Optional[List[RawMotionSample]] = None,
        available: bool = True,
    ) -> None:
        """
        Initialize mock source.

        Args:
            samples: Samples to deliver in sequence. If None, the device
                is held level.
            available: If False, start() fails like a missing sensor
        """
        self._samples = samples or []
        self._available = available
        self._index = 0
        self._interval_ms = 50
        self._handler: Optional[SampleHandler] = None
        self._task: Optional[asyncio.Task] = None

        self._default_sample = RawMotionSample(beta_rad=0.0, gamma_rad=0.0)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    async def start(self, handler: SampleHandler, interval_ms: int) -> None:
        """Start delivering samples"""
        if not self._available:
            raise SensorUnavailableError("Mock sensor configured as unavailable")

        if self.is_running:
            await self.stop()

        self._handler = handler
        self._interval_ms = interval_ms
        self._task = asyncio.create_task(self._run(), name="mock-motion")
        logger.info(f"[MOCK MOTION] Started - {len(self._samples)} scripted samples @ {interval_ms} ms")

    def set_interval(self, interval_ms: int) -> None:
        """Change the delivery rate"""
        logger.info(f"[MOCK MOTION] Interval {self._interval_ms} -> {interval_ms} ms")
        self._interval_ms = interval_ms

    async def stop(self) -> None:
        """Stop delivering samples"""
        task = self._task
        self._task = None
        self._handler = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("[MOCK MOTION] Stopped")

    def next_sample(self) -> RawMotionSample:
        """Return next scripted sample"""
        if not self._samples:
            return self._default_sample

        if self._index >= len(self._samples):
            return self._samples[-1]

        sample = self._samples[self._index]
        self._index += 1
        return sample

    def reset(self) -> None:
        """Reset to beginning of script"""
        self._index = 0

    def load_script(self, script_name: str) -> None:
        """
        Load a predefined test script.

        Args:
            script_name: Name of script to load from TestScripts
        """
        script_map = {
            "level": TestScripts.level(),
            "forward": TestScripts.forward_ramp(),
            "slalom": TestScripts.slalom(),
            "noisy": TestScripts.noisy_with_dropouts(),
        }

        if script_name in script_map:
            self._samples = script_map[script_name]
            self._index = 0
            logger.info(f"Loaded script '{script_name}' with {len(self._samples)} samples")
        else:
            logger.warning(f"Unknown script '{script_name}'")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_ms / 1000.0)
            handler = self._handler
            if handler is None:
                return
            try:
                handler(self.next_sample())
            except Exception as e:
                logger.error(f"Error in sample handler: {e}", exc_info=True)


def _deg(beta_deg: float, gamma_deg: float) -> RawMotionSample:
    return RawMotionSample(beta_rad=math.radians(beta_deg), gamma_rad=math.radians(gamma_deg))


class TestScripts:
    """
    Pre-defined sample scripts.

    Angles are given for a device held in LANDSCAPE_LEFT, where
    pitch = -gamma and roll = -beta.
    """

    __test__ = False  # Not a pytest class

    @staticmethod
    def level(count: int = 20) -> List[RawMotionSample]:
        """Device held flat and still"""
        return [_deg(0.0, 0.0) for _ in range(count)]

    @staticmethod
    def forward_ramp() -> List[RawMotionSample]:
        """Tilt forward to full throttle and back to level"""
        samples = [_deg(0.0, 0.0) for _ in range(10)]
        samples += [_deg(0.0, -g) for g in range(0, 40, 2)]
        samples += [_deg(0.0, -40.0) for _ in range(20)]
        samples += [_deg(0.0, -g) for g in range(40, -1, -4)]
        samples += [_deg(0.0, 0.0) for _ in range(10)]
        return samples

    @staticmethod
    def slalom() -> List[RawMotionSample]:
        """Gentle throttle while steering left and right"""
        samples = []
        for i in range(120):
            roll = 20.0 * math.sin(i / 10.0)
            samples.append(_deg(-roll, -15.0))
        samples += [_deg(0.0, 0.0) for _ in range(10)]
        return samples

    @staticmethod
    def noisy_with_dropouts() -> List[RawMotionSample]:
        """Forward tilt with sensor jitter and occasional NaN readings"""
        samples = []
        for i in range(60):
            if i % 15 == 7:
                samples.append(RawMotionSample(beta_rad=float("nan"), gamma_rad=0.0))
                continue
            jitter = 1.5 * math.sin(i * 2.3)
            samples.append(_deg(jitter, -20.0 + jitter))
        return samples
