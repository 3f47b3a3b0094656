#!/usr/bin/env python3
"""
TiltDrive Demo - Simple example application.

Runs the full pipeline with a scripted motion source and a mock link,
then prints what went over the wire.
"""

import asyncio
import logging
import sys

from motion import MockMotionSource, TestScripts
from tiltdrive.controller import TiltController
from tiltdrive.transport import MockLink
from tiltdrive.types import ControllerConfig, DeviceOrientation, DispatcherState


logger = logging.getLogger(__name__)


async def run_demo():
    """Run a simple demo with mock components"""

    logger.info("=" * 60)
    logger.info("TiltDrive Pipeline Demo")
    logger.info("=" * 60)

    source = MockMotionSource(samples=TestScripts.forward_ramp() + TestScripts.slalom())
    link = MockLink(connection_delay=0.1)

    controller = TiltController(
        source=source,
        link=link,
        config=ControllerConfig(
            max_pitch_deg=35,
            max_roll_deg=25,
            smoothing_factor=0.3,
            pitch_threshold_deg=4,
            roll_threshold_deg=2,
            sample_interval_ms=50,
        ),
    )
    controller.set_orientation(DeviceOrientation.LANDSCAPE_LEFT)

    def on_state_change(old_state: DispatcherState, new_state: DispatcherState):
        logger.info(f"STATE CHANGE: {old_state.value} -> {new_state.value}")

    controller.dispatcher.add_state_callback(on_state_change)

    logger.info("Connecting to mock vehicle...")
    await link.connect()

    async with controller.session():
        # Script starts level, so the first half second is a clean neutral
        await asyncio.sleep(0.4)
        controller.calibrate()

        for i in range(40):
            await asyncio.sleep(0.25)
            if i % 4 == 0:
                snap = controller.snapshot()
                logger.info(
                    f"Status: T={snap.throttle_pct:+4d} S={snap.steering_deg:3d} "
                    f"pitch={snap.pitch_deg:+6.1f} roll={snap.roll_deg:+6.1f}"
                )

    await link.disconnect()

    stats = controller.dispatcher.stats
    logger.info("-" * 60)
    logger.info(f"Wire frames: {link.write_count}, bytes: {stats.bytes_sent}")
    for data in link.writes[:10]:
        logger.info(f"  {data!r}")
    if link.write_count > 10:
        logger.info(f"  ... {link.write_count - 10} more")
    logger.info(f"Last frame: {link.writes[-1]!r}" if link.writes else "No frames sent")
    logger.info("=" * 60)


def main():
    """Main entry point"""
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            stream=sys.stdout
        )

    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        logger.info("Demo interrupted by user")
    except Exception as e:
        logger.error(f"Demo failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
