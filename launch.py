#!/usr/bin/env python3
"""
TiltDrive Launcher - drive a vehicle by tilting

Usage:
    python launch.py --demo                       # Scripted demo, no hardware
    python launch.py --mock --source gamepad      # Gamepad tilt, mock link
    python launch.py --serial /dev/rfcomm0        # Gamepad tilt over serial SPP
    python launch.py --rfcomm AA:BB:CC:DD:EE:FF   # Gamepad tilt over RFCOMM socket

Settings not given on the command line come from .env (see tilt_config.py).
"""

import sys
import argparse
import asyncio
import logging
from typing import Optional

from tilt_config import TiltConfig
from tiltdrive.controller import TiltController
from tiltdrive.interfaces import ConnectionLink, SensorUnavailableError
from tiltdrive.types import LinkStatus, WireProtocol


logger = logging.getLogger("launch")


def setup_logging(level: str = "INFO") -> None:
    """Configure logging"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )


def build_link(args: argparse.Namespace, config: TiltConfig, protocol: WireProtocol) -> ConnectionLink:
    """Create the link selected on the command line or in .env"""
    link_type = "mock" if args.mock else config.link
    serial_port = args.serial or config.serial_port
    rfcomm_address = args.rfcomm or config.rfcomm_address

    if args.serial:
        link_type = "serial"
    elif args.rfcomm:
        link_type = "rfcomm"

    if link_type == "serial":
        if not serial_port:
            raise ValueError("No serial port given (--serial or TILT_SERIAL_PORT)")
        from tiltdrive.transport.serial_link import SerialLink
        return SerialLink(serial_port, baudrate=args.baud or config.baud_rate)

    if link_type == "rfcomm":
        if not rfcomm_address:
            raise ValueError("No receiver address given (--rfcomm or TILT_RFCOMM_ADDRESS)")
        from tiltdrive.transport.rfcomm import RfcommLink
        return RfcommLink(rfcomm_address, channel=args.channel or config.rfcomm_channel)

    from tiltdrive.transport import MockLink
    print("Using MOCK link (no actual hardware)")
    return MockLink(protocol=protocol)


def build_source(name: str):
    """Create the motion source"""
    if name == "gamepad":
        from motion.gamepad_motion import GamepadMotionSource
        return GamepadMotionSource()

    from motion import MockMotionSource
    source = MockMotionSource()
    source.load_script("slalom")
    return source


async def run_session(
    controller: TiltController,
    link: ConnectionLink,
    duration: Optional[float],
    calibrate_after: float,
) -> None:
    """Connect, drive until duration elapses (or forever), then shut down"""
    if not await link.connect():
        raise RuntimeError("Could not connect to vehicle")

    loop = asyncio.get_running_loop()
    started = loop.time()
    calibrated = False

    try:
        async with controller.session():
            print("Hold the device in its neutral position...")
            while duration is None or loop.time() - started < duration:
                await asyncio.sleep(0.1)
                elapsed = loop.time() - started

                if not calibrated and elapsed >= calibrate_after:
                    controller.calibrate()
                    calibrated = True

                calibrate_pressed = getattr(controller.source, "calibrate_pressed", None)
                if calibrate_pressed is not None and calibrate_pressed():
                    controller.calibrate()

                if link.status != LinkStatus.CONNECTED:
                    logger.error("Link lost, ending session")
                    break

                if int(elapsed * 10) % 10 == 0:
                    snap = controller.snapshot()
                    stats = controller.dispatcher.stats
                    logger.info(
                        f"T={snap.throttle_pct:+4d} S={snap.steering_deg:3d} "
                        f"pitch={snap.pitch_deg:+6.1f} roll={snap.roll_deg:+6.1f} | "
                        f"sent={stats.commands_sent} fail={stats.write_failures}"
                    )
    finally:
        await link.disconnect()


def launch_demo() -> None:
    """Launch the scripted pipeline demo"""
    print("Starting tilt pipeline demo...")
    from demo_tilt import main
    main()


def launch_drive(args: argparse.Namespace) -> None:
    """Launch a driving session"""
    config = TiltConfig(args.env_file)
    protocol = WireProtocol(args.protocol) if args.protocol else config.protocol

    try:
        link = build_link(args, config, protocol)
        controller = TiltController(
            source=build_source(args.source),
            link=link,
            config=config.controller_config(),
            protocol=protocol,
        )
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(2)

    try:
        asyncio.run(run_session(controller, link, args.duration, args.calibrate_after))
    except KeyboardInterrupt:
        print("\nShutting down...")
    except SensorUnavailableError as e:
        print(f"Motion sensor unavailable: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Session failed: {e}", exc_info=True)
        sys.exit(1)


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="TiltDrive - tilt-controlled vehicle commander",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python launch.py --demo                        Run scripted demo
  python launch.py --mock --source gamepad       Test gamepad with mock link
  python launch.py --serial /dev/rfcomm0         Drive over a bound SPP port
        """
    )

    parser.add_argument("--demo", action="store_true", help="Run scripted pipeline demo")
    parser.add_argument("--mock", action="store_true",
                        help="Use mock link for testing (no hardware needed)")
    parser.add_argument("--serial", metavar="PORT", help="Serial port of the receiver")
    parser.add_argument("--baud", type=int, help="Serial baud rate")
    parser.add_argument("--rfcomm", metavar="ADDR", help="Receiver Bluetooth address")
    parser.add_argument("--channel", type=int, help="RFCOMM channel")
    parser.add_argument(
        "--source",
        choices=["mock", "gamepad"],
        default="gamepad",
        help="Motion source (gamepad requires pygame and a controller)"
    )
    parser.add_argument(
        "--protocol",
        choices=[p.value for p in WireProtocol],
        help="Wire protocol expected by the receiver"
    )
    parser.add_argument("--duration", type=float, help="Stop after N seconds")
    parser.add_argument("--calibrate-after", type=float, default=1.0,
                        help="Seconds to settle before calibrating neutral")
    parser.add_argument("--env-file", help="Path to .env file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level"
    )

    args = parser.parse_args()

    setup_logging(args.log_level)

    if args.demo:
        launch_demo()
    else:
        launch_drive(args)


if __name__ == "__main__":
    main()
