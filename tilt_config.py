#!/usr/bin/env python3
"""
TiltDrive Environment Configuration Helper

Provides easy access to .env configuration for the launcher and demos.
Automatically loads .env file and provides defaults.

Variables:
    TILT_LINK              mock | serial | rfcomm (default: mock)
    TILT_SERIAL_PORT       e.g. /dev/rfcomm0, COM5
    TILT_BAUD_RATE         default 9600
    TILT_RFCOMM_ADDRESS    receiver MAC, AA:BB:CC:DD:EE:FF
    TILT_RFCOMM_CHANNEL    default 1
    TILT_PROTOCOL          line | axis-pair (default: line)
    TILT_MAX_PITCH         degrees for full throttle (default 35)
    TILT_MAX_ROLL          degrees for full steering (default 25)
    TILT_SMOOTHING         EMA factor in [0, 1) (default 0.3)
    TILT_PITCH_THRESHOLD   throttle dead zone, degrees (default 4)
    TILT_ROLL_THRESHOLD    steering dead zone, degrees (default 2)
    TILT_SAMPLE_INTERVAL   sensor interval, ms (default 50)
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from tiltdrive.types import ControllerConfig, WireProtocol


LINK_TYPES = ("mock", "serial", "rfcomm")


class TiltConfig:
    """Configuration manager for TiltDrive tools"""

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize configuration

        Args:
            env_file: Path to .env file (default: .env in current directory)
        """
        env_path = Path(".env") if env_file is None else Path(env_file)

        self._loaded = False
        if env_path.exists():
            load_dotenv(env_path)
            self._loaded = True

    @property
    def link(self) -> str:
        """Link type (default: mock)"""
        return os.getenv("TILT_LINK", "mock").strip().lower()

    @property
    def serial_port(self) -> Optional[str]:
        """Serial device for the serial link"""
        return os.getenv("TILT_SERIAL_PORT")

    @property
    def baud_rate(self) -> int:
        """Serial baud rate (default: 9600)"""
        return int(os.getenv("TILT_BAUD_RATE", "9600"))

    @property
    def rfcomm_address(self) -> Optional[str]:
        """Receiver MAC address for the RFCOMM link"""
        return os.getenv("TILT_RFCOMM_ADDRESS")

    @property
    def rfcomm_channel(self) -> int:
        """Bluetooth RFCOMM channel (default: 1)"""
        return int(os.getenv("TILT_RFCOMM_CHANNEL", "1"))

    @property
    def protocol(self) -> WireProtocol:
        """Wire protocol (default: line)"""
        return WireProtocol(os.getenv("TILT_PROTOCOL", WireProtocol.LINE.value).strip().lower())

    def controller_config(self) -> ControllerConfig:
        """
        Build the pipeline configuration from the environment.

        Raises:
            ValueError: for values that cannot be parsed or are out of range
        """
        defaults = ControllerConfig()
        return ControllerConfig(
            max_pitch_deg=float(os.getenv("TILT_MAX_PITCH", defaults.max_pitch_deg)),
            max_roll_deg=float(os.getenv("TILT_MAX_ROLL", defaults.max_roll_deg)),
            smoothing_factor=float(os.getenv("TILT_SMOOTHING", defaults.smoothing_factor)),
            pitch_threshold_deg=float(os.getenv("TILT_PITCH_THRESHOLD", defaults.pitch_threshold_deg)),
            roll_threshold_deg=float(os.getenv("TILT_ROLL_THRESHOLD", defaults.roll_threshold_deg)),
            sample_interval_ms=int(os.getenv("TILT_SAMPLE_INTERVAL", defaults.sample_interval_ms)),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate configuration

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []

        if self.link not in LINK_TYPES:
            errors.append(f"TILT_LINK must be one of {', '.join(LINK_TYPES)}")
        elif self.link == "serial" and not self.serial_port:
            errors.append("TILT_SERIAL_PORT not set")
        elif self.link == "rfcomm":
            if not self.rfcomm_address:
                errors.append("TILT_RFCOMM_ADDRESS not set")
            elif not self._is_valid_mac(self.rfcomm_address):
                errors.append("TILT_RFCOMM_ADDRESS has invalid format (expected AA:BB:CC:DD:EE:FF)")

        try:
            self.protocol
        except ValueError:
            errors.append("TILT_PROTOCOL must be 'line' or 'axis-pair'")

        try:
            self.controller_config()
        except ValueError as e:
            errors.append(f"Invalid controller setting: {e}")

        return len(errors) == 0, errors

    @staticmethod
    def _is_valid_mac(mac: str) -> bool:
        """Check if MAC address has valid format"""
        parts = mac.split(":")
        if len(parts) != 6:
            return False
        for part in parts:
            if len(part) != 2:
                return False
            try:
                int(part, 16)
            except ValueError:
                return False
        return True

    def print_status(self):
        """Print configuration status"""
        print("TiltDrive Configuration Status:")
        print(f"  .env loaded: {'Yes' if self._loaded else 'No'}")
        print(f"  Link:        {self.link}")
        print(f"  Serial port: {self.serial_port or '(not set)'} @ {self.baud_rate}")
        print(f"  RFCOMM:      {self.rfcomm_address or '(not set)'} ch {self.rfcomm_channel}")

        is_valid, errors = self.validate()
        if is_valid:
            print(f"  Protocol:    {self.protocol.value}")
            print(f"  Pipeline:    {self.controller_config()}")
            print("\n  Status: Configuration is valid")
        else:
            print("\n  Status: Configuration has errors:")
            for error in errors:
                print(f"    - {error}")


# Global config instance
_config = None

def get_config(reload: bool = False) -> TiltConfig:
    """
    Get the global configuration instance

    Args:
        reload: Force reload of .env file

    Returns:
        TiltConfig instance
    """
    global _config
    if _config is None or reload:
        _config = TiltConfig()
    return _config


def main():
    """Command-line utility to check configuration"""
    import argparse
    import sys

    parser = argparse.ArgumentParser(
        description="TiltDrive Configuration Utility",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Check current configuration:
    python tilt_config.py

  Validate configuration:
    python tilt_config.py --validate

  Use custom .env file:
    python tilt_config.py --env-file /path/to/.env
        """
    )

    parser.add_argument("--env-file", help="Path to .env file")
    parser.add_argument("--validate", action="store_true",
                       help="Validate configuration and exit with error if invalid")

    args = parser.parse_args()

    config = TiltConfig(args.env_file)
    config.print_status()

    if args.validate:
        is_valid, _ = config.validate()
        if not is_valid:
            print("\nValidation failed!")
            sys.exit(1)
        print("\nValidation passed!")


if __name__ == "__main__":
    main()
