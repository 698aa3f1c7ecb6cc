"""Main CLI application orchestrating all components."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from .. import __version__
from ..lib.config import (
    DEFAULT_CONFIG_FILE,
    ConfigManager,
    ConfigurationError,
    export_configuration,
    load_default_configuration,
    validate_config_file,
)
from ..lib.rangefinder import format_port, list_serial_ports
from ..models import LightConfiguration
from ..services import PresenceLightController


logger = structlog.get_logger(__name__)


class CreepyLightsApplication:
    """Main application orchestrating all components."""

    def __init__(self, configuration: LightConfiguration):
        """Initialize the application."""
        self.configuration = configuration
        self.controller: Optional[PresenceLightController] = None
        self.is_running = False
        self._status_task: Optional[asyncio.Task] = None

    async def start(self, status_interval: float = 0.0) -> None:
        """Start the controller and optional periodic status logging."""
        logger.info("Starting creepy lights",
                    version=__version__,
                    serial_port=self.configuration.serial.port,
                    testmode=self.configuration.serial.testmode,
                    bridge_ip=self.configuration.bridge.ip or "discover")

        self.controller = PresenceLightController(self.configuration)
        await self.controller.start()
        self.is_running = True

        if status_interval > 0:
            self._status_task = asyncio.create_task(self._status_loop(status_interval))

        logger.info("Press CTRL+C to quit.")

    async def stop(self) -> None:
        """Stop all application components."""
        if not self.is_running:
            return

        self.is_running = False
        if self._status_task:
            self._status_task.cancel()
            try:
                await self._status_task
            except asyncio.CancelledError:
                pass
            self._status_task = None

        if self.controller:
            await self.controller.stop()

        logger.info("Creepy lights stopped")

    async def _status_loop(self, interval: float) -> None:
        while self.is_running:
            await asyncio.sleep(interval)
            logger.info("Status", **self.controller.get_status())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="creepy-lights",
        description=(
            "Presence-triggered lighting. By default, discovers the Mi-Light bridge and "
            "calibrates the trigger distance 5s after start or rangefinder reconnect."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  creepy-lights --serial-port /dev/ttyUSB0         # Discover bridge, calibrate
  creepy-lights --config config.yaml               # Load specific configuration
  creepy-lights --testmode --debug                 # Simulated rangefinder
  creepy-lights --list                             # Show available serial ports
  creepy-lights --export-config config.yaml        # Write example config and exit
        """
    )

    parser.add_argument("--config", type=str,
                        help=f"Path to YAML configuration file (default: {DEFAULT_CONFIG_FILE} if present)")
    parser.add_argument("--serial-port", type=str, help="Serial port device name (or path)")
    parser.add_argument("--bridge-ip", type=str,
                        help="IP address of the Mi-Light wifi bridge; skips discovery")
    parser.add_argument("--bridge-mac", type=str, help="MAC address of the Mi-Light wifi bridge")
    parser.add_argument("--min-distance", type=float,
                        help="Trigger distance in tenths of a millimeter; skips calibration")
    parser.add_argument("--reset-time-ms", type=int,
                        help="Time after the object moves out of range before resetting lights")
    parser.add_argument("--testmode", action="store_true",
                        help="Simulate the rangefinder instead of opening a serial port")
    parser.add_argument("--status-interval", type=float, default=0.0,
                        help="Log controller status every N seconds (default: off)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--list", action="store_true", help="Print available serial ports and exit")
    parser.add_argument("--check-config", action="store_true",
                        help="Validate the configuration file and exit")
    parser.add_argument("--export-config", type=str,
                        help="Export example configuration to the given path and exit")
    parser.add_argument("--version", action="version", version=__version__)

    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Configuration overrides from command-line arguments that were given."""
    overrides: Dict[str, Any] = {}

    def put(section: str, key: str, value: Any) -> None:
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    put("serial", "port", args.serial_port)
    put("serial", "testmode", True if args.testmode else None)
    put("bridge", "ip", args.bridge_ip)
    put("bridge", "mac", args.bridge_mac)
    put("trigger", "min_distance", args.min_distance)
    put("trigger", "reset_time_ms", args.reset_time_ms)
    if args.debug:
        overrides["enable_debug_logging"] = True
    return overrides


def resolve_config_path(config_arg: Optional[str]) -> Optional[Path]:
    if config_arg:
        return Path(config_arg)
    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.exists() else None


def configure_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=True)
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def show_ports() -> int:
    try:
        ports = list_serial_ports()
    except OSError as e:
        logger.error("Failed to list serial ports", error=str(e))
        return 1

    print("Paste one of these serial ports into the serial.port setting:")
    for info in ports:
        print(format_port(info))
    return 0


def check_config(config_path: Optional[Path]) -> int:
    if config_path is None:
        logger.error("No configuration file to check", default=DEFAULT_CONFIG_FILE)
        return 1
    result = validate_config_file(config_path)
    result.print_results()
    return 0 if result.is_valid else 1


async def run(configuration: LightConfiguration, status_interval: float) -> int:
    app = CreepyLightsApplication(configuration)
    try:
        await app.start(status_interval=status_interval)
        while app.is_running:
            await asyncio.sleep(1)
        return 0
    except Exception as e:
        logger.error("Application error", error=str(e))
        return 1
    finally:
        await app.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    if args.list:
        return show_ports()

    if args.export_config:
        try:
            export_configuration(load_default_configuration(), args.export_config)
        except ConfigurationError as e:
            logger.error("Failed to export configuration", error=str(e))
            return 1
        logger.info("Configuration exported successfully", path=args.export_config)
        return 0

    config_path = resolve_config_path(args.config)

    if args.check_config:
        return check_config(config_path)

    if config_path is None:
        logger.warning("No configuration file, using defaults and command-line options",
                       expected=DEFAULT_CONFIG_FILE)

    try:
        configuration = ConfigManager(config_path).load_config(overrides=cli_overrides(args))
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return 1

    if configuration.enable_debug_logging and not args.debug:
        configure_logging(True)

    try:
        return asyncio.run(run(configuration, args.status_interval))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
