"""PresenceLightController service: rangefinder readings in, lighting scenes out."""

import asyncio
import time
from typing import Any, Callable, Dict, Optional

import structlog

from ..lib.milight import LightGroup, command_set_for
from ..lib.rangefinder import (
    ByteStreamSource,
    MalformedReadingError,
    SerialByteSource,
    SerialConnectionManager,
    SimulatedByteSource,
    parse_distance,
)
from ..models import LightConfiguration, LightGroupSettings, TriggerSession, TriggerTransition
from .bridge_connector import BridgeConnector
from .calibrator import Calibrator
from .color_planner import ColorCommandPlanner
from .distance_filter import DistanceFilter
from .trigger_state_machine import Scene, TriggerStateMachine


logger = structlog.get_logger(__name__)


def build_group(settings: LightGroupSettings) -> LightGroup:
    """Create a LightGroup from its configuration."""
    return LightGroup(
        name=settings.name,
        zone=settings.zone,
        commands=command_set_for(settings.bulb_type.value)
    )


def build_scene(configuration: LightConfiguration) -> Scene:
    scene = configuration.scene
    return Scene(
        primary=build_group(scene.primary),
        secondary=build_group(scene.secondary),
        primary_alert_color=tuple(scene.primary_alert_color),
        secondary_alert_color=tuple(scene.secondary_alert_color),
        neutral_color=tuple(scene.neutral_color),
    )


class PresenceLightController:
    """
    Owns one trigger session and every component that works on it.

    Data flows from the connection manager's framed lines through the
    distance filter to the calibrator, and once calibration is done, to the
    trigger state machine. Each line is fully processed, light commands
    included, before the next one is read.
    """

    def __init__(self,
                 configuration: LightConfiguration,
                 connector: Optional[BridgeConnector] = None,
                 source_factory: Optional[Callable[[], ByteStreamSource]] = None,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize the controller from configuration."""
        self.configuration = configuration
        self.session = TriggerSession()
        trigger = configuration.trigger
        bridge = configuration.bridge

        self.connector = connector or BridgeConnector(
            static_ip=bridge.ip,
            static_mac=bridge.mac,
            command_delay_ms=bridge.command_delay_ms,
            discovery_retry_ms=bridge.discovery_retry_ms,
            rediscover_on_error=bridge.rediscover_on_error
        )
        self.planner = ColorCommandPlanner(self.connector)
        self.distance_filter = DistanceFilter(
            self.session,
            window_size=trigger.window_size,
            out_of_range_floor=trigger.out_of_range_floor,
            out_of_range_factor=trigger.out_of_range_factor
        )
        self.calibrator = Calibrator(
            self.session,
            configured_threshold=trigger.min_distance,
            duration_ms=trigger.calibration_ms,
            clock=clock
        )
        self.state_machine = TriggerStateMachine(
            self.session,
            self.planner,
            build_scene(configuration),
            reset_delay_ms=trigger.reset_time_ms,
            clock=clock
        )

        self.connection = SerialConnectionManager(
            source_factory or self._default_source_factory,
            reconnect_delay=configuration.serial.reconnect_delay_ms / 1000.0
        )
        self.connection.set_line_handler(self.handle_line)
        self.connection.register_open_callback(self._on_connection_open)
        self.connection.register_lost_callback(self._on_connection_lost)

        # Runtime state
        self.is_running = False
        self._connection_task: Optional[asyncio.Task] = None

        # Counters
        self.readings_count = 0
        self.malformed_count = 0

    async def start(self) -> None:
        """Start the rangefinder loop and bridge discovery."""
        if self.is_running:
            logger.warning("Controller already running")
            return

        logger.info("Starting presence light controller", config=str(self.configuration))
        self.is_running = True
        self._connection_task = asyncio.create_task(self.connection.run())
        self.connector.request_rediscovery()

    async def stop(self) -> None:
        """Stop the rangefinder loop and release the bridge."""
        if not self.is_running:
            return

        logger.info("Stopping presence light controller")
        self.is_running = False
        await self.connection.stop()

        if self._connection_task:
            self._connection_task.cancel()
            try:
                await self._connection_task
            except asyncio.CancelledError:
                pass
            self._connection_task = None

        await self.connector.close()
        logger.info("Presence light controller stopped")

    async def handle_line(self, token: bytes) -> None:
        """Parse one framed line and process it; malformed lines are logged and skipped."""
        try:
            reading = parse_distance(token)
        except MalformedReadingError as e:
            self.malformed_count += 1
            logger.warning("Discarding malformed reading", token=e.token, reason=e.reason)
            return

        await self.process_reading(reading)

    async def process_reading(self, reading: float) -> TriggerTransition:
        """Filter one reading and run calibration or the trigger logic on it."""
        self.readings_count += 1
        mean = self.distance_filter.observe(reading)
        logger.debug("Distance", reading=reading, average=round(mean, 1),
                     median=self.distance_filter.median())

        transition = self.calibrator.observe(mean)
        if transition != TriggerTransition.NONE:
            return transition

        return await self.state_machine.evaluate(mean)

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of the controller state for logging and diagnostics."""
        stats = self.connection.get_stats()
        return {
            "is_running": self.is_running,
            "light_state": self.session.light_state.value,
            "threshold": self.session.threshold,
            "calibrating": self.session.calibration.active,
            "average_distance": self.distance_filter.mean,
            "connection_state": self.connection.get_state().value,
            "readings": self.readings_count,
            "malformed_readings": self.malformed_count,
            "triggers": self.state_machine.trigger_count,
            "resets": self.state_machine.reset_count,
            "serial_opens": stats.successful_opens,
            "serial_failures": stats.failed_attempts,
            "bridge": self.connector.get_stats(),
        }

    def _default_source_factory(self) -> ByteStreamSource:
        serial_settings = self.configuration.serial
        if serial_settings.testmode:
            return SimulatedByteSource()
        return SerialByteSource(serial_settings.port, serial_settings.baud_rate)

    def _on_connection_open(self) -> None:
        self.calibrator.start()

    def _on_connection_lost(self, message: Optional[str]) -> None:
        self.session.reset_threshold()
        logger.warning("Rangefinder connection lost, threshold reset",
                       reason=message or "stopped")
