"""BridgeConnector service: bridge discovery, reconnection and paced command dispatch."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import structlog

from ..lib.milight import Bridge, BridgeError, LightGroup, discover_bridges


logger = structlog.get_logger(__name__)

COMMAND_DELAY_MS = 100
DISCOVERY_RETRY_MS = 100


class BridgeConnector:
    """
    Holds the single active bridge and sends light commands through it.

    Commands issued while no bridge is known are dropped. Each dispatch runs
    as its own task and `send` returns once the pacing delay has passed,
    whether or not the bridge has acknowledged by then. A failed dispatch
    schedules rediscovery in the background.
    """

    def __init__(self,
                 static_ip: Optional[str] = None,
                 static_mac: Optional[str] = None,
                 command_delay_ms: int = COMMAND_DELAY_MS,
                 discovery_retry_ms: int = DISCOVERY_RETRY_MS,
                 rediscover_on_error: bool = False,
                 bridge_factory: Callable[..., Bridge] = Bridge,
                 discoverer: Callable[[], Awaitable[List[Bridge]]] = discover_bridges):
        self.static_ip = static_ip
        self.static_mac = static_mac
        self.command_delay = command_delay_ms / 1000.0
        self.discovery_retry = discovery_retry_ms / 1000.0
        self.rediscover_on_error = rediscover_on_error
        self.bridge_factory = bridge_factory
        self.discoverer = discoverer

        self._bridge: Optional[Bridge] = None
        self._discovery_task: Optional[asyncio.Task] = None
        self._dispatches: Set[asyncio.Task] = set()

        # Performance tracking
        self.commands_sent = 0
        self.commands_dropped = 0
        self.dispatch_errors = 0
        self.discovery_attempts = 0

    @property
    def bridge(self) -> Optional[Bridge]:
        return self._bridge

    @property
    def is_discovering(self) -> bool:
        return self._discovery_task is not None and not self._discovery_task.done()

    async def send(self, command: bytes, group: LightGroup) -> bool:
        """
        Dispatch one command to a group.

        Returns:
            False if the bridge rejected the command within the pacing delay,
            True otherwise (including when there is no bridge and the command
            is dropped, or when the bridge has not answered yet)
        """
        bridge = self._bridge
        if bridge is None:
            self.commands_dropped += 1
            logger.debug("No bridge, dropping light command", group=group.name)
            return True

        loop = asyncio.get_running_loop()
        started = loop.time()
        dispatch = asyncio.create_task(bridge.send(command, group.zone))
        self._dispatches.add(dispatch)
        dispatch.add_done_callback(
            lambda task: self._dispatch_done(task, bridge, group)
        )

        done, _ = await asyncio.wait({dispatch}, timeout=self.command_delay)
        remaining = self.command_delay - (loop.time() - started)
        if remaining > 0:
            await asyncio.sleep(remaining)

        if dispatch in done and not dispatch.cancelled():
            return dispatch.exception() is None
        return True

    def request_rediscovery(self) -> asyncio.Task:
        """Start discovery in the background unless one is already running."""
        if not self.is_discovering:
            self._discovery_task = asyncio.create_task(self.discover())
            self._discovery_task.add_done_callback(self._discovery_done)
        return self._discovery_task

    async def discover(self) -> Bridge:
        """
        Find a bridge and make it the active one.

        A configured address is used directly. Otherwise discovery is
        broadcast until at least one bridge answers, with no attempt limit.
        """
        while True:
            self.discovery_attempts += 1
            bridges = await self._find_bridges()
            logger.info("Found bridges", count=len(bridges))
            if bridges:
                break
            logger.info("No bridges found, retrying", retry_ms=int(self.discovery_retry * 1000))
            await asyncio.sleep(self.discovery_retry)

        await self._install(bridges[0])
        return self._bridge

    async def close(self) -> None:
        for dispatch in list(self._dispatches):
            dispatch.cancel()
        if self._dispatches:
            await asyncio.gather(*self._dispatches, return_exceptions=True)
        self._dispatches.clear()

        if self.is_discovering:
            self._discovery_task.cancel()
            try:
                await self._discovery_task
            except asyncio.CancelledError:
                pass
        self._discovery_task = None

        if self._bridge is not None:
            self._bridge.remove_error_listener(self._on_bridge_error)
            await self._bridge.close()
            self._bridge = None

    def get_stats(self) -> Dict[str, Any]:
        return {
            "bridge": self._bridge.address if self._bridge else None,
            "bridge_mac": self._bridge.mac if self._bridge else None,
            "discovering": self.is_discovering,
            "commands_sent": self.commands_sent,
            "commands_dropped": self.commands_dropped,
            "dispatch_errors": self.dispatch_errors,
            "discovery_attempts": self.discovery_attempts,
        }

    async def _find_bridges(self) -> List[Bridge]:
        if self.static_ip:
            return [self.bridge_factory(self.static_ip, self.static_mac)]

        try:
            return list(await self.discoverer())
        except BridgeError as e:
            logger.warning("Bridge discovery failed", error=str(e))
            return []

    async def _install(self, bridge: Bridge) -> None:
        old = self._bridge
        self._bridge = bridge
        bridge.add_error_listener(self._on_bridge_error)
        logger.info("Using bridge", address=bridge.address, mac=bridge.mac)

        if old is not None and old is not bridge:
            old.remove_error_listener(self._on_bridge_error)
            await old.close()

    def _on_bridge_error(self, error: Exception) -> None:
        logger.warning("Bridge error", error=str(error))
        if self.rediscover_on_error:
            self.request_rediscovery()

    def _dispatch_done(self, task: asyncio.Task, bridge: Bridge, group: LightGroup) -> None:
        self._dispatches.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is None:
            self.commands_sent += 1
        elif isinstance(error, BridgeError):
            self.dispatch_errors += 1
            logger.warning("Light command failed, rediscovering bridge",
                           group=group.name,
                           bridge=bridge.address,
                           error=str(error))
            self.request_rediscovery()
        else:
            self.dispatch_errors += 1
            logger.error("Light command crashed", group=group.name, error=str(error))

    def _discovery_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Bridge discovery crashed", error=str(error))
