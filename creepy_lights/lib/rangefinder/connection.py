"""
Connection Management for the rangefinder byte stream.

Opens the sensor, routes framed lines to a handler and reopens the stream
after any error or close. There is no attempt limit: the sensor is expected
to come back eventually, so the manager keeps retrying at a fixed delay until
it is stopped.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from .framing import LineFramer
from .sources import ByteStreamSource, RangefinderClosed, RangefinderError

logger = logging.getLogger(__name__)

LineHandler = Callable[[bytes], Awaitable[None]]
Callback = Callable[..., Union[None, Awaitable[None]]]


class ConnectionState(Enum):
    """Connection state enumeration."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


@dataclass
class ConnectionStats:
    """Connection statistics."""
    total_attempts: int = 0
    successful_opens: int = 0
    failed_attempts: int = 0
    disconnects: int = 0
    lines_received: int = 0
    handler_errors: int = 0
    last_open: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    last_error: Optional[str] = None
    recent_errors: List[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        self.last_failure = datetime.now()
        self.last_error = message
        self.recent_errors.append(message)
        if len(self.recent_errors) > 20:
            self.recent_errors.pop(0)


class SerialConnectionManager:
    """
    Owns the lifecycle of the rangefinder connection.

    Each attempt builds a fresh source from ``source_factory``. Open callbacks
    run after a successful open and before any data is routed; lost callbacks
    run whenever an open attempt fails or an open stream errors or closes.
    Lines are handed to the line handler one at a time, and each handler call
    is awaited before the next line is routed.
    """

    def __init__(
        self,
        source_factory: Callable[[], ByteStreamSource],
        reconnect_delay: float = 2.0,
        framer: Optional[LineFramer] = None
    ):
        """
        Initialize connection manager.

        Args:
            source_factory: Builds a new byte stream source for each attempt
            reconnect_delay: Seconds to wait before reopening after a failure
            framer: Line framer (a new one is created if not given)
        """
        self.source_factory = source_factory
        self.reconnect_delay = reconnect_delay
        self.framer = framer or LineFramer()

        self._state = ConnectionState.DISCONNECTED
        self._source: Optional[ByteStreamSource] = None
        self._running = False
        self._stats = ConnectionStats()

        self._line_handler: Optional[LineHandler] = None
        self._open_callbacks: List[Callback] = []
        self._lost_callbacks: List[Callback] = []
        self._state_change_callbacks: List[Callable[[ConnectionState], None]] = []

    def set_line_handler(self, handler: Optional[LineHandler]) -> None:
        """Install the coroutine that receives each framed line (None to detach)."""
        self._line_handler = handler

    def register_open_callback(self, callback: Callback) -> None:
        self._open_callbacks.append(callback)

    def unregister_open_callback(self, callback: Callback) -> None:
        if callback in self._open_callbacks:
            self._open_callbacks.remove(callback)

    def register_lost_callback(self, callback: Callback) -> None:
        """Register callback run with the error message when the stream is lost."""
        self._lost_callbacks.append(callback)

    def unregister_lost_callback(self, callback: Callback) -> None:
        if callback in self._lost_callbacks:
            self._lost_callbacks.remove(callback)

    def register_state_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Register callback for state changes."""
        self._state_change_callbacks.append(callback)

    async def run(self) -> None:
        """Connect, route data and reconnect until ``stop`` is called."""
        self._running = True
        logger.info("Rangefinder connection manager started")

        while self._running:
            source = self.source_factory()
            self._set_state(ConnectionState.CONNECTING)
            self._stats.total_attempts += 1
            logger.info(f"Opening {source.description}...")

            try:
                await source.open()
            except RangefinderError as e:
                self._stats.failed_attempts += 1
                await self._connection_lost(source, str(e))
                await self._wait_before_retry()
                continue

            self._source = source
            self._connection_opened()
            await self._trigger_callbacks(self._open_callbacks)

            try:
                await self._pump(source)
            except RangefinderClosed as e:
                await self._connection_lost(source, f"{source.description} closed: {e}")
            except RangefinderError as e:
                await self._connection_lost(source, f"Error with {source.description}: {e}")
            else:
                await self._connection_lost(source, None)

            await self._wait_before_retry()

        logger.info("Rangefinder connection manager stopped")

    async def stop(self) -> None:
        """Stop reconnecting and close the current source."""
        self._running = False
        if self._source is not None:
            await self._source.close()

    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    def get_state(self) -> ConnectionState:
        return self._state

    def get_stats(self) -> ConnectionStats:
        return self._stats

    async def _pump(self, source: ByteStreamSource) -> None:
        while self._running:
            data = await source.read()
            if not data:
                continue

            for token in self.framer.feed(data):
                self._stats.lines_received += 1
                handler = self._line_handler
                if handler is None:
                    continue
                try:
                    await handler(token)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._stats.handler_errors += 1
                    logger.error(f"Error handling rangefinder line {token!r}: {e}")

    def _connection_opened(self) -> None:
        self._stats.successful_opens += 1
        self._stats.last_open = datetime.now()
        self.framer.reset()
        self._set_state(ConnectionState.OPEN)
        logger.info(f"Rangefinder {self._source.description} open")

    async def _connection_lost(self, source: ByteStreamSource, message: Optional[str]) -> None:
        was_open = self._source is source
        self._source = None
        self.framer.reset()

        try:
            await source.close()
        except RangefinderError as e:
            logger.debug(f"Error closing {source.description}: {e}")

        if message:
            self._stats.record_error(message)
            logger.warning(message)
        if was_open:
            self._stats.disconnects += 1

        self._set_state(ConnectionState.DISCONNECTED)
        await self._trigger_callbacks(self._lost_callbacks, message)

    async def _wait_before_retry(self) -> None:
        if self._running:
            logger.info(f"Reconnecting in {self.reconnect_delay:.1f}s")
            await asyncio.sleep(self.reconnect_delay)

    def _set_state(self, new_state: ConnectionState) -> None:
        """Set connection state and trigger callbacks."""
        if self._state != new_state:
            old_state = self._state
            self._state = new_state

            logger.debug(f"Connection state: {old_state.value} -> {new_state.value}")
            for callback in self._state_change_callbacks:
                try:
                    callback(new_state)
                except Exception as e:
                    logger.error(f"Error in state change callback: {e}")

    async def _trigger_callbacks(self, callbacks: List[Callback], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(*args)
                else:
                    callback(*args)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def __str__(self) -> str:
        return (
            f"SerialConnectionManager(state={self._state.value}, "
            f"opens={self._stats.successful_opens}, lines={self._stats.lines_received})"
        )
