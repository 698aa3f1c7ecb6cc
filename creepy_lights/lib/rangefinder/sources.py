"""
Byte stream sources for the rangefinder.

A source is opened once per connection attempt and read until it fails or
closes; the connection manager then builds a fresh one. ``read`` returns the
bytes that arrived (possibly none), raises ``RangefinderClosed`` when the
stream ends and ``RangefinderError`` on I/O failure.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Iterator, Optional, Sequence

import serial
from serial import SerialException

logger = logging.getLogger(__name__)


class RangefinderError(Exception):
    """Raised when the rangefinder stream fails."""
    pass


class RangefinderClosed(RangefinderError):
    """Raised when the rangefinder stream is closed."""
    pass


class ByteStreamSource(ABC):
    """Asynchronous byte stream with open/read/close."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable name used in log messages."""

    @abstractmethod
    async def open(self) -> None:
        """Open the stream; raise RangefinderError on failure."""

    @abstractmethod
    async def read(self) -> bytes:
        """Return newly arrived bytes."""

    @abstractmethod
    async def close(self) -> None:
        """Close the stream; safe to call more than once."""


class SerialByteSource(ByteStreamSource):
    """Rangefinder attached to a serial port, read through pyserial."""

    def __init__(self, port: str, baud_rate: int = 9600, read_timeout: float = 0.1):
        self.port = port
        self.baud_rate = baud_rate
        self.read_timeout = read_timeout
        self._serial: Optional[serial.Serial] = None

    @property
    def description(self) -> str:
        return self.port

    async def open(self) -> None:
        def connect():
            return serial.Serial(self.port, self.baud_rate, timeout=self.read_timeout)

        loop = asyncio.get_running_loop()
        try:
            self._serial = await loop.run_in_executor(None, connect)
        except (SerialException, OSError, ValueError) as e:
            raise RangefinderError(f"Cannot open {self.port}: {e}") from e

    async def read(self) -> bytes:
        ser = self._serial
        if ser is None or not ser.is_open:
            raise RangefinderClosed(f"Serial port {self.port} closed")

        def read_chunk():
            waiting = ser.in_waiting
            return ser.read(min(max(waiting, 1), 4096))

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, read_chunk)
        except (SerialException, OSError, TypeError) as e:
            # pyserial raises TypeError when the port is closed mid-read
            if not ser.is_open:
                raise RangefinderClosed(f"Serial port {self.port} closed") from e
            raise RangefinderError(f"Error with port {self.port}: {e}") from e

    async def close(self) -> None:
        ser, self._serial = self._serial, None
        if ser is not None and ser.is_open:
            try:
                ser.close()
            except (SerialException, OSError) as e:
                logger.warning(f"Error closing {self.port}: {e}")


def approach_pattern(
    far: float = 1500.0,
    near: float = 600.0,
    far_samples: int = 120,
    near_samples: int = 40,
    jitter: float = 25.0,
    dropout_rate: float = 0.05,
    rng: Optional[random.Random] = None
) -> Iterator[float]:
    """
    Endless simulated readings: a quiet stretch, then an object close by.

    A fraction of readings are zero, which is what the sensor reports when
    nothing is in range.
    """
    rng = rng or random.Random()
    while True:
        for level, count in ((far, far_samples), (near, near_samples)):
            for _ in range(count):
                if rng.random() < dropout_rate:
                    yield 0.0
                else:
                    yield max(0.0, level + rng.uniform(-jitter, jitter))


class SimulatedByteSource(ByteStreamSource):
    """Software rangefinder used in test mode."""

    def __init__(
        self,
        readings: Optional[Sequence[float]] = None,
        interval: float = 0.1,
        chunk_sizes: Sequence[int] = (3, 5, 8),
        rng: Optional[random.Random] = None
    ):
        self.interval = interval
        self.chunk_sizes = list(chunk_sizes)
        self._rng = rng or random.Random()
        self._readings: Iterator[float] = (
            iter(readings) if readings is not None else approach_pattern(rng=self._rng)
        )
        self._pending = bytearray()
        self._is_open = False

    @property
    def description(self) -> str:
        return "simulated rangefinder"

    async def open(self) -> None:
        self._is_open = True
        self._pending.clear()

    async def read(self) -> bytes:
        if not self._is_open:
            raise RangefinderClosed("Simulated rangefinder closed")

        if not self._pending:
            await asyncio.sleep(self.interval)
            try:
                reading = next(self._readings)
            except StopIteration:
                self._is_open = False
                raise RangefinderClosed("Simulated readings exhausted") from None
            self._pending.extend(f"{int(reading)}\n".encode("ascii"))

        # Hand out uneven chunks so framing sees split lines
        size = self._rng.choice(self.chunk_sizes)
        chunk = bytes(self._pending[:size])
        del self._pending[:size]
        return chunk

    async def close(self) -> None:
        self._is_open = False

