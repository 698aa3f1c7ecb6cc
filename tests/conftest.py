"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from typing import List

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from creepy_lights.lib.milight import BridgeError, LightGroup, RGBCCTCommands, RGBWCommands
from creepy_lights.lib.rangefinder import RangefinderClosed, RangefinderError, SimulatedByteSource
from creepy_lights.models import TriggerSession


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingBridge:
    """Stand-in for a Mi-Light bridge that records what it is sent."""

    def __init__(self, address: str = "10.0.0.9", mac: str = None):
        self.address = address
        self.mac = mac
        self.sent = []
        self.fail = False
        self.closed = False
        self.error_listeners = []

    async def send(self, command: bytes, zone: int) -> None:
        if self.fail:
            raise BridgeError("no ack from bridge")
        self.sent.append((command, zone))

    def add_error_listener(self, listener) -> None:
        self.error_listeners.append(listener)

    def remove_error_listener(self, listener) -> None:
        if listener in self.error_listeners:
            self.error_listeners.remove(listener)

    def emit_error(self, error: Exception) -> None:
        for listener in list(self.error_listeners):
            listener(error)

    async def close(self) -> None:
        self.closed = True


class RecordingConnector:
    """Stand-in for BridgeConnector that records (command, group name) pairs."""

    def __init__(self):
        self.sent = []

    async def send(self, command: bytes, group: LightGroup) -> bool:
        self.sent.append((command, group.name))
        return True


class ScriptedByteSource(SimulatedByteSource):
    """Byte source that replays fixed chunks, then reports the stream closed."""

    def __init__(self, chunks: List[bytes], fail_open: bool = False):
        super().__init__(readings=[], interval=0.0)
        self.chunks = list(chunks)
        self.fail_open = fail_open
        self.opened = False

    async def open(self) -> None:
        if self.fail_open:
            raise RangefinderError("No such port")
        self.opened = True
        await super().open()

    async def read(self) -> bytes:
        if not self._is_open:
            raise RangefinderClosed("Scripted source closed")
        await asyncio.sleep(0)
        if not self.chunks:
            self._is_open = False
            raise RangefinderClosed("Scripted data exhausted")
        return self.chunks.pop(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return TriggerSession()


@pytest.fixture
def door_group():
    return LightGroup(name="door", zone=1, commands=RGBWCommands())


@pytest.fixture
def porch_group():
    return LightGroup(name="porch", zone=2, commands=RGBCCTCommands())


@pytest.fixture
def recording_connector():
    return RecordingConnector()


@pytest.fixture
def recording_bridge():
    return RecordingBridge()


@pytest.fixture
def scripted_source_class():
    return ScriptedByteSource


@pytest.fixture
def bridge_class():
    return RecordingBridge
