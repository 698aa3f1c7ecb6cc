"""
Mi-Light iBox v6 bridge transport over UDP.

Discovery broadcasts a probe to port 48899 and collects ``ip,MAC,model``
replies. Commands go to port 5987 inside a session: the bridge hands out a
two-byte session id in reply to a start-session packet, and every command
packet carries that id, a rolling sequence number, the zone and a checksum.
The bridge acknowledges each command with the sequence number it received.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

COMMAND_PORT = 5987
DISCOVERY_PORT = 48899
DISCOVERY_MESSAGE = b"HF-A11ASSISTHREAD"
BROADCAST_ADDRESS = "255.255.255.255"

START_SESSION = bytes.fromhex(
    "20000000160262"
    "3AD5EDA301AE082D466141A7F6DCAFD3E6"
    "00001E"
)
SESSION_REPLY_PREFIX = 0x28
SESSION_ID_OFFSET = 19
COMMAND_HEADER = bytes([0x80, 0x00, 0x00, 0x00, 0x11])
ACK_PREFIX = 0x88
ACK_SEQUENCE_OFFSET = 6

ErrorListener = Callable[[Exception], None]


class BridgeError(Exception):
    """Raised when a command cannot be delivered to the bridge."""
    pass


class BridgeTimeout(BridgeError):
    """Raised when the bridge does not answer in time."""
    pass


def checksum(command: bytes, zone: int) -> int:
    """Checksum over the command payload, zone and trailing zero byte."""
    return (sum(command) + zone) & 0xFF


def build_command_packet(session: Tuple[int, int], sequence: int, command: bytes, zone: int) -> bytes:
    """Frame a 9-byte command payload for the given session and zone."""
    if len(command) != 9:
        raise ValueError(f"Command payload must be 9 bytes, got {len(command)}")
    if zone not in range(5):
        raise ValueError(f"Invalid zone: {zone}")

    return (
        COMMAND_HEADER
        + bytes([session[0], session[1], 0x00, sequence & 0xFF, 0x00])
        + command
        + bytes([zone, 0x00, checksum(command, zone)])
    )


def parse_session_reply(data: bytes) -> Optional[Tuple[int, int]]:
    """Extract the session id from a start-session reply."""
    if len(data) <= SESSION_ID_OFFSET + 1 or data[0] != SESSION_REPLY_PREFIX:
        return None
    return data[SESSION_ID_OFFSET], data[SESSION_ID_OFFSET + 1]


def is_ack(data: bytes, sequence: int) -> bool:
    return (
        len(data) > ACK_SEQUENCE_OFFSET
        and data[0] == ACK_PREFIX
        and data[ACK_SEQUENCE_OFFSET] == sequence & 0xFF
    )


def parse_discovery_reply(data: bytes) -> Optional[Tuple[str, str]]:
    """Parse an ``ip,MAC,model`` discovery reply into (ip, mac)."""
    try:
        text = data.decode("ascii").strip()
    except UnicodeDecodeError:
        return None

    parts = text.split(",")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1].upper()


class _BridgeProtocol(asyncio.DatagramProtocol):
    """Datagram protocol that queues replies and forwards errors."""

    def __init__(self, bridge: "Bridge"):
        self.bridge = bridge
        self.replies: asyncio.Queue = asyncio.Queue()

    def datagram_received(self, data: bytes, addr) -> None:
        self.replies.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        self.bridge._emit_error(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self.bridge._transport_lost()
        if exc is not None:
            self.bridge._emit_error(exc)


class Bridge:
    """
    Handle to one Mi-Light bridge.

    The socket and session are created lazily on the first send. Errors the
    socket reports outside of a send are delivered to the error listeners.
    """

    def __init__(
        self,
        address: str,
        mac: Optional[str] = None,
        port: int = COMMAND_PORT,
        timeout: float = 1.0
    ):
        self.address = address
        self.mac = mac
        self.port = port
        self.timeout = timeout

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._protocol: Optional[_BridgeProtocol] = None
        self._session: Optional[Tuple[int, int]] = None
        self._sequence = 0
        self._lock = asyncio.Lock()
        self._error_listeners: List[ErrorListener] = []

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        if listener in self._error_listeners:
            self._error_listeners.remove(listener)

    async def send(self, command: bytes, zone: int) -> None:
        """Deliver one command payload to a zone and wait for the ack."""
        async with self._lock:
            try:
                await self._ensure_session()
                self._sequence = (self._sequence + 1) & 0xFF
                packet = build_command_packet(self._session, self._sequence, command, zone)
                self._drain_replies()
                self._transport.sendto(packet)
                await self._wait_for(lambda data: is_ack(data, self._sequence))
            except BridgeError:
                self._session = None
                raise
            except OSError as e:
                self._session = None
                raise BridgeError(f"Send to {self.address} failed: {e}") from e

    async def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
        self._transport = None
        self._protocol = None
        self._session = None

    async def _ensure_session(self) -> None:
        if self._transport is None:
            loop = asyncio.get_running_loop()
            self._transport, self._protocol = await loop.create_datagram_endpoint(
                lambda: _BridgeProtocol(self),
                remote_addr=(self.address, self.port)
            )
            logger.debug(f"Bridge socket opened to {self.address}:{self.port}")

        if self._session is None:
            self._drain_replies()
            self._transport.sendto(START_SESSION)
            reply = await self._wait_for(lambda data: parse_session_reply(data) is not None)
            self._session = parse_session_reply(reply)
            logger.debug(f"Bridge session {self._session[0]:02X}{self._session[1]:02X} started")

    async def _wait_for(self, predicate: Callable[[bytes], bool]) -> bytes:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0 or self._protocol is None:
                raise BridgeTimeout(f"No reply from bridge {self.address}")
            try:
                data = await asyncio.wait_for(self._protocol.replies.get(), remaining)
            except asyncio.TimeoutError:
                raise BridgeTimeout(f"No reply from bridge {self.address}") from None
            if predicate(data):
                return data

    def _drain_replies(self) -> None:
        if self._protocol is None:
            return
        while not self._protocol.replies.empty():
            self._protocol.replies.get_nowait()

    def _transport_lost(self) -> None:
        self._transport = None
        self._session = None

    def _emit_error(self, error: Exception) -> None:
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception as e:
                logger.error(f"Error in bridge error listener: {e}")

    def __str__(self) -> str:
        return f"Bridge({self.address}, mac={self.mac or 'unknown'})"


class _DiscoveryProtocol(asyncio.DatagramProtocol):
    def __init__(self, replies: List[Tuple[str, str]]):
        self.replies = replies

    def datagram_received(self, data: bytes, addr) -> None:
        parsed = parse_discovery_reply(data)
        if parsed and parsed not in self.replies:
            self.replies.append(parsed)

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"Discovery socket error: {exc}")


async def discover_bridges(
    timeout: float = 1.0,
    broadcast_address: str = BROADCAST_ADDRESS
) -> List[Bridge]:
    """Broadcast a discovery probe and return a handle for every bridge that answers."""
    loop = asyncio.get_running_loop()
    replies: List[Tuple[str, str]] = []

    try:
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _DiscoveryProtocol(replies),
            local_addr=("0.0.0.0", 0),
            allow_broadcast=True
        )
    except OSError as e:
        raise BridgeError(f"Cannot open discovery socket: {e}") from e

    try:
        transport.sendto(DISCOVERY_MESSAGE, (broadcast_address, DISCOVERY_PORT))
        await asyncio.sleep(timeout)
    finally:
        transport.close()

    return [Bridge(ip, mac) for ip, mac in replies]
