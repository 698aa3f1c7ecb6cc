"""
Line framing for the rangefinder byte stream.

The sensor writes one ASCII decimal distance per line, terminated by a single
newline. Serial reads split those lines arbitrarily, so the framer buffers
bytes and only hands out complete lines.
"""

import logging
import math
from typing import List

logger = logging.getLogger(__name__)

SENTINEL = b"\n"
DEFAULT_MAX_BUFFER = 4096


class MalformedReadingError(ValueError):
    """Raised when a framed line is not a distance."""

    def __init__(self, token: bytes, reason: str = "not a number"):
        self.token = token
        self.reason = reason
        super().__init__(f"Malformed reading {token!r}: {reason}")


class LineFramer:
    """Accumulates bytes and splits them into newline-terminated tokens."""

    def __init__(self, max_buffer: int = DEFAULT_MAX_BUFFER):
        self.max_buffer = max_buffer
        self._buffer = bytearray()
        self.lines_framed = 0
        self.bytes_dropped = 0

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet terminated by a sentinel."""
        return len(self._buffer)

    def feed(self, data: bytes) -> List[bytes]:
        """
        Add bytes to the buffer and return every complete line, oldest first.

        Args:
            data: Raw bytes as read from the stream

        Returns:
            List of tokens without their sentinel (empty if no line completed)
        """
        self._buffer.extend(data)
        tokens = []

        while True:
            index = self._buffer.find(SENTINEL)
            if index < 0:
                break
            tokens.append(bytes(self._buffer[:index]))
            del self._buffer[:index + 1]

        if len(self._buffer) > self.max_buffer:
            # A line this long means the stream lost sync; start over.
            logger.warning(f"Dropping {len(self._buffer)} unterminated bytes from rangefinder")
            self.bytes_dropped += len(self._buffer)
            self._buffer.clear()

        self.lines_framed += len(tokens)
        return tokens

    def reset(self) -> None:
        """Discard any partial line."""
        self._buffer.clear()


def parse_distance(token: bytes) -> float:
    """
    Parse one framed token into a distance.

    Raises:
        MalformedReadingError: if the token is empty, non-numeric or not finite
    """
    try:
        text = token.decode("ascii").strip()
    except UnicodeDecodeError:
        raise MalformedReadingError(token, "not ASCII") from None

    if not text:
        raise MalformedReadingError(token, "empty line")

    try:
        value = float(text)
    except ValueError:
        raise MalformedReadingError(token) from None

    if not math.isfinite(value):
        raise MalformedReadingError(token, "not finite")

    return value
