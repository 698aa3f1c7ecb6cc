"""DistanceFilter service: moving average over the most recent readings."""

import statistics
from collections import deque
from typing import List, Optional

import structlog

from ..models import TriggerSession


logger = structlog.get_logger(__name__)

WINDOW_SIZE = 10

# The sensor reports (near) zero when nothing is in range.
OUT_OF_RANGE_FLOOR = 100.0

# Out-of-range readings count as this multiple of the trigger threshold, far
# enough out that they pull the average away from "present".
OUT_OF_RANGE_FACTOR = 1.25


class DistanceFilter:
    """
    Fixed-size window of recent readings and their arithmetic mean.

    The filter reads the trigger threshold from the session to substitute
    out-of-range readings but never changes it.
    """

    def __init__(self,
                 session: TriggerSession,
                 window_size: int = WINDOW_SIZE,
                 out_of_range_floor: float = OUT_OF_RANGE_FLOOR,
                 out_of_range_factor: float = OUT_OF_RANGE_FACTOR):
        if window_size < 1:
            raise ValueError("window_size must be at least 1")

        self.session = session
        self.window_size = window_size
        self.out_of_range_floor = out_of_range_floor
        self.out_of_range_factor = out_of_range_factor
        self.readings: deque = deque(maxlen=window_size)

    def substitute(self, reading: float) -> float:
        """Replace an out-of-range reading with the far-away stand-in value."""
        if reading < self.out_of_range_floor:
            return self.out_of_range_factor * self.session.threshold
        return reading

    def observe(self, reading: float) -> float:
        """Add a reading (evicting the oldest when full) and return the window mean."""
        self.readings.append(self.substitute(reading))
        return self.mean

    @property
    def mean(self) -> float:
        if not self.readings:
            return 0.0
        return sum(self.readings) / len(self.readings)

    def median(self) -> Optional[float]:
        """Median of the window, computed on a copy."""
        if not self.readings:
            return None
        return statistics.median(list(self.readings))

    def snapshot(self) -> List[float]:
        return list(self.readings)

    def __len__(self) -> int:
        return len(self.readings)
