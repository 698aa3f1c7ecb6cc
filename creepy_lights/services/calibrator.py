"""Calibrator service: learns the trigger threshold after each connection."""

import time
from typing import Callable

import structlog

from ..models import TriggerSession, TriggerTransition


logger = structlog.get_logger(__name__)

CALIBRATION_MS = 5000


class Calibrator:
    """
    Establishes the trigger threshold once per connection lifetime.

    A configured non-zero trigger distance skips the warm-up entirely.
    Otherwise every filtered observation during the warm-up window is
    consumed, and the first one at or past the end of the window becomes the
    threshold. That completing observation is consumed as well.
    """

    def __init__(self,
                 session: TriggerSession,
                 configured_threshold: float = 0.0,
                 duration_ms: int = CALIBRATION_MS,
                 clock: Callable[[], float] = time.monotonic):
        self.session = session
        self.configured_threshold = configured_threshold
        self.duration = duration_ms / 1000.0
        self.clock = clock

    @property
    def active(self) -> bool:
        return self.session.calibration.active

    def start(self) -> None:
        """Begin a new calibration for a freshly opened connection."""
        if self.configured_threshold:
            self.session.threshold = self.configured_threshold
            self.session.calibration.finish()
            logger.info("Using configured trigger distance, calibration skipped",
                        threshold=self.session.threshold)
            return

        self.session.calibration.begin(self.clock())
        logger.info(f"Calibrating ({self.duration:g}s)...")

    def observe(self, mean: float) -> TriggerTransition:
        """
        Feed one filtered observation.

        Returns:
            CALIBRATING or CALIBRATED if the observation was consumed,
            NONE if calibration is complete and the trigger logic may run
        """
        calibration = self.session.calibration
        if not calibration.active:
            return TriggerTransition.NONE

        elapsed = calibration.elapsed(self.clock())
        if elapsed is None or elapsed < self.duration:
            return TriggerTransition.CALIBRATING

        self.session.threshold = mean
        calibration.finish()
        logger.info("Calibrated min trigger distance", threshold=round(mean, 1))
        return TriggerTransition.CALIBRATED
