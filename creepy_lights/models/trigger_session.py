"""Mutable trigger state shared by the filter, calibrator and state machine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class LightState(str, Enum):
    """Lighting scene currently shown."""

    NORMAL = "normal"
    CREEPY = "creepy"


class TriggerTransition(str, Enum):
    """Outcome of evaluating one filtered observation."""

    NONE = "none"
    CALIBRATING = "calibrating"
    CALIBRATED = "calibrated"
    TRIGGERED = "triggered"
    REFRESHED = "refreshed"
    DEPARTED = "departed"


@dataclass
class CalibrationState:
    """Warm-up window bookkeeping for one connection lifetime."""
    active: bool = True
    started_at: Optional[float] = None

    def begin(self, now: float) -> None:
        self.active = True
        self.started_at = now

    def finish(self) -> None:
        self.active = False
        self.started_at = None

    def elapsed(self, now: float) -> Optional[float]:
        """Seconds since calibration began, or None if it has not begun."""
        if self.started_at is None:
            return None
        return now - self.started_at


@dataclass
class TriggerSession:
    """
    State owned by one controller instance.

    The threshold is zero until calibration completes or a configured trigger
    distance is applied. ``departed_at`` is the last time the object was seen
    inside the threshold while the creepy scene was showing.
    """
    threshold: float = 0.0
    light_state: LightState = LightState.NORMAL
    departed_at: float = 0.0
    calibration: CalibrationState = field(default_factory=CalibrationState)

    @property
    def is_calibrated(self) -> bool:
        return not self.calibration.active

    def reset_threshold(self) -> None:
        """Forget the learned threshold so the next connection recalibrates."""
        self.threshold = 0.0
        self.calibration = CalibrationState()

    def __str__(self) -> str:
        return (
            f"TriggerSession(state={self.light_state.value}, "
            f"threshold={self.threshold:.1f}, calibrated={self.is_calibrated})"
        )
