"""TriggerStateMachine service: switches between the normal and creepy scenes."""

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple

import structlog

from ..lib.milight import LightGroup
from ..models import LightState, TriggerSession, TriggerTransition
from .color_planner import ColorCommandPlanner


logger = structlog.get_logger(__name__)

RESET_TIME_MS = 10 * 1000

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class Scene:
    """Groups and colours used by the two lighting scenes."""
    primary: LightGroup
    secondary: LightGroup
    primary_alert_color: RGB = (235, 200, 0)
    secondary_alert_color: RGB = (190, 0, 255)
    neutral_color: RGB = (200, 200, 200)


class TriggerStateMachine:
    """
    NORMAL/CREEPY decision engine.

    Entering CREEPY records the departure timestamp, powers on the secondary
    group and shows the alert colours. While CREEPY, every reading inside the
    threshold refreshes the timestamp. The scene reverts once the filtered
    distance is beyond the threshold and more than the reset delay has passed
    since the last refresh.
    """

    def __init__(self,
                 session: TriggerSession,
                 planner: ColorCommandPlanner,
                 scene: Scene,
                 reset_delay_ms: int = RESET_TIME_MS,
                 clock: Callable[[], float] = time.monotonic):
        self.session = session
        self.planner = planner
        self.scene = scene
        self.reset_delay = reset_delay_ms / 1000.0
        self.clock = clock

        self.trigger_count = 0
        self.reset_count = 0

    @property
    def state(self) -> LightState:
        return self.session.light_state

    async def evaluate(self, mean: float) -> TriggerTransition:
        """Apply one filtered observation and return the transition taken."""
        session = self.session
        threshold = session.threshold
        now = self.clock()

        if session.light_state == LightState.NORMAL:
            if mean < threshold:
                logger.info("TRIGGER!", distance=round(mean, 1), threshold=round(threshold, 1))
                session.departed_at = now
                session.light_state = LightState.CREEPY
                self.trigger_count += 1
                await self._run_scene("creepy", self._show_creepy)
                return TriggerTransition.TRIGGERED
            return TriggerTransition.NONE

        if mean < threshold:
            logger.debug("Still triggering", distance=round(mean, 1))
            session.departed_at = now
            return TriggerTransition.REFRESHED

        if mean > threshold and now - session.departed_at > self.reset_delay:
            logger.info("DEPARTED!", distance=round(mean, 1), threshold=round(threshold, 1))
            session.light_state = LightState.NORMAL
            self.reset_count += 1
            await self._run_scene("normal", self._show_normal)
            return TriggerTransition.DEPARTED

        return TriggerTransition.NONE

    async def _show_creepy(self) -> None:
        scene = self.scene
        await self.planner.power_on(scene.secondary)
        await self.planner.apply(*scene.primary_alert_color, scene.primary)
        await self.planner.apply(*scene.secondary_alert_color, scene.secondary)

    async def _show_normal(self) -> None:
        scene = self.scene
        await self.planner.apply(*scene.neutral_color, scene.primary)
        await self.planner.power_off(scene.secondary)

    async def _run_scene(self, name: str, sequence: Callable[[], Awaitable[None]]) -> None:
        try:
            await sequence()
        except Exception as e:
            logger.error("Error applying lighting scene", scene=name, error=str(e))
