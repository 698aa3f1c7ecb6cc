"""Unit tests for the trigger state machine."""

import pytest
from unittest.mock import AsyncMock, Mock

from creepy_lights.models import LightState, TriggerTransition
from creepy_lights.services import ColorCommandPlanner, Scene, TriggerStateMachine


@pytest.fixture
def scene(door_group, porch_group):
    return Scene(primary=door_group, secondary=porch_group)


@pytest.fixture
def calibrated_session(session):
    session.threshold = 200.0
    session.calibration.finish()
    return session


@pytest.fixture
def machine(calibrated_session, recording_connector, scene, clock):
    planner = ColorCommandPlanner(recording_connector)
    return TriggerStateMachine(calibrated_session, planner, scene, reset_delay_ms=10_000, clock=clock)


class TestTriggerStateMachine:
    """Test TriggerStateMachine service."""

    @pytest.mark.asyncio
    async def test_far_reading_keeps_normal(self, machine, recording_connector):
        transition = await machine.evaluate(250.0)

        assert transition == TriggerTransition.NONE
        assert machine.state == LightState.NORMAL
        assert recording_connector.sent == []

    @pytest.mark.asyncio
    async def test_trigger_shows_creepy_scene(self, machine, recording_connector, scene, clock):
        """Test entering CREEPY powers on the secondary group and applies the alert colours."""
        transition = await machine.evaluate(150.0)

        assert transition == TriggerTransition.TRIGGERED
        assert machine.state == LightState.CREEPY
        assert machine.session.departed_at == clock.now
        assert machine.trigger_count == 1

        primary, secondary = scene.primary.commands, scene.secondary.commands
        assert recording_connector.sent == [
            (secondary.on(), "porch"),
            (primary.set_brightness(92), "door"),
            (primary.set_hue(36.125), "door"),
            (secondary.set_brightness(100), "porch"),
            (secondary.set_hue(201.875), "porch"),
            (secondary.set_saturation(0), "porch"),
        ]

    @pytest.mark.asyncio
    async def test_inside_threshold_refreshes_departure(self, machine, recording_connector, clock):
        await machine.evaluate(150.0)
        sent = len(recording_connector.sent)

        clock.advance(3)
        transition = await machine.evaluate(120.0)

        assert transition == TriggerTransition.REFRESHED
        assert machine.session.departed_at == clock.now
        assert machine.trigger_count == 1
        assert len(recording_connector.sent) == sent

    @pytest.mark.asyncio
    async def test_departure_waits_for_reset_delay(self, machine, clock):
        """Test the scene holds until more than the reset delay has passed."""
        await machine.evaluate(150.0)

        clock.advance(5)
        assert await machine.evaluate(300.0) == TriggerTransition.NONE
        clock.advance(5)
        assert await machine.evaluate(300.0) == TriggerTransition.NONE
        assert machine.state == LightState.CREEPY

    @pytest.mark.asyncio
    async def test_departure_restores_normal_scene(self, machine, recording_connector, scene, clock):
        await machine.evaluate(150.0)
        recording_connector.sent.clear()

        clock.advance(10.5)
        transition = await machine.evaluate(300.0)

        assert transition == TriggerTransition.DEPARTED
        assert machine.state == LightState.NORMAL
        assert machine.reset_count == 1

        primary, secondary = scene.primary.commands, scene.secondary.commands
        assert recording_connector.sent == [
            (primary.white_on(), "door"),
            (primary.set_brightness(78), "door"),
            (secondary.off(), "porch"),
        ]

    @pytest.mark.asyncio
    async def test_reading_at_threshold_neither_refreshes_nor_departs(self, machine, clock):
        await machine.evaluate(150.0)
        departed_at = machine.session.departed_at

        clock.advance(20)
        transition = await machine.evaluate(200.0)

        assert transition == TriggerTransition.NONE
        assert machine.state == LightState.CREEPY
        assert machine.session.departed_at == departed_at

    @pytest.mark.asyncio
    async def test_retrigger_after_departure(self, machine, clock):
        await machine.evaluate(150.0)
        clock.advance(11)
        await machine.evaluate(300.0)

        transition = await machine.evaluate(150.0)

        assert transition == TriggerTransition.TRIGGERED
        assert machine.trigger_count == 2

    @pytest.mark.asyncio
    async def test_uncalibrated_threshold_never_triggers(self, session, recording_connector, scene, clock):
        planner = ColorCommandPlanner(recording_connector)
        machine = TriggerStateMachine(session, planner, scene, clock=clock)

        assert await machine.evaluate(0.0) == TriggerTransition.NONE
        assert machine.state == LightState.NORMAL

    @pytest.mark.asyncio
    async def test_scene_failure_keeps_state(self, calibrated_session, scene, clock):
        """Test a failing light command is logged and the transition still stands."""
        planner = Mock()
        planner.power_on = AsyncMock(side_effect=RuntimeError("socket closed"))
        machine = TriggerStateMachine(calibrated_session, planner, scene, clock=clock)

        transition = await machine.evaluate(150.0)

        assert transition == TriggerTransition.TRIGGERED
        assert machine.state == LightState.CREEPY
        planner.power_on.assert_awaited_once_with(scene.secondary)
