"""Unit tests for the filtering and calibration services."""

import pytest

from creepy_lights.models import TriggerSession, TriggerTransition
from creepy_lights.services import Calibrator, DistanceFilter


class TestDistanceFilter:
    """Test DistanceFilter service."""

    def test_filter_initialization(self, session):
        """Test filter starts empty."""
        distance_filter = DistanceFilter(session)

        assert len(distance_filter) == 0
        assert distance_filter.mean == 0.0
        assert distance_filter.median() is None
        assert distance_filter.window_size == 10

    def test_invalid_window_size(self, session):
        with pytest.raises(ValueError):
            DistanceFilter(session, window_size=0)

    def test_mean_of_readings(self, session):
        distance_filter = DistanceFilter(session)

        distance_filter.observe(400)
        mean = distance_filter.observe(600)

        assert mean == 500.0

    def test_out_of_range_substitution(self):
        """Test readings below the floor count as far away."""
        session = TriggerSession(threshold=200.0)
        distance_filter = DistanceFilter(session)

        assert distance_filter.observe(50) == 250.0
        assert distance_filter.snapshot() == [250.0]

    def test_floor_is_exclusive(self):
        session = TriggerSession(threshold=200.0)
        distance_filter = DistanceFilter(session)

        assert distance_filter.observe(100) == 100.0

    def test_substitution_before_calibration(self, session):
        """Test out-of-range readings are zero while no threshold is known."""
        distance_filter = DistanceFilter(session)

        assert distance_filter.observe(0) == 0.0

    def test_substitution_follows_threshold(self):
        session = TriggerSession(threshold=200.0)
        distance_filter = DistanceFilter(session, out_of_range_factor=2.0)

        distance_filter.observe(10)
        session.threshold = 400.0
        distance_filter.observe(10)

        assert distance_filter.snapshot() == [400.0, 800.0]
        assert session.threshold == 400.0

    def test_window_eviction(self, session):
        """Test the oldest reading is evicted once the window is full."""
        distance_filter = DistanceFilter(session, window_size=3)

        for reading in (1000, 200, 300, 400):
            mean = distance_filter.observe(reading)

        assert len(distance_filter) == 3
        assert distance_filter.snapshot() == [200.0, 300.0, 400.0]
        assert mean == 300.0

    def test_median_leaves_window_order(self, session):
        distance_filter = DistanceFilter(session)
        for reading in (900, 300, 600):
            distance_filter.observe(reading)

        assert distance_filter.median() == 600
        assert distance_filter.snapshot() == [900.0, 300.0, 600.0]


class TestCalibrator:
    """Test Calibrator service."""

    def test_configured_threshold_skips_calibration(self, session, clock):
        """Test a configured trigger distance is used directly."""
        calibrator = Calibrator(session, configured_threshold=200.0, clock=clock)

        calibrator.start()

        assert session.threshold == 200.0
        assert session.is_calibrated
        assert calibrator.observe(50.0) == TriggerTransition.NONE

    def test_observations_consumed_during_window(self, session, clock):
        calibrator = Calibrator(session, duration_ms=5000, clock=clock)
        calibrator.start()

        assert calibrator.observe(800.0) == TriggerTransition.CALIBRATING
        clock.advance(2.5)
        assert calibrator.observe(800.0) == TriggerTransition.CALIBRATING
        assert session.threshold == 0.0
        assert calibrator.active

    def test_calibration_completes_at_window_end(self, session, clock):
        """Test the first observation at the end of the window becomes the threshold."""
        calibrator = Calibrator(session, duration_ms=5000, clock=clock)
        calibrator.start()

        clock.advance(2.5)
        calibrator.observe(700.0)
        clock.advance(2.5)

        assert calibrator.observe(812.5) == TriggerTransition.CALIBRATED
        assert session.threshold == 812.5
        assert session.is_calibrated
        assert calibrator.observe(100.0) == TriggerTransition.NONE
        assert session.threshold == 812.5

    def test_observation_before_start_is_consumed(self, session, clock):
        """Test nothing is evaluated before the connection opens."""
        calibrator = Calibrator(session, clock=clock)

        clock.advance(60)

        assert calibrator.observe(500.0) == TriggerTransition.CALIBRATING
        assert session.threshold == 0.0

    def test_recalibrates_after_reset(self, session, clock):
        calibrator = Calibrator(session, duration_ms=1000, clock=clock)
        calibrator.start()
        clock.advance(1)
        calibrator.observe(600.0)

        session.reset_threshold()
        calibrator.start()

        assert session.threshold == 0.0
        assert calibrator.observe(900.0) == TriggerTransition.CALIBRATING
        clock.advance(1)
        assert calibrator.observe(900.0) == TriggerTransition.CALIBRATED
        assert session.threshold == 900.0

    def test_configured_threshold_reapplied_after_reset(self, session, clock):
        """Test a configured trigger distance survives a reconnect."""
        calibrator = Calibrator(session, configured_threshold=200.0, clock=clock)
        calibrator.start()

        session.reset_threshold()
        calibrator.start()

        assert session.threshold == 200.0
        assert session.is_calibrated
