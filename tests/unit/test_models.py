"""Unit tests for data models."""

import pytest
from pydantic import ValidationError

from creepy_lights.models import (
    BridgeSettings,
    BulbType,
    CalibrationState,
    LightConfiguration,
    LightGroupSettings,
    LightState,
    SceneSettings,
    TriggerSession,
    TriggerSettings,
)


class TestLightConfiguration:
    """Test LightConfiguration model."""

    def test_defaults(self):
        config = LightConfiguration()

        assert config.serial.baud_rate == 9600
        assert config.serial.testmode is False
        assert config.bridge.ip is None
        assert config.trigger.window_size == 10
        assert config.trigger.out_of_range_factor == 1.25
        assert config.scene.primary.bulb_type == BulbType.RGBW
        assert config.scene.secondary.bulb_type == BulbType.RGBCCT

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            LightConfiguration(polling_interval_ms=50)

    @pytest.mark.parametrize("section,data", [
        ("serial", {"port": "/dev/ttyUSB0", "baudrate": 9600}),
        ("bridge", {"ip": "10.0.0.9", "adress": "10.0.0.9"}),
        ("trigger", {"min_distanse": 300}),
        ("scene", {"primary_alert_colour": [255, 0, 0]}),
    ])
    def test_misspelled_section_keys_rejected(self, section, data):
        with pytest.raises(ValidationError):
            LightConfiguration(**{section: data})

    def test_misspelled_group_key_rejected(self):
        with pytest.raises(ValidationError):
            LightGroupSettings(name="door", zone=1, bulb_type="rgbw", zones=2)

    def test_assignment_is_validated(self):
        config = LightConfiguration()

        with pytest.raises(ValidationError):
            config.trigger = {"reset_time_ms": -1}

    def test_export_dict_is_plain(self):
        exported = LightConfiguration().export_dict()

        assert exported["scene"]["primary"]["bulb_type"] == "rgbw"
        assert exported["scene"]["neutral_color"] == [200, 200, 200]
        assert LightConfiguration(**exported) == LightConfiguration()

    def test_str(self):
        config = LightConfiguration(serial={"testmode": True})

        assert str(config) == "LightConfiguration(port=testmode, bridge=discover)"


class TestSettings:
    """Test the configuration sections."""

    @pytest.mark.parametrize("raw", ["accf23f57ad4", "AC:CF:23:F5:7A:D4", "ac-cf-23-f5-7a-d4"])
    def test_mac_is_normalized(self, raw):
        assert BridgeSettings(mac=raw).mac == "ACCF23F57AD4"

    def test_empty_mac_is_none(self):
        assert BridgeSettings(mac="").mac is None

    def test_short_mac_rejected(self):
        with pytest.raises(ValidationError):
            BridgeSettings(mac="ACCF23")

    def test_static_bridge(self):
        assert BridgeSettings(ip="10.0.0.9").is_static
        assert not BridgeSettings().is_static

    def test_negative_min_distance_rejected(self):
        with pytest.raises(ValidationError):
            TriggerSettings(min_distance=-1)

    def test_zone_range(self):
        with pytest.raises(ValidationError):
            LightGroupSettings(name="door", zone=5, bulb_type="rgbw")

    def test_unknown_bulb_type(self):
        with pytest.raises(ValidationError):
            LightGroupSettings(name="door", zone=1, bulb_type="rgbww")

    def test_color_channels(self):
        with pytest.raises(ValidationError):
            SceneSettings(neutral_color=(256, 0, 0))

        assert SceneSettings(neutral_color=[10, 20, 30]).neutral_color == (10, 20, 30)


class TestTriggerSession:
    """Test TriggerSession model."""

    def test_initial_state(self):
        session = TriggerSession()

        assert session.threshold == 0.0
        assert session.light_state == LightState.NORMAL
        assert not session.is_calibrated

    def test_reset_threshold(self):
        session = TriggerSession(threshold=640.0, light_state=LightState.CREEPY)
        session.calibration.finish()

        session.reset_threshold()

        assert session.threshold == 0.0
        assert not session.is_calibrated
        assert session.calibration.started_at is None
        assert session.light_state == LightState.CREEPY

    def test_calibration_elapsed(self):
        calibration = CalibrationState()

        assert calibration.elapsed(100.0) is None
        calibration.begin(100.0)
        assert calibration.elapsed(103.5) == 3.5
