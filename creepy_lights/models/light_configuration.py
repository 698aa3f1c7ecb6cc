"""LightConfiguration data model for rangefinder, bridge and scene settings."""

import re
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


RGB = Tuple[int, int, int]

MAC_PATTERN = re.compile(r"^[0-9A-F]{12}$")


class BulbType(str, Enum):
    """Bulb families understood by the Mi-Light bridge."""

    RGBW = "rgbw"
    RGBCCT = "rgbcct"


def _check_rgb(value: RGB) -> RGB:
    if any(channel < 0 or channel > 255 for channel in value):
        raise ValueError("RGB channels must be 0-255")
    return value


class SerialSettings(BaseModel):
    """Rangefinder serial link settings."""

    model_config = {"validate_assignment": True, "extra": "forbid"}

    port: Optional[str] = Field(
        default=None,
        description="Serial port device name or path"
    )
    baud_rate: int = Field(default=9600, ge=300, le=1_000_000, description="Serial baud rate")
    reconnect_delay_ms: int = Field(
        default=2000,
        ge=100,
        le=60_000,
        description="Delay before reopening the port after an error or close"
    )
    testmode: bool = Field(
        default=False,
        description="Use a simulated rangefinder instead of a real port"
    )


class BridgeSettings(BaseModel):
    """Mi-Light bridge settings."""

    model_config = {"validate_assignment": True, "extra": "forbid"}

    ip: Optional[str] = Field(default=None, description="Static bridge IP; skips discovery")
    mac: Optional[str] = Field(default=None, description="Bridge MAC address (hex digits)")
    command_delay_ms: int = Field(
        default=100,
        ge=0,
        le=5000,
        description="Pause after every dispatched light command"
    )
    discovery_retry_ms: int = Field(
        default=100,
        ge=10,
        le=60_000,
        description="Delay between discovery attempts when no bridge answers"
    )
    rediscover_on_error: bool = Field(
        default=False,
        description="Rediscover when the bridge reports an asynchronous error"
    )

    @field_validator('mac')
    @classmethod
    def normalize_mac(cls, v: Optional[str]) -> Optional[str]:
        """Strip separators and upper-case the MAC address."""
        if v is None:
            return None
        mac = re.sub(r"[^0-9A-F]", "", v.upper())
        if not mac:
            return None
        if not MAC_PATTERN.match(mac):
            raise ValueError("bridge MAC must contain exactly 12 hex digits")
        return mac

    @property
    def is_static(self) -> bool:
        """True when the bridge address is configured rather than discovered."""
        return bool(self.ip)


class TriggerSettings(BaseModel):
    """Trigger threshold, calibration and filtering settings."""

    model_config = {"validate_assignment": True, "extra": "forbid"}

    min_distance: float = Field(
        default=0.0,
        ge=0.0,
        description="Trigger distance in tenths of a millimeter; non-zero skips calibration"
    )
    reset_time_ms: int = Field(
        default=10_000,
        ge=0,
        le=600_000,
        description="Time after the object leaves before the lights reset"
    )
    calibration_ms: int = Field(
        default=5000,
        ge=0,
        le=600_000,
        description="Warm-up window used to learn the trigger distance"
    )
    window_size: int = Field(default=10, ge=1, le=1000, description="Moving average window")
    out_of_range_floor: float = Field(
        default=100.0,
        ge=0.0,
        description="Readings below this are treated as nothing in range"
    )
    out_of_range_factor: float = Field(
        default=1.25,
        gt=0.0,
        le=100.0,
        description="Multiple of the threshold substituted for out-of-range readings"
    )


class LightGroupSettings(BaseModel):
    """A bridge zone and the bulb family installed in it."""

    model_config = {"validate_assignment": True, "extra": "forbid"}

    name: str = Field(min_length=1, max_length=40)
    zone: int = Field(ge=0, le=4, description="Bridge zone (0 addresses every zone)")
    bulb_type: BulbType = Field(description="Bulb family for the zone")


class SceneSettings(BaseModel):
    """Groups and colours used by the two lighting scenes."""

    model_config = {"validate_assignment": True, "extra": "forbid"}

    primary: LightGroupSettings = Field(
        default=LightGroupSettings(name="door", zone=1, bulb_type=BulbType.RGBW),
        description="Group recoloured on trigger and reset"
    )
    secondary: LightGroupSettings = Field(
        default=LightGroupSettings(name="porch", zone=2, bulb_type=BulbType.RGBCCT),
        description="Group switched on with the trigger and off on reset"
    )
    primary_alert_color: RGB = Field(default=(235, 200, 0))
    secondary_alert_color: RGB = Field(default=(190, 0, 255))
    neutral_color: RGB = Field(default=(200, 200, 200))

    @field_validator('primary_alert_color', 'secondary_alert_color', 'neutral_color')
    @classmethod
    def validate_color(cls, v: RGB) -> RGB:
        """Validate colour channels are bytes."""
        return _check_rgb(v)


class LightConfiguration(BaseModel):
    """Complete controller configuration."""

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "json_schema_extra": {
            "example": {
                "serial": {"port": "/dev/ttyUSB0"},
                "bridge": {"ip": "192.168.1.40", "mac": "ACCF23F57AD4"},
                "trigger": {"min_distance": 0, "reset_time_ms": 10000},
            }
        }
    }

    serial: SerialSettings = Field(
        default_factory=SerialSettings,
        description="Rangefinder link"
    )
    bridge: BridgeSettings = Field(
        default_factory=BridgeSettings,
        description="Light bridge"
    )
    trigger: TriggerSettings = Field(
        default_factory=TriggerSettings,
        description="Trigger and calibration"
    )
    scene: SceneSettings = Field(
        default_factory=SceneSettings,
        description="Lighting scenes"
    )
    enable_debug_logging: bool = Field(
        default=False,
        description="Enable debug level logging"
    )

    def export_dict(self) -> Dict[str, Any]:
        """Export configuration as a plain dictionary."""
        return self.model_dump(mode='json')

    def __str__(self) -> str:
        port = "testmode" if self.serial.testmode else self.serial.port
        bridge = self.bridge.ip or "discover"
        return f"LightConfiguration(port={port}, bridge={bridge})"
