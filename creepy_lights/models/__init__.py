"""Data models for the presence light controller."""

from .light_configuration import (
    BridgeSettings,
    BulbType,
    LightConfiguration,
    LightGroupSettings,
    SceneSettings,
    SerialSettings,
    TriggerSettings,
)
from .trigger_session import CalibrationState, LightState, TriggerSession, TriggerTransition

__all__ = [
    "BridgeSettings",
    "BulbType",
    "LightConfiguration",
    "LightGroupSettings",
    "SceneSettings",
    "SerialSettings",
    "TriggerSettings",
    "CalibrationState",
    "LightState",
    "TriggerSession",
    "TriggerTransition",
]
