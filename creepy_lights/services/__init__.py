"""Core services for the presence light controller."""

from .bridge_connector import BridgeConnector
from .calibrator import Calibrator
from .color_planner import ColorCommandPlanner, rgb_to_protocol_hsv
from .distance_filter import DistanceFilter
from .presence_controller import PresenceLightController
from .trigger_state_machine import Scene, TriggerStateMachine

__all__ = [
    "BridgeConnector",
    "Calibrator",
    "ColorCommandPlanner",
    "rgb_to_protocol_hsv",
    "DistanceFilter",
    "PresenceLightController",
    "Scene",
    "TriggerStateMachine"
]
