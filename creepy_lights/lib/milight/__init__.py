"""
Mi-Light (LimitlessLED) iBox v6 bridge library.

Classes:
    Bridge: UDP handle to one bridge with session handling
    RGBWCommands, RGBCCTCommands: command payloads per bulb family
    LightGroup: a bridge zone and its command set

Functions:
    discover_bridges: broadcast discovery of bridges on the local network
"""

from .bridge import (
    Bridge,
    BridgeError,
    BridgeTimeout,
    build_command_packet,
    discover_bridges,
    parse_discovery_reply,
)
from .commands import (
    Capability,
    CommandSet,
    LightGroup,
    RGBCCTCommands,
    RGBWCommands,
    command_set_for,
)

__all__ = [
    'Bridge',
    'BridgeError',
    'BridgeTimeout',
    'build_command_packet',
    'discover_bridges',
    'parse_discovery_reply',
    'Capability',
    'CommandSet',
    'LightGroup',
    'RGBCCTCommands',
    'RGBWCommands',
    'command_set_for',
]
