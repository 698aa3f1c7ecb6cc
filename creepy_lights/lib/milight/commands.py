"""
Mi-Light iBox v6 command payloads.

Each bulb family has its own command set. A command is the 9-byte payload
that goes inside a bridge packet; the bridge adds session, sequence, zone and
checksum. Families differ in which controls they offer, so each command set
advertises a capability set and callers check it before using an optional
command (saturation and colour temperature exist on RGBCCT bulbs only).
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet

COMMAND_LENGTH = 9
COMMAND_PREFIX = 0x31


class Capability(str, Enum):
    """Controls a bulb family may support."""

    ON_OFF = "on_off"
    WHITE_MODE = "white_mode"
    HUE = "hue"
    SATURATION = "saturation"
    BRIGHTNESS = "brightness"
    COLOR_TEMPERATURE = "color_temperature"


def _byte(value: float, maximum: int) -> int:
    """Round and clamp a value into 0..maximum."""
    return max(0, min(maximum, int(round(value))))


class CommandSet:
    """Base command set; subclasses fill in the bulb type and op codes."""

    name = "base"
    bulb_type = 0x00
    capabilities: FrozenSet[Capability] = frozenset()

    def _command(self, *payload: int) -> bytes:
        body = bytes([COMMAND_PREFIX, 0x00, 0x00, self.bulb_type, *payload])
        return body.ljust(COMMAND_LENGTH, b"\x00")

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def on(self) -> bytes:
        raise NotImplementedError

    def off(self) -> bytes:
        raise NotImplementedError

    def set_hue(self, hue: float) -> bytes:
        """Hue on the bridge's 0-255 wheel."""
        value = _byte(hue, 255)
        return self._command(0x01, value, value, value, value)

    def set_brightness(self, brightness: float) -> bytes:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class RGBWCommands(CommandSet):
    """Commands for RGBW bulbs (colour plus a separate white channel)."""

    name = "rgbw"
    bulb_type = 0x07
    capabilities = frozenset({
        Capability.ON_OFF,
        Capability.WHITE_MODE,
        Capability.HUE,
        Capability.BRIGHTNESS,
    })

    def on(self) -> bytes:
        return self._command(0x03, 0x01)

    def off(self) -> bytes:
        return self._command(0x03, 0x02)

    def white_on(self) -> bytes:
        return self._command(0x03, 0x05)

    def set_brightness(self, brightness: float) -> bytes:
        return self._command(0x02, _byte(brightness, 100))


class RGBCCTCommands(CommandSet):
    """Commands for RGB+CCT bulbs (colour plus tunable white)."""

    name = "rgbcct"
    bulb_type = 0x08
    capabilities = frozenset({
        Capability.ON_OFF,
        Capability.WHITE_MODE,
        Capability.HUE,
        Capability.SATURATION,
        Capability.BRIGHTNESS,
        Capability.COLOR_TEMPERATURE,
    })

    def on(self) -> bytes:
        return self._command(0x04, 0x01)

    def off(self) -> bytes:
        return self._command(0x04, 0x02)

    def set_saturation(self, saturation: float) -> bytes:
        return self._command(0x02, _byte(saturation, 100))

    def set_brightness(self, brightness: float) -> bytes:
        return self._command(0x03, _byte(brightness, 100))

    def set_kelvin(self, kelvin: float) -> bytes:
        """Colour temperature, 0 (warm) to 100 (cool)."""
        return self._command(0x05, _byte(kelvin, 100))


COMMAND_SETS = {
    RGBWCommands.name: RGBWCommands(),
    RGBCCTCommands.name: RGBCCTCommands(),
}


@dataclass(frozen=True)
class LightGroup:
    """A bridge zone together with the command set of its bulbs."""
    name: str
    zone: int
    commands: CommandSet

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return self.commands.capabilities

    def supports(self, capability: Capability) -> bool:
        return self.commands.supports(capability)

    def __str__(self) -> str:
        return f"{self.name} (zone {self.zone}, {self.commands.name})"


def command_set_for(bulb_type: str) -> CommandSet:
    """Look up the command set for a bulb family name."""
    try:
        return COMMAND_SETS[bulb_type]
    except KeyError:
        raise ValueError(f"Unknown bulb type: {bulb_type}") from None
