"""ColorCommandPlanner service: turns RGB colours into bridge command sequences."""

import colorsys
from typing import Tuple, Union

import structlog

from ..lib.milight import Capability, LightGroup
from .bridge_connector import BridgeConnector


logger = structlog.get_logger(__name__)

GREY = "grey"

# Colour temperature used for white mode on bulbs with tunable white.
WHITE_KELVIN = 100

Hue = Union[float, str]


def rgb_to_hsv(r: int, g: int, b: int) -> Tuple[int, int, int]:
    """RGB bytes to rounded (hue 0-360, saturation 0-100, value 0-100)."""
    h, s, v = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return round(h * 360) % 360, round(s * 100), round(v * 100)


def rgb_to_protocol_hsv(r: int, g: int, b: int) -> Tuple[Hue, int, int]:
    """
    Convert RGB into the bridge's hue, saturation and brightness.

    Hue moves onto the 0-255 wheel, or is ``"grey"`` when all channels are
    equal. Saturation is inverted (the bridge treats 0 as fully saturated).
    Brightness is 0 for black.
    """
    is_grey = r == g == b
    is_black = is_grey and r == 0

    hue, saturation, value = rgb_to_hsv(r, g, b)
    protocol_hue: Hue = GREY if is_grey else hue / 360 * 255
    return protocol_hue, 100 - saturation, 0 if is_black else value


class ColorCommandPlanner:
    """
    Issues the command sequence that shows a colour on one group.

    Every command is awaited before the next is sent, because the commands
    of one sequence target the same bulbs and must not interleave.
    """

    def __init__(self, connector: BridgeConnector):
        self.connector = connector

    async def apply(self, r: int, g: int, b: int, group: LightGroup) -> None:
        """Show an RGB colour on a group; black switches the group off."""
        hue, saturation, brightness = rgb_to_protocol_hsv(r, g, b)
        logger.debug("Applying colour",
                     group=group.name,
                     rgb=(r, g, b),
                     hue=hue,
                     saturation=saturation,
                     brightness=brightness)

        if r == g == b == 0:
            await self.power_off(group)
            return

        if hue == GREY:
            await self.set_white(group)
            await self.set_brightness(brightness, group)
        else:
            await self.set_brightness(brightness, group)
            await self.set_hue(hue, group)

        await self.set_saturation(saturation, group)

    async def power_on(self, group: LightGroup) -> None:
        await self.connector.send(group.commands.on(), group)

    async def power_off(self, group: LightGroup) -> None:
        await self.connector.send(group.commands.off(), group)

    async def set_white(self, group: LightGroup) -> None:
        """White mode: colour temperature where supported, else the white channel."""
        commands = group.commands
        if group.supports(Capability.COLOR_TEMPERATURE):
            command = commands.set_kelvin(WHITE_KELVIN)
        else:
            command = commands.white_on()
        await self.connector.send(command, group)

    async def set_hue(self, hue: float, group: LightGroup) -> None:
        await self.connector.send(group.commands.set_hue(hue), group)

    async def set_brightness(self, brightness: float, group: LightGroup) -> None:
        await self.connector.send(group.commands.set_brightness(brightness), group)

    async def set_saturation(self, saturation: float, group: LightGroup) -> None:
        """Set saturation; groups without a saturation control are skipped."""
        if not group.supports(Capability.SATURATION):
            return
        await self.connector.send(group.commands.set_saturation(saturation), group)
