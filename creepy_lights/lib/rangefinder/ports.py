"""Serial port enumeration for choosing the rangefinder port."""

from typing import Dict, List

from serial.tools import list_ports

PORT_ATTRIBUTES = (
    "description",
    "manufacturer",
    "serial_number",
    "location",
    "vid",
    "pid",
)


def list_serial_ports() -> List[Dict[str, object]]:
    """Return available serial ports with their non-empty attributes."""
    ports = []
    for port in list_ports.comports():
        info: Dict[str, object] = {"device": port.device}
        for attr in PORT_ATTRIBUTES:
            value = getattr(port, attr, None)
            if value and value != "n/a":
                info[attr] = value
        ports.append(info)
    return ports


def format_port(info: Dict[str, object]) -> str:
    """Format one port as a config-ready string with its attributes as a comment."""
    attrs = [f"{key}: {value}" for key, value in info.items() if key != "device"]
    line = f'"{info["device"]}",'
    if attrs:
        line += f" # {', '.join(attrs)}"
    return line
