"""
Rangefinder Library for the serial distance sensor.

Classes:
    LineFramer: Splits the byte stream into newline-terminated readings
    SerialConnectionManager: Open, route and reconnect loop for the sensor
    SerialByteSource: pyserial-backed byte stream
    SimulatedByteSource: Software sensor used in test mode
"""

from .connection import ConnectionState, ConnectionStats, SerialConnectionManager
from .framing import LineFramer, MalformedReadingError, parse_distance
from .ports import format_port, list_serial_ports
from .sources import (
    ByteStreamSource,
    RangefinderClosed,
    RangefinderError,
    SerialByteSource,
    SimulatedByteSource,
    approach_pattern,
)

__all__ = [
    'ConnectionState',
    'ConnectionStats',
    'SerialConnectionManager',
    'LineFramer',
    'MalformedReadingError',
    'parse_distance',
    'format_port',
    'list_serial_ports',
    'ByteStreamSource',
    'RangefinderClosed',
    'RangefinderError',
    'SerialByteSource',
    'SimulatedByteSource',
    'approach_pattern',
]
