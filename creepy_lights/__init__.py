"""Presence-triggered lighting controller for a rangefinder and Mi-Light bridge."""

__version__ = "1.2.0"
