"""
Integration tests for the presence light controller.

These run the rangefinder connection loop and the controller together with
scripted byte sources and a recording bridge:

- Connection: line routing, reconnect after open failures and closes
- Controller: calibration, trigger and departure scenes, malformed lines
"""
