"""State layer.

This package is the single source of truth for how incoming readings from
MQTT and the simulation generator are merged into a sensor snapshot, and
how alert indicators are derived from it.
"""
