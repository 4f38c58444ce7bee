"""Provenance labels for snapshot updates."""

from __future__ import annotations

from enum import StrEnum


class UpdateSource(StrEnum):
    """Which data source produced the most recent snapshot update."""

    NONE = "none"
    MQTT = "mqtt"
    SIMULATION = "simulation"
    RESET = "reset"
