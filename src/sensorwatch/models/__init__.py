"""Data models for sensor readings, alerts and connection state."""

from sensorwatch.models._base import Indicator, SensorBaseModel, SensorKey
from sensorwatch.models.connection import ConnectionState, ConnectionStatus
from sensorwatch.models.readings import AlertState, PartialReading, SensorSnapshot, ThresholdSet

__all__ = [
    "AlertState",
    "ConnectionState",
    "ConnectionStatus",
    "Indicator",
    "PartialReading",
    "SensorBaseModel",
    "SensorKey",
    "SensorSnapshot",
    "ThresholdSet",
]
