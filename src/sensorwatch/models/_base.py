"""Base model and enums shared by sensorwatch models.

Every sensorwatch model inherits from :class:`SensorBaseModel`, which is
frozen: state changes always produce a new instance, so a merge never
leaves a model half-updated.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class SensorKey(StrEnum):
    """Physical quantities reported by the sensor modules."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    DISTANCE = "distance"
    GAS = "gas"


class Indicator(StrEnum):
    """Alert indicators, one per physical sensor module.

    ``DHT11`` is a composite of temperature and humidity.
    """

    DHT11 = "dht11"
    SR04 = "sr04"
    MQ2 = "mq2"


class SensorBaseModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
