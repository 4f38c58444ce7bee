"""Sensor reading, snapshot, threshold and alert models."""

from __future__ import annotations

from typing import Any

from sensorwatch.models._base import Indicator, SensorBaseModel, SensorKey


class _PerSensorValues(SensorBaseModel):
    """One optional numeric value per :class:`SensorKey`.

    ``None`` means absent. Absent is never the same as zero.
    """

    temperature: float | None = None
    humidity: float | None = None
    distance: float | None = None
    gas: float | None = None

    def get(self, key: SensorKey | str) -> float | None:
        return getattr(self, SensorKey(key).value)

    def present(self) -> dict[SensorKey, float]:
        """Return only the keys that carry a value."""
        result: dict[SensorKey, float] = {}
        for key in SensorKey:
            value = getattr(self, key.value)
            if value is not None:
                result[key] = value
        return result

    def as_dict(self) -> dict[str, float | None]:
        return {key.value: getattr(self, key.value) for key in SensorKey}


class PartialReading(_PerSensorValues):
    """A reading that may cover only a subset of the sensors."""


class SensorSnapshot(_PerSensorValues):
    """Most recently known value per sensor, rounded to one decimal place."""

    @classmethod
    def empty(cls) -> SensorSnapshot:
        return cls()


class ThresholdSet(_PerSensorValues):
    """Alert limit per sensor. An absent threshold never triggers."""

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> ThresholdSet:
        from sensorwatch.ingestion.normalize import safe_float

        return cls(**{key.value: safe_float(values.get(key.value)) for key in SensorKey})

    def with_threshold(self, key: SensorKey | str, value: float | None) -> ThresholdSet:
        return self.model_copy(update={SensorKey(key).value: value})


class AlertState(SensorBaseModel):
    """Derived alert indicators; recomputed in full on every evaluation."""

    dht11: bool = False
    sr04: bool = False
    mq2: bool = False

    def get(self, indicator: Indicator | str) -> bool:
        return bool(getattr(self, Indicator(indicator).value))

    @property
    def any_active(self) -> bool:
        return self.dht11 or self.sr04 or self.mq2
