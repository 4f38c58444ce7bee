"""Deterministic in-memory sensor store.

This is the only component allowed to replace the sensor snapshot.
"""

from __future__ import annotations

import logging
from typing import Any

from sensorwatch._constants import DEFAULT_THRESHOLDS
from sensorwatch.ingestion.normalize import round_half_up, safe_float
from sensorwatch.models._base import SensorKey
from sensorwatch.models.readings import AlertState, PartialReading, SensorSnapshot, ThresholdSet
from sensorwatch.state.events import UpdateSource
from sensorwatch.state.policy import evaluate

_logger = logging.getLogger(__name__)


def apply_reading(
    snapshot: SensorSnapshot,
    partial: PartialReading,
    provenance: UpdateSource,
) -> tuple[SensorSnapshot, UpdateSource]:
    """Merge *partial* into *snapshot*.

    Keys present in the reading overwrite, rounded to one decimal place.
    Absent keys keep their previous value. Provenance is replaced
    regardless of which keys changed.
    """
    merged = snapshot.as_dict()
    for key, value in partial.present().items():
        merged[key.value] = round_half_up(value, 1)
    return SensorSnapshot(**merged), provenance


class SensorStore:
    """Holds the snapshot, thresholds, provenance and derived alert state.

    Given the same sequence of readings and threshold changes, it will
    produce the same snapshots and alerts.
    """

    def __init__(self, thresholds: ThresholdSet | dict[str, Any] | None = None) -> None:
        if thresholds is None:
            thresholds = ThresholdSet.from_mapping(DEFAULT_THRESHOLDS)
        elif not isinstance(thresholds, ThresholdSet):
            thresholds = ThresholdSet.from_mapping(thresholds)
        self._thresholds = thresholds
        self._snapshot = SensorSnapshot.empty()
        self._provenance = UpdateSource.NONE
        self._alerts = evaluate(self._snapshot, self._thresholds)

    @property
    def snapshot(self) -> SensorSnapshot:
        return self._snapshot

    @property
    def thresholds(self) -> ThresholdSet:
        return self._thresholds

    @property
    def provenance(self) -> UpdateSource:
        return self._provenance

    @property
    def alerts(self) -> AlertState:
        return self._alerts

    def apply(self, partial: PartialReading, source: UpdateSource) -> None:
        """Merge a reading and re-evaluate alerts."""
        self._snapshot, self._provenance = apply_reading(self._snapshot, partial, source)
        self._alerts = evaluate(self._snapshot, self._thresholds)
        _logger.debug(
            "Applied reading source=%s snapshot=%s alerts=%s",
            source,
            self._snapshot.as_dict(),
            self._alerts.model_dump(),
        )

    def set_threshold(self, key: SensorKey | str, value: Any) -> None:
        """Set one threshold from raw input; non-numeric input disables it.

        Raises ``ValueError`` for an unknown sensor key.
        """
        sensor = SensorKey(key)
        parsed = safe_float(value)
        self._thresholds = self._thresholds.with_threshold(sensor, parsed)
        self._alerts = evaluate(self._snapshot, self._thresholds)

    def reset(self) -> None:
        """Clear every reading and alert and mark the store as reset."""
        self._snapshot = SensorSnapshot.empty()
        self._provenance = UpdateSource.RESET
        self._alerts = evaluate(self._snapshot, self._thresholds)
