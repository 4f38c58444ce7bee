"""Threshold alert policy.

Pure functions only: alert state is a deterministic function of the
snapshot and the thresholds and is never cached between evaluations.
"""

from __future__ import annotations

from sensorwatch.models.readings import AlertState, SensorSnapshot, ThresholdSet


def over(value: float | None, threshold: float | None) -> bool:
    """Strict ``value > threshold``; an absent operand never triggers."""
    if value is None or threshold is None:
        return False
    return value > threshold


def evaluate(snapshot: SensorSnapshot, thresholds: ThresholdSet) -> AlertState:
    """Derive every alert indicator from *snapshot* and *thresholds*."""
    return AlertState(
        dht11=over(snapshot.temperature, thresholds.temperature) or over(snapshot.humidity, thresholds.humidity),
        sr04=over(snapshot.distance, thresholds.distance),
        mq2=over(snapshot.gas, thresholds.gas),
    )
