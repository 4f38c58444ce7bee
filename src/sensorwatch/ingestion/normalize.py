"""Normalization helpers.

Centralizes defensive numeric coercion, rounding, and the alias table
used to pull sensor values out of the payload shapes seen in the field.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from sensorwatch.models._base import SensorKey

Accessor = Callable[[dict[str, Any]], Any]


def safe_float(value: Any) -> float | None:
    """Coerce *value* to a finite float, or ``None`` when that is not possible.

    Booleans and empty strings are absent rather than 1 or 0.
    """
    if value is None or isinstance(value, bool) or value == "" or value == "--":
        return None
    if isinstance(value, str):
        value = value.strip()
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_port(value: Any) -> int | None:
    """Coerce *value* to a TCP port number; invalid or zero ports become ``None``."""
    parsed = safe_float(value)
    if parsed is None or not parsed.is_integer():
        return None
    port = int(parsed)
    if port <= 0 or port > 65535:
        return None
    return port


def round_half_up(value: float, places: int = 1) -> float:
    """Round *value* to *places* decimals, halves away from zero.

    Works on the exact binary value, so ``0.25`` rounds to ``0.3`` while
    ``1.45`` (stored as 1.4499...) rounds to ``1.4``.
    """
    exact = Decimal(value)
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # quantize fails when the result has more digits than the context precision.
        ctx.prec = max(ctx.prec, exact.adjusted() + places + 2)
        return float(exact.quantize(quantum, rounding=ROUND_HALF_UP))


def field(name: str) -> Accessor:
    """Accessor for a top-level key."""

    def _get(payload: dict[str, Any]) -> Any:
        return payload.get(name)

    _get.__name__ = f"field_{name}"
    return _get


def nested(parent: str, name: str) -> Accessor:
    """Accessor for ``payload[parent][name]`` when ``parent`` is an object."""

    def _get(payload: dict[str, Any]) -> Any:
        container = payload.get(parent)
        if not isinstance(container, dict):
            return None
        return container.get(name)

    _get.__name__ = f"nested_{parent}_{name}"
    return _get


#: Ordered accessors per sensor; the first one yielding a finite number wins.
SENSOR_ALIASES: dict[SensorKey, tuple[Accessor, ...]] = {
    SensorKey.TEMPERATURE: (
        field("temperature"),
        field("temp"),
        nested("dht11", "temperature"),
    ),
    SensorKey.HUMIDITY: (
        field("humidity"),
        nested("dht11", "humidity"),
    ),
    SensorKey.DISTANCE: (
        field("distance"),
        field("range"),
        field("sr04"),
        nested("sr04", "distance"),
    ),
    SensorKey.GAS: (
        field("gas"),
        field("smoke"),
        field("mq2"),
        nested("mq2", "gas"),
    ),
}


def resolve_value(payload: dict[str, Any], accessors: tuple[Accessor, ...]) -> float | None:
    for accessor in accessors:
        value = safe_float(accessor(payload))
        if value is not None:
            return value
    return None


def extract_sensor_values(
    payload: dict[str, Any],
    aliases: dict[SensorKey, tuple[Accessor, ...]] | None = None,
) -> dict[str, float | None]:
    """Resolve every sensor key from a decoded payload object."""
    table = SENSOR_ALIASES if aliases is None else aliases
    return {key.value: resolve_value(payload, accessors) for key, accessors in table.items()}
