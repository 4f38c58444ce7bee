"""MQTT ingestion helpers.

This module translates raw MQTT payloads into canonical partial readings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from sensorwatch.exceptions import SensorPayloadError
from sensorwatch.ingestion.normalize import extract_sensor_values
from sensorwatch.models.readings import PartialReading


@dataclass(frozen=True)
class ParseFailure:
    """A payload that could not be turned into a reading; the caller drops it."""

    reason: str
    raw: bytes | str


def decode_payload(raw: bytes | bytearray | str) -> dict[str, Any]:
    """Decode MQTT payload bytes into a JSON object."""
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
    except UnicodeDecodeError as exc:
        raise SensorPayloadError(f"Payload is not valid UTF-8: {exc}", raw=bytes(raw)) from exc
    try:
        parsed = json.loads(text)
    except ValueError as exc:
        # JSONDecodeError, or an integer literal over the int digit limit.
        raise SensorPayloadError(f"Payload is not valid JSON: {exc}", raw=raw) from exc
    if not isinstance(parsed, dict):
        raise SensorPayloadError(
            f"Payload decoded to {type(parsed).__name__}, expected a JSON object",
            raw=raw,
        )
    return parsed


def normalize_payload(raw: bytes | bytearray | str) -> PartialReading | ParseFailure:
    """Turn a raw payload into a :class:`PartialReading`.

    Sensors that no alias resolves to a finite number are left absent.
    """
    try:
        parsed = decode_payload(raw)
    except SensorPayloadError as exc:
        return ParseFailure(reason=str(exc), raw=bytes(raw) if isinstance(raw, bytearray) else raw)
    return PartialReading(**extract_sensor_values(parsed))
