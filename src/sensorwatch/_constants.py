"""Shared constants for sensorwatch."""

from __future__ import annotations

#: Default simulation cadence in milliseconds.
DEFAULT_SIMULATION_INTERVAL_MS: int = 2000

#: Seconds between automatic reconnect attempts.
DEFAULT_RECONNECT_PERIOD: float = 2.0

DEFAULT_KEEPALIVE: int = 60

#: Default alert thresholds keyed by sensor name.
DEFAULT_THRESHOLDS: dict[str, float] = {
    "temperature": 30.0,
    "humidity": 70.0,
    "distance": 100.0,
    "gas": 300.0,
}

#: Uniform ranges and rounding precision used by the simulation generator.
#: ``sensor -> (low, high, decimals)``
SIMULATION_RANGES: dict[str, tuple[float, float, int]] = {
    "temperature": (18.0, 36.0, 1),
    "humidity": (40.0, 90.0, 0),
    "distance": (10.0, 200.0, 0),
    "gas": (50.0, 500.0, 0),
}

CLIENT_ID_PREFIX = "sensorwatch_"

WEBSOCKET_PROTOCOLS = frozenset({"ws", "wss"})
TCP_PROTOCOLS = frozenset({"mqtt", "tcp", "mqtts", "ssl"})
TLS_PROTOCOLS = frozenset({"wss", "mqtts", "ssl"})

FALLBACK_UNAVAILABLE_MESSAGE = "No MQTT transport available; using stub client (simulation/local debugging only)."
FALLBACK_CLOSED_MESSAGE = "Using stub MQTT client; no real connection was established."
CONNECTION_FAILED_MESSAGE = "connection failed"
