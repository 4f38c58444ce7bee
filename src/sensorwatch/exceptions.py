"""Custom exception hierarchy for sensorwatch."""

from __future__ import annotations


class SensorwatchError(Exception):
    """Base exception for all sensorwatch errors."""


class SensorConfigError(SensorwatchError):
    """Invalid or missing configuration (e.g. a broker port that is not a number)."""


class SensorPayloadError(SensorwatchError):
    """Inbound payload could not be decoded into a JSON object."""

    def __init__(self, message: str, *, raw: bytes | str | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class SensorTransportError(SensorwatchError):
    """MQTT-level failure (refused connection, unreachable broker)."""

    def __init__(
        self,
        message: str,
        *,
        reason_code: int | None = None,
        broker_url: str = "",
    ) -> None:
        self.reason_code = reason_code
        self.broker_url = broker_url
        super().__init__(message)


class SensorTransportUnavailableError(SensorTransportError):
    """No real MQTT transport can carry the configured connection.

    The transport adapter never lets this escape; it degrades to the
    stub handle and reports a fallback event instead.
    """
