"""Connection state model."""

from __future__ import annotations

from enum import StrEnum

from sensorwatch.models._base import SensorBaseModel


class ConnectionStatus(StrEnum):
    """Lifecycle status of the MQTT connection as seen by the monitor."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"
    STUB = "stub"


class ConnectionState(SensorBaseModel):
    """Connection status plus an optional human-readable message.

    ``message`` is populated for ``error`` and ``stub``.
    """

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    message: str | None = None

    @property
    def is_live(self) -> bool:
        """Whether a real broker connection is currently established."""
        return self.status == ConnectionStatus.CONNECTED
