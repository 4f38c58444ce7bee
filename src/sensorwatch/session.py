"""Detection session state."""

from __future__ import annotations

from sensorwatch.models._base import SensorBaseModel


class DetectionSession(SensorBaseModel):
    """Whether ingestion is running and which sources are live.

    Parameters
    ----------
    running : bool
        ``True`` between ``start_detection`` and ``stop_detection``.
    transport_active : bool
        A transport handle (real or stub) is currently held.
    simulation_active : bool
        The synthetic generator has a pending tick.
    """

    running: bool = False
    transport_active: bool = False
    simulation_active: bool = False

    @property
    def sources(self) -> tuple[str, ...]:
        live: list[str] = []
        if self.transport_active:
            live.append("mqtt")
        if self.simulation_active:
            live.append("simulation")
        return tuple(live)
