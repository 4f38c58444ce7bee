"""High-level sensor monitor: detection lifecycle and read model."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from typing import Any

from sensorwatch._constants import CONNECTION_FAILED_MESSAGE
from sensorwatch._mqtt import ClientFactory, MqttTransport, TransportEvent, TransportEventKind, create_paho_client
from sensorwatch.config import BrokerConfig, MonitorConfig
from sensorwatch.exceptions import SensorConfigError, SensorwatchError
from sensorwatch.ingestion.mqtt import ParseFailure, normalize_payload
from sensorwatch.ingestion.simulation import SimulationGenerator
from sensorwatch.models._base import SensorBaseModel
from sensorwatch.models.connection import ConnectionState, ConnectionStatus
from sensorwatch.models.readings import AlertState, PartialReading, SensorSnapshot, ThresholdSet
from sensorwatch.session import DetectionSession
from sensorwatch.state.events import UpdateSource
from sensorwatch.state.store import SensorStore

_logger = logging.getLogger(__name__)


class MonitorView(SensorBaseModel):
    """Everything a UI shell needs to render the current state."""

    connection: ConnectionState
    snapshot: SensorSnapshot
    alerts: AlertState
    thresholds: ThresholdSet
    provenance: UpdateSource
    session: DetectionSession


class SensorMonitor:
    """Coordinates MQTT and simulated ingestion into a single sensor store.

    All methods are synchronous, must be called from the control event
    loop, and never raise: failures are reflected in :attr:`connection_state`
    or logged and ignored.

    Usage::

        async with SensorMonitor(MonitorConfig.from_env()) as monitor:
            monitor.start_detection()
            ...
            print(monitor.view())
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        on_update: Callable[[MonitorView], None] | None = None,
        client_factory: ClientFactory | None = create_paho_client,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        config = config or MonitorConfig()
        self._loop = loop or asyncio.get_running_loop()
        self._logger = logger or _logger
        self._broker: BrokerConfig = config.broker
        self._simulation_enabled = config.simulation_enabled
        self._simulation_interval_ms = config.simulation_interval_ms
        self._on_update = on_update

        self._store = SensorStore(config.thresholds)
        self._connection = ConnectionState()
        self._running = False
        self._connect_topic: str | None = None

        self._transport = MqttTransport(
            loop=self._loop,
            on_event=self._on_transport_event,
            client_factory=client_factory,
            logger=self._logger,
        )
        self._generator = SimulationGenerator(
            loop=self._loop,
            on_reading=self._on_simulated_reading,
            rng=rng,
            logger=self._logger,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SensorMonitor:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection

    @property
    def snapshot(self) -> SensorSnapshot:
        return self._store.snapshot

    @property
    def alerts(self) -> AlertState:
        return self._store.alerts

    @property
    def thresholds(self) -> ThresholdSet:
        return self._store.thresholds

    @property
    def provenance(self) -> UpdateSource:
        return self._store.provenance

    @property
    def config(self) -> BrokerConfig:
        return self._broker

    @property
    def simulation_enabled(self) -> bool:
        return self._simulation_enabled

    @property
    def session(self) -> DetectionSession:
        return DetectionSession(
            running=self._running,
            transport_active=self._transport.current_handle is not None,
            simulation_active=self._generator.is_running,
        )

    def view(self) -> MonitorView:
        return MonitorView(
            connection=self._connection,
            snapshot=self._store.snapshot,
            alerts=self._store.alerts,
            thresholds=self._store.thresholds,
            provenance=self._store.provenance,
            session=self.session,
        )

    # ------------------------------------------------------------------
    # Detection lifecycle
    # ------------------------------------------------------------------

    def start_detection(self) -> None:
        """Start ingestion. No-op when already running.

        Does not wait for the broker connection to be established.
        """
        if self._running:
            return
        self._running = True
        self._logger.debug("Detection starting simulation=%s", self._simulation_enabled)
        self._connect()
        if self._simulation_enabled:
            try:
                self._generator.start(self._simulation_interval_ms)
            except ValueError:
                self._logger.warning("Simulation not started: interval_ms=%s", self._simulation_interval_ms)
        self._notify()

    def stop_detection(self) -> None:
        """Stop ingestion and the generator; the MQTT connection stays open."""
        if not self._running and not self._generator.is_running:
            return
        self._running = False
        self._generator.stop()
        self._logger.debug("Detection stopped")
        self._notify()

    def reconnect(self) -> None:
        """Open a fresh broker connection with the current config."""
        self._connect()
        self._notify()

    def close(self) -> None:
        """Stop detection and disconnect the transport."""
        self.stop_detection()
        self._transport.disconnect()
        self._connect_topic = None
        self._connection = ConnectionState(status=ConnectionStatus.DISCONNECTED)
        self._notify()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def reset_data(self) -> None:
        """Stop detection and clear every reading and alert."""
        self.stop_detection()
        self._store.reset()
        self._notify()

    def set_threshold(self, key: str, value: Any) -> None:
        """Update one alert threshold; non-numeric input disables it."""
        try:
            self._store.set_threshold(key, value)
        except ValueError:
            self._logger.warning("Ignoring threshold for unknown sensor %r", key)
            return
        self._notify()

    def set_simulation_enabled(self, enabled: bool) -> None:
        """Toggle simulation.

        Disabling stops a running generator. Enabling while detection is
        already running does not start it; it takes effect on the next
        ``start_detection``.
        """
        self._simulation_enabled = bool(enabled)
        if not self._simulation_enabled:
            self._generator.stop()
        self._notify()

    def set_config(self, field: str, value: Any) -> None:
        """Update one broker setting; applies from the next connect."""
        try:
            self._broker = self._broker.with_field(field, value)
        except SensorConfigError:
            self._logger.warning("Ignoring unknown broker config field %r", field)
            return
        self._notify()

    def publish(self, message: str | bytes, topic: str | None = None) -> None:
        """Publish through the live connection; no-op on a stub or without one."""
        self._transport.publish(topic or self._broker.topic, message)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        # Tear down first so a closing stub's fallback cannot overwrite CONNECTING.
        self._transport.disconnect()
        self._connection = ConnectionState(status=ConnectionStatus.CONNECTING)
        self._connect_topic = self._broker.topic
        try:
            self._transport.connect(self._broker)
        except SensorwatchError as exc:
            self._logger.warning("MQTT connect failed: %s", exc)
            self._connection = ConnectionState(status=ConnectionStatus.ERROR, message=str(exc))

    def _on_transport_event(self, event: TransportEvent) -> None:
        if event.kind == TransportEventKind.MESSAGE:
            self._handle_payload(event.topic, event.payload or b"")
            return

        if event.kind == TransportEventKind.CONNECTED:
            self._connection = ConnectionState(status=ConnectionStatus.CONNECTED)
            if self._connect_topic:
                self._transport.subscribe(self._connect_topic)
        elif event.kind == TransportEventKind.RECONNECTING:
            self._connection = ConnectionState(
                status=ConnectionStatus.RECONNECTING,
                message=self._connection.message,
            )
        elif event.kind == TransportEventKind.ERROR:
            message = str(event.error) if event.error is not None else ""
            self._connection = ConnectionState(
                status=ConnectionStatus.ERROR,
                message=message or CONNECTION_FAILED_MESSAGE,
            )
        elif event.kind == TransportEventKind.FALLBACK:
            self._connection = ConnectionState(status=ConnectionStatus.STUB, message=event.message)
        self._logger.debug("Connection state now %s", self._connection.status)
        self._notify()

    def _handle_payload(self, topic: str | None, payload: bytes) -> None:
        result = normalize_payload(payload)
        if isinstance(result, ParseFailure):
            self._logger.warning("Dropping unparseable MQTT payload topic=%s: %s", topic, result.reason)
            return
        self._store.apply(result, UpdateSource.MQTT)
        self._notify()

    def _on_simulated_reading(self, reading: PartialReading) -> None:
        self._store.apply(reading, UpdateSource.SIMULATION)
        self._notify()

    def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self.view())
        except Exception:
            self._logger.exception("Monitor update listener failed")
