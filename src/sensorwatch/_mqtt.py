"""Internal MQTT transport adapter.

Wraps a paho-mqtt client behind a small connection handle and translates
paho callbacks into a fixed set of :class:`TransportEvent` kinds that are
delivered on the control event loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, cast

import paho.mqtt.client as mqtt

from sensorwatch._constants import (
    CLIENT_ID_PREFIX,
    CONNECTION_FAILED_MESSAGE,
    FALLBACK_CLOSED_MESSAGE,
    FALLBACK_UNAVAILABLE_MESSAGE,
    TCP_PROTOCOLS,
    TLS_PROTOCOLS,
    WEBSOCKET_PROTOCOLS,
)
from sensorwatch._redact import redact_for_log
from sensorwatch.config import BrokerConfig, normalize_path
from sensorwatch.exceptions import SensorConfigError, SensorTransportError, SensorTransportUnavailableError

_handle_ids = itertools.count(1)

ClientFactory = Callable[[BrokerConfig, str], mqtt.Client]


class TransportEventKind(StrEnum):
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"
    MESSAGE = "message"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class TransportEvent:
    """A lifecycle or data event raised by one connection handle."""

    kind: TransportEventKind
    handle_id: int
    topic: str | None = None
    payload: bytes | None = None
    message: str | None = None
    error: SensorTransportError | None = None


def generate_client_id() -> str:
    return f"{CLIENT_ID_PREFIX}{secrets.token_hex(4)}"


def build_broker_url(config: BrokerConfig) -> str:
    """Compose ``protocol://host:port/path`` for logs and diagnostics."""
    port = "" if config.port is None else str(config.port)
    return f"{config.protocol}://{config.host}:{port}{normalize_path(config.path)}"


def resolve_protocol(protocol: str) -> tuple[str, bool]:
    """Map a configured protocol to ``(paho transport, use_tls)``."""
    scheme = protocol.strip().lower()
    if scheme in WEBSOCKET_PROTOCOLS:
        return "websockets", scheme in TLS_PROTOCOLS
    if scheme in TCP_PROTOCOLS:
        return "tcp", scheme in TLS_PROTOCOLS
    raise SensorTransportUnavailableError(f"No MQTT transport for protocol {protocol!r}")


def create_paho_client(config: BrokerConfig, client_id: str) -> mqtt.Client:
    """Build a configured (not yet connected) paho client."""
    transport, use_tls = resolve_protocol(config.protocol)
    client = mqtt.Client(
        callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
        protocol=mqtt.MQTTv311,
        transport=transport,
    )
    if transport == "websockets":
        client.ws_set_options(path=normalize_path(config.path))
    if use_tls:
        client.tls_set()
    if config.username:
        client.username_pw_set(config.username, config.password or None)
    period = max(1, round(config.reconnect_period))
    client.reconnect_delay_set(min_delay=period, max_delay=period)
    return client


class ConnectionHandle:
    """A live paho client plus the bookkeeping to tear it down once."""

    is_stub = False

    def __init__(
        self,
        *,
        handle_id: int,
        client: mqtt.Client | None,
        broker_url: str,
        emit: Callable[[TransportEvent], None],
        logger: logging.Logger,
    ) -> None:
        self.handle_id = handle_id
        self.broker_url = broker_url
        self._client = client
        self._emit = emit
        self._logger = logger
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, kind: TransportEventKind, **fields: Any) -> None:
        if self._closed:
            return
        self._emit(TransportEvent(kind=kind, handle_id=self.handle_id, **fields))

    def subscribe(self, topic: str, qos: int = 0) -> None:
        if self._closed or self._client is None:
            return
        try:
            self._client.subscribe(topic, qos=qos)
        except ValueError:
            self._logger.warning("MQTT subscribe rejected topic=%s", topic, exc_info=True)

    def publish(self, topic: str, message: str | bytes, qos: int = 0, retain: bool = False) -> None:
        if self._closed or self._client is None:
            return
        try:
            self._client.publish(topic, message, qos=qos, retain=retain)
        except (ValueError, TypeError):
            self._logger.warning("MQTT publish rejected topic=%s", topic, exc_info=True)

    def end(self) -> None:
        """Disconnect and stop the network loop. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            self._logger.debug("MQTT disconnect requested url=%s", self.broker_url)
            client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


class StubConnectionHandle(ConnectionHandle):
    """Inert stand-in used when no real MQTT transport is available.

    ``subscribe`` and ``publish`` do nothing; closing it reports a
    fallback event so the caller knows no real connection existed.
    """

    is_stub = True

    def __init__(self, *, handle_id: int, broker_url: str, emit: Callable[[TransportEvent], None], logger: logging.Logger) -> None:
        super().__init__(handle_id=handle_id, client=None, broker_url=broker_url, emit=emit, logger=logger)

    def subscribe(self, topic: str, qos: int = 0) -> None:
        return None

    def publish(self, topic: str, message: str | bytes, qos: int = 0, retain: bool = False) -> None:
        return None

    def end(self) -> None:
        if self._closed:
            return
        self.emit(TransportEventKind.FALLBACK, message=FALLBACK_CLOSED_MESSAGE)
        self._closed = True


class MqttTransport:
    """Owns at most one connection handle and serializes its events.

    paho invokes callbacks on its network thread; they are forwarded to
    ``on_event`` with ``loop.call_soon_threadsafe`` so every consumer
    runs on the control loop. Events from a handle that is no longer
    current are dropped there.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_event: Callable[[TransportEvent], None],
        client_factory: ClientFactory | None = create_paho_client,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_event = on_event
        self._client_factory = client_factory
        self._logger = logger or logging.getLogger(__name__)
        self._handle: ConnectionHandle | None = None

    @property
    def current_handle(self) -> ConnectionHandle | None:
        return self._handle

    def connect(self, config: BrokerConfig) -> ConnectionHandle:
        """Tear down any existing handle and open a new one.

        Returns a :class:`StubConnectionHandle` when no real transport can
        carry *config*. Raises :class:`SensorConfigError` when the broker
        address is unusable and :class:`SensorTransportError` when paho
        rejects the connect call outright.
        """
        self.disconnect()
        handle_id = next(_handle_ids)
        url = build_broker_url(config)

        if self._client_factory is None:
            return self._connect_stub(handle_id, url, FALLBACK_UNAVAILABLE_MESSAGE)

        if not config.host:
            raise SensorConfigError("Broker host is empty")
        if config.port is None:
            raise SensorConfigError("Broker port is not a valid number")

        client_id = config.client_id or generate_client_id()
        self._logger.debug(
            "MQTT connect requested url=%s client_id=%s config=%s",
            url,
            client_id,
            redact_for_log(config.as_log_dict()),
        )
        try:
            client = self._client_factory(config, client_id)
        except SensorTransportUnavailableError as exc:
            self._logger.warning("MQTT transport unavailable: %s", exc)
            return self._connect_stub(handle_id, url, f"{FALLBACK_UNAVAILABLE_MESSAGE} ({exc})")

        handle = ConnectionHandle(
            handle_id=handle_id,
            client=client,
            broker_url=url,
            emit=self._emit_threadsafe,
            logger=self._logger,
        )
        self._attach_callbacks(handle, client)
        client.enable_logger(self._logger)
        self._handle = handle
        try:
            client.connect_async(config.host, config.port, keepalive=config.keepalive)
            client.loop_start()
        except (OSError, ValueError) as exc:
            self._handle = None
            handle.end()
            raise SensorTransportError(f"MQTT connect failed: {exc}", broker_url=url) from exc
        self._logger.debug("MQTT network loop started id=%s", handle_id)
        return handle

    def subscribe(self, topic: str, qos: int = 0) -> None:
        handle = self._handle
        if handle is None or handle.is_stub:
            return
        self._logger.debug("MQTT subscribing topic=%s", topic)
        handle.subscribe(topic, qos)

    def publish(self, topic: str, message: str | bytes, qos: int = 0) -> None:
        handle = self._handle
        if handle is None or handle.is_stub:
            return
        handle.publish(topic, message, qos)

    def disconnect(self) -> None:
        """End the current handle, if any, and forget it."""
        handle = self._handle
        if handle is None:
            return
        try:
            handle.end()
        finally:
            self._handle = None

    def _connect_stub(self, handle_id: int, url: str, message: str) -> StubConnectionHandle:
        stub = StubConnectionHandle(handle_id=handle_id, broker_url=url, emit=self._deliver, logger=self._logger)
        self._handle = stub
        self._logger.debug("MQTT stub handle in use id=%s", handle_id)
        stub.emit(TransportEventKind.FALLBACK, message=message)
        return stub

    def _attach_callbacks(self, handle: ConnectionHandle, client: mqtt.Client) -> None:
        attempts = 0

        def on_pre_connect(_c: mqtt.Client, _userdata: Any) -> None:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                self._logger.debug("MQTT reconnect attempt=%s url=%s", attempts, handle.broker_url)
                handle.emit(TransportEventKind.RECONNECTING)

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                handle.emit(
                    TransportEventKind.ERROR,
                    error=SensorTransportError(
                        f"Connection refused: {reason_code}",
                        reason_code=reason_code.value,
                        broker_url=handle.broker_url,
                    ),
                )
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            handle.emit(TransportEventKind.CONNECTED)

        def on_connect_fail(_c: mqtt.Client, _userdata: Any) -> None:
            self._logger.debug("MQTT connect attempt failed url=%s", handle.broker_url)
            handle.emit(
                TransportEventKind.ERROR,
                error=SensorTransportError(CONNECTION_FAILED_MESSAGE, broker_url=handle.broker_url),
            )

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            handle.emit(TransportEventKind.MESSAGE, topic=msg.topic, payload=bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            # Reconnection is left to paho's retry loop; a close is not reported.
            if not handle.closed:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_pre_connect = on_pre_connect
        client.on_connect = on_connect
        client.on_connect_fail = on_connect_fail
        client.on_message = on_message
        client.on_disconnect = on_disconnect

    def _emit_threadsafe(self, event: TransportEvent) -> None:
        try:
            self._loop.call_soon_threadsafe(self._deliver, event)
        except RuntimeError:
            self._logger.debug("Event loop closed; dropping MQTT event kind=%s", event.kind)

    def _deliver(self, event: TransportEvent) -> None:
        current = self._handle
        if current is None or current.handle_id != event.handle_id:
            self._logger.debug("Dropping event from stale handle id=%s kind=%s", event.handle_id, event.kind)
            return
        try:
            self._on_event(event)
        except Exception:
            self._logger.exception("MQTT event handler failed kind=%s", event.kind)
