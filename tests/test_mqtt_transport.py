from __future__ import annotations

import asyncio

import pytest
from conftest import FakeClientFactory, FakeReasonCode, drain

from sensorwatch._mqtt import (
    MqttTransport,
    StubConnectionHandle,
    TransportEvent,
    TransportEventKind,
    build_broker_url,
    create_paho_client,
    generate_client_id,
    resolve_protocol,
)
from sensorwatch.config import BrokerConfig
from sensorwatch.exceptions import SensorConfigError, SensorTransportUnavailableError


def _transport(events: list[TransportEvent], factory: object) -> MqttTransport:
    return MqttTransport(
        loop=asyncio.get_running_loop(),
        on_event=events.append,
        client_factory=factory,  # type: ignore[arg-type]
    )


def test_build_broker_url_normalizes_path() -> None:
    config = BrokerConfig(host="broker.local", port=8084, path="mqtt", protocol="wss")

    assert build_broker_url(config) == "wss://broker.local:8084/mqtt"
    assert build_broker_url(BrokerConfig(path="//ws")) == "ws://localhost:8083/ws"


def test_generated_client_ids_are_unique() -> None:
    first = generate_client_id()

    assert first.startswith("sensorwatch_")
    assert len(first) == len("sensorwatch_") + 8
    assert first != generate_client_id()


@pytest.mark.parametrize(
    ("protocol", "expected"),
    [
        ("ws", ("websockets", False)),
        ("WSS", ("websockets", True)),
        ("mqtt", ("tcp", False)),
        ("tcp", ("tcp", False)),
        ("mqtts", ("tcp", True)),
        ("ssl", ("tcp", True)),
    ],
)
def test_resolve_protocol(protocol: str, expected: tuple[str, bool]) -> None:
    assert resolve_protocol(protocol) == expected


def test_resolve_protocol_unknown_scheme_is_unavailable() -> None:
    with pytest.raises(SensorTransportUnavailableError):
        resolve_protocol("wxs")


def test_create_paho_client_builds_unconnected_client() -> None:
    client = create_paho_client(BrokerConfig(username="user", password="pw"), "sensorwatch_test")

    assert not client.is_connected()


@pytest.mark.asyncio
async def test_stub_handle_when_no_transport_available() -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, None)

    handle = transport.connect(BrokerConfig())

    assert isinstance(handle, StubConnectionHandle)
    assert handle.is_stub
    assert transport.current_handle is handle
    # The fallback is reported synchronously, not on a later loop turn.
    assert [event.kind for event in events] == [TransportEventKind.FALLBACK]
    assert events[0].message

    transport.subscribe("sensors/data")
    transport.publish("sensors/data", "{}")
    handle.subscribe("x")
    handle.publish("x", "y")
    assert len(events) == 1


@pytest.mark.asyncio
async def test_unsupported_protocol_falls_back_to_stub() -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, create_paho_client)

    handle = transport.connect(BrokerConfig(protocol="wxs"))

    assert handle.is_stub
    assert events[0].kind == TransportEventKind.FALLBACK
    assert "wxs" in (events[0].message or "")


@pytest.mark.asyncio
async def test_closing_stub_reports_fallback() -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, None)
    transport.connect(BrokerConfig())

    transport.disconnect()

    assert [event.kind for event in events] == [TransportEventKind.FALLBACK, TransportEventKind.FALLBACK]
    assert transport.current_handle is None


@pytest.mark.asyncio
async def test_real_handle_configures_client(fake_factory: FakeClientFactory) -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, fake_factory)
    config = BrokerConfig(host="10.0.0.5", port=1883, protocol="mqtt", keepalive=30, client_id="fixed-id")

    handle = transport.connect(config)

    client = fake_factory.last
    assert not handle.is_stub
    assert client.client_id == "fixed-id"
    assert client.connected_to == ("10.0.0.5", 1883, 30)
    assert client.loop_running
    assert handle.broker_url == "mqtt://10.0.0.5:1883/mqtt"
    assert events == []


@pytest.mark.asyncio
async def test_generated_client_id_when_not_configured(fake_factory: FakeClientFactory) -> None:
    transport = _transport([], fake_factory)

    transport.connect(BrokerConfig())

    assert fake_factory.last.client_id.startswith("sensorwatch_")


@pytest.mark.asyncio
async def test_event_mapping(fake_factory: FakeClientFactory) -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, fake_factory)
    handle = transport.connect(BrokerConfig())
    client = fake_factory.last

    client.fire_connect()
    client.fire_message("sensors/data", b'{"gas": 1}')
    client.fire_disconnect()
    client.fire_reconnect_attempt()
    client.fire_connect_fail()
    await drain()

    assert [event.kind for event in events] == [
        TransportEventKind.CONNECTED,
        TransportEventKind.MESSAGE,
        TransportEventKind.RECONNECTING,
        TransportEventKind.ERROR,
    ]
    assert all(event.handle_id == handle.handle_id for event in events)
    assert events[1].topic == "sensors/data"
    assert events[1].payload == b'{"gas": 1}'
    assert events[3].error is not None
    assert str(events[3].error) == "connection failed"


@pytest.mark.asyncio
async def test_refused_connect_is_an_error(fake_factory: FakeClientFactory) -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, fake_factory)
    transport.connect(BrokerConfig())

    fake_factory.last.fire_connect(FakeReasonCode(0x87, "Not authorized"))
    await drain()

    assert [event.kind for event in events] == [TransportEventKind.ERROR]
    assert events[0].error is not None
    assert events[0].error.reason_code == 0x87
    assert "Not authorized" in str(events[0].error)


@pytest.mark.asyncio
async def test_connect_tears_down_previous_handle(fake_factory: FakeClientFactory) -> None:
    transport = _transport([], fake_factory)

    first = transport.connect(BrokerConfig())
    second = transport.connect(BrokerConfig())

    assert first.closed
    assert fake_factory.clients[0].disconnect_calls == 1
    assert not fake_factory.clients[0].loop_running
    assert transport.current_handle is second


@pytest.mark.asyncio
async def test_disconnect_is_idempotent(fake_factory: FakeClientFactory) -> None:
    transport = _transport([], fake_factory)
    transport.disconnect()

    transport.connect(BrokerConfig())
    transport.disconnect()
    transport.disconnect()

    assert fake_factory.last.disconnect_calls == 1
    assert transport.current_handle is None


@pytest.mark.asyncio
async def test_stray_message_after_disconnect_is_dropped(fake_factory: FakeClientFactory) -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, fake_factory)
    transport.connect(BrokerConfig())
    client = fake_factory.last

    # Queued on the loop before the disconnect, delivered after it.
    client.fire_message("sensors/data", b'{"gas": 5}')
    transport.disconnect()
    await drain()

    assert events == []
    assert transport.current_handle is None


@pytest.mark.asyncio
async def test_events_from_replaced_handle_are_dropped(fake_factory: FakeClientFactory) -> None:
    events: list[TransportEvent] = []
    transport = _transport(events, fake_factory)
    transport.connect(BrokerConfig())
    old_client = fake_factory.last
    transport.connect(BrokerConfig())

    old_client.fire_message("sensors/data", b"{}")
    await drain()

    assert events == []


@pytest.mark.asyncio
async def test_subscribe_and_publish_pass_through(fake_factory: FakeClientFactory) -> None:
    transport = _transport([], fake_factory)
    transport.subscribe("ignored/before/connect")
    transport.connect(BrokerConfig())

    transport.subscribe("sensors/data")
    transport.publish("sensors/cmd", "ping")

    assert fake_factory.last.subscriptions == [("sensors/data", 0)]
    assert fake_factory.last.published == [("sensors/cmd", "ping")]


@pytest.mark.asyncio
async def test_missing_port_is_a_config_error(fake_factory: FakeClientFactory) -> None:
    transport = _transport([], fake_factory)

    with pytest.raises(SensorConfigError):
        transport.connect(BrokerConfig(port=None))

    assert fake_factory.clients == []
    assert transport.current_handle is None


@pytest.mark.asyncio
async def test_failing_event_handler_is_contained(fake_factory: FakeClientFactory) -> None:
    def on_event(_event: TransportEvent) -> None:
        raise RuntimeError("listener bug")

    transport = MqttTransport(loop=asyncio.get_running_loop(), on_event=on_event, client_factory=fake_factory)  # type: ignore[arg-type]
    transport.connect(BrokerConfig())

    fake_factory.last.fire_connect()
    await drain()

    assert transport.current_handle is not None
