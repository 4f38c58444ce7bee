from __future__ import annotations

import asyncio
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

from sensorwatch.config import BrokerConfig


class FakeReasonCode:
    def __init__(self, value: int, name: str = "Success") -> None:
        self.value = value
        self._name = name

    @property
    def is_failure(self) -> bool:
        return self.value >= 0x80

    def __str__(self) -> str:
        return self._name


class FakeMqttClient:
    """Records calls a paho client would receive; callbacks are fired by tests."""

    def __init__(self, config: BrokerConfig, client_id: str) -> None:
        self.config = config
        self.client_id = client_id
        self.connected_to: tuple[str, int, int] | None = None
        self.loop_running = False
        self.disconnect_calls = 0
        self.subscriptions: list[tuple[str, int]] = []
        self.published: list[tuple[str, Any]] = []
        self.on_pre_connect: Callable[..., None] | None = None
        self.on_connect: Callable[..., None] | None = None
        self.on_connect_fail: Callable[..., None] | None = None
        self.on_message: Callable[..., None] | None = None
        self.on_disconnect: Callable[..., None] | None = None

    def enable_logger(self, logger: Any = None) -> None:
        return None

    def connect_async(self, host: str, port: int, keepalive: int = 60) -> None:
        self.connected_to = (host, port, keepalive)

    def loop_start(self) -> None:
        self.loop_running = True

    def loop_stop(self) -> None:
        self.loop_running = False

    def disconnect(self) -> None:
        self.disconnect_calls += 1

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscriptions.append((topic, qos))

    def publish(self, topic: str, payload: Any, qos: int = 0, retain: bool = False) -> None:
        self.published.append((topic, payload))

    # Helpers mimicking paho's network thread.

    def fire_connect(self, reason: FakeReasonCode | None = None) -> None:
        assert self.on_pre_connect is not None and self.on_connect is not None
        self.on_pre_connect(self, None)
        self.on_connect(self, None, {}, reason or FakeReasonCode(0), None)

    def fire_reconnect_attempt(self) -> None:
        assert self.on_pre_connect is not None
        self.on_pre_connect(self, None)

    def fire_connect_fail(self) -> None:
        assert self.on_connect_fail is not None
        self.on_connect_fail(self, None)

    def fire_message(self, topic: str, payload: bytes) -> None:
        assert self.on_message is not None
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))

    def fire_disconnect(self) -> None:
        assert self.on_disconnect is not None
        self.on_disconnect(self, None, {}, FakeReasonCode(0x87, "Not authorized"), None)


class FakeClientFactory:
    def __init__(self) -> None:
        self.clients: list[FakeMqttClient] = []

    def __call__(self, config: BrokerConfig, client_id: str) -> FakeMqttClient:
        client = FakeMqttClient(config, client_id)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeMqttClient:
        return self.clients[-1]


async def drain() -> None:
    """Let callbacks queued with ``call_soon_threadsafe`` run."""
    for _ in range(3):
        await asyncio.sleep(0)


@pytest.fixture
def fake_factory() -> FakeClientFactory:
    return FakeClientFactory()
