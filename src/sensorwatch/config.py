"""Broker and monitor configuration for sensorwatch."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from sensorwatch._constants import (
    DEFAULT_KEEPALIVE,
    DEFAULT_RECONNECT_PERIOD,
    DEFAULT_SIMULATION_INTERVAL_MS,
    DEFAULT_THRESHOLDS,
)
from sensorwatch.exceptions import SensorConfigError
from sensorwatch.ingestion.normalize import safe_float, safe_port

_BROKER_ENV_FIELDS = {
    "SENSORWATCH_HOST": "host",
    "SENSORWATCH_PROTOCOL": "protocol",
    "SENSORWATCH_USERNAME": "username",
    "SENSORWATCH_PASSWORD": "password",
    "SENSORWATCH_TOPIC": "topic",
    "SENSORWATCH_CLIENT_ID": "client_id",
}


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def normalize_path(path: str) -> str:
    """Return *path* with exactly one leading ``/``."""
    return "/" + path.lstrip("/")


@dataclasses.dataclass(frozen=True)
class BrokerConfig:
    """MQTT broker connection settings.

    Read once per connect; editing the config afterwards does not
    affect a connection that is already open.

    Parameters
    ----------
    host : str
        Broker hostname or IP address.
    port : int or None
        Broker port. ``None`` when the configured value was not a valid
        port number; connecting with it reports an error state.
    path : str
        WebSocket path, auto-prefixed with ``/``.
    protocol : str
        One of ``ws``, ``wss``, ``mqtt``/``tcp``, ``mqtts``/``ssl``.
    username : str
        Broker username; empty means anonymous.
    password : str
        Broker password.
    topic : str
        Topic subscribed to once connected.
    client_id : str or None
        MQTT client identifier. ``None`` generates a random one per connect.
    keepalive : int
        MQTT keepalive in seconds.
    reconnect_period : float
        Fixed delay in seconds between automatic reconnect attempts.
    """

    host: str = "localhost"
    port: int | None = 8083
    path: str = "/mqtt"
    protocol: str = "ws"
    username: str = ""
    password: str = ""
    topic: str = "sensors/data"
    client_id: str | None = None
    keepalive: int = DEFAULT_KEEPALIVE
    reconnect_period: float = DEFAULT_RECONNECT_PERIOD

    def with_field(self, field: str, value: Any) -> BrokerConfig:
        """Return a copy with *field* set from raw user input.

        ``port`` is coerced to an integer; anything that is not a valid
        port becomes ``None`` rather than zero. ``path`` gets a leading
        separator. Unknown fields raise :class:`SensorConfigError`.
        """
        if field == "port":
            return dataclasses.replace(self, port=safe_port(value))
        if field == "path":
            return dataclasses.replace(self, path=normalize_path("" if value is None else str(value)))
        if field in {"host", "protocol", "username", "password", "topic"}:
            return dataclasses.replace(self, **{field: "" if value is None else str(value)})
        if field == "client_id":
            return dataclasses.replace(self, client_id=str(value) if value else None)
        raise SensorConfigError(f"Unknown broker config field: {field!r}")

    def as_log_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_env(cls, **overrides: Any) -> BrokerConfig:
        """Create a broker configuration from environment variables.

        Reads ``SENSORWATCH_HOST``, ``SENSORWATCH_PORT``,
        ``SENSORWATCH_PATH``, ``SENSORWATCH_PROTOCOL``,
        ``SENSORWATCH_USERNAME``, ``SENSORWATCH_PASSWORD``,
        ``SENSORWATCH_TOPIC``, ``SENSORWATCH_CLIENT_ID`` and
        ``SENSORWATCH_KEEPALIVE``. Explicit keyword arguments override
        environment values.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _BROKER_ENV_FIELDS.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        path_env = env.get("SENSORWATCH_PATH")
        if path_env is not None:
            config_kwargs["path"] = normalize_path(path_env)

        port_env = env.get("SENSORWATCH_PORT")
        if port_env is not None and "port" not in overrides:
            config_kwargs["port"] = safe_port(port_env)

        keepalive_env = env.get("SENSORWATCH_KEEPALIVE")
        if keepalive_env is not None and "keepalive" not in overrides:
            config_kwargs["keepalive"] = int(keepalive_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class MonitorConfig:
    """Detection settings for :class:`sensorwatch.monitor.SensorMonitor`.

    Parameters
    ----------
    broker : BrokerConfig
        Initial broker settings.
    simulation_enabled : bool
        Start the synthetic generator alongside MQTT on ``start_detection``.
    simulation_interval_ms : int
        Cadence of simulated readings.
    thresholds : dict
        Initial alert thresholds keyed by sensor name.
    """

    broker: BrokerConfig = dataclasses.field(default_factory=BrokerConfig)
    simulation_enabled: bool = True
    simulation_interval_ms: int = DEFAULT_SIMULATION_INTERVAL_MS
    thresholds: dict[str, float | None] = dataclasses.field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))

    @classmethod
    def from_env(cls, **overrides: Any) -> MonitorConfig:
        """Create monitor configuration from ``SENSORWATCH_*`` variables.

        ``SENSORWATCH_THRESHOLD_<SENSOR>`` overrides a single threshold;
        a value that is not a finite number disables that threshold.
        """
        env = os.environ

        broker_overrides = overrides.pop("broker", None)
        if isinstance(broker_overrides, dict):
            broker = BrokerConfig.from_env(**broker_overrides)
        elif isinstance(broker_overrides, BrokerConfig):
            broker = broker_overrides
        else:
            broker = BrokerConfig.from_env()

        config_kwargs: dict[str, Any] = {"broker": broker}

        if "simulation_enabled" not in overrides:
            config_kwargs["simulation_enabled"] = _env_bool(env.get("SENSORWATCH_SIMULATION_ENABLED"), True)

        interval_env = env.get("SENSORWATCH_SIMULATION_INTERVAL_MS")
        if interval_env is not None and "simulation_interval_ms" not in overrides:
            config_kwargs["simulation_interval_ms"] = int(interval_env)

        thresholds: dict[str, float | None] = dict(DEFAULT_THRESHOLDS)
        for key in DEFAULT_THRESHOLDS:
            val = env.get(f"SENSORWATCH_THRESHOLD_{key.upper()}")
            if val is not None:
                thresholds[key] = safe_float(val)
        config_kwargs["thresholds"] = thresholds

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
