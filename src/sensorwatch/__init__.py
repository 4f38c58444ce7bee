"""sensorwatch - environmental sensor ingestion and threshold alerting over MQTT."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sensorwatch")
except PackageNotFoundError:
    __version__ = "0+local"
from sensorwatch.config import BrokerConfig, MonitorConfig
from sensorwatch.exceptions import (
    SensorConfigError,
    SensorPayloadError,
    SensorTransportError,
    SensorTransportUnavailableError,
    SensorwatchError,
)
from sensorwatch.ingestion.mqtt import ParseFailure, normalize_payload
from sensorwatch.models import (
    AlertState,
    ConnectionState,
    ConnectionStatus,
    Indicator,
    PartialReading,
    SensorKey,
    SensorSnapshot,
    ThresholdSet,
)
from sensorwatch.monitor import MonitorView, SensorMonitor
from sensorwatch.session import DetectionSession
from sensorwatch.state.events import UpdateSource
from sensorwatch.state.policy import evaluate
from sensorwatch.state.store import SensorStore, apply_reading

__all__ = [
    "__version__",
    "AlertState",
    "BrokerConfig",
    "ConnectionState",
    "ConnectionStatus",
    "DetectionSession",
    "Indicator",
    "MonitorConfig",
    "MonitorView",
    "ParseFailure",
    "PartialReading",
    "SensorConfigError",
    "SensorKey",
    "SensorMonitor",
    "SensorPayloadError",
    "SensorSnapshot",
    "SensorStore",
    "SensorTransportError",
    "SensorTransportUnavailableError",
    "SensorwatchError",
    "ThresholdSet",
    "UpdateSource",
    "apply_reading",
    "evaluate",
    "normalize_payload",
]
