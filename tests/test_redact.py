from __future__ import annotations

from sensorwatch._redact import redact_for_log
from sensorwatch.config import BrokerConfig


def test_redact_for_log_redacts_broker_password() -> None:
    config = BrokerConfig(username="alice", password="s3cret")

    redacted = redact_for_log(config.as_log_dict())

    assert redacted["password"] == "<redacted>"
    assert redacted["username"] == "alice"
    assert redacted["port"] == 8083


def test_redact_for_log_keeps_empty_password_visible() -> None:
    assert redact_for_log({"password": ""})["password"] == ""


def test_redact_for_log_handles_nested_and_bytes() -> None:
    redacted = redact_for_log({"nested": {"token": "abc"}, "payload": b"\x00\x01", "items": [{"Password": "x"}]})

    assert redacted["nested"]["token"] == "<redacted>"
    assert redacted["payload"] == "<bytes:2b>"
    assert redacted["items"][0]["Password"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
