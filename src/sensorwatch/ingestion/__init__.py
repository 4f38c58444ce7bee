"""Ingestion layer.

This package contains the adapters that turn MQTT payloads and synthetic
generator output into canonical partial readings.
"""

__all__: list[str] = []
