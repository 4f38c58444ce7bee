#!/usr/bin/env python3
"""Watch live or simulated sensor readings from the terminal.

Runs a :class:`sensorwatch.SensorMonitor` against the configured MQTT
broker (``SENSORWATCH_*`` environment variables or flags) and prints
each state change: connection status, snapshot, alerts and provenance.

Use ``--simulate-only`` to skip the broker entirely.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from sensorwatch import BrokerConfig, MonitorConfig, MonitorView, SensorMonitor  # noqa: E402

_LOG = logging.getLogger("watch_sensors")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print sensor snapshots and alert state as they change.",
    )
    parser.add_argument("--host", help="Broker host (overrides SENSORWATCH_HOST).")
    parser.add_argument("--port", help="Broker port (overrides SENSORWATCH_PORT).")
    parser.add_argument("--protocol", help="ws, wss, mqtt or mqtts.")
    parser.add_argument("--topic", help="Topic to subscribe to.")
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--no-simulation",
        action="store_true",
        help="Disable the synthetic generator.",
    )
    parser.add_argument(
        "--simulate-only",
        action="store_true",
        help="Do not use a broker; report a stub connection and simulated data only.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_view(view: MonitorView) -> None:
    snapshot = " ".join(f"{key}={value}" for key, value in view.snapshot.as_dict().items())
    lights = " ".join(name for name, on in view.alerts.model_dump().items() if on) or "-"
    message = f" ({view.connection.message})" if view.connection.message else ""
    print(
        f"[{view.connection.status}{message}] source={view.provenance} {snapshot} alerts={lights}",
        flush=True,
    )


async def _run(args: argparse.Namespace) -> int:
    broker_overrides: dict[str, str] = {}
    for name in ("host", "protocol", "topic"):
        value = getattr(args, name)
        if value is not None:
            broker_overrides[name] = value
    broker = BrokerConfig.from_env(**broker_overrides)
    if args.port is not None:
        broker = broker.with_field("port", args.port)

    config = MonitorConfig.from_env(broker=broker)
    if args.no_simulation:
        config = MonitorConfig(
            broker=config.broker,
            simulation_enabled=False,
            simulation_interval_ms=config.simulation_interval_ms,
            thresholds=config.thresholds,
        )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows
            pass

    factory_kwargs = {"client_factory": None} if args.simulate_only else {}
    async with SensorMonitor(config, on_update=_print_view, **factory_kwargs) as monitor:
        monitor.start_detection()
        try:
            if args.duration > 0:
                await asyncio.wait_for(stop_event.wait(), timeout=args.duration)
            else:
                await stop_event.wait()
        except TimeoutError:
            _LOG.debug("Duration elapsed")
    return 0


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
