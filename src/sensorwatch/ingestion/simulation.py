"""Synthetic reading generator.

Produces fully-populated readings on a fixed cadence, scheduled on the
control event loop so ticks are serialized with every other state change.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field

from sensorwatch._constants import SIMULATION_RANGES
from sensorwatch.ingestion.normalize import round_half_up
from sensorwatch.models.readings import PartialReading

_handle_ids = itertools.count(1)


def generate_reading(rng: random.Random | None = None) -> PartialReading:
    """Draw one reading with every sensor sampled uniformly from its range."""
    source = rng or random
    values: dict[str, float] = {}
    for key, (low, high, decimals) in SIMULATION_RANGES.items():
        values[key] = round_half_up(source.uniform(low, high), decimals)
    return PartialReading(**values)


@dataclass(eq=False)
class GeneratorHandle:
    """A single run of the generator."""

    interval_ms: int
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    ticks: int = 0
    cancelled: bool = False
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)
    _deadline: float = field(default=0.0, repr=False)


class SimulationGenerator:
    """Periodic producer of synthetic readings.

    At most one run is active at a time; ``start`` stops the previous run
    first and ``stop`` is idempotent.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_reading: Callable[[PartialReading], None],
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_reading = on_reading
        self._rng = rng or random.Random()
        self._logger = logger or logging.getLogger(__name__)
        self._handle: GeneratorHandle | None = None

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def current_handle(self) -> GeneratorHandle | None:
        return self._handle

    def start(self, interval_ms: int) -> GeneratorHandle:
        """Begin producing a reading every *interval_ms* milliseconds."""
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.stop()
        handle = GeneratorHandle(interval_ms=interval_ms)
        handle._deadline = self._loop.time() + interval_ms / 1000.0
        handle._timer = self._loop.call_at(handle._deadline, self._tick, handle)
        self._handle = handle
        self._logger.debug("Simulation started id=%s interval_ms=%s", handle.handle_id, interval_ms)
        return handle

    def stop(self, handle: GeneratorHandle | None = None) -> None:
        """Cancel the pending tick of *handle* (default: the current run)."""
        target = handle or self._handle
        if target is None:
            return
        if target is self._handle:
            self._handle = None
        if target.cancelled:
            return
        target.cancelled = True
        if target._timer is not None:
            target._timer.cancel()
            target._timer = None
        self._logger.debug("Simulation stopped id=%s ticks=%s", target.handle_id, target.ticks)

    def _tick(self, handle: GeneratorHandle) -> None:
        if handle.cancelled:
            return
        handle.ticks += 1
        # Fixed cadence: anchor the next deadline to the previous one, not to now.
        handle._deadline += handle.interval_ms / 1000.0
        handle._timer = self._loop.call_at(handle._deadline, self._tick, handle)
        reading = generate_reading(self._rng)
        try:
            self._on_reading(reading)
        except Exception:
            self._logger.exception("Simulation reading handler failed")
