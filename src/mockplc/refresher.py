# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Periodic recomputation of simulated sensor values."""

import asyncio
import logging
from typing import Callable, Optional

from . import patterns
from .const import DEFAULT_UPDATE_INTERVAL_MS
from .registry import SensorRegistry, now_ms

logger = logging.getLogger(__name__)


class ValueRefresher:
    """Recomputes every sensor's value from its waveform at a fixed interval.

    A refresh always overwrites values set by protocol writes.
    """

    def __init__(
        self,
        registry: SensorRegistry,
        interval_ms: int = DEFAULT_UPDATE_INTERVAL_MS,
        clock: Callable[[], float] = now_ms,
        rng: Optional[patterns.UniformSource] = None,
    ):
        self.registry = registry
        self.interval_ms = interval_ms
        self.clock = clock
        self.rng = rng
        self.refresh_count = 0
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def refresh(self, timestamp: Optional[float] = None) -> None:
        """Recompute all sensors at ``timestamp`` (default: now)."""
        t = self.clock() if timestamp is None else timestamp
        for sensor in self.registry:
            sensor.current_value = patterns.evaluate(
                sensor.waveform_kind,
                sensor.waveform_config,
                t,
                sensor.min_value,
                sensor.max_value,
                rng=self.rng,
            )
            sensor.last_updated = t
        self.refresh_count += 1

    def start(self) -> None:
        """Start the background refresh loop."""
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._refresh_loop())
        logger.debug(f"Value refresher started ({self.interval_ms}ms interval)")

    async def stop(self) -> None:
        """Stop the background refresh loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _refresh_loop(self):
        """Background task that refreshes values every interval."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_ms / 1000.0)

                if not self._running:
                    break

                self.refresh()
                logger.debug(f"Refreshed {len(self.registry)} sensors")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error refreshing sensor values: {e}")
