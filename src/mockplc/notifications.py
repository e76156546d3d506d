# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Notification subscriptions and periodic delivery."""

import asyncio
import itertools
import logging
from typing import Any, Callable, Optional

from .const import DEFAULT_TICK_INTERVAL_MS
from .patterns import encode_value
from .registry import SensorRegistry, now_ms
from .state import Address, Subscription

logger = logging.getLogger(__name__)

# push(target, handle, payload, timestamp_ms)
PushCallback = Callable[[Any, int, bytes, float], None]


class NotificationScheduler:
    """Owns active subscriptions and pushes values when they fall due.

    Subscriptions are processed in insertion order. A failed push is logged
    and the subscription stays active; only remove() and remove_target()
    delete subscriptions.
    """

    def __init__(
        self,
        registry: SensorRegistry,
        push: PushCallback,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        clock: Callable[[], float] = now_ms,
    ):
        self.registry = registry
        self.push = push
        self.tick_interval_ms = tick_interval_ms
        self.clock = clock
        self._subscriptions: dict[int, Subscription] = {}
        self._handles = itertools.count(1)
        self._task: Optional[asyncio.Task] = None
        self._running = False

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, handle: int) -> bool:
        return handle in self._subscriptions

    @property
    def subscriptions(self) -> list[Subscription]:
        """Active subscriptions in insertion order."""
        return list(self._subscriptions.values())

    def get(self, handle: int) -> Optional[Subscription]:
        return self._subscriptions.get(handle)

    def add(
        self,
        address: Address,
        target: Any,
        cycle_time_ms: int,
        timestamp: Optional[float] = None,
    ) -> Subscription:
        """Register a subscription and return it with a fresh handle.

        The caller validates the address.
        """
        created = self.clock() if timestamp is None else timestamp
        subscription = Subscription(
            handle=next(self._handles),
            address=address,
            target=target,
            cycle_time_ms=int(cycle_time_ms),
            created_at=created,
        )
        self._subscriptions[subscription.handle] = subscription
        logger.info(
            f"Notification {subscription.handle} added for {address.symbol} "
            f"every {subscription.cycle_time_ms}ms"
        )
        return subscription

    def remove(self, handle: int) -> bool:
        """Delete a subscription. Returns False for an unknown handle."""
        subscription = self._subscriptions.pop(handle, None)
        if subscription is None:
            return False
        logger.info(f"Notification {handle} deleted")
        return True

    def remove_target(self, target: Any) -> int:
        """Delete every subscription owned by ``target`` (client disconnect)."""
        handles = [h for h, s in self._subscriptions.items() if s.target is target]
        for handle in handles:
            del self._subscriptions[handle]
        if handles:
            logger.info(f"Dropped {len(handles)} notification(s) for disconnected client")
        return len(handles)

    def tick(self, timestamp: Optional[float] = None) -> int:
        """Deliver every due subscription. Returns the number delivered."""
        now = self.clock() if timestamp is None else timestamp
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.is_due(now):
                continue

            sensor = self.registry.lookup(subscription.address)
            if sensor is None:
                continue

            subscription.last_sent_at = now
            try:
                self.push(
                    subscription.target,
                    subscription.handle,
                    encode_value(sensor.current_value),
                    now,
                )
            except Exception as e:
                logger.warning(
                    f"Failed to deliver notification {subscription.handle}: {e}"
                )
                continue
            delivered += 1
        return delivered

    def start(self) -> None:
        """Start the background delivery loop."""
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._tick_loop())
        logger.debug(f"Notification scheduler started ({self.tick_interval_ms}ms tick)")

    async def stop(self) -> None:
        """Stop the background delivery loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _tick_loop(self):
        """Background task that delivers due notifications."""
        while self._running:
            try:
                await asyncio.sleep(self.tick_interval_ms / 1000.0)

                if not self._running:
                    break

                self.tick()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error delivering notifications: {e}")
