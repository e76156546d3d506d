# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Notification subscription commands."""

import logging
from typing import TYPE_CHECKING

from ..const import RequestKind
from ..dispatcher import Request
from ..patterns import decode_value
from .base import MODULE, SENSOR, Arg, CommandResult, command, index, milliseconds

if TYPE_CHECKING:
    from ..server import PLCSimulator

logger = logging.getLogger(__name__)


class SubscriptionCommandsMixin:
    """Mixin providing subscription commands."""

    simulator: "PLCSimulator"

    def _console_notification(self, handle: int, payload: bytes, timestamp: float):
        """Push target for subscriptions made from the console."""
        logger.info(f"Notification {handle}: {decode_value(payload):.3f} @ {timestamp:.0f}")

    @command(
        "subs", "subscriptions",
        help="List active notification subscriptions",
        category="subscriptions",
    )
    def subs(self) -> CommandResult:
        """List subscriptions in creation order."""
        subscriptions = self.simulator.scheduler.subscriptions
        if not subscriptions:
            return CommandResult(True, "No active subscriptions", {"subscriptions": []})

        lines = [f"Subscriptions ({len(subscriptions)}):"]
        for sub in subscriptions:
            owner = "console" if callable(sub.target) else getattr(sub.target, "peer", sub.target)
            lines.append(
                f"  #{sub.handle}  {sub.address.symbol}  every {sub.cycle_time_ms}ms  ({owner})"
            )
        data = {
            "subscriptions": [
                {
                    "handle": sub.handle,
                    "address": str(sub.address),
                    "cycleTime": sub.cycle_time_ms,
                }
                for sub in subscriptions
            ]
        }
        return CommandResult(True, "\n".join(lines), data)

    @command(
        "watch", "sub",
        help="Subscribe the console to a sensor's value",
        category="subscriptions",
        args=(
            MODULE,
            SENSOR,
            Arg("cycle_ms", milliseconds, "Delivery period in milliseconds", optional=True, default=1000),
        ),
    )
    def watch(self, module: int, sensor: int, cycle_ms: int = 1000) -> CommandResult:
        """Add a notification whose pushes are logged on the console."""
        response = self.simulator.execute(
            Request(
                RequestKind.ADD_NOTIFICATION,
                module,
                sensor,
                cycle_time_ms=cycle_ms,
                target=self._console_notification,
            )
        )
        if not response.success:
            return CommandResult(
                False, f"Subscribe {module}:{sensor} failed: {response.error.name}"
            )
        return CommandResult(
            True,
            f"Subscribed to {module}:{sensor} every {cycle_ms}ms (handle {response.handle})",
            {"handle": response.handle},
        )

    @command(
        "unsub", "unsubscribe",
        help="Delete a notification subscription",
        category="subscriptions",
        args=(Arg("handle", index, "Subscription handle from watch or subs"),),
    )
    def unsub(self, handle: int) -> CommandResult:
        """Delete a subscription by handle."""
        response = self.simulator.execute(
            Request(RequestKind.DELETE_NOTIFICATION, handle=handle)
        )
        if not response.success:
            return CommandResult(False, f"Unknown subscription handle: {handle}")
        return CommandResult(True, f"Removed subscription {handle}")
