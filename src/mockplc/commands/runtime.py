# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Runtime commands: log verbosity and shutdown."""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from .base import Arg, CommandResult, command, on_off

if TYPE_CHECKING:
    from ..server import PLCSimulator

# Only the simulator's own loggers; httpx and asyncio keep their level
PACKAGE_LOGGER = "mockplc"


class RuntimeCommandsMixin:
    """Mixin providing the debug and shutdown commands."""

    simulator: "PLCSimulator"
    stop_callback: Callable[[], None]

    @command(
        "debug",
        help="Show or set DEBUG logging for the simulator (requests, writes, pushes)",
        category="control",
        args=(
            Arg(
                "state",
                on_off,
                "on or off; omit to show the current setting",
                optional=True,
                hint="on|off",
                completions=("on", "off"),
            ),
        ),
    )
    def debug(self, state: Optional[bool] = None) -> CommandResult:
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        if state is not None:
            package_logger.setLevel(logging.DEBUG if state else logging.INFO)
        enabled = package_logger.getEffectiveLevel() <= logging.DEBUG
        setting = "on" if enabled else "off"
        if state is None:
            return CommandResult(True, f"Debug logging: {setting}", {"debug": enabled})
        return CommandResult(
            True,
            f"Debug logging {'enabled' if enabled else 'disabled'} for {PACKAGE_LOGGER}.*",
            {"debug": enabled},
        )

    @command("shutdown", "stop", "exit", "quit", "q", help="Stop the simulator", category="control")
    def shutdown(self) -> CommandResult:
        """Stop the simulator, dropping connected clients and their subscriptions."""
        clients = len(self.simulator.protocols)
        subscriptions = len(self.simulator.scheduler)
        self.stop_callback()
        return CommandResult(
            True,
            f"Shutting down ({clients} clients, {subscriptions} subscriptions)",
            {"clients": clients, "subscriptions": subscriptions},
        )
