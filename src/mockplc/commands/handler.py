# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command handler that combines all command mixins."""

import logging
from typing import TYPE_CHECKING, Callable

from .base import COMMANDS, ArgError, CommandResult
from .info import InfoCommandsMixin
from .runtime import RuntimeCommandsMixin
from .sensors import SensorCommandsMixin
from .subscriptions import SubscriptionCommandsMixin

if TYPE_CHECKING:
    from ..server import PLCSimulator

logger = logging.getLogger(__name__)


class CommandHandler(
    SensorCommandsMixin,
    SubscriptionCommandsMixin,
    InfoCommandsMixin,
    RuntimeCommandsMixin,
):
    """Runs console command lines against a started PLCSimulator.

    Value commands go through PLCSimulator.execute(), so the console sees the
    same responses and error codes as a protocol client.

    Example:
        handler = CommandHandler(simulator, stop_callback=stop_event.set)
        result = await handler.execute("read 1 2")
    """

    def __init__(self, simulator: "PLCSimulator", stop_callback: Callable[[], None]):
        self.simulator = simulator
        self.stop_callback = stop_callback

    async def execute(self, line: str) -> CommandResult:
        """Run one command line. Failures come back as unsuccessful results."""
        words = line.split()
        if not words:
            return CommandResult(False, "Empty command")

        cmd = COMMANDS.lookup(words[0])
        if cmd is None:
            return CommandResult(False, f"Unknown command: {words[0]}. Type 'help' for commands.")

        args = words[1:]
        if args and args[0].lower() in ("help", "?"):
            return CommandResult(True, cmd.describe())

        try:
            values = cmd.bind(args)
        except ArgError as e:
            return CommandResult(False, f"{e}\nUsage: {cmd.name} {cmd.usage}".rstrip())

        try:
            return getattr(self, cmd.method)(*values)
        except Exception as e:
            logger.warning(f"Console command '{line}' failed: {e}")
            return CommandResult(False, f"Error: {e}")
