# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Console command handling for the mock PLC simulator.

The command handler is split into category-specific mixins:
- SensorCommandsMixin: read, write, refresh, sensors
- SubscriptionCommandsMixin: subs, watch, unsub
- InfoCommandsMixin: status, info, help
- RuntimeCommandsMixin: debug, shutdown
"""

from .base import COMMANDS, Arg, ArgError, CommandResult, ConsoleCommand, command
from .handler import CommandHandler

__all__ = [
    "Arg",
    "ArgError",
    "COMMANDS",
    "CommandHandler",
    "CommandResult",
    "ConsoleCommand",
    "command",
]
