# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Sensor value commands."""

from typing import TYPE_CHECKING

from ..const import RequestKind
from ..dispatcher import Request
from ..patterns import decode_value, encode_value
from ..state import Address
from .base import MODULE, SENSOR, Arg, CommandResult, command, number

if TYPE_CHECKING:
    from ..server import PLCSimulator


class SensorCommandsMixin:
    """Mixin providing sensor read/write commands."""

    simulator: "PLCSimulator"

    @command(
        "read", "r", "get",
        help="Read the current value of a sensor",
        category="sensors",
        args=(MODULE, SENSOR),
    )
    def read(self, module: int, sensor: int) -> CommandResult:
        """Read a sensor through the dispatcher."""
        response = self.simulator.execute(Request(RequestKind.READ, module, sensor))
        if not response.success:
            return CommandResult(
                False, f"Read {module}:{sensor} failed: {response.error.name}"
            )
        value = decode_value(response.data)
        state = self.simulator.registry.lookup(Address(module, sensor))
        unit = f" {state.unit}" if state.unit else ""
        return CommandResult(
            True,
            f"{state.address.symbol} ({state.name}): {value:.3f}{unit}",
            {"module": module, "sensor": sensor, "value": value},
        )

    @command(
        "write", "w", "set",
        help="Write a raw value to a sensor (overwritten on the next refresh)",
        category="sensors",
        args=(MODULE, SENSOR, Arg("value", number, "New value, stored unclamped")),
    )
    def write(self, module: int, sensor: int, value: float) -> CommandResult:
        """Write a sensor through the dispatcher."""
        response = self.simulator.execute(
            Request(RequestKind.WRITE, module, sensor, data=encode_value(value))
        )
        if not response.success:
            return CommandResult(
                False, f"Write {module}:{sensor} failed: {response.error.name}"
            )
        return CommandResult(
            True,
            f"Wrote {value} to {module}:{sensor}",
            {"module": module, "sensor": sensor, "value": value},
        )

    @command("refresh", help="Recompute all sensor values now", category="sensors")
    def refresh(self) -> CommandResult:
        """Force an immediate refresh."""
        self.simulator.refresh()
        return CommandResult(True, f"Refreshed {len(self.simulator.registry)} sensors")

    @command("sensors", "ls", "list", help="List all sensors and their values", category="sensors")
    def sensors(self) -> CommandResult:
        """List every sensor in address order."""
        registry = self.simulator.registry
        lines = [f"Sensors ({len(registry)} in {registry.module_count} modules):"]
        for state in registry:
            unit = f" {state.unit}" if state.unit else ""
            lines.append(
                f"  {state.address}  {state.address.symbol:<18} "
                f"{state.name:<20} {state.current_value:10.3f}{unit}  "
                f"[{state.waveform_kind.value}]"
            )
        return CommandResult(True, "\n".join(lines), {"sensors": [s.to_dict() for s in registry]})
