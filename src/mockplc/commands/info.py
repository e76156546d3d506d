# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Info and status commands."""

from typing import TYPE_CHECKING

from ..const import RequestKind
from ..dispatcher import Request
from .base import COMMANDS, CommandResult, command

if TYPE_CHECKING:
    from ..server import PLCSimulator

# Order of categories in help output
_CATEGORY_ORDER = ["sensors", "subscriptions", "info", "control"]


class InfoCommandsMixin:
    """Mixin providing info and status commands."""

    simulator: "PLCSimulator"

    def get_help(self) -> str:
        """Command listing grouped by category."""
        lines = ["Commands:"]
        for category in _CATEGORY_ORDER:
            commands = sorted(
                (cmd for cmd in COMMANDS if cmd.category == category), key=lambda c: c.name
            )
            if not commands:
                continue
            lines.append(f"  {category.capitalize()}:")
            for cmd in commands:
                usage = f" {cmd.usage}" if cmd.usage else ""
                aliases = f" ({', '.join(cmd.aliases)})" if cmd.aliases else ""
                lines.append(f"    {cmd.name}{usage}{aliases} - {cmd.help}")
        lines.append("  Type '<command> help' for argument details.")
        return "\n".join(lines)

    @command("status", "st", "v", help="Show current simulator state", category="info")
    def status(self) -> CommandResult:
        """Show current simulator state."""
        sim = self.simulator
        topology = sim.topology
        num_clients = len(sim.protocols)
        data = {
            "name": topology.name,
            "host": sim.host,
            "port": sim.port,
            "modules": sim.registry.module_count,
            "sensors": len(sim.registry),
            "update_interval_ms": topology.update_interval_ms,
            "tick_interval_ms": sim.tick_interval_ms,
            "refresh_count": sim.refresher.refresh_count,
            "subscriptions": len(sim.scheduler),
            "connected_clients": num_clients,
            "config_loaded": sim.config.loaded,
        }

        if num_clients == 0:
            clients_str = "none"
        elif num_clients == 1:
            clients_str = "1 client"
        else:
            clients_str = f"{num_clients} clients"

        lines = [
            f"{topology.name}:",
            f"  Listening: {sim.host}:{sim.port}",
            f"  Clients: {clients_str}",
            f"  Topology: {'config file' if sim.config.loaded else 'built-in default'}",
            f"  Modules: {sim.registry.module_count} ({len(sim.registry)} sensors)",
            f"  Update interval: {topology.update_interval_ms}ms",
            f"  Refreshes: {sim.refresher.refresh_count}",
            f"  Subscriptions: {len(sim.scheduler)} (tick {sim.tick_interval_ms}ms)",
        ]
        return CommandResult(True, "\n".join(lines), data)

    @command("info", "i", help="Show device info and state", category="info")
    def info(self) -> CommandResult:
        """Show the ReadDeviceInfo and ReadState responses."""
        device = self.simulator.execute(Request(RequestKind.READ_DEVICE_INFO)).info
        state = self.simulator.execute(Request(RequestKind.READ_STATE)).info
        version = f"{device['majorVersion']}.{device['minorVersion']}.{device['versionBuild']}"
        lines = [
            f"Device: {device['deviceName']}",
            f"  Version: {version}",
            f"  ADS state: {state['adsState']}",
            f"  Device state: {state['deviceState']}",
        ]
        return CommandResult(True, "\n".join(lines), {"device": device, "state": state})

    @command("help", "?", "h", help="Show available commands", category="info")
    def help(self) -> CommandResult:
        """Show help for all commands."""
        return CommandResult(True, self.get_help())
