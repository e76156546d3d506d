# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Mock PLC simulator.

This package provides a simulated PLC that exposes a grid of analog sensors
(modules of three sensors each) over an ADS-like request/response protocol.
Sensor values follow configurable waveforms and are recomputed on a fixed
interval. Clients can read and write values, query device info and state,
and subscribe to periodic value notifications.

Example usage:
    # Run interactively
    python -m mockplc --config plc-config.json

    # Or use programmatically
    from mockplc import PLCSimulator, ConfigStore
    simulator = PLCSimulator(config=ConfigStore("plc-config.json"), ports=[48898])
    await simulator.start()
"""

from .cli import main, run_simulator
from .commands import CommandHandler, CommandResult
from .config import ConfigError, ConfigStore, default_topology
from .const import AdsState, ErrorCode, RequestKind
from .datastore import Datastore, NullDatastore, RestDatastore, create_datastore
from .dispatcher import ProtocolDispatcher, Request, RequestRegistry, Response
from .notifications import NotificationScheduler
from .patterns import decode_value, encode_value, evaluate
from .protocol import FrameError, PLCProtocol
from .refresher import ValueRefresher
from .registry import SensorRegistry
from .retry import RetryExhausted, retry_candidates
from .server import BindError, PLCSimulator
from .state import (
    Address,
    ModuleTemplate,
    SensorState,
    SensorTemplate,
    Subscription,
    Topology,
    WaveformConfig,
    WaveformKind,
)

__all__ = [
    # Main classes
    "PLCSimulator",
    "PLCProtocol",
    "ProtocolDispatcher",
    "SensorRegistry",
    "ValueRefresher",
    "NotificationScheduler",
    # Configuration
    "ConfigStore",
    "ConfigError",
    "default_topology",
    # State
    "Address",
    "ModuleTemplate",
    "SensorState",
    "SensorTemplate",
    "Subscription",
    "Topology",
    "WaveformConfig",
    "WaveformKind",
    # Protocol
    "AdsState",
    "ErrorCode",
    "FrameError",
    "Request",
    "RequestKind",
    "RequestRegistry",
    "Response",
    # Patterns
    "decode_value",
    "encode_value",
    "evaluate",
    # Datastore
    "Datastore",
    "NullDatastore",
    "RestDatastore",
    "create_datastore",
    # Bootstrap
    "BindError",
    "RetryExhausted",
    "retry_candidates",
    # CLI
    "run_simulator",
    "main",
    # Commands
    "CommandHandler",
    "CommandResult",
]
