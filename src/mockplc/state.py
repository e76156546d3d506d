# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""State dataclasses for the mock PLC simulator.

This module contains the topology description loaded from configuration and
the live per-sensor and per-subscription state owned by the registry and
notification scheduler.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .const import DEFAULT_UPDATE_INTERVAL_MS, SENSORS_PER_MODULE


class WaveformKind(str, Enum):
    """Waveform used to synthesize a sensor's value over time."""

    SINE = "sine"
    NOISY_SINE = "noisy-sine"
    SQUARE = "square"

    @classmethod
    def parse(cls, value: str) -> "WaveformKind":
        """Parse a waveform name, accepting the legacy "noise" alias."""
        name = str(value).strip().lower()
        if name in ("noise", "noisy_sine", "noisysine"):
            return cls.NOISY_SINE
        return cls(name)


@dataclass(frozen=True, order=True)
class Address:
    """Sensor address: (module index, sensor index), both 1-based."""

    module_index: int
    sensor_index: int

    @property
    def symbol(self) -> str:
        """Symbolic name in the Module{X}_Sensor{Y} convention."""
        return f"Module{self.module_index}_Sensor{self.sensor_index}"

    def __str__(self) -> str:
        return f"{self.module_index}:{self.sensor_index}"


@dataclass(frozen=True)
class WaveformConfig:
    """Parameters of a waveform (all times in milliseconds)."""

    amplitude: float = 50.0
    frequency: float = 0.001
    phase_offset: float = 0.0
    dc_offset: float = 50.0

    @classmethod
    def default_for_range(
        cls, min_value: Optional[float], max_value: Optional[float]
    ) -> "WaveformConfig":
        """Derive a config for a sensor that was given none.

        The wave is centred on the midpoint of [min, max] with an amplitude of
        30% of the range. Without both bounds the generic 50 +/- 50 wave is used.
        """
        if min_value is None or max_value is None:
            return cls()
        span = max_value - min_value
        return cls(
            amplitude=span * 0.3,
            frequency=0.001,
            phase_offset=0.0,
            dc_offset=min_value + span / 2,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "WaveformConfig":
        """Create from a config dict (camelCase or snake_case keys)."""

        def pick(*keys, default):
            for key in keys:
                if key in data and data[key] is not None:
                    return float(data[key])
            return default

        return cls(
            amplitude=pick("amplitude", default=50.0),
            frequency=pick("frequency", default=0.001),
            phase_offset=pick("phaseOffset", "phase_offset", default=0.0),
            dc_offset=pick("dcOffset", "dc_offset", default=50.0),
        )

    def to_dict(self) -> dict:
        return {
            "amplitude": self.amplitude,
            "frequency": self.frequency,
            "phaseOffset": self.phase_offset,
            "dcOffset": self.dc_offset,
        }


@dataclass(frozen=True)
class SensorTemplate:
    """Template for one sensor slot in a module."""

    name: str
    type: str = "generic"
    unit: str = ""
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    waveform_kind: WaveformKind = WaveformKind.SINE
    waveform_config: Optional[WaveformConfig] = None
    status: str = "online"

    def resolved_waveform(self) -> WaveformConfig:
        """Explicit waveform config, or the range-derived default."""
        if self.waveform_config is not None:
            return self.waveform_config
        return WaveformConfig.default_for_range(self.min_value, self.max_value)


@dataclass(frozen=True)
class ModuleTemplate:
    """Template for a module: a name pattern and exactly three sensors."""

    name_pattern: str
    sensors: tuple[SensorTemplate, ...]
    module_type: str = "production"
    status: str = "online"

    def __post_init__(self):
        if len(self.sensors) != SENSORS_PER_MODULE:
            raise ValueError(
                f"Module template '{self.name_pattern}' has {len(self.sensors)} "
                f"sensors, expected {SENSORS_PER_MODULE}"
            )

    def module_name(self, index: int) -> str:
        return self.name_pattern.replace("{index}", str(index))


@dataclass(frozen=True)
class Topology:
    """Module/sensor layout that drives registry construction."""

    module_count: int
    templates: tuple[ModuleTemplate, ...]
    update_interval_ms: int = DEFAULT_UPDATE_INTERVAL_MS
    name: str = "Mock PLC Server"

    def __post_init__(self):
        if self.module_count < 1:
            raise ValueError(f"module_count must be >= 1, got {self.module_count}")
        if not self.templates:
            raise ValueError("At least one module template is required")
        if self.update_interval_ms <= 0:
            raise ValueError(
                f"update_interval_ms must be > 0, got {self.update_interval_ms}"
            )

    def template_for(self, module_index: int) -> ModuleTemplate:
        """Template for a 1-based module index (cycles through the list)."""
        return self.templates[(module_index - 1) % len(self.templates)]


@dataclass
class SensorState:
    """Live state of one addressable sensor.

    Owned by SensorRegistry. Mutated by the value refresher and by writes.
    """

    address: Address
    name: str
    waveform_kind: WaveformKind
    waveform_config: WaveformConfig
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    sensor_type: str = "generic"
    unit: str = ""
    module_name: str = ""
    current_value: float = 0.0
    last_updated: float = 0.0  # ms since epoch
    # Row id in the external datastore, when built from it
    external_id: Optional[Any] = None

    def to_dict(self) -> dict:
        """Summary used by the console and logs."""
        return {
            "address": str(self.address),
            "symbol": self.address.symbol,
            "module": self.module_name,
            "name": self.name,
            "type": self.sensor_type,
            "unit": self.unit,
            "waveform": self.waveform_kind.value,
            "min": self.min_value,
            "max": self.max_value,
            "value": self.current_value,
            "lastUpdated": self.last_updated,
        }


@dataclass
class Subscription:
    """An active notification subscription."""

    handle: int
    address: Address
    target: Any  # opaque, owned by the transport
    cycle_time_ms: int
    created_at: float
    last_sent_at: float = field(default=0.0)

    def __post_init__(self):
        if self.cycle_time_ms <= 0:
            raise ValueError(f"cycle_time_ms must be > 0, got {self.cycle_time_ms}")
        if not self.last_sent_at:
            self.last_sent_at = self.created_at

    def is_due(self, now_ms: float) -> bool:
        return now_ms - self.last_sent_at >= self.cycle_time_ms
