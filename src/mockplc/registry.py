# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Addressable sensor registry.

The registry owns every SensorState. Sensors are stored densely, one list of
three per module, and looked up directly by (module index, sensor index).
"""

import logging
import math
import time
from typing import Iterable, Iterator, Optional

from . import patterns
from .const import SENSORS_PER_MODULE
from .state import Address, SensorState, Topology, WaveformConfig, WaveformKind

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Wall-clock time in milliseconds."""
    return time.time() * 1000.0


class SensorRegistry:
    """Dense address space of sensors.

    Example:
        registry = SensorRegistry.build(topology)
        sensor = registry.lookup(Address(1, 2))
        registry.write(Address(1, 2), 42.0)
    """

    def __init__(self, modules: list[list[SensorState]]):
        for module_index, sensors in enumerate(modules, start=1):
            if len(sensors) != SENSORS_PER_MODULE:
                raise ValueError(
                    f"Module {module_index} has {len(sensors)} sensors, "
                    f"expected {SENSORS_PER_MODULE}"
                )
            for sensor_index, sensor in enumerate(sensors, start=1):
                if sensor.address != Address(module_index, sensor_index):
                    raise ValueError(
                        f"Sensor {sensor.name} at slot {module_index}:{sensor_index} "
                        f"has address {sensor.address}"
                    )
        self._modules = modules

    @classmethod
    def build(
        cls,
        topology: Topology,
        timestamp: Optional[float] = None,
        rng: Optional[patterns.UniformSource] = None,
    ) -> "SensorRegistry":
        """Create one sensor per (module, slot) from the topology templates."""
        t = now_ms() if timestamp is None else timestamp
        modules = []
        for module_index in range(1, topology.module_count + 1):
            template = topology.template_for(module_index)
            module_name = template.module_name(module_index)
            sensors = []
            for sensor_index, sensor_template in enumerate(template.sensors, start=1):
                sensor = SensorState(
                    address=Address(module_index, sensor_index),
                    name=sensor_template.name.replace("{index}", str(module_index)),
                    waveform_kind=sensor_template.waveform_kind,
                    waveform_config=sensor_template.resolved_waveform(),
                    min_value=sensor_template.min_value,
                    max_value=sensor_template.max_value,
                    sensor_type=sensor_template.type,
                    unit=sensor_template.unit,
                    module_name=module_name,
                )
                _initialize_value(sensor, t, rng)
                sensors.append(sensor)
            modules.append(sensors)

        logger.info(
            f"Built registry: {topology.module_count} modules, "
            f"{topology.module_count * SENSORS_PER_MODULE} sensors"
        )
        return cls(modules)

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[dict],
        timestamp: Optional[float] = None,
        rng: Optional[patterns.UniformSource] = None,
    ) -> Optional["SensorRegistry"]:
        """Build from datastore sensor rows.

        Rows are grouped by ``module_id`` in the order they arrive; each group
        must contain exactly three sensors. Returns None if the rows do not
        describe a complete, dense topology.
        """
        t = now_ms() if timestamp is None else timestamp
        groups: dict = {}
        for row in rows:
            if not isinstance(row, dict):
                logger.warning(
                    f"Datastore sensor row is {type(row).__name__}, not an object; "
                    f"ignoring datastore rows"
                )
                return None
            try:
                groups.setdefault(row.get("module_id"), []).append(row)
            except TypeError:
                logger.warning(f"Datastore sensor row {row.get('id')} has an invalid module_id")
                return None

        if not groups:
            return None

        modules = []
        for module_index, (module_id, module_rows) in enumerate(groups.items(), start=1):
            if len(module_rows) != SENSORS_PER_MODULE:
                logger.warning(
                    f"Datastore module {module_id} has {len(module_rows)} sensors, "
                    f"expected {SENSORS_PER_MODULE}; ignoring datastore rows"
                )
                return None
            sensors = []
            for sensor_index, row in enumerate(module_rows, start=1):
                try:
                    sensor = _sensor_from_row(row, Address(module_index, sensor_index))
                except (TypeError, ValueError, ArithmeticError) as e:
                    logger.warning(f"Invalid datastore sensor row {row.get('id')}: {e}")
                    return None
                _initialize_value(sensor, t, rng)
                sensors.append(sensor)
            modules.append(sensors)

        logger.info(f"Built registry from datastore: {len(modules)} modules")
        return cls(modules)

    # =========================================================================
    # Access
    # =========================================================================

    @property
    def module_count(self) -> int:
        return len(self._modules)

    def __len__(self) -> int:
        return len(self._modules) * SENSORS_PER_MODULE

    def __iter__(self) -> Iterator[SensorState]:
        for sensors in self._modules:
            yield from sensors

    def __contains__(self, address: Address) -> bool:
        return self.lookup(address) is not None

    def addresses(self) -> list[Address]:
        return [sensor.address for sensor in self]

    def lookup(self, address: Address) -> Optional[SensorState]:
        """Return the sensor at ``address``, or None if out of range."""
        if not 1 <= address.module_index <= len(self._modules):
            return None
        if not 1 <= address.sensor_index <= SENSORS_PER_MODULE:
            return None
        return self._modules[address.module_index - 1][address.sensor_index - 1]

    def write(self, address: Address, value: float, timestamp: Optional[float] = None) -> bool:
        """Override a sensor's current value.

        The value is stored as given (no clamping) and lasts until the next
        refresh. Returns False if the address does not exist.
        """
        sensor = self.lookup(address)
        if sensor is None:
            return False
        sensor.current_value = float(value)
        sensor.last_updated = now_ms() if timestamp is None else timestamp
        return True


def _initialize_value(
    sensor: SensorState, t: float, rng: Optional[patterns.UniformSource]
) -> None:
    sensor.current_value = patterns.evaluate(
        sensor.waveform_kind,
        sensor.waveform_config,
        t,
        sensor.min_value,
        sensor.max_value,
        rng=rng,
    )
    sensor.last_updated = t


def _row_float(row: dict, key: str) -> Optional[float]:
    value = row.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{key} must be finite, got {value!r}")
    return number


def _sensor_from_row(row: dict, address: Address) -> SensorState:
    min_value = _row_float(row, "min_value")
    max_value = _row_float(row, "max_value")

    raw_config = row.get("pattern_config")
    if raw_config and not isinstance(raw_config, dict):
        raise ValueError(f"pattern_config must be an object, got {type(raw_config).__name__}")
    if raw_config:
        config = WaveformConfig.from_dict(raw_config)
    else:
        config = WaveformConfig.default_for_range(min_value, max_value)

    # PostgREST embeds a to-one relation as an object, some views as a list
    module = row.get("plc_modules") or {}
    if isinstance(module, list):
        module = module[0] if module else {}
    if not isinstance(module, dict):
        raise ValueError(f"plc_modules must be an object, got {type(module).__name__}")

    pattern = row.get("data_pattern") or "sine"
    if not isinstance(pattern, str):
        raise ValueError(f"data_pattern must be a string, got {pattern!r}")

    return SensorState(
        address=address,
        name=str(row.get("name") or address.symbol),
        waveform_kind=WaveformKind.parse(pattern),
        waveform_config=config,
        min_value=min_value,
        max_value=max_value,
        sensor_type=str(row.get("sensor_type") or "generic"),
        unit=str(row.get("unit") or ""),
        module_name=str(module.get("name") or f"Module{address.module_index}"),
        external_id=row.get("id"),
    )
