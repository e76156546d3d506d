# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Topology configuration loading.

The topology file is JSON in one of two shapes:

    {"moduleCount": 5, "updateIntervalMs": 5000, "templates": [...]}

or the legacy ``plc-config.json`` layout:

    {"plc_server": {"update_interval": 5000,
                    "modules": {"count": 5, "templates": [...]}}}

Any failure to read or validate the file falls back to the built-in default
topology; ConfigStore.load() never raises.
"""

import json
import logging
import math
from pathlib import Path
from typing import Optional, Union

from .const import DEFAULT_UPDATE_INTERVAL_MS, SENSORS_PER_MODULE
from .state import (
    ModuleTemplate,
    SensorTemplate,
    Topology,
    WaveformConfig,
    WaveformKind,
)

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a topology document is missing fields or inconsistent."""


def default_topology() -> Topology:
    """Built-in topology: five production lines with three sensors each."""
    return Topology(
        name="Beltway PLC Server",
        module_count=5,
        update_interval_ms=DEFAULT_UPDATE_INTERVAL_MS,
        templates=(
            ModuleTemplate(
                name_pattern="Production Line {index}",
                module_type="production",
                status="online",
                sensors=(
                    SensorTemplate(
                        name="Temperature Sensor",
                        type="temperature",
                        unit="°C",
                        min_value=20.0,
                        max_value=80.0,
                        waveform_kind=WaveformKind.SINE,
                        waveform_config=WaveformConfig(30.0, 0.001, 0.0, 50.0),
                    ),
                    SensorTemplate(
                        name="Pressure Sensor",
                        type="pressure",
                        unit="bar",
                        min_value=0.0,
                        max_value=10.0,
                        waveform_kind=WaveformKind.NOISY_SINE,
                        waveform_config=WaveformConfig(5.0, 0.002, 1.57, 5.0),
                    ),
                    SensorTemplate(
                        name="Vibration Monitor",
                        type="vibration",
                        unit="Hz",
                        min_value=0.0,
                        max_value=50.0,
                        waveform_kind=WaveformKind.SQUARE,
                        waveform_config=WaveformConfig(25.0, 0.003, 3.14, 25.0),
                    ),
                ),
            ),
        ),
    )


def _get(data: dict, *keys, default=None):
    for key in keys:
        if key in data:
            return data[key]
    return default


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{value!r} is not a finite number")
    return number


def _whole_number(value, field: str) -> int:
    """Coerce a count or interval; floats must be finite and integral."""
    if isinstance(value, bool):
        raise ConfigError(f"{field} must be an integer, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ConfigError(f"{field} must be an integer, got {value!r}")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{field} must be an integer, got {value!r}")


def parse_sensor_template(data: dict) -> SensorTemplate:
    """Parse one sensor template (camelCase or snake_case keys)."""
    if not isinstance(data, dict):
        raise ConfigError(f"Sensor template must be an object, got {type(data).__name__}")
    name = _get(data, "name")
    if not name:
        raise ConfigError("Sensor template is missing 'name'")

    kind_name = _get(data, "waveformKind", "waveform_kind", "data_pattern", "pattern",
                     default="sine")
    try:
        kind = WaveformKind.parse(kind_name)
    except ValueError:
        raise ConfigError(f"Sensor '{name}' has unknown waveform kind '{kind_name}'")

    raw_config = _get(data, "waveformConfig", "waveform_config", "pattern_config")
    if raw_config is not None and not isinstance(raw_config, dict):
        raise ConfigError(f"Sensor '{name}' waveform config must be an object")

    try:
        min_value = _optional_float(_get(data, "minValue", "min_value"))
        max_value = _optional_float(_get(data, "maxValue", "max_value"))
        waveform = WaveformConfig.from_dict(raw_config) if raw_config else None
    except (TypeError, ValueError, ArithmeticError) as e:
        raise ConfigError(f"Sensor '{name}' has a non-numeric field: {e}")

    if min_value is not None and max_value is not None and min_value > max_value:
        raise ConfigError(f"Sensor '{name}' has minValue > maxValue")

    return SensorTemplate(
        name=str(name),
        type=str(_get(data, "type", "sensor_type", default="generic")),
        unit=str(_get(data, "unit", default="")),
        min_value=min_value,
        max_value=max_value,
        waveform_kind=kind,
        waveform_config=waveform,
        status=str(_get(data, "status", default="online")),
    )


def parse_module_template(data: dict) -> ModuleTemplate:
    """Parse one module template."""
    if not isinstance(data, dict):
        raise ConfigError(f"Module template must be an object, got {type(data).__name__}")
    name_pattern = _get(data, "namePattern", "name_pattern", "name")
    if not name_pattern:
        raise ConfigError("Module template is missing 'namePattern'")

    sensors = _get(data, "sensors", default=[])
    if not isinstance(sensors, list) or len(sensors) != SENSORS_PER_MODULE:
        count = len(sensors) if isinstance(sensors, list) else "no"
        raise ConfigError(
            f"Module template '{name_pattern}' has {count} sensors, "
            f"expected exactly {SENSORS_PER_MODULE}"
        )

    return ModuleTemplate(
        name_pattern=str(name_pattern),
        module_type=str(_get(data, "type", "moduleType", "module_type", default="production")),
        status=str(_get(data, "status", "moduleStatus", default="online")),
        sensors=tuple(parse_sensor_template(s) for s in sensors),
    )


def parse_topology(document: dict) -> Topology:
    """Build a Topology from a parsed JSON document.

    Raises:
        ConfigError: if the document is malformed.
    """
    if not isinstance(document, dict):
        raise ConfigError("Topology document must be a JSON object")

    if "plc_server" in document:
        server = document["plc_server"] or {}
        if not isinstance(server, dict):
            raise ConfigError("plc_server must be an object")
        modules = server.get("modules") or {}
        if not isinstance(modules, dict):
            raise ConfigError("plc_server.modules must be an object")
        name = server.get("name", "Mock PLC Server")
        module_count = modules.get("count")
        interval = server.get("update_interval", DEFAULT_UPDATE_INTERVAL_MS)
        templates = modules.get("templates")
    else:
        name = document.get("name", "Mock PLC Server")
        module_count = document.get("moduleCount")
        interval = document.get("updateIntervalMs", DEFAULT_UPDATE_INTERVAL_MS)
        templates = document.get("templates")

    if module_count is None:
        raise ConfigError("Topology is missing the module count")
    if not isinstance(templates, list) or not templates:
        raise ConfigError("Topology must define at least one module template")

    try:
        return Topology(
            name=str(name),
            module_count=_whole_number(module_count, "module count"),
            update_interval_ms=_whole_number(interval, "update interval"),
            templates=tuple(parse_module_template(t) for t in templates),
        )
    except (TypeError, ValueError, ArithmeticError) as e:
        raise ConfigError(str(e))


class ConfigStore:
    """Loads the topology description, caching the first successful load.

    Example:
        store = ConfigStore("plc-config.json")
        topology = store.load()
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self._topology: Optional[Topology] = None

    @property
    def loaded(self) -> bool:
        """Whether a topology file was loaded successfully."""
        return self._topology is not None

    def load(self) -> Topology:
        """Load the topology, falling back to the default on any failure."""
        if self._topology is not None:
            return self._topology

        if self.path is None:
            logger.info("No topology file configured, using default topology")
            return default_topology()

        try:
            logger.info(f"Loading topology from {self.path}")
            with self.path.open("r", encoding="utf-8") as f:
                document = json.load(f)
            topology = parse_topology(document)
        except (
            OSError, ValueError, TypeError, AttributeError, ArithmeticError,
            RecursionError, ConfigError,
        ) as e:
            logger.warning(f"Failed to load topology from {self.path}: {e}")
            logger.warning("Falling back to default topology")
            return default_topology()

        logger.info(
            f"Loaded topology '{topology.name}': {topology.module_count} modules, "
            f"{len(topology.templates)} templates, "
            f"update interval {topology.update_interval_ms}ms"
        )
        self._topology = topology
        return topology
