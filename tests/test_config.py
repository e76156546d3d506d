# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for topology loading (config.py)."""
from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from mockplc.config import (
    ConfigError,
    ConfigStore,
    default_topology,
    parse_module_template,
    parse_sensor_template,
    parse_topology,
)
from mockplc.state import WaveformConfig, WaveformKind

REPO_CONFIG = Path(__file__).resolve().parent.parent / "plc-config.json"


def _sensor(name, pattern="sine", **extra):
    return {"name": name, "type": "generic", "unit": "u", "waveformKind": pattern, **extra}


def _module(pattern="Line {index}", sensors=None):
    if sensors is None:
        sensors = [_sensor("A"), _sensor("B", "noisy-sine"), _sensor("C", "square")]
    return {"namePattern": pattern, "status": "online", "sensors": sensors}


def _write(tmp_path, document) -> Path:
    path = tmp_path / "plc-config.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


# ============================================================================
# Default topology
# ============================================================================

class TestDefaultTopology:
    """Tests for the built-in topology."""

    def test_shape(self):
        topology = default_topology()
        assert topology.name == "Beltway PLC Server"
        assert topology.module_count == 5
        assert topology.update_interval_ms == 5000
        assert len(topology.templates) == 1

    def test_sensors(self):
        sensors = default_topology().templates[0].sensors
        assert [s.name for s in sensors] == [
            "Temperature Sensor",
            "Pressure Sensor",
            "Vibration Monitor",
        ]
        assert [s.waveform_kind for s in sensors] == [
            WaveformKind.SINE,
            WaveformKind.NOISY_SINE,
            WaveformKind.SQUARE,
        ]
        assert sensors[0].waveform_config == WaveformConfig(30, 0.001, 0, 50)
        assert (sensors[0].min_value, sensors[0].max_value) == (20, 80)

    def test_module_names(self):
        template = default_topology().templates[0]
        assert template.module_name(3) == "Production Line 3"


# ============================================================================
# ConfigStore
# ============================================================================

class TestConfigStore:
    """Tests for ConfigStore.load()."""

    def test_no_path_uses_default(self):
        store = ConfigStore()
        assert store.load() == default_topology()
        assert store.loaded is False

    def test_missing_file_falls_back(self, tmp_path, caplog):
        """A missing file is logged and the default returned."""
        store = ConfigStore(tmp_path / "nope.json")
        with caplog.at_level(logging.WARNING):
            topology = store.load()
        assert topology == default_topology()
        assert store.loaded is False
        assert "Failed to load topology" in caplog.text

    def test_invalid_json_falls_back(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        assert ConfigStore(path).load() == default_topology()

    def test_invalid_document_falls_back(self, tmp_path):
        """A template without three sensors is rejected."""
        path = _write(tmp_path, {"moduleCount": 2, "templates": [_module(sensors=[_sensor("A")])]})
        store = ConfigStore(path)
        assert store.load() == default_topology()
        assert store.loaded is False

    def test_zero_modules_falls_back(self, tmp_path):
        path = _write(tmp_path, {"moduleCount": 0, "templates": [_module()]})
        assert ConfigStore(path).load() == default_topology()

    def test_overflowing_module_count_falls_back(self, tmp_path):
        path = tmp_path / "plc-config.json"
        template = json.dumps(_module())
        path.write_text(f'{{"moduleCount": 1e999, "templates": [{template}]}}', encoding="utf-8")
        store = ConfigStore(path)
        assert store.load() == default_topology()
        assert store.loaded is False

    def test_overflowing_sensor_range_falls_back(self, tmp_path):
        sensors = [_sensor("A", minValue=10 ** 400), _sensor("B"), _sensor("C")]
        path = _write(tmp_path, {"moduleCount": 1, "templates": [_module(sensors=sensors)]})
        assert ConfigStore(path).load() == default_topology()

    def test_non_object_plc_server_falls_back(self, tmp_path):
        path = _write(tmp_path, {"plc_server": [1, 2]})
        assert ConfigStore(path).load() == default_topology()

    def test_loads_camel_case_document(self, tmp_path):
        path = _write(tmp_path, {
            "name": "Test PLC",
            "moduleCount": 2,
            "updateIntervalMs": 250,
            "templates": [_module()],
        })
        store = ConfigStore(path)
        topology = store.load()
        assert store.loaded is True
        assert topology.name == "Test PLC"
        assert topology.module_count == 2
        assert topology.update_interval_ms == 250
        assert topology.templates[0].sensors[1].waveform_kind is WaveformKind.NOISY_SINE

    def test_load_is_cached(self, tmp_path):
        """Once loaded, the file is not read again."""
        path = _write(tmp_path, {"moduleCount": 2, "templates": [_module()]})
        store = ConfigStore(path)
        first = store.load()
        path.unlink()
        assert store.load() is first

    def test_failed_load_is_retried(self, tmp_path):
        """A failure is not cached; a later call reads the file again."""
        path = tmp_path / "plc-config.json"
        store = ConfigStore(path)
        assert store.load() == default_topology()

        _write(tmp_path, {"moduleCount": 3, "templates": [_module()]})
        assert store.load().module_count == 3
        assert store.loaded is True

    def test_repository_config(self):
        """The bundled plc-config.json matches the built-in topology."""
        topology = ConfigStore(REPO_CONFIG).load()
        default = default_topology()
        assert topology.module_count == default.module_count
        assert topology.update_interval_ms == default.update_interval_ms
        assert topology.templates[0].sensors == default.templates[0].sensors


# ============================================================================
# Parsers
# ============================================================================

class TestParsers:
    """Tests for the document parsers."""

    def test_plc_server_shape(self):
        topology = parse_topology({
            "plc_server": {
                "name": "Legacy",
                "update_interval": 1000,
                "modules": {
                    "count": 4,
                    "templates": [{
                        "name": "Cell {index}",
                        "sensors": [
                            {"name": "T", "data_pattern": "sine", "min_value": 0, "max_value": 10},
                            {"name": "P", "data_pattern": "noise"},
                            {"name": "V", "data_pattern": "square",
                             "pattern_config": {"amplitude": 2, "dc_offset": 3}},
                        ],
                    }],
                },
            }
        })
        assert topology.name == "Legacy"
        assert topology.module_count == 4
        assert topology.update_interval_ms == 1000
        sensors = topology.templates[0].sensors
        assert sensors[1].waveform_kind is WaveformKind.NOISY_SINE
        assert sensors[2].waveform_config.amplitude == 2
        assert sensors[2].waveform_config.dc_offset == 3

    def test_templates_cycle(self):
        """Modules past the template list reuse templates in order."""
        topology = parse_topology({
            "moduleCount": 5,
            "templates": [_module("Even {index}"), _module("Odd {index}")],
        })
        assert topology.template_for(1).name_pattern == "Even {index}"
        assert topology.template_for(2).name_pattern == "Odd {index}"
        assert topology.template_for(3).name_pattern == "Even {index}"

    def test_missing_module_count(self):
        with pytest.raises(ConfigError):
            parse_topology({"templates": [_module()]})

    def test_no_templates(self):
        with pytest.raises(ConfigError):
            parse_topology({"moduleCount": 1, "templates": []})

    @pytest.mark.parametrize("count", [float("inf"), float("nan"), 2.5, True, "two"])
    def test_module_count_must_be_whole(self, count):
        with pytest.raises(ConfigError):
            parse_topology({"moduleCount": count, "templates": [_module()]})

    def test_integral_float_module_count(self):
        assert parse_topology({"moduleCount": 3.0, "templates": [_module()]}).module_count == 3

    def test_infinite_update_interval(self):
        with pytest.raises(ConfigError):
            parse_topology({
                "moduleCount": 1,
                "updateIntervalMs": float("inf"),
                "templates": [_module()],
            })

    def test_unknown_waveform(self):
        with pytest.raises(ConfigError, match="unknown waveform"):
            parse_sensor_template(_sensor("X", "triangle"))

    def test_sensor_needs_name(self):
        with pytest.raises(ConfigError):
            parse_sensor_template({"waveformKind": "sine"})

    def test_min_above_max(self):
        with pytest.raises(ConfigError):
            parse_sensor_template(_sensor("X", minValue=10, maxValue=0))

    def test_module_needs_three_sensors(self):
        with pytest.raises(ConfigError, match="expected exactly 3"):
            parse_module_template(_module(sensors=[_sensor("A"), _sensor("B")]))

    def test_derived_waveform_default(self):
        """A sensor without a waveform config gets one derived from its range."""
        template = parse_sensor_template(_sensor("X", minValue=0, maxValue=10))
        assert template.waveform_config is None
        waveform = template.resolved_waveform()
        assert waveform.amplitude == pytest.approx(3.0)
        assert waveform.frequency == 0.001
        assert waveform.phase_offset == 0
        assert waveform.dc_offset == pytest.approx(5.0)

    def test_derived_waveform_without_range(self):
        template = parse_sensor_template(_sensor("X"))
        assert template.resolved_waveform() == WaveformConfig(50, 0.001, 0, 50)
