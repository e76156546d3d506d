# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for the sensor registry (registry.py)."""
from __future__ import annotations

import pytest

from mockplc.patterns import evaluate
from mockplc.registry import SensorRegistry
from mockplc.state import Address, WaveformKind


def _row(row_id, module_id, name, pattern="sine", **extra):
    return {
        "id": row_id,
        "module_id": module_id,
        "name": name,
        "sensor_type": "temperature",
        "unit": "C",
        "data_pattern": pattern,
        "plc_modules": {"name": f"Module {module_id}", "status": "online"},
        **extra,
    }


# ============================================================================
# Build from topology
# ============================================================================

class TestBuild:
    """Tests for SensorRegistry.build()."""

    def test_dense_address_space(self, registry):
        """Five modules of three sensors give exactly 15 addresses."""
        addresses = registry.addresses()
        assert len(registry) == 15
        assert registry.module_count == 5
        assert addresses == [Address(m, s) for m in range(1, 6) for s in range(1, 4)]

    def test_out_of_range_lookups(self, registry):
        assert registry.lookup(Address(6, 1)) is None
        assert registry.lookup(Address(1, 4)) is None
        assert registry.lookup(Address(0, 1)) is None
        assert registry.lookup(Address(1, 0)) is None
        assert Address(5, 3) in registry
        assert Address(6, 1) not in registry

    def test_symbols_and_names(self, registry):
        sensor = registry.lookup(Address(3, 2))
        assert sensor.address.symbol == "Module3_Sensor2"
        assert sensor.name == "Pressure Sensor"
        assert sensor.module_name == "Production Line 3"
        assert sensor.unit == "bar"

    def test_initial_values(self, registry, clock):
        """Initial values are the clamped waveform sample at build time."""
        temperature = registry.lookup(Address(1, 1))
        expected = evaluate(
            WaveformKind.SINE, temperature.waveform_config, clock(), 20.0, 80.0
        )
        assert temperature.current_value == pytest.approx(expected)
        assert temperature.last_updated == clock()

    def test_initial_values_within_bounds(self, registry):
        for sensor in registry:
            assert sensor.min_value <= sensor.current_value <= sensor.max_value

    def test_iteration_order(self, registry):
        addresses = [sensor.address for sensor in registry]
        assert addresses == sorted(addresses)

    def test_rejects_incomplete_module(self, registry):
        """The constructor enforces three sensors per module."""
        sensors = [registry.lookup(Address(1, s)) for s in (1, 2)]
        with pytest.raises(ValueError):
            SensorRegistry([sensors])


# ============================================================================
# Writes
# ============================================================================

class TestWrite:
    """Tests for SensorRegistry.write()."""

    def test_write_stores_raw_value(self, registry):
        """Writes are not clamped to the sensor range."""
        assert registry.write(Address(1, 1), 500.0, timestamp=42.0) is True
        sensor = registry.lookup(Address(1, 1))
        assert sensor.current_value == 500.0
        assert sensor.last_updated == 42.0

    def test_write_unknown_address(self, registry):
        assert registry.write(Address(9, 1), 1.0) is False


# ============================================================================
# Build from datastore rows
# ============================================================================

class TestFromRows:
    """Tests for SensorRegistry.from_rows()."""

    def test_groups_rows_by_module(self, clock):
        rows = [
            _row(1, "a", "T1", min_value=0, max_value=100),
            _row(2, "a", "P1", "noise"),
            _row(3, "a", "V1", "square", pattern_config={"amplitude": 5, "dc_offset": 5}),
            _row(4, "b", "T2"),
            _row(5, "b", "P2"),
            _row(6, "b", "V2"),
        ]
        registry = SensorRegistry.from_rows(rows, clock())
        assert registry is not None
        assert registry.module_count == 2
        assert len(registry) == 6

        sensor = registry.lookup(Address(1, 3))
        assert sensor.name == "V1"
        assert sensor.external_id == 3
        assert sensor.waveform_kind is WaveformKind.SQUARE
        assert sensor.waveform_config.amplitude == 5
        assert sensor.module_name == "Module a"

        assert registry.lookup(Address(1, 2)).waveform_kind is WaveformKind.NOISY_SINE
        assert registry.lookup(Address(2, 1)).external_id == 4

    def test_derived_waveform_for_rows(self, clock):
        rows = [_row(i, "a", f"S{i}", min_value=0, max_value=10) for i in range(3)]
        sensor = SensorRegistry.from_rows(rows, clock()).lookup(Address(1, 1))
        assert sensor.waveform_config.amplitude == pytest.approx(3.0)
        assert sensor.waveform_config.dc_offset == pytest.approx(5.0)

    def test_incomplete_module_rejected(self, clock):
        rows = [_row(1, "a", "T1"), _row(2, "a", "P1")]
        assert SensorRegistry.from_rows(rows, clock()) is None

    def test_invalid_row_rejected(self, clock):
        rows = [_row(1, "a", "T1"), _row(2, "a", "P1", "triangle"), _row(3, "a", "V1")]
        assert SensorRegistry.from_rows(rows, clock()) is None

    def test_no_rows(self, clock):
        assert SensorRegistry.from_rows([], clock()) is None

    def test_non_object_row_rejected(self, clock):
        assert SensorRegistry.from_rows(["x"], clock()) is None

    def test_unhashable_module_id_rejected(self, clock):
        rows = [_row(i, ["a"], f"S{i}") for i in range(3)]
        assert SensorRegistry.from_rows(rows, clock()) is None

    def test_non_object_module_embed_rejected(self, clock):
        rows = [_row(i, "a", f"S{i}", plc_modules="Line A") for i in range(3)]
        assert SensorRegistry.from_rows(rows, clock()) is None

    def test_module_embed_as_list(self, clock):
        rows = [_row(i, "a", f"S{i}", plc_modules=[{"name": "Line A"}]) for i in range(3)]
        registry = SensorRegistry.from_rows(rows, clock())
        assert registry.lookup(Address(1, 1)).module_name == "Line A"

    def test_non_object_pattern_config_rejected(self, clock):
        rows = [_row(i, "a", f"S{i}", pattern_config=[1, 2]) for i in range(3)]
        assert SensorRegistry.from_rows(rows, clock()) is None

    @pytest.mark.parametrize("value", [10 ** 400, float("inf"), True])
    def test_bad_range_rejected(self, clock, value):
        rows = [_row(0, "a", "S0", max_value=value), _row(1, "a", "S1"), _row(2, "a", "S2")]
        assert SensorRegistry.from_rows(rows, clock()) is None
