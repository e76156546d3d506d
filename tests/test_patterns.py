# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for waveform generation and value encoding (patterns.py)."""
from __future__ import annotations

import math
import random
import struct

import pytest

from mockplc.patterns import (
    NOISE_FRACTION,
    clamp,
    decode_value,
    encode_value,
    evaluate,
    noisy_sine,
    sine,
    square,
)
from mockplc.state import WaveformConfig, WaveformKind


class FixedUniform:
    """Noise source that always returns one end of the range."""

    def __init__(self, upper: bool = True):
        self.upper = upper

    def uniform(self, a: float, b: float) -> float:
        return b if self.upper else a


@pytest.fixture
def config():
    return WaveformConfig(amplitude=30, frequency=0.001, phase_offset=0, dc_offset=50)


# ============================================================================
# Sine
# ============================================================================

class TestSine:
    """Tests for the sine waveform."""

    def test_dc_offset_at_zero(self, config):
        """A zero-phase sine starts at its DC offset."""
        assert evaluate(WaveformKind.SINE, config, 0) == 50.0

    def test_peak(self, config):
        """At a quarter period the value is dc + amplitude."""
        t = (math.pi / 2) / config.frequency
        assert sine(config, t) == pytest.approx(80.0)

    def test_trough(self, config):
        """At three quarters of a period the value is dc - amplitude."""
        t = (3 * math.pi / 2) / config.frequency
        assert sine(config, t) == pytest.approx(20.0)

    def test_phase_offset(self):
        """phase_offset shifts the wave."""
        shifted = WaveformConfig(amplitude=10, frequency=0.001, phase_offset=math.pi / 2, dc_offset=0)
        assert sine(shifted, 0) == pytest.approx(10.0)


# ============================================================================
# Square
# ============================================================================

class TestSquare:
    """Tests for the symmetric square waveform."""

    def test_positive_half(self, config):
        """Where sin(phase) > 0 the value is dc + amplitude."""
        assert square(config, 100) == 80.0

    def test_negative_half(self, config):
        """Where sin(phase) < 0 the value is dc - amplitude."""
        # sin(4.0) < 0
        assert square(config, 4000) == 20.0

    def test_zero_crossing_is_low(self, config):
        """sin(phase) == 0 is not positive, so the low level is used."""
        assert square(config, 0) == 20.0

    def test_only_two_levels(self, config):
        """The square wave never produces anything but dc +/- amplitude."""
        values = {square(config, t) for t in range(0, 20000, 37)}
        assert values == {80.0, 20.0}


# ============================================================================
# Noisy sine
# ============================================================================

class TestNoisySine:
    """Tests for the noisy sine waveform."""

    def test_noise_bounded(self, config):
        """Noise stays within +/- NOISE_FRACTION * amplitude of the sine."""
        rng = random.Random(7)
        spread = config.amplitude * NOISE_FRACTION
        for t in range(0, 10000, 13):
            value = noisy_sine(config, t, rng)
            assert abs(value - sine(config, t)) <= spread + 1e-9

    def test_uses_rng(self, config):
        """The injected source decides the noise."""
        assert noisy_sine(config, 0, FixedUniform(upper=True)) == pytest.approx(53.0)
        assert noisy_sine(config, 0, FixedUniform(upper=False)) == pytest.approx(47.0)

    def test_seeded_rng_is_deterministic(self, config):
        """The same seed yields the same samples."""
        a = [noisy_sine(config, t, random.Random(3)) for t in (0, 10, 20)]
        b = [noisy_sine(config, t, random.Random(3)) for t in (0, 10, 20)]
        assert a == b


# ============================================================================
# Clamping and dispatch
# ============================================================================

class TestEvaluate:
    """Tests for evaluate() and clamp()."""

    def test_clamps_to_range(self):
        """Values beyond the bounds are clamped."""
        wide = WaveformConfig(amplitude=100, frequency=0.001, phase_offset=0, dc_offset=50)
        peak = (math.pi / 2) / wide.frequency
        trough = (3 * math.pi / 2) / wide.frequency
        assert evaluate(WaveformKind.SINE, wide, peak, 0, 80) == 80
        assert evaluate(WaveformKind.SINE, wide, trough, 0, 80) == 0

    def test_no_clamp_without_both_bounds(self):
        """A single bound is ignored."""
        assert clamp(150.0, None, 100.0) == 150.0
        assert clamp(-5.0, 0.0, None) == -5.0
        assert clamp(150.0, 0.0, 100.0) == 100.0

    def test_square_clamped(self, config):
        """Clamping also applies to the square wave."""
        assert evaluate(WaveformKind.SQUARE, config, 100, 0, 60) == 60

    def test_noisy_sine_dispatch(self, config):
        """evaluate() routes noisy-sine through the noise source."""
        value = evaluate(WaveformKind.NOISY_SINE, config, 0, rng=FixedUniform())
        assert value == pytest.approx(53.0)

    def test_parse_noise_alias(self):
        """'noise' is accepted as noisy-sine."""
        assert WaveformKind.parse("noise") is WaveformKind.NOISY_SINE
        assert WaveformKind.parse("Square") is WaveformKind.SQUARE
        with pytest.raises(ValueError):
            WaveformKind.parse("triangle")


# ============================================================================
# Value encoding
# ============================================================================

class TestValueEncoding:
    """Tests for the 4-byte float32 wire encoding."""

    def test_encode_little_endian_float32(self):
        assert encode_value(100.0) == b"\x00\x00\xc8\x42"
        assert len(encode_value(12.5)) == 4

    def test_decode(self):
        assert decode_value(b"\x00\x00\xc8\x42") == 100.0

    def test_decode_ignores_trailing_bytes(self):
        """Only the first four bytes are read."""
        assert decode_value(struct.pack("<f", 2.5) + b"\xff\xff") == 2.5

    def test_decode_short_payload_raises(self):
        with pytest.raises(struct.error):
            decode_value(b"\x00\x00")

    def test_float32_precision(self):
        """Values are narrowed to float32 on the wire."""
        assert decode_value(encode_value(0.1)) == pytest.approx(0.1, rel=1e-6)
        assert decode_value(encode_value(0.1)) != 0.1
