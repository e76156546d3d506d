# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Waveform value generator.

All functions here are pure apart from the noise source of the noisy-sine
waveform, which is passed in so tests can use a seeded ``random.Random``.
Timestamps are in milliseconds.
"""

import math
import random
import struct
from typing import Optional, Protocol

from .const import VALUE_FORMAT
from .state import WaveformConfig, WaveformKind

# Noise is uniform in [-NOISE_FRACTION * amplitude, +NOISE_FRACTION * amplitude]
NOISE_FRACTION = 0.1

_default_rng = random.Random()


class UniformSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


def _phase(config: WaveformConfig, t: float) -> float:
    return config.frequency * t + config.phase_offset


def sine(config: WaveformConfig, t: float) -> float:
    return config.dc_offset + config.amplitude * math.sin(_phase(config, t))


def noisy_sine(
    config: WaveformConfig, t: float, rng: Optional[UniformSource] = None
) -> float:
    rng = rng or _default_rng
    spread = abs(config.amplitude) * NOISE_FRACTION
    return sine(config, t) + rng.uniform(-spread, spread)


def square(config: WaveformConfig, t: float) -> float:
    """Symmetric square wave: dc + amplitude on the positive half, else dc - amplitude."""
    if math.sin(_phase(config, t)) > 0:
        return config.dc_offset + config.amplitude
    return config.dc_offset - config.amplitude


def clamp(
    value: float, min_value: Optional[float], max_value: Optional[float]
) -> float:
    """Clamp to [min_value, max_value] when both bounds are set."""
    if min_value is None or max_value is None:
        return value
    return max(min_value, min(max_value, value))


def evaluate(
    kind: WaveformKind,
    config: WaveformConfig,
    t: float,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    rng: Optional[UniformSource] = None,
) -> float:
    """Compute a waveform sample at time ``t`` (ms) and clamp it.

    Args:
        kind: Waveform kind
        config: Waveform parameters
        t: Timestamp in milliseconds
        min_value: Lower bound (only applied together with max_value)
        max_value: Upper bound (only applied together with min_value)
        rng: Noise source for the noisy-sine waveform

    Returns:
        The sampled value.
    """
    if kind is WaveformKind.SINE:
        raw = sine(config, t)
    elif kind is WaveformKind.NOISY_SINE:
        raw = noisy_sine(config, t, rng)
    elif kind is WaveformKind.SQUARE:
        raw = square(config, t)
    else:
        raise ValueError(f"Unknown waveform kind: {kind!r}")
    return clamp(raw, min_value, max_value)


def encode_value(value: float) -> bytes:
    """Encode a value as a 4-byte little-endian float32."""
    return struct.pack(VALUE_FORMAT, value)


def decode_value(data: bytes) -> float:
    """Decode the first 4 bytes of ``data`` as a little-endian float32."""
    return struct.unpack_from(VALUE_FORMAT, data)[0]
