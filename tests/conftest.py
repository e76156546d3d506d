# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Pytest configuration and fixtures for mock PLC tests."""
from __future__ import annotations

import json
import random

import pytest

from mockplc.config import default_topology
from mockplc.dispatcher import ProtocolDispatcher
from mockplc.notifications import NotificationScheduler
from mockplc.registry import SensorRegistry

START_MS = 1_000_000.0


# ============================================================================
# Test doubles
# ============================================================================

class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: float = START_MS):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class MockTransport:
    """Mock asyncio transport that records written frames."""

    def __init__(self, peer=("127.0.0.1", 50000)):
        self.written_data: list[bytes] = []
        self._closing = False
        self._peer = peer

    def write(self, data: bytes) -> None:
        self.written_data.append(data)

    def is_closing(self) -> bool:
        return self._closing

    def close(self) -> None:
        self._closing = True

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return self._peer
        return default

    def get_written_messages(self) -> list[dict]:
        """Parse every written frame as JSON."""
        return [json.loads(data.decode("utf-8")) for data in self.written_data]

    def get_last_message(self) -> dict | None:
        messages = self.get_written_messages()
        return messages[-1] if messages else None

    def clear(self) -> None:
        self.written_data.clear()


class PushRecorder:
    """Push callback that records (target, handle, payload, timestamp)."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail_for: set = set()

    def __call__(self, target, handle: int, payload: bytes, timestamp: float):
        if handle in self.fail_for:
            raise ConnectionError("push failed")
        self.calls.append((target, handle, payload, timestamp))

    def handles(self) -> list[int]:
        return [call[1] for call in self.calls]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def topology():
    return default_topology()


@pytest.fixture
def registry(topology, clock, rng):
    """Default five-module registry built at the fake clock's time."""
    return SensorRegistry.build(topology, clock(), rng=rng)


@pytest.fixture
def pushes():
    return PushRecorder()


@pytest.fixture
def scheduler(registry, pushes, clock):
    return NotificationScheduler(registry, push=pushes, tick_interval_ms=100, clock=clock)


@pytest.fixture
def dispatcher(registry, scheduler, clock):
    return ProtocolDispatcher(registry, scheduler, clock=clock)


@pytest.fixture
def transport():
    return MockTransport()
