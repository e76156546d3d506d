# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for bounded candidate retry (retry.py)."""
from __future__ import annotations

import pytest

from mockplc.retry import RetryExhausted, retry_candidates


class FakeSleep:
    """Records requested sleeps without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_operation(failures: dict):
    """Operation failing ``failures[candidate]`` times before succeeding."""
    attempts: list = []

    async def operation(candidate):
        attempts.append(candidate)
        remaining = failures.get(candidate, 0)
        if remaining:
            failures[candidate] = remaining - 1
            raise OSError(f"{candidate} busy")
        return f"bound {candidate}"

    return operation, attempts


class TestRetryCandidates:
    """Tests for retry_candidates()."""

    @pytest.mark.asyncio
    async def test_first_candidate_succeeds(self):
        operation, attempts = make_operation({})
        sleep = FakeSleep()
        result = await retry_candidates(operation, [1, 2, 3], sleep=sleep)
        assert result == (1, "bound 1")
        assert attempts == [1]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_falls_through_candidates(self):
        operation, attempts = make_operation({1: 99, 2: 99})
        result = await retry_candidates(operation, [1, 2, 3], sleep=FakeSleep())
        assert result == (3, "bound 3")
        assert attempts == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_retries_after_delay(self):
        """A full failed pass waits, then tries every candidate again."""
        operation, attempts = make_operation({1: 1, 2: 1})
        sleep = FakeSleep()
        result = await retry_candidates(operation, [1, 2], delay=2.0, sleep=sleep)
        assert result == (1, "bound 1")
        assert attempts == [1, 2, 1]
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        """After max_attempts passes, RetryExhausted carries every error."""
        operation, attempts = make_operation({1: 99, 2: 99})
        sleep = FakeSleep()
        with pytest.raises(RetryExhausted) as exc_info:
            await retry_candidates(operation, [1, 2], max_attempts=3, delay=0.5, sleep=sleep)
        assert len(attempts) == 6
        assert len(exc_info.value.errors) == 6
        # No sleep after the last pass
        assert sleep.delays == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        async def operation(candidate):
            raise KeyError(candidate)

        with pytest.raises(KeyError):
            await retry_candidates(operation, [1], sleep=FakeSleep())

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        operation, _ = make_operation({})
        with pytest.raises(ValueError):
            await retry_candidates(operation, [])
        with pytest.raises(ValueError):
            await retry_candidates(operation, [1], max_attempts=0)
