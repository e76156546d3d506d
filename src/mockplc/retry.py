# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Bounded retry across a list of candidates."""

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

C = TypeVar("C")
R = TypeVar("R")


class RetryExhausted(Exception):
    """Every attempt on every candidate failed."""

    def __init__(self, message: str, errors: list[tuple[object, BaseException]]):
        super().__init__(message)
        self.errors = errors


async def retry_candidates(
    operation: Callable[[C], Awaitable[R]],
    candidates: Sequence[C],
    max_attempts: int = 3,
    delay: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (OSError,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[C, R]:
    """Run ``operation`` on each candidate in order until one succeeds.

    One attempt tries every candidate; attempts are separated by ``delay``
    seconds.

    Returns:
        (candidate, result) of the first success.

    Raises:
        RetryExhausted: after ``max_attempts`` full passes fail.
        ValueError: if there are no candidates or max_attempts < 1.
    """
    if not candidates:
        raise ValueError("No candidates to try")
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    errors: list[tuple[object, BaseException]] = []
    for attempt in range(1, max_attempts + 1):
        for candidate in candidates:
            try:
                return candidate, await operation(candidate)
            except retry_on as e:
                errors.append((candidate, e))
                logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed for {candidate}: {e}"
                )
        if attempt < max_attempts:
            logger.info(f"Retrying in {delay}s")
            await sleep(delay)

    raise RetryExhausted(
        f"All {max_attempts} attempts failed for {list(candidates)}", errors
    )
