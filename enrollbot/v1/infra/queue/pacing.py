"""
Randomized pacing between rate-limited platform operations.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable, Sequence

from enrollbot.config.logging import get_logger

logger = get_logger(__name__)

DelayRange = Sequence[int] | int

# Typing indicator: ~40ms per character, clamped to 2-8 seconds
TYPING_MS_PER_CHAR = 40
TYPING_MIN_MS = 2000
TYPING_MAX_MS = 8000
TYPING_JITTER = 0.2


class Pacer:
    """Computes and waits out randomized delays drawn from [min_ms, max_ms] ranges."""

    def __init__(
        self,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._rng = rng or random.Random()
        self._sleep = sleep

    def interval_ms(self, delay_range: DelayRange) -> int:
        """Pick a delay in milliseconds, inclusive of both ends.

        A bare number is treated as a fixed delay.
        """
        if isinstance(delay_range, int | float):
            return max(0, int(delay_range))

        if len(delay_range) != 2:
            raise ValueError(f"Delay range must be [min_ms, max_ms], got {delay_range!r}")

        low, high = int(delay_range[0]), int(delay_range[1])
        if high < low:
            low, high = high, low
        return self._rng.randint(max(0, low), max(0, high))

    async def pause(self, delay_range: DelayRange) -> int:
        """Sleep for a randomized interval and return the interval used."""
        delay_ms = self.interval_ms(delay_range)
        logger.debug("Random delay", delay_ms=delay_ms)
        await self._sleep(delay_ms / 1000)
        return delay_ms

    def typing_duration_ms(self, message: str) -> int:
        """How long to show a typing indicator before sending message."""
        base = len(message) * TYPING_MS_PER_CHAR
        clamped = max(TYPING_MIN_MS, min(TYPING_MAX_MS, base))
        factor = 1 - TYPING_JITTER + self._rng.random() * 2 * TYPING_JITTER
        return int(clamped * factor)
