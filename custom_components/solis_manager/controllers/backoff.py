"""Retry with increasing delays until a write is confirmed."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import dataclasses
import logging

from ..const import BACKOFF_DELAYS_MS

_LOGGER = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclasses.dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Ordered wait before each confirmation check; one attempt per delay."""

    delays_ms: tuple[int, ...] = BACKOFF_DELAYS_MS

    @property
    def max_attempts(self) -> int:
        return len(self.delays_ms)

    def delay_seconds(self, attempt: int) -> float:
        return self.delays_ms[attempt] / 1000


async def attempt_until_confirmed(
    attempt: Callable[[], Awaitable[None]],
    confirm: Callable[[], Awaitable[bool]],
    policy: BackoffPolicy,
    *,
    sleep: SleepFn = asyncio.sleep,
    retry_on: tuple[type[Exception], ...] = (),
    description: str = "request",
) -> bool:
    """Run attempt, wait, then confirm; repeat until confirmed or exhausted.

    Exceptions listed in `retry_on` count as a failed attempt. Cancellation
    propagates out of the wait immediately.
    """
    for index in range(policy.max_attempts):
        try:
            await attempt()
            await sleep(policy.delay_seconds(index))
            if await confirm():
                if index > 0:
                    _LOGGER.info("%s succeeded on retry %d", description, index)
                return True
        except retry_on as err:
            _LOGGER.warning("%s failed (attempt %d): %s", description, index, err)
            continue

        _LOGGER.warning("%s did not stick (attempt %d)", description, index)

    _LOGGER.warning(
        "%s abandoned after %d attempts", description, policy.max_attempts
    )
    return False
