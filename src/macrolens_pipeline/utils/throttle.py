"""
utils/throttle.py — Minimum-interval request throttle shared across tasks.

Some providers (TradingEconomics in particular) rate-limit aggressively
per API key. One RequestThrottle per provider spaces out request starts
across every concurrent resolution in the process.

Usage:
    throttle = RequestThrottle(min_interval=1.5)
    async with throttle:
        response = await client.get(url)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class RequestThrottle:
    """Guarantees at least `min_interval` seconds between request starts."""

    def __init__(
        self,
        min_interval: float,
        *,
        name: str = "default",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = max(min_interval, 0.0)
        self._name = name
        self._sleep = sleep
        self._now = now
        self._next_allowed = 0.0
        self._lock = asyncio.Lock()

    @property
    def min_interval(self) -> float:
        return self._interval

    async def wait(self) -> None:
        async with self._lock:
            current = self._now()
            if self._next_allowed > current:
                delay = self._next_allowed - current
                log.debug("throttle_wait", throttle=self._name, delay_s=round(delay, 3))
                await self._sleep(delay)
            self._next_allowed = self._now() + self._interval

    async def __aenter__(self) -> "RequestThrottle":
        await self.wait()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None
