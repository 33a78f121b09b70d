"""
tests/test_utils/test_throttle.py — Tests for the minimum-interval request throttle.
"""

from __future__ import annotations

import asyncio

import pytest

from macrolens_pipeline.utils.throttle import RequestThrottle


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestRequestThrottle:
    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self):
        clock = FakeClock()
        throttle = RequestThrottle(1.5, sleep=clock.sleep, now=clock)
        await throttle.wait()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_back_to_back_requests_are_spaced(self):
        clock = FakeClock()
        throttle = RequestThrottle(1.5, sleep=clock.sleep, now=clock)
        await throttle.wait()
        clock.now += 0.5
        await throttle.wait()
        assert clock.sleeps == [pytest.approx(1.0)]

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_elapsed(self):
        clock = FakeClock()
        throttle = RequestThrottle(1.5, sleep=clock.sleep, now=clock)
        await throttle.wait()
        clock.now += 2.0
        await throttle.wait()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrent_waiters_are_serialized(self):
        clock = FakeClock()
        throttle = RequestThrottle(1.0, sleep=clock.sleep, now=clock)
        await asyncio.gather(*(throttle.wait() for _ in range(3)))
        assert clock.sleeps == [pytest.approx(1.0), pytest.approx(1.0)]

    @pytest.mark.asyncio
    async def test_context_manager(self):
        clock = FakeClock()
        throttle = RequestThrottle(2.0, sleep=clock.sleep, now=clock)
        async with throttle:
            pass
        async with throttle:
            pass
        assert clock.sleeps == [pytest.approx(2.0)]

    def test_negative_interval_clamped(self):
        assert RequestThrottle(-1.0).min_interval == 0.0
