"""
pipelines/batch.py — Resolve many indicators under a concurrency cap and deadline.

The batch never aborts because one indicator failed: failed resolutions
are recorded with their error_type, and an unexpected exception in one
task is logged and recorded while the others finish.

The wall-clock budget is checked before each indicator is started. Once it
is exceeded no new resolutions start; the summary's next_index is the
first indicator that was not started, so the caller can persist it and
resume with start_index=next_index on the next run.

Usage:
    summary = await resolve_batch(list(INDICATORS.values()), SourceResolver.default())
    print(summary.error_type_counts, summary.next_index)
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date

import httpx
import structlog

from macrolens_pipeline.pipelines.resolver import ProviderAvailability, SourceResolver
from macrolens_shared.config import settings
from macrolens_shared.models.indicators import IndicatorSourceConfig
from macrolens_shared.models.resolution import ResolverResult

log = structlog.get_logger(__name__)


@dataclass
class BatchSummary:
    """Outcome of one resolve_batch call."""

    total: int
    results: dict[str, ResolverResult] = field(default_factory=dict)
    crashed: dict[str, str] = field(default_factory=dict)
    next_index: int | None = None
    duration_ms: int = 0

    @property
    def complete(self) -> bool:
        return self.next_index is None

    @property
    def succeeded(self) -> list[str]:
        return [k for k, r in self.results.items() if r.success]

    @property
    def error_type_counts(self) -> Counter[str]:
        return Counter(r.error_type for r in self.results.values() if r.error_type)

    @property
    def status(self) -> str:
        failed = len(self.results) - len(self.succeeded) + len(self.crashed)
        if failed == 0 and self.complete:
            return "success"
        if self.succeeded:
            return "partial_failure"
        return "failure"


async def resolve_batch(
    indicators: Sequence[IndicatorSourceConfig],
    resolver: SourceResolver,
    availability: ProviderAvailability | None = None,
    *,
    start_index: int = 0,
    concurrency: int | None = None,
    budget_seconds: float | None = None,
    today: date | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> BatchSummary:
    """
    Resolve indicators[start_index:] with bounded concurrency.

    Args:
        indicators:     Ordered work list; the order defines the cursor.
        resolver:       Resolver shared by all tasks.
        availability:   Kill-switch state; defaults to settings.
        start_index:    Resume position from a previous run's next_index.
        concurrency:    Max resolutions in flight (settings.batch_concurrency).
        budget_seconds: Wall-clock budget (settings.batch_budget_seconds).
        today:          Passed to every resolution.
        clock:          Monotonic clock, injectable for tests.

    Returns:
        BatchSummary with per-indicator results and the resume cursor.
    """
    availability = availability or ProviderAvailability.from_settings()
    concurrency = concurrency or settings.batch_concurrency
    budget = budget_seconds if budget_seconds is not None else settings.batch_budget_seconds

    t0 = clock()
    deadline = t0 + budget
    summary = BatchSummary(total=len(indicators))
    semaphore = asyncio.Semaphore(concurrency)
    batch_log = log.bind(total=len(indicators), start_index=start_index)
    batch_log.info("batch_start", concurrency=concurrency, budget_s=budget)

    async def _run(indicator: IndicatorSourceConfig, client: httpx.AsyncClient) -> None:
        try:
            summary.results[indicator.key] = await resolver.resolve(
                indicator, availability, today=today, client=client
            )
        finally:
            semaphore.release()

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        tasks: list[asyncio.Task[None]] = []
        started: list[IndicatorSourceConfig] = []
        for index in range(start_index, len(indicators)):
            await semaphore.acquire()
            if clock() >= deadline:
                semaphore.release()
                summary.next_index = index
                batch_log.warning("batch_deadline_reached", next_index=index)
                break
            started.append(indicators[index])
            tasks.append(asyncio.create_task(_run(indicators[index], client)))

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    for indicator, outcome in zip(started, outcomes):
        if isinstance(outcome, Exception):
            summary.crashed[indicator.key] = f"{type(outcome).__name__}: {outcome}"
            batch_log.error(
                "indicator_task_failed",
                indicator=indicator.key,
                error=str(outcome),
                exc_info=outcome,
            )

    summary.duration_ms = int((clock() - t0) * 1000)
    batch_log.info(
        "batch_complete",
        status=summary.status,
        resolved=len(summary.succeeded),
        failed=len(summary.results) - len(summary.succeeded),
        crashed=len(summary.crashed),
        error_types=dict(summary.error_type_counts),
        next_index=summary.next_index,
        duration_ms=summary.duration_ms,
    )
    return summary
