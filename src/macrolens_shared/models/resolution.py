"""
models/resolution.py — Resolver outcome and per-provider attempt records.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from macrolens_shared.models.series import TimeSeries

ErrorType = Literal[
    "MISCONFIG",
    "RATE_LIMITED",
    "SOURCE_DOWN",
    "NO_DATA",
    "blocked",
    "not_available_in_source",
    "no_data_source",
]


class SourceAttempt(BaseModel):
    """
    One provider's outcome within a resolution call.

    `attempted` is False when the provider was skipped without a network
    call (not configured, misconfigured identifier, disabled).
    """

    model_config = ConfigDict(frozen=True)

    source: str
    attempted: bool
    reason: str
    error: str | None = None
    http_status: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.attempted and self.error is None and self.reason == "success"


class ResolverResult(BaseModel):
    success: bool
    series: TimeSeries | None = None
    source_used: str | None = None
    error: str | None = None
    error_type: ErrorType | None = None
    attempts: list[SourceAttempt]

    @model_validator(mode="after")
    def check_consistency(self) -> "ResolverResult":
        if self.success:
            if self.series is None or self.source_used is None:
                raise ValueError("successful result requires series and source_used")
            winners = [a for a in self.attempts if a.succeeded]
            if len(winners) != 1 or winners[0].source != self.source_used:
                raise ValueError("successful result requires exactly one successful attempt")
        elif self.series is not None:
            raise ValueError("failed result must not carry a series")
        return self
