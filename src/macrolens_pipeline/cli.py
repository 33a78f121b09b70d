"""
cli.py — Click CLI entrypoint for macrolens.

Usage:
    macrolens catalog
    macrolens resolve us_cpi_yoy --disable oecd
    macrolens batch --start-index 0 --budget 240
    macrolens correlate gold.csv dxy.csv --window 12m
    macrolens freshness cpi.csv --frequency M

CSV inputs need a `date` column (YYYY-MM-DD) and a numeric `value` column.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
import polars as pl
import structlog

from macrolens_pipeline.analytics.correlation import (
    compute_correlation,
    compute_window_correlations,
    load_correlation_config,
)
from macrolens_pipeline.analytics.freshness import find_latest_available_value
from macrolens_pipeline.pipelines.batch import resolve_batch
from macrolens_pipeline.pipelines.catalog import INDICATORS, get_indicator
from macrolens_pipeline.pipelines.resolver import ProviderAvailability, SourceResolver
from macrolens_pipeline.utils.logging import configure_logging
from macrolens_shared.config import settings
from macrolens_shared.constants import FREQUENCY_NAMES, PROVIDER_PRIORITY
from macrolens_shared.models.series import FRAME_SCHEMA, TimeSeries

log = structlog.get_logger(__name__)


def _read_series_csv(path: Path) -> pl.DataFrame:
    df = pl.read_csv(path, columns=["date", "value"], infer_schema_length=0)
    return df.select(
        pl.col("date").str.to_date("%Y-%m-%d", strict=False),
        pl.col("value").cast(pl.Float64, strict=False),
    ).cast(FRAME_SCHEMA)


def _availability(disabled: tuple[str, ...]) -> ProviderAvailability:
    return ProviderAvailability.disabling([*settings.disabled_sources_list, *disabled])


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """macrolens — multi-source macro series resolution and correlations."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.command()
def catalog() -> None:
    """List the indicators the resolver knows about."""
    for key, cfg in sorted(INDICATORS.items()):
        providers = [
            name
            for name, configured in (
                ("fred", cfg.fred_series_id),
                ("oecd", cfg.oecd_dataset and cfg.oecd_filter),
                ("tradingeconomics", cfg.te_country and cfg.te_indicator),
            )
            if configured
        ]
        click.echo(
            f"  {key:24s} {FREQUENCY_NAMES[cfg.frequency]:10s} "
            f"{cfg.transform:5s} {','.join(providers)}"
        )


@main.command()
@click.argument("indicator")
@click.option(
    "--disable",
    multiple=True,
    type=click.Choice(PROVIDER_PRIORITY, case_sensitive=False),
    help="Switch a provider off for this run (repeatable)",
)
@click.option("--tail", default=5, show_default=True, help="Observations to print")
def resolve(indicator: str, disable: tuple[str, ...], tail: int) -> None:
    """Resolve one catalog INDICATOR and print the outcome."""
    try:
        cfg = get_indicator(indicator)
    except KeyError as exc:
        raise click.BadParameter(str(exc.args[0]), param_hint="INDICATOR") from exc

    log.info("cli_resolve", indicator=indicator, disabled=list(disable))
    result = asyncio.run(SourceResolver.default().resolve(cfg, _availability(disable)))

    for attempt in result.attempts:
        status = f" HTTP {attempt.http_status}" if attempt.http_status else ""
        click.echo(
            f"  {'→' if attempt.attempted else '·'} {attempt.source:18s} "
            f"{attempt.reason}{status}"
        )
    if not result.success or result.series is None:
        click.echo(f"✗ {indicator}: {result.error_type} — {result.error}", err=True)
        raise SystemExit(1)

    click.echo(
        f"✓ {cfg.display_name} from {result.source_used} ({len(result.series.points)} points)"
    )
    for point in result.series.points[-tail:]:
        click.echo(f"  {point.date.isoformat()}  {point.value}")


@main.command()
@click.option("--start-index", default=0, show_default=True, help="Resume cursor")
@click.option("--budget", type=float, default=None, help="Wall-clock budget in seconds")
@click.option("--concurrency", type=int, default=None, help="Resolutions in flight")
def batch(start_index: int, budget: float | None, concurrency: int | None) -> None:
    """Resolve every catalog indicator and print a JSON summary."""
    log.info("cli_batch", start_index=start_index, indicators=len(INDICATORS))
    summary = asyncio.run(
        resolve_batch(
            list(INDICATORS.values()),
            SourceResolver.default(),
            _availability(()),
            start_index=start_index,
            budget_seconds=budget,
            concurrency=concurrency,
        )
    )
    click.echo(
        json.dumps(
            {
                "status": summary.status,
                "succeeded": summary.succeeded,
                "error_types": dict(summary.error_type_counts),
                "crashed": summary.crashed,
                "next_index": summary.next_index,
                "duration_ms": summary.duration_ms,
            },
            indent=2,
        )
    )


@main.command()
@click.argument("asset_csv", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("base_csv", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--window", default=None, help="Configured window name (e.g. 12m, 3m); all if omitted")
def correlate(asset_csv: Path, base_csv: Path, window: str | None) -> None:
    """Correlate daily log returns of ASSET_CSV against BASE_CSV."""
    asset = _read_series_csv(asset_csv)
    base = _read_series_csv(base_csv)
    config = load_correlation_config()

    if window is None:
        results = compute_window_correlations(asset, base, config=config)
    else:
        if window not in config.windows:
            raise click.BadParameter(
                f"unknown window {window!r}; configured: {', '.join(config.windows)}",
                param_hint="--window",
            )
        w = config.windows[window]
        results = {
            window: compute_correlation(
                asset, base, w.trading_days, w.min_observations, config=config
            )
        }

    click.echo(
        json.dumps({name: r.model_dump(mode="json") for name, r in results.items()}, indent=2)
    )


@main.command()
@click.argument("series_csv", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--frequency",
    required=True,
    type=click.Choice(["D", "W", "M", "Q"]),
    help="Native frequency of the series",
)
def freshness(series_csv: Path, frequency: str) -> None:
    """Report the latest available value of SERIES_CSV and its freshness."""
    series = TimeSeries.from_frame(
        _read_series_csv(series_csv),
        id=series_csv.stem,
        source_name="csv",
        native_id=str(series_csv),
        name=series_csv.stem,
        frequency=frequency,
    )
    latest = find_latest_available_value(series.points, frequency)
    if latest is None:
        click.echo(f"✗ {series_csv.name}: no usable observation", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(latest.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    main()
