from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytz
import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_reading, render_rows, render_stats
from datastore.reading_table import ReadingTable
from datastore.synthetic import generate_readings
from models.errors import StorageUnavailable
from services.registry import DeviceLocationRegistry
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for querying and feeding the pool temperature service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    secret: Optional[str] = typer.Option(
        None,
        "--secret",
        help="Shared ingest secret (defaults to TEMPS_INGEST_SECRET env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, ingest_secret=secret, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("buckets")
def buckets_command(
    ctx: typer.Context,
    period: str = typer.Option("day", "--period", "-p", help="hourly, day, week, month or year."),
    offset: int = typer.Option(0, "--offset", "-o", help="0 = current, -1 = previous period."),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    start_date: Optional[str] = typer.Option(None, "--start", help="Explicit ISO-8601 range start."),
    end_date: Optional[str] = typer.Option(None, "--end", help="Explicit ISO-8601 range end."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Row cap for the hourly view."),
) -> None:
    """Show bucketed temperatures for a period."""
    state = _get_state(ctx)
    rows = state.client.get_buckets(
        period,
        offset=offset,
        location=location,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
    render_rows(f"Temperatures ({period}, offset {offset})", rows)


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    location: Optional[str] = typer.Option(None, "--location", "-l"),
) -> None:
    """Show the most recent reading."""
    state = _get_state(ctx)
    render_reading(state.client.get_latest(location))


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    period: str = typer.Option("day", "--period", "-p"),
    offset: int = typer.Option(0, "--offset", "-o"),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    start_date: Optional[str] = typer.Option(None, "--start"),
    end_date: Optional[str] = typer.Option(None, "--end"),
) -> None:
    """Show average, minimum and maximum over a window."""
    state = _get_state(ctx)
    payload = state.client.get_stats(
        period, offset=offset, location=location, start_date=start_date, end_date=end_date
    )
    render_stats(payload)


@app.command("raw")
def raw_command(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Bucket timestamp as printed by the buckets command."),
    location: str = typer.Option(..., "--location", "-l"),
    period: Optional[str] = typer.Option(
        None, "--period", "-p", help="Period that produced the label, if known."
    ),
) -> None:
    """Show the raw readings behind one bucket."""
    state = _get_state(ctx)
    render_rows(f"Readings for {label} ({location})", state.client.get_raw(label, location, period))


@app.command("ingest")
def ingest_command(
    ctx: typer.Context,
    temperature: float = typer.Argument(..., help="Reading in sensor units."),
    device_id: str = typer.Argument(..., help="Physical sensor identifier."),
    timestamp: Optional[str] = typer.Option(None, "--timestamp", help="ISO-8601 instant; defaults to now."),
) -> None:
    """Submit one reading."""
    state = _get_state(ctx)
    payload = state.client.ingest(temperature, device_id, timestamp)
    typer.secho("Reading stored.", fg=typer.colors.GREEN)
    render_reading(payload)


@app.command("seed")
def seed_command(
    store: Optional[Path] = typer.Option(
        None, "--store", help="Store file to write (defaults to TEMPS_STORE_PATH)."
    ),
    days: int = typer.Option(30, "--days", min=1, help="How many days back to generate."),
    interval_minutes: int = typer.Option(30, "--interval", min=1, help="Minutes between readings."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for repeatable data."),
) -> None:
    """Write synthetic demo readings into a store file, without the server."""
    settings = get_settings()
    target = store or (Path(settings.store_path) if settings.store_path else None)
    if target is None:
        raise typer.BadParameter("No store path configured; pass --store.")

    readings = generate_readings(
        DeviceLocationRegistry(settings.device_locations),
        pytz.timezone(settings.timezone),
        end=datetime.now(timezone.utc),
        days=days,
        interval=timedelta(minutes=interval_minutes),
        seed=seed,
    )
    try:
        inserted = ReadingTable(name="temperature_readings", persistence_path=target).insert_many(readings)
    except StorageUnavailable as exc:
        typer.secho(exc.reason, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.secho(f"Wrote {inserted} readings to {target}.", fg=typer.colors.GREEN)
