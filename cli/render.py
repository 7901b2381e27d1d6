from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_rows(title: str, rows: List[Dict[str, Any]]) -> None:
    """Print buckets or readings one per line."""
    echo_heading(title)
    if not rows:
        typer.echo("No data in range.")
        return
    for row in rows:
        line = f"  {row.get('timestamp')}  {row.get('location', '-')}  {row.get('temperature')}"
        count = row.get("reading_count")
        if count is not None and count != 1:
            line += f"  ({count} readings)"
        typer.echo(line)


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Reading")
    if not payload:
        typer.echo("No readings recorded.")
        return
    echo_key_values(
        [
            ("timestamp", payload.get("timestamp")),
            ("location", payload.get("location")),
            ("device_id", payload.get("device_id")),
            ("temperature", payload.get("temperature")),
        ]
    )


def render_stats(payload: Dict[str, Any]) -> None:
    echo_heading("Statistics")
    echo_key_values(
        [
            ("avg_temp", payload.get("avg_temp")),
            ("min_temp", payload.get("min_temp")),
            ("max_temp", payload.get("max_temp")),
            ("total_readings", payload.get("total_readings")),
        ]
    )
