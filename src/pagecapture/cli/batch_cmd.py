"""CLI commands for batch URL capture."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

batch_app = typer.Typer(help="Capture a list of URLs as full-page screenshots.")
console = Console()


@batch_app.command("run")
def batch_run(
    manifest: Path = typer.Option(..., "--manifest", "-m", help="File with URLs (plain text) or JSON manifest."),
    format: str = typer.Option(
        "auto", "--format", "-f", help="Input format: text (one URL per line), json, or auto (by extension)."
    ),
    delay: Optional[float] = typer.Option(None, "--delay", "-d", min=0, help="Seconds between URLs."),
    headless: bool = typer.Option(False, "--headless", help="Run the browser without a window."),
    events: bool = typer.Option(False, "--events", help="Emit JSONL events to stderr."),
) -> None:
    """Capture every URL in MANIFEST, one after another.

    Plain text manifests list one URL per line (``#`` for comments). JSON
    manifests are an array of URLs or ``{"url": ..., "options": {...}}``
    objects.
    """
    from pagecapture.exceptions import PageCaptureError
    from pagecapture.models.batch import BatchOptions
    from pagecapture.monitoring.event_bus import EventBus, JsonlSink
    from pagecapture.settings import get_settings
    from pagecapture.worker.batch_jobs import load_manifest, run_batch
    from pagecapture.worker.jobs import configure_logging

    configure_logging()

    try:
        entries = load_manifest(manifest, format)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Cannot load manifest:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"Loaded {len(entries)} URL(s) from {manifest}")

    settings = get_settings().model_copy(deep=True)
    if headless:
        settings.browser.headless = True
    bus = EventBus()
    if events:
        bus.add_sink(JsonlSink(sys.stderr))

    try:
        status = asyncio.run(
            run_batch(entries, options=BatchOptions(delay_between_urls=delay), settings=settings, bus=bus)
        )
    except PageCaptureError as e:
        console.print(f"[red]✗[/red] Batch failed: {e}")
        raise typer.Exit(code=1)

    table = Table(title="Batch results")
    table.add_column("#", justify="right")
    table.add_column("URL")
    table.add_column("Result")
    for result in status.results:
        outcome = f"[green]{result.filename}[/green]" if result.success else f"[red]{result.error}[/red]"
        table.add_row(str(result.item_id), result.url, outcome)
    console.print(table)

    console.print(f"\n[bold]Batch complete:[/bold] {status.succeeded} succeeded, {status.failed} failed")
    if status.failed:
        raise typer.Exit(code=1)
