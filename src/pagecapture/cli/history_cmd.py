"""CLI command listing saved capture documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

console = Console()


def history(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Number of documents to show."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    """List saved PDFs, newest first."""
    from pagecapture.reports.pdf import list_documents
    from pagecapture.settings import get_settings
    from pagecapture.utils import format_bytes

    settings = get_settings()
    docs = list_documents(
        Path(settings.output.output_dir),
        limit=limit or settings.output.history_limit,
        utc_offset_hours=settings.output.utc_offset_hours,
    )

    if as_json:
        payload = [{"name": d.name, "size": d.size_bytes, "date": d.date} for d in docs]
        console.print_json(json.dumps(payload))
        return

    if not docs:
        console.print("[yellow]No captures saved yet.[/yellow]")
        return

    table = Table(title=f"Saved captures ({settings.output.output_dir})")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Date")
    for doc in docs:
        table.add_row(doc.name, format_bytes(doc.size_bytes), doc.date)
    console.print(table)
