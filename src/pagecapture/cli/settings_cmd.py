"""CLI commands for inspecting and validating pagecapture settings."""

from __future__ import annotations

import json

import typer
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate pagecapture configuration.")
console = Console()


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings."""
    from pagecapture.settings import get_settings

    settings = get_settings()
    console.print_json(json.dumps(settings.model_dump(mode="json"), indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report any issues."""
    from pagecapture.models.capture import CaptureConfig
    from pagecapture.settings import get_settings

    try:
        settings = get_settings()
        config = CaptureConfig.from_settings(settings.capture)
        console.print("[green]✓[/green] Settings are valid.")
        console.print(f"  Environment: {settings.env}")
        console.print(f"  Output dir: {settings.output.output_dir}")
        console.print(f"  Pages/delay: {config.total_pages} @ {config.delay}s ({config.image_format.value})")
        console.print(f"  OCR: {'on' if config.enable_ocr else 'off'} ({settings.ocr.language})")
    except Exception as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)
