"""CLI commands for capturing paginated content."""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from pagecapture.monitoring.event_bus import Event, EventBus, EventType, JsonlSink

capture_app = typer.Typer(help="Capture pages from a browser into a PDF.")
console = Console()


class _ProgressSink:
    """Drive a rich progress bar from capture events."""

    def __init__(self, progress: Progress, task_id: Any) -> None:
        self._progress = progress
        self._task_id = task_id

    async def handle_event(self, event: Event) -> None:
        if event.event_type == EventType.PROGRESS:
            self._progress.update(self._task_id, completed=event.data.get("count", 0))
        elif event.event_type == EventType.ERROR:
            self._progress.console.print(f"[red]✗[/red] {event.data.get('message', '')}")


def _build_settings(headless: bool) -> Any:
    from pagecapture.settings import get_settings

    settings = get_settings().model_copy(deep=True)
    if headless:
        settings.browser.headless = True
    return settings


@capture_app.command("run")
def capture_run(
    url: str = typer.Option(..., "--url", "-u", help="Page to open before capturing."),
    pages: Optional[int] = typer.Option(None, "--pages", "-n", min=1, help="Number of pages to capture."),
    delay: Optional[float] = typer.Option(None, "--delay", "-d", min=0, help="Seconds to wait before each capture."),
    ocr: bool = typer.Option(False, "--ocr", help="Add a searchable OCR text layer."),
    clip: Optional[str] = typer.Option(None, "--clip", help="Capture area as x,y,width,height."),
    image_format: Optional[str] = typer.Option(None, "--format", "-f", help="Image format: png or jpeg."),
    next_key: Optional[str] = typer.Option(None, "--next-key", help="Key that turns the page (e.g. ArrowRight, PageDown)."),
    login: bool = typer.Option(False, "--login", help="Wait for Continue on the overlay before capturing."),
    headless: bool = typer.Option(False, "--headless", help="Run the browser without a window."),
    events: bool = typer.Option(False, "--events", help="Emit JSONL events to stderr."),
) -> None:
    """Capture N pages of URL unattended and save them as one PDF.

    Each page is captured after the delay and once the screen stops
    changing, then the next-page key is pressed.
    """
    from pagecapture.exceptions import PageCaptureError
    from pagecapture.models.capture import ClipRect, ImageFormat
    from pagecapture.worker.jobs import configure_logging, run_capture

    configure_logging()

    if login and headless:
        console.print("[red]Invalid option:[/red] --login needs a visible browser")
        raise typer.Exit(code=2)

    overrides: dict[str, Any] = {"next_key": next_key}
    if ocr:
        overrides["enable_ocr"] = True
    try:
        if clip:
            overrides["clip"] = ClipRect.parse(clip)
        if image_format:
            overrides["image_format"] = ImageFormat(image_format.lower())
    except ValueError as e:
        console.print(f"[red]Invalid option:[/red] {e}")
        raise typer.Exit(code=2)

    settings = _build_settings(headless)
    total = pages or settings.capture.total_pages
    bus = EventBus()
    if events:
        bus.add_sink(JsonlSink(sys.stderr))

    console.print(Panel(f"[bold]Capturing:[/bold] {url}  ({total} pages)", title="pagecapture", border_style="blue"))

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Capturing pages...", total=total)
        bus.add_sink(_ProgressSink(progress, task))
        try:
            document = asyncio.run(
                run_capture(
                    url,
                    total_pages=pages,
                    delay=delay,
                    settings=settings,
                    bus=bus,
                    config_overrides=overrides,
                    wait_for_login=login,
                )
            )
        except PageCaptureError as e:
            console.print(f"\n[red]✗[/red] Capture failed: {e}")
            raise typer.Exit(code=1)

    if document is None:
        console.print("\n[yellow]No pages captured; nothing saved.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"\n[green]✓[/green] Saved {document.page_count} pages to {document.path}")
    if document.has_text_layer:
        console.print("  Text layer: embedded")
    if document.skipped_frames:
        console.print(f"  [yellow]Skipped {document.skipped_frames} unreadable frame(s)[/yellow]")


@capture_app.command("scroll")
def capture_scroll(
    url: str = typer.Option(..., "--url", "-u", help="Page to open before capturing."),
    settle: Optional[float] = typer.Option(None, "--settle", min=0, help="Seconds to wait after scrolling."),
    ocr: bool = typer.Option(False, "--ocr", help="Add a searchable OCR text layer."),
    image_format: Optional[str] = typer.Option(None, "--format", "-f", help="Image format: png or jpeg."),
    login: bool = typer.Option(False, "--login", help="Wait for Continue on the overlay before capturing."),
    headless: bool = typer.Option(False, "--headless", help="Run the browser without a window."),
    events: bool = typer.Option(False, "--events", help="Emit JSONL events to stderr."),
) -> None:
    """Scroll URL to the bottom and save it as one full-page PDF.

    Scrolling first loads lazy content; the page is then captured in a
    single full-height screenshot.
    """
    from pagecapture.exceptions import PageCaptureError
    from pagecapture.models.capture import ImageFormat
    from pagecapture.worker.jobs import configure_logging, run_scroll

    configure_logging()

    if login and headless:
        console.print("[red]Invalid option:[/red] --login needs a visible browser")
        raise typer.Exit(code=2)

    overrides: dict[str, Any] = {}
    if ocr:
        overrides["enable_ocr"] = True
    if image_format:
        try:
            overrides["image_format"] = ImageFormat(image_format.lower())
        except ValueError as e:
            console.print(f"[red]Invalid option:[/red] {e}")
            raise typer.Exit(code=2)

    settings = _build_settings(headless)
    bus = EventBus()
    if events:
        bus.add_sink(JsonlSink(sys.stderr))

    console.print(Panel(f"[bold]Scroll capture:[/bold] {url}", title="pagecapture", border_style="blue"))
    try:
        document = asyncio.run(
            run_scroll(
                url,
                settle=settle,
                settings=settings,
                bus=bus,
                config_overrides=overrides,
                wait_for_login=login,
            )
        )
    except PageCaptureError as e:
        console.print(f"\n[red]✗[/red] Capture failed: {e}")
        raise typer.Exit(code=1)

    if document is None:
        console.print("\n[yellow]Nothing captured; nothing saved.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"\n[green]✓[/green] Saved full page to {document.path}")
    if document.has_text_layer:
        console.print("  Text layer: embedded")


@capture_app.command("interactive")
def capture_interactive(
    url: str = typer.Option(..., "--url", "-u", help="Page to open."),
    events: bool = typer.Option(False, "--events", help="Emit JSONL events to stderr."),
) -> None:
    """Open URL with the on-page controller and capture from there.

    Use Set Area / Start / Pause / Stop on the overlay. Stop saves the PDF;
    closing the browser ends the command.
    """
    from pagecapture.exceptions import PageCaptureError
    from pagecapture.worker.jobs import configure_logging, run_interactive

    configure_logging()

    settings = _build_settings(headless=False)
    bus = EventBus()
    if events:
        bus.add_sink(JsonlSink(sys.stderr))

    console.print(Panel(f"[bold]Controller on:[/bold] {url}\nClose the browser when done.", title="pagecapture"))
    try:
        document = asyncio.run(run_interactive(url, settings=settings, bus=bus))
    except PageCaptureError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    if document is not None:
        console.print(f"[green]✓[/green] Last document: {document.path} ({document.page_count} pages)")
