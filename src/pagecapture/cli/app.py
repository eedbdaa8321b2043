"""Unified CLI entry point for pagecapture.

Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (PAGECAPTURE_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from pagecapture.cli.batch_cmd import batch_app
from pagecapture.cli.capture_cmd import capture_app
from pagecapture.cli.history_cmd import history
from pagecapture.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("pagecapture")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "pagecapture — capture paginated on-screen content into searchable PDFs. "
    "Config precedence: settings.default.toml -> settings.local.toml -> env vars (PAGECAPTURE_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(capture_app, name="capture")
app.add_typer(batch_app, name="batch")
app.add_typer(settings_app, name="settings")
app.command("history")(history)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"pagecapture {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
