"""
dropship once - Run a single delivery tick.
"""

from __future__ import annotations

import threading
from pathlib import Path

import typer

from dropship.bootstrap import initialize
from dropship.cli._common import CONFIG_HELP, ENV_HELP, console, fail
from dropship.cli.run import install_signal_handlers
from dropship.exceptions import ConfigurationError, InitializationError

app = typer.Typer(name="once", help="Run one delivery tick and exit", invoke_without_command=True)


@app.callback()
def once(
    ctx: typer.Context,
    config_path: Path = typer.Option(Path.cwd(), "--config", "-c", help=CONFIG_HELP),
    env: str | None = typer.Option(None, help=ENV_HELP),
) -> None:
    """
    Fetch, encode, upload, mark and archive once. Exits 1 if any upload failed.
    """
    if ctx.invoked_subcommand is not None:
        return

    stop_event = threading.Event()
    try:
        application = initialize(config_path, env=env, stop_event=stop_event)
    except (InitializationError, ConfigurationError) as e:
        raise fail(str(e)) from None

    restore = install_signal_handlers(stop_event)
    try:
        summary = application.coordinator.run_cycle()
    finally:
        restore()
        application.session.disconnect()

    console.print(f"Cycle complete: {summary}")
    if summary.failed or summary.cancelled:
        raise typer.Exit(1)
