"""
dropship diagnose - Step-by-step SFTP diagnostics.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape

from dropship.bootstrap import build_session, load_settings
from dropship.cli._common import CONFIG_HELP, ENV_HELP, console, fail, quiet_logging
from dropship.exceptions import InitializationError
from dropship.transfer.diagnostics import run_diagnostics

app = typer.Typer(name="diagnose", help="Diagnose SFTP connectivity", invoke_without_command=True)

_STYLES = {"[OK]": "green", "[WARN]": "yellow", "[FAIL]": "red"}


@app.callback()
def diagnose(
    ctx: typer.Context,
    config_path: Path = typer.Option(Path.cwd(), "--config", "-c", help=CONFIG_HELP),
    env: str | None = typer.Option(None, help=ENV_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Validate SFTP settings, connect, and probe the remote directory.
    """
    if ctx.invoked_subcommand is not None:
        return

    quiet_logging(verbose)
    try:
        _, settings = load_settings(config_path, env)
    except InitializationError as e:
        raise fail(str(e)) from None

    report = run_diagnostics(build_session(settings), settings.sftp)
    for line in report.details:
        style = next((s for tag, s in _STYLES.items() if line.startswith(tag)), None)
        console.print(escape(line), style=style)

    if not report.success:
        raise typer.Exit(1)
