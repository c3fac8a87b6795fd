"""
dropship check - Validate configuration and test connections.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape

from dropship.bootstrap import build_session, build_source, load_settings
from dropship.cli._common import CONFIG_HELP, ENV_HELP, console, fail, quiet_logging
from dropship.exceptions import DropshipError, InitializationError

app = typer.Typer(name="check", help="Validate configuration and test connections", invoke_without_command=True)


@app.callback()
def check(
    ctx: typer.Context,
    config_path: Path = typer.Option(Path.cwd(), "--config", "-c", help=CONFIG_HELP),
    env: str | None = typer.Option(None, help=ENV_HELP),
    offline: bool = typer.Option(False, "--offline", help="Only validate settings; skip connection tests"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Report every configuration problem, then test the data source and SFTP server.
    """
    if ctx.invoked_subcommand is not None:
        return

    quiet_logging(verbose)
    try:
        config, settings = load_settings(config_path, env)
    except InitializationError as e:
        raise fail(str(e)) from None

    issues = settings.collect_issues()
    if issues:
        console.print("[red]Configuration has problems:[/red]")
        for issue in issues:
            console.print(f"  - {escape(issue)}")
        raise typer.Exit(1)
    console.print("[green]Configuration is valid[/green]")

    if offline:
        return

    try:
        source_ok = build_source(settings, config.base_dir).test_connection()
    except DropshipError as e:
        console.print(f"[red]Data source: {escape(str(e))}[/red]")
        source_ok = False
    else:
        if source_ok:
            console.print(f"[green]Data source ({settings.source.type}) reachable[/green]")
        else:
            console.print(f"[red]Data source ({settings.source.type}) connection test failed[/red]")
    ok = source_ok

    if build_session(settings).test_connection():
        console.print(f"[green]SFTP server {escape(settings.sftp.host)} reachable[/green]")
    else:
        console.print("[red]SFTP connection test failed (run 'dropship diagnose' for details)[/red]")
        ok = False

    if not ok:
        raise typer.Exit(1)
