"""
dropship stats - Data source statistics.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from dropship.bootstrap import build_source
from dropship.cli._common import CONFIG_HELP, ENV_HELP, console, fail, quiet_logging, settings_or_exit
from dropship.exceptions import DropshipError

app = typer.Typer(name="stats", help="Show data source statistics", invoke_without_command=True)


@app.callback()
def stats(
    ctx: typer.Context,
    config_path: Path = typer.Option(Path.cwd(), "--config", "-c", help=CONFIG_HELP),
    env: str | None = typer.Option(None, help=ENV_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Show total, unsent and sent record counts.
    """
    if ctx.invoked_subcommand is not None:
        return

    quiet_logging(verbose)
    config, settings = settings_or_exit(config_path, env, require_sftp=False)
    try:
        statistics = build_source(settings, config.base_dir).get_statistics()
    except DropshipError as e:
        raise fail(str(e)) from None

    table = Table(title=f"Data source ({settings.source.type})", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total records", str(statistics.total))
    table.add_row("Unsent", str(statistics.unsent))
    table.add_row("Sent", str(statistics.sent))
    table.add_row("Oldest unsent", str(statistics.oldest_unsent or "-"))
    table.add_row("Newest record", str(statistics.newest or "-"))
    console.print(table)
