"""
dropship preview - Render messages without writing or uploading anything.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from dropship.bootstrap import build_source
from dropship.cli._common import CONFIG_HELP, ENV_HELP, console, fail, quiet_logging, settings_or_exit
from dropship.encoding.encoder import MessageEncoder
from dropship.exceptions import DropshipError

app = typer.Typer(name="preview", help="Preview rendered messages", invoke_without_command=True)


@app.callback()
def preview(
    ctx: typer.Context,
    config_path: Path = typer.Option(Path.cwd(), "--config", "-c", help=CONFIG_HELP),
    env: str | None = typer.Option(None, help=ENV_HELP),
    sample: bool = typer.Option(False, "--sample", "-s", help="Render a generated sample record"),
    limit: int = typer.Option(5, "--limit", "-n", min=1, help="Maximum pending records to render"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Show how pending records (or a sample) render with the configured layout.
    """
    if ctx.invoked_subcommand is not None:
        return

    quiet_logging(verbose)
    config, settings = settings_or_exit(config_path, env, require_sftp=False)
    encoder = MessageEncoder(settings.message)
    console.print(f"[dim]{escape(str(encoder.formatting_stats()))}[/dim]")

    if sample:
        records = [encoder.sample_record()]
    else:
        try:
            records = build_source(settings, config.base_dir).fetch_pending()[:limit]
        except DropshipError as e:
            raise fail(str(e)) from None
        if not records:
            console.print("No pending records")
            return

    table = Table(title=f"Messages ({len(records)})", show_header=True)
    table.add_column("Record", style="cyan")
    table.add_column("Message", style="green", no_wrap=True)
    table.add_column("Length", justify="right")
    table.add_column("Notes", style="yellow")

    invalid = 0
    for record in records:
        validation = encoder.validate_record(record)
        try:
            message = encoder.encode(record)
        except DropshipError as e:
            table.add_row(escape(record.record_id), "", "", escape(str(e)))
            invalid += 1
            continue
        if not validation.is_valid:
            invalid += 1
        notes = "; ".join(validation.errors + validation.warnings)
        # Quote so leading/trailing padding stays visible
        table.add_row(escape(record.record_id), escape(f"'{message}'"), str(len(message)), escape(notes))

    console.print(table)
    if invalid:
        raise typer.Exit(1)
