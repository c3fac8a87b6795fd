"""
Main CLI entry point.
"""

import typer

from dropship import __version__
from dropship.cli import check, diagnose, once, preview, run, stats


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"dropship version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="dropship",
    help="Dropship - batch record delivery over SFTP",
    add_completion=False,
)

app.add_typer(run.app, name="run")
app.add_typer(once.app, name="once")
app.add_typer(diagnose.app, name="diagnose")
app.add_typer(check.app, name="check")
app.add_typer(preview.app, name="preview")
app.add_typer(stats.app, name="stats")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    Dropship - batch record delivery over SFTP.

    Run 'dropship <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None and not version:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
