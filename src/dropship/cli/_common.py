"""
Shared CLI helpers: options, settings loading and error reporting.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from dropship.bootstrap import load_settings
from dropship.config.loader import Config
from dropship.config.settings import AppSettings
from dropship.exceptions import ConfigurationError, InitializationError
from dropship.utils.logging import setup_logging

console = Console()

CONFIG_HELP = "config.yaml, or the directory holding it"
ENV_HELP = "Environment (merges config.<env>.yaml)"


def fail(message: str) -> typer.Exit:
    """Print an error and return the exit to raise."""
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def settings_or_exit(
    config_path: Path, env: str | None, require_sftp: bool = True
) -> tuple[Config, AppSettings]:
    """Load and validate settings, exiting with code 1 on any problem."""
    try:
        config, settings = load_settings(config_path, env)
        settings.validate(require_sftp=require_sftp)
    except (InitializationError, ConfigurationError) as e:
        raise fail(str(e)) from None
    return config, settings


def quiet_logging(verbose: bool) -> None:
    """Console logging for one-shot commands (warnings only unless verbose)."""
    setup_logging(level="DEBUG" if verbose else "WARNING", log_file=None)
