"""
dropship run - Run the delivery loop until interrupted.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer

from dropship.bootstrap import initialize
from dropship.cli._common import CONFIG_HELP, ENV_HELP, fail
from dropship.exceptions import ConfigurationError, InitializationError
from dropship.utils.logging import get_logger

logger = get_logger("dropship.cli.run")

app = typer.Typer(name="run", help="Run the delivery loop", invoke_without_command=True)


def install_signal_handlers(stop_event: threading.Event) -> Callable[[], None]:
    """
    Set `stop_event` on SIGINT/SIGTERM.

    Returns:
        A function restoring the previous handlers
    """
    previous: dict[int, Any] = {}

    def _handle(signum: int, frame: Any) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, stopping after the current step...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handle)

    def restore() -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    return restore


@app.callback()
def run(
    ctx: typer.Context,
    config_path: Path = typer.Option(Path.cwd(), "--config", "-c", help=CONFIG_HELP),
    env: str | None = typer.Option(None, help=ENV_HELP),
    interval: float | None = typer.Option(None, "--interval", "-i", help="Override general.interval_s"),
) -> None:
    """
    Poll the data source and deliver pending records until Ctrl+C / SIGTERM.
    """
    if ctx.invoked_subcommand is not None:
        return

    stop_event = threading.Event()
    try:
        application = initialize(config_path, env=env, stop_event=stop_event)
    except (InitializationError, ConfigurationError) as e:
        logger.error(f"Initialization failed: {e}")
        raise fail(str(e)) from None

    if interval is not None:
        if interval <= 0:
            raise fail("--interval must be > 0")
        application.coordinator.interval = interval

    if not application.source.test_connection():
        logger.warning("Data source connection test failed; records will be retried every tick")

    restore = install_signal_handlers(stop_event)
    try:
        logger.info("Service is running. Press Ctrl+C to stop.")
        application.coordinator.run_forever(stop_event)
    finally:
        restore()
        application.session.disconnect()
        logger.info("Dropship shutting down...")
