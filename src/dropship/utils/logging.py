"""
Logging configuration for Dropship.

Console output goes through rich (or a plain stream handler); the optional log file uses a
plain, parseable format and is rolled over daily.
"""

import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "dropship"


class FileFormatter(logging.Formatter):
    """Formatter for file logs - clean and parseable."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record, keeping continuation lines of tracebacks indented."""
        result = super().format(record)
        if "\n" in result:
            head, _, tail = result.partition("\n")
            result = head + "\n" + "\n".join(f"    {line}" for line in tail.splitlines())
        return result


class ConsoleFormatter(logging.Formatter):
    """"level: timestamp - msg", with file:line added for errors."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        base_format = f"{record.levelname}: {self.formatTime(record)} - {record.getMessage()}"
        if record.levelno >= logging.ERROR and record.pathname:
            filename = Path(record.pathname).name
            base_format = (
                f"{record.levelname}: {self.formatTime(record)} - {filename}:{record.lineno} - {record.getMessage()}"
            )
        if record.exc_info:
            base_format += "\n" + self.formatException(record.exc_info)
        return base_format


# Map string level names to logging constants
LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int) -> int:
    """
    Parse logging level from string or int.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int

    Returns:
        Logging level constant
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level_upper = level.upper()
        if level_upper in LEVEL_MAP:
            return LEVEL_MAP[level_upper]
    # Default to INFO if invalid
    return logging.INFO


def roll_stale_log(log_file: Path, today: date | None = None) -> bool:
    """
    Delete the log file if it was last written on a previous day.

    Args:
        log_file: Path of the log file
        today: Override for the current date (tests)

    Returns:
        True if a stale file was removed
    """
    today = today or date.today()
    if not log_file.exists():
        return False
    last_write = datetime.fromtimestamp(log_file.stat().st_mtime).date()
    if last_write < today:
        log_file.unlink()
        return True
    return False


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    format_string: str | None = None,
    console_enabled: bool = True,
    use_rich: bool = True,
    daily_rollover: bool = True,
) -> logging.Logger:
    """
    Setup logging configuration for Dropship.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int (default: INFO)
        log_file: Optional file path to write logs to (default: None, console only)
        format_string: Optional custom console format string
        console_enabled: Whether to enable console logging (default: True)
        use_rich: Whether to use rich's RichHandler for the console (default: True)
        daily_rollover: Delete a log file left over from a previous day (default: True)

    Returns:
        The "dropship" logger

    Raises:
        OSError: If the log directory cannot be created
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level_int = _parse_level(level)
    logger.setLevel(level_int)

    if console_enabled:
        if use_rich:
            logger.addHandler(
                RichHandler(
                    level=level_int,
                    show_time=True,
                    show_path=False,
                    markup=False,
                    rich_tracebacks=True,
                    tracebacks_show_locals=False,
                    log_time_format="[%X]",
                    omit_repeated_times=False,
                )
            )
        else:
            formatter: logging.Formatter = (
                ConsoleFormatter() if format_string is None else logging.Formatter(format_string)
            )
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level_int)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if daily_rollover:
            roll_stale_log(log_file)

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        # File captures everything the logger lets through
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FileFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def setup_logging_from_config(config: dict[str, Any], base_dir: Path | None = None) -> logging.Logger:
    """
    Setup logging from the ``logging`` section of the configuration.

    Args:
        config: Configuration dictionary (section nested under 'logging')
        base_dir: Directory for resolving a relative log file path

    Returns:
        Logger instance
    """
    logging_config = config.get("logging", {}) or {}

    level = logging_config.get("level", logging.INFO)
    format_string = logging_config.get("format")

    log_file = None
    if logging_config.get("file_enabled", True):
        log_file = logging_config.get("file") or "logs/dropship.log"
        log_file = Path(log_file)
        if base_dir is not None and not log_file.is_absolute():
            log_file = base_dir / log_file

    console_enabled = logging_config.get("console_enabled", True)
    console_type = logging_config.get("console_type", "rich")

    return setup_logging(
        level=level,
        log_file=log_file,
        format_string=format_string,
        console_enabled=console_enabled,
        use_rich=console_type == "rich",
        daily_rollover=logging_config.get("daily_rollover", True),
    )


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default: "dropship")

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
