"""
Staging file naming.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from dropship.utils.logging import get_logger

DEFAULT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

# Characters that are unsafe in file names on at least one platform
_INVALID_FILENAME_CHARS = set('<>:"/\\|?*\0')


def is_valid_timestamp_format(pattern: str | None) -> bool:
    """
    Check a strftime pattern is usable in a file name.

    It must contain at least one directive, render without error and produce
    a non-empty name free of path separators and reserved characters.
    """
    if not pattern or "%" not in pattern:
        return False
    try:
        rendered = datetime(2000, 1, 2, 3, 4, 5).strftime(pattern)
    except (ValueError, TypeError):
        return False
    if not rendered.strip():
        return False
    return not any(ch in _INVALID_FILENAME_CHARS for ch in rendered)


@dataclass(frozen=True)
class NamingPolicy:
    """`<prefix><timestamp><suffix>`, e.g. upload_20240102_030405.txt."""

    prefix: str = "upload_"
    suffix: str = ".txt"
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT

    def effective_timestamp_format(self, logger: logging.Logger | None = None) -> str:
        """The configured pattern, or the default if it is unusable."""
        if is_valid_timestamp_format(self.timestamp_format):
            return self.timestamp_format
        (logger or get_logger("dropship.files")).warning(
            f"Invalid timestamp format '{self.timestamp_format}', falling back to '{DEFAULT_TIMESTAMP_FORMAT}'"
        )
        return DEFAULT_TIMESTAMP_FORMAT

    def file_name(self, when: datetime | None = None, logger: logging.Logger | None = None) -> str:
        when = when or datetime.now()
        stamp = when.strftime(self.effective_timestamp_format(logger))
        return f"{self.prefix}{stamp}{self.suffix}"
