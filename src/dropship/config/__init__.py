"""
Configuration loading and typed settings.
"""

from dropship.config.loader import CONFIG_FILE_NAME, Config, load_config
from dropship.config.resolver import resolve_config, unresolved_variables
from dropship.config.settings import (
    AppSettings,
    FileSettings,
    GeneralSettings,
    LoggingSettings,
    RetrySettings,
    SourceSettings,
)

__all__ = [
    "AppSettings",
    "CONFIG_FILE_NAME",
    "Config",
    "FileSettings",
    "GeneralSettings",
    "LoggingSettings",
    "RetrySettings",
    "SourceSettings",
    "load_config",
    "resolve_config",
    "unresolved_variables",
]
