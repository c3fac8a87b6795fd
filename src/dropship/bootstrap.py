"""
Dropship startup initialization.

Builds all components in order:
1. Config (load + validate; nothing touches disk or network before this passes)
2. Logging
3. Staging/archive directories
4. Data source
5. Encoder, transfer session, coordinator
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from dropship.config.loader import Config, load_config
from dropship.config.settings import AppSettings
from dropship.connections.sftp import SFTPConnection
from dropship.delivery.coordinator import DeliveryCoordinator
from dropship.encoding.encoder import MessageEncoder
from dropship.exceptions import DropshipError, InitializationError
from dropship.files.lifecycle import FileLifecycleManager
from dropship.sources.base import DataSource
from dropship.sources.duckdb import DuckDBDataSource, DuckDBSourceConfig
from dropship.sources.memory import InMemoryDataSource, sample_records
from dropship.transfer.session import TransferSession
from dropship.utils.logging import get_logger, setup_logging_from_config

ENV_VAR = "DROPSHIP_ENV"


@dataclass
class Application:
    """Everything a delivery run needs, wired together."""

    config: Config
    settings: AppSettings
    source: DataSource
    encoder: MessageEncoder
    files: FileLifecycleManager
    session: TransferSession
    coordinator: DeliveryCoordinator


def load_settings(config_path: Path | str | None = None, env: str | None = None) -> tuple[Config, AppSettings]:
    """
    Load the config file and build typed settings (not yet validated).

    Raises:
        InitializationError: If the file is missing or unreadable
    """
    try:
        config = load_config(config_path, env=env or os.environ.get(ENV_VAR))
    except (FileNotFoundError, PermissionError, ValueError, yaml.YAMLError) as e:
        raise InitializationError(str(e)) from None
    return config, AppSettings.from_config(config)


def build_source(settings: AppSettings, base_dir: Path | None = None) -> DataSource:
    """Create the configured data source."""
    options: dict[str, Any] = dict(settings.source.options)
    if settings.source.type == "duckdb":
        path = str(options.get("path", ":memory:"))
        if path != ":memory:" and base_dir is not None and not Path(path).is_absolute():
            options["path"] = str(base_dir / path)
        try:
            return DuckDBDataSource(DuckDBSourceConfig.from_dict(options))
        except (TypeError, ValueError) as e:
            raise InitializationError(f"Invalid duckdb source options: {e}") from None

    samples = int(options.get("sample_records", 0) or 0)
    return InMemoryDataSource(sample_records(samples) if samples else ())


def build_session(settings: AppSettings) -> TransferSession:
    """A fresh, disconnected transfer session."""
    return TransferSession(SFTPConnection(settings.sftp), remote_directory=settings.sftp.remote_directory)


class DropshipInitializer:
    """Handles complete initialization of a Dropship process."""

    def __init__(
        self,
        config_path: Path | str | None = None,
        env: str | None = None,
        stop_event: threading.Event | None = None,
        configure_logging: bool = True,
    ):
        self.config_path = config_path
        self.env = env
        self.stop_event = stop_event or threading.Event()
        self.configure_logging = configure_logging

        self.config: Config | None = None
        self.settings: AppSettings | None = None

    def initialize_all(self) -> Application:
        """
        Initialize all components in the correct order.

        Raises:
            InitializationError: If any initialization step fails
            ConfigurationError: If the settings are invalid
        """
        self.config, self.settings = load_settings(self.config_path, self.env)
        self.settings.validate()

        self._initialize_logging()
        files = self._initialize_files()
        source = self._initialize_source()

        settings = self.settings
        encoder = MessageEncoder(settings.message)
        session = build_session(settings)
        coordinator = DeliveryCoordinator(
            source=source,
            encoder=encoder,
            files=files,
            session=session,
            backoff_policy=settings.retry.backoff_policy(),
            interval=settings.general.interval_s,
            auto_archive=settings.files.auto_archive,
            retention_days=settings.files.retention_days,
            stop_event=self.stop_event,
        )
        get_logger("dropship.bootstrap").info(
            f"Initialized: source={settings.source.type}, sftp={settings.sftp.host}:{settings.sftp.port}"
            f"{settings.sftp.remote_directory}, interval={settings.general.interval_s:g}s"
        )
        return Application(
            config=self.config,
            settings=settings,
            source=source,
            encoder=encoder,
            files=files,
            session=session,
            coordinator=coordinator,
        )

    def _initialize_logging(self) -> None:
        if not self.configure_logging:
            return
        try:
            setup_logging_from_config(self.config.data, base_dir=self.config.base_dir)
        except OSError as e:
            raise InitializationError(f"Failed to initialize logging: {e}") from None

    def _initialize_files(self) -> FileLifecycleManager:
        settings = self.settings
        files = FileLifecycleManager(
            staging_dir=settings.files.staging_dir,
            archive_dir=settings.files.archive_dir,
            naming=settings.files.naming_policy(),
            encoding=settings.files.encoding,
        )
        try:
            files.ensure_directories()
        except OSError as e:
            raise InitializationError(
                f"Cannot create staging/archive directories ({files.staging_dir}, {files.archive_dir}): {e}"
            ) from None
        return files

    def _initialize_source(self) -> DataSource:
        try:
            return build_source(self.settings, self.config.base_dir)
        except DropshipError:
            raise
        except Exception as e:
            raise InitializationError(f"Failed to initialize data source: {e}") from None


def initialize(
    config_path: Path | str | None = None,
    env: str | None = None,
    stop_event: threading.Event | None = None,
    configure_logging: bool = True,
) -> Application:
    """
    Initialize a Dropship process.

    Args:
        config_path: config.yaml or the directory holding it (default: cwd)
        env: Environment name (default: from DROPSHIP_ENV)
        stop_event: Shared shutdown signal for the coordinator
        configure_logging: Install handlers from the `logging` section

    Returns:
        Wired Application

    Raises:
        InitializationError: If initialization fails
        ConfigurationError: If the settings are invalid
    """
    return DropshipInitializer(config_path, env, stop_event, configure_logging).initialize_all()
