"""
Dropship - batch record delivery over SFTP.

Pulls pending records from a data source, renders each as a fixed-width or
delimited text message, uploads the message file over SFTP with retries,
then marks the record delivered and archives the file.
"""

__version__ = "0.1.0"

from dropship.bootstrap import Application, initialize
from dropship.delivery import CycleSummary, DeliveryCoordinator
from dropship.encoding import FieldSpec, FormatSpec, MessageEncoder, encode
from dropship.exceptions import (
    ArchiveError,
    ConfigurationError,
    DataSourceError,
    DropshipError,
    EncodingError,
    InitializationError,
    RemotePathNotFoundError,
    RemotePermissionError,
    SessionConnectError,
    TransferError,
)
from dropship.files import FileLifecycleManager, NamingPolicy
from dropship.retry import BackoffPolicy
from dropship.sources import DataSource, DuckDBDataSource, InMemoryDataSource, SourceRecord
from dropship.transfer import TransferSession
from dropship.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Wiring
    "Application",
    "initialize",
    # Pipeline
    "DeliveryCoordinator",
    "CycleSummary",
    "MessageEncoder",
    "FieldSpec",
    "FormatSpec",
    "encode",
    "FileLifecycleManager",
    "NamingPolicy",
    "TransferSession",
    "BackoffPolicy",
    # Sources
    "DataSource",
    "SourceRecord",
    "InMemoryDataSource",
    "DuckDBDataSource",
    # Logging
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    # Exceptions
    "DropshipError",
    "ConfigurationError",
    "EncodingError",
    "TransferError",
    "SessionConnectError",
    "RemotePermissionError",
    "RemotePathNotFoundError",
    "ArchiveError",
    "DataSourceError",
    "InitializationError",
]
