"""
Message file lifecycle: staging, archiving, retention.
"""

from dropship.files.lifecycle import ArchiveEntry, FileLifecycleManager, UploadFile
from dropship.files.naming import DEFAULT_TIMESTAMP_FORMAT, NamingPolicy, is_valid_timestamp_format

__all__ = [
    "ArchiveEntry",
    "DEFAULT_TIMESTAMP_FORMAT",
    "FileLifecycleManager",
    "NamingPolicy",
    "UploadFile",
    "is_valid_timestamp_format",
]
