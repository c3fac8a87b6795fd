"""
Remote transfer: SFTP session, directory checks and diagnostics.
"""

from dropship.transfer.diagnostics import run_diagnostics, troubleshoot_path, validate_sftp_settings
from dropship.transfer.session import TransferSession, join_remote
from dropship.transfer.types import (
    DiagnosticsReport,
    DirectoryStatus,
    DirectoryValidation,
    PathTestResult,
    RemoteAttributes,
    RemoteEntry,
    SessionState,
)

__all__ = [
    "DiagnosticsReport",
    "DirectoryStatus",
    "DirectoryValidation",
    "PathTestResult",
    "RemoteAttributes",
    "RemoteEntry",
    "SessionState",
    "TransferSession",
    "join_remote",
    "run_diagnostics",
    "troubleshoot_path",
    "validate_sftp_settings",
]
