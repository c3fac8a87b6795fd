"""
SFTP settings validation and step-by-step connectivity diagnostics.

Used by the `dropship diagnose` and `dropship check` commands. Diagnostics
never raise: every step's outcome is appended to a DiagnosticsReport.
"""

from __future__ import annotations

import posixpath
import uuid

from dropship.connections.sftp import SFTPConfig
from dropship.exceptions import RemotePathNotFoundError, RemotePermissionError, TransferError
from dropship.transfer.session import TransferSession, join_remote
from dropship.transfer.types import DiagnosticsReport, DirectoryStatus, PathTestResult
from dropship.utils.logging import get_logger

logger = get_logger("dropship.transfer.diagnostics")

GENERAL_SUGGESTIONS = (
    "Check if the directory path is correct",
    "Verify the directory exists on the server",
    "Ensure the SFTP user has appropriate permissions",
    "Try using an absolute path (starting with /)",
)


def validate_sftp_settings(config: SFTPConfig) -> list[str]:
    """
    Check SFTP settings without touching the network.

    Returns:
        Every issue found (empty if the settings look usable)
    """
    issues = []
    if not config.host:
        issues.append("SFTP host is required")
    if not config.username:
        issues.append("SFTP username is required")
    if not config.password and not config.private_key_path:
        issues.append("SFTP password or private_key_path is required")
    if not 1 <= config.port <= 65535:
        issues.append(f"SFTP port must be between 1 and 65535 (current: {config.port})")

    remote = config.remote_directory
    if not remote:
        issues.append("SFTP remote_directory should be specified (use '/' for the login directory)")
    else:
        if "\\" in remote:
            issues.append(f"remote_directory should use forward slashes, not backslashes: '{remote}'")
        if ".." in remote:
            issues.append(f"remote_directory contains relative path notation (..): '{remote}'")
    return issues


def _ancestors(path: str) -> list[str]:
    parents = []
    current = posixpath.normpath(path) if path else "/"
    while True:
        parent = posixpath.dirname(current)
        if not parent or parent == current:
            break
        parents.append(parent)
        current = parent
    return parents


def troubleshoot_path(session: TransferSession, directory: str) -> list[PathTestResult]:
    """
    Probe a remote directory (and its parents) for existence, listing and write access.

    Statuses: DIRECTORY, NOT_FOUND, PERMISSION_DENIED, WRITABLE,
    WRITE_PERMISSION_DENIED, or "ERROR: <message>".
    """
    results = []

    for path in [directory, *_ancestors(directory)]:
        try:
            found = session.exists(path)
            results.append(PathTestResult(path, "DIRECTORY" if found else "NOT_FOUND"))
        except RemotePermissionError:
            results.append(PathTestResult(path, "PERMISSION_DENIED"))
        except TransferError as e:
            results.append(PathTestResult(path, f"ERROR: {e}"))

        try:
            items = session.list_directory(path)
            results.append(PathTestResult(path, "DIRECTORY", len(items)))
        except RemotePermissionError:
            results.append(PathTestResult(path, "PERMISSION_DENIED"))
        except RemotePathNotFoundError:
            results.append(PathTestResult(path, "NOT_FOUND"))
        except TransferError as e:
            results.append(PathTestResult(path, f"ERROR: {e}"))

    test_path = join_remote(directory, f".temp_test_{uuid.uuid4().hex}")
    try:
        session.upload(b"temp file", test_path)
    except RemotePermissionError:
        results.append(PathTestResult(directory, "WRITE_PERMISSION_DENIED"))
    except TransferError as e:
        results.append(PathTestResult(directory, f"ERROR: {e}"))
    else:
        results.append(PathTestResult(directory, "WRITABLE"))
        try:
            session.delete(test_path)
        except TransferError as e:
            logger.warning(f"Could not remove troubleshooting file {test_path}: {e}")

    return results


def run_diagnostics(session: TransferSession, config: SFTPConfig) -> DiagnosticsReport:
    """
    Walk through settings, connection, directory access, listing and write access.

    Args:
        session: A fresh session (disconnected on return)
        config: SFTP settings the session was built from

    Returns:
        DiagnosticsReport; `success` is False if any blocking step failed
    """
    report = DiagnosticsReport()
    logger.info("=== Starting SFTP diagnostics ===")
    report.add("Starting SFTP diagnostics...")

    try:
        # Step 1: settings
        issues = validate_sftp_settings(config)
        if issues:
            report.fail("[FAIL] Settings validation failed:")
            for issue in issues:
                report.add(f"   - {issue}")
            return report
        report.add("[OK] Settings validation passed")

        # Step 2: connection
        if not session.connect():
            report.fail(f"[FAIL] Connection to {config.host}:{config.port} failed (see log for details)")
            return report
        report.add("[OK] Basic SFTP connection successful")

        # Step 3: directory
        directory = config.remote_directory
        report.add(f"Testing remote directory: '{directory}'")
        validation = session.validate_directory(directory)
        _describe_validation(report, validation.status, directory, validation.message)

        if validation.status in (DirectoryStatus.NOT_FOUND, DirectoryStatus.PERMISSION_DENIED):
            report.add("Running path troubleshooting...")
            _describe_troubleshooting(report, troubleshoot_path(session, directory))

        # Step 4: listing
        if report.success:
            try:
                items = session.list_directory(directory, limit=10)
            except TransferError as e:
                report.fail(f"[FAIL] Directory listing failed: {e}")
            else:
                report.add(f"[OK] Directory listing successful ({len(items)} items found)")
                if items:
                    files = sum(1 for item in items if item.is_regular_file)
                    dirs = sum(1 for item in items if item.is_directory)
                    report.add(f"   - Files: {files}, Subdirectories: {dirs}")

        # Step 5: write access (informational)
        if report.success:
            if session.probe_write(directory):
                report.add("[OK] Write permissions confirmed")
            else:
                report.add("[WARN] Write permission test failed")
                report.add("   Uploads may fail due to insufficient permissions")
    except Exception as e:
        logger.error(f"Error during SFTP diagnostics: {e}", exc_info=True)
        report.fail(f"[FAIL] Diagnostics failed with error: {e}")
    finally:
        session.disconnect()

    if report.success:
        report.add("[OK] All diagnostics passed - SFTP is ready for file uploads")
    else:
        report.add("[FAIL] Diagnostics completed with issues - please resolve before uploading")
    logger.info("=== SFTP diagnostics completed ===")
    return report


def _describe_validation(report: DiagnosticsReport, status: DirectoryStatus, directory: str, message: str) -> None:
    if status == DirectoryStatus.OK:
        report.add(f"[OK] Remote directory exists: '{directory}'")
    elif status == DirectoryStatus.OK_VIA_LISTING:
        report.add(f"[WARN] Permission denied checking directory existence: '{directory}'")
        report.add("[OK] Directory appears to exist (can list contents)")
    elif status == DirectoryStatus.NOT_FOUND:
        report.fail(f"[FAIL] Remote directory does not exist: '{directory}'")
    elif status == DirectoryStatus.NOT_A_DIRECTORY:
        report.fail(f"[FAIL] Path exists but is not a directory: '{directory}'")
    elif status == DirectoryStatus.PERMISSION_DENIED:
        report.fail(f"[FAIL] Permission denied for both stat and list: '{directory}'")
    else:
        report.fail(f"[FAIL] Error accessing remote directory: {message}")


def _describe_troubleshooting(report: DiagnosticsReport, results: list[PathTestResult]) -> None:
    accessible = sorted({r.path for r in results if r.status == "DIRECTORY"})
    denied = sorted({r.path for r in results if r.status in ("PERMISSION_DENIED", "WRITE_PERMISSION_DENIED")})
    if accessible:
        report.add("Found accessible directories:")
        for path in accessible:
            report.add(f"   - {path}")
        report.add("Consider using one of these paths in your configuration")
    if denied:
        report.add("Paths with permission issues:")
        for path in denied:
            report.add(f"   - {path}")
    report.add("General suggestions:")
    for suggestion in GENERAL_SUGGESTIONS:
        report.add(f"   - {suggestion}")
