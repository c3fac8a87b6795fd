"""
Transfer session: lifecycle and primitives for one SFTP connection.

State machine::

    DISCONNECTED --connect()--> CONNECTED
    DISCONNECTED --connect() fails--> DISCONNECTED (reported, not retried)
    CONNECTED    --disconnect()--> DISCONNECTED
    CONNECTED    --connection-level error--> DISCONNECTED

Operations connect on demand (one attempt). Reconnect-on-failure policy
belongs to the caller (see `dropship.delivery.coordinator`).

Servers often grant stat, list and write permissions independently, so the
directory checks here never treat "cannot prove it exists" as "does not
exist", and never let a failed optional probe block an upload that a weaker
check already allowed.
"""

from __future__ import annotations

import io
import logging
import posixpath
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, TypeVar

import paramiko

from dropship.exceptions import (
    RemotePathNotFoundError,
    RemotePermissionError,
    SessionConnectError,
    TransferError,
)
from dropship.transfer.types import (
    DirectoryStatus,
    DirectoryValidation,
    RemoteAttributes,
    RemoteEntry,
    RemoteTransport,
    SessionState,
)
from dropship.utils.logging import get_logger

T = TypeVar("T")

# Errors after which the underlying transport cannot be trusted
CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    paramiko.SSHException,
    EOFError,
    ConnectionError,
    TimeoutError,
)


def join_remote(directory: str, name: str) -> str:
    """Join remote path segments with forward slashes."""
    left = directory.replace("\\", "/").rstrip("/")
    right = name.replace("\\", "/").lstrip("/")
    if not left:
        return f"/{right}" if directory.startswith(("/", "\\")) else right
    if not right:
        return left
    return posixpath.join(left, right)


class TransferSession:
    """
    One SFTP session with existence, listing, upload and delete primitives.

    Args:
        connection: Transport wrapper; `connect()` returns an SFTP client
        remote_directory: Default destination directory for uploads
        logger: Logger (default: "dropship.transfer")
        clock: Returns "now"; used for write-probe names
    """

    def __init__(
        self,
        connection: RemoteTransport,
        remote_directory: str = "/",
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.connection = connection
        self.remote_directory = remote_directory or "/"
        self.logger = logger or get_logger("dropship.transfer")
        self._clock = clock
        self._state = SessionState.DISCONNECTED

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    # --- Lifecycle -----------------------------------------------------------

    def connect(self) -> bool:
        """
        Open the session.

        Returns:
            True when connected; False on auth/network failure (logged)
        """
        if self.is_connected:
            return True
        try:
            self.connection.connect()
        except paramiko.AuthenticationException as e:
            self.logger.error(f"SFTP authentication failed: {e}")
        except paramiko.SSHException as e:
            self.logger.error(f"SFTP connection error: {e}")
        except OSError as e:
            self.logger.error(f"Network error connecting to SFTP server: {e}")
        except (EOFError, ValueError) as e:
            self.logger.error(f"Failed to connect to SFTP server: {e}")
        else:
            self._state = SessionState.CONNECTED
            self.logger.info("Connected to SFTP server")
            return True

        self._close_quietly()
        return False

    def disconnect(self) -> None:
        """Close the session; safe to call when already disconnected."""
        was_connected = self.is_connected
        self._close_quietly()
        if was_connected:
            self.logger.info("Disconnected from SFTP server")

    def _close_quietly(self) -> None:
        try:
            self.connection.close()
        except Exception as e:
            self.logger.warning(f"Error while closing SFTP connection: {e}")
        finally:
            self._state = SessionState.DISCONNECTED

    def __enter__(self) -> TransferSession:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.disconnect()

    def _client(self) -> Any:
        if not self.is_connected and not self.connect():
            raise SessionConnectError("SFTP session is not connected")
        return self.connection.connect()

    def _call(self, operation: str, path: str, fn: Callable[[Any], T]) -> T:
        """Run `fn(client)`, mapping paramiko errors onto the session's taxonomy."""
        client = self._client()
        try:
            return fn(client)
        except PermissionError as e:
            raise RemotePermissionError(path, f"Permission denied during {operation}: {path}") from e
        except FileNotFoundError as e:
            raise RemotePathNotFoundError(path, f"Remote path not found during {operation}: {path}") from e
        except CONNECTION_ERRORS as e:
            self.logger.warning(f"Connection lost during {operation} ({path}): {e}")
            self._close_quietly()
            raise TransferError(f"{operation} failed for {path}: {e}") from e
        except OSError as e:
            raise TransferError(f"{operation} failed for {path}: {e}") from e

    # --- Primitives ----------------------------------------------------------

    def exists(self, path: str) -> bool:
        """
        Check a remote path exists.

        Raises:
            RemotePermissionError: If the server refuses to stat the path
        """

        def _exists(client: Any) -> bool:
            try:
                client.stat(path)
            except FileNotFoundError:
                return False
            return True

        return self._call("exists", path, _exists)

    def list_directory(self, path: str, limit: int | None = None) -> list[RemoteEntry]:
        """List a remote directory (without `.` and `..`), optionally only the first `limit` entries."""

        def _list(client: Any) -> list[RemoteEntry]:
            # listdir_attr drains the listing, so the directory handle is always closed
            entries = [
                RemoteEntry.from_attributes(attr)
                for attr in client.listdir_attr(path)
                if getattr(attr, "filename", None) not in (".", "..")
            ]
            return entries if limit is None else entries[:limit]

        return self._call("list", path, _list)

    def get_attributes(self, path: str) -> RemoteAttributes:
        return self._call("stat", path, lambda client: RemoteAttributes.from_attributes(client.stat(path)))

    def upload(self, data: bytes | BinaryIO, remote_path: str) -> None:
        """
        Transfer bytes to `remote_path`.

        Completion is not proof of delivery; callers verify with `exists`.
        """
        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        # confirm=False: size verification is done by the caller, as a warning only
        self._call("upload", remote_path, lambda client: client.putfo(stream, remote_path, confirm=False))

    def delete(self, path: str) -> None:
        self._call("delete", path, lambda client: client.remove(path))

    # --- Directory checks ----------------------------------------------------

    def validate_directory(self, directory: str | None = None) -> DirectoryValidation:
        """
        Check a remote directory is usable as an upload destination.

        A permission-denied `exists` falls back to listing one entry. Passing
        validation does not prove write access; see `probe_write`.
        """
        directory = directory or self.remote_directory
        try:
            try:
                found = self.exists(directory)
            except RemotePermissionError:
                self.logger.warning(f"Permission denied when checking directory existence: {directory}")
                return self._validate_by_listing(directory)

            if not found:
                self.logger.error(f"Remote directory does not exist: {directory}")
                return DirectoryValidation(DirectoryStatus.NOT_FOUND, directory, "Directory does not exist")

            try:
                attributes = self.get_attributes(directory)
            except TransferError as e:
                # Existence is already established; attributes are optional
                self.logger.warning(f"Could not read attributes of {directory}, continuing: {e}")
                return DirectoryValidation(DirectoryStatus.OK, directory, "Exists (attributes unavailable)")

            if not attributes.is_directory:
                self.logger.error(f"Remote path exists but is not a directory: {directory}")
                return DirectoryValidation(DirectoryStatus.NOT_A_DIRECTORY, directory, "Path is not a directory")

            return DirectoryValidation(DirectoryStatus.OK, directory, "Directory exists")
        except TransferError as e:
            self.logger.error(f"Error validating remote directory {directory}: {e}")
            return DirectoryValidation(DirectoryStatus.ERROR, directory, str(e))

    def _validate_by_listing(self, directory: str) -> DirectoryValidation:
        try:
            self.list_directory(directory, limit=1)
        except RemotePermissionError:
            self.logger.error(f"Permission denied listing directory contents: {directory}")
            return DirectoryValidation(
                DirectoryStatus.PERMISSION_DENIED, directory, "Permission denied for both stat and list"
            )
        except RemotePathNotFoundError:
            self.logger.error(f"Remote directory not found: {directory}")
            return DirectoryValidation(DirectoryStatus.NOT_FOUND, directory, "Directory does not exist")
        self.logger.info(f"Directory appears to exist (can list contents): {directory}")
        return DirectoryValidation(DirectoryStatus.OK_VIA_LISTING, directory, "Exists (confirmed by listing)")

    def probe_write(self, directory: str | None = None) -> bool:
        """
        Best-effort write check: upload, confirm and delete a temp file.

        Failures are warnings. Some servers accept uploads but refuse the
        stat or delete, so False does not mean uploads will fail.
        """
        directory = directory or self.remote_directory
        name = f".write_test_{self._clock():%Y%m%d%H%M%S}_{uuid.uuid4().hex}"
        test_path = join_remote(directory, name)
        self.logger.debug(f"Testing write permissions with temporary file: {test_path}")
        try:
            self.upload(b"write test", test_path)
            if not self.exists(test_path):
                self.logger.warning("Write permission test failed - test file was not created")
                return False
            self.delete(test_path)
        except RemotePermissionError as e:
            self.logger.warning(f"Write permission denied in remote directory {directory}: {e}")
            return False
        except TransferError as e:
            self.logger.warning(f"Write permission test failed with error: {e}")
            return False
        self.logger.debug("Write permission test successful - test file created and deleted")
        return True

    # --- High-level operations -----------------------------------------------

    def upload_file(self, local_path: str | Path, remote_name: str | None = None) -> bool:
        """
        Upload a local file into the remote directory and verify it arrived.

        Success means the destination exists after the transfer. A size
        mismatch or unreadable remote attributes only produce a warning.

        Returns:
            True if the file is confirmed on the server; failures are logged
        """
        local_path = Path(local_path)
        remote_path = join_remote(self.remote_directory, remote_name or local_path.name)
        try:
            if not local_path.is_file():
                self.logger.error(f"Local file not found: {local_path}")
                return False

            if not self.is_connected and not self.connect():
                self.logger.error("Cannot upload file - SFTP connection failed")
                return False

            validation = self.validate_directory(self.remote_directory)
            if not validation.ok:
                self.logger.error(
                    f"Cannot upload file - remote directory validation failed: {self.remote_directory} "
                    f"({validation.status.value})"
                )
                return False

            local_size = local_path.stat().st_size
            self.logger.info(f"Uploading file: {local_path} -> {remote_path} ({local_size} bytes)")
            with open(local_path, "rb") as fh:
                self.upload(fh, remote_path)

            if not self.exists(remote_path):
                self.logger.error("Upload verification failed: remote file not found after upload")
                return False

            self.logger.info(f"Successfully uploaded file: {remote_path}")
            self._check_remote_size(remote_path, local_size)
            return True
        except RemotePermissionError as e:
            self.logger.error(f"Permission denied uploading file: {local_path} -> {remote_path}: {e}")
        except RemotePathNotFoundError as e:
            self.logger.error(f"Remote path not found during upload: {local_path} -> {remote_path}: {e}")
        except Exception as e:
            self.logger.error(f"Error uploading file {local_path}: {e}", exc_info=True)
        return False

    def _check_remote_size(self, remote_path: str, local_size: int) -> None:
        try:
            attributes = self.get_attributes(remote_path)
        except TransferError as e:
            self.logger.warning(f"Could not verify remote file attributes: {e}")
            return
        if attributes.size != local_size:
            self.logger.warning(f"File size mismatch: local={local_size}, remote={attributes.size}")

    def test_connection(self) -> bool:
        """
        Connect, check the remote directory, probe write access, disconnect.

        Returns:
            True if the directory is usable (a failed write probe only warns)
        """
        self.logger.info("Testing SFTP connection...")
        if not self.connect():
            return False
        try:
            validation = self.validate_directory(self.remote_directory)
            if not validation.ok:
                self.logger.error(
                    f"Remote directory '{self.remote_directory}' is not usable: {validation.message}"
                )
                return False

            try:
                items = self.list_directory(self.remote_directory, limit=10)
            except TransferError as e:
                self.logger.warning(f"Could not list remote directory '{self.remote_directory}': {e}")
            else:
                self.logger.info(
                    f"Remote directory '{self.remote_directory}' is accessible, found {len(items)} items"
                )
                for item in items[:5]:
                    kind = "DIR" if item.is_directory else "FILE" if item.is_regular_file else "OTHER"
                    self.logger.debug(f"  [{kind}] {item.name} ({item.size} bytes, {item.modified_at})")

            if not self.probe_write(self.remote_directory):
                self.logger.warning(
                    f"Write permission test failed for '{self.remote_directory}'; uploads may fail"
                )
            self.logger.info("SFTP connection test successful")
            return True
        finally:
            self.disconnect()
