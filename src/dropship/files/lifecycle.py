"""
Staging, archiving and retention of message files.

Files are written into a staging directory, uploaded, then archived under
`archive_dir/<YYYY-MM-DD>/`. Archiving copies with exclusive create and only
then deletes the source, so an existing archive is never overwritten and a
file that could not be copied stays in staging.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from dropship.exceptions import ArchiveError
from dropship.files.naming import NamingPolicy
from dropship.utils.logging import get_logger

BUCKET_FORMAT = "%Y-%m-%d"

# Numeric suffixes tried before falling back to a random token
MAX_NUMERIC_SUFFIX = 10


@dataclass(frozen=True)
class UploadFile:
    local_path: Path
    remote_name: str
    created_at: datetime


@dataclass(frozen=True)
class ArchiveEntry:
    original_name: str
    archived_path: Path
    archived_at: datetime


def _token() -> str:
    return uuid.uuid4().hex[:8]


class FileLifecycleManager:
    """
    Creates, archives and purges message files.

    Args:
        staging_dir: Where new message files are written
        archive_dir: Root of the date-bucketed archive
        naming: File naming policy (default: upload_<timestamp>.txt)
        encoding: Text encoding for file content
        logger: Logger (default: "dropship.files")
        clock: Returns "now"; injectable for tests
    """

    def __init__(
        self,
        staging_dir: str | Path,
        archive_dir: str | Path,
        naming: NamingPolicy | None = None,
        encoding: str = "utf-8",
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.staging_dir = Path(staging_dir)
        self.archive_dir = Path(archive_dir)
        self.naming = naming or NamingPolicy()
        self.encoding = encoding
        self.logger = logger or get_logger("dropship.files")
        self._clock = clock

    def ensure_directories(self) -> None:
        """Create staging and archive roots. Raises OSError if impossible."""
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    # --- Staging -------------------------------------------------------------

    def create_file(self, content: str, created_at: datetime | None = None) -> UploadFile:
        """
        Write a message into a new, uniquely named staging file.

        Args:
            content: Message text
            created_at: Timestamp used in the file name (default: now)

        Returns:
            The created UploadFile
        """
        created_at = created_at or self._clock()
        self.staging_dir.mkdir(parents=True, exist_ok=True)

        path = self._unique_staging_path(self.naming.file_name(created_at, self.logger))
        tmp_path = path.with_name(path.name + ".part")
        tmp_path.write_text(content, encoding=self.encoding, newline="")
        os.replace(tmp_path, path)

        self.logger.info(f"Created file {path.name} ({len(content)} chars)")
        self.logger.debug(f"File content: '{content}'")
        return UploadFile(local_path=path, remote_name=path.name, created_at=created_at)

    def _unique_staging_path(self, file_name: str) -> Path:
        candidate = self.staging_dir / file_name
        if not candidate.exists():
            return candidate
        stem, ext = candidate.stem, candidate.suffix
        counter = 1
        while candidate.exists():
            candidate = self.staging_dir / f"{stem}_{counter}{ext}"
            counter += 1
        return candidate

    def discard(self, path: str | Path) -> None:
        """Remove a staging file whose upload failed."""
        path = Path(path)
        try:
            path.unlink(missing_ok=True)
            self.logger.debug(f"Discarded staging file {path.name}")
        except OSError as e:
            self.logger.warning(f"Could not remove staging file {path}: {e}")

    # --- Archive -------------------------------------------------------------

    def archive(self, path: str | Path, uploaded_at: datetime | None = None) -> ArchiveEntry:
        """
        Archive a delivered file into its date bucket.

        The destination is `<stem>_uploaded_<HHMMSS><ext>`; on collision
        `_1`..`_10` are tried, then a random token. If the exclusive copy
        still finds the destination taken, one more token is tried.

        Args:
            path: Staging file to archive
            uploaded_at: When the upload completed (default: now)

        Returns:
            ArchiveEntry describing where the file went

        Raises:
            ArchiveError: If the file could not be copied; the source is kept
        """
        source = Path(path)
        if not source.is_file():
            self.logger.warning(f"Source file not found: {source}")
            raise ArchiveError(str(source), "source file not found")

        uploaded_at = uploaded_at or self._clock()
        bucket = self.archive_dir / uploaded_at.strftime(BUCKET_FORMAT)
        base = f"{source.stem}_uploaded_{uploaded_at:%H%M%S}"
        ext = source.suffix

        try:
            if not bucket.exists():
                bucket.mkdir(parents=True, exist_ok=True)
                self.logger.debug(f"Created date archive directory: {bucket}")

            destination = self._resolve_destination(bucket, base, ext)
            try:
                self._copy_exclusive(source, destination)
            except FileExistsError:
                # Another writer took the name between the check and the copy
                destination = bucket / f"{base}_{_token()}{ext}"
                self.logger.warning(f"Archive name collision for {source.name}, retrying as {destination.name}")
                self._copy_exclusive(source, destination)
        except OSError as e:
            self.logger.error(f"Failed to archive file {source}: {e}")
            raise ArchiveError(str(source), str(e), cause=e) from e

        try:
            source.unlink()
        except OSError as e:
            self.logger.warning(f"Archived {source.name} but could not remove it from staging: {e}")

        self.logger.info(f"Archived file: {source.name} -> {destination.name}")
        return ArchiveEntry(original_name=source.name, archived_path=destination, archived_at=uploaded_at)

    def _resolve_destination(self, bucket: Path, base: str, ext: str) -> Path:
        candidate = bucket / f"{base}{ext}"
        if not candidate.exists():
            return candidate
        for counter in range(1, MAX_NUMERIC_SUFFIX + 1):
            candidate = bucket / f"{base}_{counter}{ext}"
            if not candidate.exists():
                return candidate
        return bucket / f"{base}_{_token()}{ext}"

    @staticmethod
    def _copy_exclusive(source: Path, destination: Path) -> None:
        """Copy, failing with FileExistsError rather than overwriting."""
        with open(source, "rb") as src:
            dst = open(destination, "xb")
            try:
                with dst:
                    shutil.copyfileobj(src, dst)
            except BaseException:
                destination.unlink(missing_ok=True)
                raise

    # --- Retention -----------------------------------------------------------

    def cleanup_archives(self, retention_days: int, now: datetime | None = None) -> int:
        """
        Delete archive buckets older than the retention window.

        Args:
            retention_days: Buckets dated before `today - retention_days` go
            now: Override for the current time (tests)

        Returns:
            Number of files deleted
        """
        if retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        if not self.archive_dir.exists():
            return 0

        cutoff = ((now or self._clock()) - timedelta(days=retention_days)).date()
        deleted = 0

        for bucket in sorted(self.archive_dir.iterdir()):
            if not bucket.is_dir():
                continue
            try:
                bucket_date = datetime.strptime(bucket.name, BUCKET_FORMAT).date()
            except ValueError:
                continue
            if bucket_date >= cutoff:
                continue

            for item in sorted(bucket.rglob("*"), reverse=True):
                try:
                    if item.is_dir():
                        item.rmdir()
                    else:
                        item.unlink()
                        deleted += 1
                except OSError as e:
                    self.logger.warning(f"Could not delete archived item {item}: {e}")
            try:
                bucket.rmdir()
            except OSError as e:
                self.logger.warning(f"Could not remove archive bucket {bucket.name}: {e}")

        if deleted:
            self.logger.info(f"Archive cleanup removed {deleted} files older than {cutoff}")
        return deleted
