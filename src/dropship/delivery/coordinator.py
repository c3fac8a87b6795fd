"""
Delivery coordinator: the tick loop tying source, encoder, files and session.

One tick (`run_cycle`):

1. fetch pending records
2. encode each record and write it to a staging file
3. upload the files, retrying each with exponential backoff
4. mark the uploaded records as processed
5. archive the uploaded files (when `auto_archive` is on)
6. discard staging files whose upload failed (their records stay pending)
7. purge old archives, at most once per `cleanup_interval`

A record is only marked after its file was confirmed on the server. If the
mark fails the file is still archived and the record may be delivered again
on a later tick.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from dropship.encoding.encoder import MessageEncoder
from dropship.files.lifecycle import FileLifecycleManager, UploadFile
from dropship.retry.policy import Backoff, BackoffPolicy, RetryState
from dropship.sources.base import DataSource, SourceRecord
from dropship.transfer.session import TransferSession
from dropship.utils.logging import get_logger

DEFAULT_CLEANUP_INTERVAL_S = 3600.0


@dataclass
class CycleSummary:
    """Counters for one tick."""

    fetched: int = 0
    encoded: int = 0
    written: int = 0
    uploaded: int = 0
    failed: int = 0
    marked: int = 0
    archived: int = 0
    cleaned: int = 0
    cancelled: bool = False

    def __str__(self) -> str:
        text = (
            f"fetched={self.fetched} encoded={self.encoded} written={self.written} "
            f"uploaded={self.uploaded} failed={self.failed} marked={self.marked} "
            f"archived={self.archived} cleaned={self.cleaned}"
        )
        return text + " (cancelled)" if self.cancelled else text


class DeliveryCoordinator:
    """
    Runs delivery ticks until stopped.

    Args:
        source: Record store
        encoder: Message encoder for the configured format
        files: Staging/archive manager
        session: Remote transfer session (one per process)
        backoff_policy: Retry configuration for uploads
        interval: Seconds between ticks
        auto_archive: Archive uploaded files; otherwise they stay in staging
        retention_days: Archive retention; None disables cleanup
        cleanup_interval: Minimum seconds between archive cleanups
        stop_event: Shared shutdown signal; all waits use it
        logger: Logger (default: "dropship.delivery")
        monotonic: Clock for the cleanup schedule (tests)
    """

    def __init__(
        self,
        source: DataSource,
        encoder: MessageEncoder,
        files: FileLifecycleManager,
        session: TransferSession,
        backoff_policy: BackoffPolicy | None = None,
        interval: float = 60.0,
        auto_archive: bool = True,
        retention_days: int | None = 30,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL_S,
        stop_event: threading.Event | None = None,
        logger: logging.Logger | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.encoder = encoder
        self.files = files
        self.session = session
        self.backoff_policy = backoff_policy or BackoffPolicy()
        self.interval = interval
        self.auto_archive = auto_archive
        self.retention_days = retention_days
        self.cleanup_interval = cleanup_interval
        self.stop_event = stop_event or threading.Event()
        self.logger = logger or get_logger("dropship.delivery")
        self._monotonic = monotonic
        self._last_cleanup: float | None = None

    # --- Upload with retry ---------------------------------------------------

    def upload_with_retry(
        self,
        files: Sequence[UploadFile],
        max_retries: int | None = None,
        initial_delay: float | None = None,
    ) -> list[bool]:
        """
        Upload files in order, each with up to `max_retries` retries.

        The backoff delay carries over from one file to the next unless the
        policy has `reset_per_file`. A stop request during a backoff wait
        abandons the current file and every file after it.

        Args:
            files: Files to upload
            max_retries: Override for the policy's max_retries
            initial_delay: Override for the policy's initial_delay (seconds)

        Returns:
            One flag per file, True if the upload was confirmed
        """
        policy = self._policy(max_retries, initial_delay)
        backoff = policy.start()
        results: list[bool] = []

        for index, upload in enumerate(files):
            if self.stop_event.is_set():
                self.logger.warning(f"Stop requested, skipping {len(files) - index} remaining upload(s)")
                results.extend([False] * (len(files) - index))
                break

            if policy.reset_per_file:
                backoff.reset()

            state = RetryState(name=upload.remote_name)
            results.append(self._upload_one(upload, policy, backoff, state))

            if state.cancelled:
                remaining = len(files) - index - 1
                if remaining:
                    self.logger.warning(f"Stop requested, abandoning {remaining} remaining upload(s)")
                results.extend([False] * remaining)
                break

        return results

    def _policy(self, max_retries: int | None, initial_delay: float | None) -> BackoffPolicy:
        policy = self.backoff_policy
        if max_retries is not None:
            policy = dataclasses.replace(policy, max_retries=max_retries)
        if initial_delay is not None:
            policy = dataclasses.replace(policy, initial_delay=initial_delay)
        return policy

    def _upload_one(self, upload: UploadFile, policy: BackoffPolicy, backoff: Backoff, state: RetryState) -> bool:
        name = upload.remote_name
        for attempt in range(1, policy.max_attempts + 1):
            if self._attempt(upload):
                state.record_attempt()
                state.mark_success()
                if attempt > 1:
                    self.logger.info(f"Upload of {name} succeeded on attempt {attempt}/{policy.max_attempts}")
                return True

            state.record_attempt(error="upload failed")
            if attempt == policy.max_attempts:
                break

            delay = backoff.next_delay()
            self.logger.warning(
                f"Upload attempt {attempt}/{policy.max_attempts} failed for {name}, retrying in {delay:.1f}s"
            )
            # Force a fresh connection for the next attempt
            self.session.disconnect()
            state.record_delay(delay)
            if self.stop_event.wait(delay):
                state.cancelled = True
                self.logger.warning(f"Stop requested during backoff, giving up on {name}")
                return False

        self.logger.error(f"Upload failed after {state.total_attempts} attempt(s): {name}")
        return False

    def _attempt(self, upload: UploadFile) -> bool:
        try:
            return self.session.upload_file(upload.local_path, upload.remote_name)
        except Exception as e:
            self.logger.error(f"Unexpected error uploading {upload.remote_name}: {e}", exc_info=True)
            return False

    # --- Tick ----------------------------------------------------------------

    def run_cycle(self) -> CycleSummary:
        """
        Run one delivery tick. Never raises; stage failures are logged.

        Returns:
            Counters for this tick
        """
        summary = CycleSummary()

        try:
            records = self.source.fetch_pending()
        except Exception as e:
            self.logger.error(f"Failed to retrieve pending records: {e}", exc_info=True)
            records = []
        summary.fetched = len(records)

        if records:
            staged = self._stage(records, summary)
            if staged:
                self._deliver(staged, summary)
        else:
            self.logger.debug("No pending records")

        summary.cancelled = summary.cancelled or self.stop_event.is_set()
        self._maybe_cleanup(summary)

        if summary.fetched or summary.cleaned:
            self.logger.info(f"Cycle complete: {summary}")
        return summary

    def _stage(self, records: Sequence[SourceRecord], summary: CycleSummary) -> list[tuple[SourceRecord, UploadFile]]:
        staged: list[tuple[SourceRecord, UploadFile]] = []
        for record in records:
            if self.stop_event.is_set():
                summary.cancelled = True
                break
            try:
                message = self.encoder.encode(record)
            except Exception as e:
                self.logger.error(f"Failed to encode record {record.record_id}: {e}")
                continue
            summary.encoded += 1

            try:
                upload = self.files.create_file(message)
            except Exception as e:
                self.logger.error(f"Failed to write file for record {record.record_id}: {e}", exc_info=True)
                continue
            summary.written += 1
            staged.append((record, upload))
        return staged

    def _deliver(self, staged: list[tuple[SourceRecord, UploadFile]], summary: CycleSummary) -> None:
        try:
            results = self.upload_with_retry([upload for _, upload in staged])
        finally:
            self.session.disconnect()

        delivered = [item for item, ok in zip(staged, results, strict=True) if ok]
        failed = [item for item, ok in zip(staged, results, strict=True) if not ok]
        summary.uploaded = len(delivered)
        summary.failed = len(failed)

        if delivered:
            record_ids = [record.record_id for record, _ in delivered]
            try:
                self.source.mark_processed(record_ids)
                summary.marked = len(record_ids)
            except Exception as e:
                self.logger.error(
                    f"Uploaded {len(record_ids)} record(s) but could not mark them as processed "
                    f"(ids: {', '.join(record_ids)}); they may be delivered again. "
                    f"Operator attention required: {e}",
                    exc_info=True,
                )

        for _, upload in delivered:
            if not self.auto_archive:
                break
            try:
                self.files.archive(upload.local_path)
                summary.archived += 1
            except Exception as e:
                self.logger.error(f"Uploaded file {upload.remote_name} could not be archived: {e}")

        for _, upload in failed:
            self.files.discard(upload.local_path)

    def _maybe_cleanup(self, summary: CycleSummary) -> None:
        if self.retention_days is None:
            return
        now = self._monotonic()
        if self._last_cleanup is not None and now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now
        try:
            summary.cleaned = self.files.cleanup_archives(self.retention_days)
        except Exception as e:
            self.logger.error(f"Archive cleanup failed: {e}", exc_info=True)

    # --- Loop ----------------------------------------------------------------

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Tick, then wait `interval` on the stop event; return once it is set."""
        if stop_event is not None:
            self.stop_event = stop_event
        self.logger.info(f"Delivery loop started (interval {self.interval:g}s)")
        started = datetime.now()
        ticks = 0
        while not self.stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                self.logger.error(f"Unexpected error in delivery cycle: {e}", exc_info=True)
            ticks += 1
            if self.stop_event.wait(self.interval):
                break
        self.logger.info(f"Delivery loop stopped after {ticks} tick(s), running since {started:%Y-%m-%d %H:%M:%S}")
