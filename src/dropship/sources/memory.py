"""
In-memory data source, for tests, previews and dry runs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from dropship.sources.base import SourceRecord, SourceStatistics
from dropship.sources.derived import weight_ratio
from dropship.utils.logging import get_logger


def sample_records(count: int = 3, start: datetime | None = None) -> list[SourceRecord]:
    """Generate item-measurement records shaped like a typical warehouse feed."""
    start = start or datetime(2024, 1, 1, 8, 0, 0)
    records = []
    for i in range(1, count + 1):
        length, width, height = Decimal(30 + i), Decimal(20 + i), Decimal(10 + i)
        weight = Decimal(1500 + 250 * i)
        records.append(
            SourceRecord(
                record_id=str(i),
                fields={
                    "Id": i,
                    "ItemDateTime": start + timedelta(minutes=5 * i),
                    "Barcode": f"ITEM{i:06d}",
                    "Length": length,
                    "Width": width,
                    "Height": height,
                    "Weight": weight,
                    "Weight_Ratio": weight_ratio(length, width, height, weight),
                    "LiquidVolume": Decimal("0.00"),
                    "ItemCount": 1,
                    "Complete": True,
                },
            )
        )
    return records


class InMemoryDataSource:
    """
    List-backed data source.

    Records are pending until marked; order is insertion order.
    """

    def __init__(
        self,
        records: Iterable[SourceRecord | Mapping[str, Any]] = (),
        batch_size: int | None = None,
        id_field: str = "Id",
        timestamp_field: str | None = "ItemDateTime",
        logger: logging.Logger | None = None,
    ):
        self.batch_size = batch_size
        self.id_field = id_field
        self.timestamp_field = timestamp_field
        self.logger = logger or get_logger("dropship.sources.memory")
        self._records: list[SourceRecord] = []
        self._sent: set[str] = set()
        for record in records:
            self.add(record)

    @classmethod
    def with_samples(cls, count: int = 3, **kwargs: Any) -> InMemoryDataSource:
        return cls(sample_records(count), **kwargs)

    def add(self, record: SourceRecord | Mapping[str, Any]) -> SourceRecord:
        if not isinstance(record, SourceRecord):
            if self.id_field not in record:
                raise ValueError(f"Record is missing id field '{self.id_field}'")
            record = SourceRecord(record_id=record[self.id_field], fields=record)
        self._records.append(record)
        return record

    @property
    def sent_ids(self) -> frozenset[str]:
        return frozenset(self._sent)

    def fetch_pending(self) -> list[SourceRecord]:
        pending = [r for r in self._records if r.record_id not in self._sent]
        if self.batch_size is not None:
            pending = pending[: self.batch_size]
        self.logger.debug(f"Fetched {len(pending)} pending record(s)")
        return pending

    def mark_processed(self, record_ids: Iterable[str]) -> None:
        ids = {str(record_id) for record_id in record_ids}
        known = {r.record_id for r in self._records}
        unknown = ids - known
        if unknown:
            self.logger.warning(f"Ignoring unknown record id(s): {', '.join(sorted(unknown))}")
        self._sent.update(ids & known)

    def test_connection(self) -> bool:
        return True

    def get_statistics(self) -> SourceStatistics:
        unsent = [r for r in self._records if r.record_id not in self._sent]
        return SourceStatistics(
            total=len(self._records),
            unsent=len(unsent),
            sent=len(self._records) - len(unsent),
            oldest_unsent=self._min_timestamp(unsent),
            newest=self._max_timestamp(self._records),
        )

    def _timestamps(self, records: list[SourceRecord]) -> list[datetime]:
        if not self.timestamp_field:
            return []
        return [
            r.fields[self.timestamp_field]
            for r in records
            if isinstance(r.fields.get(self.timestamp_field), datetime)
        ]

    def _min_timestamp(self, records: list[SourceRecord]) -> datetime | None:
        return min(self._timestamps(records), default=None)

    def _max_timestamp(self, records: list[SourceRecord]) -> datetime | None:
        return max(self._timestamps(records), default=None)
