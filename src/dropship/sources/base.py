"""
Data source protocol and record types.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class SourceRecord:
    """A pending record: id plus its field values. Immutable once retrieved."""

    record_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "record_id", str(self.record_id))
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))


@dataclass(frozen=True)
class SourceStatistics:
    total: int = 0
    unsent: int = 0
    sent: int = 0
    oldest_unsent: datetime | None = None
    newest: datetime | None = None


@runtime_checkable
class DataSource(Protocol):
    """
    Capability interface the coordinator needs from a record store.

    Implementations must not depend on the coordinator; the coordinator does
    not depend on any query language or schema.
    """

    def fetch_pending(self) -> list[SourceRecord]: ...

    def mark_processed(self, record_ids: Iterable[str]) -> None: ...

    def test_connection(self) -> bool: ...

    def get_statistics(self) -> SourceStatistics: ...
