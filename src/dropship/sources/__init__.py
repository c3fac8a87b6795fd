"""
Record stores the delivery pipeline reads from and marks.
"""

from dropship.sources.base import DataSource, SourceRecord, SourceStatistics
from dropship.sources.duckdb import DuckDBDataSource, DuckDBSourceConfig
from dropship.sources.memory import InMemoryDataSource, sample_records

__all__ = [
    "DataSource",
    "DuckDBDataSource",
    "DuckDBSourceConfig",
    "InMemoryDataSource",
    "SourceRecord",
    "SourceStatistics",
    "sample_records",
]
