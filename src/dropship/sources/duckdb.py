"""
DuckDB-backed data source via ibis.

Pending records are rows whose sent flag is false (and, when a valid-flag
column is configured and present, whose valid flag is true), oldest first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import ibis

from dropship.exceptions import DataSourceError
from dropship.sources.base import SourceRecord, SourceStatistics
from dropship.sources.derived import has_measurements, with_weight_ratio
from dropship.utils.logging import get_logger
from dropship.utils.sql_escape import escape_identifier, escape_sql_string, escape_table_name


@dataclass(frozen=True)
class DuckDBSourceConfig:
    path: str = ":memory:"
    table: str = "item_log"
    id_column: str = "Id"
    sent_column: str = "Sent"
    valid_column: str | None = "Valid"
    timestamp_column: str | None = "ItemDateTime"
    batch_size: int | None = None
    # Computed from Length/Width/Height/Weight when those columns exist; None disables
    weight_ratio_field: str | None = "Weight_Ratio"

    def __post_init__(self):
        if not self.table:
            raise ValueError("table must not be empty")
        if not self.id_column or not self.sent_column:
            raise ValueError("id_column and sent_column must not be empty")
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> DuckDBSourceConfig:
        batch_size = cfg.get("batch_size")
        return cls(
            path=str(cfg.get("path", ":memory:")),
            table=str(cfg.get("table", "item_log")),
            id_column=str(cfg.get("id_column", "Id")),
            sent_column=str(cfg.get("sent_column", "Sent")),
            valid_column=cfg.get("valid_column", "Valid") or None,
            timestamp_column=cfg.get("timestamp_column", "ItemDateTime") or None,
            batch_size=int(batch_size) if batch_size is not None else None,
            weight_ratio_field=cfg.get("weight_ratio_field", "Weight_Ratio") or None,
        )


class DuckDBDataSource:
    """
    Data source reading a DuckDB table through the ibis DuckDB backend.

    Args:
        config: Table and column mapping
        connection: Existing ibis backend (default: connect to `config.path`)
        logger: Logger (default: "dropship.sources.duckdb")
    """

    def __init__(
        self,
        config: DuckDBSourceConfig,
        connection: Any | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self.logger = logger or get_logger("dropship.sources.duckdb")
        self._connection = connection

    @property
    def connection(self) -> Any:
        """ibis DuckDB backend (lazy)."""
        if self._connection is None:
            path = self.config.path
            if path == ":memory:":
                self._connection = ibis.duckdb.connect()
            else:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
                try:
                    self._connection = ibis.duckdb.connect(path)
                except Exception as e:
                    raise DataSourceError(f"Cannot connect to DuckDB database '{path}': {e}") from e
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.disconnect()
            self._connection = None

    # --- Query helpers -------------------------------------------------------

    @property
    def _table(self) -> str:
        return escape_table_name(self.config.table)

    def _execute(self, sql: str) -> Any:
        return self.connection.raw_sql(sql)

    def _rows(self, sql: str) -> list[dict[str, Any]]:
        result = self._execute(sql)
        columns = [desc[0] for desc in result.description]
        return [dict(zip(columns, row, strict=False)) for row in result.fetchall()]

    def _scalar(self, sql: str) -> Any:
        row = self._execute(sql).fetchone()
        return row[0] if row else None

    def _columns(self) -> set[str]:
        table = self.config.table.split(".")[-1]
        rows = self._rows(
            f"SELECT column_name FROM information_schema.columns WHERE table_name = {escape_sql_string(table)}"
        )
        return {str(r["column_name"]).lower() for r in rows}

    def _has_column(self, columns: set[str], name: str | None) -> bool:
        return name is not None and name.lower() in columns

    def _pending_condition(self, columns: set[str]) -> str:
        cfg = self.config
        condition = f"{escape_identifier(cfg.sent_column)} = false"
        if cfg.valid_column:
            if self._has_column(columns, cfg.valid_column):
                condition += f" AND {escape_identifier(cfg.valid_column)} = true"
            else:
                self.logger.warning(
                    f"Valid column '{cfg.valid_column}' not found; selecting records regardless of validity"
                )
        return condition

    # --- DataSource ----------------------------------------------------------

    def fetch_pending(self) -> list[SourceRecord]:
        """
        Retrieve pending records, oldest first.

        Raises:
            DataSourceError: If the table cannot be queried
        """
        cfg = self.config
        try:
            columns = self._columns()
            if not columns:
                raise DataSourceError(f"Table '{cfg.table}' not found")
            if not self._has_column(columns, cfg.sent_column):
                raise DataSourceError(f"Table '{cfg.table}' has no '{cfg.sent_column}' column")

            order = [escape_identifier(cfg.id_column)]
            if self._has_column(columns, cfg.timestamp_column):
                order.insert(0, escape_identifier(str(cfg.timestamp_column)))
            sql = f"SELECT * FROM {self._table} WHERE {self._pending_condition(columns)} ORDER BY {', '.join(order)}"
            if cfg.batch_size is not None:
                sql += f" LIMIT {cfg.batch_size}"
            rows = self._rows(sql)
        except DataSourceError:
            raise
        except Exception as e:
            raise DataSourceError(f"Error retrieving records from '{cfg.table}': {e}") from e

        id_key = next((k for k in rows[0] if k.lower() == cfg.id_column.lower()), cfg.id_column) if rows else None
        if cfg.weight_ratio_field and rows and has_measurements(rows[0]):
            rows = [with_weight_ratio(row, cfg.weight_ratio_field) for row in rows]
        records = [SourceRecord(record_id=row[id_key], fields=row) for row in rows]
        self.logger.info(f"Retrieved {len(records)} pending record(s) from '{cfg.table}'")
        return records

    def mark_processed(self, record_ids: Iterable[str]) -> None:
        """
        Set the sent flag on the given records.

        Raises:
            DataSourceError: If the update fails
        """
        ids = [str(record_id) for record_id in record_ids]
        if not ids:
            self.logger.debug("No records to mark as processed")
            return

        cfg = self.config
        id_list = ", ".join(escape_sql_string(record_id) for record_id in ids)
        sql = (
            f"UPDATE {self._table} SET {escape_identifier(cfg.sent_column)} = true "
            f"WHERE CAST({escape_identifier(cfg.id_column)} AS VARCHAR) IN ({id_list})"
        )
        try:
            self._execute(sql)
        except Exception as e:
            raise DataSourceError(f"Error marking records as processed: {e}") from e
        self.logger.info(f"Marked {len(ids)} record(s) as sent")

    def test_connection(self) -> bool:
        cfg = self.config
        self.logger.info(f"Testing data source connection ({cfg.path}, table '{cfg.table}')...")
        try:
            columns = self._columns()
        except Exception as e:
            self.logger.error(f"Data source connection test failed: {e}")
            return False
        if not columns:
            self.logger.warning(f"Table '{cfg.table}' not found")
            return False
        if not self._has_column(columns, cfg.sent_column):
            self.logger.error(f"Missing '{cfg.sent_column}' column - cannot track upload status")
            return False
        self.logger.info(f"Data source connection successful, table '{cfg.table}' found")
        return True

    def get_statistics(self) -> SourceStatistics:
        """
        Raises:
            DataSourceError: If the statistics queries fail
        """
        cfg = self.config
        sent = escape_identifier(cfg.sent_column)
        try:
            columns = self._columns()
            total = int(self._scalar(f"SELECT COUNT(*) FROM {self._table}") or 0)
            unsent = int(self._scalar(f"SELECT COUNT(*) FROM {self._table} WHERE {sent} = false") or 0)
            oldest = newest = None
            if self._has_column(columns, cfg.timestamp_column):
                ts = escape_identifier(str(cfg.timestamp_column))
                oldest = self._scalar(f"SELECT MIN({ts}) FROM {self._table} WHERE {sent} = false")
                newest = self._scalar(f"SELECT MAX({ts}) FROM {self._table}")
        except Exception as e:
            raise DataSourceError(f"Error getting statistics for '{cfg.table}': {e}") from e
        return SourceStatistics(total=total, unsent=unsent, sent=total - unsent, oldest_unsent=oldest, newest=newest)
