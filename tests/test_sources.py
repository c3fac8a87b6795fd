"""
Tests for the in-memory and DuckDB data sources.

DuckDB tests use an in-memory database through the ibis DuckDB backend.
"""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import ibis
import pytest

from dropship.encoding import FieldSpec, FormatSpec, encode
from dropship.exceptions import DataSourceError
from dropship.sources import (
    DataSource,
    DuckDBDataSource,
    DuckDBSourceConfig,
    InMemoryDataSource,
    SourceRecord,
    sample_records,
)
from dropship.sources.derived import measurement, weight_ratio, with_weight_ratio
from dropship.utils.sql_escape import escape_identifier, escape_sql_string, escape_table_name


class TestSourceRecord:
    """Tests for SourceRecord."""

    def test_id_is_text(self):
        assert SourceRecord(42, {}).record_id == "42"

    def test_fields_are_read_only(self):
        record = SourceRecord("1", {"a": 1})
        with pytest.raises(TypeError):
            record.fields["a"] = 2


class TestInMemoryDataSource:
    """Tests for InMemoryDataSource."""

    def test_is_data_source(self):
        assert isinstance(InMemoryDataSource(), DataSource)

    def test_fetch_and_mark(self):
        source = InMemoryDataSource([{"Id": 1, "v": "a"}, {"Id": 2, "v": "b"}])
        assert [r.record_id for r in source.fetch_pending()] == ["1", "2"]

        source.mark_processed(["1"])

        assert [r.record_id for r in source.fetch_pending()] == ["2"]
        assert source.sent_ids == {"1"}

    def test_unknown_ids_ignored(self):
        logger = MagicMock()
        source = InMemoryDataSource([{"Id": 1}], logger=logger)
        source.mark_processed(["1", "99"])
        assert source.sent_ids == {"1"}
        logger.warning.assert_called_once()

    def test_batch_size(self):
        source = InMemoryDataSource.with_samples(5, batch_size=2)
        assert len(source.fetch_pending()) == 2

    def test_missing_id_field(self):
        with pytest.raises(ValueError, match="missing id field"):
            InMemoryDataSource([{"Barcode": "x"}])

    def test_statistics(self):
        source = InMemoryDataSource(sample_records(3))
        source.mark_processed(["1"])
        stats = source.get_statistics()
        assert stats.total == 3
        assert stats.unsent == 2
        assert stats.sent == 1
        assert stats.oldest_unsent == datetime(2024, 1, 1, 8, 10)
        assert stats.newest == datetime(2024, 1, 1, 8, 15)

    def test_sample_records(self):
        records = sample_records(2)
        assert [r.record_id for r in records] == ["1", "2"]
        assert records[0].fields["Barcode"] == "ITEM000001"
        assert isinstance(records[0].fields["Weight_Ratio"], Decimal)

    def test_connection(self):
        assert InMemoryDataSource().test_connection()


class TestSqlEscape:
    """Tests for SQL quoting helpers."""

    def test_identifier(self):
        assert escape_identifier("Sent") == '"Sent"'
        assert escape_identifier('we"ird') == '"we""ird"'

    def test_empty_identifier(self):
        with pytest.raises(ValueError):
            escape_identifier("")

    def test_table_name(self):
        assert escape_table_name("main.item_log") == '"main"."item_log"'

    def test_string(self):
        assert escape_sql_string("O'Brien") == "'O''Brien'"
        assert escape_sql_string(None) == "NULL"


@pytest.fixture
def con():
    connection = ibis.duckdb.connect()
    connection.raw_sql(
        "CREATE TABLE item_log ("
        " Id INTEGER, ItemDateTime TIMESTAMP, Barcode VARCHAR, Weight_Ratio DECIMAL(10, 4),"
        " Valid BOOLEAN, Sent BOOLEAN)"
    )
    connection.raw_sql(
        "INSERT INTO item_log VALUES"
        " (1, '2024-01-01 10:00:00', 'A', 1.5, true, false),"
        " (2, '2024-01-01 09:00:00', 'B', 2.5, true, false),"
        " (3, '2024-01-01 08:00:00', 'C', 0, false, false),"
        " (4, '2024-01-01 07:00:00', 'D', 0, true, true)"
    )
    yield connection
    connection.disconnect()


class TestDuckDBDataSource:
    """Tests for DuckDBDataSource."""

    def _source(self, con, **kwargs):
        return DuckDBDataSource(DuckDBSourceConfig(**kwargs), connection=con, logger=MagicMock())

    def test_config_from_dict(self):
        config = DuckDBSourceConfig.from_dict({"path": "data/items.duckdb", "batch_size": "50", "valid_column": ""})
        assert config.path == "data/items.duckdb"
        assert config.batch_size == 50
        assert config.valid_column is None
        assert config.table == "item_log"

    def test_config_validation(self):
        with pytest.raises(ValueError):
            DuckDBSourceConfig(batch_size=0)
        with pytest.raises(ValueError):
            DuckDBSourceConfig(table="")

    def test_fetch_pending_oldest_first(self, con):
        records = self._source(con).fetch_pending()
        assert [r.record_id for r in records] == ["2", "1"]
        assert records[0].fields["Barcode"] == "B"
        assert records[0].fields["Weight_Ratio"] == Decimal("2.5")

    def test_batch_size(self, con):
        assert [r.record_id for r in self._source(con, batch_size=1).fetch_pending()] == ["2"]

    def test_without_valid_column_filter(self, con):
        records = self._source(con, valid_column=None).fetch_pending()
        assert [r.record_id for r in records] == ["3", "2", "1"]

    def test_missing_valid_column_warns(self, con):
        source = self._source(con, valid_column="IsValid")
        assert len(source.fetch_pending()) == 3
        source.logger.warning.assert_called_once()

    def test_mark_processed(self, con):
        source = self._source(con)
        source.mark_processed(["2"])
        assert [r.record_id for r in source.fetch_pending()] == ["1"]

    def test_mark_nothing(self, con):
        source = self._source(con)
        source.mark_processed([])
        assert len(source.fetch_pending()) == 2

    def test_missing_table(self, con):
        source = self._source(con, table="nope")
        with pytest.raises(DataSourceError, match="not found"):
            source.fetch_pending()
        assert not source.test_connection()

    def test_missing_sent_column(self, con):
        source = self._source(con, sent_column="Uploaded")
        with pytest.raises(DataSourceError, match="no 'Uploaded' column"):
            source.fetch_pending()
        assert not source.test_connection()

    def test_connection_ok(self, con):
        assert self._source(con).test_connection()

    def test_statistics(self, con):
        stats = self._source(con).get_statistics()
        assert stats.total == 4
        assert stats.unsent == 3
        assert stats.sent == 1
        assert stats.oldest_unsent == datetime(2024, 1, 1, 8, 0)
        assert stats.newest == datetime(2024, 1, 1, 10, 0)

    def test_file_database(self, tmp_path):
        path = tmp_path / "db" / "items.duckdb"
        source = DuckDBDataSource(DuckDBSourceConfig(path=str(path)), logger=MagicMock())
        source.connection.raw_sql("CREATE TABLE item_log (Id INTEGER, ItemDateTime TIMESTAMP, Sent BOOLEAN)")
        source.connection.raw_sql("INSERT INTO item_log VALUES (7, '2024-01-01 00:00:00', false)")
        assert [r.record_id for r in source.fetch_pending()] == ["7"]
        source.close()
        assert path.exists()


@pytest.fixture
def measured():
    connection = ibis.duckdb.connect()
    connection.raw_sql(
        "CREATE TABLE item_log ("
        " Id INTEGER, ItemDateTime TIMESTAMP, Barcode VARCHAR, Length DECIMAL(10, 2), Width DECIMAL(10, 2),"
        " Height DECIMAL(10, 2), Weight DECIMAL(10, 2), Weight_Ratio DECIMAL(10, 4), Valid BOOLEAN, Sent BOOLEAN)"
    )
    connection.raw_sql(
        "INSERT INTO item_log VALUES"
        " (1, '2024-01-01 08:00:00', 'A', 100, 50, 20, 2500, NULL, true, false),"
        " (2, '2024-01-01 09:00:00', 'B', 10, 10, 10, NULL, 99, true, false)"
    )
    yield connection
    connection.disconnect()


class TestWeightRatio:
    """Tests for the computed Weight_Ratio field."""

    def test_formula(self):
        assert weight_ratio(Decimal(100), Decimal(50), Decimal(20), Decimal(2500)) == Decimal("7.5")
        assert weight_ratio(Decimal(10), Decimal(10), Decimal(10), Decimal(3000)) == Decimal("-2.9")

    def test_measurement_coercion(self):
        assert measurement(None) == 0
        assert measurement(1.2) == Decimal("1.2")
        assert measurement(" 3.5 ") == Decimal("3.5")
        assert measurement("n/a") == 0
        assert measurement(float("nan")) == 0

    def test_without_measurements_unchanged(self):
        assert with_weight_ratio({"Barcode": "A", "Weight_Ratio": 1}) == {"Barcode": "A", "Weight_Ratio": 1}

    def test_column_case_kept(self):
        fields = {"length": 1, "WIDTH": 1, "Height": 10000, "weight": 0, "weight_ratio": None}
        assert with_weight_ratio(fields)["weight_ratio"] == Decimal(1)

    def test_duckdb_source_computes_ratio(self, measured):
        source = DuckDBDataSource(DuckDBSourceConfig(), connection=measured, logger=MagicMock())
        records = source.fetch_pending()
        assert records[0].fields["Weight_Ratio"] == Decimal("7.5")
        # NULL weight counts as 0 and replaces the stored value
        assert records[1].fields["Weight_Ratio"] == Decimal("0.1")

    def test_encoded_from_duckdb(self, measured):
        source = DuckDBDataSource(DuckDBSourceConfig(), connection=measured, logger=MagicMock())
        spec = FormatSpec(fields=[FieldSpec("Weight_Ratio", fixed_length=10, decimal_places=2)])
        assert encode(source.fetch_pending()[0], spec) == "      7.50"

    def test_disabled(self, measured):
        config = DuckDBSourceConfig.from_dict({"weight_ratio_field": None})
        source = DuckDBDataSource(config, connection=measured, logger=MagicMock())
        records = source.fetch_pending()
        assert records[0].fields["Weight_Ratio"] is None
        assert records[1].fields["Weight_Ratio"] == Decimal("99")
