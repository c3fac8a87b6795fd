"""
SQL identifier and value escaping utilities.

The DuckDB data source builds its statements from configured table and
column names, so every identifier and literal goes through here.
"""

from __future__ import annotations

from typing import Any


def escape_identifier(identifier: str) -> str:
    """
    Escape SQL identifier (table name, column name, schema name).

    Wraps identifier in double quotes and escapes any double quotes within.

    Args:
        identifier: SQL identifier to escape

    Returns:
        Escaped identifier wrapped in double quotes

    Example:
        >>> escape_identifier("item_log")
        '"item_log"'
        >>> escape_identifier('table"name')
        '"table""name"'
    """
    if not identifier:
        raise ValueError("Identifier cannot be empty")

    escaped = identifier.replace('"', '""')
    return f'"{escaped}"'


def escape_table_name(name: str) -> str:
    """
    Escape a possibly schema-qualified table name.

    Example:
        >>> escape_table_name("main.item_log")
        '"main"."item_log"'
    """
    return ".".join(escape_identifier(part) for part in name.split("."))


def escape_sql_string(value: Any) -> str:
    """
    Escape SQL string value (single quotes doubled, SQL standard).

    Example:
        >>> escape_sql_string("O'Brien")
        "'O''Brien'"
    """
    if value is None:
        return "NULL"

    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"
