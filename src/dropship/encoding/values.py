"""
Typed field values.

Records arrive as plain mappings; `lookup` classifies each value into an
explicit variant so the encoder never has to guess, and never raises for a
missing key.
"""

from __future__ import annotations

import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from dropship.exceptions import EncodingError


class ValueKind(str, Enum):
    ABSENT = "absent"
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    STRING = "string"
    TIMESTAMP = "timestamp"


NUMERIC_KINDS = frozenset({ValueKind.INTEGER, ValueKind.DECIMAL, ValueKind.FLOAT})


@dataclass(frozen=True)
class FieldValue:
    """A record value tagged with its kind."""

    kind: ValueKind
    raw: Any = None

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS

    @property
    def is_empty(self) -> bool:
        return self.kind in (ValueKind.ABSENT, ValueKind.NULL)

    @classmethod
    def of(cls, value: Any, *, field_key: str = "?") -> FieldValue:
        """
        Classify a raw value.

        Raises:
            EncodingError: If the value has no text form
        """
        if value is None:
            return cls(ValueKind.NULL)
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return cls(ValueKind.BOOLEAN, value)
        if isinstance(value, Decimal):
            return cls(ValueKind.DECIMAL, value)
        if isinstance(value, numbers.Integral):
            return cls(ValueKind.INTEGER, value)
        if isinstance(value, numbers.Real):
            return cls(ValueKind.FLOAT, value)
        if isinstance(value, str):
            return cls(ValueKind.STRING, value)
        if isinstance(value, (datetime, date, time)):
            return cls(ValueKind.TIMESTAMP, value)
        if isinstance(value, (bytes, bytearray)):
            try:
                return cls(ValueKind.STRING, bytes(value).decode("utf-8"))
            except UnicodeDecodeError:
                raise EncodingError(field_key, value) from None
        if type(value).__str__ is object.__str__:
            raise EncodingError(field_key, value)
        return cls(ValueKind.STRING, str(value))


ABSENT = FieldValue(ValueKind.ABSENT)


def lookup(fields: Mapping[str, Any], key: str) -> FieldValue:
    """Total lookup: a missing key yields ABSENT instead of raising."""
    if key not in fields:
        return ABSENT
    return FieldValue.of(fields[key], field_key=key)
