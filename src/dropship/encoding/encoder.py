"""
Message encoder: renders one record into one fixed-width or delimited line.

`encode` is a pure function of (record, spec). `MessageEncoder` binds a spec
and adds the batch, validation and preview helpers used by the CLI.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from dropship.encoding.spec import FieldSpec, FormatSpec
from dropship.encoding.values import FieldValue, ValueKind, lookup
from dropship.sources.base import SourceRecord
from dropship.utils.logging import get_logger

RecordLike = SourceRecord | Mapping[str, Any]


def encode(record: RecordLike, spec: FormatSpec) -> str:
    """
    Render a record as a single message line.

    Args:
        record: SourceRecord or a plain field mapping
        spec: Message layout

    Returns:
        The complete line (no trailing newline)

    Raises:
        EncodingError: If a value has no text form
    """
    fields = _fields_of(record)
    rendered = [render_field(item, fields, spec.decimal_separator) for item in spec.ordered_fields()]

    message = (spec.delimiter or "").join(rendered)
    if spec.message_start:
        message = spec.message_start + message
    if spec.message_end:
        message = message + spec.message_end
    return message


def render_field(item: FieldSpec, fields: Mapping[str, Any], decimal_separator: str = ".") -> str:
    """Render one field, padded or truncated to its fixed length."""
    if item.is_custom:
        return fit(item.custom_value or "", item.fixed_length, numeric=item.decimal_places is not None)

    value = lookup(fields, item.field_key)
    if value.is_empty:
        return fit("", item.fixed_length, numeric=False)

    numeric = item.decimal_places is not None or value.is_numeric
    text = render_value(value, item.decimal_places, decimal_separator)
    if item.prefix:
        text = item.prefix + text
    return fit(text, item.fixed_length, numeric=numeric)


def render_value(value: FieldValue, decimal_places: int | None, decimal_separator: str = ".") -> str:
    """
    Render a value's text without padding.

    With `decimal_places` set, numeric-looking values get exactly that many
    fractional digits and the configured separator; anything that does not
    parse as a number falls back to its natural text.
    """
    if decimal_places is not None:
        number = to_decimal(value)
        if number is not None:
            text = format_fixed(number, decimal_places)
            if text is not None:
                if decimal_separator != ".":
                    text = text.replace(".", decimal_separator)
                return text
    return natural_text(value)


def to_decimal(value: FieldValue) -> Decimal | None:
    """Coerce a value to a finite Decimal, or None if it is not a number."""
    if value.kind == ValueKind.DECIMAL:
        number = value.raw
    elif value.kind == ValueKind.INTEGER:
        number = Decimal(int(value.raw))
    elif value.kind == ValueKind.FLOAT:
        if not math.isfinite(value.raw):
            return None
        # Shortest repr, so 1.2 stays 1.2 rather than 1.1999999...
        number = Decimal(repr(float(value.raw)))
    elif value.kind == ValueKind.STRING:
        try:
            number = Decimal(value.raw.strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def format_fixed(number: Decimal, decimal_places: int) -> str | None:
    """Format with exactly `decimal_places` digits, rounding half away from zero."""
    try:
        quantized = number.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    text = format(quantized, "f")
    if quantized.is_zero() and text.startswith("-"):
        text = text[1:]
    return text


def natural_text(value: FieldValue) -> str:
    if value.is_empty:
        return ""
    if value.kind == ValueKind.DECIMAL:
        return format(value.raw, "f")
    return str(value.raw)


def fit(text: str, width: int | None, *, numeric: bool) -> str:
    """Pad (numbers right-aligned, text left-aligned) or truncate from the right."""
    if width is None:
        return text
    if len(text) > width:
        return text[:width]
    return text.rjust(width) if numeric else text.ljust(width)


def _fields_of(record: RecordLike) -> Mapping[str, Any]:
    if isinstance(record, SourceRecord):
        return record.fields
    return record


@dataclass
class RecordValidation:
    """Result of checking a record against the layout."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __str__(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            lines.extend(f"  - {error}" for error in self.errors)
        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            lines.extend(f"  - {warning}" for warning in self.warnings)
        return "\n".join(lines)


@dataclass(frozen=True)
class FormattingStats:
    total_fields: int = 0
    custom_fields: int = 0
    numeric_fields: int = 0
    fixed_length_fields: int = 0
    is_delimited: bool = False
    expected_length: int = 0

    def __str__(self) -> str:
        layout = "Delimited" if self.is_delimited else "Fixed Width"
        return (
            f"Fields: {self.total_fields} (Custom: {self.custom_fields}, Numeric: {self.numeric_fields}, "
            f"Fixed: {self.fixed_length_fields}), Format: {layout}, Expected Length: {self.expected_length}"
        )


class MessageEncoder:
    """
    Encoder bound to one message layout.

    Examples:
        >>> spec = FormatSpec(fields=[FieldSpec("Barcode", fixed_length=6)])
        >>> MessageEncoder(spec).encode({"Barcode": "AB"})
        'AB    '
    """

    def __init__(self, spec: FormatSpec, logger: logging.Logger | None = None):
        self.spec = spec
        self.logger = logger or get_logger("dropship.encoding")

    def encode(self, record: RecordLike) -> str:
        return encode(record, self.spec)

    def encode_many(self, records: Iterable[RecordLike]) -> str:
        """Render several records, one line each."""
        lines = [self.encode(record) for record in records]
        self.logger.debug(f"Formatted {len(lines)} messages")
        return "\n".join(lines)

    def validate_record(self, record: RecordLike) -> RecordValidation:
        """
        Check a record against the layout without failing the encode.

        Missing keys and non-numeric values in decimal fields are errors;
        values that will be truncated are warnings.
        """
        result = RecordValidation()
        fields = _fields_of(record)

        if not self.spec.fields:
            result.warnings.append("No fields defined in message layout")
            return result

        for item in self.spec.ordered_fields():
            if item.is_custom:
                continue
            value = lookup(fields, item.field_key)
            if value.kind == ValueKind.ABSENT:
                result.errors.append(f"Missing required field: {item.field_key}")
                continue
            if item.decimal_places is not None and not value.is_empty and to_decimal(value) is None:
                result.errors.append(
                    f"Field {item.field_key} should be numeric but got {type(value.raw).__name__}"
                )
            if item.fixed_length is not None:
                text = render_value(value, item.decimal_places, self.spec.decimal_separator)
                if item.prefix and not value.is_empty:
                    text = item.prefix + text
                if len(text) > item.fixed_length:
                    result.warnings.append(
                        f"Field {item.field_key} value '{text}' exceeds fixed length {item.fixed_length}"
                    )
        return result

    def formatting_stats(self) -> FormattingStats:
        fields = self.spec.fields
        return FormattingStats(
            total_fields=len(fields),
            custom_fields=sum(1 for f in fields if f.is_custom),
            numeric_fields=sum(1 for f in fields if f.decimal_places is not None),
            fixed_length_fields=sum(1 for f in fields if f.fixed_length is not None),
            is_delimited=self.spec.is_delimited,
            expected_length=sum(f.fixed_length or 0 for f in fields),
        )

    def sample_record(self) -> SourceRecord:
        """Build a record with a plausible value for every non-Custom field."""
        values: dict[str, Any] = {}
        for item in self.spec.ordered_fields():
            if item.is_custom:
                continue
            if item.decimal_places is not None:
                values[item.field_key] = Decimal("123.45")
            else:
                values[item.field_key] = f"Sample_{item.field_key}"
        return SourceRecord(record_id="sample", fields=values)
