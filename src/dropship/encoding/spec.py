"""
Declarative message layout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CUSTOM_FIELD = "Custom"


@dataclass(frozen=True)
class FieldSpec:
    """
    Layout of one field in a message.

    `field_key` names the record value to render, or is "Custom" to render
    `custom_value` verbatim.
    """

    field_key: str
    position: int = 0
    custom_value: str | None = None
    fixed_length: int | None = None
    decimal_places: int | None = None
    prefix: str | None = None

    def __post_init__(self):
        """Validate configuration."""
        if not self.field_key:
            raise ValueError("field_key must not be empty")
        if self.fixed_length is not None and self.fixed_length < 0:
            raise ValueError(f"fixed_length must be >= 0 (field '{self.field_key}')")
        if self.decimal_places is not None and self.decimal_places < 0:
            raise ValueError(f"decimal_places must be >= 0 (field '{self.field_key}')")

    @property
    def is_custom(self) -> bool:
        return self.field_key == CUSTOM_FIELD

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldSpec:
        """Build from a config mapping (`field`, `custom_value`, `fixed_length`, ...)."""
        prefix = data.get("prefix")
        return cls(
            field_key=str(data.get("field") or data.get("field_key") or ""),
            position=int(data.get("position", 0)),
            custom_value=None if data.get("custom_value") is None else str(data["custom_value"]),
            fixed_length=_opt_int(data.get("fixed_length")),
            decimal_places=_opt_int(data.get("decimal_places")),
            # Config may carry a numeric prefix (e.g. 0)
            prefix=None if prefix is None else str(prefix),
        )


@dataclass(frozen=True)
class FormatSpec:
    """Whole-message layout: ordered fields plus framing."""

    fields: tuple[FieldSpec, ...] = field(default_factory=tuple)
    delimiter: str | None = None
    message_start: str | None = None
    message_end: str | None = None
    decimal_separator: str = "."

    def __post_init__(self):
        # Accept any iterable of fields, store as tuple
        object.__setattr__(self, "fields", tuple(self.fields))
        if not self.decimal_separator:
            raise ValueError("decimal_separator must not be empty")

    @property
    def is_delimited(self) -> bool:
        return bool(self.delimiter)

    def ordered_fields(self) -> list[FieldSpec]:
        """Fields by position; ties keep declaration order."""
        return sorted(self.fields, key=lambda f: f.position)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormatSpec:
        """Build from the `message` config section."""
        return cls(
            fields=tuple(FieldSpec.from_dict(item) for item in data.get("fields", []) or []),
            delimiter=data.get("delimiter") or None,
            message_start=data.get("start") or None,
            message_end=data.get("end") or None,
            decimal_separator=str(data.get("decimal_separator") or "."),
        )


def _opt_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)
