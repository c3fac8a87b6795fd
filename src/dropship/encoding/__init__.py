"""
Message encoding: declarative layouts rendered to fixed-width or delimited text.
"""

from dropship.encoding.encoder import FormattingStats, MessageEncoder, RecordValidation, encode
from dropship.encoding.spec import CUSTOM_FIELD, FieldSpec, FormatSpec
from dropship.encoding.values import ABSENT, FieldValue, ValueKind, lookup

__all__ = [
    "ABSENT",
    "CUSTOM_FIELD",
    "FieldSpec",
    "FieldValue",
    "FormatSpec",
    "FormattingStats",
    "MessageEncoder",
    "RecordValidation",
    "ValueKind",
    "encode",
    "lookup",
]
