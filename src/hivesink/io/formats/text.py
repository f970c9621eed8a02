"""
Delimited text format (Hive LazySimpleSerDe rules).

Overview
- One row per line; fields joined by the field delimiter; lines terminated by the line
  delimiter; null written as the null sentinel.
- Delimiters and null sentinel come from serde properties:
  - field delimiter: "field.delim", else "serialization.format", else Ctrl-A (\\x01)
  - line delimiter: "line.delim", else "\\n"
  - null sentinel: "serialization.null.format", else "\\N"
  A delimiter property that parses as a byte number ("9", "1") means that byte; otherwise
  its first character is used.
- Value encodings: integers in decimal; REAL as the shortest text that round-trips the
  32-bit value; DOUBLE as Python's shortest round-trip repr; NaN/Infinity spelled as Hive
  does; DECIMAL in plain notation with exactly `scale` fractional digits; TIMESTAMP
  "YYYY-MM-DD HH:MM:SS[.fff]"; DATE "YYYY-MM-DD"; BOOLEAN "true"/"false"; VARBINARY base64.

Known limitation
- Delimiters inside string values are not escaped. Such values are written as-is (a warning
  is logged) and do not read back correctly.
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Final

from hivesink.core.coercion import coerce, to_float32
from hivesink.core.constants import (
    DEFAULT_FIELD_DELIM,
    DEFAULT_LINE_DELIM,
    DEFAULT_NULL_FORMAT,
    FIELD_DELIM,
    LINE_DELIM,
    SERIALIZATION_FORMAT,
    SERIALIZATION_NULL_FORMAT,
)
from hivesink.core.errors import TypeCoercionError
from hivesink.core.tables import TableDescriptor
from hivesink.core.types import HiveType, TypeKind

from ..fs import open_write
from .base import FormatWriter, WriteBatch

logger = logging.getLogger(__name__)


def _delimiter(value: str | None, default: str) -> str:
    """Hive's LazySerDeParameters.getByte: a byte number, else the first character."""
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except ValueError:
        return value[0]
    if -128 <= number <= 127:
        return chr(number & 0xFF)
    return value[0]


@dataclass(slots=True, frozen=True)
class TextSerde:
    """Effective delimiters and null sentinel for one table or file."""

    field_delim: str = DEFAULT_FIELD_DELIM
    line_delim: str = DEFAULT_LINE_DELIM
    null_format: str = DEFAULT_NULL_FORMAT

    @classmethod
    def from_properties(cls, props: Mapping[str, str] | None) -> TextSerde:
        props = props or {}
        field_delim = _delimiter(
            props.get(FIELD_DELIM), _delimiter(props.get(SERIALIZATION_FORMAT), DEFAULT_FIELD_DELIM)
        )
        return cls(
            field_delim=field_delim,
            line_delim=_delimiter(props.get(LINE_DELIM), DEFAULT_LINE_DELIM),
            null_format=props.get(SERIALIZATION_NULL_FORMAT, DEFAULT_NULL_FORMAT),
        )


# -----------------------------------------------------------------------------
# Value codec
# -----------------------------------------------------------------------------


def _float_text(value: float, single: bool) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if single:
        for digits in range(1, 10):
            text = f"{value:.{digits}g}"
            if to_float32(float(text)) == value:
                return text
    return repr(value)


def _timestamp_text(value: datetime, _t: HiveType) -> str:
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    millis = value.microsecond // 1000
    return f"{text}.{millis:03d}" if millis else text


_ENCODERS: Final[dict[TypeKind, Callable[[Any, HiveType], str]]] = {
    TypeKind.TINYINT: lambda v, _t: str(v),
    TypeKind.SMALLINT: lambda v, _t: str(v),
    TypeKind.INT: lambda v, _t: str(v),
    TypeKind.BIGINT: lambda v, _t: str(v),
    TypeKind.REAL: lambda v, _t: _float_text(v, single=True),
    TypeKind.DOUBLE: lambda v, _t: _float_text(v, single=False),
    TypeKind.DECIMAL: lambda v, _t: format(v, "f"),
    TypeKind.TIMESTAMP: _timestamp_text,
    TypeKind.DATE: lambda v, _t: v.isoformat(),
    TypeKind.VARCHAR: lambda v, _t: v,
    TypeKind.CHAR: lambda v, _t: v,
    TypeKind.BOOLEAN: lambda v, _t: "true" if v else "false",
    TypeKind.VARBINARY: lambda v, _t: base64.b64encode(v).decode("ascii"),
}


def _decode_decimal(text: str, t: HiveType) -> Decimal | None:
    try:
        return coerce(Decimal(text.strip()), t)
    except (InvalidOperation, TypeCoercionError):
        return None


def _decode_timestamp(text: str, t: HiveType) -> datetime:
    return coerce(datetime.fromisoformat(text.strip()), t)


def _decode_boolean(text: str, _t: HiveType) -> bool | None:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def _decode_binary(text: str, _t: HiveType) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error:
        return text.encode("utf-8")


_DECODERS: Final[dict[TypeKind, Callable[[str, HiveType], Any]]] = {
    TypeKind.TINYINT: lambda s, t: coerce(int(s.strip()), t),
    TypeKind.SMALLINT: lambda s, t: coerce(int(s.strip()), t),
    TypeKind.INT: lambda s, t: coerce(int(s.strip()), t),
    TypeKind.BIGINT: lambda s, t: coerce(int(s.strip()), t),
    TypeKind.REAL: lambda s, _t: to_float32(float(s.strip())),
    TypeKind.DOUBLE: lambda s, _t: float(s.strip()),
    TypeKind.DECIMAL: _decode_decimal,
    TypeKind.TIMESTAMP: _decode_timestamp,
    TypeKind.DATE: lambda s, _t: date.fromisoformat(s.strip()),
    TypeKind.VARCHAR: lambda s, _t: s,
    TypeKind.CHAR: lambda s, t: s.rstrip(" ").ljust(t.length or 0, " "),
    TypeKind.BOOLEAN: _decode_boolean,
    TypeKind.VARBINARY: _decode_binary,
}


def encode_value(value: Any, t: HiveType, null_format: str = DEFAULT_NULL_FORMAT) -> str:
    """Render one storage value as a text field (None -> null sentinel)."""
    if value is None:
        return null_format
    return _ENCODERS[t.kind](value, t)


def decode_value(text: str | None, t: HiveType, null_format: str = DEFAULT_NULL_FORMAT) -> Any:
    """
    Parse one text field back into a storage value.

    Notes:
        As in LazySimpleSerDe, a field that does not parse as its type reads as None.
        CHAR padding is trimmed and re-applied to the declared length.
    """
    if text is None or text == null_format:
        return None
    try:
        return _DECODERS[t.kind](text, t)
    except (ValueError, OverflowError, TypeCoercionError) as exc:
        logger.debug("unparseable %s field %r read as null: %s", t, text, exc)
        return None


def to_partition_value(value: Any, t: HiveType) -> str | None:
    """Canonical string form of a coerced partition value (None for null)."""
    if value is None:
        return None
    return _ENCODERS[t.kind](value, t)


def from_partition_value(text: str | None, t: HiveType) -> Any:
    """Typed value of a partition directory value (None for the default partition)."""
    if text is None:
        return None
    return decode_value(text, t, null_format="")


# -----------------------------------------------------------------------------
# Writer / reader
# -----------------------------------------------------------------------------


class TextFormatWriter(FormatWriter):
    """Writes one delimited text file per batch, UTF-8 encoded."""

    suffix = ""

    def append(self, batch: WriteBatch, row: Sequence[Any]) -> None:
        serde = TextSerde.from_properties(batch.serde)
        fields: list[str] = []
        for col, value in zip(self.table.columns, row, strict=True):
            text = encode_value(value, col.type, serde.null_format)
            if value is not None and (serde.field_delim in text or serde.line_delim in text):
                logger.warning(
                    "value of %s.%s contains a delimiter and is written unescaped: %r",
                    self.table.qualified_name,
                    col.name,
                    text,
                )
            fields.append(text)
        batch.buffer.append(serde.field_delim.join(fields))
        batch.rows += 1

    def _write_payload(self, batch: WriteBatch, path: str) -> None:
        serde = TextSerde.from_properties(batch.serde)
        payload = "".join(line + serde.line_delim for line in batch.buffer).encode("utf-8")
        with open_write(path) as fh:
            fh.write(payload)


def read_text_file(
    path: str, table: TableDescriptor, serde_properties: Mapping[str, str] | None = None
) -> Iterator[list[Any]]:
    """
    Yield data-column values for each line of a text data file.

    Notes:
        Missing trailing fields read as None and extra fields are ignored, as in Hive.
    """
    serde = TextSerde.from_properties(
        table.serde_properties if serde_properties is None else serde_properties
    )
    with open(path, "rb") as fh:
        content = fh.read().decode("utf-8")
    lines = content.split(serde.line_delim)
    if lines and lines[-1] == "":
        lines.pop()
    n = len(table.columns)
    for line in lines:
        fields = line.split(serde.field_delim)
        fields = fields[:n] + [None] * (n - len(fields))
        yield [decode_value(f, col.type, serde.null_format) for f, col in zip(fields, table.columns)]
