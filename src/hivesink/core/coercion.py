"""
Type coercion from query-engine values to storage values.

Overview
- coerce(value, target) converts one engine value into the exact value a Hive table stores
  for the target logical type, or raises TypeCoercionError.
- Engine values are plain Python values; storage values are plain Python values too, but
  normalized: REAL rounded to 32 bits, DECIMAL quantized to its scale, TIMESTAMP truncated
  to milliseconds, CHAR padded to its length, VARBINARY as immutable bytes.
- None passes through for every type; format writers apply their own null marker.

Rules
- Integral kinds: int only (bool is rejected), range-checked against the target width.
- REAL/DOUBLE: float or int. REAL rounds to nearest 32-bit float and rejects finite values
  outside its range.
- DECIMAL(p, s): Decimal or int; extra fractional digits round HALF_UP; the result keeps
  exactly s fractional digits (trailing zeros included) and at most p - s integer digits.
- TIMESTAMP: naive datetime, truncated (never rounded) to milliseconds.
- DATE: date (a datetime is rejected; it would silently drop the time of day).
- VARCHAR(n): str, stored as-is; longer than n fails. CHAR(n): str right-padded with spaces;
  only trailing spaces may be cut to fit.
- BOOLEAN: bool only. VARBINARY: bytes-like, copied through (base64 decoding is the
  caller's job).

Notes
- Zero-IO, stdlib only.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any, Final

from .errors import TypeCoercionError
from .types import INTEGRAL_RANGES, HiveType, TypeKind

__all__ = [
    "coerce",
    "coerce_row",
    "to_float32",
    "COERCERS",
]

# Wide enough to quantize any decimal(38, s) without InvalidOperation.
_DECIMAL_CONTEXT: Final[Context] = Context(prec=80)


def _mismatch(value: Any, target: HiveType) -> TypeCoercionError:
    return TypeCoercionError(
        f"cannot coerce {value!r} of type {type(value).__name__} to {target}"
    )


def to_float32(value: float) -> float:
    """
    Round a Python float to the nearest IEEE-754 single-precision value.

    Raises:
        OverflowError: If a finite value is outside the single-precision range.
    """
    return struct.unpack("<f", struct.pack("<f", value))[0]


def _coerce_integral(value: Any, target: HiveType) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _mismatch(value, target)
    lo, hi = INTEGRAL_RANGES[target.kind]
    if not lo <= value <= hi:
        raise TypeCoercionError(f"value {value} out of range for {target} [{lo}, {hi}]")
    return int(value)


def _coerce_real(value: Any, target: HiveType) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _mismatch(value, target)
    try:
        return to_float32(float(value))
    except OverflowError as exc:
        raise TypeCoercionError(f"value {value!r} out of range for {target}") from exc


def _coerce_double(value: Any, target: HiveType) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _mismatch(value, target)
    try:
        return float(value)
    except OverflowError as exc:
        raise TypeCoercionError(f"value {value!r} out of range for {target}") from exc


def _coerce_decimal(value: Any, target: HiveType) -> Decimal:
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int) and not isinstance(value, bool):
        d = Decimal(value)
    else:
        raise _mismatch(value, target)
    if not d.is_finite():
        raise TypeCoercionError(f"value {value!r} is not a finite number; cannot store as {target}")

    precision, scale = target.precision or 0, target.scale or 0
    try:
        q = d.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP, context=_DECIMAL_CONTEXT)
    except InvalidOperation as exc:
        raise TypeCoercionError(f"value {value!r} cannot be represented as {target}") from exc
    if q.copy_abs() >= Decimal(10) ** (precision - scale):
        raise TypeCoercionError(f"value {value!r} exceeds precision of {target}")
    if q.is_zero():
        q = q.copy_abs()
    return q


def _coerce_timestamp(value: Any, target: HiveType) -> datetime:
    if not isinstance(value, datetime):
        raise _mismatch(value, target)
    if value.tzinfo is not None and value.utcoffset() is not None:
        raise TypeCoercionError(f"{target} has no time zone; got aware value {value!r}")
    return value.replace(microsecond=(value.microsecond // 1000) * 1000, tzinfo=None)


def _coerce_date(value: Any, target: HiveType) -> date:
    if isinstance(value, datetime) or not isinstance(value, date):
        raise _mismatch(value, target)
    return value


def _coerce_varchar(value: Any, target: HiveType) -> str:
    if not isinstance(value, str):
        raise _mismatch(value, target)
    if target.length is not None and len(value) > target.length:
        raise TypeCoercionError(
            f"value of length {len(value)} does not fit {target}: {value!r}"
        )
    return value


def _coerce_char(value: Any, target: HiveType) -> str:
    if not isinstance(value, str):
        raise _mismatch(value, target)
    length = target.length or 0
    if len(value) > length:
        if value[length:].strip(" "):
            raise TypeCoercionError(f"value of length {len(value)} does not fit {target}: {value!r}")
        value = value[:length]
    return value.ljust(length, " ")


def _coerce_boolean(value: Any, target: HiveType) -> bool:
    if not isinstance(value, bool):
        raise _mismatch(value, target)
    return value


def _coerce_varbinary(value: Any, target: HiveType) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise _mismatch(value, target)
    return bytes(value)


COERCERS: Final[dict[TypeKind, Callable[[Any, HiveType], Any]]] = {
    TypeKind.TINYINT: _coerce_integral,
    TypeKind.SMALLINT: _coerce_integral,
    TypeKind.INT: _coerce_integral,
    TypeKind.BIGINT: _coerce_integral,
    TypeKind.REAL: _coerce_real,
    TypeKind.DOUBLE: _coerce_double,
    TypeKind.DECIMAL: _coerce_decimal,
    TypeKind.TIMESTAMP: _coerce_timestamp,
    TypeKind.DATE: _coerce_date,
    TypeKind.VARCHAR: _coerce_varchar,
    TypeKind.CHAR: _coerce_char,
    TypeKind.BOOLEAN: _coerce_boolean,
    TypeKind.VARBINARY: _coerce_varbinary,
}


def coerce(value: Any, target: HiveType) -> Any:
    """
    Coerce one engine value to the storage value for target.

    Args:
        value (Any): Engine value, or None.
        target (HiveType): Column type.

    Returns:
        Any: Normalized storage value (None stays None).

    Raises:
        TypeCoercionError: On a type mismatch or a value that does not fit the target.

    Examples:
        >>> from decimal import Decimal
        >>> from hivesink.core.types import decimal, char
        >>> coerce(Decimal("345.678"), decimal(10, 5))
        Decimal('345.67800')
        >>> coerce("ala ma", char(10))
        'ala ma    '
    """
    if value is None:
        return None
    return COERCERS[target.kind](value, target)


def coerce_row(values: list[Any] | tuple[Any, ...], types: list[HiveType]) -> list[Any]:
    """Coerce a row positionally; len(values) must equal len(types)."""
    return [coerce(v, t) for v, t in zip(values, types, strict=True)]
