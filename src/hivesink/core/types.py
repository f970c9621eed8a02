"""
Logical column types for Hive-compatible tables.

Responsibilities
- Define TypeKind, the closed set of logical types the write path supports.
- Define HiveType, a frozen pydantic model carrying a kind plus its parameters
  (DECIMAL precision/scale, VARCHAR/CHAR length) with invariant checks.
- Parse and render Hive type names ("decimal(10,5)", "char(10)", "string", ...).

Notes
- Every site that dispatches on a type (coercion, text serde, Arrow schema) keys a table by
  TypeKind; tests assert each table covers every kind, so a new kind is a checked addition.
- Zero-IO (stdlib + pydantic only).

Examples:
    >>> from hivesink.core.types import parse_type, TypeKind
    >>> t = parse_type("DECIMAL(10, 5)")
    >>> t.kind is TypeKind.DECIMAL, t.precision, t.scale
    (True, 10, 5)
    >>> str(t)
    'decimal(10,5)'
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Final

from pydantic import BaseModel, ConfigDict, model_validator

from .errors import SchemaError

__all__ = [
    "TypeKind",
    "HiveType",
    "parse_type",
    "INTEGRAL_RANGES",
    "MAX_DECIMAL_PRECISION",
    "MAX_CHAR_LENGTH",
    "MAX_VARCHAR_LENGTH",
    "TINYINT",
    "SMALLINT",
    "INT",
    "BIGINT",
    "REAL",
    "DOUBLE",
    "TIMESTAMP",
    "DATE",
    "STRING",
    "BOOLEAN",
    "VARBINARY",
    "decimal",
    "varchar",
    "char",
]

MAX_DECIMAL_PRECISION: Final[int] = 38
MAX_CHAR_LENGTH: Final[int] = 255
MAX_VARCHAR_LENGTH: Final[int] = 65535


class TypeKind(str, Enum):
    """Closed set of logical types; values are lower_snake identifiers."""

    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INT = "int"
    BIGINT = "bigint"
    REAL = "real"
    DOUBLE = "double"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"
    DATE = "date"
    VARCHAR = "varchar"
    CHAR = "char"
    BOOLEAN = "boolean"
    VARBINARY = "varbinary"


# Inclusive (min, max) per integral kind.
INTEGRAL_RANGES: Final[dict[TypeKind, tuple[int, int]]] = {
    TypeKind.TINYINT: (-(2**7), 2**7 - 1),
    TypeKind.SMALLINT: (-(2**15), 2**15 - 1),
    TypeKind.INT: (-(2**31), 2**31 - 1),
    TypeKind.BIGINT: (-(2**63), 2**63 - 1),
}


class HiveType(BaseModel):
    """
    A logical type with its parameters.

    Attributes:
        kind (TypeKind): Logical type.
        precision (int | None): DECIMAL total digits, 1..38.
        scale (int | None): DECIMAL fractional digits, 0..precision.
        length (int | None): CHAR length (required, 1..255) or VARCHAR maximum length
            (optional, 1..65535; None means unbounded, i.e. Hive "string").

    Raises:
        pydantic.ValidationError: If parameters are missing, out of range, or given for a
            kind that takes none.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: TypeKind
    precision: int | None = None
    scale: int | None = None
    length: int | None = None

    @model_validator(mode="after")
    def _check_parameters(self) -> HiveType:
        if self.kind is TypeKind.DECIMAL:
            if self.precision is None or self.scale is None:
                raise SchemaError("decimal requires precision and scale")
            if not 1 <= self.precision <= MAX_DECIMAL_PRECISION:
                raise SchemaError(
                    f"decimal precision must be in [1, {MAX_DECIMAL_PRECISION}], got {self.precision}"
                )
            if not 0 <= self.scale <= self.precision:
                raise SchemaError(
                    f"decimal scale must be in [0, precision={self.precision}], got {self.scale}"
                )
        elif self.precision is not None or self.scale is not None:
            raise SchemaError(f"{self.kind.value} takes no precision/scale")

        if self.kind is TypeKind.CHAR:
            if self.length is None:
                raise SchemaError("char requires a length")
            if not 1 <= self.length <= MAX_CHAR_LENGTH:
                raise SchemaError(f"char length must be in [1, {MAX_CHAR_LENGTH}], got {self.length}")
        elif self.kind is TypeKind.VARCHAR:
            if self.length is not None and not 1 <= self.length <= MAX_VARCHAR_LENGTH:
                raise SchemaError(
                    f"varchar length must be in [1, {MAX_VARCHAR_LENGTH}], got {self.length}"
                )
        elif self.length is not None:
            raise SchemaError(f"{self.kind.value} takes no length")
        return self

    @property
    def is_integral(self) -> bool:
        return self.kind in INTEGRAL_RANGES

    def __str__(self) -> str:
        if self.kind is TypeKind.DECIMAL:
            return f"decimal({self.precision},{self.scale})"
        if self.kind is TypeKind.CHAR:
            return f"char({self.length})"
        if self.kind is TypeKind.VARCHAR:
            return "string" if self.length is None else f"varchar({self.length})"
        return _RENDERED_NAMES.get(self.kind, self.kind.value)


_RENDERED_NAMES: Final[dict[TypeKind, str]] = {
    TypeKind.REAL: "float",
    TypeKind.VARBINARY: "binary",
}

# Hive/Presto spellings -> kind.
_TYPE_ALIASES: Final[dict[str, TypeKind]] = {
    "tinyint": TypeKind.TINYINT,
    "smallint": TypeKind.SMALLINT,
    "int": TypeKind.INT,
    "integer": TypeKind.INT,
    "bigint": TypeKind.BIGINT,
    "float": TypeKind.REAL,
    "real": TypeKind.REAL,
    "double": TypeKind.DOUBLE,
    "decimal": TypeKind.DECIMAL,
    "numeric": TypeKind.DECIMAL,
    "timestamp": TypeKind.TIMESTAMP,
    "date": TypeKind.DATE,
    "string": TypeKind.VARCHAR,
    "varchar": TypeKind.VARCHAR,
    "char": TypeKind.CHAR,
    "boolean": TypeKind.BOOLEAN,
    "binary": TypeKind.VARBINARY,
    "varbinary": TypeKind.VARBINARY,
}

_TYPE_RE: Final[re.Pattern[str]] = re.compile(
    r"^\s*([a-z]+)\s*(?:\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\))?\s*$"
)


def parse_type(text: str) -> HiveType:
    """
    Parse a Hive/Presto type name.

    Args:
        text (str): Type name such as "int", "decimal(10,5)", "varchar(20)", "char(10)".

    Returns:
        HiveType: Parsed type. A bare "decimal" means decimal(10,0) as in Hive.

    Raises:
        SchemaError: Unknown name, malformed parameters, or parameters out of range.
    """
    m = _TYPE_RE.match((text or "").lower())
    if m is None:
        raise SchemaError(f"malformed type name: {text!r}")
    name, first, second = m.group(1), m.group(2), m.group(3)
    kind = _TYPE_ALIASES.get(name)
    if kind is None:
        raise SchemaError(f"unsupported type: {text!r}")

    try:
        if kind is TypeKind.DECIMAL:
            precision = int(first) if first is not None else 10
            scale = int(second) if second is not None else 0
            return HiveType(kind=kind, precision=precision, scale=scale)
        if second is not None:
            raise SchemaError(f"{name} takes at most one parameter: {text!r}")
        if kind in (TypeKind.CHAR, TypeKind.VARCHAR):
            if name == "string" and first is not None:
                raise SchemaError(f"string takes no length: {text!r}")
            return HiveType(kind=kind, length=int(first) if first is not None else None)
        if first is not None:
            raise SchemaError(f"{name} takes no parameters: {text!r}")
        return HiveType(kind=kind)
    except ValueError as exc:
        if isinstance(exc, SchemaError):
            raise
        raise SchemaError(f"invalid type {text!r}: {exc}") from exc


TINYINT = HiveType(kind=TypeKind.TINYINT)
SMALLINT = HiveType(kind=TypeKind.SMALLINT)
INT = HiveType(kind=TypeKind.INT)
BIGINT = HiveType(kind=TypeKind.BIGINT)
REAL = HiveType(kind=TypeKind.REAL)
DOUBLE = HiveType(kind=TypeKind.DOUBLE)
TIMESTAMP = HiveType(kind=TypeKind.TIMESTAMP)
DATE = HiveType(kind=TypeKind.DATE)
STRING = HiveType(kind=TypeKind.VARCHAR)
BOOLEAN = HiveType(kind=TypeKind.BOOLEAN)
VARBINARY = HiveType(kind=TypeKind.VARBINARY)


def decimal(precision: int, scale: int = 0) -> HiveType:
    return HiveType(kind=TypeKind.DECIMAL, precision=precision, scale=scale)


def varchar(length: int | None = None) -> HiveType:
    return HiveType(kind=TypeKind.VARCHAR, length=length)


def char(length: int) -> HiveType:
    return HiveType(kind=TypeKind.CHAR, length=length)
