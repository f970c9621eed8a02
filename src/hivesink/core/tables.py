"""
Frozen table and column descriptors for Hive-compatible tables.

Notes:
    - A TableDescriptor is read-only input to an insert: fetched once from the catalog and
      shared by every worker of that insert.
    - Data columns come first; partition columns trail them positionally and are disjoint
      from them. Column names are normalized to lower case as Hive does.
    - TBLPROPERTIES ('transactional'='true') marks a table transactional even when the
      flag itself is not passed.
    - Zero-IO (stdlib + pydantic only); hivesink.io persists descriptors via model_dump().

Examples:
    >>> from hivesink.core.tables import TableDescriptor
    >>> desc = TableDescriptor(
    ...     name="target_partitioned",
    ...     columns=[("id", "int"), ("name", "string")],
    ...     partition_columns=[("dt", "string")],
    ...     serde_properties={"field.delim": "\\t"},
    ... )
    >>> desc.qualified_name, desc.partition_column_names
    ('default.target_partitioned', ['dt'])
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from .constants import DEFAULT_DATABASE, TRANSACTIONAL_PROPERTY
from .errors import SchemaError
from .types import HiveType, TypeKind, parse_type

__all__ = [
    "StorageFormat",
    "ColumnDescriptor",
    "TableDescriptor",
]


class StorageFormat(str, Enum):
    """On-disk format of a table's data files."""

    TEXT = "textfile"
    COLUMNAR_BINARY = "parquet"


class ColumnDescriptor(BaseModel):
    """
    A named, typed column.

    Attributes:
        name (str): Column name (normalized to lower case).
        type (HiveType): Logical type; a Hive type name string is accepted and parsed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: HiveType

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise SchemaError(f"column name must be a non-empty string, got {v!r}")
        return v.strip().lower()

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_type(v)
        return v

    @field_serializer("type")
    def _dump_type(self, t: HiveType) -> str:
        return str(t)


def _as_columns(v: Any) -> Any:
    """Accept a mapping name -> type or (name, type) pairs besides ColumnDescriptor items."""
    if isinstance(v, Mapping):
        return [{"name": k, "type": t} for k, t in v.items()]
    if isinstance(v, (list, tuple)):
        out: list[Any] = []
        for item in v:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                out.append({"name": item[0], "type": item[1]})
            else:
                out.append(item)
        return out
    return v


class TableDescriptor(BaseModel):
    """
    Everything the write path needs to know about a target table.

    Attributes:
        database (str): Database (schema) name.
        name (str): Table name.
        columns (tuple[ColumnDescriptor, ...]): Data columns in insertion order.
        partition_columns (tuple[ColumnDescriptor, ...]): Partition columns (possibly empty).
        storage_format (StorageFormat): TEXT or COLUMNAR_BINARY.
        serde_properties (dict[str, str]): Row serialization properties (field.delim, ...).
        table_properties (dict[str, str]): TBLPROPERTIES.
        transactional (bool): ACID table; inserts are rejected.
        location (str | None): Table directory; assigned by the catalog on creation.

    Raises:
        pydantic.ValidationError: On an empty column list, duplicate names, overlap between
            data and partition columns, or a binary partition column.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    database: str = DEFAULT_DATABASE
    name: str
    columns: tuple[ColumnDescriptor, ...]
    partition_columns: tuple[ColumnDescriptor, ...] = ()
    storage_format: StorageFormat = StorageFormat.TEXT
    serde_properties: dict[str, str] = Field(default_factory=dict)
    table_properties: dict[str, str] = Field(default_factory=dict)
    transactional: bool = False
    location: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("database", "name"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip().lower()
        for key in ("columns", "partition_columns"):
            if key in data:
                data[key] = _as_columns(data[key])
        fmt = data.get("storage_format")
        if isinstance(fmt, str):
            data["storage_format"] = fmt.strip().lower()
        props = data.get("table_properties") or {}
        if str(props.get(TRANSACTIONAL_PROPERTY, "")).strip().lower() == "true":
            data["transactional"] = True
        return data

    @model_validator(mode="after")
    def _check_columns(self) -> TableDescriptor:
        if not self.name:
            raise SchemaError("table name must be non-empty")
        if not self.columns:
            raise SchemaError(f"table {self.qualified_name} needs at least one data column")
        data_names = [c.name for c in self.columns]
        part_names = [c.name for c in self.partition_columns]
        for names in (data_names, part_names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            if dupes:
                raise SchemaError(f"duplicate column names in {self.qualified_name}: {dupes!r}")
        overlap = sorted(set(data_names) & set(part_names))
        if overlap:
            raise SchemaError(
                f"partition columns overlap data columns in {self.qualified_name}: {overlap!r}"
            )
        for col in self.partition_columns:
            if col.type.kind is TypeKind.VARBINARY:
                raise SchemaError(f"unsupported type for partition column {col.name!r}: binary")
        return self

    @property
    def qualified_name(self) -> str:
        return f"{self.database}.{self.name}"

    @property
    def is_partitioned(self) -> bool:
        return bool(self.partition_columns)

    @property
    def all_columns(self) -> tuple[ColumnDescriptor, ...]:
        """Data columns followed by partition columns (row layout of an insert)."""
        return self.columns + self.partition_columns

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def partition_column_names(self) -> list[str]:
        return [c.name for c in self.partition_columns]

    def column_types(self) -> list[HiveType]:
        return [c.type for c in self.columns]
