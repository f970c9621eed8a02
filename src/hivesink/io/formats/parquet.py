"""
Columnar binary format: Parquet via pyarrow.

Overview
- Rows are buffered column-wise (one Python list per data column) and written as one
  Parquet file per batch, compressed per WriterSettings.compression.
- The Arrow schema is derived from the table descriptor:
    tinyint int8, smallint int16, int int32, bigint int64, real float32, double float64,
    decimal(p,s) decimal128(p,s), timestamp timestamp[ms], date date32,
    varchar/char string, boolean bool, varbinary binary.
- Files embed key-value metadata naming the table, the partition and the writer.
- Partition column values are not stored in the files; they live in the directory names.

Notes
- The round-trip contract is value-level: reading a file with the same descriptor yields
  the same storage values (CHAR values keep their padding).
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from typing import Any, Final

import pyarrow as pa
import pyarrow.parquet as pq

from hivesink.core.errors import SerializationError
from hivesink.core.tables import ColumnDescriptor, TableDescriptor
from hivesink.core.types import HiveType, TypeKind

from .base import FormatWriter, WriteBatch

_ARROW_TYPES: Final[dict[TypeKind, Callable[[HiveType], pa.DataType]]] = {
    TypeKind.TINYINT: lambda _t: pa.int8(),
    TypeKind.SMALLINT: lambda _t: pa.int16(),
    TypeKind.INT: lambda _t: pa.int32(),
    TypeKind.BIGINT: lambda _t: pa.int64(),
    TypeKind.REAL: lambda _t: pa.float32(),
    TypeKind.DOUBLE: lambda _t: pa.float64(),
    TypeKind.DECIMAL: lambda t: pa.decimal128(t.precision or 1, t.scale or 0),
    TypeKind.TIMESTAMP: lambda _t: pa.timestamp("ms"),
    TypeKind.DATE: lambda _t: pa.date32(),
    TypeKind.VARCHAR: lambda _t: pa.string(),
    TypeKind.CHAR: lambda _t: pa.string(),
    TypeKind.BOOLEAN: lambda _t: pa.bool_(),
    TypeKind.VARBINARY: lambda _t: pa.binary(),
}


def arrow_type(t: HiveType) -> pa.DataType:
    """Arrow type used to store a logical type."""
    return _ARROW_TYPES[t.kind](t)


def arrow_schema(
    columns: Sequence[ColumnDescriptor], metadata: dict[bytes, bytes] | None = None
) -> pa.Schema:
    """Arrow schema for the given columns, all nullable."""
    fields = [pa.field(c.name, arrow_type(c.type), nullable=True) for c in columns]
    return pa.schema(fields, metadata=metadata)


class ParquetFormatWriter(FormatWriter):
    """Writes one Parquet file per batch."""

    suffix = ".parquet"

    def _init_batch(self, batch: WriteBatch) -> None:
        batch.buffer = [[] for _ in self.table.columns]

    def append(self, batch: WriteBatch, row: Sequence[Any]) -> None:
        for values, value in zip(batch.buffer, row, strict=True):
            values.append(value)
        batch.rows += 1

    def _write_payload(self, batch: WriteBatch, path: str) -> None:
        schema = arrow_schema(
            self.table.columns,
            metadata={
                b"hivesink_table": self.table.qualified_name.encode("utf-8"),
                b"hivesink_partition": batch.partition.key.name.encode("utf-8"),
                b"hivesink_writer": b"hivesink",
            },
        )
        arrays = [
            pa.array(values, type=field.type) for values, field in zip(batch.buffer, schema)
        ]
        arrow_table = pa.Table.from_arrays(arrays, schema=schema)
        pq.write_table(
            arrow_table,
            path,
            compression=self.settings.compression,
            row_group_size=self.settings.row_group_size,
        )


def read_parquet_file(path: str, table: TableDescriptor) -> Iterator[list[Any]]:
    """
    Yield data-column values for each row of a Parquet data file.

    Raises:
        SerializationError: If the file lacks one of the table's data columns.
    """
    arrow_table = pq.read_table(path)
    missing = [name for name in table.column_names if name not in arrow_table.column_names]
    if missing:
        raise SerializationError(f"{path} is missing columns {missing!r} of {table.qualified_name}")
    columns = [arrow_table.column(name).to_pylist() for name in table.column_names]
    for row in zip(*columns):
        yield list(row)
