"""
Read path: table contents as committed in the catalog.

- Only catalog-registered files are read; leftovers of failed inserts are invisible.
- Data files are decoded with the table descriptor (the same rules the writers use), and
  typed partition values, parsed back from the partition names, are appended to every row.
- Row order follows partition name order, then commit order, then file order.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import polars as pl
import pyarrow as pa

from hivesink.core.tables import TableDescriptor

from .catalog import Catalog
from .formats import read_data_file
from .formats.parquet import arrow_schema
from .formats.text import from_partition_value


def _resolve(catalog: Catalog, table: str | TableDescriptor) -> TableDescriptor:
    if isinstance(table, TableDescriptor):
        return catalog.get_table(table.qualified_name)
    return catalog.get_table(table)


def iter_rows(catalog: Catalog, table: str | TableDescriptor) -> Iterator[tuple[Any, ...]]:
    """Yield rows laid out as data columns followed by partition columns."""
    desc = _resolve(catalog, table)
    for partition in catalog.list_partitions(desc):
        part_values = [
            from_partition_value(value, col.type)
            for col, value in zip(desc.partition_columns, partition.key.values)
        ]
        for path in catalog.list_files(desc, partition):
            for values in read_data_file(path, desc):
                yield tuple(values + part_values)


def read_rows(catalog: Catalog, table: str | TableDescriptor) -> list[tuple[Any, ...]]:
    """
    Read every committed row of a table.

    Returns:
        list[tuple]: One tuple per row; CHAR values keep their declared padding, DECIMAL
        values keep their scale, REAL values are the stored 32-bit values.
    """
    return list(iter_rows(catalog, table))


def read_frame(catalog: Catalog, table: str | TableDescriptor) -> pl.DataFrame:
    """
    Read every committed row of a table as a polars DataFrame.

    Notes:
        Column dtypes follow the storage Arrow schema (e.g., real -> Float32,
        decimal(p,s) -> Decimal(p,s), timestamp -> Datetime("ms")).
    """
    desc = _resolve(catalog, table)
    schema = arrow_schema(desc.all_columns)
    rows = list(iter_rows(catalog, desc))
    columns = list(zip(*rows)) if rows else [() for _ in schema]
    arrays = [pa.array(list(values), type=field.type) for values, field in zip(columns, schema)]
    return pl.from_arrow(pa.Table.from_arrays(arrays, schema=schema))  # type: ignore[return-value]
