"""
Core package aggregator for hivesink contracts (types, descriptors, coercion, errors).

## Contracts (single source of truth)
- Types: TypeKind (closed set of logical types) and HiveType with parameters.
- Tables: ColumnDescriptor, TableDescriptor, StorageFormat.
- Coercion: engine value -> storage value per logical type.
- Errors: HiveSinkError hierarchy, including every error kind an insert can raise.
- Constants: serde property names and defaults, writer defaults.

## Notes
- Zero-IO policy: stdlib + pydantic only; no file or network IO.
- Column names are lower case; partition columns trail data columns.

## Downstream usage
- hivesink.io: the insert write path, catalog, format writers and read path all take their
  type and descriptor decisions from here.

## Examples
```python
from decimal import Decimal
from hivesink.core import TableDescriptor, coerce, parse_type

desc = TableDescriptor(name="t", columns=[("price", "decimal(10,5)")])
coerce(Decimal("345.678"), desc.columns[0].type)  # Decimal('345.67800')
parse_type("char(10)").length  # 10
```
"""

from __future__ import annotations

from .coercion import coerce, coerce_row
from .errors import (
    ConfigError,
    HiveSinkError,
    InsertCancelledError,
    InsertError,
    MetastoreCommitError,
    PartitionResolutionError,
    SchemaError,
    SerializationError,
    TableNotFoundError,
    TypeCoercionError,
    UnsupportedTableError,
)
from .tables import ColumnDescriptor, StorageFormat, TableDescriptor
from .types import HiveType, TypeKind, parse_type

__all__ = [
    "coerce",
    "coerce_row",
    "ColumnDescriptor",
    "StorageFormat",
    "TableDescriptor",
    "HiveType",
    "TypeKind",
    "parse_type",
    "HiveSinkError",
    "SchemaError",
    "ConfigError",
    "TableNotFoundError",
    "InsertError",
    "UnsupportedTableError",
    "TypeCoercionError",
    "PartitionResolutionError",
    "SerializationError",
    "MetastoreCommitError",
    "InsertCancelledError",
]
