"""
hivesink.io: Insert write path, catalog and read path for Hive-layout tables.

## Responsibilities
- Write rows into Hive tables on a local file store: type coercion (hivesink.core), partition
  resolution, text (LazySimpleSerDe) and columnar (Parquet) data files, catalog commit.
- Guarantee all-or-nothing inserts: files become visible by atomic rename, and are registered
  in the catalog in one commit after every partition task has finished; failures roll back.
- Refuse inserts into transactional tables with the Hive message
  "Inserting into Hive transactional tables is not supported: <db>.<table>".
- Read committed table contents back with the same descriptor.

## Public API
- WriterSettings: configuration (env > TOML > defaults from hivesink.core.constants).
- Catalog / FileCatalog: catalog contract and the JSON-backed implementation.
- InsertCoordinator / insert_into / InsertResult / InsertState: the write path.
- read_rows / read_frame: the read path.
- Warehouse: facade bundling settings and catalog.

## Import DAG discipline
- Depends only on stdlib, polars/pyarrow/pydantic and hivesink.core.*.

## Examples
```python
from hivesink.io import Warehouse, WriterSettings

wh = Warehouse(WriterSettings(root_dir="warehouse"))  # doctest: +SKIP
wh.create_table(  # doctest: +SKIP
    "target_partitioned",
    [("id", "int"), ("name", "string")],
    partitioned_by=[("dt", "string")],
)
wh.insert("target_partitioned", [(1, "presto", "2018-01-01")]).rows  # doctest: +SKIP
wh.read("target_partitioned")  # doctest: +SKIP
```

## Notes
- Write path per file: hidden tmp file -> fsync -> os.replace(tmp, final) in the partition
  directory.
- Layout: <root>/<table> for the default database, <root>/<db>.db/<table> otherwise;
  partitions nest as <col>=<value> directories.
- The catalog stores one JSON entry per table under <root>/_metastore/.
"""

from __future__ import annotations

from .catalog import Catalog, FileCatalog
from .config import WriterSettings
from .insert import InsertCoordinator, InsertResult, InsertState, insert_into
from .partition import Partition, PartitionKey, PartitionState
from .read import read_frame, read_rows
from .warehouse import Warehouse

__all__ = [
    "Catalog",
    "FileCatalog",
    "WriterSettings",
    "InsertCoordinator",
    "InsertResult",
    "InsertState",
    "insert_into",
    "Partition",
    "PartitionKey",
    "PartitionState",
    "read_frame",
    "read_rows",
    "Warehouse",
]
