"""
Warehouse facade for hivesink.io.

Bundles a WriterSettings and a Catalog handle and exposes the table lifecycle
(create/drop), the insert write path (insert, insert_select) and the read path
(read, read_frame, partitions).

Source of truth
- Descriptors and types: hivesink.core.tables / hivesink.core.types
- Coercion rules: hivesink.core.coercion
- Layout: hivesink.io.paths

Import DAG discipline:
- Depends only on stdlib, polars/pyarrow, hivesink.core.* and sibling io modules.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from typing import Any

import polars as pl

from hivesink.core.tables import StorageFormat, TableDescriptor

from .catalog import Catalog, FileCatalog
from .config import WriterSettings
from .insert import InsertCoordinator, InsertResult, RowSource
from .read import iter_rows, read_frame, read_rows


class Warehouse:
    """
    Facade bound to one WriterSettings and one Catalog.

    Notes:
        - When no catalog is given, a FileCatalog rooted at settings.root_dir is used.
        - The facade holds no table state of its own; every call goes through the catalog.
    """

    def __init__(self, settings: WriterSettings | None = None, catalog: Catalog | None = None) -> None:
        """
        Initialize the facade.

        Args:
            settings (WriterSettings | None): Writer configuration; WriterSettings.load()
                when omitted.
            catalog (Catalog | None): Catalog handle; a FileCatalog under settings.root_dir
                when omitted.

        Notes:
            This does not perform any I/O beyond loading settings.
        """
        self.settings = settings or WriterSettings.load()
        self.catalog = catalog or FileCatalog(
            self.settings.root_dir, default_database=self.settings.default_database
        )

    # ---------------------------------------------------------------------
    # Tables
    # ---------------------------------------------------------------------
    def create_table(
        self,
        name: str,
        columns: Mapping[str, Any] | Sequence[Any],
        *,
        partitioned_by: Mapping[str, Any] | Sequence[Any] = (),
        storage_format: StorageFormat | str = StorageFormat.TEXT,
        serde_properties: Mapping[str, str] | None = None,
        table_properties: Mapping[str, str] | None = None,
        exist_ok: bool = False,
    ) -> TableDescriptor:
        """
        Create a table in the catalog.

        Args:
            name (str): "db.table" or "table" (default database).
            columns: Data columns as {name: type} or (name, type) pairs; types may be Hive
                type strings ("decimal(10,5)") or HiveType values.
            partitioned_by: Partition columns, same forms as columns.
            storage_format (StorageFormat | str): "textfile" or "parquet".
            serde_properties (Mapping[str, str] | None): e.g. {"field.delim": ","}.
            table_properties (Mapping[str, str] | None): e.g. {"transactional": "true"}.
            exist_ok (bool): Return the existing descriptor instead of failing.

        Returns:
            TableDescriptor: The registered descriptor, location included.
        """
        database, _, table = name.rpartition(".")
        desc = TableDescriptor(
            database=database or self.settings.default_database,
            name=table,
            columns=columns,  # type: ignore[arg-type]
            partition_columns=partitioned_by,  # type: ignore[arg-type]
            storage_format=storage_format,  # type: ignore[arg-type]
            serde_properties=dict(serde_properties or {}),
            table_properties=dict(table_properties or {}),
        )
        return self.catalog.create_table(desc, exist_ok=exist_ok)

    def drop_table(self, name: str, *, purge: bool = True) -> None:
        """Drop a table; purge also removes its data directory."""
        self.catalog.drop_table(name, purge=purge)

    def table(self, name: str) -> TableDescriptor:
        return self.catalog.get_table(name)

    # ---------------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------------
    def insert(
        self,
        table: str | TableDescriptor,
        rows: RowSource,
        *,
        columns: Sequence[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> InsertResult:
        """
        INSERT INTO table VALUES ... / INSERT INTO table (cols) VALUES ...

        Args:
            table (str | TableDescriptor): Target table.
            rows (RowSource): Rows (data columns then partition values) or a polars.DataFrame.
            columns (Sequence[str] | None): Optional explicit target column list.
            cancel_event (threading.Event | None): Cancellation flag honored until COMMITTING.

        Returns:
            InsertResult: rows written, committed files, new partition names.

        Raises:
            hivesink.core.errors.InsertError: Any insert failure; nothing is committed.
        """
        coordinator = InsertCoordinator(
            self.catalog,
            table,
            rows,
            settings=self.settings,
            columns=columns,
            cancel_event=cancel_event,
        )
        return coordinator.run()

    def insert_select(
        self,
        target: str | TableDescriptor,
        source: str | TableDescriptor,
        *,
        columns: Sequence[str] | None = None,
    ) -> InsertResult:
        """
        INSERT INTO target SELECT * FROM source.

        Notes:
            The source rows (data columns then partition values) are matched positionally
            to the target columns; the source is fully read before any file is written.
        """
        return self.insert(target, iter_rows(self.catalog, source), columns=columns)

    # ---------------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------------
    def read(self, table: str | TableDescriptor) -> list[tuple[Any, ...]]:
        """All committed rows: data columns followed by typed partition values."""
        return read_rows(self.catalog, table)

    def read_frame(self, table: str | TableDescriptor) -> pl.DataFrame:
        """All committed rows as a polars DataFrame."""
        return read_frame(self.catalog, table)

    def partitions(self, table: str | TableDescriptor) -> list[str]:
        """Names of the committed partitions, e.g. ["dt=2018-01-01"]."""
        desc = table if isinstance(table, TableDescriptor) else self.catalog.get_table(table)
        return [p.key.name for p in self.catalog.list_partitions(desc) if p.key.name]
