"""
Insert coordinator: the INSERT INTO write path.

Overview
- One InsertCoordinator per insert invocation, driving the state machine
  VALIDATING -> GUARDING -> RESOLVING -> WRITING -> COMMITTING -> DONE (any -> FAILED).
  - VALIDATING: fetch the table descriptor; check the optional target column list.
  - GUARDING: refuse transactional tables before any row is looked at.
  - RESOLVING: check row width (and frame dtypes), group rows by partition key, resolve each
    distinct key to a Partition.
  - WRITING: one task per partition group on a bounded thread pool; each task coerces and
    appends its rows in source order and finishes one data file.
  - COMMITTING: register all files and new partitions with the catalog as one unit.
- Any failure rolls back: finished files are removed and empty directories of partitions
  allocated by this insert are pruned. Nothing is committed.

Row sources
- Any iterable of row sequences (consumed once), laid out as the target columns: the table's
  data columns followed by its partition columns, or the explicit column list.
- A polars.DataFrame, matched positionally to the same layout.

Cancellation
- cancel() (or the cancel_event passed in) is honored while grouping, between rows, and
  immediately before COMMITTING. Once the catalog commit starts it has no effect.

Examples
```python
from hivesink.io import FileCatalog, insert_into

catalog = FileCatalog("warehouse")
insert_into(catalog, "default.target_partitioned", [(1, "presto", "2018-01-01")])  # 1
```
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

import polars as pl

from hivesink.core.coercion import coerce
from hivesink.core.errors import (
    InsertCancelledError,
    InsertError,
    MetastoreCommitError,
    SchemaError,
    TypeCoercionError,
)
from hivesink.core.tables import ColumnDescriptor, TableDescriptor
from hivesink.core.types import TypeKind

from .catalog import Catalog
from .config import WriterSettings
from .formats import FileHandle, FormatWriter, writer_for
from .formats.text import to_partition_value
from .fs import prune_empty_dirs
from .guard import check_transactional
from .partition import Partition, PartitionKey, PartitionResolver, PartitionState

logger = logging.getLogger(__name__)

RowSource = Iterable[Sequence[Any]] | pl.DataFrame

_INTEGER_DTYPES: Final[tuple[Any, ...]] = (
    pl.Int8,
    pl.Int16,
    pl.Int32,
    pl.Int64,
    pl.UInt8,
    pl.UInt16,
    pl.UInt32,
    pl.UInt64,
)

# Frame dtypes accepted per target kind; values are still range-checked by coercion.
_FRAME_DTYPES: Final[dict[TypeKind, tuple[Any, ...]]] = {
    TypeKind.TINYINT: _INTEGER_DTYPES,
    TypeKind.SMALLINT: _INTEGER_DTYPES,
    TypeKind.INT: _INTEGER_DTYPES,
    TypeKind.BIGINT: _INTEGER_DTYPES,
    TypeKind.REAL: (pl.Float32, pl.Float64) + _INTEGER_DTYPES,
    TypeKind.DOUBLE: (pl.Float32, pl.Float64) + _INTEGER_DTYPES,
    TypeKind.DECIMAL: (pl.Decimal,) + _INTEGER_DTYPES,
    TypeKind.TIMESTAMP: (pl.Datetime,),
    TypeKind.DATE: (pl.Date,),
    TypeKind.VARCHAR: (pl.Utf8,),
    TypeKind.CHAR: (pl.Utf8,),
    TypeKind.BOOLEAN: (pl.Boolean,),
    TypeKind.VARBINARY: (pl.Binary,),
}


class InsertState(str, Enum):
    VALIDATING = "validating"
    GUARDING = "guarding"
    RESOLVING = "resolving"
    WRITING = "writing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class InsertResult:
    """
    Outcome of a successful insert.

    Attributes:
        table (str): Qualified table name.
        rows (int): Rows written.
        files (tuple[FileHandle, ...]): Committed data files.
        new_partitions (tuple[str, ...]): Names of partitions created by this insert.
    """

    table: str
    rows: int
    files: tuple[FileHandle, ...] = ()
    new_partitions: tuple[str, ...] = ()


class _WriteAborted(Exception):
    """A sibling partition task failed; stop without reporting."""


@dataclass(slots=True)
class _Group:
    partition: Partition
    rows: list[tuple[int, list[Any]]]


class InsertCoordinator:
    """
    Run one insert into a catalog table.

    Args:
        catalog (Catalog): Catalog handle used for descriptor lookup, partition lookup and commit.
        table (str | TableDescriptor): "db.table", "table", or a descriptor whose qualified
            name is looked up.
        rows (RowSource): Iterable of rows or a polars.DataFrame.
        settings (WriterSettings | None): Writer settings; defaults to WriterSettings().
        columns (Sequence[str] | None): Explicit target columns; unlisted columns are null.
        cancel_event (threading.Event | None): Shared cancellation flag.
    """

    def __init__(
        self,
        catalog: Catalog,
        table: str | TableDescriptor,
        rows: RowSource,
        *,
        settings: WriterSettings | None = None,
        columns: Sequence[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._catalog = catalog
        self._table_name = table.qualified_name if isinstance(table, TableDescriptor) else table
        self._rows = rows
        self._settings = settings or WriterSettings()
        self._columns = list(columns) if columns is not None else None
        self._cancel_event = cancel_event or threading.Event()

        self.state: InsertState | None = None
        self._lock = threading.Lock()
        self._abort = threading.Event()
        self._error: BaseException | None = None
        self._handles: list[FileHandle] = []
        self._writer: FormatWriter | None = None
        self._resolver = PartitionResolver(catalog)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def cancel(self) -> None:
        """Request cancellation; ignored once COMMITTING has started."""
        self._cancel_event.set()

    def run(self) -> InsertResult:
        """
        Execute the insert.

        Returns:
            InsertResult: Rows written, committed files and new partition names.

        Raises:
            UnsupportedTableError: Transactional target table.
            TypeCoercionError: Row width, dtype or value mismatch.
            PartitionResolutionError: Malformed partition values.
            SerializationError: A data file could not be written.
            MetastoreCommitError: The catalog rejected or failed the commit.
            InsertCancelledError: Cancelled before COMMITTING.
            TableNotFoundError: Unknown table.
            SchemaError: Invalid target column list.
        """
        if self.state is not None:
            raise InsertError(f"insert into {self._table_name} has already run")
        table: TableDescriptor | None = None
        try:
            self._transition(InsertState.VALIDATING)
            table = self._catalog.get_table(self._table_name)
            target = self._target_columns(table)

            self._transition(InsertState.GUARDING)
            check_transactional(table)

            self._transition(InsertState.RESOLVING)
            groups = self._group_rows(table, target)

            self._transition(InsertState.WRITING)
            self._writer = writer_for(table, self._settings)
            self._write_groups(table, self._writer, groups)

            self._check_cancelled()
            self._transition(InsertState.COMMITTING)
            new_partitions = self._resolver.new_partitions
            self._commit(table, new_partitions)
        except Exception:
            self._rollback(table)
            self._transition(InsertState.FAILED)
            raise

        self._transition(InsertState.DONE)
        rows = sum(h.rows for h in self._handles)
        return InsertResult(
            table=table.qualified_name,
            rows=rows,
            files=tuple(self._handles),
            new_partitions=tuple(p.key.name for p in new_partitions),
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------
    def _transition(self, state: InsertState) -> None:
        logger.debug(
            "insert into %s: %s -> %s",
            self._table_name,
            self.state.value if self.state else "start",
            state.value,
        )
        self.state = state

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise InsertCancelledError(f"insert into {self._table_name} was cancelled")

    def _target_columns(self, table: TableDescriptor) -> list[ColumnDescriptor]:
        if self._columns is None:
            return list(table.all_columns)
        by_name = {c.name: c for c in table.all_columns}
        names = [str(c).strip().lower() for c in self._columns]
        unknown = [n for n in names if n not in by_name]
        if unknown:
            raise SchemaError(f"unknown column(s) {unknown!r} for table {table.qualified_name}")
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise SchemaError(f"column(s) {dupes!r} listed more than once for {table.qualified_name}")
        return [by_name[n] for n in names]

    def _iter_rows(self, table: TableDescriptor, target: list[ColumnDescriptor]) -> Iterable[Sequence[Any]]:
        if not isinstance(self._rows, pl.DataFrame):
            return self._rows
        frame = self._rows
        if frame.width != len(target):
            raise TypeCoercionError(
                f"insert into {table.qualified_name}: frame has {frame.width} column(s), "
                f"expected {len(target)}"
            )
        for col, name, dtype in zip(target, frame.columns, frame.dtypes):
            allowed = _FRAME_DTYPES[col.type.kind]
            if dtype == pl.Null or any(dtype == candidate for candidate in allowed):
                continue
            raise TypeCoercionError(
                f"insert into {table.qualified_name}: frame column {name!r} of type {dtype} "
                f"cannot be stored in {col.name} {col.type}"
            )
        return frame.iter_rows()

    def _group_rows(self, table: TableDescriptor, target: list[ColumnDescriptor]) -> list[_Group]:
        positions = {c.name: i for i, c in enumerate(table.all_columns)}
        slots = [positions[c.name] for c in target]
        n_data = len(table.columns)
        width = len(table.all_columns)

        groups: dict[PartitionKey, list[tuple[int, list[Any]]]] = {}
        for index, row in enumerate(self._iter_rows(table, target)):
            self._check_cancelled()
            if len(row) != len(target):
                raise TypeCoercionError(
                    f"insert into {table.qualified_name}: row {index} has {len(row)} value(s), "
                    f"expected {len(target)}"
                )
            full: list[Any] = [None] * width
            for slot, value in zip(slots, row):
                full[slot] = value
            key = PartitionKey(
                tuple(
                    (col.name, to_partition_value(self._coerce(table, col, value, index), col.type))
                    for col, value in zip(table.partition_columns, full[n_data:])
                )
            )
            groups.setdefault(key, []).append((index, full[:n_data]))

        resolved = [
            _Group(partition=self._resolver.resolve(table, list(key.pairs)), rows=rows)
            for key, rows in groups.items()
        ]
        logger.debug(
            "insert into %s: %d row(s) in %d partition group(s)",
            table.qualified_name,
            sum(len(g.rows) for g in resolved),
            len(resolved),
        )
        return resolved

    def _write_groups(
        self, table: TableDescriptor, writer: FormatWriter, groups: list[_Group]
    ) -> None:
        if not groups:
            return
        workers = min(self._settings.max_workers, len(groups))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="hivesink-insert") as pool:
            for group in groups:
                pool.submit(self._run_group, table, writer, group)
        # The executor context joins every task before COMMITTING.
        if self._error is not None:
            raise self._error

    def _run_group(self, table: TableDescriptor, writer: FormatWriter, group: _Group) -> None:
        try:
            self._write_group(table, writer, group)
        except _WriteAborted:
            return
        except Exception as exc:
            with self._lock:
                if self._error is None:
                    self._error = exc
            self._abort.set()

    def _write_group(self, table: TableDescriptor, writer: FormatWriter, group: _Group) -> None:
        batch = writer.open(group.partition)
        for index, values in group.rows:
            if self._abort.is_set():
                raise _WriteAborted()
            self._check_cancelled()
            storage = [
                self._coerce(table, col, value, index) for col, value in zip(table.columns, values)
            ]
            writer.append(batch, storage)
        if self._abort.is_set():
            raise _WriteAborted()
        handle = writer.finish(batch)
        with self._lock:
            self._handles.append(handle)

    def _commit(self, table: TableDescriptor, new_partitions: list[Partition]) -> None:
        if not self._handles:
            logger.debug("insert into %s: nothing to commit", table.qualified_name)
            return
        try:
            self._catalog.commit(table, list(self._handles), new_partitions)
        except MetastoreCommitError:
            raise
        except Exception as exc:
            raise MetastoreCommitError(
                f"commit of {len(self._handles)} file(s) to {table.qualified_name} failed: {exc}"
            ) from exc
        for p in new_partitions:
            p.state = PartitionState.COMMITTED

    def _rollback(self, table: TableDescriptor | None) -> None:
        handles, self._handles = self._handles, []
        if self._writer is not None:
            for handle in handles:
                self._writer.discard(handle)
        if table is not None and table.location:
            for p in self._resolver.new_partitions:
                prune_empty_dirs(p.location, table.location)
        if handles:
            logger.warning(
                "insert into %s failed; removed %d uncommitted file(s)", self._table_name, len(handles)
            )

    @staticmethod
    def _coerce(table: TableDescriptor, col: ColumnDescriptor, value: Any, index: int) -> Any:
        try:
            return coerce(value, col.type)
        except TypeCoercionError as exc:
            raise TypeCoercionError(f"{table.qualified_name}.{col.name} (row {index}): {exc}") from exc


def insert_into(
    catalog: Catalog,
    table: str | TableDescriptor,
    rows: RowSource,
    *,
    settings: WriterSettings | None = None,
    columns: Sequence[str] | None = None,
    cancel_event: threading.Event | None = None,
) -> int:
    """
    Insert rows into a catalog table and return the number of rows written.

    Raises:
        InsertError: One of its subclasses; nothing is committed on failure.
    """
    coordinator = InsertCoordinator(
        catalog, table, rows, settings=settings, columns=columns, cancel_event=cancel_event
    )
    return coordinator.run().rows
