"""
Catalog contract and a file-backed catalog.

Contract (what the write path consumes)
- get_table(name) -> TableDescriptor
- find_partition(table, key) -> Partition | None
- commit(table, files, new_partitions) -> None, raising MetastoreCommitError
- list_partitions(table) / list_files(table, partition) for the read path

FileCatalog layout (JSON at <root>/_metastore/<db>/<table>.json):
{
  "table": "default.target_partitioned",
  "version": 1,
  "created_at": "ISO-8601",
  "updated_at": "ISO-8601",
  "descriptor": { ... TableDescriptor.model_dump(mode="json") ... },
  "partitions": {
    "dt=2018-01-01": {
      "name": "dt=2018-01-01",
      "values": ["2018-01-01"],
      "location": "<root>/target_partitioned/dt=2018-01-01",
      "created_at": "ISO-8601",
      "files": [
        {"path": "part-<UUID>", "rows": 1, "bytes": 16, "created_at": "ISO-8601"}
      ]
    }
  }
}

Notes:
- File paths are stored relative to the partition location.
- An unpartitioned table keeps its files under the partition named "" at the table location.
- Every read-modify-write of an entry holds the catalog's thread lock and an flock on
  "<table>.json.lock", so commits from different catalog objects or processes sharing a root
  are serialized. Entries are persisted with a uniquely named tmp file -> atomic rename, so a
  commit either fully lands or leaves the entry untouched.
- The catalog is an explicit handle passed to the write path; there is no process-wide
  table registry.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from hivesink.core.constants import DEFAULT_DATABASE
from hivesink.core.errors import HiveSinkError, MetastoreCommitError, SchemaError, TableNotFoundError
from hivesink.core.tables import TableDescriptor

from .formats.base import FileHandle
from .fs import file_lock, makedirs, open_write, remove_quietly, rename_atomic
from .partition import Partition, PartitionKey, PartitionState
from .paths import metastore_path, split_table_name, table_location

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Catalog(ABC):
    """Narrow metastore interface consumed by the insert write path and the read path."""

    @abstractmethod
    def get_table(self, name: str) -> TableDescriptor:
        """Return the descriptor of "db.table" or "table"; raise TableNotFoundError."""

    @abstractmethod
    def find_partition(self, table: TableDescriptor, key: PartitionKey) -> Partition | None:
        """Return the COMMITTED partition with this key, or None."""

    @abstractmethod
    def commit(
        self,
        table: TableDescriptor,
        files: Sequence[FileHandle],
        new_partitions: Sequence[Partition],
    ) -> None:
        """
        Register files and newly created partitions as one logical unit.

        Raises:
            MetastoreCommitError: If nothing could be registered. Implementations must not
                let two commits for the same new key succeed with different locations.
        """

    @abstractmethod
    def list_partitions(self, table: TableDescriptor) -> list[Partition]:
        """Committed partitions of the table, ordered by name."""

    @abstractmethod
    def list_files(self, table: TableDescriptor, partition: Partition) -> list[str]:
        """Committed data files of a partition, in commit order."""

    def create_table(self, table: TableDescriptor, *, exist_ok: bool = False) -> TableDescriptor:
        raise NotImplementedError(f"{type(self).__name__} does not provision tables")

    def drop_table(self, name: str, *, purge: bool = True) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not drop tables")


# -----------------------------------------------------------------------------
# File catalog entry model
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class FileMeta:
    """
    A committed data file.

    Attributes:
        path (str): File path relative to the partition location.
        rows (int): Row count.
        bytes (int): File size in bytes.
        created_at (str): ISO-8601 commit timestamp.
    """

    path: str
    rows: int
    bytes: int
    created_at: str


@dataclass(slots=True)
class PartitionMeta:
    """
    A committed partition.

    Attributes:
        name (str): Canonical partition name ("" for an unpartitioned table).
        values (list[str | None]): Partition values in partition-column order.
        location (str): Partition directory.
        created_at (str): ISO-8601 commit timestamp.
        files (list[FileMeta]): Committed files in commit order.
    """

    name: str
    values: list[str | None]
    location: str
    created_at: str
    files: list[FileMeta] = field(default_factory=list)


@dataclass(slots=True)
class TableEntry:
    """A table's catalog entry: descriptor plus committed partitions and files."""

    table: str
    version: int
    created_at: str
    updated_at: str
    descriptor: dict[str, Any]
    partitions: dict[str, PartitionMeta]

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "descriptor": self.descriptor,
            "partitions": {k: asdict(v) for k, v in self.partitions.items()},
        }

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> TableEntry:
        partitions: dict[str, PartitionMeta] = {}
        for key, p in (obj.get("partitions") or {}).items():
            partitions[key] = PartitionMeta(
                name=p["name"],
                values=list(p.get("values") or []),
                location=p["location"],
                created_at=p.get("created_at") or _utc_now_iso(),
                files=[FileMeta(**fm) for fm in (p.get("files") or [])],
            )
        return cls(
            table=obj["table"],
            version=int(obj.get("version", 1)),
            created_at=obj.get("created_at") or _utc_now_iso(),
            updated_at=obj.get("updated_at") or _utc_now_iso(),
            descriptor=dict(obj["descriptor"]),
            partitions=partitions,
        )


class FileCatalog(Catalog):
    """
    Catalog persisted as one JSON entry per table under the warehouse root.

    Args:
        root_dir (str): Warehouse root.
        default_database (str): Database used for unqualified table names.
    """

    def __init__(self, root_dir: str, default_database: str = DEFAULT_DATABASE) -> None:
        self.root_dir = root_dir
        self.default_database = default_database
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Entry IO
    # ------------------------------------------------------------------
    def _entry_path(self, database: str, name: str) -> str:
        return metastore_path(self.root_dir, database, name)

    def _load(self, database: str, name: str) -> TableEntry:
        path = self._entry_path(database, name)
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError as exc:
            raise TableNotFoundError(f"table {database}.{name} does not exist") from exc
        return TableEntry.from_json_obj(data)

    def _write(self, database: str, name: str, entry: TableEntry) -> None:
        final_path = self._entry_path(database, name)
        makedirs(os.path.dirname(final_path), exist_ok=True)
        tmp_path = f"{final_path}.{uuid.uuid4().hex}.tmp"
        payload = json.dumps(entry.to_json_obj(), indent=2, sort_keys=False).encode("utf-8")
        try:
            with open_write(tmp_path, durable=True) as fh:
                fh.write(payload)
            rename_atomic(tmp_path, final_path)
        except Exception:
            remove_quietly(tmp_path)
            raise

    @contextmanager
    def _locked(self, database: str, name: str) -> Iterator[None]:
        entry_path = self._entry_path(database, name)
        makedirs(os.path.dirname(entry_path), exist_ok=True)
        with self._lock, file_lock(entry_path + ".lock"):
            yield

    def _split(self, name: str) -> tuple[str, str]:
        try:
            return split_table_name(name, self.default_database)
        except ValueError as exc:
            raise TableNotFoundError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------
    def create_table(self, table: TableDescriptor, *, exist_ok: bool = False) -> TableDescriptor:
        """
        Register a table and create its location directory.

        Returns:
            TableDescriptor: The stored descriptor (location filled in when it was None).

        Raises:
            HiveSinkError: If the table exists and exist_ok is False.
            SchemaError: If the database or table name is not a safe identifier.
        """
        try:
            database, name = split_table_name(table.qualified_name)
        except ValueError as exc:
            raise SchemaError(str(exc)) from exc
        if table.location is None:
            table = table.model_copy(
                update={"location": table_location(self.root_dir, database, name)}
            )
        with self._locked(database, name):
            if os.path.exists(self._entry_path(database, name)):
                if exist_ok:
                    return self.get_table(table.qualified_name)
                raise HiveSinkError(f"table {table.qualified_name} already exists")
            makedirs(table.location, exist_ok=True)  # type: ignore[arg-type]
            now = _utc_now_iso()
            entry = TableEntry(
                table=table.qualified_name,
                version=1,
                created_at=now,
                updated_at=now,
                descriptor=table.model_dump(mode="json"),
                partitions={},
            )
            self._write(database, name, entry)
        logger.info("created table %s at %s", table.qualified_name, table.location)
        return table

    def drop_table(self, name: str, *, purge: bool = True) -> None:
        """Remove a table's entry and, when purge is True, its location directory."""
        database, table_name = self._split(name)
        with self._locked(database, table_name):
            table = self.get_table(f"{database}.{table_name}")
            os.remove(self._entry_path(database, table_name))
            if purge and table.location and os.path.isdir(table.location):
                shutil.rmtree(table.location)
        logger.info("dropped table %s.%s", database, table_name)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------
    def get_table(self, name: str) -> TableDescriptor:
        database, table_name = self._split(name)
        entry = self._load(database, table_name)
        try:
            return TableDescriptor.model_validate(entry.descriptor)
        except ValidationError as exc:
            raise SchemaError(f"corrupt descriptor for {database}.{table_name}: {exc}") from exc

    def find_partition(self, table: TableDescriptor, key: PartitionKey) -> Partition | None:
        entry = self._load(table.database, table.name)
        meta = entry.partitions.get(key.name)
        if meta is None:
            return None
        return Partition(key=key, location=meta.location, state=PartitionState.COMMITTED)

    def list_partitions(self, table: TableDescriptor) -> list[Partition]:
        entry = self._load(table.database, table.name)
        names = table.partition_column_names
        out: list[Partition] = []
        for pname in sorted(entry.partitions):
            meta = entry.partitions[pname]
            key = PartitionKey(tuple(zip(names, meta.values)))
            out.append(Partition(key=key, location=meta.location, state=PartitionState.COMMITTED))
        return out

    def list_files(self, table: TableDescriptor, partition: Partition) -> list[str]:
        entry = self._load(table.database, table.name)
        meta = entry.partitions.get(partition.key.name)
        if meta is None:
            return []
        return [os.path.join(meta.location, fm.path) for fm in meta.files]

    def commit(
        self,
        table: TableDescriptor,
        files: Sequence[FileHandle],
        new_partitions: Sequence[Partition],
    ) -> None:
        with self._locked(table.database, table.name):
            try:
                entry = self._load(table.database, table.name)
            except TableNotFoundError as exc:
                raise MetastoreCommitError(f"cannot commit to {table.qualified_name}: {exc}") from exc

            for p in new_partitions:
                existing = entry.partitions.get(p.key.name)
                if existing is not None and os.path.abspath(existing.location) != os.path.abspath(
                    p.location
                ):
                    raise MetastoreCommitError(
                        f"partition {p.key.name} of {table.qualified_name} already exists at "
                        f"{existing.location}, not {p.location}"
                    )

            known = set(entry.partitions) | {p.key.name for p in new_partitions}
            for f in files:
                pname = f.partition.name
                if pname and pname not in known:
                    raise MetastoreCommitError(
                        f"file {f.path} targets unknown partition {pname!r} of {table.qualified_name}"
                    )

            now = _utc_now_iso()
            for p in new_partitions:
                entry.partitions.setdefault(
                    p.key.name,
                    PartitionMeta(
                        name=p.key.name, values=p.key.values, location=p.location, created_at=now
                    ),
                )
            for f in files:
                pname = f.partition.name
                meta = entry.partitions.get(pname)
                if meta is None:
                    meta = PartitionMeta(
                        name=pname, values=[], location=table.location or "", created_at=now
                    )
                    entry.partitions[pname] = meta
                meta.files.append(
                    FileMeta(
                        path=os.path.relpath(f.path, meta.location),
                        rows=f.rows,
                        bytes=f.bytes,
                        created_at=now,
                    )
                )
            entry.updated_at = now

            try:
                self._write(table.database, table.name, entry)
            except OSError as exc:
                raise MetastoreCommitError(
                    f"failed to persist catalog entry for {table.qualified_name}: {exc}"
                ) from exc
        logger.info(
            "committed %d file(s) and %d new partition(s) to %s",
            len(files),
            len(new_partitions),
            table.qualified_name,
        )
