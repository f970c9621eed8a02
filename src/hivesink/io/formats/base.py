"""
Format writer contract shared by the text and columnar writers.

Overview
- open(partition, serde_properties) -> WriteBatch: start a new data file for a partition.
- append(batch, row): buffer one row of coerced storage values (data columns only).
- finish(batch) -> FileHandle: persist the file with tmp -> fsync -> atomic rename.
- discard(handle): remove a finished but uncommitted file (rollback).

Notes
- A WriteBatch belongs to exactly one writer call chain and is never shared across threads.
- Transient OSErrors during finish are retried WriterSettings.write_retries times for the
  same file; anything else, or the last failure, surfaces as SerializationError. The tmp
  file is removed after every failed attempt.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from hivesink.core.errors import SerializationError
from hivesink.core.tables import TableDescriptor

from ..config import WriterSettings
from ..fs import fsync_path, makedirs, remove_quietly, rename_atomic, size_of
from ..partition import Partition, PartitionKey
from ..paths import PartPaths, part_paths

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FileHandle:
    """
    A finished data file awaiting commit.

    Attributes:
        partition (PartitionKey): Partition the file belongs to.
        path (str): Final path of the file.
        rows (int): Rows in the file.
        bytes (int): File size in bytes.
    """

    partition: PartitionKey
    path: str
    rows: int
    bytes: int


@dataclass(slots=True)
class WriteBatch:
    """
    In-flight accumulation for one (partition, file) pair.

    Attributes:
        partition (Partition): Target partition.
        serde (dict[str, str]): Serialization properties in effect for this file.
        paths (PartPaths): Temporary and final paths of the file.
        rows (int): Rows appended so far.
        buffer (list[Any]): Format-specific buffer (encoded lines, or one value list per
            column).
        closed (bool): True once finish() succeeded.
    """

    partition: Partition
    serde: dict[str, str]
    paths: PartPaths
    rows: int = 0
    buffer: list[Any] = field(default_factory=list)
    closed: bool = False


class FormatWriter(ABC):
    """Base class of per-format writers; one instance may serve many batches."""

    suffix: str = ""

    def __init__(self, table: TableDescriptor, settings: WriterSettings) -> None:
        self.table = table
        self.settings = settings

    def open(self, partition: Partition, serde_properties: Mapping[str, str] | None = None) -> WriteBatch:
        """Start a new data file in the partition's directory."""
        serde = dict(self.table.serde_properties if serde_properties is None else serde_properties)
        batch = WriteBatch(
            partition=partition,
            serde=serde,
            paths=part_paths(partition.location, uuid.uuid4().hex, self.suffix),
        )
        self._init_batch(batch)
        return batch

    @abstractmethod
    def append(self, batch: WriteBatch, row: Sequence[Any]) -> None:
        """Buffer one row of storage values, one per data column."""

    def finish(self, batch: WriteBatch) -> FileHandle:
        """
        Persist the batch as one visible data file.

        Raises:
            SerializationError: If the file could not be written.
        """
        if batch.closed:
            raise SerializationError(f"batch for {batch.paths.final_path} is already finished")
        tmp_path, final_path = batch.paths.tmp_path, batch.paths.final_path
        attempts = self.settings.write_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                makedirs(batch.partition.location, exist_ok=True)
                self._write_payload(batch, tmp_path)
                fsync_path(tmp_path)
                rename_atomic(tmp_path, final_path)
                break
            except OSError as exc:
                remove_quietly(tmp_path)
                if attempt == attempts:
                    raise SerializationError(
                        f"failed to write {final_path} for {self.table.qualified_name} "
                        f"after {attempts} attempt(s): {exc}"
                    ) from exc
                logger.warning(
                    "write of %s failed (attempt %d/%d), retrying: %s",
                    final_path,
                    attempt,
                    attempts,
                    exc,
                )
            except Exception as exc:
                remove_quietly(tmp_path)
                raise SerializationError(
                    f"failed to serialize {final_path} for {self.table.qualified_name}: {exc}"
                ) from exc

        batch.closed = True
        handle = FileHandle(
            partition=batch.partition.key,
            path=final_path,
            rows=batch.rows,
            bytes=size_of(final_path),
        )
        logger.debug("wrote %s (%d rows, %d bytes)", final_path, handle.rows, handle.bytes)
        return handle

    def discard(self, handle: FileHandle) -> None:
        """Remove a finished, uncommitted file."""
        remove_quietly(handle.path)

    def _init_batch(self, batch: WriteBatch) -> None:
        """Prepare the format-specific buffer of a new batch."""

    @abstractmethod
    def _write_payload(self, batch: WriteBatch, path: str) -> None:
        """Write the complete file content of batch to path."""
