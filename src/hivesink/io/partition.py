"""
Partition model and resolver for the insert write path.

Overview
- PartitionKey: ordered (column, value) pairs with a canonical Hive name ("dt=2018-01-01")
  used both for the directory layout and for equality/lookup.
- Partition: a key, a storage location and a lifecycle state (PENDING or COMMITTED).
- PartitionResolver: maps partition values to a Partition, reusing committed partitions
  found in the catalog and allocating PENDING ones otherwise.

Ownership
- A PENDING partition belongs to the insert whose resolver allocated it. It becomes visible
  to others only when the catalog commit succeeds; on failure it is discarded.
- Allocation is idempotent per key within one resolver (one insert invocation); across
  invocations the catalog arbitrates.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from hivesink.core.errors import PartitionResolutionError
from hivesink.core.tables import TableDescriptor

from .paths import partition_location, partition_name

if TYPE_CHECKING:
    from .catalog import Catalog

logger = logging.getLogger(__name__)


class PartitionState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"


@dataclass(slots=True, frozen=True)
class PartitionKey:
    """
    Ordered partition (column, value) pairs.

    Notes:
        Empty-string values are normalized to None; both denote the Hive default partition.
        The empty key identifies the implicit partition of an unpartitioned table.
    """

    pairs: tuple[tuple[str, str | None], ...] = ()

    def __post_init__(self) -> None:
        normalized = tuple((col, None if val == "" else val) for col, val in self.pairs)
        object.__setattr__(self, "pairs", normalized)

    @property
    def name(self) -> str:
        return partition_name(self.pairs)

    @property
    def values(self) -> list[str | None]:
        return [v for _, v in self.pairs]

    @property
    def is_default(self) -> bool:
        return not self.pairs

    def __str__(self) -> str:
        return self.name


@dataclass(slots=True)
class Partition:
    """
    A table subdivision and its directory.

    Attributes:
        key (PartitionKey): Identity of the partition.
        location (str): Directory holding the partition's data files.
        state (PartitionState): PENDING until the owning insert commits.
    """

    key: PartitionKey
    location: str
    state: PartitionState = PartitionState.COMMITTED


def build_partition_key(
    table: TableDescriptor, partition_values: Sequence[tuple[str, str | None]]
) -> PartitionKey:
    """
    Validate partition values against the table's partition columns and build the key.

    Raises:
        PartitionResolutionError: Wrong count, wrong order/names, or non-string values.
    """
    expected = table.partition_column_names
    if len(partition_values) != len(expected):
        raise PartitionResolutionError(
            f"{table.qualified_name} expects {len(expected)} partition value(s) {expected!r}, "
            f"got {len(partition_values)}"
        )
    pairs: list[tuple[str, str | None]] = []
    for (col, value), want in zip(partition_values, expected):
        if not isinstance(col, str) or col.lower() != want:
            raise PartitionResolutionError(
                f"partition column mismatch for {table.qualified_name}: expected {want!r}, got {col!r}"
            )
        if value is not None and not isinstance(value, str):
            raise PartitionResolutionError(
                f"partition value for {want!r} must be a string or None, got {value!r}"
            )
        pairs.append((want, value))
    return PartitionKey(tuple(pairs))


class PartitionResolver:
    """
    Resolve partition values to Partition objects for one insert invocation.

    Notes:
        - Thread-safe; the same key always resolves to the same Partition object.
        - new_partitions lists the PENDING partitions allocated so far, in allocation order.
    """

    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog
        self._resolved: dict[PartitionKey, Partition] = {}
        self._lock = threading.Lock()

    @property
    def new_partitions(self) -> list[Partition]:
        with self._lock:
            return [p for p in self._resolved.values() if p.state is PartitionState.PENDING]

    def resolve(
        self, table: TableDescriptor, partition_values: Sequence[tuple[str, str | None]]
    ) -> Partition:
        """
        Return the target partition for the given values.

        Args:
            table (TableDescriptor): Target table (must have a location).
            partition_values: Ordered (column, string value) pairs; empty for unpartitioned
                tables.

        Returns:
            Partition: The implicit default partition (unpartitioned table), an existing
            COMMITTED partition, or a newly allocated PENDING partition at
            <table location>/<col>=<value>/...

        Raises:
            PartitionResolutionError: Malformed values, or a table without a location.
        """
        if table.location is None:
            raise PartitionResolutionError(f"table {table.qualified_name} has no location")
        key = build_partition_key(table, partition_values)
        with self._lock:
            cached = self._resolved.get(key)
            if cached is not None:
                return cached
            if key.is_default:
                partition = Partition(key=key, location=table.location)
            else:
                partition = self._catalog.find_partition(table, key)
                if partition is None:
                    partition = Partition(
                        key=key,
                        location=partition_location(table.location, key.pairs),
                        state=PartitionState.PENDING,
                    )
                    logger.debug("allocated pending partition %s of %s", key, table.qualified_name)
            self._resolved[key] = partition
            return partition
