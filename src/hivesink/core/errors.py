"""
Exception types raised by descriptor validation, configuration and the insert write path.

Provides one base class (HiveSinkError) and typed errors per failure kind:
- SchemaError for malformed type names and descriptor invariants.
- ConfigError for invalid writer settings.
- TableNotFoundError when the catalog has no such table.
- InsertError and its subclasses for everything that aborts an insert.

Notes:
    - Every InsertError aborts the whole insert; nothing is committed.
    - Only SerializationError is worth retrying, and only by re-issuing the whole insert.
    - This module uses only the Python standard library and has no side effects.

Examples:
    >>> from hivesink.core.errors import UnsupportedTableError, InsertError
    >>> err = UnsupportedTableError("default.t")
    >>> isinstance(err, InsertError)
    True
    >>> str(err)
    'Inserting into Hive transactional tables is not supported: default.t'
"""

from __future__ import annotations

__all__ = [
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


class HiveSinkError(Exception):
    """Base class for all hivesink errors."""


class SchemaError(HiveSinkError, ValueError):
    """Malformed type name or violated table/column descriptor invariant."""


class ConfigError(HiveSinkError, ValueError):
    """Invalid or unsupported writer configuration."""


class TableNotFoundError(HiveSinkError, LookupError):
    """The catalog has no table with the requested name."""


class InsertError(HiveSinkError):
    """
    Base class for failures that abort an insert.

    Notes:
        The caller receives either a row count or exactly one InsertError; there is no
        partial success.
    """


class UnsupportedTableError(InsertError):
    """
    Raised when the target table is transactional (ACID).

    Attributes:
        table_name (str): Fully qualified table name (database.table).
    """

    def __init__(self, table_name: str) -> None:
        self.table_name = table_name
        super().__init__(f"Inserting into Hive transactional tables is not supported: {table_name}")


class TypeCoercionError(InsertError):
    """Value does not match, or does not fit, the target column type."""


class PartitionResolutionError(InsertError):
    """Partition values are missing, malformed or do not match the partition columns."""


class SerializationError(InsertError):
    """
    Format writer failure (e.g., I/O fault while writing a data file).

    Notes:
        Transient faults are retried per file before this is raised.
    """


class MetastoreCommitError(InsertError):
    """
    The catalog refused or failed to register files and partitions.

    Notes:
        Never retried internally; written files are rolled back.
    """


class InsertCancelledError(InsertError):
    """The insert was cancelled before the commit barrier."""
