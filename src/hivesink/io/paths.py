"""
Path and layout helpers for hivesink.io.

Overview (local warehouse layout)
- <root>/<table>/                              table location, database "default"
- <root>/<db>.db/<table>/                      table location, any other database
- <table_location>/<col>=<value>/.../part-<UUID>[.parquet]
- <root>/_metastore/<db>/<table>.json          file catalog entry for the table

Notes
- Partition directory names follow Hive: one `col=value` segment per partition column,
  innermost last, with Hive path-name escaping (`%XX`) of special characters.
- Null or empty partition values map to __HIVE_DEFAULT_PARTITION__.
- This module focuses solely on path construction; it performs no IO.
"""

from __future__ import annotations

import os
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from hivesink.core.constants import DEFAULT_DATABASE, DEFAULT_PARTITION_NAME

_METASTORE_DIR: Final[str] = "_metastore"

# Characters Hive escapes in partition path names (FileUtils.escapePathName).
_ESCAPED_CHARS: Final[frozenset[str]] = frozenset(
    [chr(c) for c in range(0x01, 0x20)] + list("\"#%'*/:=?\\\x7f{[]^")
)

# Allow safe identifier characters in database/table names. A leading underscore is reserved:
# Hive treats such directories as hidden and the catalog lives in "<root>/_metastore".
_IDENTIFIER_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9][a-z0-9_]*$")


def escape_path_name(text: str) -> str:
    """
    Escape a partition column name or value for use as a path segment.

    Examples:
        >>> escape_path_name("2018/01:01")
        '2018%2F01%3A01'
    """
    return "".join(f"%{ord(ch):02X}" if ch in _ESCAPED_CHARS else ch for ch in text)


def unescape_path_name(text: str) -> str:
    """Inverse of escape_path_name."""
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "%" and _is_hex(text[i + 1 : i + 3]):
            out.append(chr(int(text[i + 1 : i + 3], 16)))
            i += 3
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _is_hex(s: str) -> bool:
    return len(s) == 2 and all(c in "0123456789abcdefABCDEF" for c in s)


def partition_segment(column: str, value: str | None) -> str:
    """Format one `col=value` directory segment."""
    if value is None or value == "":
        return f"{escape_path_name(column)}={DEFAULT_PARTITION_NAME}"
    return f"{escape_path_name(column)}={escape_path_name(value)}"


def partition_name(pairs: Sequence[tuple[str, str | None]]) -> str:
    """
    Canonical Hive partition name for ordered (column, value) pairs.

    Returns:
        str: e.g. "dt=2018-01-01/country=pl"; "" for the default partition of an
        unpartitioned table.
    """
    return "/".join(partition_segment(col, val) for col, val in pairs)


def validate_identifier(name: str, what: str = "identifier") -> str:
    """
    Validate that a database or table name is safe for filesystem paths.

    Raises:
        ValueError: If the name is empty, starts with "_" or contains characters outside [a-z0-9_].
    """
    if not name or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"{what} {name!r} is not allowed; names match [a-z0-9][a-z0-9_]*")
    return name


def split_table_name(name: str, default_database: str = DEFAULT_DATABASE) -> tuple[str, str]:
    """
    Split "db.table" (or "table") into a validated (database, table) pair.

    Raises:
        ValueError: If the name has more than two parts or illegal characters.
    """
    parts = (name or "").strip().lower().split(".")
    if len(parts) == 1:
        parts = [default_database, parts[0]]
    if len(parts) != 2:
        raise ValueError(f"table name must be 'table' or 'database.table', got {name!r}")
    return validate_identifier(parts[0], "database"), validate_identifier(parts[1], "table")


def database_dir(root_dir: str, database: str) -> str:
    """Database directory: the warehouse root for "default", "<root>/<db>.db" otherwise."""
    if database == DEFAULT_DATABASE:
        return root_dir
    return os.path.join(root_dir, f"{database}.db")


def table_location(root_dir: str, database: str, table: str) -> str:
    """Default location of a table under the warehouse root."""
    return os.path.join(database_dir(root_dir, database), table)


def partition_location(location: str, pairs: Sequence[tuple[str, str | None]]) -> str:
    """Table location plus one `col=value` segment per partition column."""
    if not pairs:
        return location
    return os.path.join(location, *(partition_segment(c, v) for c, v in pairs))


def metastore_path(root_dir: str, database: str, table: str) -> str:
    """Path of the file catalog entry: "<root>/_metastore/<db>/<table>.json"."""
    return os.path.join(root_dir, _METASTORE_DIR, database, f"{table}.json")


@dataclass(slots=True, frozen=True)
class PartPaths:
    """
    Container for a data file's temporary and final paths.

    Attributes:
        tmp_path (str): Hidden temporary file used for the initial write.
        final_path (str): Final file path after atomic rename.
    """

    tmp_path: str
    final_path: str


def part_paths(directory: str, uuid_str: str, suffix: str = "") -> PartPaths:
    """
    Compute temporary and final data file paths inside a partition directory.

    Args:
        directory (str): Partition (or table) directory.
        uuid_str (str): Hex string used to build a unique file name.
        suffix (str): File extension including the dot ("" for text, ".parquet" for columnar).

    Returns:
        PartPaths: ".part-<UUID><suffix>.tmp" and "part-<UUID><suffix>".
    """
    base_name = f"part-{uuid_str}{suffix}"
    tmp_path = os.path.join(directory, f".{base_name}.tmp")
    final_path = os.path.join(directory, base_name)
    return PartPaths(tmp_path=tmp_path, final_path=final_path)
