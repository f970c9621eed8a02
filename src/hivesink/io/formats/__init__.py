"""
Format writers and readers keyed by StorageFormat.

- TEXT -> TextFormatWriter / read_text_file (delimited text, LazySimpleSerDe rules)
- COLUMNAR_BINARY -> ParquetFormatWriter / read_parquet_file (Parquet via pyarrow)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, Final

from hivesink.core.tables import StorageFormat, TableDescriptor

from ..config import WriterSettings
from .base import FileHandle, FormatWriter, WriteBatch
from .parquet import ParquetFormatWriter, read_parquet_file
from .text import TextFormatWriter, read_text_file

__all__ = [
    "FileHandle",
    "FormatWriter",
    "WriteBatch",
    "TextFormatWriter",
    "ParquetFormatWriter",
    "WRITERS",
    "writer_for",
    "read_data_file",
]

WRITERS: Final[dict[StorageFormat, type[FormatWriter]]] = {
    StorageFormat.TEXT: TextFormatWriter,
    StorageFormat.COLUMNAR_BINARY: ParquetFormatWriter,
}

_READERS: Final[dict[StorageFormat, Callable[[str, TableDescriptor], Iterator[list[Any]]]]] = {
    StorageFormat.TEXT: read_text_file,
    StorageFormat.COLUMNAR_BINARY: read_parquet_file,
}


def writer_for(table: TableDescriptor, settings: WriterSettings) -> FormatWriter:
    """Instantiate the writer for the table's storage format."""
    return WRITERS[table.storage_format](table, settings)


def read_data_file(path: str, table: TableDescriptor) -> Iterator[list[Any]]:
    """Yield data-column values per row of one data file of the table."""
    return _READERS[table.storage_format](path, table)
