"""
hivesink core defaults.

Defines serde property names, their LazySimpleSerDe defaults, partition naming constants and
writer defaults consumed by the IO layer. This module is zero-IO and uses only the Python
standard library.

Notes:
    - Text-format defaults mirror Hive's LazySimpleSerDe (Ctrl-A field delimiter, newline line
      delimiter, ``\\N`` null sentinel).
    - hivesink.io.config.WriterSettings takes its defaults from here; change them here.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_DATABASE",
    "FIELD_DELIM",
    "LINE_DELIM",
    "SERIALIZATION_FORMAT",
    "SERIALIZATION_NULL_FORMAT",
    "DEFAULT_FIELD_DELIM",
    "DEFAULT_LINE_DELIM",
    "DEFAULT_NULL_FORMAT",
    "DEFAULT_PARTITION_NAME",
    "TRANSACTIONAL_PROPERTY",
    "COMPRESSION",
    "ROW_GROUP_SIZE",
    "MAX_WORKERS",
    "WRITE_RETRIES",
    "ROOT_DIR",
]

DEFAULT_DATABASE: str = "default"

# Serde property names (ROW FORMAT SERDE ... WITH SERDEPROPERTIES).
FIELD_DELIM: str = "field.delim"
LINE_DELIM: str = "line.delim"
SERIALIZATION_FORMAT: str = "serialization.format"
SERIALIZATION_NULL_FORMAT: str = "serialization.null.format"

DEFAULT_FIELD_DELIM: str = "\x01"
DEFAULT_LINE_DELIM: str = "\n"
DEFAULT_NULL_FORMAT: str = "\\N"

# Directory value used when a partition value is null or empty.
DEFAULT_PARTITION_NAME: str = "__HIVE_DEFAULT_PARTITION__"

# TBLPROPERTIES key marking ACID tables.
TRANSACTIONAL_PROPERTY: str = "transactional"

# Writer defaults.
ROOT_DIR: str = "warehouse"
COMPRESSION: str = "snappy"
ROW_GROUP_SIZE: int = 128 * 1024
MAX_WORKERS: int = 4
WRITE_RETRIES: int = 2
