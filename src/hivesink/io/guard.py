"""
Transactional guard: refuse inserts into ACID tables before anything else happens.
"""

from __future__ import annotations

from hivesink.core.errors import UnsupportedTableError
from hivesink.core.tables import TableDescriptor


def check_transactional(table: TableDescriptor) -> None:
    """
    Approve a table for insert.

    Raises:
        UnsupportedTableError: If the table is transactional, regardless of its storage
            format or of the rows being inserted.
    """
    if table.transactional:
        raise UnsupportedTableError(table.qualified_name)
