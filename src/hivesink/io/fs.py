"""
Filesystem helpers for hivesink.io (local file store).

Responsibilities
- The handful of file operations the write path needs: directories, durable binary writes,
  atomic renames, rollback removals and pruning of partition directories.
- The visibility protocol for data files and catalog entries: write a hidden tmp file,
  fsync it, then os.replace it onto the final name. Readers see all of a file or nothing.

Import DAG discipline
- stdlib-only; no imports from other hivesink modules.

Notes
- os.replace is atomic only within one filesystem; tmp files always sit next to their
  final path.
- Everything here blocks; the insert coordinator owns the threading.
- file_lock uses fcntl.flock, so catalog commits are serialized across processes and across
  catalog objects on POSIX file stores.
"""

from __future__ import annotations

import fcntl
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

logger = logging.getLogger(__name__)


def makedirs(path: str, exist_ok: bool = True) -> None:
    """Create path and any missing parents."""
    os.makedirs(path, exist_ok=exist_ok)


@contextmanager
def open_write(path: str, *, durable: bool = False) -> Iterator[BinaryIO]:
    """
    Binary write handle for path.

    Args:
        path (str): File to create or truncate.
        durable (bool): Flush and fsync before closing when the block exits normally.

    Yields:
        BinaryIO: The open handle.
    """
    with open(path, "wb") as fh:
        yield fh
        if durable:
            fh.flush()
            os.fsync(fh.fileno())


def fsync_path(path: str) -> None:
    """
    fsync a file that some library already wrote and closed.

    Notes:
        pyarrow.parquet.write_table and friends manage their own handles, so the data file
        is reopened read-only just to sync it before the rename.
    """
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


@contextmanager
def file_lock(path: str) -> Iterator[None]:
    """
    Hold an exclusive advisory lock on path for the duration of the block.

    Notes:
        The lock file is created if missing and left in place afterwards. Each call opens its
        own descriptor, so two holders in one process also exclude each other.
    """
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


def rename_atomic(src: str, dst: str) -> None:
    """Move src onto dst in one step (os.replace); dst is overwritten if present."""
    os.replace(src, dst)


def remove_quietly(path: str) -> bool:
    """
    Best-effort removal of a file used during cleanup and rollback.

    Returns:
        bool: True if the file was removed, False if it was absent or could not be removed.
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("could not remove %s during cleanup: %s", path, exc)
        return False
    return True


def prune_empty_dirs(path: str, stop: str) -> None:
    """
    Remove path and its parents while they are empty, never removing stop or above.

    Args:
        path (str): Innermost directory (e.g., a partition directory created by an insert).
        stop (str): Boundary directory (e.g., the table location).
    """
    stop = os.path.abspath(stop)
    cur = os.path.abspath(path)
    while cur != stop and cur.startswith(stop + os.sep):
        try:
            os.rmdir(cur)
        except OSError:
            # Not empty or already gone.
            return
        cur = os.path.dirname(cur)


def size_of(path: str) -> int:
    """Return the file size in bytes, or 0 if the file does not exist."""
    try:
        return int(os.path.getsize(path))
    except FileNotFoundError:
        return 0
