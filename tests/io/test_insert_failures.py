from __future__ import annotations

import os
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

import hivesink.io.formats.base as base
from hivesink.core.errors import (
    InsertCancelledError,
    InsertError,
    MetastoreCommitError,
    PartitionResolutionError,
    SchemaError,
    SerializationError,
    TableNotFoundError,
    TypeCoercionError,
)
from hivesink.core.tables import TableDescriptor
from hivesink.io import FileCatalog, InsertCoordinator, InsertState, Warehouse, WriterSettings
from hivesink.io.formats.base import FileHandle
from hivesink.io.formats.text import TextFormatWriter
from hivesink.io.partition import Partition


class FailingCatalog(FileCatalog):
    def commit(
        self,
        table: TableDescriptor,
        files: Sequence[FileHandle],
        new_partitions: Sequence[Partition],
    ) -> None:
        raise RuntimeError("metastore unavailable")


def _data_files(location: str) -> list[str]:
    out: list[str] = []
    for dirpath, _dirs, names in os.walk(location):
        out.extend(os.path.join(dirpath, n) for n in names)
    return out


@pytest.fixture()
def settings(tmp_path: Path) -> WriterSettings:
    return WriterSettings(root_dir=str(tmp_path), max_workers=2)


@pytest.fixture()
def warehouse(settings: WriterSettings) -> Warehouse:
    wh = Warehouse(settings)
    wh.create_table("t", [("id", "int"), ("name", "string")], partitioned_by=[("dt", "string")])
    return wh


def test_coercion_failure_rolls_back_every_partition(warehouse: Warehouse) -> None:
    table = warehouse.table("t")
    rows = [(1, "a", "2018-01-01"), (2, "b", "2018-01-02"), ("three", "c", "2018-01-02")]

    coordinator = InsertCoordinator(warehouse.catalog, "t", rows, settings=warehouse.settings)
    with pytest.raises(TypeCoercionError) as info:
        coordinator.run()

    assert "default.t.id" in str(info.value)
    assert "row 2" in str(info.value)
    assert coordinator.state is InsertState.FAILED
    assert _data_files(table.location) == []
    assert os.listdir(table.location) == []
    assert warehouse.partitions("t") == []
    assert warehouse.read("t") == []


def test_partition_value_coercion_failure(warehouse: Warehouse) -> None:
    warehouse.create_table("typed", [("id", "int")], partitioned_by=[("bucket", "int")])
    with pytest.raises(TypeCoercionError, match="default.typed.bucket"):
        warehouse.insert("typed", [(1, "seven")])


def test_commit_failure_discards_files(settings: WriterSettings) -> None:
    catalog = FailingCatalog(settings.root_dir)
    wh = Warehouse(settings, catalog)
    table = wh.create_table("t", [("id", "int")], partitioned_by=[("dt", "string")])
    wh.create_table("plain", [("id", "int")])

    with pytest.raises(MetastoreCommitError, match="metastore unavailable"):
        wh.insert("t", [(1, "2018-01-01"), (2, "2018-01-02")])
    assert os.listdir(table.location) == []

    with pytest.raises(MetastoreCommitError):
        wh.insert("plain", [(1,)])
    assert os.listdir(wh.table("plain").location) == []


def test_rollback_keeps_committed_partitions(warehouse: Warehouse, settings: WriterSettings) -> None:
    warehouse.insert("t", [(1, "a", "2018-01-01")])
    table = warehouse.table("t")
    committed = _data_files(table.location)

    failing = Warehouse(settings, FailingCatalog(settings.root_dir))
    with pytest.raises(MetastoreCommitError):
        failing.insert("t", [(2, "b", "2018-01-01"), (3, "c", "2018-01-03")])

    assert _data_files(table.location) == committed
    assert sorted(os.listdir(table.location)) == ["dt=2018-01-01"]
    assert warehouse.read("t") == [(1, "a", "2018-01-01")]


def test_cancel_before_run(warehouse: Warehouse) -> None:
    event = threading.Event()
    event.set()
    with pytest.raises(InsertCancelledError):
        warehouse.insert("t", [(1, "a", "2018-01-01")], cancel_event=event)
    assert warehouse.read("t") == []


def test_cancel_after_files_written_leaves_nothing(warehouse: Warehouse, monkeypatch) -> None:
    table = warehouse.table("t")
    event = threading.Event()
    original = TextFormatWriter.finish

    def finish_then_cancel(self, batch):
        handle = original(self, batch)
        event.set()
        return handle

    monkeypatch.setattr(TextFormatWriter, "finish", finish_then_cancel)
    coordinator = InsertCoordinator(
        warehouse.catalog, "t", [(1, "a", "2018-01-01")], settings=warehouse.settings, cancel_event=event
    )
    with pytest.raises(InsertCancelledError):
        coordinator.run()

    assert coordinator.state is InsertState.FAILED
    assert os.listdir(table.location) == []
    assert warehouse.partitions("t") == []


def test_transient_write_failure_is_retried(warehouse: Warehouse, monkeypatch, caplog) -> None:
    calls = {"n": 0}
    real_rename = base.rename_atomic

    def flaky_rename(src: str, dst: str) -> None:
        calls["n"] += 1
        if calls["n"] == 1:
            raise OSError("disk hiccup")
        real_rename(src, dst)

    monkeypatch.setattr(base, "rename_atomic", flaky_rename)
    with caplog.at_level("WARNING", logger="hivesink.io.formats.base"):
        result = warehouse.insert("t", [(1, "a", "2018-01-01")])

    assert result.rows == 1
    assert calls["n"] == 2
    assert "retrying" in caplog.text
    assert warehouse.read("t") == [(1, "a", "2018-01-01")]


def test_persistent_write_failure_raises_serialization_error(tmp_path: Path, monkeypatch) -> None:
    settings = WriterSettings(root_dir=str(tmp_path), write_retries=1)
    wh = Warehouse(settings)
    table = wh.create_table("t", [("id", "int")])

    def broken_rename(src: str, dst: str) -> None:
        raise OSError("read-only file system")

    monkeypatch.setattr(base, "rename_atomic", broken_rename)
    with pytest.raises(SerializationError, match="after 2 attempt"):
        wh.insert("t", [(1,)])
    assert os.listdir(table.location) == []


def test_validation_errors(warehouse: Warehouse) -> None:
    with pytest.raises(TableNotFoundError):
        warehouse.insert("missing", [(1,)])
    with pytest.raises(SchemaError):
        warehouse.insert("t", [(1,)], columns=["nope"])
    with pytest.raises(SchemaError):
        warehouse.insert("t", [(1, 1)], columns=["id", "id"])
    with pytest.raises(TypeCoercionError, match="row 1 has 2"):
        warehouse.insert("t", [(1, "a", "x"), (2, "b")])


def test_coordinator_runs_once(warehouse: Warehouse) -> None:
    coordinator = InsertCoordinator(warehouse.catalog, "t", [], settings=warehouse.settings)
    assert coordinator.run().rows == 0
    with pytest.raises(InsertError):
        coordinator.run()


def test_table_without_location_cannot_resolve(settings: WriterSettings) -> None:
    class NoLocationCatalog(FileCatalog):
        def get_table(self, name: str) -> TableDescriptor:
            return super().get_table(name).model_copy(update={"location": None})

    catalog = NoLocationCatalog(settings.root_dir)
    Warehouse(settings, catalog).create_table("t", [("id", "int")])
    with pytest.raises(PartitionResolutionError):
        InsertCoordinator(catalog, "t", [(1,)], settings=settings).run()


def test_concurrent_inserts_share_new_partition(warehouse: Warehouse) -> None:
    def insert(i: int) -> int:
        return warehouse.insert("t", [(i, "x", "2020-01-01")]).rows

    with ThreadPoolExecutor(max_workers=4) as pool:
        assert sum(pool.map(insert, range(8))) == 8

    assert warehouse.partitions("t") == ["dt=2020-01-01"]
    assert sorted(r[0] for r in warehouse.read("t")) == list(range(8))
