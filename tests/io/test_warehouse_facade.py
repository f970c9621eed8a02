from __future__ import annotations

import os
from datetime import date
from decimal import Decimal
from pathlib import Path

import polars as pl
import pytest

from hivesink.core.errors import TableNotFoundError
from hivesink.core.tables import StorageFormat
from hivesink.io import FileCatalog, Warehouse, WriterSettings, read_frame, read_rows


def test_warehouse_defaults_to_file_catalog(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HIVESINK_ROOT_DIR", str(tmp_path / "wh"))
    monkeypatch.setenv("HIVESINK_DEFAULT_DATABASE", "sales")

    wh = Warehouse()

    assert isinstance(wh.catalog, FileCatalog)
    desc = wh.create_table("orders", {"id": "bigint", "amount": "decimal(12,2)"}, storage_format="parquet")
    assert desc.qualified_name == "sales.orders"
    assert desc.storage_format is StorageFormat.COLUMNAR_BINARY
    assert desc.location == os.path.join(str(tmp_path / "wh"), "sales.db", "orders")
    assert wh.table("orders") == desc


def test_read_frame_of_empty_and_filled_table(tmp_path: Path) -> None:
    wh = Warehouse(WriterSettings(root_dir=str(tmp_path)))
    wh.create_table(
        "t",
        [("id", "int"), ("score", "real"), ("amount", "decimal(12,2)")],
        partitioned_by=[("dt", "date")],
    )

    empty = wh.read_frame("t")
    assert empty.height == 0
    assert empty.columns == ["id", "score", "amount", "dt"]
    assert empty.schema["score"] == pl.Float32
    assert empty.schema["dt"] == pl.Date

    wh.insert("t", [(1, 0.5, Decimal("10"), date(2018, 1, 1))])
    frame = wh.read_frame("t")
    assert frame.height == 1
    assert frame.row(0) == (1, 0.5, Decimal("10.00"), date(2018, 1, 1))


def test_module_level_read_helpers(tmp_path: Path) -> None:
    wh = Warehouse(WriterSettings(root_dir=str(tmp_path)))
    wh.create_table("t", [("id", "int")], serde_properties={"field.delim": ","})
    wh.insert("t", [(1,), (None,)])

    assert read_rows(wh.catalog, "t") == [(1,), (None,)]
    assert read_rows(wh.catalog, wh.table("t")) == [(1,), (None,)]
    assert read_frame(wh.catalog, "t")["id"].to_list() == [1, None]
    assert wh.partitions("t") == []


def test_drop_table(tmp_path: Path) -> None:
    wh = Warehouse(WriterSettings(root_dir=str(tmp_path)))
    table = wh.create_table("t", [("id", "int")])
    wh.insert("t", [(1,)])

    wh.drop_table("t")

    assert not os.path.exists(table.location)
    with pytest.raises(TableNotFoundError):
        wh.read("t")
    # The name can be reused.
    wh.create_table("t", [("id", "int")])
    assert wh.read("t") == []
