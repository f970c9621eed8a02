from __future__ import annotations

import os

import pytest

from hivesink.io.paths import (
    escape_path_name,
    metastore_path,
    part_paths,
    partition_location,
    partition_name,
    split_table_name,
    table_location,
    unescape_path_name,
)


def test_table_location_per_database() -> None:
    assert table_location("/wh", "default", "t") == os.path.join("/wh", "t")
    assert table_location("/wh", "sales", "t") == os.path.join("/wh", "sales.db", "t")
    assert metastore_path("/wh", "sales", "t") == os.path.join("/wh", "_metastore", "sales", "t.json")


def test_partition_names_escape_and_default() -> None:
    assert partition_name([("dt", "2018-01-01")]) == "dt=2018-01-01"
    assert partition_name([("dt", "2018-01-01"), ("country", "pl")]) == "dt=2018-01-01/country=pl"
    assert partition_name([("p", "a/b:c")]) == "p=a%2Fb%3Ac"
    assert partition_name([("p", "x=y%")]) == "p=x%3Dy%25"
    assert partition_name([("p", None)]) == "p=__HIVE_DEFAULT_PARTITION__"
    assert partition_name([("p", "")]) == "p=__HIVE_DEFAULT_PARTITION__"
    assert partition_name([]) == ""
    # Unicode and spaces are kept as-is.
    assert partition_name([("p", "zażółć gęślą")]) == "p=zażółć gęślą"


@pytest.mark.parametrize("value", ["2018/01/01", "a=b", "100%", "tab\there", "#[x]", "plain"])
def test_unescape_inverts_escape(value: str) -> None:
    assert unescape_path_name(escape_path_name(value)) == value


def test_unescape_leaves_stray_percent() -> None:
    assert unescape_path_name("50%") == "50%"
    assert unescape_path_name("%zz") == "%zz"


def test_partition_location_nests_innermost_last() -> None:
    loc = partition_location("/wh/t", [("dt", "2018-01-01"), ("country", "pl")])
    assert loc == os.path.join("/wh/t", "dt=2018-01-01", "country=pl")
    assert partition_location("/wh/t", []) == "/wh/t"


def test_part_paths_hidden_tmp() -> None:
    p = part_paths("/wh/t", "abc", ".parquet")
    assert p.final_path == os.path.join("/wh/t", "part-abc.parquet")
    assert p.tmp_path == os.path.join("/wh/t", ".part-abc.parquet.tmp")


def test_split_table_name() -> None:
    assert split_table_name("T") == ("default", "t")
    assert split_table_name("Sales.Orders") == ("sales", "orders")
    assert split_table_name("orders", "sales") == ("sales", "orders")
    assert split_table_name("order_items_2") == ("default", "order_items_2")
    for bad in ("a.b.c", "", "bad-name", "../etc", "_metastore", "sales._hidden"):
        with pytest.raises(ValueError):
            split_table_name(bad)
