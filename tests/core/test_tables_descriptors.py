from __future__ import annotations

import pytest

from hivesink.core.tables import ColumnDescriptor, StorageFormat, TableDescriptor
from hivesink.core.types import TypeKind, char, decimal


def test_descriptor_accepts_pairs_and_mappings() -> None:
    desc = TableDescriptor(
        name="Target_Partitioned",
        columns=[("ID", "int"), ("name", "string")],
        partition_columns={"dt": "string"},
        storage_format="PARQUET",
    )
    assert desc.qualified_name == "default.target_partitioned"
    assert desc.column_names == ["id", "name"]
    assert desc.partition_column_names == ["dt"]
    assert [c.name for c in desc.all_columns] == ["id", "name", "dt"]
    assert desc.storage_format is StorageFormat.COLUMNAR_BINARY
    assert desc.is_partitioned
    assert desc.columns[0].type.kind is TypeKind.INT


def test_transactional_property_marks_descriptor() -> None:
    desc = TableDescriptor(
        name="t",
        columns=[("a", "bigint")],
        table_properties={"transactional": "TRUE"},
    )
    assert desc.transactional is True
    plain = TableDescriptor(name="t", columns=[("a", "bigint")], table_properties={"transactional": "false"})
    assert plain.transactional is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "t", "columns": []},
        {"name": "t", "columns": [("a", "int"), ("A", "string")]},
        {"name": "t", "columns": [("a", "int")], "partition_columns": [("a", "string")]},
        {"name": "t", "columns": [("a", "int")], "partition_columns": [("p", "binary")]},
        {"name": "t", "columns": [("a", "map<int,int>")]},
        {"name": "t", "columns": [("a", "int")], "storage_format": "orc"},
    ],
)
def test_descriptor_invariants(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        TableDescriptor(**kwargs)


def test_descriptor_json_roundtrip() -> None:
    desc = TableDescriptor(
        database="sales",
        name="t",
        columns=[ColumnDescriptor(name="price", type=decimal(10, 5)), ("code", char(3))],
        serde_properties={"field.delim": ","},
        location="/tmp/x",
    )
    dumped = desc.model_dump(mode="json")
    assert dumped["columns"][0] == {"name": "price", "type": "decimal(10,5)"}
    assert dumped["storage_format"] == "textfile"
    assert TableDescriptor.model_validate(dumped) == desc
    assert desc.column_types() == [decimal(10, 5), char(3)]
