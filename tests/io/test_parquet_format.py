from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from hivesink.core.coercion import coerce_row
from hivesink.core.errors import SerializationError
from hivesink.core.tables import TableDescriptor
from hivesink.core.types import TypeKind, parse_type
from hivesink.io.config import WriterSettings
from hivesink.io.formats.parquet import _ARROW_TYPES, ParquetFormatWriter, arrow_type, read_parquet_file
from hivesink.io.partition import Partition, PartitionKey


def _table(location: str) -> TableDescriptor:
    return TableDescriptor(
        name="p",
        columns=[
            ("t_tinyint", "tinyint"),
            ("t_real", "real"),
            ("t_decimal", "decimal(10,5)"),
            ("t_timestamp", "timestamp"),
            ("t_date", "date"),
            ("t_char", "char(10)"),
            ("t_binary", "binary"),
        ],
        partition_columns=[("dt", "string")],
        storage_format="parquet",
        location=location,
    )


def test_every_kind_has_an_arrow_type() -> None:
    assert set(_ARROW_TYPES) == set(TypeKind)
    assert arrow_type(parse_type("decimal(10,5)")) == pa.decimal128(10, 5)
    assert arrow_type(parse_type("timestamp")) == pa.timestamp("ms")
    assert arrow_type(parse_type("real")) == pa.float32()


def test_parquet_writer_roundtrip_with_metadata(tmp_path: Path) -> None:
    table = _table(str(tmp_path / "p"))
    settings = WriterSettings(root_dir=str(tmp_path), compression="zstd", row_group_size=1)
    writer = ParquetFormatWriter(table, settings)
    key = PartitionKey((("dt", "2018-01-01"),))
    partition = Partition(key=key, location=str(tmp_path / "p" / "dt=2018-01-01"))

    rows = [
        [127, 123.345, Decimal("345.678"), datetime(2015, 5, 10, 12, 15, 35, 123456), date(2015, 5, 10), "ala ma", b"kot binarny"],
        [None] * 7,
    ]
    batch = writer.open(partition)
    for row in rows:
        writer.append(batch, coerce_row(row, table.column_types()))
    handle = writer.finish(batch)

    assert handle.path.endswith(".parquet")
    assert handle.partition == key
    meta = pq.read_metadata(handle.path)
    assert meta.num_rows == 2
    assert meta.num_row_groups == 2
    kv = pq.read_schema(handle.path).metadata
    assert kv[b"hivesink_table"] == b"default.p"
    assert kv[b"hivesink_partition"] == b"dt=2018-01-01"

    back = list(read_parquet_file(handle.path, table))
    assert back[0] == coerce_row(rows[0], table.column_types())
    assert back[0][2] == Decimal("345.67800") and str(back[0][2]) == "345.67800"
    assert back[0][3] == datetime(2015, 5, 10, 12, 15, 35, 123000)
    assert back[0][5] == "ala ma    "
    assert back[1] == [None] * 7


def test_reader_requires_table_columns(tmp_path: Path) -> None:
    table = _table(str(tmp_path / "p"))
    path = tmp_path / "other.parquet"
    pq.write_table(pa.table({"t_tinyint": pa.array([1], pa.int8())}), str(path))
    with pytest.raises(SerializationError):
        list(read_parquet_file(str(path), table))
