from __future__ import annotations

import logging
import os
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from hivesink.core.coercion import coerce
from hivesink.core.tables import TableDescriptor
from hivesink.core.types import (
    BOOLEAN,
    DATE,
    DOUBLE,
    INT,
    REAL,
    STRING,
    TIMESTAMP,
    TINYINT,
    VARBINARY,
    TypeKind,
    char,
    decimal,
)
from hivesink.io.config import WriterSettings
from hivesink.io.formats.text import (
    _DECODERS,
    _ENCODERS,
    TextFormatWriter,
    TextSerde,
    decode_value,
    encode_value,
    from_partition_value,
    read_text_file,
    to_partition_value,
)
from hivesink.io.partition import Partition, PartitionKey


def test_every_kind_has_text_codecs() -> None:
    assert set(_ENCODERS) == set(TypeKind)
    assert set(_DECODERS) == set(TypeKind)


def test_serde_defaults_and_precedence() -> None:
    assert TextSerde.from_properties({}) == TextSerde("\x01", "\n", "\\N")
    assert TextSerde.from_properties({"serialization.format": ","}).field_delim == ","
    props = {"field.delim": "|", "serialization.format": ","}
    assert TextSerde.from_properties(props).field_delim == "|"
    # Byte numbers mean the byte itself.
    assert TextSerde.from_properties({"field.delim": "9"}).field_delim == "\t"
    assert TextSerde.from_properties({"serialization.format": "1"}).field_delim == "\x01"
    assert TextSerde.from_properties({"serialization.null.format": ""}).null_format == ""


def test_value_encodings() -> None:
    assert encode_value(None, INT) == "\\N"
    assert encode_value(None, INT, null_format="NULL") == "NULL"
    assert encode_value(coerce(123.345, REAL), REAL) == "123.345"
    assert encode_value(234.567, DOUBLE) == "234.567"
    assert encode_value(float("nan"), DOUBLE) == "NaN"
    assert encode_value(float("-inf"), REAL) == "-Infinity"
    assert encode_value(Decimal("345.67800"), decimal(10, 5)) == "345.67800"
    assert encode_value(Decimal("346"), decimal(10, 0)) == "346"
    assert encode_value(datetime(2015, 5, 10, 12, 15, 35, 123000), TIMESTAMP) == "2015-05-10 12:15:35.123"
    assert encode_value(datetime(2015, 5, 10, 12, 15, 35), TIMESTAMP) == "2015-05-10 12:15:35"
    assert encode_value(date(2015, 5, 10), DATE) == "2015-05-10"
    assert encode_value(True, BOOLEAN) == "true"
    assert encode_value(b"kot binarny", VARBINARY) == "a290IGJpbmFybnk="


def test_value_decodings_are_lenient() -> None:
    assert decode_value("\\N", INT) is None
    assert decode_value("abc", INT) is None
    assert decode_value("300", TINYINT) is None
    assert decode_value("345.678", decimal(10, 5)) == Decimal("345.67800")
    assert decode_value("ala ma", char(10)) == "ala ma    "
    assert decode_value("TRUE", BOOLEAN) is True
    assert decode_value("yes", BOOLEAN) is None
    assert decode_value("2015-05-10 12:15:35.123", TIMESTAMP) == datetime(2015, 5, 10, 12, 15, 35, 123000)
    assert decode_value("a290IGJpbmFybnk=", VARBINARY) == b"kot binarny"


def test_partition_values_roundtrip() -> None:
    assert to_partition_value(None, INT) is None
    assert to_partition_value(7, INT) == "7"
    assert from_partition_value("7", INT) == 7
    assert from_partition_value(None, INT) is None
    assert from_partition_value("2018-01-01", STRING) == "2018-01-01"
    assert from_partition_value("2018-01-01", DATE) == date(2018, 1, 1)


def _table(**kwargs) -> TableDescriptor:
    return TableDescriptor(
        name="t",
        columns=[("id", "int"), ("name", "string"), ("price", "decimal(10,2)")],
        **kwargs,
    )


def test_writer_produces_delimited_lines(tmp_path: Path) -> None:
    table = _table(serde_properties={"field.delim": ","}, location=str(tmp_path / "t"))
    writer = TextFormatWriter(table, WriterSettings(root_dir=str(tmp_path)))
    partition = Partition(key=PartitionKey(), location=table.location)

    batch = writer.open(partition)
    writer.append(batch, [1, "presto", Decimal("1.50")])
    writer.append(batch, [2, None, None])
    handle = writer.finish(batch)

    assert os.path.basename(handle.path).startswith("part-")
    assert handle.rows == 2
    with open(handle.path, encoding="utf-8") as fh:
        assert fh.read() == "1,presto,1.50\n2,\\N,\\N\n"
    assert handle.bytes == os.path.getsize(handle.path)
    assert [f for f in os.listdir(table.location) if f.endswith(".tmp")] == []
    assert list(read_text_file(handle.path, table)) == [
        [1, "presto", Decimal("1.50")],
        [2, None, None],
    ]


def test_reader_pads_missing_and_ignores_extra_fields(tmp_path: Path) -> None:
    table = _table()
    path = tmp_path / "part-x"
    path.write_text("1\x01a\n2\x01b\x0112.5\x01extra\n", encoding="utf-8")
    assert list(read_text_file(str(path), table)) == [
        [1, "a", None],
        [2, "b", Decimal("12.50")],
    ]


def test_delimiter_inside_value_warns(tmp_path: Path, caplog) -> None:
    table = _table(serde_properties={"field.delim": ","}, location=str(tmp_path / "t"))
    writer = TextFormatWriter(table, WriterSettings(root_dir=str(tmp_path)))
    batch = writer.open(Partition(key=PartitionKey(), location=table.location))
    with caplog.at_level(logging.WARNING, logger="hivesink.io.formats.text"):
        writer.append(batch, [1, "a,b", None])
    assert "contains a delimiter" in caplog.text
