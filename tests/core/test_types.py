from __future__ import annotations

import pytest

from hivesink.core.errors import SchemaError
from hivesink.core.types import HiveType, TypeKind, char, decimal, parse_type, varchar


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("tinyint", HiveType(kind=TypeKind.TINYINT)),
        ("INTEGER", HiveType(kind=TypeKind.INT)),
        ("float", HiveType(kind=TypeKind.REAL)),
        ("decimal(10,5)", decimal(10, 5)),
        ("decimal( 38 , 0 )", decimal(38, 0)),
        ("decimal", decimal(10, 0)),
        ("string", varchar()),
        ("varchar(20)", varchar(20)),
        ("char(10)", char(10)),
        ("binary", HiveType(kind=TypeKind.VARBINARY)),
    ],
)
def test_parse_type_names(text: str, expected: HiveType) -> None:
    assert parse_type(text) == expected


@pytest.mark.parametrize(
    "text",
    ["", "map<string,int>", "int(3)", "char", "char(0)", "char(256)", "decimal(39,0)", "decimal(5,6)", "string(4)"],
)
def test_parse_type_rejects(text: str) -> None:
    with pytest.raises(SchemaError):
        parse_type(text)


def test_type_rendering_is_hive_spelling() -> None:
    assert str(decimal(10, 5)) == "decimal(10,5)"
    assert str(char(10)) == "char(10)"
    assert str(varchar()) == "string"
    assert str(varchar(7)) == "varchar(7)"
    assert str(parse_type("real")) == "float"
    assert str(parse_type("varbinary")) == "binary"
    for kind in TypeKind:
        # Rendering parses back to the same type.
        t = {TypeKind.DECIMAL: decimal(12, 2), TypeKind.CHAR: char(3)}.get(kind, HiveType(kind=kind))
        assert parse_type(str(t)) == t


def test_parameters_only_where_allowed() -> None:
    with pytest.raises(ValueError):
        HiveType(kind=TypeKind.INT, length=3)
    with pytest.raises(ValueError):
        HiveType(kind=TypeKind.DOUBLE, precision=3, scale=0)
    with pytest.raises(ValueError):
        HiveType(kind=TypeKind.DECIMAL, precision=3)
    assert parse_type("bigint").is_integral
    assert not parse_type("double").is_integral
