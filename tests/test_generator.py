from __future__ import annotations

from pathlib import Path

import pytest

from oak.config import Config
from oak.generator import (
    HEADER,
    Generator,
    generated_file_name,
    group_structs,
    receiver_name,
)
from oak.parser import FieldInfo, StructInfo, extract


def _config(*keys: str, message: str = "[REDACTED]") -> Config:
    return Config(path=None, packages=(".",), redact_keys=keys, redact_message=message)


def _struct(name: str, *fields: FieldInfo, file_path: str = "app/main.go", package: str = "main") -> StructInfo:
    return StructInfo(name=name, package_name=package, fields=tuple(fields), file_path=file_path)


@pytest.mark.parametrize(
    "name,expected",
    [("User", "u"), ("reservation", "r"), ("_hidden", "x"), ("Ωmega", "ω")],
)
def test_receiver_name(name: str, expected: str) -> None:
    assert receiver_name(name) == expected


def test_generated_file_name() -> None:
    assert generated_file_name("booking") == "booking_oak.go"


def test_single_field_output_is_exact() -> None:
    result = Generator(_config()).generate_for_structs([_struct("User", FieldInfo(name="ID", type="int"))])
    assert result is not None
    assert result.content == (
        "// Code generated by oak. DO NOT EDIT.\n"
        "\n"
        "package main\n"
        "\n"
        'import "log/slog"\n'
        "\n"
        "// LogValue implements slog.LogValuer for User.\n"
        "func (u User) LogValue() slog.Value {\n"
        "\treturn slog.GroupValue(\n"
        '\t\tslog.Int64("ID", int64(u.ID)),\n'
        "\t)\n"
        "}\n"
    )
    assert result.file_path == Path("app") / "main_oak.go"
    assert result.package_name == "main"
    assert result.struct_names == ("User",)


def test_method_combines_all_actions() -> None:
    user = _struct(
        "User",
        FieldInfo(name="ID", type="int"),
        FieldInfo(name="Password", type="string"),
        FieldInfo(name="Notes", type="string", log_tag="-"),
        FieldInfo(name="Email", type="*string", is_pointer=True),
    )
    result = Generator(_config("password")).generate_for_structs([user])
    assert result is not None
    content = result.content
    assert content.startswith(HEADER + "\n")
    assert '\t\tslog.Int64("ID", int64(u.ID)),\n' in content
    assert '\t\tslog.String("Password", "[REDACTED]"),\n' in content
    assert "Notes" not in content
    assert (
        "\t\tfunc() slog.Attr {\n"
        "\t\t\tif u.Email == nil {\n"
        '\t\t\t\treturn slog.String("Email", "null")\n'
        "\t\t\t}\n"
        '\t\t\treturn slog.String("Email", *u.Email)\n'
        "\t\t}(),\n"
    ) in content


def test_structs_without_loggable_fields_are_omitted() -> None:
    quiet = _struct("Quiet", FieldInfo(name="A", type="int", log_tag="-"))
    loud = _struct("Loud", FieldInfo(name="B", type="bool"))
    result = Generator(_config()).generate_for_structs([quiet, loud])
    assert result is not None
    assert result.struct_names == ("Loud",)
    assert "Quiet" not in result.content
    assert "func (l Loud) LogValue() slog.Value {" in result.content


def test_nothing_to_generate_returns_none() -> None:
    quiet = _struct("Quiet", FieldInfo(name="A", type="int", log_tag="-"))
    assert Generator(_config()).generate_for_structs([quiet]) is None
    assert Generator(_config()).generate_for_structs([]) is None


def test_structs_from_different_packages_are_rejected() -> None:
    a = _struct("A", FieldInfo(name="X", type="int"), file_path="a/a.go", package="a")
    b = _struct("B", FieldInfo(name="X", type="int"), file_path="b/b.go", package="b")
    with pytest.raises(ValueError, match="multiple packages"):
        Generator(_config()).generate_for_structs([a, b])


def test_group_structs_by_directory_and_package() -> None:
    a1 = _struct("A1", file_path="a/one.go", package="a")
    b1 = _struct("B1", file_path="b/one.go", package="a")
    a2 = _struct("A2", file_path="a/two.go", package="a")
    t1 = _struct("T1", file_path="a/one_test.go", package="a_test")
    groups = group_structs([a1, b1, a2, t1])
    assert list(groups) == [("a", "a"), ("b", "a"), ("a", "a_test")]
    assert [s.name for s in groups[("a", "a")]] == ["A1", "A2"]


def test_generated_source_parses_back() -> None:
    src = """package main

//go:generate oak
type Example struct {
	IntValue    int
	StringValue string
	FloatValue  float64
	NestedValue NestedExample
}

//go:generate oak
type NestedExample struct {
	BoolValue    bool
	SliceValue   []string
	PointerValue *string
}
"""
    structs = extract(src, "example/main.go")
    result = Generator(_config("stringvalue", "boolvalue")).generate_for_structs(structs)
    assert result is not None
    assert result.struct_names == ("Example", "NestedExample")
    assert extract(result.content, str(result.file_path)) == []
    assert 'slog.String("StringValue", "[REDACTED]")' in result.content
    assert 'slog.Any("NestedValue", e.NestedValue)' in result.content
    assert 'slog.Any("SliceValue", n.SliceValue)' in result.content


def test_generic_struct_receiver_is_instantiated() -> None:
    src = "//go:generate oak\npackage p\n\ntype Pair[K comparable, V any] struct {\n\tKey K\n\tCount int32\n}\n"
    result = Generator(_config()).generate_for_structs(extract(src, "p/pair.go"))
    assert result is not None
    assert "func (p Pair[K, V]) LogValue() slog.Value {\n" in result.content
    assert "// LogValue implements slog.LogValuer for Pair.\n" in result.content
    assert 'slog.Int64("Count", int64(p.Count))' in result.content
