from __future__ import annotations

import pytest

from oak.gosource import SourceSyntaxError, comment_body, tokenize, unquote_string


def _values(src: str) -> list[str]:
    tokens, _ = tokenize(src)
    return [t.value for t in tokens if t.kind != "eof"]


def test_semicolons_are_inserted_at_line_ends() -> None:
    assert _values("package main\n") == ["package", "main", ";"]
    assert _values("type A struct {\n\tX int\n}\n") == [
        "type",
        "A",
        "struct",
        "{",
        "X",
        "int",
        ";",
        "}",
        ";",
    ]


def test_no_semicolon_after_open_brace_or_comma() -> None:
    assert _values("f(a,\nb)\n") == ["f", "(", "a", ",", "b", ")", ";"]


def test_keywords_and_literal_kinds() -> None:
    tokens, _ = tokenize("map chan x 42 3.5 0x1F 2i 'a' \"s\" `raw`")
    kinds = [t.kind for t in tokens]
    assert kinds == [
        "keyword",
        "keyword",
        "ident",
        "int",
        "float",
        "int",
        "imag",
        "char",
        "string",
        "string",
        "op",
        "eof",
    ]


def test_comments_are_collected_with_positions() -> None:
    _, comments = tokenize("package p\n\n//go:generate oak\n/* block\n */\n")
    assert [c.text for c in comments] == ["//go:generate oak", "/* block\n */"]
    assert comments[0].line == 3
    assert comments[1].line == 4


def test_raw_string_may_span_lines_and_positions_continue() -> None:
    tokens, _ = tokenize("a `x\ny`\nb\n")
    raw = tokens[1]
    assert raw.value == "`x\ny`"
    b = [t for t in tokens if t.value == "b"][0]
    assert b.line == 3
    assert b.column == 1


@pytest.mark.parametrize(
    "src,msg",
    [
        ('x := "abc\n', "string literal not terminated"),
        ("x := `abc", "raw string literal not terminated"),
        ("/* never closed", "comment not terminated"),
        ("x := 'a\n", "rune literal not terminated"),
        ("x := $", "invalid character"),
    ],
)
def test_lexical_errors_carry_path_and_position(src: str, msg: str) -> None:
    with pytest.raises(SourceSyntaxError, match=msg) as exc:
        tokenize(src, "pkg/bad.go")
    assert exc.value.path == "pkg/bad.go"
    assert str(exc.value).startswith("pkg/bad.go:1:")


def test_comment_body_strips_delimiters() -> None:
    assert comment_body("//go:generate oak") == "go:generate oak"
    assert comment_body("//   go:generate oak --verbose ") == "go:generate oak --verbose"
    assert comment_body("/*\ngo:generate oak\n*/") == "go:generate oak"


def test_unquote_string_handles_raw_and_interpreted_literals() -> None:
    assert unquote_string('`log:"-"`') == 'log:"-"'
    assert unquote_string(r'"log:\"redact\""') == 'log:"redact"'
    assert unquote_string("plain") == "plain"


@pytest.mark.parametrize(
    "literal,expected",
    [
        (r'"log:\x22redact\x22"', 'log:"redact"'),
        (r'"log:\u0022-\u0022"', 'log:"-"'),
        (r'"log:\042redact\042"', 'log:"redact"'),
        (r'"\U0001F600"', "\U0001F600"),
        (r'"\xc3\xa9"', "é"),
        (r'"\a\b\f\v\\\'"', "\a\b\f\v\\'"),
    ],
)
def test_unquote_string_decodes_go_escapes(literal: str, expected: str) -> None:
    assert unquote_string(literal) == expected
