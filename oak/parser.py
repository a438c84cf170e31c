"""Extraction of opted-in struct declarations from Go source files.

A file takes part in generation only when one of its comments carries the
``go:generate oak`` directive. Every top-level struct type of such a file is
returned as a :class:`StructInfo` with one :class:`FieldInfo` per field name
(embedded fields are named after their type).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Union

from .gosource import (
    Comment,
    SourceSyntaxError,
    Token,
    comment_body,
    tokenize,
    unquote_string,
)
from .util import log_event, setup_json_logger

_LOG = setup_json_logger("oak.parser")

DIRECTIVE = "go:generate oak"
LOG_TAG_KEY = "log"
UNKNOWN_TYPE = "unknown"

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}
_TYPE_START_KEYWORDS = {"map", "chan", "func", "struct", "interface"}

__all__ = [
    "DIRECTIVE",
    "FieldInfo",
    "ParseResult",
    "SourceReadError",
    "SourceSyntaxError",
    "StructInfo",
    "extract",
    "extract_log_tag",
    "has_oak_directive",
    "parse_file",
    "parse_package",
    "type_to_string",
]


# Type expressions. Only the shapes below survive normalization; everything
# else is an Opaque node and renders as "unknown".


@dataclass(frozen=True)
class Ident:
    name: str


@dataclass(frozen=True)
class Pointer:
    elem: "TypeExpr"


@dataclass(frozen=True)
class Slice:
    elem: "TypeExpr"


@dataclass(frozen=True)
class Array:
    length: str | None
    elem: "TypeExpr"


@dataclass(frozen=True)
class MapType:
    key: "TypeExpr"
    value: "TypeExpr"


@dataclass(frozen=True)
class Selector:
    pkg: "TypeExpr"
    name: str


@dataclass(frozen=True)
class StructType:
    fields: tuple["FieldInfo", ...]


@dataclass(frozen=True)
class Opaque:
    kind: str


TypeExpr = Union[Ident, Pointer, Slice, Array, MapType, Selector, StructType, Opaque]


def type_to_string(expr: TypeExpr) -> str:
    if isinstance(expr, Ident):
        return expr.name
    if isinstance(expr, Pointer):
        return "*" + type_to_string(expr.elem)
    if isinstance(expr, Slice):
        return "[]" + type_to_string(expr.elem)
    if isinstance(expr, Array):
        return "[" + (expr.length or UNKNOWN_TYPE) + "]" + type_to_string(expr.elem)
    if isinstance(expr, MapType):
        return "map[" + type_to_string(expr.key) + "]" + type_to_string(expr.value)
    if isinstance(expr, Selector):
        return type_to_string(expr.pkg) + "." + expr.name
    return UNKNOWN_TYPE


@dataclass(frozen=True)
class FieldInfo:
    name: str
    type: str
    tag: str = ""
    log_tag: str = ""
    is_pointer: bool = False
    embedded: bool = False
    line: int = 0

    @property
    def accessor(self) -> str:
        """Selector used to reach the field from a value of its struct."""
        if not self.embedded:
            return self.name
        return self.name.lstrip("*").rsplit(".", 1)[-1]


@dataclass(frozen=True)
class StructInfo:
    name: str
    package_name: str
    fields: tuple[FieldInfo, ...]
    file_path: str
    line: int = 0
    type_params: tuple[str, ...] = ()

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.line}"

    @property
    def receiver_type(self) -> str:
        """Type expression for a method receiver, instantiated with its own parameters."""
        if not self.type_params:
            return self.name
        return f"{self.name}[{', '.join(self.type_params)}]"


class SourceReadError(ValueError):
    """A source path could not be read as a Go file or package directory."""

    def __init__(self, path: str, msg: str) -> None:
        self.path = path
        self.msg = msg
        super().__init__(f"{path}: {msg}")


@dataclass
class ParseResult:
    structs: list[StructInfo] = field(default_factory=list)
    errors: list[ValueError] = field(default_factory=list)


def has_oak_directive(comments: Iterable[Comment]) -> bool:
    return any(comment_body(c.text).startswith(DIRECTIVE) for c in comments)


def extract_log_tag(tag_value: str) -> str:
    """Return the value of the first quoted ``log:"..."`` entry of a struct tag."""
    if not tag_value:
        return ""
    prefix = LOG_TAG_KEY + ":"
    for part in unquote_string(tag_value).split(" "):
        if not part.startswith(prefix):
            continue
        value = part[len(prefix) :]
        if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
            return value[1:-1]
    return ""


def _describe(tok: Token) -> str:
    if tok.kind == "eof":
        return "EOF"
    return repr(tok.value)


class _FileParser:
    """Recursive-descent reader for the declaration level of one Go file."""

    def __init__(self, tokens: list[Token], path: str) -> None:
        self.tokens = tokens
        self.path = path
        self.pos = 0
        self.package_name = ""

    def peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def next(self) -> Token:
        tok = self.peek()
        if tok.kind != "eof":
            self.pos += 1
        return tok

    def error(self, msg: str, tok: Token | None = None) -> SourceSyntaxError:
        tok = tok or self.peek()
        return SourceSyntaxError(self.path, tok.line, tok.column, msg)

    def expect_op(self, value: str) -> Token:
        tok = self.peek()
        if not tok.is_op(value):
            raise self.error(f"expected {value!r}, found {_describe(tok)}")
        return self.next()

    def expect_ident(self) -> Token:
        tok = self.peek()
        if tok.kind != "ident":
            raise self.error(f"expected identifier, found {_describe(tok)}")
        return self.next()

    def expect_terminator(self) -> None:
        tok = self.peek()
        if tok.is_op(";"):
            self.next()
        elif tok.kind != "eof":
            raise self.error(f"expected ';', found {_describe(tok)}")

    def skip_balanced(self) -> None:
        stack = [_OPENERS[self.next().value]]
        while stack:
            tok = self.next()
            if tok.kind == "eof":
                raise self.error("unexpected EOF", tok)
            if tok.kind != "op":
                continue
            if tok.value in _OPENERS:
                stack.append(_OPENERS[tok.value])
            elif tok.value in _CLOSERS:
                if tok.value != stack.pop():
                    raise self.error(f"unexpected {tok.value!r}", tok)

    def skip_declaration(self) -> None:
        while True:
            tok = self.peek()
            if tok.kind == "eof" or tok.is_op(";"):
                self.next()
                return
            if tok.kind == "op" and tok.value in _OPENERS:
                self.skip_balanced()
            elif tok.kind == "op" and tok.value in _CLOSERS:
                raise self.error(f"unexpected {tok.value!r}", tok)
            else:
                self.next()

    # file level

    def parse(self) -> list[StructInfo]:
        while self.peek().is_op(";"):
            self.next()
        tok = self.peek()
        if not tok.is_keyword("package"):
            raise self.error(f"expected 'package', found {_describe(tok)}")
        self.next()
        self.package_name = self.expect_ident().value
        self.expect_terminator()

        structs: list[StructInfo] = []
        while True:
            tok = self.peek()
            if tok.kind == "eof":
                return structs
            if tok.is_op(";"):
                self.next()
            elif tok.is_keyword("type"):
                self.next()
                structs.extend(self.parse_type_decl())
            elif tok.kind == "keyword" and tok.value in {"import", "const", "var", "func"}:
                self.skip_declaration()
            else:
                raise self.error("non-declaration statement outside function body")

    def parse_type_decl(self) -> list[StructInfo]:
        out: list[StructInfo] = []
        if self.peek().is_op("("):
            self.next()
            while not self.peek().is_op(")"):
                if self.peek().is_op(";"):
                    self.next()
                    continue
                if self.peek().kind == "eof":
                    raise self.error("unexpected EOF")
                info = self.parse_type_spec()
                if info is not None:
                    out.append(info)
                if not self.peek().is_op(")"):
                    self.expect_op(";")
            self.next()
        else:
            info = self.parse_type_spec()
            if info is not None:
                out.append(info)
        self.expect_terminator()
        return out

    def _looks_like_type_params(self) -> bool:
        first, second = self.peek(1), self.peek(2)
        if first.kind != "ident":
            return False
        if second.kind in {"ident", "keyword"}:
            return True
        return second.kind == "op" and second.value in {",", "~", "*", "[", "("}

    def parse_type_params(self) -> tuple[str, ...]:
        """Consume ``[K comparable, V any]`` and return the parameter names."""
        self.expect_op("[")
        names: list[str] = []
        expect_name = True
        while True:
            tok = self.peek()
            if tok.kind == "eof":
                raise self.error("unexpected EOF")
            if tok.is_op("]"):
                self.next()
                return tuple(names)
            if tok.kind == "op" and tok.value in _OPENERS:
                self.skip_balanced()
                expect_name = False
                continue
            self.next()
            if tok.is_op(","):
                expect_name = True
            elif expect_name and tok.kind == "ident":
                names.append(tok.value)
                expect_name = False
            else:
                expect_name = False

    def parse_type_spec(self) -> StructInfo | None:
        name_tok = self.expect_ident()
        type_params: tuple[str, ...] = ()
        if self.peek().is_op("[") and self._looks_like_type_params():
            type_params = self.parse_type_params()
        if self.peek().is_op("="):
            # alias declarations never define a new struct
            self.next()
            self.parse_type()
            return None
        typ = self.parse_type()
        if not isinstance(typ, StructType):
            return None
        return StructInfo(
            name=name_tok.value,
            package_name=self.package_name,
            fields=typ.fields,
            file_path=self.path,
            line=name_tok.line,
            type_params=type_params,
        )

    # types

    def _starts_type(self, tok: Token) -> bool:
        if tok.kind == "ident":
            return True
        if tok.kind == "keyword":
            return tok.value in _TYPE_START_KEYWORDS
        return tok.kind == "op" and tok.value in {"*", "[", "(", "<-"}

    def parse_type(self) -> TypeExpr:
        tok = self.peek()
        if tok.kind == "ident":
            self.next()
            expr: TypeExpr = Ident(tok.value)
            if self.peek().is_op("."):
                self.next()
                expr = Selector(expr, self.expect_ident().value)
            if self.peek().is_op("["):
                self.skip_balanced()
                return Opaque("generic")
            return expr
        if tok.is_op("*"):
            self.next()
            return Pointer(self.parse_type())
        if tok.is_op("["):
            return self.parse_array_or_slice()
        if tok.is_op("("):
            self.next()
            self.parse_type()
            self.expect_op(")")
            return Opaque("paren")
        if tok.is_op("<-"):
            self.next()
            if not self.peek().is_keyword("chan"):
                raise self.error(f"expected 'chan', found {_describe(self.peek())}")
            self.next()
            self.parse_type()
            return Opaque("chan")
        if tok.kind == "keyword":
            if tok.value == "map":
                self.next()
                self.expect_op("[")
                key = self.parse_type()
                self.expect_op("]")
                return MapType(key, self.parse_type())
            if tok.value == "chan":
                self.next()
                if self.peek().is_op("<-"):
                    self.next()
                self.parse_type()
                return Opaque("chan")
            if tok.value == "func":
                self.next()
                self.parse_signature()
                return Opaque("func")
            if tok.value == "struct":
                return StructType(self.parse_struct_body())
            if tok.value == "interface":
                self.next()
                if not self.peek().is_op("{"):
                    raise self.error(f"expected '{{', found {_describe(self.peek())}")
                self.skip_balanced()
                return Opaque("interface")
        raise self.error(f"expected type, found {_describe(tok)}")

    def parse_array_or_slice(self) -> TypeExpr:
        self.expect_op("[")
        if self.peek().is_op("]"):
            self.next()
            return Slice(self.parse_type())
        if self.peek().is_op("..."):
            raise self.error("expected array length, found '...'")
        start = self.pos
        depth = 0
        while True:
            tok = self.peek()
            if tok.kind == "eof":
                raise self.error("unexpected EOF")
            if tok.kind == "op" and tok.value in _OPENERS:
                depth += 1
            elif tok.kind == "op" and tok.value in _CLOSERS:
                if depth == 0:
                    break
                depth -= 1
            self.next()
        length_toks = self.tokens[start : self.pos]
        self.expect_op("]")
        return Array(self._render_length(length_toks), self.parse_type())

    @staticmethod
    def _render_length(toks: list[Token]) -> str | None:
        if len(toks) == 1 and toks[0].kind in {"int", "ident"}:
            return toks[0].value
        if (
            len(toks) == 3
            and toks[0].kind == "ident"
            and toks[1].is_op(".")
            and toks[2].kind == "ident"
        ):
            return f"{toks[0].value}.{toks[2].value}"
        return None

    def parse_signature(self) -> None:
        if not self.peek().is_op("("):
            raise self.error(f"expected '(', found {_describe(self.peek())}")
        self.skip_balanced()
        result = self.peek()
        if result.is_op("("):
            self.skip_balanced()
        elif self._starts_type(result):
            self.parse_type()

    # structs

    def parse_struct_body(self) -> tuple[FieldInfo, ...]:
        self.next()  # struct
        self.expect_op("{")
        fields: list[FieldInfo] = []
        while True:
            tok = self.peek()
            if tok.is_op("}"):
                self.next()
                return tuple(fields)
            if tok.is_op(";"):
                self.next()
                continue
            if tok.kind == "eof":
                raise self.error("unexpected EOF")
            fields.extend(self.parse_field_decl())
            if not self.peek().is_op("}"):
                self.expect_op(";")

    def _is_embedded_generic(self, start: int) -> bool:
        # Name[...] followed by a terminator is an embedded instantiation;
        # an array field always has an element type after the bracket.
        depth = 0
        for i in range(start, len(self.tokens)):
            tok = self.tokens[i]
            if tok.kind == "eof":
                return False
            if tok.kind == "op" and tok.value in _OPENERS:
                depth += 1
            elif tok.kind == "op" and tok.value in _CLOSERS:
                depth -= 1
                if depth == 0:
                    after = self.tokens[i + 1]
                    return after.kind == "string" or after.is_op(";") or after.is_op("}")
        return False

    def parse_field_decl(self) -> list[FieldInfo]:
        first = self.peek()
        names: list[Token] = []
        if first.is_op("*"):
            self.next()
            if self.peek().kind != "ident":
                raise self.error(f"expected type name, found {_describe(self.peek())}")
            typ: TypeExpr = Pointer(self.parse_type())
        elif first.kind == "ident":
            second = self.peek(1)
            embedded = (
                second.is_op(".")
                or second.is_op(";")
                or second.is_op("}")
                or second.kind == "string"
                or (second.is_op("[") and self._is_embedded_generic(self.pos + 1))
            )
            if embedded:
                typ = self.parse_type()
            else:
                names.append(self.next())
                while self.peek().is_op(","):
                    self.next()
                    names.append(self.expect_ident())
                typ = self.parse_type()
        else:
            raise self.error(f"expected field name or embedded type, found {_describe(first)}")

        tag = ""
        if self.peek().kind == "string":
            tag = self.next().value
        log_tag = extract_log_tag(tag)
        rendered = type_to_string(typ)
        is_pointer = isinstance(typ, Pointer)

        if not names:
            return [
                FieldInfo(
                    name=rendered,
                    type=rendered,
                    tag=tag,
                    log_tag=log_tag,
                    is_pointer=is_pointer,
                    embedded=True,
                    line=first.line,
                )
            ]
        return [
            FieldInfo(
                name=n.value,
                type=rendered,
                tag=tag,
                log_tag=log_tag,
                is_pointer=is_pointer,
                line=n.line,
            )
            for n in names
        ]


def extract(source: str, path: str | Path = "<source>") -> list[StructInfo]:
    """Return the opted-in structs of one Go source unit.

    Raises :class:`SourceSyntaxError` when the text is not valid Go at the
    declaration level. A unit without the generation directive yields ``[]``.
    """
    path_str = str(path)
    tokens, comments = tokenize(source, path_str)
    structs = _FileParser(tokens, path_str).parse()
    if not has_oak_directive(comments):
        return []
    return structs


def parse_file(path: str | Path) -> ParseResult:
    p = Path(path)
    try:
        source = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SourceSyntaxError(str(p), 1, exc.start + 1, "invalid UTF-8 encoding") from exc
    except OSError as exc:
        raise SourceReadError(str(p), f"failed to read file: {exc.strerror or exc}") from exc
    structs = extract(source, p)
    if not structs:
        log_event(_LOG, "parser.file.skipped", path=str(p))
    return ParseResult(structs=structs)


def parse_package(package_path: str | Path) -> ParseResult:
    """Extract structs from every ``.go`` file directly inside a directory.

    Syntax and read errors are collected per file; the remaining files are still read.
    """
    root = Path(package_path)
    result = ParseResult()
    try:
        entries = sorted(p for p in root.iterdir() if p.is_file() and p.suffix == ".go")
    except OSError as exc:
        err = SourceReadError(str(root), f"failed to read package directory: {exc.strerror or exc}")
        log_event(_LOG, "parser.package.error", path=str(root), error=str(err))
        result.errors.append(err)
        return result
    for go_file in entries:
        try:
            file_result = parse_file(go_file)
        except (SourceSyntaxError, SourceReadError) as exc:
            log_event(_LOG, "parser.file.error", path=str(go_file), error=str(exc))
            result.errors.append(exc)
            continue
        result.structs.extend(file_result.structs)
    return result
