"""Go source tokenizer.

Produces the token stream and the comment list of one Go source unit.
Automatic semicolon insertion follows the Go language rules, so the parser
can treat ``;`` as the statement/field terminator whether it was written or
implied by a newline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

KEYWORDS = frozenset(
    {
        "break",
        "case",
        "chan",
        "const",
        "continue",
        "default",
        "defer",
        "else",
        "fallthrough",
        "for",
        "func",
        "go",
        "goto",
        "if",
        "import",
        "interface",
        "map",
        "package",
        "range",
        "return",
        "select",
        "struct",
        "switch",
        "type",
        "var",
    }
)

OPERATORS = (
    "<<=",
    ">>=",
    "&^=",
    "...",
    "&&",
    "||",
    "<-",
    "++",
    "--",
    "==",
    "!=",
    "<=",
    ">=",
    ":=",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "&=",
    "|=",
    "^=",
    "<<",
    ">>",
    "&^",
    "+",
    "-",
    "*",
    "/",
    "%",
    "&",
    "|",
    "^",
    "<",
    ">",
    "=",
    "!",
    "~",
    "(",
    ")",
    "[",
    "]",
    "{",
    "}",
    ",",
    ";",
    ".",
    ":",
)

_NUMBER = re.compile(
    r"0[xXbBoO][0-9a-fA-F_]*(?:\.[0-9a-fA-F_]*)?(?:[pP][+-]?[0-9_]+)?i?"
    r"|(?:[0-9][0-9_]*(?:\.[0-9_]*)?|\.[0-9][0-9_]*)(?:[eE][+-]?[0-9_]+)?i?"
)

LITERAL_KINDS = frozenset({"int", "float", "imag", "char", "string"})
_SEMI_AFTER_KEYWORDS = frozenset({"break", "continue", "fallthrough", "return"})
_SEMI_AFTER_OPS = frozenset({"++", "--", ")", "]", "}"})


class SourceSyntaxError(ValueError):
    """The source unit is not syntactically valid Go."""

    def __init__(self, path: str, line: int, column: int, msg: str) -> None:
        self.path = path
        self.line = line
        self.column = column
        self.msg = msg
        super().__init__(f"{path}:{line}:{column}: {msg}")


@dataclass(frozen=True)
class Token:
    kind: str  # ident, keyword, int, float, imag, char, string, op, eof
    value: str
    line: int
    column: int

    def is_op(self, value: str) -> bool:
        return self.kind == "op" and self.value == value

    def is_keyword(self, value: str) -> bool:
        return self.kind == "keyword" and self.value == value


@dataclass(frozen=True)
class Comment:
    text: str  # includes the // or /* */ delimiters
    line: int
    column: int


def _needs_semicolon(tok: Token | None) -> bool:
    if tok is None:
        return False
    if tok.kind == "ident" or tok.kind in LITERAL_KINDS:
        return True
    if tok.kind == "keyword":
        return tok.value in _SEMI_AFTER_KEYWORDS
    if tok.kind == "op":
        return tok.value in _SEMI_AFTER_OPS
    return False


class Scanner:
    def __init__(self, source: str, path: str = "<source>") -> None:
        self.src = source
        self.path = path
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: list[Token] = []
        self.comments: list[Comment] = []

    def error(self, msg: str, line: int | None = None, column: int | None = None) -> SourceSyntaxError:
        return SourceSyntaxError(
            self.path,
            self.line if line is None else line,
            self.col if column is None else column,
            msg,
        )

    def _advance(self, n: int) -> str:
        chunk = self.src[self.pos : self.pos + n]
        for ch in chunk:
            if ch == "\n":
                self.line += 1
                self.col = 1
            else:
                self.col += 1
        self.pos += n
        return chunk

    def _last(self) -> Token | None:
        return self.tokens[-1] if self.tokens else None

    def _emit(self, kind: str, value: str, line: int, column: int) -> None:
        self.tokens.append(Token(kind, value, line, column))

    def _auto_semicolon(self) -> None:
        if _needs_semicolon(self._last()):
            self._emit("op", ";", self.line, self.col)

    def scan(self) -> list[Token]:
        src = self.src
        while self.pos < len(src):
            ch = src[self.pos]
            line, col = self.line, self.col

            if ch == "\n":
                self._auto_semicolon()
                self._advance(1)
                continue
            if ch in " \t\r\ufeff":
                self._advance(1)
                continue

            if src.startswith("//", self.pos):
                end = src.find("\n", self.pos)
                if end < 0:
                    end = len(src)
                text = self._advance(end - self.pos)
                self.comments.append(Comment(text.rstrip("\r"), line, col))
                continue
            if src.startswith("/*", self.pos):
                end = src.find("*/", self.pos + 2)
                if end < 0:
                    raise self.error("comment not terminated", line, col)
                text = src[self.pos : end + 2]
                if "\n" in text:
                    self._auto_semicolon()
                self._advance(len(text))
                self.comments.append(Comment(text, line, col))
                continue

            if ch.isalpha() or ch == "_":
                end = self.pos + 1
                while end < len(src) and (src[end].isalnum() or src[end] == "_"):
                    end += 1
                word = self._advance(end - self.pos)
                self._emit("keyword" if word in KEYWORDS else "ident", word, line, col)
                continue

            if ch.isdigit() or (ch == "." and self.pos + 1 < len(src) and src[self.pos + 1].isdigit()):
                m = _NUMBER.match(src, self.pos)
                if m is None:
                    raise self.error("invalid number literal", line, col)
                text = self._advance(m.end() - self.pos)
                lowered = text.lower()
                if lowered.endswith("i"):
                    kind = "imag"
                elif lowered.startswith("0x"):
                    kind = "float" if ("." in lowered or "p" in lowered) else "int"
                elif "." in lowered or "e" in lowered:
                    kind = "float"
                else:
                    kind = "int"
                self._emit(kind, text, line, col)
                continue

            if ch == '"' or ch == "'":
                self._emit("string" if ch == '"' else "char", self._scan_quoted(ch), line, col)
                continue
            if ch == "`":
                end = src.find("`", self.pos + 1)
                if end < 0:
                    raise self.error("raw string literal not terminated", line, col)
                self._emit("string", self._advance(end + 1 - self.pos), line, col)
                continue

            for op in OPERATORS:
                if src.startswith(op, self.pos):
                    self._advance(len(op))
                    self._emit("op", op, line, col)
                    break
            else:
                raise self.error(f"invalid character {ch!r}", line, col)

        self._auto_semicolon()
        self._emit("eof", "", self.line, self.col)
        return self.tokens

    def _scan_quoted(self, quote: str) -> str:
        src = self.src
        line, col = self.line, self.col
        end = self.pos + 1
        while True:
            if end >= len(src) or src[end] == "\n":
                what = "string" if quote == '"' else "rune"
                raise self.error(f"{what} literal not terminated", line, col)
            if src[end] == "\\":
                end += 2
                continue
            if src[end] == quote:
                break
            end += 1
        return self._advance(end + 1 - self.pos)


def tokenize(source: str, path: str = "<source>") -> tuple[list[Token], list[Comment]]:
    scanner = Scanner(source, path)
    tokens = scanner.scan()
    return tokens, scanner.comments


def comment_body(text: str) -> str:
    """Strip comment delimiters and surrounding whitespace."""
    text = text.strip()
    if text.startswith("//"):
        return text[2:].strip()
    if text.startswith("/*") and text.endswith("*/"):
        return text[2:-2].strip()
    return text


_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    "'": "'",
    '"': '"',
}
_HEX_ESCAPE_WIDTH = {"x": 2, "u": 4, "U": 8}
_OCTAL_DIGITS = frozenset("01234567")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def _decode_interpreted(body: str) -> str:
    # \x and octal escapes denote single bytes; \u and \U denote code points
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out += ch.encode("utf-8")
            i += 1
            continue
        esc = body[i + 1]
        if esc in _SIMPLE_ESCAPES:
            out += _SIMPLE_ESCAPES[esc].encode("utf-8")
            i += 2
        elif esc in _HEX_ESCAPE_WIDTH:
            width = _HEX_ESCAPE_WIDTH[esc]
            digits = body[i + 2 : i + 2 + width]
            if len(digits) != width or not all(c in _HEX_DIGITS for c in digits):
                # malformed escape, kept verbatim
                out += body[i : i + 2].encode("utf-8")
                i += 2
                continue
            value = int(digits, 16)
            if esc == "x":
                out.append(value)
            elif value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
                out += "\ufffd".encode("utf-8")
            else:
                out += chr(value).encode("utf-8")
            i += 2 + width
        elif esc in _OCTAL_DIGITS:
            digits = body[i + 1 : i + 4]
            if len(digits) == 3 and all(c in _OCTAL_DIGITS for c in digits):
                out.append(int(digits, 8) & 0xFF)
                i += 4
            else:
                out += esc.encode("utf-8")
                i += 2
        else:
            out += esc.encode("utf-8")
            i += 2
    return out.decode("utf-8", "replace")


def unquote_string(literal: str) -> str:
    """Return the contents of a raw or interpreted Go string literal."""
    if len(literal) >= 2 and literal[0] == literal[-1] == "`":
        return literal[1:-1].replace("\r", "")
    if len(literal) >= 2 and literal[0] == literal[-1] == '"':
        return _decode_interpreted(literal[1:-1])
    return literal
