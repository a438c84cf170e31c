"""Per-field logging policy and slog statement synthesis.

Every field resolves to exactly one action, checked in this order:

1. ``log:"-"``      -> skip
2. ``log:"redact"`` -> redact
3. name equals a configured redact key (case-insensitive) -> redact
4. otherwise        -> log with the slog attribute constructor for its type
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .config import RedactionConfig
from .parser import FieldInfo, StructInfo

SKIP_TAG = "-"
REDACT_TAG = "redact"
NULL_SENTINEL = "null"


class FieldAction(Enum):
    LOG = "log"
    REDACT = "redact"
    SKIP = "skip"


class SlogFunction(str, Enum):
    INT64 = "slog.Int64"
    STRING = "slog.String"
    BOOL = "slog.Bool"
    FLOAT64 = "slog.Float64"
    ANY = "slog.Any"


_INTEGER_TYPES = frozenset(
    {"int", "int8", "int16", "int32", "int64", "uint", "uint8", "uint16", "uint32", "uint64"}
)
_FLOAT_TYPES = frozenset({"float32", "float64"})

# Canonical Go type of each widening constructor; other member types get a conversion.
_WIDEN_TO = {SlogFunction.INT64: "int64", SlogFunction.FLOAT64: "float64"}


@dataclass(frozen=True)
class FieldAnalysis:
    field: FieldInfo
    action: FieldAction
    slog_func: SlogFunction | None = None
    log_value: str = ""


def base_type(field: FieldInfo) -> str:
    """Field type with one pointer level removed."""
    if field.type.startswith("*"):
        return field.type[1:]
    return field.type


def slog_function_for(field: FieldInfo) -> SlogFunction:
    typ = base_type(field)
    if typ in _INTEGER_TYPES:
        return SlogFunction.INT64
    if typ == "string":
        return SlogFunction.STRING
    if typ == "bool":
        return SlogFunction.BOOL
    if typ in _FLOAT_TYPES:
        return SlogFunction.FLOAT64
    return SlogFunction.ANY


def should_redact(field: FieldInfo, redaction: RedactionConfig) -> bool:
    if field.log_tag == SKIP_TAG:
        return False
    if field.log_tag == REDACT_TAG:
        return True
    return redaction.matches(field.name)


def analyze(field: FieldInfo, redaction: RedactionConfig) -> FieldAnalysis:
    if field.log_tag == SKIP_TAG:
        return FieldAnalysis(field=field, action=FieldAction.SKIP)
    if should_redact(field, redaction):
        return FieldAnalysis(
            field=field,
            action=FieldAction.REDACT,
            slog_func=SlogFunction.STRING,
            log_value=redaction.message,
        )
    return FieldAnalysis(field=field, action=FieldAction.LOG, slog_func=slog_function_for(field))


def analyze_all(struct: StructInfo, redaction: RedactionConfig) -> list[FieldAnalysis]:
    return [analyze(f, redaction) for f in struct.fields]


def has_loggable_fields(struct: StructInfo, redaction: RedactionConfig) -> bool:
    return any(a.action is not FieldAction.SKIP for a in analyze_all(struct, redaction))


def go_quote(value: str) -> str:
    """Render a Go interpreted string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _value_expr(analysis: FieldAnalysis, operand: str) -> str:
    canonical = _WIDEN_TO.get(analysis.slog_func)
    if canonical is not None and base_type(analysis.field) != canonical:
        return f"{canonical}({operand})"
    return operand


class TypeAnalyzer:
    """Binds a redaction policy for the generator."""

    def __init__(self, redaction: RedactionConfig) -> None:
        self.redaction = redaction

    def analyze_field(self, field: FieldInfo) -> FieldAnalysis:
        return analyze(field, self.redaction)

    def analyze_struct(self, struct: StructInfo) -> list[FieldAnalysis]:
        return analyze_all(struct, self.redaction)

    def has_loggable_fields(self, struct: StructInfo) -> bool:
        return has_loggable_fields(struct, self.redaction)

    def generate_log_statement(self, analysis: FieldAnalysis, receiver: str) -> str:
        """Return the slog.Attr expression for one field ("" for skipped fields).

        Nullable fields render as an immediately invoked closure so that the
        statement stays a single expression inside slog.GroupValue(...).
        """
        key = go_quote(analysis.field.name)
        if analysis.action is FieldAction.SKIP:
            return ""
        if analysis.action is FieldAction.REDACT:
            return f"{SlogFunction.STRING.value}({key}, {go_quote(analysis.log_value)})"

        func = (analysis.slog_func or SlogFunction.ANY).value
        accessor = f"{receiver}.{analysis.field.accessor}"
        if not analysis.field.is_pointer:
            return f"{func}({key}, {_value_expr(analysis, accessor)})"

        deref = _value_expr(analysis, f"*{accessor}")
        return "\n".join(
            [
                "func() slog.Attr {",
                f"\tif {accessor} == nil {{",
                f"\t\treturn {SlogFunction.STRING.value}({key}, {go_quote(NULL_SENTINEL)})",
                "\t}",
                f"\treturn {func}({key}, {deref})",
                "}()",
            ]
        )


def render_statements(analyses: Sequence[FieldAnalysis], analyzer: TypeAnalyzer, receiver: str) -> list[str]:
    out: list[str] = []
    for analysis in analyses:
        stmt = analyzer.generate_log_statement(analysis, receiver)
        if stmt:
            out.append(stmt)
    return out
