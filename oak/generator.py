from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .config import Config
from .parser import StructInfo
from .types import TypeAnalyzer, render_statements
from .util import log_event, setup_json_logger

_LOG = setup_json_logger("oak.generator")

HEADER = "// Code generated by oak. DO NOT EDIT."
GENERATED_SUFFIX = "_oak.go"


@dataclass(frozen=True)
class GenerateResult:
    file_path: Path
    package_name: str
    content: str
    struct_names: tuple[str, ...]


def generated_file_name(package_name: str) -> str:
    return f"{package_name}{GENERATED_SUFFIX}"


def receiver_name(struct_name: str) -> str:
    first = struct_name[:1]
    return first.lower() if first.isalpha() else "x"


def group_structs(structs: Iterable[StructInfo]) -> dict[tuple[str, str], list[StructInfo]]:
    """Group by (source directory, package name) keeping first-seen order."""
    groups: dict[tuple[str, str], list[StructInfo]] = {}
    for s in structs:
        key = (str(Path(s.file_path).parent), s.package_name)
        groups.setdefault(key, []).append(s)
    return groups


def _indent(text: str, prefix: str) -> str:
    return "\n".join(prefix + line for line in text.split("\n"))


class Generator:
    def __init__(self, config: Config) -> None:
        self.config = config
        self.analyzer = TypeAnalyzer(config.redaction)

    def generate_method(self, struct: StructInfo) -> str:
        recv = receiver_name(struct.name)
        statements = render_statements(self.analyzer.analyze_struct(struct), self.analyzer, recv)
        body = "\n".join(_indent(stmt, "\t\t") + "," for stmt in statements)
        return (
            f"// LogValue implements slog.LogValuer for {struct.name}.\n"
            f"func ({recv} {struct.receiver_type}) LogValue() slog.Value {{\n"
            f"\treturn slog.GroupValue(\n"
            f"{body}\n"
            f"\t)\n"
            f"}}\n"
        )

    def generate_for_structs(self, structs: list[StructInfo]) -> GenerateResult | None:
        """Render one Go file for structs that share a package directory.

        Returns ``None`` when none of the structs has a loggable field.
        """
        if not structs:
            return None
        groups = group_structs(structs)
        if len(groups) != 1:
            raise ValueError(
                "structs span multiple packages: "
                + ", ".join(f"{d} ({p})" for d, p in groups)
            )
        directory, package_name = next(iter(groups))

        eligible = [s for s in structs if self.analyzer.has_loggable_fields(s)]
        if not eligible:
            log_event(_LOG, "generator.package", package=package_name, directory=directory, structs=0)
            return None

        methods = "\n".join(self.generate_method(s) for s in eligible)
        content = f'{HEADER}\n\npackage {package_name}\n\nimport "log/slog"\n\n{methods}'
        names = tuple(s.name for s in eligible)
        log_event(
            _LOG,
            "generator.package",
            package=package_name,
            directory=directory,
            structs=len(names),
        )
        return GenerateResult(
            file_path=Path(directory) / generated_file_name(package_name),
            package_name=package_name,
            content=content,
            struct_names=names,
        )
