from __future__ import annotations

import argparse
import os
import sys
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from . import __version__
from .config import Config, ConfigError, is_recursive_pattern, load_config, pattern_root
from .generator import Generator, group_structs
from .gosource import SourceSyntaxError
from .parser import ParseResult, SourceReadError, StructInfo, parse_file, parse_package
from .util import (
    MetricsEmitter,
    generate_request_id,
    get_request_id,
    log_event,
    log_warning,
    set_request_id,
    setup_json_logger,
)
from .writer import FileWriter

_LOG = setup_json_logger("oak.cli")

EPILOG = """\
examples:
  oak                           process packages listed in oak.yaml
  oak ./...                     process all packages recursively
  oak ./internal/booking        process a specific package
  oak --package ./internal/booking
  oak --source ./booking.go     process a specific file
"""


class UsageError(ValueError):
    """Command-line arguments are inconsistent or point at missing paths."""


class Mode(Enum):
    CONFIG = "config"
    SOURCE_FILE = "source"
    PACKAGE = "package"
    POSITIONAL = "positional"


@dataclass(frozen=True)
class ProcessingTarget:
    mode: Mode
    paths: tuple[str, ...]
    use_flags: bool


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="oak",
        description="Generate LogValue() methods for Go structs to integrate with log/slog.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("paths", nargs="*", metavar="PATH", help='Package directories; "./..." recurses.')
    p.add_argument("--source", default=None, help="Path to a specific Go source file to process.")
    p.add_argument("--package", default=None, help="Path to a package directory to process.")
    p.add_argument(
        "--config",
        default=None,
        help="Path to oak.yaml (default: search the current directory and its parents).",
    )
    p.add_argument(
        "--request-id",
        default=None,
        help="Correlation identifier for all structured logs and metrics.",
    )
    p.add_argument("--metrics-out", default=None, help="Append a JSONL metrics record to this file.")
    p.add_argument("-v", "--version", action="version", version=f"oak {__version__}")
    return p


def validate_args(args: argparse.Namespace) -> None:
    if args.source and args.package:
        raise UsageError("--source and --package flags cannot be used together")

    if (args.source or args.package) and args.paths:
        log_warning(_LOG, "cli.args.positional_ignored", paths=list(args.paths))

    if args.source:
        if not args.source.endswith(".go"):
            raise UsageError(f"source file must have .go extension: {args.source}")
        if not Path(args.source).exists():
            raise UsageError(f"source file does not exist: {args.source}")

    if args.package:
        if not Path(args.package).exists():
            raise UsageError(f"package path does not exist: {args.package}")
        if not Path(args.package).is_dir():
            raise UsageError(f"package path is not a directory: {args.package}")

    if args.source or args.package:
        return
    for arg in args.paths:
        root = Path(pattern_root(arg))
        if not root.exists():
            raise UsageError(f"path does not exist: {arg}")
        if not root.is_dir():
            raise UsageError(f"path is not a package directory: {arg} (use --source for a single file)")


def get_processing_target(args: argparse.Namespace) -> ProcessingTarget:
    if args.source:
        return ProcessingTarget(Mode.SOURCE_FILE, (args.source,), True)
    if args.package:
        return ProcessingTarget(Mode.PACKAGE, (args.package,), True)
    if args.paths:
        return ProcessingTarget(Mode.POSITIONAL, tuple(args.paths), False)
    return ProcessingTarget(Mode.CONFIG, (), False)


def _skip_dir(name: str) -> bool:
    return name.startswith(".") or name.startswith("_") or name in {"vendor", "testdata"}


def find_go_packages(root: str) -> list[str]:
    """Directories under ``root`` (inclusive) that contain .go files."""
    packages: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not _skip_dir(d))
        if any(f.endswith(".go") for f in filenames):
            packages.append(dirpath)
    return packages


def expand_paths(paths: list[str]) -> list[str]:
    expanded: list[str] = []
    for path in paths:
        if is_recursive_pattern(path):
            expanded.extend(find_go_packages(pattern_root(path)))
        else:
            expanded.append(path)
    return expanded


def dedupe_paths(paths: list[str]) -> list[str]:
    """Drop paths naming a directory already listed, keeping first-seen order."""
    seen: set[Path] = set()
    unique: list[str] = []
    for path in paths:
        key = Path(path).resolve()
        if key in seen:
            continue
        seen.add(key)
        unique.append(path)
    return unique


def get_processing_paths(target: ProcessingTarget, cfg: Config) -> list[str]:
    if target.mode in (Mode.SOURCE_FILE, Mode.PACKAGE):
        return list(target.paths)
    if target.mode is Mode.POSITIONAL:
        return dedupe_paths(expand_paths(list(target.paths)))
    return dedupe_paths(expand_paths(cfg.get_packages()))


def collect_structs(target: ProcessingTarget, paths: list[str]) -> ParseResult:
    combined = ParseResult()
    for path in paths:
        if target.mode is Mode.SOURCE_FILE:
            try:
                result = parse_file(path)
            except (SourceSyntaxError, SourceReadError) as exc:
                log_event(_LOG, "parser.file.error", path=path, error=str(exc))
                combined.errors.append(exc)
                continue
        else:
            result = parse_package(path)
        combined.structs.extend(result.structs)
        combined.errors.extend(result.errors)
    return combined


def generate(cfg: Config, structs: list[StructInfo]) -> list[Path]:
    gen = Generator(cfg)
    writer = FileWriter()
    written: list[Path] = []
    for group in group_structs(structs).values():
        result = gen.generate_for_structs(group)
        if result is not None:
            written.append(writer.write_result(result))
    return written


def cmd_generate(args: argparse.Namespace) -> int:
    try:
        validate_args(args)
        cfg = load_config(Path(args.config) if args.config else None)
        target = get_processing_target(args)
        paths = get_processing_paths(target, cfg)
        if not paths:
            raise UsageError("no paths to process")
    except (ConfigError, UsageError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    parsed = collect_structs(target, paths)
    if not parsed.structs:
        print("No structs found with //go:generate oak directive")
    else:
        generate(cfg, parsed.structs)
        print(
            f"Successfully processed {len(parsed.structs)} struct(s) "
            f"in {len(group_structs(parsed.structs))} package(s)"
        )

    for err in parsed.errors:
        print(f"Error: {err}", file=sys.stderr)
    return 1 if parsed.errors else 0


def _run_command_with_observability(
    *,
    command_name: str,
    fn: Callable[[], int],
    metrics: MetricsEmitter,
) -> int:
    started = time.perf_counter()
    log_event(_LOG, "cli.command.start", command=command_name)
    try:
        rc = fn()
    except Exception as exc:
        latency_ms = (time.perf_counter() - started) * 1000.0
        log_event(
            _LOG,
            "cli.command.error",
            command=command_name,
            error=str(exc),
            gate_outcome="error",
            latency_ms=round(latency_ms, 3),
        )
        metrics.emit(
            metric="oak.command",
            status="error",
            latency_ms=latency_ms,
            gate_outcome="error",
            error=type(exc).__name__,
        )
        raise

    latency_ms = (time.perf_counter() - started) * 1000.0
    gate_outcome = "success" if rc == 0 else "failure"
    status = "success" if rc == 0 else "error"
    log_event(
        _LOG,
        "cli.command.finish",
        command=command_name,
        gate_outcome=gate_outcome,
        latency_ms=round(latency_ms, 3),
        status=status,
    )
    metrics.emit(
        metric="oak.command",
        status=status,
        latency_ms=latency_ms,
        gate_outcome=gate_outcome,
        error=(None if rc == 0 else f"exit_code={rc}"),
    )
    return rc


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    set_request_id(args.request_id or generate_request_id())
    metrics = MetricsEmitter(Path(args.metrics_out) if args.metrics_out else None)
    log_event(_LOG, "cli.request.context", request_id=get_request_id(), command="generate")

    rc = _run_command_with_observability(
        command_name="generate",
        fn=lambda: cmd_generate(args),
        metrics=metrics,
    )
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
