from __future__ import annotations

from pathlib import Path

from oak.generator import GenerateResult
from oak.writer import FileWriter


def test_write_result_creates_directories_and_terminates_with_newline(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "pkg" / "pkg_oak.go"
    result = GenerateResult(file_path=target, package_name="pkg", content="package pkg", struct_names=("A",))

    written = FileWriter().write_result(result)

    assert written == target
    assert target.read_text(encoding="utf-8") == "package pkg\n"


def test_write_result_overwrites_previous_output(tmp_path: Path) -> None:
    target = tmp_path / "pkg_oak.go"
    target.write_text("stale\n", encoding="utf-8")
    result = GenerateResult(file_path=target, package_name="pkg", content="package pkg\n", struct_names=())

    FileWriter().write_result(result)

    assert target.read_text(encoding="utf-8") == "package pkg\n"
