from __future__ import annotations

from pathlib import Path

from .generator import GenerateResult
from .util import ensure_dir, log_event, setup_json_logger

_LOG = setup_json_logger("oak.writer")


class FileWriter:
    def write_result(self, result: GenerateResult) -> Path:
        path = result.file_path
        ensure_dir(path.parent)
        content = result.content if result.content.endswith("\n") else result.content + "\n"
        path.write_text(content, encoding="utf-8")
        log_event(_LOG, "writer.file.written", path=str(path), bytes=len(content.encode("utf-8")))
        return path
