from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import jsonschema
import yaml

CONFIG_FILENAME = "oak.yaml"
DEFAULT_REDACT_MESSAGE = "[REDACTED]"
SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "oak.config.schema.json"


class ConfigError(ValueError):
    """oak.yaml is missing, unreadable or invalid."""


@dataclass(frozen=True)
class RedactionConfig:
    keys: frozenset[str]
    message: str = DEFAULT_REDACT_MESSAGE

    @classmethod
    def create(cls, keys: Iterable[str] = (), message: str | None = None) -> "RedactionConfig":
        """Normalize keys to lower case once; an empty message falls back to the default."""
        return cls(
            keys=frozenset(k.lower() for k in keys),
            message=message or DEFAULT_REDACT_MESSAGE,
        )

    def matches(self, field_name: str) -> bool:
        return field_name.lower() in self.keys


@dataclass(frozen=True)
class Config:
    path: Path | None
    packages: tuple[str, ...]
    redact_keys: tuple[str, ...]
    redact_message: str

    @property
    def redaction(self) -> RedactionConfig:
        return RedactionConfig.create(self.redact_keys, self.redact_message)

    def get_packages(self) -> list[str]:
        """Package paths, relative entries resolved against the config file's directory."""
        base_dir = self.path.parent.resolve() if self.path is not None else Path.cwd()
        return [str(_resolve_package(base_dir, pkg)) for pkg in (self.packages or (".",))]


def default_config() -> Config:
    return Config(
        path=None,
        packages=(".",),
        redact_keys=(),
        redact_message=DEFAULT_REDACT_MESSAGE,
    )


def find_config_file(start: Path | None = None) -> Path:
    """Search ``start`` (default: cwd) and its parents for oak.yaml."""
    here = (start or Path.cwd()).resolve()
    for candidate in [here, *here.parents]:
        path = candidate / CONFIG_FILENAME
        if path.is_file():
            return path
    raise ConfigError(
        f"{CONFIG_FILENAME} configuration file not found in current directory or parent directories"
    )


def _read_schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def is_recursive_pattern(path: str) -> bool:
    return path == "..." or path.endswith("/...")


def pattern_root(path: str) -> str:
    """Directory a ``dir/...`` pattern walks; plain paths are returned unchanged."""
    if path == "...":
        return "."
    if path.endswith("/..."):
        return path[: -len("/...")] or "/"
    return path


def _resolve_package(base_dir: Path, pkg: str) -> Path:
    p = Path(pkg)
    return p if p.is_absolute() else (base_dir / p)


def load_config_from_path(path: Path) -> Config:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc
    if raw is None:
        raw = {}

    try:
        jsonschema.validate(instance=raw, schema=_read_schema())
    except jsonschema.ValidationError as exc:
        where = "/".join(str(p) for p in exc.absolute_path) or "$"
        raise ConfigError(f"invalid configuration in {path}: {where}: {exc.message}") from exc

    packages = [str(p) for p in (raw.get("packages") or [])]
    base_dir = path.parent.resolve()
    for pkg in packages:
        if not pkg:
            raise ConfigError(f"invalid configuration in {path}: empty package path in packages list")
        resolved = _resolve_package(base_dir, pattern_root(pkg))
        if not resolved.exists():
            raise ConfigError(f"invalid configuration in {path}: package path does not exist: {pkg}")
        if not resolved.is_dir():
            raise ConfigError(f"invalid configuration in {path}: package path is not a directory: {pkg}")

    return Config(
        path=path,
        packages=tuple(packages) or (".",),
        redact_keys=tuple(str(k).lower() for k in (raw.get("redactKeys") or [])),
        redact_message=str(raw.get("redactMessage") or DEFAULT_REDACT_MESSAGE),
    )


def load_config(path: Path | None = None) -> Config:
    """Load an explicit config file, or discover oak.yaml upward from the cwd."""
    return load_config_from_path(path if path is not None else find_config_file())
