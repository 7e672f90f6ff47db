from __future__ import annotations

import shutil
from pathlib import Path, PurePosixPath

from .errors import ConfigurationError


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def mtime_millis(path: Path) -> float:
    return path.stat().st_mtime_ns / 1_000_000


def to_uri(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def is_excluded(uri: str) -> bool:
    parts = PurePosixPath(uri).parts
    if not parts:
        return False
    for part in parts[:-1]:
        if part.startswith("_") or part.endswith("_"):
            return True
    name = parts[-1]
    stem = name.split(".", 1)[0] if not name.startswith(".") else name
    return name.startswith("_") or stem.endswith("_")


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise ConfigurationError("Refusing to clean project root.")
    if not output_resolved.is_relative_to(root_resolved):
        raise ConfigurationError("Refusing to clean output directory outside project root.")
    print("Clearing build directory...")
    shutil.rmtree(output_dir)
