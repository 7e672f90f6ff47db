from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterator, Optional

from .utils import is_excluded, mtime_millis

TEMPLATES_KEY = "@templates"


def walk_files(root: Path) -> Iterator[Path]:
    # Explicit worklist, sorted at every level, so enqueue order is stable.
    if not root.is_dir():
        return
    stack = [root]
    while stack:
        directory = stack.pop()
        subdirs = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            rel = entry.relative_to(root).as_posix()
            if entry.is_dir():
                if not is_excluded(rel + "/"):
                    subdirs.append(entry)
            elif entry.is_file() and not is_excluded(rel):
                yield entry
        stack.extend(reversed(subdirs))


def newest_mtime(roots: list[Path]) -> float:
    newest = 0.0
    for root in roots:
        if not root.is_dir():
            continue
        for path in root.rglob("*"):
            if path.is_file():
                newest = max(newest, mtime_millis(path))
    return newest


class BuildCache:
    """Last-seen modification times, keyed by entrypoint URI.

    The file is read once by :meth:`load` and rewritten whole by
    :meth:`flush`; a missing or unreadable file is an empty cache.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._entries: dict[str, float] = {}

    def load(self) -> "BuildCache":
        self._entries = {}
        if not self.path.exists():
            return self
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            print(f"Ignoring unreadable cache file: {self.path}")
            return self
        if not isinstance(data, dict):
            return self
        for uri, entry in data.items():
            if isinstance(entry, dict) and isinstance(entry.get("lastModified"), (int, float)):
                self._entries[uri] = float(entry["lastModified"])
        return self

    def get(self, uri: str) -> Optional[float]:
        return self._entries.get(uri)

    def put(self, uri: str, millis: float) -> None:
        self._entries[uri] = millis

    def is_fresh(self, uri: str, millis: float) -> bool:
        cached = self.get(uri)
        return cached is not None and cached >= millis

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, uri: object) -> bool:
        return uri in self._entries

    def check_templates(self, roots: list[Path]) -> bool:
        """Drop every entry if a layout or partial changed since the last run."""
        stamp = newest_mtime(roots)
        if self.is_fresh(TEMPLATES_KEY, stamp):
            return False
        self.clear()
        self.put(TEMPLATES_KEY, stamp)
        return True

    def flush(self) -> None:
        data = {uri: {"lastModified": millis} for uri, millis in sorted(self._entries.items())}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=True), encoding="utf-8")
        os.replace(tmp_path, self.path)
