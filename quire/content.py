from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import Optional

from .config import SiteConfig
from .errors import (
    ConfigurationError,
    FrontmatterError,
    MissingRequiredFieldError,
    SourceDecodeError,
    UnknownFieldError,
)
from .utils import parse_bool

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

FRONTMATTER_SENTINEL = "+++"
SLUG_RE = re.compile(r"[^\w]+", re.UNICODE)


def slugify(text: str) -> str:
    text = text.lower()
    text = SLUG_RE.sub("-", text)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def content_class_of(config: SiteConfig, uri: str) -> Optional[str]:
    parts = PurePosixPath(uri).parts
    if len(parts) > 1 and parts[0] in config.content_classes:
        return parts[0]
    return None


def split_frontmatter(text: str, path: Path) -> tuple[str, dict]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_SENTINEL:
        return clean_text, {}

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONTMATTER_SENTINEL:
            end = i
            break
    if end is None:
        raise FrontmatterError(f"Unterminated frontmatter block in file: {path}", path)

    if toml is None:
        raise ConfigurationError("TOML frontmatter requires tomllib (Python 3.11+) or tomli.")
    try:
        meta = toml.loads("\n".join(lines[1:end]))
    except toml.TOMLDecodeError as exc:
        raise FrontmatterError(f"Invalid TOML frontmatter in file {path}: {exc}", path) from exc
    body = "\n".join(lines[end + 1 :])
    return body, meta


def validate_frontmatter(config: SiteConfig, path: Path, content_class: Optional[str], frontmatter: dict) -> dict:
    if content_class is not None:
        for required in config.required_fields.get(content_class, ()):
            if required not in frontmatter:
                raise MissingRequiredFieldError(required, path)

    for key in frontmatter:
        if key not in config.allowed_fields:
            raise UnknownFieldError(key, path)
    return frontmatter


def extract_frontmatter(config: SiteConfig, path: Path, content_class: Optional[str], text: str) -> tuple[str, dict]:
    body, meta = split_frontmatter(text, path)
    return body, validate_frontmatter(config, path, content_class, meta)


def read_source_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SourceDecodeError(path) from exc


def read_frontmatter(config: SiteConfig, entrypoint_uri: str) -> dict:
    if not entrypoint_uri.endswith(".md"):
        return {}
    path = config.content_dir / entrypoint_uri
    try:
        text = read_source_text(path)
    except FileNotFoundError:
        return {}
    _, meta = extract_frontmatter(config, path, content_class_of(config, entrypoint_uri), text)
    return meta


def is_draft(uri: str, frontmatter: Optional[dict] = None) -> bool:
    if "drafts" in PurePosixPath(uri).parts[:-1]:
        return True
    return parse_bool((frontmatter or {}).get("draft"))


def extract_title(meta: dict, body: str) -> tuple[str, str]:
    if meta.get("title"):
        return str(meta["title"]), body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or "Untitled"
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return "Untitled", body
