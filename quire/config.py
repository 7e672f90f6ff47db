from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError
from .utils import parse_bool, parse_int

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

try:
    import yaml
except ImportError:  # pragma: no cover - optional dependency
    yaml = None

DEFAULT_CONFIG = "site.toml"
DEFAULT_LAYOUT = "default.html"
CONTENT_CLASSES = ("pages", "posts", "notes")
ALLOWED_FIELDS = ("title", "author", "date", "layout", "slug", "categories", "tags", "draft")
REQUIRED_FIELDS = {"posts": ("title", "author", "date")}
CLASS_LAYOUTS = {"posts": "markdown.html"}


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        if toml is None:
            raise ConfigurationError("TOML config requires tomllib (Python 3.11+) or tomli.")
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in config file {path}: {exc}") from exc
        return data
    if suffix in {".yml", ".yaml"}:
        if yaml is None:
            raise ConfigurationError("YAML config requires PyYAML.")
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"YAML config must be a mapping: {path}")
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"JSON config must be a mapping: {path}")
    return data


def _str_list(value: object, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"Config value {key!r} must be a list of strings.")
    return tuple(str(item) for item in value)


def _mapping(value: object, key: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigurationError(f"Config value {key!r} must be a table.")
    return value


def _rewrites(value: object) -> tuple[tuple[str, str], ...]:
    # Either a table {old = "new"} or a list of [old, new] pairs.
    if isinstance(value, dict):
        return tuple((str(old), str(new)) for old, new in value.items())
    pairs = []
    for item in value or []:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ConfigurationError("Each uri_rewrites entry must be an [old, new] pair.")
        pairs.append((str(item[0]), str(item[1])))
    return tuple(pairs)


@dataclass
class SiteConfig:
    root_dir: Path
    content_dir: Path
    layout_dir: Path
    partials_dir: Path
    static_dir: Path
    output_dir: Path
    cache_file: Path
    title: str = "Website"
    author: str = ""
    layout: str = DEFAULT_LAYOUT
    layouts: dict = field(default_factory=lambda: dict(CLASS_LAYOUTS))
    content_classes: tuple[str, ...] = CONTENT_CLASSES
    allowed_fields: tuple[str, ...] = ALLOWED_FIELDS
    required_fields: dict = field(default_factory=lambda: dict(REQUIRED_FIELDS))
    uri_rewrites: tuple[tuple[str, str], ...] = ()
    port: int = 3001

    @classmethod
    def for_root(cls, root_dir: Path, **overrides: object) -> "SiteConfig":
        root_dir = Path(root_dir)
        values = {
            "root_dir": root_dir,
            "content_dir": root_dir / "content",
            "layout_dir": root_dir / "layouts",
            "partials_dir": root_dir / "partials",
            "static_dir": root_dir / "static",
            "output_dir": root_dir / "build",
            "cache_file": root_dir / ".cache" / "cache.json",
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_mapping(cls, data: dict, root_dir: Path) -> "SiteConfig":
        root_dir = Path(root_dir)

        def resolve(key: str, default: str) -> Path:
            path = Path(str(data.get(key) or default))
            return path if path.is_absolute() else root_dir / path

        overrides = {
            "content_dir": resolve("content_dir", "content"),
            "layout_dir": resolve("layout_dir", "layouts"),
            "partials_dir": resolve("partials_dir", "partials"),
            "static_dir": resolve("static_dir", "static"),
            "output_dir": resolve("output_dir", "build"),
            "cache_file": resolve("cache_file", ".cache/cache.json"),
        }
        if data.get("title") is not None:
            overrides["title"] = str(data["title"])
        if data.get("author") is not None:
            overrides["author"] = str(data["author"])
        if data.get("layout") is not None:
            overrides["layout"] = str(data["layout"])
        if data.get("layouts") is not None:
            overrides["layouts"] = {str(k): str(v) for k, v in _mapping(data["layouts"], "layouts").items()}
        if data.get("content_classes") is not None:
            overrides["content_classes"] = _str_list(data["content_classes"], "content_classes")
        if data.get("allowed_fields") is not None:
            overrides["allowed_fields"] = _str_list(data["allowed_fields"], "allowed_fields")
        if data.get("required_fields") is not None:
            required = _mapping(data["required_fields"], "required_fields")
            overrides["required_fields"] = {
                str(name): _str_list(fields, f"required_fields.{name}") for name, fields in required.items()
            }
        if data.get("uri_rewrites") is not None:
            overrides["uri_rewrites"] = _rewrites(data["uri_rewrites"])
        if data.get("port") is not None:
            overrides["port"] = parse_int(data["port"], 3001)
        return cls.for_root(root_dir, **overrides)

    @classmethod
    def load(cls, path: Path) -> "SiteConfig":
        path = Path(path).resolve()
        return cls.from_mapping(load_config(path), path.parent)

    def layout_for_class(self, content_class: Optional[str]) -> Optional[str]:
        if content_class is None:
            return None
        return self.layouts.get(content_class)


@dataclass
class BuildOptions:
    command: str = "build"
    clean: bool = False
    verbose: bool = False
    no_cache: bool = False
    drafts: bool = False

    @classmethod
    def from_args(cls, args: object) -> "BuildOptions":
        return cls(
            command=getattr(args, "command", "build") or "build",
            clean=parse_bool(getattr(args, "clean", False)),
            verbose=parse_bool(getattr(args, "verbose", False)),
            no_cache=parse_bool(getattr(args, "no_cache", False)),
            drafts=parse_bool(getattr(args, "drafts", False)),
        )
