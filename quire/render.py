from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

import markdown
from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, Template, TemplateError, TemplateNotFound

from .content import extract_frontmatter, extract_title, read_source_text
from .errors import RenderError
from .links import LinkTargetExtension

if TYPE_CHECKING:
    from .context import BuildContext
    from .pages import Page

BUILTIN_LAYOUT = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{{ title or header_title or site_title }}</title>
</head>
<body>
{{ body }}
</body>
</html>
"""


class TemplateRegistry:
    """Layouts from the layout directory plus partials registered by file stem."""

    def __init__(self, layout_dir: Path, partials_dir: Path) -> None:
        self.layout_dir = layout_dir
        self.partials_dir = partials_dir
        self.helpers: dict[str, Callable[..., Any]] = {}
        self.partials: dict[str, str] = {}
        self.env = self._create_env()

    def _create_env(self) -> Environment:
        env = Environment(
            loader=ChoiceLoader([FileSystemLoader(str(self.layout_dir)), DictLoader(self.partials)]),
            autoescape=False,
            keep_trailing_newline=True,
        )
        env.globals.update(self.helpers)
        return env

    def reload(self) -> None:
        self.partials = {}
        if self.partials_dir.is_dir():
            for path in sorted(self.partials_dir.iterdir()):
                if path.is_file():
                    self.partials[path.stem] = path.read_text(encoding="utf-8")
        self.env = self._create_env()

    def register_helper(self, name: str, fn: Callable[..., Any]) -> None:
        self.helpers[name] = fn
        self.env.globals[name] = fn

    def layout(self, name: str) -> Template:
        return self.env.get_template(name)

    def from_string(self, source: str) -> Template:
        return self.env.from_string(source)


def render_markdown(text: str) -> str:
    md = markdown.Markdown(
        extensions=["fenced_code", "tables", "toc", "codehilite", LinkTargetExtension()],
        extension_configs={"codehilite": {"guess_lang": False}},
    )
    return md.convert(text)


@dataclass
class Source:
    text: str
    frontmatter: dict


def load_source(ctx: "BuildContext", page: "Page") -> Source:
    path = ctx.config.content_dir / page.entrypoint_uri
    text = read_source_text(path)
    if page.entrypoint_uri.endswith(".md"):
        body, frontmatter = extract_frontmatter(ctx.config, path, page.content_class, text)
        return Source(body, frontmatter)
    return Source(text, {})


def select_layout(ctx: "BuildContext", page: "Page", explicit: Optional[str]) -> Template:
    registry = ctx.templates
    path = ctx.config.content_dir / page.entrypoint_uri
    if explicit:
        try:
            return registry.layout(str(explicit))
        except TemplateNotFound as exc:
            raise RenderError(f"Layout not found: {explicit} (requested by {path})", path) from exc
    for name in (ctx.config.layout_for_class(page.content_class), ctx.config.layout):
        if not name:
            continue
        try:
            return registry.layout(name)
        except TemplateNotFound:
            continue
    return registry.from_string(BUILTIN_LAYOUT)


def render_entrypoint(ctx: "BuildContext", page: "Page", source: Source) -> str:
    path = ctx.config.content_dir / page.entrypoint_uri
    common = {
        "site_title": ctx.config.title,
        "input_uri": page.entrypoint_uri,
        "output_uri": page.output_uri,
    }
    try:
        if page.entrypoint_uri.endswith(".md"):
            title, body = extract_title(source.frontmatter, source.text)
            layout = select_layout(ctx, page, source.frontmatter.get("layout"))
            return layout.render(
                {
                    **page.variables,
                    **common,
                    "title": title,
                    "frontmatter": source.frontmatter,
                    "body": render_markdown(body),
                }
            )

        html = ctx.templates.from_string(source.text).render({**page.variables, **common})
        if not page.entrypoint_uri.endswith(".html"):
            return html
        meta = page.logic.call_meta()
        header = page.logic.call_header(ctx)
        layout = select_layout(ctx, page, meta.get("layout"))
        return layout.render(
            {
                **common,
                "body": html,
                "header_title": header.get("title") or ctx.config.title or "Website",
                "header_content": header.get("content") or "",
            }
        )
    except TemplateError as exc:
        raise RenderError(f"Template error in {path}: {exc}", path) from exc


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_file(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, dest)


def copy_static(static_dir: Path, output_dir: Path) -> int:
    if not static_dir.is_dir():
        return 0
    copied = 0
    for source in sorted(static_dir.rglob("*")):
        if not source.is_file():
            continue
        dest = output_dir / source.relative_to(static_dir)
        if dest.is_file():
            src_stat, dest_stat = source.stat(), dest.stat()
            if dest_stat.st_size == src_stat.st_size and dest_stat.st_mtime >= src_stat.st_mtime:
                continue
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
        copied += 1
    return copied
