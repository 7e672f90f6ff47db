"""Entrypoint resolution and input-to-output URI mapping.

All URIs here are POSIX paths relative to the content root (inputs) or the
output root (outputs), without a leading slash.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from .content import read_frontmatter
from .errors import NoEntrypointError

if TYPE_CHECKING:
    from .context import BuildContext
    from .pages import PageLogic

ENTRYPOINT_EXTENSIONS = (".md", ".html", ".xml")
POSTS_GROUP_RE = re.compile(r"^posts/(?:.*?/)?")


def entrypoint_candidates(dirname: str) -> list[str]:
    names = [f"index{ext}" for ext in ENTRYPOINT_EXTENSIONS]
    if dirname:
        names.extend(f"{dirname}{ext}" for ext in ENTRYPOINT_EXTENSIONS)
        names.append(dirname)
    return names


def resolve_entrypoint(content_dir: Path, input_uri: str, strict: bool = True) -> Optional[str]:
    parent = posixpath.dirname(input_uri)
    directory = content_dir / parent
    for name in entrypoint_candidates(posixpath.basename(parent)):
        if (directory / name).is_file():
            return posixpath.join(parent, name)
    if strict:
        raise NoEntrypointError(content_dir / input_uri)
    return None


def transform_uri(uri: str, rewrites: Iterable[tuple[str, str]] = ()) -> str:
    if uri.startswith("pages/"):
        uri = uri[len("pages/") :]
    elif uri.startswith("posts/"):
        uri = POSTS_GROUP_RE.sub("posts/", uri, count=1)

    for old, new in rewrites:
        uri = uri.replace(old, new)
    return uri


def shape_output_uri(uri: str, route_part: Optional[str] = None) -> str:
    parent = posixpath.dirname(uri)
    # For `a/b/c.txt`: path_part is `a`, parent_name is `b`.
    path_part = posixpath.dirname(parent)
    parent_name = posixpath.basename(parent)
    filename = posixpath.basename(uri)
    stem, ext = posixpath.splitext(filename)
    route = route_part if route_part else parent_name

    if "." in parent_name and parent_name != ".":
        return posixpath.join(path_part, filename)
    if ext not in (".md", ".html"):
        return posixpath.join(path_part, route, filename)
    if stem == parent_name:
        return posixpath.join(path_part, route, "index.html")
    return posixpath.join(path_part, route, f"{stem}.html")


def route_part_for(ctx: "BuildContext", uri: str, logic: Optional["PageLogic"], entrypoint_uri: Optional[str]) -> str:
    meta = logic.call_meta() if logic is not None else {}
    if meta.get("slug"):
        return str(meta["slug"])
    if entrypoint_uri:
        frontmatter = read_frontmatter(ctx.config, entrypoint_uri)
        if frontmatter.get("slug"):
            return str(frontmatter["slug"])
    return posixpath.basename(posixpath.dirname(uri))


def compute_output_uri(
    ctx: "BuildContext", input_uri: str, logic: Optional["PageLogic"], entrypoint_uri: Optional[str]
) -> str:
    uri = transform_uri(input_uri, ctx.config.uri_rewrites)
    return shape_output_uri(uri, route_part_for(ctx, uri, logic, entrypoint_uri))
