from __future__ import annotations

import importlib.util
import posixpath
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

from .content import content_class_of, is_draft, read_frontmatter
from .errors import OrphanedLogicModuleError, PageLogicError
from .routing import compute_output_uri, resolve_entrypoint
from .utils import is_excluded

if TYPE_CHECKING:
    from .context import BuildContext

LOGIC_SUFFIX = ".page.py"
MISNAMED_LOGIC_RE = re.compile(r"\.[A-Za-z]+\.py$")


@dataclass(frozen=True)
class RouteVariant:
    slug: str
    count: Any = None

    @classmethod
    def coerce(cls, item: object, path: Path) -> "RouteVariant":
        if isinstance(item, RouteVariant):
            return item
        if isinstance(item, dict) and item.get("slug"):
            return cls(str(item["slug"]), item.get("count"))
        if isinstance(item, (list, tuple)) and len(item) == 2:
            return cls(str(item[0]), item[1])
        raise PageLogicError(f"Invalid slug mapping entry {item!r} in: {path}", path)


@dataclass(frozen=True)
class PageLogic:
    """Optional capabilities exposed by a ``<entrypoint>.page.py`` module.

    Every capability is independently nullable; a missing module yields an
    instance with all of them set to ``None``.
    """

    path: Optional[Path] = None
    meta: Optional[Callable[[], Any]] = None
    header: Optional[Callable[[Any], Any]] = None
    generate_slug_mapping: Optional[Callable[[Any], Any]] = None
    generate_template_variables: Optional[Callable[[Any, dict], Any]] = None

    def _call(self, name: str, fn: Callable, *args: Any) -> Any:
        try:
            return fn(*args)
        except Exception as exc:
            raise PageLogicError(f"{name}() failed in {self.path}: {exc}", self.path) from exc

    def _mapping(self, name: str, value: Any) -> dict:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise PageLogicError(f"{name}() must return a mapping in: {self.path}", self.path)
        return value

    def call_meta(self) -> dict:
        if self.meta is None:
            return {}
        return self._mapping("meta", self._call("meta", self.meta))

    def call_header(self, ctx: "BuildContext") -> dict:
        if self.header is None:
            return {}
        return self._mapping("header", self._call("header", self.header, ctx))

    def slug_mapping(self, ctx: "BuildContext") -> Optional[list[RouteVariant]]:
        if self.generate_slug_mapping is None:
            return None
        items = self._call("generate_slug_mapping", self.generate_slug_mapping, ctx) or []
        return [RouteVariant.coerce(item, self.path) for item in items]

    def template_variables(self, ctx: "BuildContext", params: dict) -> dict:
        if self.generate_template_variables is None:
            return {}
        value = self._call("generate_template_variables", self.generate_template_variables, ctx, params)
        return self._mapping("generate_template_variables", value)


def logic_module_path(entrypoint_file: Path) -> Path:
    return entrypoint_file.with_name(entrypoint_file.name + LOGIC_SUFFIX)


def load_page_logic(entrypoint_file: Path) -> PageLogic:
    module_path = logic_module_path(entrypoint_file)
    if not module_path.is_file():
        return PageLogic()
    # Executed on every load and never added to sys.modules.
    name = "quire_page_" + re.sub(r"\W", "_", module_path.name)
    spec = importlib.util.spec_from_file_location(name, module_path)
    if spec is None or spec.loader is None:
        raise PageLogicError(f"Cannot load page logic module: {module_path}", module_path)
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise PageLogicError(f"Error importing {module_path}: {exc}", module_path) from exc
    return PageLogic(
        path=module_path,
        meta=getattr(module, "meta", None),
        header=getattr(module, "header", None),
        generate_slug_mapping=getattr(module, "generate_slug_mapping", None),
        generate_template_variables=getattr(module, "generate_template_variables", None),
    )


def is_logic_module(uri: str) -> bool:
    return uri.endswith(LOGIC_SUFFIX) or bool(MISNAMED_LOGIC_RE.search(uri))


def check_logic_module(ctx: "BuildContext", uri: str) -> None:
    path = ctx.config.content_dir / uri
    if uri.endswith(LOGIC_SUFFIX):
        if not (ctx.config.content_dir / uri[: -len(LOGIC_SUFFIX)]).is_file():
            raise OrphanedLogicModuleError(path)
    elif MISNAMED_LOGIC_RE.search(uri):
        suggestion = uri[: -len(".py")] + LOGIC_SUFFIX
        raise OrphanedLogicModuleError(path, hint=f'did you mean "{posixpath.basename(suggestion)}"?')


def logic_target(uri: str) -> Optional[str]:
    if uri.endswith(LOGIC_SUFFIX):
        return uri[: -len(LOGIC_SUFFIX)]
    return None


@dataclass
class Page:
    input_uri: str
    entrypoint_uri: str
    output_uri: str
    content_class: Optional[str]
    logic: PageLogic = field(default_factory=PageLogic)
    variables: dict = field(default_factory=dict)

    @property
    def is_entrypoint(self) -> bool:
        return self.input_uri == self.entrypoint_uri


def base_page(ctx: "BuildContext", input_uri: str, strict: bool = True) -> Optional[Page]:
    config = ctx.config
    entrypoint_uri = resolve_entrypoint(config.content_dir, input_uri, strict=strict)
    if entrypoint_uri is None:
        return None
    logic = load_page_logic(config.content_dir / entrypoint_uri)
    return Page(
        input_uri=input_uri,
        entrypoint_uri=entrypoint_uri,
        output_uri=compute_output_uri(ctx, input_uri, logic, entrypoint_uri),
        content_class=content_class_of(config, input_uri),
        logic=logic,
    )


def expand_page(ctx: "BuildContext", page: Page) -> Iterator[Page]:
    if not page.is_entrypoint:
        yield page
        return

    variants = page.logic.slug_mapping(ctx)
    if variants is None:
        yield replace(page, variables=page.logic.template_variables(ctx, {}))
        return

    base_dir = posixpath.dirname(page.output_uri)
    for variant in variants:
        params = {"slug": variant.slug, "count": variant.count}
        yield replace(
            page,
            output_uri=posixpath.join(base_dir, variant.slug, "index.html"),
            variables=page.logic.template_variables(ctx, params),
        )


def iter_pages(ctx: "BuildContext", input_uri: str) -> Iterator[Page]:
    page = base_page(ctx, input_uri)
    yield from expand_page(ctx, page)


def collect_posts(ctx: "BuildContext") -> list[dict]:
    """Frontmatter and output location of every post entrypoint, newest first."""
    config = ctx.config
    posts_dir = config.content_dir / "posts"
    posts = []
    if not posts_dir.is_dir():
        return posts
    for path in sorted(posts_dir.rglob("*.md"), key=lambda p: p.as_posix()):
        uri = path.relative_to(config.content_dir).as_posix()
        if is_excluded(uri):
            continue
        if resolve_entrypoint(config.content_dir, uri, strict=False) != uri:
            continue
        frontmatter = read_frontmatter(config, uri)
        if is_draft(uri, frontmatter) and not ctx.options.drafts:
            continue
        logic = load_page_logic(path)
        output_uri = compute_output_uri(ctx, uri, logic, uri)
        posts.append(
            {
                "uri": uri,
                "url": "/" + output_uri.removesuffix("index.html"),
                "slug": posixpath.basename(posixpath.dirname(output_uri)),
                "frontmatter": frontmatter,
            }
        )
    posts.sort(key=lambda post: str(post["frontmatter"].get("date", "")), reverse=True)
    return posts
