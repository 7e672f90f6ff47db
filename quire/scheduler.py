from __future__ import annotations

import asyncio
import inspect
import sys
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional

from .cache import walk_files
from .context import BuildContext
from .content import is_draft, read_frontmatter
from .errors import PageError
from .pages import Page, base_page, check_logic_module, expand_page, is_logic_module, logic_target
from .render import copy_file, copy_static, load_source, render_entrypoint, write_text
from .routing import resolve_entrypoint
from .utils import clean_output_dir, is_excluded, mtime_millis, to_uri


@dataclass
class BuildReport:
    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[PageError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class FileQueue:
    """FIFO of content-relative URIs; a URI already pending is not queued twice."""

    def __init__(self, uris: Iterable[str] = ()) -> None:
        self._items: deque[str] = deque()
        self._pending: set[str] = set()
        self.extend(uris)

    def push(self, uri: str) -> bool:
        if uri in self._pending:
            return False
        self._items.append(uri)
        self._pending.add(uri)
        return True

    def extend(self, uris: Iterable[str]) -> None:
        for uri in uris:
            self.push(uri)

    def pop(self) -> str:
        uri = self._items.popleft()
        self._pending.discard(uri)
        return uri

    def clear(self) -> None:
        self._items.clear()
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, uri: object) -> bool:
        return uri in self._pending

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))


def content_uris(ctx: BuildContext) -> Iterator[str]:
    content_dir = ctx.config.content_dir
    for path in walk_files(content_dir):
        yield to_uri(path, content_dir)


class Builder:
    def __init__(self, ctx: BuildContext) -> None:
        self.ctx = ctx
        self.queue = FileQueue()
        self.report = BuildReport()
        self._static_pending = False
        self._stopping = False
        self._wakeup: Optional[asyncio.Event] = None

    def enqueue_all(self) -> None:
        self.queue.extend(content_uris(self.ctx))
        self._static_pending = True

    def enqueue(self, uri: str) -> bool:
        queued = self.queue.push(uri)
        if queued:
            self.ctx.log(f"Queued {uri}")
        self._wake()
        return queued

    def notify_change(self, path: Path) -> None:
        ctx = self.ctx
        path = Path(path).resolve()
        content_dir = ctx.config.content_dir.resolve()
        if path.is_relative_to(content_dir):
            uri = path.relative_to(content_dir).as_posix()
            self.enqueue(logic_target(uri) or uri)
            return

        print(f"Changed {path}, rebuilding all content...")
        ctx.templates.reload()
        if ctx.use_cache and ctx.cache.check_templates([ctx.config.layout_dir, ctx.config.partials_dir]):
            ctx.log("Layouts or partials changed, cache reset.")
        self.queue.clear()
        self.enqueue_all()
        self._wake()

    def process(self, uri: str) -> None:
        try:
            self._process(uri)
        except PageError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            self.report.failures.append(exc)
        except FileNotFoundError as exc:
            self.ctx.log(f"Skipping {uri}: {exc.strerror}")
            self.report.skipped.append(uri)

    def _skip(self, uri: str, reason: str) -> None:
        self.ctx.log(f"Skipping {uri} ({reason})")
        self.report.skipped.append(uri)

    def _process(self, uri: str) -> None:
        ctx = self.ctx
        content_dir = ctx.config.content_dir
        if is_excluded(uri):
            self._skip(uri, "excluded")
            return
        if not (content_dir / uri).is_file():
            raise FileNotFoundError(2, "No such file", str(content_dir / uri))

        resolve_entrypoint(content_dir, uri)
        if is_logic_module(uri):
            check_logic_module(ctx, uri)
            self._skip(uri, "page logic")
            return
        if is_draft(uri) and not ctx.options.drafts:
            self._skip(uri, "draft")
            return

        page = base_page(ctx, uri)
        if page.is_entrypoint:
            self._build_entrypoint(page)
        else:
            self._copy_satellite(page)

    def _stamp(self, page: Page) -> float:
        stamp = mtime_millis(self.ctx.config.content_dir / page.entrypoint_uri)
        if page.logic.path is not None:
            stamp = max(stamp, mtime_millis(page.logic.path))
        return stamp

    def _build_entrypoint(self, page: Page) -> None:
        ctx = self.ctx
        stamp = self._stamp(page)
        if ctx.use_cache and ctx.cache.is_fresh(page.entrypoint_uri, stamp):
            self._skip(page.entrypoint_uri, "unchanged")
            return

        source = load_source(ctx, page)
        if is_draft(page.entrypoint_uri, source.frontmatter) and not ctx.options.drafts:
            self._skip(page.entrypoint_uri, "draft")
            return

        print(f"Processing {page.entrypoint_uri}...")
        # Every variant is rendered before anything is written or cached.
        rendered = [(variant.output_uri, render_entrypoint(ctx, variant, source)) for variant in expand_page(ctx, page)]
        for output_uri, html in rendered:
            write_text(ctx.config.output_dir / output_uri, html)
            print(f"  -> Written to {output_uri}")
            self.report.written.append(output_uri)

        if ctx.use_cache:
            ctx.cache.put(page.entrypoint_uri, stamp)
            ctx.cache.flush()

    def _copy_satellite(self, page: Page) -> None:
        ctx = self.ctx
        if not ctx.options.drafts and is_draft(page.entrypoint_uri, read_frontmatter(ctx.config, page.entrypoint_uri)):
            self._skip(page.input_uri, "draft")
            return

        source = ctx.config.content_dir / page.input_uri
        # The output path depends on the entrypoint's slug.
        stamp = max(mtime_millis(source), self._stamp(page))
        if ctx.use_cache and ctx.cache.is_fresh(page.input_uri, stamp):
            self._skip(page.input_uri, "unchanged")
            return

        copy_file(source, ctx.config.output_dir / page.output_uri)
        ctx.log(f"Copied {page.input_uri} -> {page.output_uri}")
        self.report.written.append(page.output_uri)
        if ctx.use_cache:
            ctx.cache.put(page.input_uri, stamp)
            ctx.cache.flush()

    def _finish_pass(self) -> None:
        if self._static_pending:
            copy_static(self.ctx.config.static_dir, self.ctx.config.output_dir)
            self._static_pending = False

    def drain(self) -> BuildReport:
        while self.queue:
            self.process(self.queue.pop())
        self._finish_pass()
        return self.report

    async def drain_cooperatively(self, on_empty: Optional[Callable[[], Any]] = None) -> BuildReport:
        """Process one queued file per loop iteration until :meth:`stop` is called.

        ``on_empty`` runs each time the queue goes from non-empty to empty.
        """
        self._wakeup = asyncio.Event()
        self._stopping = False
        was_empty = False
        while not self._stopping:
            if self.queue:
                self.process(self.queue.pop())
                was_empty = False
                await asyncio.sleep(0)
                continue
            if not was_empty:
                was_empty = True
                self._finish_pass()
                if on_empty is not None:
                    result = on_empty()
                    if inspect.isawaitable(result):
                        await result
                continue
            self._wakeup.clear()
            await self._wakeup.wait()
        return self.report

    def stop(self) -> None:
        self._stopping = True
        self._wake()

    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()


def clean(ctx: BuildContext) -> None:
    clean_output_dir(ctx.config.output_dir, ctx.config.root_dir)
    ctx.cache.clear()
    if ctx.use_cache:
        ctx.cache.check_templates([ctx.config.layout_dir, ctx.config.partials_dir])
        ctx.cache.flush()


def build(ctx: BuildContext) -> BuildReport:
    if ctx.options.clean:
        clean(ctx)
    builder = Builder(ctx)
    builder.enqueue_all()
    return builder.drain()


def build_file(ctx: BuildContext, path: Path) -> BuildReport:
    """Build a single content file; a missing entrypoint raises."""
    content_dir = ctx.config.content_dir
    uri = to_uri(Path(path).resolve(), content_dir.resolve())
    resolve_entrypoint(content_dir, uri, strict=True)
    builder = Builder(ctx)
    builder.enqueue(uri)
    return builder.drain()


def route_map(ctx: BuildContext) -> dict[str, str]:
    """Map every output URI to its input URI, ignoring files that do not resolve."""
    routes: dict[str, str] = {}
    for uri in content_uris(ctx):
        if is_logic_module(uri):
            continue
        try:
            page = base_page(ctx, uri, strict=False)
            if page is None:
                continue
            for variant in expand_page(ctx, page):
                owner = routes.setdefault(variant.output_uri, uri)
                if owner != uri:
                    print(f"Warning: {variant.output_uri} is produced by both {owner} and {uri}", file=sys.stderr)
        except PageError as exc:
            ctx.log(f"Skipping {uri}: {exc}")
    return routes


def check(ctx: BuildContext) -> BuildReport:
    report = BuildReport()
    routes: dict[str, str] = {}
    for uri in content_uris(ctx):
        try:
            resolve_entrypoint(ctx.config.content_dir, uri)
            if is_logic_module(uri):
                check_logic_module(ctx, uri)
                continue
            page = base_page(ctx, uri)
            if page.is_entrypoint:
                load_source(ctx, page)
            for variant in expand_page(ctx, page):
                owner = routes.setdefault(variant.output_uri, uri)
                if owner != uri:
                    message = f"Output {variant.output_uri} is produced by both {owner} and {uri}"
                    raise PageError(message, page_path(ctx, page))
            ctx.log(f"OK {uri}")
        except PageError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            report.failures.append(exc)
    return report


def page_path(ctx: BuildContext, page: Page) -> Path:
    return ctx.config.content_dir / page.input_uri
