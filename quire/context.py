from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .cache import BuildCache
from .config import BuildOptions, SiteConfig
from .pages import collect_posts
from .render import TemplateRegistry


@dataclass
class BuildContext:
    """Process-wide build state, passed explicitly to every pipeline call.

    Owns the in-memory cache and the template registry, which also holds the
    template helpers. Use :meth:`create` to load the cache from disk and
    register partials; the scheduler flushes the cache after every completed
    entrypoint.
    """

    config: SiteConfig
    options: BuildOptions
    cache: BuildCache
    templates: TemplateRegistry

    @classmethod
    def create(cls, config: SiteConfig, options: Optional[BuildOptions] = None) -> "BuildContext":
        options = options or BuildOptions()
        cache = BuildCache(config.cache_file)
        if not options.no_cache:
            cache.load()
            if cache.check_templates([config.layout_dir, config.partials_dir]) and options.verbose:
                print("Layouts or partials changed, cache reset.")
        templates = TemplateRegistry(config.layout_dir, config.partials_dir)
        templates.reload()
        ctx = cls(config=config, options=options, cache=cache, templates=templates)
        ctx.register_helper("get_posts", lambda: collect_posts(ctx))
        return ctx

    def register_helper(self, name: str, fn: Callable[..., Any]) -> None:
        self.templates.register_helper(name, fn)

    def log(self, message: str) -> None:
        if self.options.verbose:
            print(message)

    @property
    def use_cache(self) -> bool:
        return not self.options.no_cache
