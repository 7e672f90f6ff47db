from __future__ import annotations

from markdown import Markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor


def is_site_link(href: str) -> bool:
    return (href.startswith("/") and not href.startswith("//")) or href.startswith("#")


class LinkTargetProcessor(Treeprocessor):
    def run(self, root):
        for el in root.iter("a"):
            href = el.get("href")
            if href is None:
                continue
            el.set("target", "_self" if is_site_link(href) else "_blank")
        return None


class LinkTargetExtension(Extension):
    """Open off-site links in a new tab and keep site links in place."""

    def extendMarkdown(self, md: Markdown) -> None:
        md.treeprocessors.register(LinkTargetProcessor(md), "link_target", 5)
