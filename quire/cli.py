from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import sys
import time
from pathlib import Path
from typing import Optional

from .config import DEFAULT_CONFIG, BuildOptions, SiteConfig, load_config
from .content import slugify
from .context import BuildContext
from .errors import QuireError
from .scheduler import BuildReport, build, check
from .utils import parse_bool

COMMANDS = ("build", "watch", "serve", "check", "new")

POST_TEMPLATE = """+++
title = ''
slug = '{slug}'
author = '{author}'
date = {date}
categories = []
tags = []
draft = true
+++

"""


def create_post(config: SiteConfig, slug: str, now: Optional[dt.datetime] = None) -> Path:
    slug = slugify(slug)
    now = (now or dt.datetime.now(dt.timezone.utc)).replace(microsecond=0)
    path = config.content_dir / "posts" / "drafts" / slug / f"{slug}.md"
    if path.exists():
        raise QuireError(f"Post already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    date = now.strftime("%Y-%m-%dT%H:%M:%SZ")
    path.write_text(POST_TEMPLATE.format(slug=slug, author=config.author, date=date), encoding="utf-8")
    return path


def build_parser(config_path: str, config: dict) -> argparse.ArgumentParser:
    def cfg_bool(key: str, default: bool) -> bool:
        value = config.get(key)
        return default if value is None else parse_bool(value)

    parser = argparse.ArgumentParser(prog="quire", description="Build a static site from a content directory.")
    parser.add_argument("command", choices=COMMANDS, help="What to do.")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--output", default=None, help="Output directory (overrides output_dir in the config).")
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", False),
        help="Delete the output directory and the build cache first.",
    )
    parser.add_argument(
        "--verbose",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("verbose", False),
        help="Report skipped and cached files.",
    )
    parser.add_argument(
        "--cache",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("cache", True),
        help="Skip entrypoints unchanged since the last build (--no-cache bypasses the cache).",
    )
    parser.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("drafts", False),
        help="Include draft content.",
    )
    return parser


def report_summary(report: BuildReport, elapsed: float) -> None:
    print(f"{len(report.written)} written, {len(report.skipped)} skipped in {elapsed:.2f}s.")
    if report.failures:
        print(f"{len(report.failures)} file(s) failed:", file=sys.stderr)
        for failure in report.failures:
            print(f"  {failure.path}: {failure}", file=sys.stderr)


def run(args: argparse.Namespace, data: dict) -> int:
    config = SiteConfig.from_mapping(data, Path(args.config).resolve().parent)
    if args.output:
        config = dataclasses.replace(config, output_dir=Path(args.output).resolve())
    if args.command == "new":
        slug = input("What is the post slug? ").strip()
        if not slug:
            print("No slug given.", file=sys.stderr)
            return 1
        print(f"File created at {create_post(config, slug)}")
        return 0

    args.no_cache = not args.cache
    ctx = BuildContext.create(config, BuildOptions.from_args(args))
    start = time.perf_counter()
    if args.command == "build":
        report = build(ctx)
    elif args.command == "check":
        report = check(ctx)
    else:
        from .watch import watch

        report = watch(ctx, serve=args.command == "serve")
    report_summary(report, time.perf_counter() - start)
    if not report.ok:
        return 1
    print("Done.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=DEFAULT_CONFIG)
    pre_args, _ = pre_parser.parse_known_args(argv)

    try:
        config = load_config(Path(pre_args.config))
        args = build_parser(pre_args.config, config).parse_args(argv)
        return run(args, config)
    except QuireError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
