from __future__ import annotations

import argparse
import datetime as dt
import os
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .assemble import build_site
from .config import FEED_LIMIT, PAGE_SIZE, SiteConfig, load_config
from .errors import BuildError
from .posts import DEFAULT_EXCERPT_LENGTH, DEFAULT_EXCERPT_MARKER, DEFAULT_PERMALINK
from .utils import parse_build_time


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    def cfg(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    parser = argparse.ArgumentParser(description="Build a static blog from Markdown posts.")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--posts", dest="posts_dir", default=cfg("posts_dir", "posts"), help="Directory containing Markdown posts.")
    parser.add_argument("--output", dest="output_dir", default=cfg("output_dir", "dist"), help="Output directory for the site.")
    parser.add_argument(
        "--layouts",
        dest="layouts_dir",
        default=cfg("layouts_dir", None),
        help="Directory of layout templates (defaults to the built-in layouts).",
    )
    parser.add_argument("--site-name", default=cfg("site_name", "Notes"), help="Site title.")
    parser.add_argument("--site-description", default=cfg("site_description", "A personal blog."), help="Site description.")
    parser.add_argument("--site-url", default=cfg("site_url", ""), help="Public site URL used for RSS and sitemap.")
    parser.add_argument(
        "--page-size",
        default=cfg("page_size", PAGE_SIZE),
        type=int,
        help="Posts per index page (0 disables pagination).",
    )
    parser.add_argument(
        "--excerpt-length",
        default=cfg("excerpt_length", DEFAULT_EXCERPT_LENGTH),
        type=int,
        help="Excerpt cutoff in characters when a post has no excerpt marker.",
    )
    parser.add_argument("--excerpt-marker", default=cfg("excerpt_marker", DEFAULT_EXCERPT_MARKER), help="Explicit excerpt break.")
    parser.add_argument("--permalink", default=cfg("permalink", DEFAULT_PERMALINK), help="Permalink pattern (:year :month :day :title).")
    parser.add_argument(
        "--workers",
        default=cfg("workers", 0),
        type=int,
        help="Number of worker threads for parsing posts (0 = auto).",
    )
    parser.add_argument("--toc-depth", default=cfg("toc_depth", "2-4"), help="Heading depth range for TOC (e.g. 2-4).")
    parser.add_argument(
        "--enable-rss",
        action=argparse.BooleanOptionalAction,
        default=cfg("enable_rss", True),
        help="Generate rss.xml.",
    )
    parser.add_argument(
        "--feed-limit",
        default=cfg("feed_limit", FEED_LIMIT),
        type=int,
        help="Maximum number of posts in the RSS feed.",
    )
    parser.add_argument(
        "--enable-sitemap",
        action=argparse.BooleanOptionalAction,
        default=cfg("enable_sitemap", True),
        help="Generate sitemap.xml.",
    )
    parser.add_argument(
        "--build-time",
        default=None,
        help="Timestamp stamped into the output (ISO 8601 or Unix epoch; defaults to SOURCE_DATE_EPOCH or now).",
    )
    return parser


def resolve_build_time(value: Optional[str]) -> dt.datetime:
    if value:
        return parse_build_time(value)
    epoch = os.environ.get("SOURCE_DATE_EPOCH", "").strip()
    if epoch:
        return parse_build_time(epoch)
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None, microsecond=0)


def main(argv: Optional[Sequence[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default="site.toml")
    pre_args, _ = pre_parser.parse_known_args(argv)
    try:
        config_data = load_config(Path(pre_args.config))
    except BuildError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    args = build_parser(config_data, pre_args.config).parse_args(argv)
    values = vars(args)
    values.pop("config")
    build_time_value = values.pop("build_time")

    start = time.perf_counter()
    try:
        config = SiteConfig.from_mapping(values)
        build_time = resolve_build_time(build_time_value)
        pages = build_site(config, build_time)
    except BuildError as exc:
        print(f"error: {exc}", file=sys.stderr)
        print("Build aborted; output left unchanged.", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"{len(pages)} pages generated in: {config.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
