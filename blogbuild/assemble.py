from __future__ import annotations

import datetime as dt
import os
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Iterable, Optional

from .config import SiteConfig
from .content import parse_document
from .errors import ConfigError, PathCollision
from .index import build_index
from .pages import build_rss, build_sitemap, render_group_pages, render_index_pages, render_post
from .posts import Post, PostCollection, build_post
from .render import LayoutRegistry, RenderedPage, write_text
from .utils import check_output_dir

REQUIRED_LAYOUTS = ("post", "listing")


def discover_documents(posts_dir: Path) -> list[Path]:
    if not posts_dir.is_dir():
        raise ConfigError(f"posts directory not found: {posts_dir}")
    return sorted(posts_dir.rglob("*.md"), key=lambda p: p.as_posix())


def load_post(path: Path, options: dict) -> Post:
    with path.open(encoding="utf-8") as handle:
        text = handle.read()
    document = parse_document(text, source=path.as_posix())
    return build_post(document, **options)


def load_posts(paths: list[Path], config: SiteConfig) -> PostCollection:
    """Parse and build every document, then gather the results.

    Documents are independent, so they are built on a thread pool. The first
    failure (in document order) aborts the run and cancels queued work.
    Drafts are built, and so validated, but left out of the collection.
    """
    loader = partial(load_post, options=config.post_options())
    workers = min(config.worker_count, len(paths)) if paths else 1
    if workers > 1:
        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            posts = list(executor.map(loader, paths))
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
    else:
        posts = [loader(path) for path in paths]
    return PostCollection(post for post in posts if not post.draft)


def assemble_site(
    posts: Iterable[Post],
    registry: LayoutRegistry,
    config: SiteConfig,
    build_time: dt.datetime,
) -> list[RenderedPage]:
    index = build_index(posts, config.page_size)
    pages = [render_post(registry, post, config, build_time) for post in index.feed]
    pages.extend(render_index_pages(registry, index, config, build_time))
    pages.extend(render_group_pages(registry, index.tags, "tag", config, build_time))
    pages.extend(render_group_pages(registry, index.categories, "category", config, build_time))
    if config.enable_rss:
        rss = build_rss(index, config, build_time)
        if rss is not None:
            pages.append(rss)
    if config.enable_sitemap:
        sitemap = build_sitemap(index, config)
        if sitemap is not None:
            pages.append(sitemap)

    seen: set[str] = set()
    for page in pages:
        if page.path in seen:
            raise PathCollision(page.path)
        seen.add(page.path)
    return pages


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


def write_site(pages: Iterable[RenderedPage], output_dir: Path, project_root: Optional[Path] = None) -> None:
    """Write every page into a fresh tree, then swap it in for ``output_dir``.

    Pages go to a staging directory next to ``output_dir``; the previous tree
    is only replaced once every page is on disk. Any failure, interrupts
    included, removes the staging directory and leaves the old tree as it was.
    """
    check_output_dir(output_dir, project_root or Path.cwd())
    output_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-", dir=output_dir.parent))
    try:
        # mkdtemp creates 0700; give the tree the mode a plain mkdir would.
        staging.chmod(0o777 & ~_current_umask())
        for page in pages:
            write_text(staging / page.path, page.markup)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    if not output_dir.exists():
        staging.rename(output_dir)
        return
    previous = staging.with_name(f"{staging.name}-previous")
    output_dir.rename(previous)
    try:
        staging.rename(output_dir)
    except BaseException:
        previous.rename(output_dir)
        shutil.rmtree(staging, ignore_errors=True)
        raise
    shutil.rmtree(previous)


def build_site(
    config: SiteConfig,
    build_time: dt.datetime,
    project_root: Optional[Path] = None,
) -> list[RenderedPage]:
    registry = LayoutRegistry.from_directory(config.layouts_dir)
    for name in REQUIRED_LAYOUTS:
        registry.get(name)
    paths = discover_documents(config.posts_dir)
    posts = load_posts(paths, config)
    pages = assemble_site(posts, registry, config, build_time)
    write_site(pages, config.output_dir, project_root)
    return pages
