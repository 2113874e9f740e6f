from __future__ import annotations

import datetime as dt
import html
from typing import Iterable, Optional

from .config import SiteConfig
from .index import Group, Page, SiteIndex, normalize_label, page_path
from .posts import Post
from .render import LayoutRegistry, RenderedPage, fix_relative_img_src, strip_tags
from .utils import iso_date, join_url, relative_root, rfc822_date


def tag_path(group: Group) -> str:
    return f"tag/{group.slug}/index.html"


def category_path(group: Group) -> str:
    return f"category/{group.slug}/index.html"


def summary_text(post: Post) -> str:
    if post.summary:
        return post.summary
    if post.description:
        return post.description
    return " ".join(strip_tags(post.excerpt).split())


def resolve_asset(src: str, root: str) -> str:
    if src.startswith(("http://", "https://", "data:", "/", "./", "../")):
        return src
    return f"{root}/{src}"


def site_context(config: SiteConfig, build_time: dt.datetime, root: str) -> dict:
    return {
        "root": root,
        "site_name": html.escape(config.site_name),
        "site_description": html.escape(config.site_description),
        "build_year": str(build_time.year),
        "generated_at": iso_date(build_time),
    }


def label_links(groups: Iterable[tuple[str, str]], root: str) -> str:
    return " ".join(
        f'<a class="chip" href="{root}/{path.removesuffix("index.html")}">{html.escape(label)}</a>'
        for label, path in groups
    )


def post_labels(labels: Iterable[str], prefix: str) -> list[tuple[str, str]]:
    keyed = {}
    for label in labels:
        label = " ".join(label.split())
        key = normalize_label(label)
        if key:
            keyed[key] = min(keyed.get(key, label), label)
    return [(keyed[key], f"{prefix}/{key}/index.html") for key in sorted(keyed)]


def post_context(post: Post, config: SiteConfig, build_time: dt.datetime) -> dict:
    root = relative_root(post.path)
    context = site_context(config, build_time, root)
    context.update(
        {
            "page_title": html.escape(f"{post.title} | {config.site_name}"),
            "title": html.escape(post.title),
            "date": post.date,
            "date_iso": iso_date(post.published_at),
            "words": str(post.words),
            "body": fix_relative_img_src(post.body, root),
            "meta_description": html.escape(summary_text(post), quote=True),
        }
    )
    if post.hero_image:
        src = html.escape(resolve_asset(post.hero_image, root), quote=True)
        context["hero"] = f'<img class="post-hero" src="{src}" alt="{html.escape(post.title, quote=True)}">'
    if post.description:
        context["description"] = f'<p class="post-description">{html.escape(post.description)}</p>'
    if post.tags:
        context["tags"] = label_links(post_labels(post.tags, "tag"), root)
    if post.categories:
        context["categories"] = label_links(post_labels(post.categories, "category"), root)
    return context


def build_post_cards(posts: Iterable[Post], root: str) -> str:
    cards = []
    for post in posts:
        url = f"{root}/{post.url}"
        cards.append(
            '<article class="post-card">'
            '<div class="post-meta">'
            f'<span class="post-date">{post.date}</span>'
            f'<span class="post-words">{post.words} words</span>'
            "</div>"
            f'<h2 class="post-title"><a href="{url}">{html.escape(post.title)}</a></h2>'
            f'<div class="post-excerpt">{fix_relative_img_src(post.excerpt, root)}</div>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def build_pagination(page: Page, root: str) -> str:
    if page.total <= 1:
        return ""

    def link(number: int) -> str:
        return f"{root}/{page_path(number).removesuffix('index.html')}"

    items = []
    if page.has_previous:
        items.append(f'<a class="page-link" href="{link(page.number - 1)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    numbers = []
    for num in range(1, page.total + 1):
        if num == page.number:
            numbers.append(f'<span class="page-number is-active">{num}</span>')
        else:
            numbers.append(f'<a class="page-number" href="{link(num)}">{num}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if page.has_next:
        items.append(f'<a class="page-link" href="{link(page.number + 1)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def render_post(registry: LayoutRegistry, post: Post, config: SiteConfig, build_time: dt.datetime) -> RenderedPage:
    return RenderedPage(post.path, registry.render("post", post_context(post, config, build_time)))


def render_listing(
    registry: LayoutRegistry,
    path: str,
    heading: str,
    posts: Iterable[Post],
    config: SiteConfig,
    build_time: dt.datetime,
    intro: str = "",
    page: Optional[Page] = None,
) -> RenderedPage:
    root = relative_root(path)
    context = site_context(config, build_time, root)
    context.update(
        {
            "page_title": html.escape(f"{heading} | {config.site_name}"),
            "heading": html.escape(heading),
            "posts": build_post_cards(posts, root),
            "meta_description": html.escape(config.site_description, quote=True),
        }
    )
    if intro:
        context["intro"] = f"<p>{html.escape(intro)}</p>"
    if page is not None:
        context["pagination"] = build_pagination(page, root)
    return RenderedPage(path, registry.render("listing", context))


def render_index_pages(
    registry: LayoutRegistry, index: SiteIndex, config: SiteConfig, build_time: dt.datetime
) -> list[RenderedPage]:
    rendered = []
    for page in index.pages:
        heading = "Latest posts" if page.number == 1 else f"Page {page.number}"
        rendered.append(
            render_listing(registry, page.path, heading, page.posts, config, build_time, page=page)
        )
    return rendered


def render_group_pages(
    registry: LayoutRegistry,
    groups: dict[str, Group],
    kind: str,
    config: SiteConfig,
    build_time: dt.datetime,
) -> list[RenderedPage]:
    path_for = tag_path if kind == "tag" else category_path
    rendered = []
    for group in groups.values():
        count = len(group.posts)
        intro = f"{count} post{'s' if count != 1 else ''} in this {kind}."
        rendered.append(
            render_listing(registry, path_for(group), group.label, group.posts, config, build_time, intro=intro)
        )
    return rendered


def build_rss(index: SiteIndex, config: SiteConfig, build_time: dt.datetime) -> Optional[RenderedPage]:
    if not config.site_url:
        return None
    site_url = config.site_url.rstrip("/")
    items = []
    for post in index.feed[: config.feed_limit]:
        link = join_url(site_url, post.url)
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(post.title)}</title>",
                    f"<link>{link}</link>",
                    f"<guid>{link}</guid>",
                    f"<pubDate>{rfc822_date(post.published_at)}</pubDate>",
                    f"<description>{html.escape(summary_text(post))}</description>",
                    "</item>",
                ]
            )
        )
    last_build = rfc822_date(index.feed[0].published_at) if index.feed else rfc822_date(build_time)
    rss = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{html.escape(config.site_name)}</title>",
            f"<link>{site_url}/</link>",
            f"<description>{html.escape(config.site_description)}</description>",
            f"<lastBuildDate>{last_build}</lastBuildDate>",
            "\n".join(items),
            "</channel>",
            "</rss>",
        ]
    )
    return RenderedPage("rss.xml", rss)


def build_sitemap(index: SiteIndex, config: SiteConfig) -> Optional[RenderedPage]:
    if not config.site_url:
        return None
    site_url = config.site_url.rstrip("/")
    urls: list[tuple[str, Optional[dt.datetime]]] = []
    for page in index.pages:
        urls.append((f"{site_url}/{page.path.removesuffix('index.html')}", None))
    for post in index.feed:
        urls.append((join_url(site_url, post.url), post.published_at))
    for group in index.tags.values():
        urls.append((join_url(site_url, f"tag/{group.slug}/"), None))
    for group in index.categories.values():
        urls.append((join_url(site_url, f"category/{group.slug}/"), None))
    items = []
    for url, lastmod in urls:
        lines = ["<url>", f"<loc>{url}</loc>"]
        if lastmod:
            lines.append(f"<lastmod>{lastmod.date().isoformat()}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )
    return RenderedPage("sitemap.xml", sitemap)
