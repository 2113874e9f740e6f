from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Iterator, Optional

import markdown

from .content import Document, count_words, slugify
from .errors import DuplicateSlug, InvalidDate
from .render import strip_tags
from .utils import parse_bool

DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d",
)
DATE_OUTPUT_FMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_PERMALINK = "/:year/:month/:day/:title/"
DEFAULT_EXCERPT_LENGTH = 200
DEFAULT_EXCERPT_MARKER = "<!--more-->"
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "codehilite"]
VOID_TAGS = {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr"}
TOKEN_RE = re.compile(r"(<[^>]*>)")
TAG_NAME_RE = re.compile(r"^</?\s*([A-Za-z][A-Za-z0-9-]*)")
PERMALINK_TOKEN_RE = re.compile(r":(year|month|day|title)")


@dataclass(frozen=True)
class Post:
    title: str
    published_at: dt.datetime
    slug: str
    body: str
    excerpt: str
    tags: frozenset = frozenset()
    categories: frozenset = frozenset()
    hero_image: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    words: int = 0
    draft: bool = False
    source: str = ""

    @property
    def path(self) -> str:
        return f"{self.slug}/index.html"

    @property
    def url(self) -> str:
        return f"{self.slug}/"

    @property
    def date(self) -> str:
        return self.published_at.strftime("%Y-%m-%d")

    def front_matter(self) -> dict:
        return {
            "title": self.title,
            "date": self.published_at.strftime(DATE_OUTPUT_FMT),
            "tags": sorted(self.tags),
            "categories": sorted(self.categories),
            "image": self.hero_image,
            "description": self.description,
            "summary": self.summary,
        }


class PostCollection:
    """Posts of one build, keyed by slug.

    This is where slug uniqueness is enforced: building a post is independent
    per document, so collisions can only be seen once posts are gathered.
    """

    def __init__(self, posts=()) -> None:
        self._posts: dict[str, Post] = {}
        for post in posts:
            self.add(post)

    def add(self, post: Post) -> None:
        existing = self._posts.get(post.slug)
        if existing is not None:
            raise DuplicateSlug(post.slug, post.source, existing.source)
        self._posts[post.slug] = post

    def __contains__(self, slug: object) -> bool:
        return slug in self._posts

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts.values())

    def __len__(self) -> int:
        return len(self._posts)


def parse_published(value: str, source: str = "") -> dt.datetime:
    """Parse a front matter date into a naive UTC datetime."""
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            parsed = dt.datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return parsed
    raise InvalidDate(value, source)


def format_permalink(pattern: str, published_at: dt.datetime, title_slug: str) -> str:
    values = {
        "year": f"{published_at.year:04d}",
        "month": f"{published_at.month:02d}",
        "day": f"{published_at.day:02d}",
        "title": title_slug,
    }
    path = PERMALINK_TOKEN_RE.sub(lambda m: values[m.group(1)], pattern)
    parts = [part for part in path.split("/") if part]
    return "/".join(parts)


def split_excerpt(body: str, marker: str) -> tuple[Optional[str], str]:
    if not marker or marker not in body:
        return None, body
    head, _, _ = body.partition(marker)
    return head, body.replace(marker, "", 1)


def render_markdown(text: str, toc_depth: str = "2-4") -> str:
    md = markdown.Markdown(
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs={
            "toc": {"toc_depth": toc_depth},
            "codehilite": {"guess_lang": False},
        },
    )
    return md.convert(text)


def _closing(stack: list[str]) -> str:
    return "".join(f"</{name}>" for name in reversed(stack))


def _cut_words(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    if text[limit].isspace():
        return text[:limit].rstrip()
    head = text[:limit]
    cut = max(head.rfind(" "), head.rfind("\n"), head.rfind("\t"))
    if cut < 0:
        return ""
    return head[:cut].rstrip()


def _drop_partial_word(out: list[str]) -> None:
    # A word can run across inline tags ("un<strong>believable</strong>"),
    # so trim kept text back to the last whitespace before the cut.
    for i in range(len(out) - 1, -1, -1):
        text = out[i]
        if text.startswith("<"):
            continue
        if text[-1:].isspace():
            return
        cut = max(text.rfind(" "), text.rfind("\n"), text.rfind("\t"))
        if cut >= 0:
            out[i] = text[:cut]
            return
        out[i] = ""


def truncate_markup(markup: str, limit: int) -> str:
    """Cut rendered markup to at most ``limit`` characters.

    The result is a prefix of ``markup`` that ends on a word boundary, never
    inside a tag, with every element left open closed again. The closing tags
    count toward ``limit``.
    """
    if len(markup) <= limit:
        return markup
    out: list[str] = []
    stack: list[str] = []
    used = 0
    tokens = TOKEN_RE.split(markup)
    stop = None
    for i, token in enumerate(tokens):
        if not token:
            continue
        if token.startswith("<"):
            match = TAG_NAME_RE.match(token)
            if token.startswith("<!--") or match is None:
                continue
            name = match.group(1).lower()
            if token.startswith("</"):
                if stack and stack[-1] == name:
                    stack.pop()
                    used += len(token)
                    out.append(token)
                continue
            opens = name not in VOID_TAGS and not token.endswith("/>")
            extra = len(f"</{name}>") if opens else 0
            if used + len(token) + extra + len(_closing(stack)) > limit:
                stop = i
                break
            out.append(token)
            used += len(token)
            if opens:
                stack.append(name)
            continue
        available = limit - used - len(_closing(stack))
        if len(token) <= available:
            out.append(token)
            used += len(token)
            continue
        piece = _cut_words(token, available)
        if piece:
            out.append(piece)
        else:
            stop = i
        break
    if stop is not None:
        rest = strip_tags("".join(tokens[stop:]))
        if rest and not rest[0].isspace():
            _drop_partial_word(out)
    return ("".join(out) + _closing(stack)).strip()


def build_post(
    document: Document,
    *,
    permalink: str = DEFAULT_PERMALINK,
    excerpt_length: int = DEFAULT_EXCERPT_LENGTH,
    excerpt_marker: str = DEFAULT_EXCERPT_MARKER,
    toc_depth: str = "2-4",
) -> Post:
    meta = document.metadata
    source = document.source
    title = meta["title"]
    published_at = parse_published(meta["date"], source)
    explicit_slug = (meta.get("slug") or "").strip()
    title_slug = slugify(explicit_slug or title)
    slug = format_permalink(permalink, published_at, title_slug)

    excerpt_text, body_text = split_excerpt(document.body, excerpt_marker)
    body = render_markdown(body_text, toc_depth)
    if excerpt_text is not None:
        excerpt = render_markdown(excerpt_text, toc_depth)
    else:
        excerpt = truncate_markup(body, excerpt_length)

    return Post(
        title=title,
        published_at=published_at,
        slug=slug,
        body=body,
        excerpt=excerpt,
        tags=frozenset(meta.get("tags") or ()),
        categories=frozenset(meta.get("categories") or ()),
        hero_image=meta.get("image") or None,
        description=meta.get("description") or None,
        summary=meta.get("summary") or None,
        words=count_words(strip_tags(body)),
        draft=parse_bool(meta.get("draft")),
        source=source,
    )
