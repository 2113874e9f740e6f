from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .content import slug_text
from .posts import Post


@dataclass(frozen=True)
class Group:
    """Posts sharing one tag or category, newest first."""

    slug: str
    label: str
    posts: tuple


@dataclass(frozen=True)
class Page:
    number: int
    total: int
    posts: tuple

    @property
    def path(self) -> str:
        return page_path(self.number)

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total


@dataclass(frozen=True)
class SiteIndex:
    feed: tuple
    tags: dict
    categories: dict
    pages: tuple


def page_path(number: int) -> str:
    if number == 1:
        return "index.html"
    return f"page/{number}/index.html"


def sort_feed(posts: Iterable[Post]) -> list[Post]:
    """Newest first; posts published at the same moment are ordered by slug."""
    ordered = sorted(posts, key=lambda post: post.slug)
    ordered.sort(key=lambda post: post.published_at, reverse=True)
    return ordered


def normalize_label(label: str) -> str:
    return slug_text(" ".join(label.split()))


def group_by(feed: list[Post], labels: Callable[[Post], Iterable[str]]) -> dict[str, Group]:
    """Bucket an already sorted feed by normalized label.

    Labels that normalize to the same key merge into one group whatever their
    spelling. The group keeps the lexically smallest spelling seen as its
    display label so the result does not depend on input order. Labels with
    no letters or digits have no key and are skipped.
    """
    members: dict[str, list[Post]] = {}
    spellings: dict[str, set[str]] = {}
    for post in feed:
        seen: set[str] = set()
        for label in labels(post):
            label = " ".join(label.split())
            key = normalize_label(label)
            if not key:
                continue
            spellings.setdefault(key, set()).add(label)
            if key in seen:
                continue
            seen.add(key)
            members.setdefault(key, []).append(post)
    return {
        key: Group(slug=key, label=min(spellings[key]), posts=tuple(members[key]))
        for key in sorted(members)
    }


def paginate(feed: list[Post], page_size: Optional[int]) -> list[Page]:
    """Split the feed into pages of ``page_size`` posts; the last may be short.

    A missing or non-positive ``page_size`` puts every post on one page. An
    empty feed still yields one (empty) page so the site has a front page.
    """
    if not page_size or page_size <= 0:
        page_size = max(1, len(feed))
    total = max(1, math.ceil(len(feed) / page_size))
    return [
        Page(number=number, total=total, posts=tuple(feed[(number - 1) * page_size : number * page_size]))
        for number in range(1, total + 1)
    ]


def build_index(posts: Iterable[Post], page_size: Optional[int] = None) -> SiteIndex:
    feed = sort_feed(posts)
    return SiteIndex(
        feed=tuple(feed),
        tags=group_by(feed, lambda post: post.tags),
        categories=group_by(feed, lambda post: post.categories),
        pages=tuple(paginate(feed, page_size)),
    )
