import datetime as dt
from pathlib import Path

import pytest

from blogbuild.content import parse_document
from blogbuild.posts import Post

BUILD_TIME = dt.datetime(2024, 6, 1, 12, 0, 0)


def make_post(title, published_at, slug=None, tags=(), categories=(), body=None, excerpt=None, **extra):
    return Post(
        title=title,
        published_at=published_at,
        slug=slug or title.lower().replace(" ", "-"),
        body=body or f"<p>{title}</p>",
        excerpt=excerpt or f"<p>{title}</p>",
        tags=frozenset(tags),
        categories=frozenset(categories),
        **extra,
    )


def document_text(body="Hello there.", **meta):
    lines = ["---"]
    for key, value in meta.items():
        if isinstance(value, list):
            lines.append(f"{key}: [{', '.join(value)}]")
        else:
            lines.append(f"{key}: {value}")
    lines.append("---")
    lines.append(body)
    return "\n".join(lines) + "\n"


def make_document(body="Hello there.", source="posts/test.md", **meta):
    return parse_document(document_text(body, **meta), source)


@pytest.fixture
def write_post(tmp_path):
    posts_dir = tmp_path / "posts"
    posts_dir.mkdir(exist_ok=True)

    def _write(name, body="Hello there.", **meta) -> Path:
        path = posts_dir / name
        path.write_text(document_text(body, **meta), encoding="utf-8")
        return path

    return _write
