"""Tests for building posts from parsed documents."""

import datetime as dt
import re

import pytest

from blogbuild.errors import DuplicateSlug, InvalidDate
from blogbuild.posts import (
    PostCollection,
    build_post,
    format_permalink,
    parse_published,
    split_excerpt,
    truncate_markup,
)
from blogbuild.render import strip_tags

from .conftest import make_document, make_post


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-01-02", dt.datetime(2024, 1, 2)),
        ("2024-01-02 10:15", dt.datetime(2024, 1, 2, 10, 15)),
        ("2024-01-02 10:15:30", dt.datetime(2024, 1, 2, 10, 15, 30)),
        ("2024-01-02T10:15:30", dt.datetime(2024, 1, 2, 10, 15, 30)),
        ("2024-01-02 10:15:30 +0200", dt.datetime(2024, 1, 2, 8, 15, 30)),
        ("2024-01-02T10:15:30+00:00", dt.datetime(2024, 1, 2, 10, 15, 30)),
    ],
)
def test_parse_published_formats(value, expected):
    assert parse_published(value) == expected


@pytest.mark.parametrize("value", ["yesterday", "2024-13-01", "02/01/2024", "2024-01-02 25:00"])
def test_parse_published_rejects_unknown_values(value):
    with pytest.raises(InvalidDate) as excinfo:
        parse_published(value, "posts/x.md")

    assert excinfo.value.value == value
    assert "posts/x.md" in str(excinfo.value)


def test_build_post_rejects_bad_date():
    document = make_document(title="T", date="someday")

    with pytest.raises(InvalidDate):
        build_post(document)


def test_slug_is_date_prefixed_title():
    post = build_post(make_document(title="Hello, World!", date="2024-01-02"))

    assert post.slug == "2024/01/02/hello-world"
    assert post.path == "2024/01/02/hello-world/index.html"
    assert post.url == "2024/01/02/hello-world/"


def test_explicit_slug_replaces_title_part():
    post = build_post(make_document(title="Hello", date="2024-01-02", slug="Custom Name"))

    assert post.slug == "2024/01/02/custom-name"


@pytest.mark.parametrize(
    "pattern,expected",
    [
        ("/:year/:month/:day/:title/", "2023/07/04/party"),
        ("/blog/:title/", "blog/party"),
        (":year/:title", "2023/party"),
    ],
)
def test_format_permalink(pattern, expected):
    assert format_permalink(pattern, dt.datetime(2023, 7, 4, 20, 0), "party") == expected


def test_optional_fields_and_draft_flag():
    post = build_post(
        make_document(
            title="T",
            date="2024-01-02",
            image="hero.png",
            description="About things",
            tags=["a", "b"],
            draft="true",
        )
    )

    assert post.hero_image == "hero.png"
    assert post.description == "About things"
    assert post.tags == frozenset({"a", "b"})
    assert post.categories == frozenset()
    assert post.draft is True


def test_missing_optional_fields_are_none():
    post = build_post(make_document(title="T", date="2024-01-02"))

    assert post.hero_image is None
    assert post.description is None
    assert post.summary is None
    assert post.draft is False


def test_body_is_rendered_markdown_with_word_count():
    post = build_post(make_document(body="Some *emphasis* here.", title="T", date="2024-01-02"))

    assert post.body == "<p>Some <em>emphasis</em> here.</p>"
    assert post.words == 3


def test_excerpt_marker_splits_body():
    body = "Intro paragraph.\n\n<!--more-->\n\nThe rest of it."
    post = build_post(make_document(body=body, title="T", date="2024-01-02"))

    assert post.excerpt == "<p>Intro paragraph.</p>"
    assert "The rest of it." in post.body
    assert "<!--more-->" not in post.body


def test_custom_excerpt_marker():
    body = "First.\n\n[[cut]]\n\nSecond."
    post = build_post(make_document(body=body, title="T", date="2024-01-02"), excerpt_marker="[[cut]]")

    assert post.excerpt == "<p>First.</p>"


def test_split_excerpt_without_marker():
    assert split_excerpt("plain text", "<!--more-->") == (None, "plain text")


def test_default_excerpt_cuts_at_word_boundary():
    """A 500 character body with a 200 character cutoff and no marker."""
    text = ("alpha beta gamma delta epsilon " * 20)[:500]
    post = build_post(make_document(body=text, title="T", date="2024-01-02"), excerpt_length=200)

    assert len(post.excerpt) <= 200
    assert post.excerpt.startswith("<p>")
    assert post.excerpt.endswith("</p>")
    visible = strip_tags(post.excerpt)
    assert text.startswith(visible)
    assert text[len(visible)] == " "


def test_excerpt_is_whole_body_when_short():
    post = build_post(make_document(body="Short.", title="T", date="2024-01-02"), excerpt_length=200)

    assert post.excerpt == post.body


def test_truncate_markup_never_splits_tags():
    markup = '<p>one <a href="https://example.com/a/long/path">two three</a> four five six</p>'

    for limit in range(0, len(markup) + 1):
        result = truncate_markup(markup, limit)
        assert len(result) <= limit
        assert result.count("<") == result.count(">")
        assert result.count("<a ") == result.count("</a>")
        assert result.count("<p>") == result.count("</p>")


def test_truncate_markup_closes_open_elements():
    markup = "<p>one <strong>two three four</strong> five</p>"

    assert truncate_markup(markup, 31) == "<p>one <strong>two</strong></p>"


def test_truncate_markup_skips_void_elements():
    markup = '<p>one<br>two <img src="x.png"> three four five six seven</p>'

    result = truncate_markup(markup, 40)

    assert "</br>" not in result
    assert "</img>" not in result
    assert result.endswith("</p>")


def test_collection_rejects_duplicate_slugs():
    first = make_post("Same", dt.datetime(2024, 1, 1), slug="2024/01/01/same", source="posts/a.md")
    second = make_post("Same", dt.datetime(2024, 1, 1), slug="2024/01/01/same", source="posts/b.md")
    collection = PostCollection([first])

    with pytest.raises(DuplicateSlug) as excinfo:
        collection.add(second)

    assert excinfo.value.slug == "2024/01/01/same"
    assert excinfo.value.source == "posts/b.md"
    assert excinfo.value.other_source == "posts/a.md"
    assert len(collection) == 1


def test_identical_title_and_date_collide():
    a = build_post(make_document(title="Twice", date="2024-01-02", source="posts/a.md"))
    b = build_post(make_document(title="Twice", date="2024-01-02 18:00", source="posts/b.md"))

    with pytest.raises(DuplicateSlug):
        PostCollection([a, b])


def test_collection_iterates_in_insertion_order():
    posts = [make_post(f"P{i}", dt.datetime(2024, 1, i + 1)) for i in range(3)]

    assert list(PostCollection(posts)) == posts
    assert "p1" in PostCollection(posts)


def test_markup_tags_balanced_in_generated_excerpt():
    body = "Para with **bold words** and `code` " * 20
    post = build_post(make_document(body=body, title="T", date="2024-01-02"), excerpt_length=120)

    assert len(post.excerpt) <= 120
    for name in ("p", "strong", "code"):
        assert len(re.findall(f"<{name}>", post.excerpt)) == len(re.findall(f"</{name}>", post.excerpt))


def test_truncate_markup_does_not_keep_half_a_word_before_a_tag():
    markup = "<p>foo<strong>barbazqux</strong> more words</p>"

    result = truncate_markup(markup, 12)

    assert len(result) <= 12
    assert strip_tags(result) == ""


def test_truncate_markup_keeps_only_whole_words_across_tags():
    markup = "<p>one un<em>believable</em> two<b>three</b> four</p>"
    words = {"one", "unbelievable", "twothree", "four"}

    for limit in range(0, len(markup) + 1):
        result = truncate_markup(markup, limit)
        assert len(result) <= limit
        assert set(strip_tags(result).split()) <= words


def test_excerpt_does_not_end_inside_emphasized_word():
    body = "word " * 10 + "un**believable** rest " * 30
    document = make_document(body, "posts/emphasis.md", title="Emphasis", date="2024-01-01")

    post = build_post(document, excerpt_length=62)

    assert strip_tags(post.excerpt).split()[-1] == "word"
