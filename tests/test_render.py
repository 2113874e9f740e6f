"""Tests for layout rendering."""

import datetime as dt

import pytest

from blogbuild.config import SiteConfig
from blogbuild.errors import MissingContextField, UnknownLayout
from blogbuild.pages import post_context, render_post
from blogbuild.render import LayoutRegistry, fix_relative_img_src, render_template

from .conftest import BUILD_TIME, make_post


@pytest.fixture
def registry():
    return LayoutRegistry.from_directory()


def test_builtin_layouts_are_registered(registry):
    assert registry.names() == ["listing", "post"]
    assert "post" in registry


def test_unknown_layout(registry):
    with pytest.raises(UnknownLayout) as excinfo:
        registry.render("gallery", {})

    assert excinfo.value.layout == "gallery"


def test_missing_required_field_fails():
    registry = LayoutRegistry()
    registry.register("card", "<h1>{{title}}</h1>{{subtitle}}", defaults={"subtitle": ""})

    with pytest.raises(MissingContextField) as excinfo:
        registry.render("card", {"subtitle": "x"})

    assert excinfo.value.field == "title"
    assert excinfo.value.layout == "card"


def test_optional_field_uses_default():
    registry = LayoutRegistry()
    registry.register("card", "<h1>{{ title }}</h1>{{subtitle}}", defaults={"subtitle": "<p>none</p>"})

    assert registry.render("card", {"title": "Hi"}) == "<h1>Hi</h1><p>none</p>"
    assert registry.get("card").required_fields == {"title"}


def test_substituted_values_are_not_expanded_again():
    output = render_template("{{body}}|{{title}}", {"body": "{{title}}", "title": "T"})

    assert output == "{{title}}|T"


def test_post_layout_without_hero_image(registry):
    post = make_post("No image", dt.datetime(2024, 1, 1), slug="2024/01/01/no-image")

    markup = registry.render("post", post_context(post, SiteConfig(), BUILD_TIME))

    assert "post-hero" not in markup
    assert "<h1 class=\"post-title\">No image</h1>" in markup


def test_post_layout_with_hero_image(registry):
    post = make_post("Pic", dt.datetime(2024, 1, 1), slug="2024/01/01/pic", hero_image="img/pic.png")

    markup = registry.render("post", post_context(post, SiteConfig(), BUILD_TIME))

    assert 'src="../../../../img/pic.png"' in markup


def test_rendering_is_deterministic(registry):
    post = make_post(
        "Same",
        dt.datetime(2024, 1, 1),
        slug="2024/01/01/same",
        tags=["b", "A", "c"],
        categories=["x", "Y"],
    )
    config = SiteConfig(site_name="Blog")

    first = render_post(registry, post, config, BUILD_TIME)
    second = render_post(registry, post, config, BUILD_TIME)

    assert first == second
    assert first.path == "2024/01/01/same/index.html"


def test_build_time_is_explicit(registry):
    post = make_post("Year", dt.datetime(2020, 1, 1), slug="2020/01/01/year")

    markup = render_post(registry, post, SiteConfig(), dt.datetime(1999, 12, 31)).markup

    assert "&copy; 1999" in markup


def test_layouts_from_directory(tmp_path):
    (tmp_path / "post.html").write_text("<b>{{title}}</b>", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    registry = LayoutRegistry.from_directory(tmp_path)

    assert registry.names() == ["post"]
    with pytest.raises(UnknownLayout):
        registry.get("listing")


def test_fix_relative_img_src():
    html = '<img alt="a" src="pic.png"><img src="https://x/y.png"><img src="/abs.png">'

    fixed = fix_relative_img_src(html, "../..")

    assert '<img alt="a" src="../../pic.png">' in fixed
    assert 'src="https://x/y.png"' in fixed
    assert 'src="/abs.png"' in fixed
