from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import MissingContextField, UnknownLayout

IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
LAYOUTS_DIR = Path(__file__).parent / "layouts"

# Optional fields every layout may reference; anything else must be supplied.
COMMON_DEFAULTS = {
    "meta_description": "",
    "extra_head": "",
}
LAYOUT_DEFAULTS = {
    "post": {
        "hero": "",
        "description": "",
        "tags": "",
        "categories": "",
    },
    "listing": {
        "intro": "",
        "pagination": "",
    },
}


@dataclass(frozen=True)
class RenderedPage:
    path: str
    markup: str


@dataclass(frozen=True)
class Layout:
    name: str
    template: str
    defaults: dict = field(default_factory=dict)

    @property
    def fields(self) -> set[str]:
        return set(PLACEHOLDER_RE.findall(self.template))

    @property
    def required_fields(self) -> set[str]:
        return self.fields - set(self.defaults)


class LayoutRegistry:
    """Named page templates using ``{{field}}`` placeholders.

    A context supplies every field a layout references. Fields with a
    registered default may be omitted; any other missing field is an error.
    """

    def __init__(self) -> None:
        self._layouts: dict[str, Layout] = {}

    @classmethod
    def from_directory(cls, path: Optional[Path] = None) -> "LayoutRegistry":
        registry = cls()
        path = LAYOUTS_DIR if path is None else Path(path)
        for template_path in sorted(path.glob("*.html")):
            registry.register(template_path.stem, read_template(template_path))
        return registry

    def register(self, name: str, template: str, defaults: Optional[dict] = None) -> Layout:
        if defaults is None:
            defaults = {**COMMON_DEFAULTS, **LAYOUT_DEFAULTS.get(name, {})}
        layout = Layout(name=name, template=template, defaults=dict(defaults))
        self._layouts[name] = layout
        return layout

    def get(self, name: str) -> Layout:
        try:
            return self._layouts[name]
        except KeyError:
            raise UnknownLayout(name) from None

    def names(self) -> list[str]:
        return sorted(self._layouts)

    def __contains__(self, name: object) -> bool:
        return name in self._layouts

    def render(self, name: str, context: Mapping[str, object]) -> str:
        layout = self.get(name)
        return render_template(layout.template, context, layout.defaults, layout.name)


def render_template(
    template: str,
    context: Mapping[str, object],
    defaults: Optional[Mapping[str, object]] = None,
    layout_name: str = "<inline>",
) -> str:
    defaults = defaults or {}

    def repl(match: re.Match) -> str:
        key = match.group(1)
        if key in context:
            return str(context[key])
        if key in defaults:
            return str(defaults[key])
        raise MissingContextField(key, layout_name)

    # Single pass, so placeholders inside substituted values are never expanded.
    return PLACEHOLDER_RE.sub(repl, template)


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
