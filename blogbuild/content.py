from __future__ import annotations

import html as html_lib
import re
from dataclasses import dataclass, field

import yaml

from .errors import MalformedDocument, MissingRequiredField

DELIMITER = "---"
REQUIRED_FIELDS = ("title", "date")
LIST_FIELDS = {"tags", "categories"}
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
NULL_TAG = "tag:yaml.org,2002:null"


class FrontMatterLoader(yaml.SafeLoader):
    """SafeLoader that keeps every plain scalar as the string written.

    Only null is still resolved. Titles such as `No` or tags such as `3.10`
    stay as typed, and dates reach the post builder unparsed.
    """


FrontMatterLoader.yaml_implicit_resolvers = {
    key: [(tag, regexp) for tag, regexp in resolvers if tag == NULL_TAG]
    for key, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass(frozen=True)
class Document:
    source: str
    metadata: dict = field(default_factory=dict)
    body: str = ""


def slug_text(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[\W_]+", "-", text, flags=re.UNICODE)
    return text.strip("-")


def slugify(text: str) -> str:
    return slug_text(text) or "post"


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def _scalar(key: str, value: object, source: str) -> str:
    if isinstance(value, (dict, list)):
        raise MalformedDocument(f"field '{key}' must be a plain value", source)
    return str(value).strip()


def _normalize(key: str, value: object, source: str) -> str | list[str]:
    if key in LIST_FIELDS:
        if value is None:
            return []
        if isinstance(value, list):
            items = [_scalar(key, item, source) for item in value if item is not None]
            items = [item for item in items if item]
        else:
            items = parse_list(_scalar(key, value, source))
        for item in items:
            if not slug_text(item):
                raise MalformedDocument(f"{key} label {item!r} has no letters or digits", source)
        return items
    if value is None:
        return ""
    return _scalar(key, value, source)


def split_front_matter(text: str, source: str = "") -> tuple[str, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != DELIMITER:
        raise MalformedDocument("front matter delimiter '---' not found on first line", source)
    for i in range(1, len(lines)):
        if lines[i].strip() == DELIMITER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :])
    raise MalformedDocument("front matter block is not terminated", source)


def parse_document(text: str, source: str = "<string>") -> Document:
    """Split raw text into its front matter mapping and markdown body.

    Keys are lower-cased. ``tags`` and ``categories`` accept a YAML list
    (inline or one item per line) or a comma separated string and always come
    back as a list of strings; every other value comes back as a string.
    """
    block, body = split_front_matter(text, source)
    try:
        data = yaml.load(block, Loader=FrontMatterLoader)
    except yaml.YAMLError as exc:
        raise MalformedDocument(f"front matter is not valid YAML ({exc})", source) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedDocument("front matter must be a key-value mapping", source)

    meta: dict = {}
    for key, value in data.items():
        key = str(key).strip().lower()
        meta[key] = _normalize(key, value, source)
    for name in REQUIRED_FIELDS:
        if not meta.get(name):
            raise MissingRequiredField(name, source)
    return Document(source=source, metadata=meta, body=body.lstrip("\n"))


def dump_front_matter(meta: dict) -> str:
    data = {}
    for key, value in meta.items():
        if not value:
            continue
        data[key] = sorted(value) if isinstance(value, (set, frozenset)) else value
    block = yaml.safe_dump(data, allow_unicode=True, sort_keys=False, default_flow_style=False)
    return f"{DELIMITER}\n{block}{DELIMITER}\n"


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count
