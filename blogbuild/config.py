from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

try:
    import tomllib as toml
except ImportError:  # Python < 3.11
    import tomli as toml

from .errors import ConfigError
from .posts import DEFAULT_EXCERPT_LENGTH, DEFAULT_EXCERPT_MARKER, DEFAULT_PERMALINK
from .utils import parse_bool, parse_int

FEED_LIMIT = 20
PAGE_SIZE = 10
MAX_WORKERS = 32


@dataclass(frozen=True)
class SiteConfig:
    posts_dir: Path = Path("posts")
    output_dir: Path = Path("dist")
    layouts_dir: Optional[Path] = None
    site_name: str = "Notes"
    site_description: str = "A personal blog."
    site_url: str = ""
    page_size: int = PAGE_SIZE
    excerpt_length: int = DEFAULT_EXCERPT_LENGTH
    excerpt_marker: str = DEFAULT_EXCERPT_MARKER
    permalink: str = DEFAULT_PERMALINK
    workers: int = 0
    toc_depth: str = "2-4"
    enable_rss: bool = True
    feed_limit: int = FEED_LIMIT
    enable_sitemap: bool = True

    @classmethod
    def from_mapping(cls, data: dict) -> "SiteConfig":
        """Build a config from loosely typed values (config file or CLI)."""
        known = {item.name: item for item in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        values = {}
        for name, value in data.items():
            if value is None:
                continue
            default = known[name].default
            if name == "layouts_dir" or isinstance(default, Path):
                values[name] = Path(value)
            elif isinstance(default, bool):
                values[name] = parse_bool(value)
            elif isinstance(default, int):
                values[name] = parse_int(value, default)
            else:
                values[name] = str(value)
        return cls(**values)

    @property
    def worker_count(self) -> int:
        workers = self.workers
        if workers <= 0:
            workers = os.cpu_count() or 1
        return max(1, min(workers, MAX_WORKERS))

    def post_options(self) -> dict:
        return {
            "permalink": self.permalink,
            "excerpt_length": self.excerpt_length,
            "excerpt_marker": self.excerpt_marker,
            "toc_depth": self.toc_depth,
        }


def load_config(path: Path) -> dict:
    """Read a TOML, YAML or JSON config file; a missing file means defaults."""
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config must be a mapping: {path}")
    return data
