from __future__ import annotations


class BuildError(Exception):
    """Base class for every failure that aborts a site build."""

    def __init__(self, message: str, source: str = "") -> None:
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ConfigError(BuildError):
    pass


class MalformedDocument(BuildError):
    pass


class MissingRequiredField(BuildError):
    def __init__(self, field: str, source: str = "") -> None:
        self.field = field
        super().__init__(f"missing required field '{field}'", source)


class InvalidDate(BuildError):
    def __init__(self, value: str, source: str = "") -> None:
        self.value = value
        super().__init__(f"invalid date {value!r}", source)


class DuplicateSlug(BuildError):
    def __init__(self, slug: str, source: str = "", other_source: str = "") -> None:
        self.slug = slug
        self.other_source = other_source
        message = f"slug '{slug}' already used"
        if other_source:
            message += f" by {other_source}"
        super().__init__(message, source)


class UnknownLayout(BuildError):
    def __init__(self, layout: str) -> None:
        self.layout = layout
        super().__init__(f"no layout named '{layout}'")


class MissingContextField(BuildError):
    def __init__(self, field: str, layout: str) -> None:
        self.field = field
        self.layout = layout
        super().__init__(f"layout '{layout}' needs field '{field}'", f"layout:{layout}")


class PathCollision(BuildError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"two pages render to '{path}'")
