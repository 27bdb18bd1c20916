"""Error kinds raised while turning content files into site pages."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path, None]


def _describe(path: PathLike) -> str:
    return str(path) if path else "<string>"


class ContentError(Exception):
    """Base class for problems a human has to fix in a content file.

    Subclasses pass every constructor argument through to ``Exception`` so
    instances survive pickling when raised inside a worker process.
    """

    path: PathLike = None


class MalformedMetadata(ContentError):
    def __init__(self, path: PathLike, reason: str) -> None:
        super().__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self) -> str:
        return f"{_describe(self.path)}: malformed front matter: {self.reason}"


class RenderError(ContentError):
    """A span of markdown that cannot be safely interpreted.

    The renderer catches these itself and falls back to literal text.
    """

    def __init__(self, reason: str, span: str = "") -> None:
        super().__init__(reason, span)
        self.reason = reason
        self.span = span

    def __str__(self) -> str:
        if self.span:
            return f"{self.reason}: {self.span!r}"
        return self.reason


class UnknownLayout(ContentError):
    def __init__(self, path: PathLike, layout: str) -> None:
        super().__init__(path, layout)
        self.path = path
        self.layout = layout

    def __str__(self) -> str:
        return f"{_describe(self.path)}: unknown layout '{self.layout}'"


class DuplicateSlug(ContentError):
    def __init__(self, path: PathLike, slug: str, first_path: PathLike) -> None:
        super().__init__(path, slug, first_path)
        self.path = path
        self.slug = slug
        self.first_path = first_path

    def __str__(self) -> str:
        return (
            f"{_describe(self.path)}: slug '{self.slug}' is already used by "
            f"{_describe(self.first_path)}"
        )


class ReservedSlug(ContentError):
    def __init__(self, path: PathLike, slug: str) -> None:
        super().__init__(path, slug)
        self.path = path
        self.slug = slug

    def __str__(self) -> str:
        return f"{_describe(self.path)}: slug '{self.slug}' is reserved for a generated listing"


class BrokenLayout(ContentError):
    def __init__(self, path: PathLike, layout: str, reason: str) -> None:
        super().__init__(path, layout, reason)
        self.path = path
        self.layout = layout
        self.reason = reason

    def __str__(self) -> str:
        return f"{_describe(self.path)}: layout '{self.layout}' cannot be loaded: {self.reason}"


class CategoryClash(ContentError):
    """Two category labels that would be written to the same listing file."""

    def __init__(self, path: PathLike, label: str, first_label: str) -> None:
        super().__init__(path, label, first_label)
        self.path = path
        self.label = label
        self.first_label = first_label

    def __str__(self) -> str:
        return (
            f"{_describe(self.path)}: category '{self.label}' has the same listing "
            f"file as category '{self.first_label}'"
        )


class SiteConfigError(ValueError):
    def __init__(self, path: PathLike, reason: str) -> None:
        super().__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self) -> str:
        return f"{_describe(self.path)}: invalid site config: {self.reason}"


def describe_path(path: Optional[PathLike]) -> str:
    return _describe(path)
