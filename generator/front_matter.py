"""Parse YAML front matter from content files into Page records."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date as date_type, datetime, time, timezone
from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml

from content_errors import MalformedMetadata

FRONT_MATTER_DELIMITER = "---"

KNOWN_KEYS = frozenset(
    {"title", "layout", "slug", "date", "draft", "comments", "categories", "menu"}
)

TITLE_HEADING_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")
FENCE_RE = re.compile(r"^(```|~~~)")


@dataclass(frozen=True)
class FrontMatter:
    """Parsed front matter mapping plus the markdown body that follows it."""

    metadata: dict = field(default_factory=dict)
    body: str = ""


@dataclass(frozen=True)
class MenuPlacement:
    menu: str
    weight: int = 0
    icon: Optional[str] = None


@dataclass(frozen=True)
class Page:
    """One content file, built once per site build and never mutated.

    ``params`` keeps front matter keys this generator does not interpret so
    layouts can still reach them; ``metadata`` is the full mapping as read.
    """

    slug: str
    title: str
    layout: Optional[str] = None
    date: Optional[datetime] = None
    draft: bool = False
    comments: bool = True
    categories: Tuple[str, ...] = ()
    menus: Tuple[MenuPlacement, ...] = ()
    body: str = ""
    source_path: Optional[Path] = None
    params: dict = field(default_factory=dict, compare=False)
    metadata: dict = field(default_factory=dict, compare=False)

    @property
    def output_name(self) -> str:
        return f"{self.slug}.html"

    @property
    def sort_date(self) -> Optional[datetime]:
        """Naive UTC view of ``date`` so aware and naive values compare."""
        if self.date is None or self.date.tzinfo is None:
            return self.date
        return self.date.astimezone(timezone.utc).replace(tzinfo=None)


def split_front_matter(raw: str, source: Optional[Path] = None) -> Tuple[Optional[str], str]:
    """Return ``(block, body)``; ``block`` is None when the file has no front matter."""
    raw = raw.removeprefix("\ufeff")
    lines = raw.splitlines(keepends=True)
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        return None, raw

    for idx in range(1, len(lines)):
        if lines[idx].strip() == FRONT_MATTER_DELIMITER:
            return "".join(lines[1:idx]), "".join(lines[idx + 1:])

    raise MalformedMetadata(source, f"front matter is not closed with '{FRONT_MATTER_DELIMITER}'")


def parse_front_matter(raw: str, source: Optional[Path] = None) -> FrontMatter:
    block, body = split_front_matter(raw, source)
    if block is None:
        return FrontMatter(metadata={}, body=body)

    try:
        metadata = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise MalformedMetadata(source, f"invalid YAML: {exc}") from exc

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise MalformedMetadata(
            source, f"expected a mapping of keys to values, got {type(metadata).__name__}"
        )
    return FrontMatter(metadata=metadata, body=body)


def dump_front_matter(metadata: dict, body: str = "") -> str:
    """Serialize metadata back into a delimited block followed by ``body``.

    Output of this function parses back to the same mapping and dumps to the
    same bytes again.
    """
    yaml_text = yaml.safe_dump(
        metadata,
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
    )
    return f"{FRONT_MATTER_DELIMITER}\n{yaml_text}{FRONT_MATTER_DELIMITER}\n{body}"


def sanitize_slug(raw_slug: Optional[str], fallback: str) -> str:
    candidate = (raw_slug or fallback).strip().lower()
    candidate = re.sub(r"[^a-z0-9-]+", "-", candidate).strip("-")
    if not candidate:
        raise ValueError("Slug cannot be empty")
    return candidate


def extract_title_heading(body: str) -> Optional[str]:
    in_fence = False
    for line in body.splitlines():
        stripped = line.strip()
        if FENCE_RE.match(stripped):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = TITLE_HEADING_RE.match(stripped)
        if match:
            return match.group(1)
    return None


def _expect_str(metadata: dict, key: str, source: Optional[Path]) -> Optional[str]:
    value = metadata.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedMetadata(source, f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _expect_bool(metadata: dict, key: str, default: bool, source: Optional[Path]) -> bool:
    value = metadata.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise MalformedMetadata(source, f"'{key}' must be true or false, got {value!r}")
    return value


def parse_date(value: Any, source: Optional[Path] = None) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date_type):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise MalformedMetadata(source, f"'date' is not an ISO-8601 timestamp: {value!r}") from exc
    raise MalformedMetadata(source, f"'date' must be a timestamp, got {type(value).__name__}")


def parse_categories(value: Any, source: Optional[Path] = None) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise MalformedMetadata(source, "'categories' must be a list of strings")
    categories: List[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise MalformedMetadata(source, f"category labels must be non-empty strings, got {item!r}")
        label = item.strip()
        if label not in categories:
            categories.append(label)
    return tuple(categories)


def parse_menu(value: Any, source: Optional[Path] = None) -> Tuple[MenuPlacement, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (MenuPlacement(menu=value),)
    if isinstance(value, list):
        if not all(isinstance(name, str) for name in value):
            raise MalformedMetadata(source, "'menu' list entries must be menu names")
        return tuple(MenuPlacement(menu=name) for name in value)
    if not isinstance(value, dict):
        raise MalformedMetadata(source, "'menu' must be a menu name, a list of names or a mapping")

    placements: List[MenuPlacement] = []
    for name, options in value.items():
        if not isinstance(name, str):
            raise MalformedMetadata(source, f"menu names must be strings, got {name!r}")
        options = options or {}
        if not isinstance(options, dict):
            raise MalformedMetadata(source, f"menu '{name}' must map to weight/icon settings")
        weight = options.get("weight", 0)
        # bool is an int subclass; `weight: true` is a typo, not a weight
        if isinstance(weight, bool) or not isinstance(weight, int):
            raise MalformedMetadata(source, f"menu '{name}' weight must be an integer, got {weight!r}")
        icon = options.get("icon")
        if icon is not None and not isinstance(icon, str):
            raise MalformedMetadata(source, f"menu '{name}' icon must be a string, got {icon!r}")
        placements.append(MenuPlacement(menu=name, weight=weight, icon=icon))
    return tuple(placements)


def build_page(front: FrontMatter, source_path: Optional[Path] = None, fallback_slug: str = "") -> Page:
    metadata = front.metadata
    if source_path is not None and not fallback_slug:
        fallback_slug = Path(source_path).stem

    raw_slug = metadata.get("slug")
    if raw_slug is not None and not isinstance(raw_slug, (str, int)):
        raise MalformedMetadata(source_path, f"'slug' must be a string, got {type(raw_slug).__name__}")
    try:
        slug = sanitize_slug(str(raw_slug) if raw_slug is not None else None, fallback_slug)
    except ValueError as exc:
        raise MalformedMetadata(source_path, str(exc)) from exc

    title = _expect_str(metadata, "title", source_path)
    if not title or not title.strip():
        title = extract_title_heading(front.body) or slug

    return Page(
        slug=slug,
        title=title.strip(),
        layout=_expect_str(metadata, "layout", source_path),
        date=parse_date(metadata.get("date"), source_path),
        draft=_expect_bool(metadata, "draft", False, source_path),
        comments=_expect_bool(metadata, "comments", True, source_path),
        categories=parse_categories(metadata.get("categories"), source_path),
        menus=parse_menu(metadata.get("menu"), source_path),
        body=front.body,
        source_path=source_path,
        params={key: value for key, value in metadata.items() if key not in KNOWN_KEYS},
        metadata=dict(metadata),
    )


def parse_page(raw: str, source_path: Optional[Path] = None) -> Page:
    return build_page(parse_front_matter(raw, source_path), source_path)


def load_page(path: Path) -> Page:
    raw = Path(path).read_text(encoding="utf-8")
    return parse_page(raw, Path(path))
