"""Aggregate published pages into menus and category listings."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from front_matter import Page


@dataclass(frozen=True)
class MenuEntry:
    menu: str
    weight: int
    slug: str
    title: str
    icon: Optional[str] = None
    page: Optional[Page] = field(default=None, compare=False, repr=False)

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.weight, self.slug)


@dataclass(frozen=True)
class SiteIndex:
    menus: Dict[str, Tuple[MenuEntry, ...]] = field(default_factory=dict)
    categories: Dict[str, Tuple[Page, ...]] = field(default_factory=dict)
    published: Tuple[Page, ...] = ()


def newest_first(pages: Iterable[Page]) -> List[Page]:
    """Dated pages newest first, then undated pages; ties broken by slug."""
    def key(page: Page) -> Tuple[int, float, str]:
        stamp: Optional[datetime] = page.sort_date
        if stamp is None:
            return (1, 0.0, page.slug)
        return (0, -(stamp - datetime.min).total_seconds(), page.slug)

    return sorted(pages, key=key)


def build_site_index(pages: Iterable[Page]) -> SiteIndex:
    """Build menus and category listings from published pages.

    Draft pages are skipped even when passed in, so a draft never reaches a
    menu or a category. Menu entries sort by ascending weight, then slug;
    category labels and the pages under each label sort alphabetically.
    """
    published = [page for page in pages if not page.draft]

    menus: Dict[str, List[MenuEntry]] = defaultdict(list)
    categories: Dict[str, Dict[str, Page]] = defaultdict(dict)

    for page in published:
        for placement in page.menus:
            menus[placement.menu].append(
                MenuEntry(
                    menu=placement.menu,
                    weight=placement.weight,
                    slug=page.slug,
                    title=page.title,
                    icon=placement.icon,
                    page=page,
                )
            )
        for label in page.categories:
            categories[label][page.slug] = page

    return SiteIndex(
        menus={
            name: tuple(sorted(entries, key=lambda entry: entry.sort_key))
            for name, entries in sorted(menus.items())
        },
        categories={
            label: tuple(by_slug[slug] for slug in sorted(by_slug))
            for label, by_slug in sorted(categories.items())
        },
        published=tuple(newest_first(published)),
    )
