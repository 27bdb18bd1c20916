"""Compose page metadata and rendered markdown through named layouts."""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup

from content_errors import UnknownLayout
from default_layouts import DEFAULT_LAYOUTS
from front_matter import Page, sanitize_slug
from render_markdown import RenderedBody
from site_config import SiteConfig
from site_index import SiteIndex

logger = logging.getLogger(__name__)

DRAFTS_DIR = "_drafts"


@dataclass(frozen=True)
class AssembledPage:
    page: Page
    html: str
    output_name: str
    published: bool


def category_slug(label: str) -> str:
    """File-name slug for a category label.

    Labels with no ASCII letters or digits (``日本語``, ``++``) get a short
    digest of the label so each one still has its own listing file.
    """
    if re.search(r"[A-Za-z0-9]", label):
        return sanitize_slug(label, "category")
    digest = hashlib.sha1(label.encode("utf-8")).hexdigest()[:8]
    return f"category-{digest}"


def root_prefix(output_name: str) -> str:
    """Relative path from ``output_name`` back to the site root."""
    depth = len(Path(output_name).parts) - 1
    return "../" * depth


class PageAssembler:
    """Renders pages and listings through Jinja2 layouts.

    A layout named ``post`` is the template ``post.html``, looked up in the
    site's layouts directory first and then among the built-in layouts.
    """

    def __init__(self, layouts_dir: Optional[Path] = None, site: Optional[SiteConfig] = None) -> None:
        self.site = site or SiteConfig()
        loaders = []
        if layouts_dir is not None:
            loaders.append(FileSystemLoader(str(layouts_dir)))
        loaders.append(DictLoader(DEFAULT_LAYOUTS))
        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.env.filters["category_slug"] = category_slug

    def has_layout(self, name: str) -> bool:
        try:
            self.env.get_template(f"{name}.html")
        except TemplateNotFound:
            return False
        return True

    def _render(self, template: Template, output_name: str, site_index: Optional[SiteIndex], **context: Any) -> str:
        return template.render(
            site=self.site,
            menus=site_index.menus if site_index else {},
            root=root_prefix(output_name),
            **context,
        )

    def assemble(self, page: Page, rendered: RenderedBody, site_index: Optional[SiteIndex] = None) -> AssembledPage:
        """Produce the final document for one page.

        Drafts are assembled too, under ``_drafts/``, and flagged as not
        published so they can be previewed without reaching the site.

        Raises:
            UnknownLayout: If no template is registered for the page's layout.
        """
        layout = page.layout or self.site.default_layout
        output_name = f"{DRAFTS_DIR}/{page.output_name}" if page.draft else page.output_name
        try:
            template = self.env.get_template(f"{layout}.html")
        except TemplateNotFound as exc:
            raise UnknownLayout(page.source_path, layout) from exc

        html = self._render(
            template,
            output_name,
            site_index,
            page=page,
            content=Markup(rendered.html),
            body_title=rendered.title,
        )
        logger.debug("Assembled %s with layout '%s'", page.slug, layout)
        return AssembledPage(page=page, html=html, output_name=output_name, published=not page.draft)

    def render_listing(self, template_name: str, output_name: str, site_index: SiteIndex, **context: Any) -> str:
        """Render an index or category listing page."""
        return self._render(self.env.get_template(template_name), output_name, site_index, **context)
