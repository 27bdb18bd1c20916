#!/usr/bin/env python3
"""Generate a static site from Markdown sources with YAML front matter."""

from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape as xml_escape

from jinja2 import TemplateError

from assemble_page import AssembledPage, PageAssembler, category_slug
from content_errors import (
    BrokenLayout,
    CategoryClash,
    ContentError,
    DuplicateSlug,
    ReservedSlug,
    SiteConfigError,
    UnknownLayout,
)
from front_matter import Page, load_page
from render_markdown import RenderedBody, render_markdown
from site_config import DEFAULT_CONFIG_NAME, SiteConfig, load_site_config
from site_index import SiteIndex, build_site_index

logger = logging.getLogger(__name__)

# Output names the listings claim for themselves
RESERVED_SLUGS = frozenset({"index"})


@dataclass(frozen=True)
class SourceResult:
    path: Path
    page: Page
    rendered: RenderedBody


@dataclass
class BuildReport:
    written: List[Path] = field(default_factory=list)
    assembled: List[AssembledPage] = field(default_factory=list)
    failures: List[Tuple[Path, Exception]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    index: SiteIndex = field(default_factory=SiteIndex)

    @property
    def ok(self) -> bool:
        return not self.failures

    def fail(self, path: Path, error: Exception) -> None:
        logger.error("Failed to process %s: %s", path, error)
        self.failures.append((path, error))


def configure_logging(verbose: bool = False) -> None:
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not root.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(console_handler)


def discover_sources(content_dir: Path) -> List[Path]:
    if not content_dir.is_dir():
        raise FileNotFoundError(f"Content directory '{content_dir}' does not exist")
    return sorted(path for path in content_dir.rglob("*.md") if path.is_file())


def process_source(path: Path, highlighter: str = "none") -> SourceResult:
    """Parse and render one content file; runs inside worker processes too."""
    page = load_page(path)
    rendered = render_markdown(page.body, source=path, highlighter=highlighter)
    return SourceResult(path=path, page=page, rendered=rendered)


def load_sources(paths: Sequence[Path], config: SiteConfig, report: BuildReport, verbose: bool = False) -> List[SourceResult]:
    """Parse and render every source, sequentially or across worker processes.

    Returns only after every file has been handled; results come back in
    path order whichever way they were produced.
    """
    results: Dict[Path, SourceResult] = {}

    if config.workers > 1 and len(paths) > 1:
        logger.debug("Using %d worker processes for %d files", config.workers, len(paths))
        with ProcessPoolExecutor(
            max_workers=config.workers,
            initializer=configure_logging,
            initargs=(verbose,),
        ) as executor:
            futures = {executor.submit(process_source, path, config.highlighter): path for path in paths}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    results[path] = future.result()
                except (ContentError, OSError, UnicodeDecodeError) as exc:
                    report.fail(path, exc)
    else:
        for path in paths:
            try:
                results[path] = process_source(path, config.highlighter)
            except (ContentError, OSError, UnicodeDecodeError) as exc:
                report.fail(path, exc)

    return [results[path] for path in paths if path in results]


def reject_duplicate_slugs(results: Sequence[SourceResult], report: BuildReport) -> List[SourceResult]:
    seen: Dict[str, Path] = {}
    unique: List[SourceResult] = []
    for result in results:
        slug = result.page.slug
        if slug in RESERVED_SLUGS:
            report.fail(result.path, ReservedSlug(result.path, slug))
            continue
        first_path = seen.get(slug)
        if first_path is not None:
            report.fail(result.path, DuplicateSlug(result.path, slug, first_path))
            continue
        seen[slug] = result.path
        unique.append(result)
    return unique


def reject_unknown_layouts(results: Sequence[SourceResult], assembler: PageAssembler, report: BuildReport) -> List[SourceResult]:
    known: List[SourceResult] = []
    for result in results:
        layout = result.page.layout or assembler.site.default_layout
        try:
            found = assembler.has_layout(layout)
        except TemplateError as exc:
            report.fail(result.path, BrokenLayout(result.path, layout, str(exc)))
            continue
        if not found:
            report.fail(result.path, UnknownLayout(result.path, layout))
            continue
        known.append(result)
    return known


def write_output(output_dir: Path, name: str, content: str) -> Path:
    output_path = output_dir / name
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    logger.info("Wrote %s", output_path)
    return output_path


def format_sitemap_entry(url: str, page: Optional[Page] = None) -> str:
    lines = ["<url>", f"<loc>{xml_escape(url)}</loc>"]
    if page is not None and page.date is not None:
        lines.append(f"<lastmod>{page.date.strftime('%Y-%m-%d')}</lastmod>")
    lines.append("</url>")
    return "\n".join(lines) + "\n"


def build_sitemap(base_url: str, index: SiteIndex) -> str:
    site_url = base_url.rstrip("/")
    content = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
    )
    content += format_sitemap_entry(f"{site_url}/")
    for page in sorted(index.published, key=lambda item: item.slug):
        content += format_sitemap_entry(f"{site_url}/{page.output_name}", page)
    for name in dict.fromkeys(category_slug(label) for label in index.categories):
        if name in RESERVED_SLUGS:
            continue
        content += format_sitemap_entry(f"{site_url}/categories/{name}.html")
    content += "</urlset>\n"
    return content


def category_listings(index: SiteIndex, output_dir: Path, report: BuildReport) -> Dict[str, str]:
    """Map each category label to its listing file.

    A label whose file name is reserved, or already taken by an earlier
    label, fails and gets no listing of its own.
    """
    owners: Dict[str, str] = {}
    listings: Dict[str, str] = {}
    for label in index.categories:
        slug = category_slug(label)
        output_name = f"categories/{slug}.html"
        if slug in RESERVED_SLUGS:
            report.fail(output_dir / output_name, ReservedSlug(output_dir / output_name, slug))
            continue
        first_label = owners.get(output_name)
        if first_label is not None:
            report.fail(output_dir / output_name, CategoryClash(output_dir / output_name, label, first_label))
            continue
        owners[output_name] = label
        listings[label] = output_name
    return listings


def write_listings(assembler: PageAssembler, index: SiteIndex, output_dir: Path, report: BuildReport) -> None:
    listings = [
        ("index.html", "list.html", {"heading": None, "pages": index.published}),
        ("categories/index.html", "categories.html", {"categories": index.categories}),
    ]
    for label, output_name in category_listings(index, output_dir, report).items():
        listings.append((output_name, "category.html", {"heading": label, "pages": index.categories[label]}))

    for output_name, template_name, context in listings:
        try:
            html = assembler.render_listing(template_name, output_name, index, **context)
        except TemplateError as exc:
            report.fail(output_dir / output_name, exc)
            continue
        report.written.append(write_output(output_dir, output_name, html))

    if assembler.site.base_url:
        report.written.append(write_output(output_dir, "sitemap.xml", build_sitemap(assembler.site.base_url, index)))


def build_site(config: SiteConfig, verbose: bool = False) -> BuildReport:
    """Run a full build: parse and render, index, assemble, write.

    Per-file errors are collected on the report and the rest of the build
    carries on.

    Raises:
        FileNotFoundError: If the content directory does not exist.
    """
    report = BuildReport()
    sources = discover_sources(config.content_dir)
    if not sources:
        logger.warning("No markdown files found in %s", config.content_dir)

    results = load_sources(sources, config, report, verbose=verbose)
    for result in results:
        report.warnings.extend(result.rendered.warnings)

    assembler = PageAssembler(config.layouts_dir, config)
    results = reject_duplicate_slugs(results, report)
    results = reject_unknown_layouts(results, assembler, report)

    # Every page has been parsed before the index is built
    index = build_site_index(result.page for result in results)
    report.index = index

    output_dir = config.output_dir
    for result in results:
        try:
            assembled = assembler.assemble(result.page, result.rendered, index)
        except (UnknownLayout, TemplateError) as exc:
            report.fail(result.path, exc)
            continue
        report.assembled.append(assembled)
        if assembled.published or config.include_drafts:
            report.written.append(write_output(output_dir, assembled.output_name, assembled.html))
        else:
            logger.debug("Skipping draft %s", result.path)

    write_listings(assembler, index, output_dir, report)
    return report


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", help=f"Site config file (default: ./{DEFAULT_CONFIG_NAME} when present)")
    parser.add_argument("--content-dir", help="Directory containing markdown sources")
    parser.add_argument("--output-dir", help="Directory for generated HTML")
    parser.add_argument("--layouts-dir", help="Directory of Jinja2 layouts overriding the built-in ones")
    parser.add_argument("--drafts", action="store_true", default=None, help="Also write draft pages under _drafts/")
    parser.add_argument("--workers", type=int, help="Number of worker processes for parsing and rendering")
    parser.add_argument("--highlighter", choices=["none", "hljs"], help="Code highlighting backend")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    return parser


def resolve_config(args: argparse.Namespace) -> SiteConfig:
    config_path = Path(args.config) if args.config else Path(DEFAULT_CONFIG_NAME)
    if args.config or config_path.is_file():
        config = load_site_config(config_path)
    else:
        config = SiteConfig()
    if args.workers is not None and args.workers < 1:
        raise SiteConfigError(None, "--workers must be at least 1")
    return config.with_overrides(
        content_dir=args.content_dir,
        output_dir=args.output_dir,
        layouts_dir=args.layouts_dir,
        include_drafts=args.drafts,
        workers=args.workers,
        highlighter=args.highlighter,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = resolve_config(args)
        report = build_site(config, verbose=args.verbose)
    except (SiteConfigError, FileNotFoundError) as exc:
        logger.error(str(exc))
        return 1

    logger.info(
        "Built %d pages, wrote %d files, %d failed, %d warnings",
        len(report.assembled),
        len(report.written),
        len(report.failures),
        len(report.warnings),
    )
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
