"""Tests for layout assembly."""

from pathlib import Path

import pytest

from assemble_page import PageAssembler, category_slug, root_prefix
from content_errors import UnknownLayout
from front_matter import load_page, parse_page
from render_markdown import render_markdown
from site_config import SiteConfig
from site_index import build_site_index

FIXTURES = Path(__file__).parent / "fixtures"


def _assemble(page, assembler=None, site_index=None):
    assembler = assembler or PageAssembler(site=SiteConfig(title="Example Site"))
    return assembler.assemble(page, render_markdown(page.body), site_index)


class TestAssemble:
    def test_page_layout_wraps_rendered_body(self):
        page = load_page(FIXTURES / "content/about-me.md")

        assembled = _assemble(page)

        assert assembled.published is True
        assert assembled.output_name == "about-me.html"
        assert "<title>About Me | Example Site</title>" in assembled.html
        assert "<strong>fast feedback</strong>" in assembled.html
        assert '<article class="page" data-slug="about-me">' in assembled.html

    def test_post_layout_shows_date_and_categories(self):
        page = load_page(FIXTURES / "content/posts/hello-world.md")

        html = _assemble(page).html

        assert '<time datetime="2023-03-01T09:30:00">2023-03-01</time>' in html
        assert 'href="categories/frontend.html"' in html
        assert 'data-comments="on"' in html

    def test_metadata_is_escaped(self):
        page = parse_page("---\ntitle: '<script>x</script>'\n---\nBody\n", Path("x.md"))

        html = _assemble(page).html

        assert "<script>x</script>" not in html
        assert "&lt;script&gt;x&lt;/script&gt;" in html

    def test_default_layout_used_when_missing(self):
        page = load_page(FIXTURES / "content/contact.md")

        html = _assemble(page).html

        assert '<article class="page" data-slug="contact">' in html

    def test_menu_navigation_from_index(self):
        pages = [load_page(path) for path in sorted((FIXTURES / "content").rglob("*.md"))]
        index = build_site_index(pages)
        about = next(page for page in pages if page.slug == "about-me")

        html = _assemble(about, site_index=index).html

        projects_at = html.index('href="projects.html"')
        about_at = html.index('href="about-me.html"')
        contact_at = html.index('href="contact.html"')
        assert projects_at < about_at < contact_at
        assert "integration-testing-with-testcontainers" not in html
        assert '<span class="icon icon-user"></span>' in html


class TestDrafts:
    def test_draft_is_still_assembled(self):
        page = load_page(FIXTURES / "content/posts/integration-testing.md")

        assembled = _assemble(page)

        assert assembled.published is False
        assert assembled.output_name == "_drafts/integration-testing-with-testcontainers.html"
        assert "Integration Testing with Containerized Mocks" in assembled.html

    def test_body_heading_not_repeated(self):
        page = load_page(FIXTURES / "content/posts/integration-testing.md")

        html = _assemble(page).html

        assert html.count("<h1>") == 1
        assert "<h1>Integration Testing with Containerized Mocks</h1>" in html

    def test_title_heading_added_when_body_has_none(self):
        page = parse_page("---\ntitle: Notes\n---\nJust a paragraph.\n", Path("notes.md"))

        html = _assemble(page).html

        assert html.count("<h1>") == 1
        assert "<h1>Notes</h1>" in html

    def test_title_heading_kept_when_body_heading_differs(self):
        page = parse_page("---\ntitle: Notes\n---\n# Something Else\n", Path("notes.md"))

        html = _assemble(page).html

        assert "<h1>Notes</h1>" in html
        assert "<h1>Something Else</h1>" in html

    def test_draft_links_point_back_to_root(self):
        page = load_page(FIXTURES / "content/posts/integration-testing.md")

        html = _assemble(page).html

        assert 'href="../categories/testing.html"' in html


class TestLayouts:
    def test_unknown_layout_raises(self):
        page = parse_page("---\nlayout: gallery\n---\nBody\n", Path("content/photos.md"))

        with pytest.raises(UnknownLayout) as excinfo:
            _assemble(page)

        assert excinfo.value.layout == "gallery"
        assert "content/photos.md" in str(excinfo.value)
        assert "gallery" in str(excinfo.value)

    def test_site_layouts_override_builtins(self):
        assembler = PageAssembler(FIXTURES / "layouts", SiteConfig())
        page = load_page(FIXTURES / "content/about-me.md")

        html = _assemble(page, assembler).html

        assert html.startswith('<section class="custom-page">About Me|')

    def test_builtins_still_available_with_layouts_dir(self):
        assembler = PageAssembler(FIXTURES / "layouts", SiteConfig())

        assert assembler.has_layout("post")
        assert assembler.has_layout("page")
        assert not assembler.has_layout("gallery")

    def test_missing_layouts_dir_falls_back(self, tmp_path):
        assembler = PageAssembler(tmp_path / "nope", SiteConfig())

        assert assembler.has_layout("page")


class TestListings:
    def test_home_listing(self):
        pages = [load_page(path) for path in sorted((FIXTURES / "content").rglob("*.md"))]
        index = build_site_index(pages)
        assembler = PageAssembler(site=SiteConfig(title="Example Site"))

        html = assembler.render_listing("list.html", "index.html", index, heading=None, pages=index.published)

        assert "<h1>Example Site</h1>" in html
        assert 'href="hello-world.html"' in html
        assert "integration-testing-with-testcontainers" not in html

    def test_category_listing(self):
        pages = [load_page(path) for path in sorted((FIXTURES / "content").rglob("*.md"))]
        index = build_site_index(pages)
        assembler = PageAssembler(site=SiteConfig(title="Example Site"))

        html = assembler.render_listing(
            "category.html", "categories/frontend.html", index,
            heading="frontend", pages=index.categories["frontend"],
        )

        assert "<title>frontend | Example Site</title>" in html
        assert 'href="../hello-world.html"' in html


class TestHelpers:
    def test_root_prefix(self):
        assert root_prefix("about-me.html") == ""
        assert root_prefix("_drafts/post.html") == "../"
        assert root_prefix("a/b/c.html") == "../../"

    def test_category_slug(self):
        assert category_slug("Front End") == "front-end"

    def test_category_slug_without_ascii_characters(self):
        slug = category_slug("日本語")

        assert slug.startswith("category-")
        assert slug == category_slug("日本語")
        assert slug != category_slug("++")
