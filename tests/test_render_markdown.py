"""Tests for the markdown renderer."""

import logging
from pathlib import Path

from front_matter import load_page
from render_markdown import is_safe_url, render_markdown

FIXTURES = Path(__file__).parent / "fixtures"


class TestBlocks:
    def test_headings(self):
        result = render_markdown("# Title\n\n## Section\n\n###### Small\n")

        assert "<h1>Title</h1>" in result.html
        assert "<h2>Section</h2>" in result.html
        assert "<h6>Small</h6>" in result.html
        assert result.title == "Title"

    def test_paragraph_lines_are_joined(self):
        result = render_markdown("first line\nsecond line\n")

        assert result.html == "<p>first line second line</p>\n"

    def test_horizontal_rule(self):
        assert "<hr>" in render_markdown("above\n\n***\n\nbelow").html

    def test_blockquote(self):
        result = render_markdown("> Keep mocks close\n> to the contract.\n")

        assert "<blockquote>" in result.html
        assert "<p>Keep mocks close to the contract.</p>" in result.html

    def test_nested_list(self):
        html = render_markdown("- one\n    - nested\n- two\n").html

        assert html.count("<ul>") == 2
        assert "<li>nested</li>" in html
        assert "<li>two</li>" in html

    def test_ordered_list(self):
        html = render_markdown("1. first\n2. second\n").html

        assert "<ol>" in html
        assert "<li>second</li>" in html

    def test_task_list(self):
        html = render_markdown("- [ ] write tests\n- [x] ship it\n").html

        assert '<ul class="task-list">' in html
        assert '<li class="task-item">write tests</li>' in html
        assert "<del>ship it</del>" in html

    def test_image_with_caption(self):
        html = render_markdown('![Portrait](/img/me.jpg "At a conference")').html

        assert '<img src="/img/me.jpg" alt="Portrait">' in html
        assert "<figcaption>At a conference</figcaption>" in html

    def test_table(self):
        html = render_markdown("| A | B |\n| --- | --- |\n| 1 | 2 |\n").html

        assert "<th>A</th>" in html
        assert "<td>2</td>" in html

    def test_raw_html_passes_through(self):
        html = render_markdown('<div class="note">\nhello\n</div>\n').html

        assert '<div class="note">\nhello\n</div>' in html


class TestCodeBlocks:
    def test_language_tag_preserved(self):
        html = render_markdown("```typescript\nconst a = 1;\n```\n").html

        assert 'class="language-typescript"' in html
        assert "const a = 1;" in html

    def test_default_language_is_text(self):
        assert 'class="language-text"' in render_markdown("```\nplain\n```\n").html

    def test_markdown_characters_are_verbatim(self):
        code = "const x = [a, b] * 2;\n**not bold** [not](link) _under_ # not heading\n- not a list"
        html = render_markdown(f"```js\n{code}\n```\n").html

        assert code in html
        assert "<strong>" not in html
        assert "<a " not in html
        assert "<li>" not in html

    def test_tilde_fence(self):
        html = render_markdown("~~~python\nprint('*')\n~~~\n").html

        assert "print(&#x27;*&#x27;)" not in html
        assert "print('*')" in html

    def test_link_definitions_inside_code_are_kept(self):
        html = render_markdown("```\n[ref]: https://example.com\n```\n").html

        assert "[ref]: https://example.com" in html

    def test_fixture_post_code_block(self):
        page = load_page(FIXTURES / "content/posts/integration-testing.md")
        html = render_markdown(page.body).html

        assert 'const mappings = [{ request: { url: "/api/*" } }];' in html
        assert "// **not bold** and [not a link](http://example.com)" in html


class TestInline:
    def test_emphasis(self):
        html = render_markdown("**strong** and *em* and ~~gone~~").html

        assert "<strong>strong</strong>" in html
        assert "<em>em</em>" in html
        assert "<del>gone</del>" in html

    def test_link_with_title(self):
        html = render_markdown('[GitHub](https://github.com "profile")').html

        assert '<a href="https://github.com" title="profile">GitHub</a>' in html

    def test_reference_link(self):
        html = render_markdown("See [the docs][docs].\n\n[docs]: https://example.com/docs\n").html

        assert '<a href="https://example.com/docs">the docs</a>' in html
        assert "[docs]:" not in html

    def test_inline_image(self):
        html = render_markdown("An icon ![star](/star.svg) inline").html

        assert '<img src="/star.svg" alt="star">' in html

    def test_autolink(self):
        html = render_markdown("Mail <mailto:hi@example.com>").html

        assert '<a href="mailto:hi@example.com">mailto:hi@example.com</a>' in html

    def test_code_span_is_literal(self):
        html = render_markdown("Use `a * b` here").html

        assert "<code>a * b</code>" in html

    def test_escapes_html(self):
        html = render_markdown("1 < 2 & 3").html

        assert "1 &lt; 2 &amp; 3" in html

    def test_backslash_escape(self):
        assert "*not em*" in render_markdown(r"\*not em\*").html


class TestDegradation:
    def test_unterminated_fence_renders_literal_and_continues(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = render_markdown("```python\nprint(1)\n\n## Later\n", source=Path("post.md"))

        assert "<p>```python\nprint(1)</p>" in result.html
        assert "<h2>Later</h2>" in result.html
        assert len(result.warnings) == 1
        assert "post.md" in result.warnings[0]
        assert "Unterminated code fence" in caplog.text

    def test_unterminated_fence_body_gets_no_inline_markup(self):
        result = render_markdown("```\nx = *a* and [b](c)\n<script>alert(1)</script>\n")

        assert "<em>" not in result.html
        assert "<a " not in result.html
        assert "<script>" not in result.html
        assert "x = *a* and [b](c)" in result.html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in result.html

    def test_unclosed_link_is_literal(self):
        result = render_markdown("broken [link](https://example.com and more")

        assert "<a " not in result.html
        assert "[link](https://example.com and more" in result.html
        assert any("Malformed link" in warning for warning in result.warnings)

    def test_unsafe_link_is_literal(self):
        result = render_markdown("[click](javascript:alert(1))")

        assert "<a " not in result.html
        assert "javascript:alert(1)" in result.html
        assert any("Unsafe link URL" in warning for warning in result.warnings)

    def test_unsafe_image_block_is_literal(self):
        result = render_markdown("![x](javascript:evil)")

        assert "<img" not in result.html
        assert "<p>![x](javascript:evil)</p>" in result.html
        assert result.warnings

    def test_rest_of_document_still_renders(self):
        result = render_markdown("[bad](vbscript:x)\n\n**fine**\n")

        assert "<strong>fine</strong>" in result.html


class TestIsSafeUrl:
    def test_relative_and_http_are_safe(self):
        assert is_safe_url("/about-me.html")
        assert is_safe_url("https://example.com")
        assert is_safe_url("#section")

    def test_script_schemes_are_unsafe(self):
        assert not is_safe_url("javascript:alert(1)")
        assert not is_safe_url(" JavaScript:alert(1)")
        assert not is_safe_url("data:text/html,hi")

    def test_data_images_allowed_for_images_only(self):
        assert is_safe_url("data:image/png;base64,AAAA", image=True)
        assert not is_safe_url("data:image/png;base64,AAAA")
