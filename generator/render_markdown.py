"""Render markdown page bodies to HTML fragments."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html import escape as html_escape
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from content_errors import RenderError, describe_path
from highlight_code import format_code_block

logger = logging.getLogger(__name__)

CODE_FENCE_RE = re.compile(r"^(?P<fence>`{3,}|~{3,})\s*(?P<info>[^`]*)$")
HEADING_RE = re.compile(r"^(?P<marks>#{1,6})\s+(?P<text>.*?)(?:\s+#+)?\s*$")
HR_RE = re.compile(r"^(\*{3,}|_{3,}|-{3,})$")
UL_ITEM_RE = re.compile(r"^[-*+] ")
ORDERED_LIST_RE = re.compile(r"^(\d+)\. (.*)")
IMAGE_BLOCK_RE = re.compile(
    r'^!\[(?P<alt>[^\]]*)\]\((?P<src>\S+?)(?:\s+"(?P<title>[^"]+)")?\)$'
)
RAW_HTML_RE = re.compile(r"^(?:<!--|</?[A-Za-z][A-Za-z0-9-]*(?:\s|/?>|$))")
TABLE_DIVIDER_RE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)+\|?\s*$")
LINK_DEF_RE = re.compile(r'^\[(?P<label>[^\]^][^\]]*)\]:\s*(?P<url>\S+)(?:\s+"(?P<title>[^"]*)")?$')
URL_SCHEME_RE = re.compile(r"^\s*([A-Za-z][A-Za-z0-9+.-]*):")

UNSAFE_SCHEMES = frozenset({"javascript", "vbscript", "data"})


@dataclass
class ListItem:
    text: str
    children: Optional["Block"] = None


@dataclass
class Block:
    kind: str
    text: str = ""
    level: int = 0
    language: str = ""
    items: List[ListItem] = field(default_factory=list)
    paragraphs: List[List[str]] = field(default_factory=list)
    caption: str = ""
    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    src: str = ""
    alt: str = ""


@dataclass
class RenderedBody:
    html: str
    title: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class RenderContext:
    """Per-document state shared by the block and inline renderers."""

    def __init__(
        self,
        source: Optional[Path] = None,
        link_defs: Optional[dict[str, dict[str, str]]] = None,
        highlighter: str = "none",
    ) -> None:
        self.source = source
        self.link_defs: dict[str, dict[str, str]] = dict(link_defs or {})
        self.highlighter = highlighter
        self.warnings: List[str] = []

    def report(self, error: RenderError) -> None:
        message = f"{describe_path(self.source)}: {error}; rendered as literal text"
        logger.warning(message)
        self.warnings.append(message)


def is_safe_url(url: str, *, image: bool = False) -> bool:
    match = URL_SCHEME_RE.match(url)
    if not match:
        return True
    scheme = match.group(1).lower()
    if scheme not in UNSAFE_SCHEMES:
        return True
    return image and scheme == "data" and url.strip().lower().startswith("data:image/")


def unwrap_lines(value: str) -> str:
    """Join soft-wrapped source lines into one line of text."""
    return " ".join(line.strip() for line in value.splitlines() if line.strip())


def extract_link_definitions(lines: List[str]) -> dict[str, dict[str, str]]:
    """Pull ``[label]: url "title"`` lines out of ``lines`` in place."""
    link_defs: dict[str, dict[str, str]] = {}
    fence: Optional[str] = None
    for i, line in enumerate(lines):
        stripped = line.strip()
        fence_match = CODE_FENCE_RE.match(stripped)
        if fence is None and fence_match:
            fence = fence_match.group("fence")
            continue
        if fence is not None:
            if is_closing_fence(stripped, fence):
                fence = None
            continue
        match = LINK_DEF_RE.match(stripped)
        if match:
            label = match.group("label").strip().lower()
            link_defs[label] = {
                "url": match.group("url").strip(),
                "title": (match.group("title") or "").strip(),
            }
            lines[i] = ""
    return link_defs


def is_closing_fence(stripped: str, fence: str) -> bool:
    return (
        len(stripped) >= len(fence)
        and stripped[0] == fence[0]
        and stripped == stripped[0] * len(stripped)
    )


def parse_markdown_body(body: str, ctx: RenderContext) -> Tuple[List[Block], Optional[str]]:
    blocks: List[Block] = []
    lines = body.splitlines()
    document_title: Optional[str] = None
    ctx.link_defs.update(extract_link_definitions(lines))
    i = 0

    def upcoming_block_type(index: int) -> Optional[str]:
        line = lines[index]
        stripped = line.strip()
        if not stripped:
            return None
        if CODE_FENCE_RE.match(stripped):
            return "code"
        if HEADING_RE.match(stripped):
            return "heading"
        if HR_RE.match(stripped.replace(" ", "")):
            return "hr"
        if stripped.startswith(">"):
            return "blockquote"
        if UL_ITEM_RE.match(stripped):
            return "ul"
        if ORDERED_LIST_RE.match(stripped):
            return "ol"
        if IMAGE_BLOCK_RE.match(stripped):
            return "image"
        if RAW_HTML_RE.match(stripped):
            return "raw_html"
        if is_table_start(lines, index):
            return "table"
        return None

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        if not stripped:
            i += 1
            continue

        block_type = upcoming_block_type(i)

        if block_type == "code":
            fence_match = CODE_FENCE_RE.match(stripped)
            fence = fence_match.group("fence")
            info = fence_match.group("info").strip()
            language = info.split()[0] if info else "text"
            end = i + 1
            while end < len(lines) and not is_closing_fence(lines[end].strip(), fence):
                end += 1
            if end >= len(lines):
                # Everything up to the next blank line stays literal text
                end = i + 1
                while end < len(lines) and lines[end].strip():
                    end += 1
                span = "\n".join(line.rstrip() for line in lines[i:end])
                ctx.report(RenderError("Unterminated code fence block", stripped))
                blocks.append(Block(kind="literal", text=span))
                i = end
                continue
            code_body = "\n".join(lines[i + 1:end])
            blocks.append(Block(kind="code", language=language, text=code_body))
            i = end + 1
            continue

        if block_type == "heading":
            match = HEADING_RE.match(stripped)
            level = len(match.group("marks"))
            heading_text = match.group("text").strip()
            if level == 1 and document_title is None and heading_text:
                document_title = heading_text
            blocks.append(Block(kind="heading", level=level, text=heading_text))
            i += 1
            continue

        if block_type == "hr":
            blocks.append(Block(kind="hr"))
            i += 1
            continue

        if block_type == "blockquote":
            quote_lines: List[str] = []
            while i < len(lines) and lines[i].lstrip().startswith(">"):
                current = lines[i].lstrip()[1:]
                if current.startswith(" "):
                    current = current[1:]
                quote_lines.append(current)
                i += 1
            paragraphs: List[List[str]] = []
            current_para: List[str] = []
            for q_line in quote_lines:
                if not q_line.strip():
                    if current_para:
                        paragraphs.append(current_para)
                        current_para = []
                    continue
                current_para.append(q_line)
            if current_para:
                paragraphs.append(current_para)
            blocks.append(Block(kind="blockquote", paragraphs=paragraphs))
            continue

        if block_type in {"ul", "ol"}:
            base_indent = indent_width(line)
            list_items, i = parse_list_items(lines, i, block_type, base_indent=base_indent)
            blocks.append(Block(kind=block_type, items=list_items))
            continue

        if block_type == "image":
            match = IMAGE_BLOCK_RE.match(stripped)
            blocks.append(
                Block(
                    kind="image",
                    alt=(match.group("alt") or "").strip(),
                    src=(match.group("src") or "").strip(),
                    caption=(match.group("title") or "").strip(),
                    text=stripped,
                )
            )
            i += 1
            continue

        if block_type == "raw_html":
            raw_lines: List[str] = []
            while i < len(lines) and lines[i].strip():
                raw_lines.append(lines[i])
                i += 1
            blocks.append(Block(kind="raw_html", text="\n".join(raw_lines)))
            continue

        if block_type == "table":
            table_block, i = parse_table_block(lines, i)
            blocks.append(table_block)
            continue

        # Paragraph fallback
        para_lines: List[str] = []
        while i < len(lines):
            if not lines[i].strip():
                break
            if para_lines and upcoming_block_type(i):
                break
            para_lines.append(lines[i])
            i += 1
        blocks.append(Block(kind="paragraph", text="\n".join(para_lines)))

    return blocks, document_title


def is_table_start(lines: List[str], index: int) -> bool:
    """A pipe row directly followed by a `|---|---|` divider row."""
    if index + 1 >= len(lines) or "|" not in lines[index]:
        return False
    return TABLE_DIVIDER_RE.match(lines[index + 1]) is not None


def split_table_cells(line: str) -> List[str]:
    row = line.strip().strip("|")
    return [cell.strip() for cell in row.split("|")] if row else []


def pad_cells(cells: List[str], width: int) -> List[str]:
    return (cells + [""] * width)[:width]


def parse_table_block(lines: List[str], start: int) -> Tuple[Block, int]:
    header_cells = split_table_cells(lines[start])
    rows: List[List[str]] = []
    idx = start + 2
    while idx < len(lines):
        current = lines[idx]
        if not current.strip() or "|" not in current:
            break
        rows.append(split_table_cells(current))
        idx += 1

    block = Block(
        kind="table",
        headers=header_cells,
        rows=[pad_cells(row, len(header_cells)) for row in rows],
    )
    return block, idx


def indent_width(line: str) -> int:
    return len(line) - len(line.lstrip())


def parse_list_items(lines: List[str], start: int, list_kind: str, base_indent: int = 0) -> Tuple[List[ListItem], int]:
    """Collect the items of one list level starting at ``lines[start]``.

    Deeper-indented items become the ``children`` of the item above them.
    Returns the items and the index of the first line after the list.
    """
    items: List[ListItem] = []
    i = start

    ul_pattern = re.compile(r"^(\s*)[-*+] (.*)$")
    ol_pattern = re.compile(r"^(\s*)(\d+)\. (.*)$")

    while i < len(lines):
        line = lines[i]
        if not line.strip():
            break

        indent = indent_width(line)
        if indent != base_indent:
            # Deeper lines were consumed as children above; shallower ones end this list
            break

        if list_kind == "ul":
            match = ul_pattern.match(line)
            item_text = match.group(2) if match else None
        else:
            match = ol_pattern.match(line)
            item_text = match.group(3) if match else None
        if item_text is None:
            break

        i += 1
        # Lazy continuation lines belong to the current item
        while i < len(lines) and lines[i].strip() and indent_width(lines[i]) > base_indent:
            if ul_pattern.match(lines[i]) or ol_pattern.match(lines[i]):
                break
            item_text += "\n" + lines[i].strip()
            i += 1

        children: Optional[Block] = None
        if i < len(lines):
            next_line = lines[i]
            next_indent = indent_width(next_line)
            next_ul = ul_pattern.match(next_line)
            next_ol = ol_pattern.match(next_line)
            if next_indent > base_indent and (next_ul or next_ol):
                nested_kind = "ul" if next_ul else "ol"
                nested_items, i = parse_list_items(lines, i, nested_kind, next_indent)
                children = Block(kind=nested_kind, items=nested_items)
        items.append(ListItem(text=item_text, children=children))

    return items, i


def render_text_segment(segment: str) -> str:
    return html_escape(segment, quote=False)


def split_link_target(target: str) -> Tuple[str, str]:
    """Split ``url "title"`` into its parts."""
    target = target.strip()
    match = re.match(r'^(?P<url>\S+)\s+"(?P<title>[^"]*)"$', target)
    if match:
        return match.group("url"), match.group("title")
    return target, ""


def render_link(label_html: str, url: str, title: str) -> str:
    href = html_escape(url, quote=True)
    title_attr = f' title="{html_escape(title, quote=True)}"' if title else ""
    return f'<a href="{href}"{title_attr}>{label_html}</a>'


def render_image(alt: str, src: str, title: str = "") -> str:
    title_attr = f' title="{html_attr(title)}"' if title else ""
    return f'<img src="{html_attr(src)}" alt="{html_attr(alt)}"{title_attr}>'


def render_inline(text: str, ctx: RenderContext, allow_links: bool = True) -> str:
    if not text:
        return ""
    result: List[str] = []
    i = 0
    start = 0

    def flush(end: int) -> None:
        nonlocal start
        if start < end:
            result.append(render_text_segment(text[start:end]))
        start = end

    while i < len(text):
        char = text[i]
        if char == "`":
            close = text.find("`", i + 1)
            if close == -1:
                i += 1
                continue
            flush(i)
            result.append(f"<code>{html_escape(text[i + 1:close], quote=False)}</code>")
            i = close + 1
            start = i
            continue

        if char == "\\":
            flush(i)
            i += 1
            if i < len(text):
                result.append(render_text_segment(text[i]))
                i += 1
            start = i
            continue

        is_image = char == "!" and i + 1 < len(text) and text[i + 1] == "["
        if is_image or (allow_links and char == "["):
            open_idx = i + 1 if is_image else i
            close = find_unescaped(text, open_idx + 1, "]")
            if close != -1 and close + 1 < len(text) and text[close + 1] == "(":
                end = find_unescaped(text, close + 2, ")")
                kind = "image" if is_image else "link"
                if end == -1:
                    ctx.report(RenderError(f"Malformed {kind} syntax", text[i:]))
                    flush(i)
                    i = close + 2
                    continue
                url, title = split_link_target(text[close + 2:end])
                if not is_safe_url(url, image=is_image):
                    ctx.report(RenderError(f"Unsafe {kind} URL", url))
                    flush(i)
                    i = end + 1
                    continue
                flush(i)
                label = text[open_idx + 1:close]
                if is_image:
                    result.append(render_image(label, url, title))
                else:
                    result.append(render_link(render_inline(label, ctx, allow_links=False), url, title))
                i = end + 1
                start = i
                continue
            if not is_image and close != -1 and ctx.link_defs:
                # Reference link: [text][ref], [text][] or [text]
                ref_close = close
                ref_key = text[i + 1:close].strip().lower()
                if close + 1 < len(text) and text[close + 1] == "[":
                    ref_close = find_unescaped(text, close + 2, "]")
                    if ref_close != -1 and text[close + 2:ref_close].strip():
                        ref_key = text[close + 2:ref_close].strip().lower()
                if ref_close != -1 and ref_key in ctx.link_defs:
                    definition = ctx.link_defs[ref_key]
                    flush(i)
                    if is_safe_url(definition["url"]):
                        label = render_inline(text[i + 1:close], ctx, allow_links=False)
                        result.append(render_link(label, definition["url"], definition["title"]))
                    else:
                        ctx.report(RenderError("Unsafe link URL", definition["url"]))
                        result.append(render_text_segment(text[i:ref_close + 1]))
                    i = ref_close + 1
                    start = i
                    continue

        # Bold: **text**
        if char == "*" and i + 1 < len(text) and text[i + 1] == "*":
            close = text.find("**", i + 2)
            if close != -1:
                flush(i)
                inner = render_inline(text[i + 2:close], ctx, allow_links=allow_links)
                result.append(f"<strong>{inner}</strong>")
                i = close + 2
                start = i
                continue

        # Italic: *text* (but not **)
        if char == "*" and i + 1 < len(text) and text[i + 1] not in "* ":
            close = text.find("*", i + 1)
            if close != -1 and (close + 1 >= len(text) or text[close + 1] != "*"):
                flush(i)
                inner = render_inline(text[i + 1:close], ctx, allow_links=allow_links)
                result.append(f"<em>{inner}</em>")
                i = close + 1
                start = i
                continue

        # Strikethrough: ~~text~~
        if char == "~" and i + 1 < len(text) and text[i + 1] == "~":
            close = text.find("~~", i + 2)
            if close != -1:
                flush(i)
                inner = render_inline(text[i + 2:close], ctx, allow_links=allow_links)
                result.append(f"<del>{inner}</del>")
                i = close + 2
                start = i
                continue

        # Autolinks: <https://example.com> or <mailto:user@example.com>
        if allow_links and char == "<" and i + 1 < len(text):
            close = text.find(">", i + 1)
            if close != -1:
                potential_url = text[i + 1:close]
                if potential_url.startswith(("http://", "https://", "mailto:")):
                    flush(i)
                    result.append(render_link(html_escape(potential_url), potential_url, ""))
                    i = close + 1
                    start = i
                    continue

        i += 1

    flush(len(text))
    return "".join(result)


def find_unescaped(text: str, start: int, target: str) -> int:
    """Index of the first ``target`` at or after ``start`` not preceded by a backslash."""
    escaped = False
    for idx in range(start, len(text)):
        if escaped:
            escaped = False
        elif text[idx] == "\\":
            escaped = True
        elif text[idx] == target:
            return idx
    return -1


def indent_first_line(html: str, indent_level: int) -> List[str]:
    lines = html.splitlines()
    if lines:
        lines[0] = " " * (indent_level * 4) + lines[0]
    return lines


def render_list_block(block: Block, indent_level: int, ctx: RenderContext) -> List[str]:
    """Items with ``[ ]`` or ``[x]`` markers turn the whole list into a task list."""
    lines: List[str] = []
    indent = " " * (indent_level * 4)
    tag = block.kind

    is_task_list = tag == "ul" and any(
        item.text.startswith(("[ ] ", "[x] ", "[X] ")) for item in block.items
    )

    if is_task_list:
        lines.append(f"{indent}<ul class=\"task-list\">")
    else:
        lines.append(f"{indent}<{tag}>")

    for item in block.items:
        item_text = item.text
        rendered_children = ""

        if item.children:
            child_lines = render_list_block(item.children, indent_level + 1, ctx)
            rendered_children = "\n" + "\n".join(child_lines) + f"\n{indent}    "

        if is_task_list and item_text.startswith("[ ] "):
            content = render_inline(unwrap_lines(item_text[4:]), ctx)
            lines.append(f"{indent}    <li class=\"task-item\">{content}{rendered_children}</li>")
        elif is_task_list and item_text.startswith(("[x] ", "[X] ")):
            content = render_inline(unwrap_lines(item_text[4:]), ctx)
            lines.append(f"{indent}    <li class=\"task-item task-item--done\"><del>{content}</del>{rendered_children}</li>")
        else:
            content = render_inline(unwrap_lines(item_text), ctx)
            lines.append(f"{indent}    <li>{content}{rendered_children}</li>")

    lines.append(f"{indent}</{tag}>")
    return lines


def render_blocks(blocks: Sequence[Block], ctx: RenderContext, indent_level: int = 0) -> List[str]:
    lines: List[str] = []
    indent = " " * (indent_level * 4)

    for block in blocks:
        if block.kind == "paragraph":
            lines.append(f"{indent}<p>{render_inline(unwrap_lines(block.text), ctx)}</p>")
            continue

        if block.kind == "literal":
            lines.append(f"{indent}<p>{render_text_segment(block.text)}</p>")
            continue

        if block.kind == "heading":
            tag = f"h{block.level}"
            lines.append(f"{indent}<{tag}>{render_inline(block.text, ctx)}</{tag}>")
            continue

        if block.kind == "hr":
            lines.append(f"{indent}<hr>")
            continue

        if block.kind in {"ul", "ol"}:
            lines.extend(render_list_block(block, indent_level, ctx))
            continue

        if block.kind == "blockquote":
            lines.append(f"{indent}<blockquote>")
            for paragraph in block.paragraphs:
                text = unwrap_lines("\n".join(paragraph))
                lines.append(f"{indent}    <p>{render_inline(text, ctx)}</p>")
            lines.append(f"{indent}</blockquote>")
            continue

        if block.kind == "code":
            code_html = format_code_block(block.text, block.language or "text", ctx.highlighter)
            # <pre> content stays byte-exact
            lines.extend(indent_first_line(code_html, indent_level))
            continue

        if block.kind == "raw_html":
            lines.extend(block.text.splitlines())
            continue

        if block.kind == "image":
            if not is_safe_url(block.src, image=True):
                ctx.report(RenderError("Unsafe image URL", block.src))
                lines.append(f"{indent}<p>{render_text_segment(block.text)}</p>")
                continue
            if block.caption:
                lines.append(f"{indent}<figure>")
                lines.append(f"{indent}    {render_image(block.alt, block.src)}")
                lines.append(f"{indent}    <figcaption>{render_inline(block.caption, ctx)}</figcaption>")
                lines.append(f"{indent}</figure>")
            else:
                lines.append(f"{indent}{render_image(block.alt, block.src)}")
            continue

        if block.kind == "table":
            lines.append(f"{indent}<table>")
            if block.headers:
                lines.append(f"{indent}    <thead>")
                lines.append(f"{indent}        <tr>")
                for cell in block.headers:
                    lines.append(f"{indent}            <th>{render_inline(cell, ctx)}</th>")
                lines.append(f"{indent}        </tr>")
                lines.append(f"{indent}    </thead>")
            if block.rows:
                lines.append(f"{indent}    <tbody>")
                for row in block.rows:
                    lines.append(f"{indent}        <tr>")
                    for cell in row:
                        lines.append(f"{indent}            <td>{render_inline(cell, ctx)}</td>")
                    lines.append(f"{indent}        </tr>")
                lines.append(f"{indent}    </tbody>")
            lines.append(f"{indent}</table>")
            continue

        raise ValueError(f"Unsupported block type: {block.kind}")

    return lines


def html_attr(value: str) -> str:
    return html_escape(value, quote=True)


def render_markdown(body: str, source: Optional[Path] = None, highlighter: str = "none") -> RenderedBody:
    """Render a markdown body to an HTML fragment.

    Spans that cannot be interpreted safely (an unterminated code fence, a
    link whose parentheses never close, a ``javascript:`` URL) are emitted
    as escaped literal text and listed in ``RenderedBody.warnings``; they
    never abort the document. Fenced code is copied through untouched apart
    from HTML escaping.
    """
    ctx = RenderContext(source=source, highlighter=highlighter)
    blocks, title = parse_markdown_body(body, ctx)
    html = "\n".join(render_blocks(blocks, ctx))
    if html:
        html += "\n"
    return RenderedBody(html=html, title=title, warnings=ctx.warnings)
