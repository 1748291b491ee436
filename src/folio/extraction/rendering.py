"""Minimal Markdown rendering for editor HTML and plain-text views."""

from __future__ import annotations

import html as html_lib
import re

from folio.extraction.normalization import collapse_blank_lines, normalize_newlines

# Matched on the raw line; four or more leading spaces is not a heading.
HEADING_LINE_RE = re.compile(r"^ {0,3}(#{1,6})\s+(.+)$")
_BULLET_RE = re.compile(r"^\s*[-*+•]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^\s*(\d+)[.)]\s+(.*)$")
_QUOTE_RE = re.compile(r"^>\s?(.*)$")
_FENCE = "```"

_STRONG_RE = re.compile(r"\*\*(.+?)\*\*")
_UNDERLINE_RE = re.compile(r"__(.+?)__")
_EM_RE = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")
_CODE_RE = re.compile(r"`([^`]+)`")

_TEXT_HEADING_RE = re.compile(r"^ {0,3}#{1,6}\s+", re.MULTILINE)
_TEXT_QUOTE_RE = re.compile(r"^>\s?", re.MULTILINE)
_TEXT_FENCE_RE = re.compile(r"^```.*$\n?", re.MULTILINE)
_TEXT_MARKERS_RE = re.compile(r"\*\*|__|`")
_TEXT_EM_RE = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")


def escape_html(text: str) -> str:
    return html_lib.escape(text, quote=True)


def render_inline(text: str) -> str:
    """Escape text and turn inline Markdown markers into HTML tags."""

    rendered = escape_html(text)
    rendered = _CODE_RE.sub(r"<code>\1</code>", rendered)
    rendered = _STRONG_RE.sub(r"<strong>\1</strong>", rendered)
    rendered = _UNDERLINE_RE.sub(r"<u>\1</u>", rendered)
    return _EM_RE.sub(r"<em>\1</em>", rendered)


class _HtmlBuilder:
    """Accumulates blocks while walking Markdown lines."""

    def __init__(self) -> None:
        self.parts: list[str] = []
        self._paragraph: list[str] = []
        self._list_tag: str | None = None
        self._quote: list[str] = []

    def flush(self) -> None:
        if self._paragraph:
            self.parts.append("<p>" + "\n".join(render_inline(line) for line in self._paragraph) + "</p>")
            self._paragraph = []
        if self._list_tag:
            self.parts.append(f"</{self._list_tag}>")
            self._list_tag = None
        if self._quote:
            body = "\n".join(render_inline(line) for line in self._quote if line)
            self.parts.append(f"<blockquote><p>{body}</p></blockquote>")
            self._quote = []

    def paragraph_line(self, line: str) -> None:
        if self._list_tag or self._quote:
            self.flush()
        self._paragraph.append(line)

    def list_item(self, tag: str, text: str) -> None:
        if self._list_tag != tag:
            self.flush()
            self.parts.append(f"<{tag}>")
            self._list_tag = tag
        self.parts.append(f"<li>{render_inline(text)}</li>")

    def quote_line(self, text: str) -> None:
        if not self._quote:
            self.flush()
        self._quote.append(text)


def markdown_to_html(markdown: str) -> str:
    """Render headings, lists, quotes, fenced code and paragraphs."""

    builder = _HtmlBuilder()
    code_lines: list[str] | None = None

    for line in normalize_newlines(markdown).split("\n"):
        if code_lines is not None:
            if line.strip().startswith(_FENCE):
                builder.parts.append("<pre><code>" + escape_html("\n".join(code_lines)) + "</code></pre>")
                code_lines = None
            else:
                code_lines.append(line)
            continue

        stripped = line.strip()
        if stripped.startswith(_FENCE):
            builder.flush()
            code_lines = []
            continue
        if not stripped:
            builder.flush()
            continue

        heading = HEADING_LINE_RE.match(line)
        if heading:
            builder.flush()
            level = len(heading.group(1))
            builder.parts.append(f"<h{level}>{render_inline(heading.group(2).strip())}</h{level}>")
            continue

        quote = _QUOTE_RE.match(stripped)
        if quote:
            builder.quote_line(quote.group(1).strip())
            continue

        numbered = _NUMBERED_RE.match(stripped)
        if numbered:
            builder.list_item("ol", numbered.group(2))
            continue

        bullet = _BULLET_RE.match(stripped)
        if bullet and not stripped.startswith("**"):
            builder.list_item("ul", bullet.group(1))
            continue

        builder.paragraph_line(stripped)

    if code_lines is not None:
        builder.parts.append("<pre><code>" + escape_html("\n".join(code_lines)) + "</code></pre>")
    builder.flush()
    return "\n".join(builder.parts)


def markdown_to_text(markdown: str) -> str:
    """Drop Markdown markers, keeping prose and paragraph breaks."""

    text = normalize_newlines(markdown)
    text = _TEXT_FENCE_RE.sub("", text)
    text = _TEXT_HEADING_RE.sub("", text)
    text = _TEXT_QUOTE_RE.sub("", text)
    text = _TEXT_EM_RE.sub(r"\1", text)
    text = _TEXT_MARKERS_RE.sub("", text)
    return collapse_blank_lines(text)
