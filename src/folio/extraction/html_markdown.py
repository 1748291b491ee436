"""Staged HTML to Markdown transduction for converter-generated HTML.

The stages match tag boundaries with regular expressions instead of
building a tree, so their order matters: block containers are rewritten
before headings, headings before lists and paragraphs, and inline markup
before the final tag strip.  Rewriting inner tags too early would break the
outer matches.
"""

from __future__ import annotations

import re

from folio.extraction.normalization import collapse_blank_lines, normalize_newlines

_FLAGS = re.IGNORECASE | re.DOTALL

_BLOCKQUOTE_RE = re.compile(r"<blockquote\b[^>]*>(.*?)</blockquote>", _FLAGS)
_PRE_RE = re.compile(r"<pre\b[^>]*>(.*?)</pre>", _FLAGS)
_HEADING_RE = re.compile(r"<h([1-6])\b[^>]*>(.*?)</h\1\s*>", _FLAGS)
_LIST_RE = re.compile(r"<(ul|ol)\b[^>]*>(.*?)</\1\s*>", _FLAGS)
_LIST_ITEM_RE = re.compile(r"<li\b[^>]*>(.*?)(?:</li\s*>|(?=<li\b)|$)", _FLAGS)
_BOLD_RE = re.compile(r"<(strong|b)(?:\s[^>]*)?>(.*?)</\1\s*>", _FLAGS)
_ITALIC_RE = re.compile(r"<(em|i)(?:\s[^>]*)?>(.*?)</\1\s*>", _FLAGS)
_UNDERLINE_RE = re.compile(r"<u(?:\s[^>]*)?>(.*?)</u\s*>", _FLAGS)
_CODE_RE = re.compile(r"<code(?:\s[^>]*)?>(.*?)</code\s*>", _FLAGS)
_PARAGRAPH_RE = re.compile(r"<p(?:\s[^>]*)?>(.*?)</p\s*>", _FLAGS)
_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_BREAK_RE = re.compile(r"</p\s*>|<br\s*/?>|</div\s*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_INLINE_WS_RE = re.compile(r"\s+")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")

_NAMED_ENTITIES: dict[str, str] = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&nbsp;": " ",
    "&copy;": "©",
    "&reg;": "®",
    "&mdash;": "—",
    "&ndash;": "–",
    "&ldquo;": "“",
    "&rdquo;": "”",
    "&lsquo;": "‘",
    "&rsquo;": "’",
}
_NAMED_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in _NAMED_ENTITIES))
_DECIMAL_ENTITY_RE = re.compile(r"&#(\d+);")
_HEX_ENTITY_RE = re.compile(r"&#x([0-9a-f]+);", re.IGNORECASE)


def strip_tags(html: str) -> str:
    return _TAG_RE.sub("", html)


def _inline_text(fragment: str) -> str:
    """Strip tags and fold whitespace so the fragment fits on one line."""

    return _INLINE_WS_RE.sub(" ", strip_tags(fragment)).strip()


def _as_block(markdown: str) -> str:
    return f"\n\n{markdown}\n\n"


def _codepoint(value: int, original: str) -> str:
    if value <= 0 or value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
        return original
    return chr(value)


def decode_entities(text: str) -> str:
    """Decode the supported named entities, then decimal and hex references."""

    text = _NAMED_ENTITY_RE.sub(lambda match: _NAMED_ENTITIES[match.group(0)], text)
    text = _DECIMAL_ENTITY_RE.sub(lambda match: _codepoint(int(match.group(1)), match.group(0)), text)
    return _HEX_ENTITY_RE.sub(lambda match: _codepoint(int(match.group(1), 16), match.group(0)), text)


def _rewrite_blockquote(match: re.Match[str]) -> str:
    inner = _BLOCK_BREAK_RE.sub("\n", match.group(1))
    lines = [_INLINE_WS_RE.sub(" ", line).strip() for line in strip_tags(inner).split("\n")]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    quoted = "\n".join(f"> {line}" if line else ">" for line in lines)
    return _as_block(quoted) if quoted else ""


def _rewrite_pre(match: re.Match[str]) -> str:
    body = strip_tags(_BREAK_RE.sub("\n", match.group(1))).strip("\n")
    return _as_block(f"```\n{body}\n```")


def _rewrite_heading(match: re.Match[str]) -> str:
    level = int(match.group(1))
    title = _inline_text(match.group(2))
    if not title:
        return "\n\n"
    return _as_block(f"{'#' * level} {title}")


def _rewrite_list(match: re.Match[str]) -> str:
    ordered = match.group(1).lower() == "ol"
    lines: list[str] = []
    for item in _LIST_ITEM_RE.finditer(match.group(2)):
        text = _inline_text(item.group(1))
        if not text:
            continue
        marker = f"{len(lines) + 1}." if ordered else "-"
        lines.append(f"{marker} {text}")
    return _as_block("\n".join(lines)) if lines else "\n\n"


def _wrap(marker: str, *, group: int):
    def _replace(match: re.Match[str]) -> str:
        inner = match.group(group)
        if not inner.strip():
            return inner
        return f"{marker}{inner}{marker}"

    return _replace


def _rewrite_paragraph(match: re.Match[str]) -> str:
    return f"{match.group(1).strip()}\n\n"


def html_to_markdown(html: str) -> str:
    """Rewrite converter-sourced HTML into Markdown.

    Stage order: blockquote, pre, headings, lists, inline emphasis,
    paragraphs, line breaks, tag strip, entities, whitespace.  Nested
    emphasis is matched at the top level only.  Malformed or overlapping
    markup produces best-effort text, never residual tags.
    """

    markdown = normalize_newlines(html)
    markdown = _BLOCKQUOTE_RE.sub(_rewrite_blockquote, markdown)
    markdown = _PRE_RE.sub(_rewrite_pre, markdown)
    markdown = _HEADING_RE.sub(_rewrite_heading, markdown)
    markdown = _LIST_RE.sub(_rewrite_list, markdown)

    markdown = _BOLD_RE.sub(_wrap("**", group=2), markdown)
    markdown = _ITALIC_RE.sub(_wrap("*", group=2), markdown)
    markdown = _UNDERLINE_RE.sub(_wrap("__", group=1), markdown)
    markdown = _CODE_RE.sub(_wrap("`", group=1), markdown)

    markdown = _PARAGRAPH_RE.sub(_rewrite_paragraph, markdown)
    markdown = _BREAK_RE.sub("\n", markdown)
    markdown = strip_tags(markdown)
    markdown = decode_entities(markdown)

    markdown = _TRAILING_SPACE_RE.sub("\n", markdown)
    return collapse_blank_lines(markdown)
