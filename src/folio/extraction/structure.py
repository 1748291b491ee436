"""Heading-driven segmentation of Markdown into preface and chapters."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterator

from folio.extraction.models import Chapter, DocumentStructure, Preface
from folio.extraction.normalization import count_words, normalize_newlines
from folio.extraction.rendering import HEADING_LINE_RE, markdown_to_html

_HEADING_PREFIX_RE = re.compile(r"^ {0,3}#+\s+", re.MULTILINE)
_NUMERIC_HEADING_RE = re.compile(r"^\d+(?:\.\d+)*\.\s+")
_MARKDOWN_ESCAPE_RE = re.compile(r"\\([*_{}\[\]()#+\-.!<>~|])")
_FENCE = "```"

_PREFACE_TITLES = {"en": "Introduction", "es": "Introducción"}
_SECTION_LABELS = {"en": "Section", "es": "Sección"}
DEFAULT_LOCALE = "en"


def _locale_key(locale: str | None) -> str:
    if not locale:
        return DEFAULT_LOCALE
    key = locale.strip().lower().replace("_", "-").split("-", 1)[0]
    return key if key in _PREFACE_TITLES else DEFAULT_LOCALE


def preface_fallback_title(locale: str | None = None) -> str:
    return _PREFACE_TITLES[_locale_key(locale)]


def section_title(number: int, locale: str | None = None) -> str:
    """Synthesized title for a section without a heading, e.g. "Sección 2"."""

    return f"{_SECTION_LABELS[_locale_key(locale)]} {number}"


def unescape_markdown(markdown: str) -> str:
    r"""Turn ``\*``, ``\#``, ``\.`` and friends back into plain punctuation."""

    return _MARKDOWN_ESCAPE_RE.sub(r"\1", markdown)


@dataclass(frozen=True, slots=True)
class _OpenChapter:
    """Accumulator for the chapter being read; lines are kept by index."""

    title: str
    level: int
    start: int


def _iter_unfenced(lines: list[str]) -> Iterator[tuple[int, str]]:
    in_fence = False
    for index, line in enumerate(lines):
        if line.strip().startswith(_FENCE):
            in_fence = not in_fence
            continue
        if not in_fence:
            yield index, line


def _is_heading_line(line: str) -> bool:
    match = HEADING_LINE_RE.match(line)
    return match is not None and bool(match.group(2).strip())


def _iter_headings(lines: list[str]) -> Iterator[tuple[int, str, int]]:
    """Yield ``(index, title, level)`` for ATX headings outside code fences."""

    for index, line in _iter_unfenced(lines):
        match = HEADING_LINE_RE.match(line)
        if match is None:
            continue
        title = match.group(2).strip()
        if title:
            yield index, title, len(match.group(1))


def _close(chapter: _OpenChapter, lines: list[str], end: int) -> Chapter:
    markdown = "\n".join(lines[chapter.start:end]).strip()
    return Chapter(
        title=chapter.title,
        level=chapter.level,
        markdown=markdown,
        html=markdown_to_html(markdown),
        word_count=count_words(_HEADING_PREFIX_RE.sub("", markdown)),
    )


def _split_lines(markdown: str) -> list[str]:
    return normalize_newlines(markdown).split("\n")


def _segment(lines: list[str]) -> tuple[int, list[Chapter]]:
    """Return the index of the first heading (or ``len(lines)``) and chapters."""

    chapters: list[Chapter] = []
    current: _OpenChapter | None = None
    first_heading = len(lines)

    for index, title, level in _iter_headings(lines):
        if current is None:
            first_heading = index
        else:
            chapters.append(_close(current, lines, index))
        current = _OpenChapter(title=title, level=level, start=index)

    if current is not None:
        chapters.append(_close(current, lines, len(lines)))
    return first_heading, chapters


def _build_preface(lines: list[str], locale: str | None) -> Preface | None:
    content = "\n".join(lines).strip()
    if not content:
        return None
    title = next((line.strip() for line in lines if line.strip()), preface_fallback_title(locale))
    return Preface(title=title, content=content)


def extract_chapters(markdown: str) -> list[Chapter]:
    """Split Markdown into chapters at every ATX heading.

    Each chapter's Markdown includes its own heading line and runs until the
    next heading of any level.  Content before the first heading is not part
    of any chapter.
    """

    _, chapters = _segment(_split_lines(markdown))
    return chapters


def extract_structure(markdown: str, locale: str | None = None) -> DocumentStructure:
    """Chapters plus the preface that precedes the first ATX heading.

    Without any heading the whole document is the preface and there are no
    chapters.
    """

    lines = _split_lines(markdown)
    first_heading, chapters = _segment(lines)
    preface = _build_preface(lines[:first_heading], locale)
    return DocumentStructure(chapters=tuple(chapters), preface=preface)


def extract_preface(markdown: str, locale: str | None = None) -> Preface | None:
    """Dedicated preface extraction with a looser boundary.

    Escaped Markdown punctuation is unescaped first, and numbered lines such
    as ``1. Scope`` or ``2.3. Terms`` also end the preface.  Lines inside
    code fences never do.
    """

    lines = _split_lines(unescape_markdown(markdown))
    boundary = next(
        (
            index
            for index, line in _iter_unfenced(lines)
            if _is_heading_line(line) or _NUMERIC_HEADING_RE.match(line)
        ),
        len(lines),
    )
    return _build_preface(lines[:boundary], locale)
