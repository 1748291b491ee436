"""Assemble the final extraction result and its chapter tree."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Sequence

from bs4 import BeautifulSoup, Tag

from folio.extraction.models import (
    Chapter,
    DocumentFormat,
    ExtractionMetadata,
    ExtractionResult,
    PartialExtraction,
)
from folio.extraction.normalization import count_words, estimate_pages, normalize_whitespace
from folio.extraction.structure import extract_chapters, extract_structure, section_title

logger = logging.getLogger(__name__)

WORDS_PER_TEXT_PAGE = 200
_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


@dataclass(frozen=True, slots=True)
class HtmlSection:
    title: str
    level: int
    html: str
    word_count: int


def _is_heading(node: object) -> bool:
    return isinstance(node, Tag) and node.name in _HEADING_TAGS


def _contains_heading(node: object) -> bool:
    return isinstance(node, Tag) and node.find(_HEADING_TAGS) is not None


def extract_html_sections(html: str) -> list[HtmlSection]:
    """Split HTML at ``h1``-``h6`` elements in document order.

    A section holds its heading plus the following siblings up to the next
    heading (or the next sibling that contains one).
    """

    if not html.strip():
        return []

    soup = BeautifulSoup(html, "html.parser")
    sections: list[HtmlSection] = []

    for heading in soup.find_all(_HEADING_TAGS):
        title = normalize_whitespace(heading.get_text(" ", strip=True))
        if not title:
            continue
        parts = [str(heading)]
        texts = [heading.get_text(" ", strip=True)]
        for sibling in heading.next_siblings:
            if _is_heading(sibling) or _contains_heading(sibling):
                break
            parts.append(str(sibling))
            if isinstance(sibling, Tag):
                texts.append(sibling.get_text(" ", strip=True))
            else:
                texts.append(str(sibling))

        sections.append(
            HtmlSection(
                title=title,
                level=int(heading.name[1]),
                html="".join(parts).strip(),
                word_count=count_words(" ".join(texts)),
            )
        )

    return sections


def build_chapters(
    html: str,
    markdown: str,
    locale: str | None = None,
    *,
    markdown_chapters: Sequence[Chapter] | None = None,
) -> tuple[Chapter, ...]:
    """Merge HTML and Markdown sections index by index.

    HTML fields win when present; Markdown fills the gaps; a section with
    neither title gets a synthesized "Section N" label.  Chapter Markdown
    always comes from the Markdown side.  Pass ``markdown_chapters`` when
    the Markdown has already been segmented.
    """

    html_sections = extract_html_sections(html) if html else []
    if markdown_chapters is None:
        markdown_chapters = extract_chapters(markdown) if markdown else []
    if len(html_sections) != len(markdown_chapters) and html_sections and markdown_chapters:
        logger.debug(
            "HTML and Markdown section counts differ (%d vs %d)",
            len(html_sections),
            len(markdown_chapters),
        )

    chapters: list[Chapter] = []
    for index in range(max(len(html_sections), len(markdown_chapters))):
        html_section = html_sections[index] if index < len(html_sections) else None
        markdown_chapter = markdown_chapters[index] if index < len(markdown_chapters) else None

        title = (html_section.title if html_section else "") or (
            markdown_chapter.title if markdown_chapter else ""
        )
        level = (html_section.level if html_section else 0) or (
            markdown_chapter.level if markdown_chapter else 0
        )
        chapters.append(
            Chapter(
                title=title or section_title(len(chapters) + 1, locale),
                level=level or 1,
                markdown=markdown_chapter.markdown if markdown_chapter else "",
                html=(html_section.html if html_section else "")
                or (markdown_chapter.html if markdown_chapter else ""),
                word_count=(html_section.word_count if html_section else 0)
                or (markdown_chapter.word_count if markdown_chapter else 0),
            )
        )

    return tuple(chapters)


def estimate_text_pages(text: str) -> int:
    return estimate_pages(count_words(text), words_per_page=WORDS_PER_TEXT_PAGE)


def build_result(
    partial: PartialExtraction,
    *,
    source_format: DocumentFormat,
    processing_time_ms: int,
    locale: str | None = None,
    language: str | None = None,
) -> ExtractionResult:
    structure = extract_structure(partial.markdown, locale)
    chapters = build_chapters(
        partial.html,
        partial.markdown,
        locale,
        markdown_chapters=structure.chapters,
    )
    estimated_pages = partial.estimated_pages
    if estimated_pages is None:
        estimated_pages = estimate_text_pages(partial.text)

    metadata = ExtractionMetadata(
        converter_used=partial.converter,
        processing_time_ms=max(0, processing_time_ms),
        is_scanned=partial.is_scanned,
        confidence=partial.confidence,
        source_format=source_format,
        title=partial.title,
        author=partial.author,
        language=language,
        word_count=count_words(partial.text),
    )
    return ExtractionResult(
        text=partial.text,
        html=partial.html,
        markdown=partial.markdown,
        estimated_pages=max(0, estimated_pages),
        warnings=tuple(dict.fromkeys(partial.warnings)),
        metadata=metadata,
        chapters=chapters,
        preface=structure.preface,
    )
