"""Tiered PDF extraction: content-stream scan, structured converter, OCR.

Tiers are tried in strict fallback order and the first one that produces
text wins.  A failing tier raises ``TierFailure``; the chain records the
failure as a warning and moves on.  Only when every tier is exhausted does
``extract_pdf`` raise ``ExtractionFailed``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import Callable, Protocol, runtime_checkable

import pymupdf

from folio.extraction.content_stream import (
    PdfKind,
    classify_pdf,
    count_page_objects,
    has_image_objects,
    join_text_runs,
    read_info_metadata,
    scan_text_runs,
)
from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed, TierFailure
from folio.extraction.models import ConverterKind, PartialExtraction
from folio.extraction.normalization import collapse_blank_lines, count_words, estimate_pages, normalize_newlines
from folio.extraction.ocr import run_ocr
from folio.extraction.rendering import markdown_to_html, markdown_to_text

logger = logging.getLogger(__name__)

WORDS_PER_PDF_PAGE = 250
_FEW_RUNS_THRESHOLD = 5

_CHAPTER_LINE_RE = re.compile(r"^(?:chapter|cap[ií]tulo|secci[oó]n|section)\s+\d+", re.IGNORECASE)
_BULLET_LINE_RE = re.compile(r"^[-•*+]\s+(.*)$")
_NUMBERED_LINE_RE = re.compile(r"^(\d+)[.)]\s+(.*)$")


class PdfTier(str, Enum):
    NATIVE_SCANNER = "native-scanner"
    STRUCTURED_CONVERTER = "structured-converter"
    OCR = "ocr"


@runtime_checkable
class StructuredPdfConverter(Protocol):
    def convert(self, data: bytes) -> str:
        """Return Markdown for a PDF payload."""


class PyMuPdfMarkdownConverter:
    """Structured PDF to Markdown conversion backed by pymupdf4llm."""

    def convert(self, data: bytes) -> str:
        import pymupdf4llm

        with pymupdf.open(stream=data, filetype="pdf") as doc:
            return pymupdf4llm.to_markdown(doc)


@dataclass(frozen=True, slots=True)
class PdfRun:
    """Inputs shared by every tier of one PDF extraction."""

    context: ExtractionContext
    kind: PdfKind
    structured_converter: StructuredPdfConverter | None = None


TierFunction = Callable[[bytes, PdfRun], PartialExtraction]


# ---------------------------------------------------------------------------
# Tier A: native content-stream scan
# ---------------------------------------------------------------------------

def _is_likely_heading(line: str, next_line: str) -> bool:
    if len(line) < 100 and len(next_line) > 200:
        return True
    if len(line) > 3 and any(ch.isalpha() for ch in line) and line == line.upper():
        return True
    if line.endswith(":"):
        return True
    return bool(_CHAPTER_LINE_RE.match(line))


def _list_item(line: str) -> str | None:
    numbered = _NUMBERED_LINE_RE.match(line)
    if numbered:
        return f"{numbered.group(1)}. {numbered.group(2).strip()}"
    bullet = _BULLET_LINE_RE.match(line)
    if bullet:
        return f"- {bullet.group(1).strip()}"
    return None


def text_runs_to_markdown(runs: list[str], *, detect_headings: bool = True, detect_lists: bool = True) -> str:
    """Give recovered text runs a heuristic Markdown structure.

    Short lines before long ones, all-caps lines, lines ending in a colon and
    "Chapter N" style lines become ``##``/``###`` headings; bullet and
    numbered lines become list items.
    """

    lines = [run.strip() for run in runs if run.strip()]
    blocks: list[str] = []
    in_list = False

    for index, line in enumerate(lines):
        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        item = _list_item(line) if detect_lists else None

        if item is None and detect_headings and _is_likely_heading(line, next_line):
            level = 2 if len(line) < 50 else 3
            blocks.extend(["", f"{'#' * level} {line}", ""])
            in_list = False
            continue

        if item is not None:
            if not in_list:
                blocks.append("")
                in_list = True
            blocks.append(item)
            continue

        if in_list:
            blocks.append("")
            in_list = False
        blocks.append(line)

    return collapse_blank_lines("\n".join(blocks))


def _run_native_scanner(data: bytes, run: PdfRun) -> PartialExtraction:
    runs = scan_text_runs(data)
    text = join_text_runs(runs)
    if not text:
        raise TierFailure(PdfTier.NATIVE_SCANNER.value, "no text-show operators with readable text")

    markdown = text_runs_to_markdown(
        runs,
        detect_headings=run.context.detect_headings,
        detect_lists=run.context.detect_lists,
    )
    warnings: list[str] = []
    if has_image_objects(data):
        warnings.append("PDF contains images which are not extracted in this import.")
    if len(runs) < _FEW_RUNS_THRESHOLD:
        warnings.append("PDF may be scanned or image-based. Text extraction is limited.")
    if run.context.detect_headings and not any(line.startswith("#") for line in markdown.split("\n")):
        warnings.append("No headings detected. Document structure may not be preserved.")
    warnings.append("PDF parsed with the lightweight content-stream scanner. Some structure may be lost.")

    return PartialExtraction(
        text=text,
        markdown=markdown,
        html=markdown_to_html(markdown),
        converter=ConverterKind.NATIVE_SCANNER,
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Tier B: structured converter
# ---------------------------------------------------------------------------

def _run_structured_converter(data: bytes, run: PdfRun) -> PartialExtraction:
    tier = PdfTier.STRUCTURED_CONVERTER.value
    if run.structured_converter is None:
        raise TierFailure(tier, "no structured converter configured")
    try:
        converted = run.structured_converter.convert(data)
    except Exception as exc:
        logger.warning("Structured PDF converter raised: %s", exc)
        raise TierFailure(tier, str(exc) or type(exc).__name__) from exc

    markdown = collapse_blank_lines(normalize_newlines(converted or ""))
    text = markdown_to_text(markdown)
    if not text:
        raise TierFailure(tier, "converter returned no text")

    return PartialExtraction(
        text=text,
        markdown=markdown,
        html=markdown_to_html(markdown),
        converter=ConverterKind.STRUCTURED_CONVERTER,
    )


# ---------------------------------------------------------------------------
# Tier C: OCR
# ---------------------------------------------------------------------------

def _run_ocr(data: bytes, run: PdfRun) -> PartialExtraction:
    engine = run.context.ocr_engine
    if engine is None:
        raise TierFailure(PdfTier.OCR.value, "no OCR engine configured")

    outcome = run_ocr(engine, data, run.context.ocr_options())
    return PartialExtraction(
        text=outcome.text,
        markdown=outcome.markdown,
        html=outcome.html,
        converter=ConverterKind.OCR,
        is_scanned=True,
        confidence=outcome.confidence,
        warnings=list(outcome.warnings),
    )


_TIER_DISPATCH: dict[PdfTier, TierFunction] = {
    PdfTier.NATIVE_SCANNER: _run_native_scanner,
    PdfTier.STRUCTURED_CONVERTER: _run_structured_converter,
    PdfTier.OCR: _run_ocr,
}


def tier_order(kind: PdfKind, *, prefer_structured: bool = False) -> tuple[PdfTier, ...]:
    """Fallback order for a classified document.

    The native scan always runs early because it is cheapest.  Scanned
    documents skip the structured converter and go straight to OCR.
    """

    if kind is PdfKind.SCANNED:
        return (PdfTier.NATIVE_SCANNER, PdfTier.OCR)
    if prefer_structured:
        return (PdfTier.STRUCTURED_CONVERTER, PdfTier.NATIVE_SCANNER, PdfTier.OCR)
    return (PdfTier.NATIVE_SCANNER, PdfTier.STRUCTURED_CONVERTER, PdfTier.OCR)


def estimate_pdf_pages(data: bytes, text: str) -> int:
    pages = count_page_objects(data)
    if pages:
        return pages
    return estimate_pages(count_words(text), words_per_page=WORDS_PER_PDF_PAGE)


def extract_pdf(
    data: bytes,
    context: ExtractionContext,
    *,
    structured_converter: StructuredPdfConverter | None = None,
) -> PartialExtraction:
    settings = context.settings
    kind = classify_pdf(
        data,
        prefix_bytes=settings.scan_prefix_bytes,
        assume_scanned_when_uncertain=settings.assume_scanned_when_uncertain,
    )
    run = PdfRun(context=context, kind=kind, structured_converter=structured_converter)
    logger.debug("PDF classified as %s", kind.value)

    warnings: list[str] = []
    for tier in tier_order(kind, prefer_structured=settings.prefer_structured_converter):
        logger.debug("Attempting PDF tier %s", tier.value)
        try:
            partial = _TIER_DISPATCH[tier](data, run)
        except TierFailure as exc:
            logger.warning("PDF tier %s failed: %s", tier.value, exc.reason)
            warnings.append(str(exc))
            continue

        logger.info("PDF extracted with tier %s", tier.value)
        info = read_info_metadata(data)
        partial.warnings = warnings + partial.warnings
        partial.is_scanned = partial.is_scanned or kind is PdfKind.SCANNED
        partial.estimated_pages = estimate_pdf_pages(data, partial.text)
        partial.title = partial.title or info.get("title")
        partial.author = partial.author or info.get("author")
        return partial

    raise ExtractionFailed("No text could be extracted from the PDF", warnings=tuple(warnings))
