"""Canonical data structures shared by the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DocumentFormat(str, Enum):
    DOCX = "docx"
    PDF = "pdf"
    PLAIN = "plain"
    HTML = "html"
    EPUB = "epub"
    IMAGE = "image"


class ConverterKind(str, Enum):
    NATIVE_SCANNER = "native-scanner"
    STRUCTURED_CONVERTER = "structured-converter"
    OCR = "ocr"
    HTML_TRANSDUCER = "html-transducer"
    PLAIN_TEXT = "plain-text"


@dataclass(frozen=True, slots=True)
class RawDocument:
    """Input payload borrowed by the pipeline for one extraction call."""

    data: bytes
    format: DocumentFormat
    filename: str | None = None


@dataclass(frozen=True, slots=True)
class ExtractionHint:
    """Optional caller hints; unset fields fall back to settings."""

    format: str | None = None
    filename: str | None = None
    languages: tuple[str, ...] | None = None
    preserve_layout: bool | None = None
    detect_headings: bool | None = None
    detect_lists: bool | None = None
    timeout_ms: int | None = None


@dataclass(frozen=True, slots=True)
class ExtractionMetadata:
    converter_used: ConverterKind
    processing_time_ms: int = 0
    is_scanned: bool = False
    confidence: float | None = None
    source_format: DocumentFormat | None = None
    title: str | None = None
    author: str | None = None
    language: str | None = None
    word_count: int = 0


@dataclass(frozen=True, slots=True)
class Chapter:
    """One heading-introduced section of the document body."""

    title: str
    level: int
    markdown: str
    html: str
    word_count: int


@dataclass(frozen=True, slots=True)
class Preface:
    """Content preceding the first recognized heading."""

    title: str
    content: str


@dataclass(frozen=True, slots=True)
class DocumentStructure:
    chapters: tuple[Chapter, ...] = ()
    preface: Preface | None = None


@dataclass(slots=True)
class PartialExtraction:
    """Output of one adapter or tier before aggregation.

    Mutable while an adapter assembles it; the aggregator freezes it into an
    ``ExtractionResult``.
    """

    text: str
    markdown: str
    html: str
    converter: ConverterKind
    estimated_pages: int | None = None
    is_scanned: bool = False
    confidence: float | None = None
    title: str | None = None
    author: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Normalized output handed back to the editor."""

    text: str
    html: str
    markdown: str
    estimated_pages: int
    warnings: tuple[str, ...]
    metadata: ExtractionMetadata
    chapters: tuple[Chapter, ...] = ()
    preface: Preface | None = None
