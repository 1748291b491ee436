"""Plain-text and Markdown adapter with encoding detection."""

from __future__ import annotations

import logging
from typing import ClassVar

from charset_normalizer import from_bytes

from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed
from folio.extraction.models import ConverterKind, DocumentFormat, PartialExtraction, RawDocument
from folio.extraction.normalization import collapse_blank_lines, normalize_newlines, normalize_whitespace
from folio.extraction.rendering import markdown_to_html, markdown_to_text

logger = logging.getLogger(__name__)

_HEADER_FIELDS = {
    "title": "title",
    "author": "author",
    "título": "title",
    "titulo": "title",
    "autor": "author",
}
_BOM = "\ufeff"


def detect_encoding(raw: bytes) -> str:
    best = from_bytes(raw).best()
    if best and best.encoding:
        return best.encoding

    for fallback in ("utf-8", "cp1252"):
        try:
            raw.decode(fallback)
            return fallback
        except UnicodeDecodeError:
            continue
    raise ValueError("Could not detect text encoding")


def decode_text(raw: bytes) -> str:
    encoding = detect_encoding(raw)
    logger.debug("Decoding text payload as %s", encoding)
    return raw.decode(encoding, errors="replace").lstrip(_BOM)


def read_header_fields(text: str) -> dict[str, str]:
    """``Title: …`` / ``Autor: …`` lines near the top of a manuscript."""

    fields: dict[str, str] = {}
    for line in text.splitlines()[:20]:
        normalized = normalize_whitespace(line)
        if not normalized or ":" not in normalized:
            continue
        key, value = normalized.split(":", 1)
        field = _HEADER_FIELDS.get(key.strip().casefold())
        clean_value = normalize_whitespace(value)
        if field and clean_value and field not in fields:
            fields[field] = clean_value
    return fields


class TXTAdapter:
    """Keep plain text and Markdown verbatim; render HTML from it."""

    format: ClassVar[DocumentFormat] = DocumentFormat.PLAIN

    def extract(self, document: RawDocument, context: ExtractionContext) -> PartialExtraction:
        try:
            decoded = decode_text(document.data)
        except ValueError as exc:
            raise ExtractionFailed("Could not decode text document", warnings=(str(exc),)) from exc

        markdown = collapse_blank_lines(normalize_newlines(decoded))
        text = markdown_to_text(markdown)
        if not text:
            raise ExtractionFailed("Text document is empty")

        fields = read_header_fields(markdown)
        return PartialExtraction(
            text=text,
            markdown=markdown,
            html=markdown_to_html(markdown),
            converter=ConverterKind.PLAIN_TEXT,
            title=fields.get("title"),
            author=fields.get("author"),
        )
