"""EPUB adapter transducing spine documents in reading order."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import ClassVar

import ebooklib
from ebooklib import epub
from bs4 import BeautifulSoup

from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed
from folio.extraction.html_markdown import html_to_markdown
from folio.extraction.models import ConverterKind, DocumentFormat, PartialExtraction, RawDocument
from folio.extraction.normalization import normalize_whitespace
from folio.extraction.rendering import markdown_to_text

logger = logging.getLogger(__name__)


def _first_non_empty(values: list[tuple[str, dict[str, str]]] | None) -> str | None:
    if not values:
        return None
    for value, _attrs in values:
        cleaned = normalize_whitespace(value)
        if cleaned:
            return cleaned
    return None


def _body_html(xhtml: bytes) -> str:
    soup = BeautifulSoup(xhtml, "xml")
    body = soup.body
    if body is None:
        return ""
    return "".join(str(child) for child in body.children).strip()


def _read_book(data: bytes) -> epub.EpubBook:
    # ebooklib reads from a path, so the payload is spooled to disk briefly.
    handle, path = tempfile.mkstemp(suffix=".epub")
    try:
        with os.fdopen(handle, "wb") as stream:
            stream.write(data)
        return epub.read_epub(path)
    finally:
        os.unlink(path)


class EPUBAdapter:
    """Extract EPUB documents item by item in spine order."""

    format: ClassVar[DocumentFormat] = DocumentFormat.EPUB

    def extract(self, document: RawDocument, context: ExtractionContext) -> PartialExtraction:
        try:
            book = _read_book(document.data)
        except Exception as exc:
            logger.warning("EPUB could not be opened: %s", exc)
            raise ExtractionFailed("Could not open the EPUB container", warnings=(str(exc),)) from exc

        sections = self._spine_html(book)
        html = "\n".join(sections)
        markdown = html_to_markdown(html)
        text = markdown_to_text(markdown)
        if not text:
            raise ExtractionFailed("EPUB contains no readable text")

        return PartialExtraction(
            text=text,
            markdown=markdown,
            html=html,
            converter=ConverterKind.HTML_TRANSDUCER,
            title=_first_non_empty(book.get_metadata("DC", "title")),
            author=_first_non_empty(book.get_metadata("DC", "creator")),
        )

    def _spine_html(self, book: epub.EpubBook) -> list[str]:
        sections: list[str] = []
        for spine_entry in book.spine:
            item_id = spine_entry[0] if isinstance(spine_entry, tuple) else spine_entry
            item = book.get_item_with_id(item_id)
            if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
                continue
            # The navigation document is a table of contents, not prose.
            if isinstance(item, epub.EpubNav):
                continue
            body = _body_html(item.get_content())
            if body:
                sections.append(body)
        return sections
