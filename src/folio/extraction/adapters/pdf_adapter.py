"""PDF adapter delegating to the tiered extractor."""

from __future__ import annotations

from typing import ClassVar

from folio.extraction.context import ExtractionContext
from folio.extraction.errors import DocumentTooLarge
from folio.extraction.content_stream import count_page_objects
from folio.extraction.models import DocumentFormat, PartialExtraction, RawDocument
from folio.extraction.pdf_tiers import PyMuPdfMarkdownConverter, StructuredPdfConverter, extract_pdf


class PDFAdapter:
    """Extract PDFs through native scan, structured conversion and OCR."""

    format: ClassVar[DocumentFormat] = DocumentFormat.PDF

    def __init__(self, structured_converter: StructuredPdfConverter | None = None) -> None:
        self._structured_converter = structured_converter or PyMuPdfMarkdownConverter()

    def extract(self, document: RawDocument, context: ExtractionContext) -> PartialExtraction:
        max_pages = context.settings.max_pages
        pages = count_page_objects(document.data)
        if pages > max_pages:
            raise DocumentTooLarge(
                f"PDF has {pages} pages; the limit is {max_pages}",
                limit=max_pages,
                actual=pages,
            )
        return extract_pdf(document.data, context, structured_converter=self._structured_converter)
