"""Image adapter: scanned page images go straight to OCR."""

from __future__ import annotations

import logging
from typing import ClassVar

from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed
from folio.extraction.models import ConverterKind, DocumentFormat, PartialExtraction, RawDocument
from folio.extraction.ocr import run_ocr

logger = logging.getLogger(__name__)


class ImageAdapter:
    format: ClassVar[DocumentFormat] = DocumentFormat.IMAGE

    def extract(self, document: RawDocument, context: ExtractionContext) -> PartialExtraction:
        if context.ocr_engine is None:
            raise ExtractionFailed("Images require OCR but no OCR engine is configured")

        outcome = run_ocr(context.ocr_engine, document.data, context.ocr_options())
        if outcome.is_empty:
            logger.warning("OCR recovered no text from image %s", document.filename or "<bytes>")

        return PartialExtraction(
            text=outcome.text,
            markdown=outcome.markdown,
            html=outcome.html,
            converter=ConverterKind.OCR,
            estimated_pages=1 if not outcome.is_empty else 0,
            is_scanned=True,
            confidence=outcome.confidence,
            warnings=list(outcome.warnings),
        )
