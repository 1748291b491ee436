"""Routing entrypoint for document extraction."""

from __future__ import annotations

import logging
import threading
import time

from folio.extraction.adapters import build_default_adapters
from folio.extraction.adapters.base import FormatAdapter
from folio.extraction.adapters.docx_adapter import DocxHtmlConverter
from folio.extraction.aggregator import build_result
from folio.extraction.config import SUPPORTED_LOCALES, ExtractionSettings
from folio.extraction.context import ExtractionContext
from folio.extraction.errors import DocumentTooLarge, ExtractionError, ExtractionFailed, UnsupportedFormat
from folio.extraction.language_detection import detect_language
from folio.extraction.models import DocumentFormat, ExtractionHint, ExtractionResult, RawDocument
from folio.extraction.ocr import OcrEngine, TesseractEngine
from folio.extraction.pdf_tiers import StructuredPdfConverter
from folio.extraction.router import detect_format
from folio.extraction.structure import DEFAULT_LOCALE

logger = logging.getLogger(__name__)


class DocumentExtractor:
    """Route raw bytes to the right adapter and aggregate the outcome."""

    def __init__(
        self,
        settings: ExtractionSettings | None = None,
        *,
        ocr_engine: OcrEngine | None = None,
        docx_converter: DocxHtmlConverter | None = None,
        structured_converter: StructuredPdfConverter | None = None,
    ) -> None:
        self._settings = settings or ExtractionSettings()
        self._ocr_engine = ocr_engine or TesseractEngine(max_sessions=self._settings.ocr_max_sessions)
        self._adapter_map: dict[DocumentFormat, FormatAdapter] = build_default_adapters(
            docx_converter=docx_converter,
            structured_converter=structured_converter,
        )

    @property
    def settings(self) -> ExtractionSettings:
        return self._settings

    @property
    def ocr_engine(self) -> OcrEngine:
        return self._ocr_engine

    @property
    def adapter_map(self) -> dict[DocumentFormat, FormatAdapter]:
        """Registered adapters keyed by format."""

        return dict(self._adapter_map)

    def register_adapter(self, document_format: DocumentFormat, adapter: FormatAdapter) -> None:
        """Register or replace the adapter for a format."""

        self._adapter_map[DocumentFormat(document_format)] = adapter

    def extract(self, data: bytes, hint: ExtractionHint | None = None) -> ExtractionResult:
        """Extract text, Markdown, HTML and the chapter tree from *data*.

        Raises ``UnsupportedFormat`` for unroutable input, ``DocumentTooLarge``
        past the byte or page limit, ``InvalidHint`` for a non-positive
        ``timeout_ms`` and ``ExtractionFailed`` when no text at all could be
        recovered.  All four derive from ``ExtractionError``.
        """

        started = time.monotonic()
        self._check_size(data)

        document_format = detect_format(data, hint)
        adapter = self._adapter_map.get(document_format)
        if adapter is None:
            raise UnsupportedFormat("No adapter registered for format", format_hint=document_format.value)

        context = ExtractionContext.resolve(self._settings, hint, ocr_engine=self._ocr_engine)
        document = RawDocument(data=data, format=document_format, filename=hint.filename if hint else None)
        logger.debug("Extracting %s document (%d bytes)", document_format.value, len(data))

        try:
            partial = adapter.extract(document, context)
        except ExtractionError:
            raise
        except Exception as exc:
            logger.warning("Adapter for %s raised: %s", document_format.value, exc)
            raise ExtractionFailed(f"{document_format.value} extraction failed: {exc}") from exc

        language = detect_language(partial.text) if partial.text.strip() else None
        locale = self._settings.locale or (language if language in SUPPORTED_LOCALES else DEFAULT_LOCALE)

        result = build_result(
            partial,
            source_format=document_format,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            locale=locale,
            language=language,
        )
        if result.estimated_pages > self._settings.max_pages:
            raise DocumentTooLarge(
                f"Document has about {result.estimated_pages} pages; the limit is {self._settings.max_pages}",
                limit=self._settings.max_pages,
                actual=result.estimated_pages,
            )

        logger.info(
            "Extracted %s with %s: %d chapters, %d warnings",
            document_format.value,
            result.metadata.converter_used.value,
            len(result.chapters),
            len(result.warnings),
        )
        return result

    def _check_size(self, data: bytes) -> None:
        limit = self._settings.max_bytes
        if len(data) > limit:
            raise DocumentTooLarge(
                f"Document is {len(data)} bytes; the limit is {limit}",
                limit=limit,
                actual=len(data),
            )


_default_engine: TesseractEngine | None = None
_default_engine_lock = threading.Lock()


def default_ocr_engine(settings: ExtractionSettings | None = None) -> TesseractEngine:
    """Process-wide Tesseract engine shared by one-shot ``extract`` calls.

    Created on first use, so the session limit comes from the settings of
    that first call.  Later calls reuse its session slots and its memory of
    a missing binary.
    """

    global _default_engine
    with _default_engine_lock:
        if _default_engine is None:
            max_sessions = (settings or ExtractionSettings()).ocr_max_sessions
            _default_engine = TesseractEngine(max_sessions=max_sessions)
        return _default_engine


def extract(
    data: bytes,
    hint: ExtractionHint | None = None,
    *,
    ocr_engine: OcrEngine | None = None,
    settings: ExtractionSettings | None = None,
) -> ExtractionResult:
    """One-shot extraction with default adapters and the shared OCR engine."""

    engine = ocr_engine or default_ocr_engine(settings)
    return DocumentExtractor(settings, ocr_engine=engine).extract(data, hint)
