"""Format adapter implementations and contracts."""

import logging

from folio.extraction.models import DocumentFormat

from .base import FormatAdapter

logger = logging.getLogger(__name__)

try:
    from .pdf_adapter import PDFAdapter
except ImportError:
    PDFAdapter = None
    logger.warning("PDF support unavailable: install 'pymupdf'")

try:
    from .docx_adapter import DocxConversion, DocxHtmlConverter, DOCXAdapter, MammothDocxConverter
except ImportError:
    DOCXAdapter = None
    DocxConversion = DocxHtmlConverter = MammothDocxConverter = None
    logger.warning("DOCX support unavailable: install 'lxml'")

try:
    from .epub_adapter import EPUBAdapter
except ImportError:
    EPUBAdapter = None
    logger.warning("EPUB support unavailable: install 'EbookLib' and 'beautifulsoup4'")

try:
    from .txt_adapter import TXTAdapter
except ImportError:
    TXTAdapter = None
    logger.warning("Plain-text support unavailable: install 'charset-normalizer'")

try:
    from .html_adapter import HTMLAdapter
except ImportError:
    HTMLAdapter = None
    logger.warning("HTML support unavailable: install 'beautifulsoup4' and 'charset-normalizer'")

from .image_adapter import ImageAdapter


def build_default_adapters(
    *,
    docx_converter=None,
    structured_converter=None,
) -> dict[DocumentFormat, FormatAdapter]:
    """Return the default adapter map keyed by routed format."""
    adapters: dict[DocumentFormat, FormatAdapter] = {}
    if PDFAdapter is not None:
        adapters[DocumentFormat.PDF] = PDFAdapter(structured_converter)
    if DOCXAdapter is not None:
        adapters[DocumentFormat.DOCX] = DOCXAdapter(docx_converter)
    if EPUBAdapter is not None:
        adapters[DocumentFormat.EPUB] = EPUBAdapter()
    if TXTAdapter is not None:
        adapters[DocumentFormat.PLAIN] = TXTAdapter()
    if HTMLAdapter is not None:
        adapters[DocumentFormat.HTML] = HTMLAdapter()
    adapters[DocumentFormat.IMAGE] = ImageAdapter()
    return adapters


__all__ = [
    "FormatAdapter",
    "PDFAdapter",
    "DOCXAdapter",
    "DocxConversion",
    "DocxHtmlConverter",
    "MammothDocxConverter",
    "EPUBAdapter",
    "TXTAdapter",
    "HTMLAdapter",
    "ImageAdapter",
    "build_default_adapters",
]
