"""Document structural extraction pipeline interfaces."""

from .config import ExtractionSettings
from .errors import DocumentTooLarge, ExtractionError, ExtractionFailed, InvalidHint, UnsupportedFormat
from .extractor import DocumentExtractor, extract
from .models import (
    Chapter,
    ConverterKind,
    DocumentFormat,
    ExtractionHint,
    ExtractionMetadata,
    ExtractionResult,
    Preface,
)
from .ocr import TesseractEngine

__all__ = [
    "Chapter",
    "ConverterKind",
    "DocumentExtractor",
    "DocumentFormat",
    "DocumentTooLarge",
    "ExtractionError",
    "ExtractionFailed",
    "ExtractionHint",
    "ExtractionMetadata",
    "ExtractionResult",
    "ExtractionSettings",
    "InvalidHint",
    "Preface",
    "TesseractEngine",
    "UnsupportedFormat",
    "extract",
]
