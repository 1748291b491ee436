"""Shared adapter contract for per-format extraction."""

from __future__ import annotations

from typing import ClassVar, Protocol, runtime_checkable

from folio.extraction.context import ExtractionContext
from folio.extraction.models import DocumentFormat, PartialExtraction, RawDocument


@runtime_checkable
class FormatAdapter(Protocol):
    """Protocol that every format adapter must implement."""

    format: ClassVar[DocumentFormat]

    def extract(self, document: RawDocument, context: ExtractionContext) -> PartialExtraction:
        """Extract a routed document into Markdown, HTML and plain text."""
