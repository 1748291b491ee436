from __future__ import annotations

import pytest

from folio.extraction.adapters.txt_adapter import TXTAdapter, decode_text, read_header_fields
from folio.extraction.config import ExtractionSettings
from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed
from folio.extraction.models import ConverterKind, DocumentFormat, RawDocument


def _extract(data: bytes):
    context = ExtractionContext.resolve(ExtractionSettings())
    return TXTAdapter().extract(RawDocument(data=data, format=DocumentFormat.PLAIN), context)


def test_txt_adapter_keeps_markdown_and_reads_spanish_headers() -> None:
    source = "Título: Mi novela\nAutor: Ana Pérez\n\n# Uno\n\nHabía una vez.\n\n\n\n## Dos\n\nFin.\n"

    partial = _extract(source.encode("utf-8"))

    assert partial.converter is ConverterKind.PLAIN_TEXT
    assert partial.title == "Mi novela"
    assert partial.author == "Ana Pérez"
    assert partial.markdown.endswith("# Uno\n\nHabía una vez.\n\n## Dos\n\nFin.")
    assert "# " not in partial.text
    assert "<h1>Uno</h1>" in partial.html
    assert partial.estimated_pages is None


def test_decode_text_strips_utf8_bom_and_normalizes_nothing_else() -> None:
    decoded = decode_text("\ufeffTitle: Moon\r\nBody".encode("utf-8"))

    assert decoded == "Title: Moon\r\nBody"


def test_header_fields_only_take_first_occurrence() -> None:
    fields = read_header_fields("Title: First\nTitle: Second\nAuthor:   \nAUTHOR: Someone\n")

    assert fields == {"title": "First", "author": "Someone"}


def test_blank_text_document_fails() -> None:
    with pytest.raises(ExtractionFailed):
        _extract(b"   \n\n\t\n")
