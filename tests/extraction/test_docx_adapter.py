from __future__ import annotations

import io
import zipfile

import pytest

from folio.extraction.adapters.docx_adapter import (
    DOCXAdapter,
    DocxConversion,
    DocxHtmlConverter,
    MammothDocxConverter,
    document_xml_to_html,
    read_docx_properties,
)
from folio.extraction.config import ExtractionSettings
from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed
from folio.extraction.models import ConverterKind, DocumentFormat, RawDocument

_W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

_CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    "</Types>"
)
_ROOT_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
    'Target="word/document.xml"/>'
    "</Relationships>"
)
_APP = (
    '<Properties xmlns="http://schemas.openxmlformats.org/officeDocument/2006/extended-properties">'
    "<Pages>3</Pages><Words>120</Words></Properties>"
)
_CORE = (
    '<cp:coreProperties xmlns:cp="http://schemas.openxmlformats.org/package/2006/metadata/core-properties" '
    'xmlns:dc="http://purl.org/dc/elements/1.1/">'
    "<dc:title>La casa</dc:title><dc:creator>Ana Pérez</dc:creator></cp:coreProperties>"
)


def _paragraph(text: str, style: str | None = None) -> str:
    props = f'<w:pPr><w:pStyle w:val="{style}"/></w:pPr>' if style else ""
    return f"<w:p>{props}<w:r><w:t>{text}</w:t></w:r></w:p>"


def _document_xml(*paragraphs: str) -> str:
    return f'<w:document xmlns:w="{_W_NS}"><w:body>{"".join(paragraphs)}</w:body></w:document>'


def _docx(document_xml: str, *, properties: bool = True) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", _CONTENT_TYPES)
        archive.writestr("_rels/.rels", _ROOT_RELS)
        archive.writestr("word/document.xml", document_xml)
        if properties:
            archive.writestr("docProps/app.xml", _APP)
            archive.writestr("docProps/core.xml", _CORE)
    return buffer.getvalue()


_MANUSCRIPT = _docx(
    _document_xml(
        _paragraph("Capítulo uno", "Heading1"),
        _paragraph("Había una vez."),
        _paragraph("Parte", "Heading2"),
        _paragraph("Fin."),
    )
)


class FakeConverter:
    def __init__(self, html: str = "", messages: tuple[str, ...] = (), error: Exception | None = None) -> None:
        self._conversion = DocxConversion(value=html, messages=messages)
        self._error = error

    def convert_to_html(self, data: bytes) -> DocxConversion:
        if self._error is not None:
            raise self._error
        return self._conversion


def _extract(data: bytes, converter: DocxHtmlConverter):
    context = ExtractionContext.resolve(ExtractionSettings())
    return DOCXAdapter(converter).extract(RawDocument(data=data, format=DocumentFormat.DOCX), context)


def test_fake_converter_satisfies_protocol() -> None:
    assert isinstance(FakeConverter(), DocxHtmlConverter)


def test_docx_adapter_uses_converter_html_and_properties() -> None:
    converter = FakeConverter(
        "<h1>Uno</h1><p>Texto <em>suave</em></p>",
        messages=("Unrecognised paragraph style: Epígrafe",),
    )

    partial = _extract(_MANUSCRIPT, converter)

    assert partial.converter is ConverterKind.HTML_TRANSDUCER
    assert partial.html == "<h1>Uno</h1><p>Texto <em>suave</em></p>"
    assert partial.markdown == "# Uno\n\nTexto *suave*"
    assert partial.estimated_pages == 3
    assert partial.title == "La casa"
    assert partial.author == "Ana Pérez"
    assert partial.warnings == ["DOCX conversion: Unrecognised paragraph style: Epígrafe"]


def test_empty_conversion_falls_back_to_document_xml() -> None:
    partial = _extract(_MANUSCRIPT, FakeConverter(""))

    assert partial.html == "<h1>Capítulo uno</h1>\n<p>Había una vez.</p>\n<h2>Parte</h2>\n<p>Fin.</p>"
    assert partial.markdown.startswith("# Capítulo uno\n\nHabía una vez.\n\n## Parte")
    assert any("fallback reader" in warning for warning in partial.warnings)


def test_converter_error_is_recorded_and_fallback_used() -> None:
    partial = _extract(_MANUSCRIPT, FakeConverter(error=RuntimeError("boom")))

    assert partial.warnings[0] == "DOCX converter failed: boom"
    assert "Capítulo uno" in partial.text


def test_unreadable_docx_fails_with_warnings() -> None:
    with pytest.raises(ExtractionFailed) as excinfo:
        _extract(b"PK\x03\x04 broken", FakeConverter(error=RuntimeError("boom")))

    assert excinfo.value.warnings[0] == "DOCX converter failed: boom"


def test_docx_without_text_fails() -> None:
    with pytest.raises(ExtractionFailed):
        _extract(_docx(_document_xml("<w:p/>")), FakeConverter(""))


def test_properties_are_optional() -> None:
    properties = read_docx_properties(_docx(_document_xml(_paragraph("x")), properties=False))

    assert properties.pages is None
    assert properties.title is None
    assert read_docx_properties(b"not a zip").pages is None


def test_fallback_maps_title_style_and_escapes_text() -> None:
    html = document_xml_to_html(_docx(_document_xml(_paragraph("A &amp; B", "Title"), _paragraph("x &lt; y"))))

    assert html == "<h1>A &amp; B</h1>\n<p>x &lt; y</p>"


def test_mammoth_converter_reads_minimal_package() -> None:
    conversion = MammothDocxConverter().convert_to_html(_docx(_document_xml(_paragraph("Hello mammoth"))))

    assert "Hello mammoth" in conversion.value
