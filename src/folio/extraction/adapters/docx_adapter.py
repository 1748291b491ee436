"""DOCX adapter: word-processor HTML conversion followed by transduction."""

from __future__ import annotations

from dataclasses import dataclass
import io
import logging
import re
from typing import ClassVar, Protocol, runtime_checkable
import zipfile

from lxml import etree

from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed
from folio.extraction.html_markdown import html_to_markdown
from folio.extraction.models import ConverterKind, DocumentFormat, PartialExtraction, RawDocument
from folio.extraction.normalization import normalize_whitespace
from folio.extraction.rendering import escape_html, markdown_to_text

logger = logging.getLogger(__name__)

# Word and Spanish-locale style names mapped onto semantic HTML.
MANUSCRIPT_STYLE_MAP = "\n".join(
    [
        "p[style-name='Heading 1'] => h1:fresh",
        "p[style-name='Heading 2'] => h2:fresh",
        "p[style-name='Heading 3'] => h3:fresh",
        "p[style-name='Heading 4'] => h4:fresh",
        "p[style-name='Heading 5'] => h5:fresh",
        "p[style-name='Heading 6'] => h6:fresh",
        "p[style-name='Title'] => h1:fresh",
        "p[style-name='Subtitle'] => h2:fresh",
        "p[style-name='Título'] => h1:fresh",
        "p[style-name='Título 1'] => h1:fresh",
        "p[style-name='Título 2'] => h2:fresh",
        "p[style-name='Título 3'] => h3:fresh",
        "p[style-name='Subtítulo'] => h2:fresh",
        "p[style-name='Capítulo'] => h1:fresh",
        "p[style-name='Sección'] => h2:fresh",
        "p[style-name='Quote'] => blockquote:fresh",
        "p[style-name='Intense Quote'] => blockquote:fresh",
        "p[style-name='Cita'] => blockquote:fresh",
        "p[style-name='Block Text'] => blockquote:fresh",
        "p[style-name='List Bullet'] => ul > li:fresh",
        "p[style-name='List Number'] => ol > li:fresh",
        "p[style-name='Lista con viñetas'] => ul > li:fresh",
        "p[style-name='Lista numerada'] => ol > li:fresh",
        "p[style-name='Code'] => pre:fresh",
        "p[style-name='Código'] => pre:fresh",
        "r[style-name='Énfasis'] => em",
        "r[style-name='Énfasis intenso'] => strong",
        "r[style-name='Fuerte'] => strong",
        "r[style-name='Código de carácter'] => code",
    ]
)

_W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
_APP_NS = "http://schemas.openxmlformats.org/officeDocument/2006/extended-properties"
_CORE_NS = {
    "cp": "http://schemas.openxmlformats.org/package/2006/metadata/core-properties",
    "dc": "http://purl.org/dc/elements/1.1/",
}
_HEADING_STYLE_RE = re.compile(r"^(?:heading|t[ií]?tulo)\s*([1-6])$", re.IGNORECASE)
_TITLE_STYLES = frozenset({"title", "ttulo", "título", "titulo"})

_DOCX_READ_ERRORS = (KeyError, zipfile.BadZipFile, etree.XMLSyntaxError, ValueError)


@dataclass(frozen=True, slots=True)
class DocxConversion:
    value: str
    messages: tuple[str, ...] = ()


@runtime_checkable
class DocxHtmlConverter(Protocol):
    def convert_to_html(self, data: bytes) -> DocxConversion:
        """Convert a DOCX payload to HTML plus converter messages."""


class MammothDocxConverter:
    """DOCX to HTML conversion backed by mammoth with the manuscript style map."""

    def __init__(self, style_map: str = MANUSCRIPT_STYLE_MAP) -> None:
        self._style_map = style_map

    def convert_to_html(self, data: bytes) -> DocxConversion:
        import mammoth

        result = mammoth.convert_to_html(io.BytesIO(data), style_map=self._style_map)
        return DocxConversion(
            value=result.value,
            messages=tuple(message.message for message in result.messages),
        )


@dataclass(frozen=True, slots=True)
class DocxProperties:
    pages: int | None = None
    words: int | None = None
    title: str | None = None
    author: str | None = None


def _safe_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=False)


def _positive_int(value: str | None) -> int | None:
    if not value or not value.strip().isdigit():
        return None
    number = int(value.strip())
    return number if number > 0 else None


def _first_text(root: etree._Element, path: str) -> str | None:
    node = root.find(path, namespaces=_CORE_NS)
    if node is None or not node.text:
        return None
    return normalize_whitespace(node.text) or None


def read_docx_properties(data: bytes) -> DocxProperties:
    """Page/word statistics from ``docProps/app.xml`` plus core title/creator."""

    pages = words = None
    title = author = None
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = set(archive.namelist())
            if "docProps/app.xml" in names:
                app = etree.fromstring(archive.read("docProps/app.xml"), parser=_safe_parser())
                pages = _positive_int(app.findtext(f"{{{_APP_NS}}}Pages"))
                words = _positive_int(app.findtext(f"{{{_APP_NS}}}Words"))
            if "docProps/core.xml" in names:
                core = etree.fromstring(archive.read("docProps/core.xml"), parser=_safe_parser())
                title = _first_text(core, "dc:title")
                author = _first_text(core, "dc:creator")
    except _DOCX_READ_ERRORS as exc:
        logger.warning("DOCX properties could not be read: %s", exc)
        return DocxProperties()
    return DocxProperties(pages=pages, words=words, title=title, author=author)


def _paragraph_tag(paragraph: etree._Element) -> str:
    style = paragraph.find(f"{{{_W_NS}}}pPr/{{{_W_NS}}}pStyle")
    if style is None:
        return "p"
    style_id = (style.get(f"{{{_W_NS}}}val") or "").strip()
    match = _HEADING_STYLE_RE.match(style_id)
    if match:
        return f"h{match.group(1)}"
    if style_id.lower() in _TITLE_STYLES:
        return "h1"
    return "p"


def _paragraph_text(paragraph: etree._Element) -> str:
    parts: list[str] = []
    for node in paragraph.iter(f"{{{_W_NS}}}t", f"{{{_W_NS}}}tab", f"{{{_W_NS}}}br"):
        if node.tag == f"{{{_W_NS}}}t":
            parts.append(node.text or "")
        elif node.tag == f"{{{_W_NS}}}tab":
            parts.append(" ")
        else:
            parts.append("\n")
    return "".join(parts).strip()


def document_xml_to_html(data: bytes) -> str:
    """Fallback conversion straight from ``word/document.xml`` paragraphs.

    Heading paragraph styles become ``<hN>``; everything else is a
    paragraph.  Run formatting is not preserved.
    """

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        root = etree.fromstring(archive.read("word/document.xml"), parser=_safe_parser())

    blocks: list[str] = []
    for paragraph in root.iter(f"{{{_W_NS}}}p"):
        text = _paragraph_text(paragraph)
        if not text:
            continue
        tag = _paragraph_tag(paragraph)
        body = escape_html(text).replace("\n", "<br>")
        blocks.append(f"<{tag}>{body}</{tag}>")
    return "\n".join(blocks)


class DOCXAdapter:
    """Extract DOCX manuscripts through HTML with a raw XML fallback."""

    format: ClassVar[DocumentFormat] = DocumentFormat.DOCX

    def __init__(self, converter: DocxHtmlConverter | None = None) -> None:
        self._converter = converter or MammothDocxConverter()

    def extract(self, document: RawDocument, context: ExtractionContext) -> PartialExtraction:
        warnings: list[str] = []
        html = self._convert(document.data, warnings)

        if not html.strip():
            try:
                html = document_xml_to_html(document.data)
            except _DOCX_READ_ERRORS as exc:
                logger.warning("DOCX document.xml fallback failed: %s", exc)
                warnings.append(f"DOCX fallback reader failed: {exc}")
                raise ExtractionFailed("Could not read the DOCX document", warnings=tuple(warnings)) from exc
            if html:
                warnings.append("DOCX parsed with the fallback reader. Formatting may be lost.")

        markdown = html_to_markdown(html)
        text = markdown_to_text(markdown)
        if not text:
            raise ExtractionFailed("DOCX document contains no readable text", warnings=tuple(warnings))

        properties = read_docx_properties(document.data)
        return PartialExtraction(
            text=text,
            markdown=markdown,
            html=html,
            converter=ConverterKind.HTML_TRANSDUCER,
            estimated_pages=properties.pages,
            title=properties.title,
            author=properties.author,
            warnings=warnings,
        )

    def _convert(self, data: bytes, warnings: list[str]) -> str:
        try:
            conversion = self._converter.convert_to_html(data)
        except Exception as exc:
            logger.warning("DOCX converter failed: %s", exc)
            warnings.append(f"DOCX converter failed: {exc}")
            return ""
        warnings.extend(f"DOCX conversion: {message}" for message in conversion.messages)
        return conversion.value or ""
