"""HTML adapter: decode, keep the body, transduce to Markdown."""

from __future__ import annotations

from typing import ClassVar

from bs4 import BeautifulSoup

from folio.extraction.adapters.txt_adapter import decode_text
from folio.extraction.context import ExtractionContext
from folio.extraction.errors import ExtractionFailed
from folio.extraction.html_markdown import html_to_markdown
from folio.extraction.models import ConverterKind, DocumentFormat, PartialExtraction, RawDocument
from folio.extraction.normalization import normalize_whitespace
from folio.extraction.rendering import markdown_to_text

_NON_CONTENT_TAGS = ("script", "style", "noscript", "template")


def _meta_content(soup: BeautifulSoup, name: str) -> str | None:
    node = soup.find("meta", attrs={"name": name})
    if node is None:
        return None
    return normalize_whitespace(node.get("content") or "") or None


class HTMLAdapter:
    """Extract standalone HTML manuscripts."""

    format: ClassVar[DocumentFormat] = DocumentFormat.HTML

    def extract(self, document: RawDocument, context: ExtractionContext) -> PartialExtraction:
        try:
            decoded = decode_text(document.data)
        except ValueError as exc:
            raise ExtractionFailed("Could not decode HTML document", warnings=(str(exc),)) from exc

        soup = BeautifulSoup(decoded, "lxml")
        for node in soup.find_all(_NON_CONTENT_TAGS):
            node.decompose()

        title = soup.title.get_text(" ", strip=True) if soup.title else None
        body = soup.body or soup
        html = "".join(str(child) for child in body.children).strip()
        markdown = html_to_markdown(html)
        text = markdown_to_text(markdown)
        if not text:
            raise ExtractionFailed("HTML document contains no readable text")

        return PartialExtraction(
            text=text,
            markdown=markdown,
            html=html,
            converter=ConverterKind.HTML_TRANSDUCER,
            title=normalize_whitespace(title) if title else None,
            author=_meta_content(soup, "author"),
        )
