from __future__ import annotations

import io
import zipfile

import pytest

from folio.extraction.errors import UnsupportedFormat
from folio.extraction.models import DocumentFormat, ExtractionHint
from folio.extraction.router import detect_format, format_from_hint


def _zip_bytes(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, payload in entries.items():
            archive.writestr(name, payload)
    return buffer.getvalue()


@pytest.mark.parametrize(
    ("hint", "expected"),
    [
        ("pdf", DocumentFormat.PDF),
        (".DOCX", DocumentFormat.DOCX),
        ("manuscript.md", DocumentFormat.PLAIN),
        ("text/html; charset=utf-8", DocumentFormat.HTML),
        ("application/epub+zip", DocumentFormat.EPUB),
        ("image/png", DocumentFormat.IMAGE),
        ("plain", DocumentFormat.PLAIN),
        ("application/octet-stream", None),
        (None, None),
    ],
)
def test_format_from_hint(hint: str | None, expected: DocumentFormat | None) -> None:
    assert format_from_hint(hint) == expected


@pytest.mark.parametrize("hint", [".doc", "rtf", "novel.odt", "application/msword"])
def test_known_unsupported_hints_fail_immediately(hint: str) -> None:
    with pytest.raises(UnsupportedFormat):
        format_from_hint(hint)


def test_hint_is_trusted_over_content() -> None:
    hint = ExtractionHint(format="txt")

    assert detect_format(b"%PDF-1.4 looks like pdf", hint) is DocumentFormat.PLAIN


def test_filename_is_used_when_format_is_missing() -> None:
    assert detect_format(b"anything", ExtractionHint(filename="chapter.html")) is DocumentFormat.HTML


def test_sniffs_pdf_and_office_containers() -> None:
    docx = _zip_bytes({"[Content_Types].xml": b"<Types/>", "word/document.xml": b"<w:document/>"})
    epub = _zip_bytes({"mimetype": b"application/epub+zip", "META-INF/container.xml": b"<container/>"})

    assert detect_format(b"%PDF-1.7\n...") is DocumentFormat.PDF
    assert detect_format(docx) is DocumentFormat.DOCX
    assert detect_format(epub) is DocumentFormat.EPUB


def test_other_zip_archives_are_unsupported() -> None:
    with pytest.raises(UnsupportedFormat):
        detect_format(_zip_bytes({"data.csv": b"a,b"}))


def test_sniffs_images_and_html() -> None:
    assert detect_format(b"\x89PNG\r\n\x1a\n" + b"\x00" * 16) is DocumentFormat.IMAGE
    assert detect_format(b"\xff\xd8\xff\xe0" + b"\x00" * 16) is DocumentFormat.IMAGE
    assert detect_format(b"  <!DOCTYPE html><html><body>x</body></html>") is DocumentFormat.HTML


def test_text_falls_back_to_plain_and_binary_is_rejected() -> None:
    assert detect_format("# Título\n\nTexto".encode("utf-8")) is DocumentFormat.PLAIN
    assert detect_format(b"BMW drivers club newsletter") is DocumentFormat.PLAIN

    with pytest.raises(UnsupportedFormat):
        detect_format(b"\x01\x02\x00\x03binary")


def test_legacy_word_and_empty_input_are_unsupported() -> None:
    with pytest.raises(UnsupportedFormat):
        detect_format(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 32)
    with pytest.raises(UnsupportedFormat):
        detect_format(b"")


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b"Notes about the %PDF header.\n\n# Chapter One\n\nBody.", DocumentFormat.PLAIN),
        (b"<!DOCTYPE html><p>see %PDF-1.7</p>", DocumentFormat.HTML),
        (b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n", DocumentFormat.PDF),
        (b"\xef\xbb\xbf\n  %PDF-1.4\n", DocumentFormat.PDF),
    ],
)
def test_pdf_is_sniffed_from_the_header_only(data: bytes, expected: DocumentFormat) -> None:
    assert detect_format(data) is expected
