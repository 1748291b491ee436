"""Format routing: trust a recognized hint, else sniff the bytes."""

from __future__ import annotations

import io
import logging
from pathlib import PurePath
import zipfile

from folio.extraction.content_stream import has_pdf_header
from folio.extraction.errors import UnsupportedFormat
from folio.extraction.models import DocumentFormat, ExtractionHint

logger = logging.getLogger(__name__)

_SNIFF_BYTES = 4096
_ZIP_MAGIC = b"PK\x03\x04"
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_RTF_MAGIC = b"{\\rtf"
_UTF8_BOM = b"\xef\xbb\xbf"
_UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")

_IMAGE_MAGICS = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",
    b"GIF87a",
    b"GIF89a",
    b"II*\x00",
    b"MM\x00*",
)

_EXTENSION_FORMATS: dict[str, DocumentFormat] = {
    ".docx": DocumentFormat.DOCX,
    ".pdf": DocumentFormat.PDF,
    ".txt": DocumentFormat.PLAIN,
    ".text": DocumentFormat.PLAIN,
    ".md": DocumentFormat.PLAIN,
    ".markdown": DocumentFormat.PLAIN,
    ".html": DocumentFormat.HTML,
    ".htm": DocumentFormat.HTML,
    ".xhtml": DocumentFormat.HTML,
    ".epub": DocumentFormat.EPUB,
    ".png": DocumentFormat.IMAGE,
    ".jpg": DocumentFormat.IMAGE,
    ".jpeg": DocumentFormat.IMAGE,
    ".gif": DocumentFormat.IMAGE,
    ".tif": DocumentFormat.IMAGE,
    ".tiff": DocumentFormat.IMAGE,
    ".bmp": DocumentFormat.IMAGE,
    ".webp": DocumentFormat.IMAGE,
}

_MIME_FORMATS: dict[str, DocumentFormat] = {
    "application/pdf": DocumentFormat.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
    "text/plain": DocumentFormat.PLAIN,
    "text/markdown": DocumentFormat.PLAIN,
    "text/x-markdown": DocumentFormat.PLAIN,
    "text/html": DocumentFormat.HTML,
    "application/xhtml+xml": DocumentFormat.HTML,
    "application/epub+zip": DocumentFormat.EPUB,
}

_TAG_ALIASES: dict[str, DocumentFormat] = {
    "txt": DocumentFormat.PLAIN,
    "text": DocumentFormat.PLAIN,
    "md": DocumentFormat.PLAIN,
    "markdown": DocumentFormat.PLAIN,
    "htm": DocumentFormat.HTML,
}

# Recognized but not extractable; rejected without sniffing.
_UNSUPPORTED_HINTS = frozenset(
    {
        ".doc",
        ".rtf",
        ".odt",
        "doc",
        "rtf",
        "odt",
        "application/msword",
        "application/rtf",
        "text/rtf",
        "application/vnd.oasis.opendocument.text",
    }
)


def format_from_hint(value: str | None) -> DocumentFormat | None:
    """Map a tag, extension, filename or MIME type to a format.

    Returns None for hints that carry no usable information.  Raises
    ``UnsupportedFormat`` for known formats that cannot be extracted.
    """

    if not value:
        return None
    hint = value.strip().lower().split(";", 1)[0].strip()
    if not hint:
        return None

    if hint in _UNSUPPORTED_HINTS:
        raise UnsupportedFormat("Format is recognized but not supported", format_hint=value)

    for candidate in (hint, f".{hint}"):
        if candidate in _EXTENSION_FORMATS:
            return _EXTENSION_FORMATS[candidate]
    if hint in _MIME_FORMATS:
        return _MIME_FORMATS[hint]
    if hint.startswith("image/"):
        return DocumentFormat.IMAGE
    if hint in _TAG_ALIASES:
        return _TAG_ALIASES[hint]
    try:
        return DocumentFormat(hint)
    except ValueError:
        pass

    suffix = PurePath(hint).suffix
    if suffix and suffix != hint:
        if suffix in _UNSUPPORTED_HINTS:
            raise UnsupportedFormat("Format is recognized but not supported", format_hint=value)
        return _EXTENSION_FORMATS.get(suffix)
    return None


def _classify_zip(data: bytes) -> DocumentFormat:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = set(archive.namelist())
            if "word/document.xml" in names:
                return DocumentFormat.DOCX
            if "META-INF/container.xml" in names:
                return DocumentFormat.EPUB
            if "mimetype" in names and archive.read("mimetype").strip() == b"application/epub+zip":
                return DocumentFormat.EPUB
    except zipfile.BadZipFile as exc:
        raise UnsupportedFormat(f"Corrupt ZIP container: {exc}") from exc
    raise UnsupportedFormat("ZIP archive is neither a DOCX nor an EPUB container")


def _looks_like_image(prefix: bytes) -> bool:
    if prefix.startswith(_IMAGE_MAGICS):
        return True
    if prefix.startswith(b"RIFF") and prefix[8:12] == b"WEBP":
        return True
    # BMP: "BM" followed by a file size and four reserved zero bytes.
    return prefix.startswith(b"BM") and len(prefix) >= 26 and prefix[6:10] == b"\x00\x00\x00\x00"


def _looks_like_html(prefix: bytes) -> bool:
    head = prefix.removeprefix(_UTF8_BOM).lstrip().lower()
    return head.startswith((b"<!doctype html", b"<html"))


def sniff_format(data: bytes) -> DocumentFormat:
    prefix = data[:_SNIFF_BYTES]

    if has_pdf_header(data):
        return DocumentFormat.PDF
    if prefix.startswith(_ZIP_MAGIC):
        return _classify_zip(data)
    if prefix.startswith(_OLE2_MAGIC):
        raise UnsupportedFormat("Legacy Word (.doc) documents are not supported; save as .docx")
    if prefix.startswith(_RTF_MAGIC):
        raise UnsupportedFormat("RTF documents are not supported; save as .docx")
    if _looks_like_image(prefix):
        return DocumentFormat.IMAGE
    if _looks_like_html(prefix):
        return DocumentFormat.HTML
    if prefix.startswith(_UTF16_BOMS) or b"\x00" not in prefix:
        return DocumentFormat.PLAIN
    raise UnsupportedFormat("Unrecognized binary content")


def detect_format(data: bytes, hint: ExtractionHint | None = None) -> DocumentFormat:
    """Return the format tag that drives extraction for *data*.

    Order: explicit ``hint.format``, then the ``hint.filename`` extension,
    then magic-byte sniffing.  Plain text is the last resort for content
    without NUL bytes.
    """

    if not data:
        raise UnsupportedFormat("Document is empty")

    if hint is not None:
        for value in (hint.format, hint.filename):
            detected = format_from_hint(value)
            if detected is not None:
                logger.debug("Format %s taken from hint %r", detected.value, value)
                return detected

    detected = sniff_format(data)
    logger.debug("Format %s sniffed from content", detected.value)
    return detected
