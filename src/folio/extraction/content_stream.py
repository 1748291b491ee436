"""Dependency-free scanner over raw PDF bytes.

Recovers literal text runs painted by the ``Tj`` / ``TJ`` show-text
operators and answers the cheap structural questions the tier chain needs
(scanned or digital, page object count, info-dictionary metadata) without
parsing the object graph.  Compressed content streams are invisible to the
scanner; those documents fall through to the structured converter or OCR.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re

from folio.extraction.normalization import normalize_block_text

_ESCAPES: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "\\": "\\",
    "(": "(",
    ")": ")",
}
_OCTAL_DIGITS = frozenset("01234567")

_LITERAL_NESTING = 3


def _literal_pattern(depth: int) -> str:
    """Literal string allowing balanced unescaped parentheses *depth* levels deep."""

    pattern = r"\((?:\\.|[^\\()])*\)"
    for _ in range(depth):
        pattern = r"\((?:\\.|[^\\()]|" + pattern + r")*\)"
    return pattern


_LITERAL = _literal_pattern(_LITERAL_NESTING)
# Literals may contain "]"; anything else up to the closing bracket is skipped.
_ARRAY = r"\[(?P<array>(?:" + _LITERAL + r"|[^\]()])*)\]"
_SHOW_TEXT_RE = re.compile(_LITERAL + r"\s*Tj", re.DOTALL)
_SHOW_ARRAY_RE = re.compile(_ARRAY + r"\s*TJ", re.DOTALL)
# Either operator, matched in one pass so runs keep content-stream order.
_TEXT_RUN_RE = re.compile(
    r"(?P<single>" + _LITERAL + r")\s*Tj|" + _ARRAY + r"\s*TJ",
    re.DOTALL,
)
_ARRAY_FRAGMENT_RE = re.compile(_LITERAL, re.DOTALL)

_IMAGE_SUBTYPE_RE = re.compile(r"/Subtype\s*/Image")
_XOBJECT_RE = re.compile(r"/XObject")
_PAGE_OBJECT_RE = re.compile(r"/Type\s*/Page\b")
_INFO_FIELD_RE = {
    "title": re.compile(r"/Title\s*\(((?:\\.|[^\\)])*)\)", re.DOTALL),
    "author": re.compile(r"/Author\s*\(((?:\\.|[^\\)])*)\)", re.DOTALL),
}

PDF_MAGIC = b"%PDF-"
_UTF8_BOM = b"\xef\xbb\xbf"


class PdfKind(str, Enum):
    DIGITAL = "digital"
    SCANNED = "scanned"


@dataclass(frozen=True, slots=True)
class ContentSignals:
    has_text_operators: bool
    has_image_markers: bool


def _as_latin1(data: bytes) -> str:
    return data.decode("latin-1")


def decode_pdf_string(value: str) -> str:
    """Apply PDF literal-string escape rules to the inside of ``( … )``."""

    result: list[str] = []
    index = 0
    length = len(value)
    while index < length:
        char = value[index]
        if char != "\\":
            result.append(char)
            index += 1
            continue

        index += 1
        if index >= length:
            break
        escaped = value[index]

        if escaped in _ESCAPES:
            result.append(_ESCAPES[escaped])
            index += 1
            continue

        if escaped in _OCTAL_DIGITS:
            digits = escaped
            index += 1
            while index < length and len(digits) < 3 and value[index] in _OCTAL_DIGITS:
                digits += value[index]
                index += 1
            result.append(chr(int(digits, 8) & 0xFF))
            continue

        # Unknown escapes pass the character through unchanged.
        result.append(escaped)
        index += 1

    return "".join(result)


def scan_text_runs(data: bytes) -> list[str]:
    """Return decoded show-text runs in content-stream order."""

    raw = _as_latin1(data)
    runs: list[str] = []
    for match in _TEXT_RUN_RE.finditer(raw):
        single = match.group("single")
        if single is not None:
            decoded = decode_pdf_string(single[1:-1]).strip()
            if decoded:
                runs.append(decoded)
            continue

        fragments = [
            decode_pdf_string(fragment[1:-1]).strip()
            for fragment in _ARRAY_FRAGMENT_RE.findall(match.group("array") or "")
        ]
        joined = "".join(fragment for fragment in fragments if fragment)
        if joined:
            runs.append(joined)
    return runs


def join_text_runs(runs: list[str]) -> str:
    """Join runs with newlines and normalize whitespace."""

    return normalize_block_text("\n".join(runs))


def has_pdf_header(data: bytes) -> bool:
    """True when the buffer opens with the PDF header, after an optional BOM or whitespace."""

    return data[:1024].removeprefix(_UTF8_BOM).lstrip().startswith(PDF_MAGIC)


def inspect_prefix(data: bytes, *, prefix_bytes: int) -> ContentSignals:
    prefix = _as_latin1(data[:prefix_bytes])
    has_text = bool(_SHOW_TEXT_RE.search(prefix) or _SHOW_ARRAY_RE.search(prefix))
    has_images = bool(_IMAGE_SUBTYPE_RE.search(prefix) or _XOBJECT_RE.search(prefix))
    return ContentSignals(has_text_operators=has_text, has_image_markers=has_images)


def classify_pdf(
    data: bytes,
    *,
    prefix_bytes: int = 50_000,
    assume_scanned_when_uncertain: bool = True,
) -> PdfKind:
    """Decide whether a PDF carries a text layer or only page images.

    Text-show operators win over image markers.  With neither signal the
    document is treated as scanned unless the caller opts out, since OCR is
    always safe to attempt while a false "digital" yields nothing.
    """

    signals = inspect_prefix(data, prefix_bytes=prefix_bytes)
    if signals.has_text_operators:
        return PdfKind.DIGITAL
    if signals.has_image_markers:
        return PdfKind.SCANNED
    return PdfKind.SCANNED if assume_scanned_when_uncertain else PdfKind.DIGITAL


def has_image_objects(data: bytes) -> bool:
    raw = _as_latin1(data)
    return bool(_IMAGE_SUBTYPE_RE.search(raw) or _XOBJECT_RE.search(raw))


def count_page_objects(data: bytes) -> int:
    """Count ``/Type /Page`` dictionaries (``/Pages`` tree nodes excluded)."""

    return len(_PAGE_OBJECT_RE.findall(_as_latin1(data)))


def read_info_metadata(data: bytes) -> dict[str, str]:
    """Best-effort ``/Title`` and ``/Author`` from the info dictionary."""

    raw = _as_latin1(data)
    metadata: dict[str, str] = {}
    for key, pattern in _INFO_FIELD_RE.items():
        match = pattern.search(raw)
        if not match:
            continue
        value = decode_pdf_string(match.group(1)).strip()
        if value:
            metadata[key] = value
    return metadata
