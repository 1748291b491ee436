"""Text normalization helpers shared by scanners, transducer and OCR."""

from __future__ import annotations

import math
import re

_WHITESPACE_RE = re.compile(r"\s+")
_INLINE_SPACE_RE = re.compile(r"[ \t]+")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def collapse_blank_lines(text: str) -> str:
    """Collapse 3+ consecutive newlines to exactly two and trim."""

    return _EXCESS_NEWLINES_RE.sub("\n\n", text).strip()


def normalize_block_text(text: str) -> str:
    """Normalize line endings and inline spacing while keeping paragraphs."""

    text = normalize_newlines(text)
    text = _INLINE_SPACE_RE.sub(" ", text)
    text = _TRAILING_SPACE_RE.sub("\n", text)
    return collapse_blank_lines(text)


def count_words(text: str) -> int:
    return len([token for token in text.split() if token])


def estimate_pages(word_count: int, *, words_per_page: int) -> int:
    if word_count <= 0:
        return 0
    return math.ceil(word_count / words_per_page)
