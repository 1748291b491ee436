"""Runtime configuration for the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping


DEFAULT_OCR_LANGUAGES = ("eng", "spa")
DEFAULT_OCR_TIMEOUT_MS = 120_000
DEFAULT_OCR_SLOW_SECONDS = 30.0
DEFAULT_OCR_MAX_SESSIONS = 2
DEFAULT_OCR_LOW_CONFIDENCE = 0.5
DEFAULT_SCAN_PREFIX_BYTES = 50_000
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_MAX_PAGES = 300
SUPPORTED_LOCALES = frozenset({"en", "es"})

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    value = int(raw_value)
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_positive_float(*, name: str, raw_value: str, minimum: float = 0.001) -> float:
    value = float(raw_value)
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_bool(*, name: str, raw_value: str) -> bool:
    lowered = raw_value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw_value!r}")


def parse_languages(raw_value: str) -> tuple[str, ...]:
    """Split ``eng+spa`` / ``eng,spa`` into tesseract language codes."""

    parts = [part.strip() for part in raw_value.replace(",", "+").split("+")]
    return tuple(part for part in parts if part)


@dataclass(frozen=True, slots=True)
class ExtractionSettings:
    """Validated pipeline settings; every field has a working default."""

    ocr_languages: tuple[str, ...] = DEFAULT_OCR_LANGUAGES
    ocr_timeout_ms: int = DEFAULT_OCR_TIMEOUT_MS
    ocr_slow_seconds: float = DEFAULT_OCR_SLOW_SECONDS
    ocr_max_sessions: int = DEFAULT_OCR_MAX_SESSIONS
    ocr_low_confidence: float = DEFAULT_OCR_LOW_CONFIDENCE
    scan_prefix_bytes: int = DEFAULT_SCAN_PREFIX_BYTES
    assume_scanned_when_uncertain: bool = True
    prefer_structured_converter: bool = False
    apply_ocr_corrections: bool = False
    detect_headings: bool = True
    detect_lists: bool = True
    preserve_layout: bool = True
    max_bytes: int = DEFAULT_MAX_BYTES
    max_pages: int = DEFAULT_MAX_PAGES
    locale: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ExtractionSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        languages_raw = source.get("FOLIO_OCR_LANGUAGES", "+".join(DEFAULT_OCR_LANGUAGES)).strip()
        languages = parse_languages(languages_raw)
        if not languages:
            raise ValueError("FOLIO_OCR_LANGUAGES cannot be empty")

        ocr_timeout_ms = _parse_positive_int(
            name="FOLIO_OCR_TIMEOUT_MS",
            raw_value=source.get("FOLIO_OCR_TIMEOUT_MS", str(DEFAULT_OCR_TIMEOUT_MS)).strip(),
            minimum=100,
        )
        ocr_slow_seconds = _parse_positive_float(
            name="FOLIO_OCR_SLOW_SECONDS",
            raw_value=source.get("FOLIO_OCR_SLOW_SECONDS", str(DEFAULT_OCR_SLOW_SECONDS)).strip(),
        )
        ocr_max_sessions = _parse_positive_int(
            name="FOLIO_OCR_MAX_SESSIONS",
            raw_value=source.get("FOLIO_OCR_MAX_SESSIONS", str(DEFAULT_OCR_MAX_SESSIONS)).strip(),
        )
        ocr_low_confidence = float(
            source.get("FOLIO_OCR_LOW_CONFIDENCE", str(DEFAULT_OCR_LOW_CONFIDENCE)).strip()
        )
        if not 0.0 <= ocr_low_confidence <= 1.0:
            raise ValueError("FOLIO_OCR_LOW_CONFIDENCE must be within [0, 1]")

        scan_prefix_bytes = _parse_positive_int(
            name="FOLIO_SCAN_PREFIX_BYTES",
            raw_value=source.get("FOLIO_SCAN_PREFIX_BYTES", str(DEFAULT_SCAN_PREFIX_BYTES)).strip(),
            minimum=1024,
        )
        max_bytes = _parse_positive_int(
            name="FOLIO_MAX_BYTES",
            raw_value=source.get("FOLIO_MAX_BYTES", str(DEFAULT_MAX_BYTES)).strip(),
        )
        max_pages = _parse_positive_int(
            name="FOLIO_MAX_PAGES",
            raw_value=source.get("FOLIO_MAX_PAGES", str(DEFAULT_MAX_PAGES)).strip(),
        )

        locale_raw = source.get("FOLIO_LOCALE", "").strip().lower()
        if locale_raw and locale_raw not in SUPPORTED_LOCALES:
            supported = ", ".join(sorted(SUPPORTED_LOCALES))
            raise ValueError(f"FOLIO_LOCALE must be one of: {supported}")

        return cls(
            ocr_languages=languages,
            ocr_timeout_ms=ocr_timeout_ms,
            ocr_slow_seconds=ocr_slow_seconds,
            ocr_max_sessions=ocr_max_sessions,
            ocr_low_confidence=ocr_low_confidence,
            scan_prefix_bytes=scan_prefix_bytes,
            assume_scanned_when_uncertain=_parse_bool(
                name="FOLIO_ASSUME_SCANNED",
                raw_value=source.get("FOLIO_ASSUME_SCANNED", "true"),
            ),
            prefer_structured_converter=_parse_bool(
                name="FOLIO_PREFER_STRUCTURED",
                raw_value=source.get("FOLIO_PREFER_STRUCTURED", "false"),
            ),
            apply_ocr_corrections=_parse_bool(
                name="FOLIO_APPLY_OCR_CORRECTIONS",
                raw_value=source.get("FOLIO_APPLY_OCR_CORRECTIONS", "false"),
            ),
            max_bytes=max_bytes,
            max_pages=max_pages,
            locale=locale_raw or None,
        )
