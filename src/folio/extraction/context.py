"""Per-call extraction options resolved from settings and caller hints."""

from __future__ import annotations

from dataclasses import dataclass

from folio.extraction.config import ExtractionSettings
from folio.extraction.errors import InvalidHint
from folio.extraction.models import ExtractionHint
from folio.extraction.ocr import OcrEngine, OcrOptions


@dataclass(frozen=True, slots=True)
class ExtractionContext:
    settings: ExtractionSettings
    languages: tuple[str, ...]
    preserve_layout: bool
    detect_headings: bool
    detect_lists: bool
    timeout_ms: int
    ocr_engine: OcrEngine | None = None
    filename: str | None = None

    @classmethod
    def resolve(
        cls,
        settings: ExtractionSettings,
        hint: ExtractionHint | None = None,
        *,
        ocr_engine: OcrEngine | None = None,
    ) -> "ExtractionContext":
        hint = hint or ExtractionHint()
        timeout_ms = hint.timeout_ms if hint.timeout_ms is not None else settings.ocr_timeout_ms
        if timeout_ms <= 0:
            raise InvalidHint(f"timeout_ms must be positive, got {timeout_ms}")
        return cls(
            settings=settings,
            languages=hint.languages or settings.ocr_languages,
            preserve_layout=_pick(hint.preserve_layout, settings.preserve_layout),
            detect_headings=_pick(hint.detect_headings, settings.detect_headings),
            detect_lists=_pick(hint.detect_lists, settings.detect_lists),
            timeout_ms=timeout_ms,
            ocr_engine=ocr_engine,
            filename=hint.filename,
        )

    def ocr_options(self) -> OcrOptions:
        return OcrOptions(
            languages=self.languages,
            detect_headings=self.detect_headings,
            detect_lists=self.detect_lists,
            preserve_layout=self.preserve_layout,
            apply_corrections=self.settings.apply_ocr_corrections,
            timeout_ms=self.timeout_ms,
            slow_seconds=self.settings.ocr_slow_seconds,
            low_confidence=self.settings.ocr_low_confidence,
        )


def _pick(value: bool | None, default: bool) -> bool:
    return default if value is None else value
