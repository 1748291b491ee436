"""Language detection for choosing localized structural labels (en/es)."""

from __future__ import annotations

from functools import lru_cache

_LINGUA_TO_ISO: dict[str, str] = {
    "ENGLISH": "en",
    "SPANISH": "es",
    "PORTUGUESE": "pt",
    "FRENCH": "fr",
    "ITALIAN": "it",
    "GERMAN": "de",
}
_FALLBACK_LANGUAGE = "en"


@lru_cache(maxsize=1)
def _get_detector():
    from lingua import Language, LanguageDetectorBuilder

    return (
        LanguageDetectorBuilder.from_languages(
            Language.ENGLISH,
            Language.SPANISH,
            Language.PORTUGUESE,
            Language.FRENCH,
            Language.ITALIAN,
            Language.GERMAN,
        )
        .with_minimum_relative_distance(0.1)
        .build()
    )


def detect_language(text: str, *, sample_chars: int = 3000) -> str:
    """Return an ISO 639-1 code for *text*.

    Only the first *sample_chars* characters are inspected.  Inconclusive
    detection falls back to ``"en"``.
    """
    sample = text[:sample_chars].strip() if text else ""
    if not sample:
        return _FALLBACK_LANGUAGE

    result = _get_detector().detect_language_of(sample)
    if result is None:
        return _FALLBACK_LANGUAGE
    return _LINGUA_TO_ISO.get(result.name.upper(), _FALLBACK_LANGUAGE)
