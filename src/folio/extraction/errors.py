"""Error taxonomy for the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ExtractionError(Exception):
    """Base class for errors surfaced by ``extract``."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class UnsupportedFormat(ExtractionError):
    """Input could not be routed to any extraction adapter."""

    format_hint: str | None = None

    def __str__(self) -> str:
        if self.format_hint:
            return f"{self.message} (format={self.format_hint})"
        return self.message


@dataclass(slots=True)
class ExtractionFailed(ExtractionError):
    """Every tier was exhausted without recovering any text."""

    warnings: tuple[str, ...] = ()

    def __str__(self) -> str:
        if not self.warnings:
            return self.message
        return f"{self.message}: " + "; ".join(self.warnings)


@dataclass(slots=True)
class DocumentTooLarge(ExtractionError):
    """Input exceeds the configured byte or page limit."""

    limit: int = 0
    actual: int = 0


@dataclass(slots=True)
class InvalidHint(ExtractionError):
    """A caller hint carries a value outside its allowed range."""


@dataclass(slots=True)
class TierFailure(Exception):
    """Recoverable failure of one tier; becomes a warning, never surfaced."""

    tier: str
    reason: str

    def __str__(self) -> str:
        return f"{self.tier} failed: {self.reason}"


@dataclass(slots=True)
class OcrFailure(Exception):
    """Raised by OCR engines; recovered into a zero-confidence result."""

    reason: str

    def __str__(self) -> str:
        return self.reason
