"""OCR engine capability and post-processing of recognized text.

The engine is an explicitly owned object: callers build one
``TesseractEngine`` and thread it through every extraction call.  It caps
the number of concurrent sessions and remembers, per instance, whether the
Tesseract binary is missing so that the warning is logged only once.

pytesseract and Pillow are imported inside the session so the rest of the
pipeline keeps working on hosts without them; a missing binary surfaces as
an ``OcrFailure`` that ``run_ocr`` turns into an empty, zero-confidence
outcome.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from enum import Enum
import io
import logging
import re
import threading
import time
from typing import Iterator, Protocol, runtime_checkable

import pymupdf

from folio.extraction.content_stream import has_pdf_header
from folio.extraction.errors import OcrFailure
from folio.extraction.normalization import collapse_blank_lines, normalize_newlines
from folio.extraction.rendering import escape_html

logger = logging.getLogger(__name__)

_RENDER_DPI = 300
# Automatic page segmentation keeps block/paragraph numbers meaningful.
_TESSERACT_CONFIG = "--oem 3 --psm 3"
_SESSION_ACQUIRE_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class OcrRecognition:
    text: str
    confidence: float


@runtime_checkable
class OcrSession(Protocol):
    def recognize(self, data: bytes) -> OcrRecognition:
        """Recognize text in an image or PDF payload."""

    def terminate(self) -> None:
        """Release the session; must be safe to call more than once."""


@runtime_checkable
class OcrEngine(Protocol):
    def create_session(self, languages: tuple[str, ...]) -> OcrSession:
        """Open a recognition session for the given tesseract languages."""


# ---------------------------------------------------------------------------
# Tesseract engine
# ---------------------------------------------------------------------------

def _is_tesseract_not_found(exc: Exception) -> bool:
    """Return True when *exc* indicates that the Tesseract binary is missing."""
    if "TesseractNotFoundError" in type(exc).__name__:
        return True
    msg = str(exc).lower()
    return "tesseract is not installed" in msg or "tesseract is not in your path" in msg


def _iter_pdf_images(data: bytes) -> Iterator["object"]:
    from PIL import Image

    matrix = pymupdf.Matrix(_RENDER_DPI / 72, _RENDER_DPI / 72)
    with pymupdf.open(stream=data, filetype="pdf") as doc:
        for page in doc:
            pix = page.get_pixmap(matrix=matrix, colorspace=pymupdf.csRGB)
            yield Image.open(io.BytesIO(pix.tobytes("png")))


def _iter_raster_images(data: bytes) -> Iterator["object"]:
    from PIL import Image, ImageSequence

    with Image.open(io.BytesIO(data)) as image:
        for frame in ImageSequence.Iterator(image):
            yield frame.convert("RGB")


def _words_to_text(ocr_data: dict[str, list]) -> tuple[str, list[float]]:
    """Rebuild line/paragraph layout from ``image_to_data`` word boxes."""

    lines: list[str] = []
    confidences: list[float] = []
    current_key: tuple[int, int, int] | None = None
    current_words: list[str] = []

    for index, raw_word in enumerate(ocr_data.get("text", [])):
        word = str(raw_word).strip()
        if not word:
            continue
        key = (
            int(ocr_data["block_num"][index]),
            int(ocr_data["par_num"][index]),
            int(ocr_data["line_num"][index]),
        )
        if key != current_key:
            if current_words:
                lines.append(" ".join(current_words))
            if current_key is not None and key[:2] != current_key[:2]:
                lines.append("")
            current_key = key
            current_words = []
        current_words.append(word)

        confidence = float(ocr_data["conf"][index])
        if confidence >= 0:
            confidences.append(confidence)

    if current_words:
        lines.append(" ".join(current_words))
    return "\n".join(lines), confidences


class TesseractSession:
    """One recognition session bound to an engine slot."""

    def __init__(self, engine: "TesseractEngine", languages: tuple[str, ...]) -> None:
        self._engine = engine
        self._lang = "+".join(languages) or "eng"
        self._terminated = threading.Event()
        self._released = False
        self._lock = threading.Lock()

    def recognize(self, data: bytes) -> OcrRecognition:
        import pytesseract

        images = _iter_pdf_images(data) if has_pdf_header(data) else _iter_raster_images(data)
        page_texts: list[str] = []
        confidences: list[float] = []

        try:
            for image in images:
                if self._terminated.is_set():
                    raise OcrFailure("OCR session terminated before completion")
                ocr_data = pytesseract.image_to_data(
                    image,
                    lang=self._lang,
                    config=_TESSERACT_CONFIG,
                    output_type=pytesseract.Output.DICT,
                )
                text, page_confidences = _words_to_text(ocr_data)
                page_texts.append(text)
                confidences.extend(page_confidences)
        except OcrFailure:
            raise
        except Exception as exc:
            if _is_tesseract_not_found(exc):
                self._engine.mark_unavailable()
                raise OcrFailure("Tesseract is not installed or not in PATH") from exc
            raise OcrFailure(f"Tesseract failed: {exc}") from exc

        self._engine.mark_available()
        confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.0
        return OcrRecognition(text="\n\n".join(page_texts), confidence=min(max(confidence, 0.0), 1.0))

    def terminate(self) -> None:
        self._terminated.set()
        with self._lock:
            if self._released:
                return
            self._released = True
        self._engine.release_slot()


class TesseractEngine:
    """Process-lifetime OCR capability with bounded concurrent sessions."""

    def __init__(
        self,
        *,
        max_sessions: int = 2,
        acquire_timeout_seconds: float = _SESSION_ACQUIRE_TIMEOUT_SECONDS,
    ) -> None:
        self._slots = threading.BoundedSemaphore(max_sessions)
        self._acquire_timeout = acquire_timeout_seconds
        # None: not probed yet; True: ran successfully; False: binary missing.
        self._available: bool | None = None
        self._state_lock = threading.Lock()

    @property
    def available(self) -> bool | None:
        return self._available

    def create_session(self, languages: tuple[str, ...]) -> TesseractSession:
        if self._available is False:
            raise OcrFailure("Tesseract is not installed or not in PATH")
        if not self._slots.acquire(timeout=self._acquire_timeout):
            raise OcrFailure("OCR engine is busy; no session slot became free")
        return TesseractSession(self, languages)

    def release_slot(self) -> None:
        self._slots.release()

    def mark_available(self) -> None:
        self._available = True

    def mark_unavailable(self) -> None:
        with self._state_lock:
            first_time = self._available is not False
            self._available = False
        if first_time:
            logger.warning(
                "Tesseract is not installed or not in PATH; OCR disabled for this engine. "
                "Scanned documents will report empty content."
            )


# ---------------------------------------------------------------------------
# Post-processing
# ---------------------------------------------------------------------------

_PIPE_AS_L_RE = re.compile(r"(?<=[a-z])\||\|(?=[a-z])")
# Three or more spaced letters; pairs are left alone so "y a" or "o a" survive.
_SPLIT_LETTERS_RE = re.compile(r"(?<!\S)[^\W\d_](?: [^\W\d_]){2,}(?!\S)")
_BLANK_LINE_RE = re.compile(r"^[ \t]+$", re.MULTILINE)
_LIST_LINE_RE = re.compile(r"^(?:[-•*]|(\d+)\.)\s+(.*)$")

# Classic recognition confusions.  Applied only when explicitly enabled:
# rewriting "rn" inside words also damages correct text ("turn", "modern").
OCR_CORRECTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?<=[a-z])rn(?=[a-z])"), "m"),
    (re.compile(r"\bvv(?=[a-z])"), "w"),
    (re.compile(r"(?<=[A-Za-z])0(?=[A-Za-z])"), "o"),
    (re.compile(r"(?<=[a-z])1(?=[a-z])"), "l"),
)


class LineKind(str, Enum):
    HEADING = "heading"
    LIST_ITEM = "list_item"
    PARAGRAPH = "paragraph"
    BLANK = "blank"


@dataclass(frozen=True, slots=True)
class OcrLine:
    kind: LineKind
    text: str
    marker: str = ""


def apply_corrections(text: str) -> str:
    for pattern, replacement in OCR_CORRECTIONS:
        text = pattern.sub(replacement, text)
    return text


def clean_ocr_text(text: str, *, apply_correction_table: bool = False) -> str:
    """Repair common recognition artifacts without touching structure."""

    cleaned = normalize_newlines(text)
    cleaned = _PIPE_AS_L_RE.sub("l", cleaned)
    cleaned = _SPLIT_LETTERS_RE.sub(lambda match: match.group(0).replace(" ", ""), cleaned)
    if apply_correction_table:
        cleaned = apply_corrections(cleaned)
    cleaned = _BLANK_LINE_RE.sub("", cleaned)
    return collapse_blank_lines(cleaned)


def is_heading_line(line: str) -> bool:
    """Uppercase letters and spaces only, at least four characters."""

    if len(line) < 4 or not any(ch.isalpha() for ch in line):
        return False
    return all(ch == " " or (ch.isalpha() and ch.isupper()) for ch in line)


def classify_lines(text: str, *, detect_headings: bool, detect_lists: bool) -> list[OcrLine]:
    lines: list[OcrLine] = []
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not line:
            lines.append(OcrLine(LineKind.BLANK, ""))
            continue
        if detect_headings and is_heading_line(line):
            lines.append(OcrLine(LineKind.HEADING, line))
            continue
        if detect_lists:
            match = _LIST_LINE_RE.match(line)
            if match and match.group(2).strip():
                marker = f"{match.group(1)}." if match.group(1) else "-"
                lines.append(OcrLine(LineKind.LIST_ITEM, match.group(2).strip(), marker))
                continue
        lines.append(OcrLine(LineKind.PARAGRAPH, line))
    return lines


def _group_blocks(lines: list[OcrLine], *, preserve_layout: bool) -> list[list[OcrLine]]:
    """Group list runs (and, without layout, paragraph runs) into blocks."""

    blocks: list[list[OcrLine]] = []
    for line in lines:
        if line.kind is LineKind.BLANK:
            blocks.append([])
            continue
        previous = blocks[-1] if blocks and blocks[-1] else None
        joinable = previous is not None and previous[-1].kind is line.kind and (
            (line.kind is LineKind.LIST_ITEM and (line.marker == "-") == (previous[-1].marker == "-"))
            or (line.kind is LineKind.PARAGRAPH and not preserve_layout)
        )
        if joinable:
            previous.append(line)
        else:
            blocks.append([line])
    return [block for block in blocks if block]


def render_lines(lines: list[OcrLine], *, preserve_layout: bool) -> tuple[str, str]:
    """Mirror classified lines into (markdown, html)."""

    markdown_blocks: list[str] = []
    html_blocks: list[str] = []

    for block in _group_blocks(lines, preserve_layout=preserve_layout):
        kind = block[0].kind
        if kind is LineKind.HEADING:
            markdown_blocks.append(f"# {block[0].text}")
            html_blocks.append(f"<h1>{escape_html(block[0].text)}</h1>")
        elif kind is LineKind.LIST_ITEM:
            markdown_blocks.append("\n".join(f"{line.marker} {line.text}" for line in block))
            tag = "ul" if block[0].marker == "-" else "ol"
            items = "".join(f"<li>{escape_html(line.text)}</li>" for line in block)
            html_blocks.append(f"<{tag}>{items}</{tag}>")
        else:
            paragraph = " ".join(line.text for line in block)
            markdown_blocks.append(paragraph)
            html_blocks.append(f"<p>{escape_html(paragraph)}</p>")

    return "\n\n".join(markdown_blocks), "\n".join(html_blocks)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class OcrOptions:
    languages: tuple[str, ...] = ("eng", "spa")
    detect_headings: bool = True
    detect_lists: bool = True
    preserve_layout: bool = True
    apply_corrections: bool = False
    timeout_ms: int = 120_000
    slow_seconds: float = 30.0
    low_confidence: float = 0.5


@dataclass(slots=True)
class OcrOutcome:
    text: str
    markdown: str
    html: str
    confidence: float
    processing_time_ms: int
    warnings: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


def _failed_outcome(reason: str, started: float, warnings: list[str]) -> OcrOutcome:
    warnings.append(f"OCR failed: {reason}. No text could be recognized.")
    return OcrOutcome(
        text="",
        markdown="",
        html="",
        confidence=0.0,
        processing_time_ms=int((time.monotonic() - started) * 1000),
        warnings=warnings,
    )


def run_ocr(engine: OcrEngine, data: bytes, options: OcrOptions) -> OcrOutcome:
    """Recognize *data* and post-process it; never raises.

    The engine session is terminated on every exit path.  A timeout or engine
    error yields an empty outcome with confidence 0 and a warning.
    """

    started = time.monotonic()
    warnings: list[str] = []

    try:
        session = engine.create_session(options.languages)
    except OcrFailure as exc:
        return _failed_outcome(str(exc), started, warnings)
    except Exception as exc:
        logger.warning("OCR session could not be created: %s", exc)
        return _failed_outcome(f"could not start OCR engine ({exc})", started, warnings)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="folio-ocr")
    try:
        future = executor.submit(session.recognize, data)
        recognition = future.result(timeout=options.timeout_ms / 1000)
    except FutureTimeout:
        logger.warning("OCR exceeded timeout of %d ms", options.timeout_ms)
        return _failed_outcome(f"timed out after {options.timeout_ms} ms", started, warnings)
    except OcrFailure as exc:
        return _failed_outcome(str(exc), started, warnings)
    except Exception as exc:
        logger.warning("OCR engine raised: %s", exc)
        return _failed_outcome(str(exc) or type(exc).__name__, started, warnings)
    finally:
        session.terminate()
        executor.shutdown(wait=False, cancel_futures=True)

    elapsed = time.monotonic() - started
    if elapsed > options.slow_seconds:
        warnings.append(
            f"OCR took {elapsed:.0f}s; this is a large document and recognition may be incomplete."
        )

    confidence = min(max(recognition.confidence, 0.0), 1.0)
    if confidence < options.low_confidence:
        warnings.append(
            f"Low OCR confidence ({confidence:.0%}). Review the recognized text carefully."
        )

    text = clean_ocr_text(recognition.text, apply_correction_table=options.apply_corrections)
    lines = classify_lines(text, detect_headings=options.detect_headings, detect_lists=options.detect_lists)
    markdown, html = render_lines(lines, preserve_layout=options.preserve_layout)

    return OcrOutcome(
        text=text,
        markdown=markdown,
        html=html,
        confidence=confidence,
        processing_time_ms=int(elapsed * 1000),
        warnings=warnings,
    )
