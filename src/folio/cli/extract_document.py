"""CLI entrypoint for extracting a manuscript into chapters and preface."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from folio.extraction.config import ExtractionSettings, parse_languages
from folio.extraction.errors import ExtractionError, InvalidHint
from folio.extraction.extractor import DocumentExtractor
from folio.extraction.models import ExtractionHint, ExtractionResult


load_dotenv()

LOGGER = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract chapters, preface and text from a document")
    parser.add_argument("--path", required=True, help="Document to extract")
    parser.add_argument("--format", default=None, help="Format tag, extension or MIME type hint")
    parser.add_argument("--languages", default=None, help="OCR languages, e.g. eng+spa")
    parser.add_argument("--no-headings", action="store_true", help="Disable OCR heading detection")
    parser.add_argument("--no-lists", action="store_true", help="Disable OCR list detection")
    parser.add_argument("--timeout-ms", type=int, default=None, help="OCR time budget in milliseconds")
    parser.add_argument("--markdown-out", default=None, help="Write the extracted Markdown to this path")
    return parser.parse_args(argv)


def _build_hint(args: argparse.Namespace, source: Path) -> ExtractionHint:
    return ExtractionHint(
        format=args.format,
        filename=source.name,
        languages=parse_languages(args.languages) if args.languages else None,
        detect_headings=False if args.no_headings else None,
        detect_lists=False if args.no_lists else None,
        timeout_ms=args.timeout_ms,
    )


def _summarize(source: Path, result: ExtractionResult) -> dict[str, object]:
    metadata = result.metadata
    return {
        "path": str(source),
        "format": metadata.source_format.value if metadata.source_format else None,
        "converter": metadata.converter_used.value,
        "is_scanned": metadata.is_scanned,
        "confidence": metadata.confidence,
        "processing_time_ms": metadata.processing_time_ms,
        "title": metadata.title,
        "author": metadata.author,
        "language": metadata.language,
        "word_count": metadata.word_count,
        "estimated_pages": result.estimated_pages,
        "preface": (
            {"title": result.preface.title, "chars": len(result.preface.content)}
            if result.preface
            else None
        ),
        "chapters": [
            {"title": chapter.title, "level": chapter.level, "word_count": chapter.word_count}
            for chapter in result.chapters
        ],
        "warnings": list(result.warnings),
    }


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.environ.get("FOLIO_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    args = _parse_args(argv)

    source = Path(args.path)
    if not source.is_file():
        LOGGER.error("path must exist and be a file: %s", source)
        return 2

    try:
        settings = ExtractionSettings.from_env()
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    extractor = DocumentExtractor(settings)
    try:
        result = extractor.extract(source.read_bytes(), _build_hint(args, source))
    except InvalidHint as exc:
        LOGGER.error("Invalid options: %s", exc)
        return 2
    except ExtractionError as exc:
        print(json.dumps({"path": str(source), "error": str(exc)}, ensure_ascii=True, indent=2))
        return 1
    except ValueError as exc:
        LOGGER.error("Invalid options: %s", exc)
        return 2

    if args.markdown_out:
        Path(args.markdown_out).write_text(result.markdown, encoding="utf-8")

    print(json.dumps(_summarize(source, result), ensure_ascii=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
