from __future__ import annotations

import json
from pathlib import Path

import pytest

from folio.cli.extract_document import main as extract_document_main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("FOLIO_LOCALE", "FOLIO_MAX_BYTES", "FOLIO_MAX_PAGES", "FOLIO_OCR_LANGUAGES"):
        monkeypatch.delenv(name, raising=False)


def test_cli_prints_structure_summary_and_writes_markdown(tmp_path: Path, capsys: object) -> None:
    source = tmp_path / "novel.md"
    source.write_text(
        "Prologue\n\nA short note.\n\n# One\n\nThe first chapter text.\n\n## Two\n\nSecond.\n",
        encoding="utf-8",
    )
    markdown_out = tmp_path / "out.md"

    exit_code = extract_document_main(["--path", str(source), "--markdown-out", str(markdown_out)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["path"] == str(source)
    assert payload["format"] == "plain"
    assert payload["converter"] == "plain-text"
    assert payload["is_scanned"] is False
    assert payload["preface"] == {"title": "Prologue", "chars": len("Prologue\n\nA short note.")}
    assert [(chapter["title"], chapter["level"]) for chapter in payload["chapters"]] == [("One", 1), ("Two", 2)]
    assert payload["chapters"][0]["word_count"] == 5
    assert payload["warnings"] == []
    assert markdown_out.read_text(encoding="utf-8").startswith("Prologue\n\nA short note.\n\n# One")


def test_cli_reports_extraction_errors_as_json(tmp_path: Path, capsys: object) -> None:
    source = tmp_path / "legacy.doc"
    source.write_bytes(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 32)

    exit_code = extract_document_main(["--path", str(source)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 1
    assert payload["path"] == str(source)
    assert "not supported" in payload["error"]


def test_cli_rejects_missing_path(tmp_path: Path) -> None:
    assert extract_document_main(["--path", str(tmp_path / "missing.pdf")]) == 2


def test_cli_rejects_invalid_configuration(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "note.txt"
    source.write_text("hello", encoding="utf-8")
    monkeypatch.setenv("FOLIO_LOCALE", "fr")

    assert extract_document_main(["--path", str(source)]) == 2


def test_cli_rejects_non_positive_timeout(tmp_path: Path) -> None:
    source = tmp_path / "note.txt"
    source.write_text("hello", encoding="utf-8")

    assert extract_document_main(["--path", str(source), "--timeout-ms", "0"]) == 2
