from __future__ import annotations

from folio.extraction.content_stream import (
    PdfKind,
    classify_pdf,
    count_page_objects,
    decode_pdf_string,
    has_image_objects,
    join_text_runs,
    read_info_metadata,
    scan_text_runs,
)


def _raw_pdf(stream: str, *, pages: int = 1, info: str = "", images: bool = False) -> bytes:
    parts = [
        "%PDF-1.4",
        "1 0 obj << /Type /Catalog /Pages 2 0 R >> endobj",
        f"2 0 obj << /Type /Pages /Count {pages} >> endobj",
    ]
    parts += [f"{10 + index} 0 obj << /Type /Page /Parent 2 0 R >> endobj" for index in range(pages)]
    if images:
        parts.append("5 0 obj << /Type /XObject /Subtype /Image /Width 8 /Height 8 >> endobj")
    parts += [f"4 0 obj << /Length {len(stream)} >> stream", stream, "endstream endobj"]
    if info:
        parts.append(f"6 0 obj << {info} >> endobj")
    parts += ["trailer << /Root 1 0 R >>", "%%EOF"]
    return "\n".join(parts).encode("latin-1")


def test_decode_pdf_string_handles_named_and_octal_escapes() -> None:
    assert decode_pdf_string(r"a\(b\)c") == "a(b)c"
    assert decode_pdf_string(r"tab\there") == "tab\there"
    assert decode_pdf_string(r"\101\102") == "AB"
    assert decode_pdf_string(r"\1011") == "A1"
    assert decode_pdf_string(r"back\\slash") == "back\\slash"


def test_decode_pdf_string_passes_unknown_escapes_through() -> None:
    assert decode_pdf_string(r"keep\q") == "keepq"
    assert decode_pdf_string("dangling\\") == "dangling"


def test_scan_text_runs_keeps_content_stream_order() -> None:
    data = _raw_pdf("BT (First line) Tj [(Sec) -250 (ond)] TJ (Third) Tj ET")

    assert scan_text_runs(data) == ["First line", "Second", "Third"]


def test_scan_text_runs_keeps_balanced_parentheses_and_brackets() -> None:
    data = _raw_pdf(r"BT (Hello (world) again) Tj [(a]b) -20 (c \(d\))] TJ (Deep ((x))) Tj ET")

    assert scan_text_runs(data) == ["Hello (world) again", "a]bc (d)", "Deep ((x))"]


def test_scan_text_runs_skips_blank_runs() -> None:
    data = _raw_pdf("BT (   ) Tj [( ) 10 ( )] TJ (Kept) Tj ET")

    assert scan_text_runs(data) == ["Kept"]


def test_join_text_runs_normalizes_whitespace() -> None:
    assert join_text_runs(["Hello   world", "", "", "", "x\t\ty  "]) == "Hello world\n\nx y"


def test_text_operators_win_over_image_markers() -> None:
    data = _raw_pdf("BT (Hello) Tj ET", images=True)

    assert classify_pdf(data) is PdfKind.DIGITAL


def test_image_markers_without_text_mean_scanned() -> None:
    data = _raw_pdf("q 612 0 0 792 0 0 cm /Im0 Do Q", images=True)

    assert classify_pdf(data) is PdfKind.SCANNED
    assert scan_text_runs(data) == []
    assert has_image_objects(data)


def test_uncertain_documents_follow_configured_default() -> None:
    data = _raw_pdf("q Q")

    assert classify_pdf(data) is PdfKind.SCANNED
    assert classify_pdf(data, assume_scanned_when_uncertain=False) is PdfKind.DIGITAL


def test_classification_only_inspects_the_prefix() -> None:
    stream = "BT " + " " * 1000 + "(Late text) Tj ET"
    data = _raw_pdf(stream, images=True)

    assert classify_pdf(data, prefix_bytes=300) is PdfKind.SCANNED
    assert scan_text_runs(data) == ["Late text"]


def test_count_page_objects_ignores_pages_tree_node() -> None:
    assert count_page_objects(_raw_pdf("", pages=3)) == 3
    assert count_page_objects(b"%PDF-1.4\n<< /Type /Pages /Count 0 >>") == 0


def test_read_info_metadata_decodes_title_and_author() -> None:
    data = _raw_pdf("", info="/Title (My \\(First\\) Book) /Author (Ana Ruiz)")

    assert read_info_metadata(data) == {"title": "My (First) Book", "author": "Ana Ruiz"}
    assert read_info_metadata(_raw_pdf("")) == {}
