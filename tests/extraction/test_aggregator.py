from __future__ import annotations

from folio.extraction.aggregator import (
    build_chapters,
    build_result,
    estimate_text_pages,
    extract_html_sections,
)
from folio.extraction.models import ConverterKind, DocumentFormat, PartialExtraction
from folio.extraction.rendering import markdown_to_html
from folio.extraction.structure import extract_chapters


def test_html_sections_split_at_headings_in_order() -> None:
    sections = extract_html_sections("<h1>One</h1><p>Alpha beta</p><h2>Two</h2><p>Gamma</p>")

    assert [(section.title, section.level) for section in sections] == [("One", 1), ("Two", 2)]
    assert sections[0].html == "<h1>One</h1><p>Alpha beta</p>"
    assert sections[0].word_count == 3
    assert sections[1].html == "<h2>Two</h2><p>Gamma</p>"


def test_html_section_stops_at_sibling_containing_heading() -> None:
    sections = extract_html_sections("<h1>A</h1><p>x</p><div><h2>B</h2><p>y</p></div>")

    assert sections[0].html == "<h1>A</h1><p>x</p>"
    assert sections[1].title == "B"
    assert sections[1].html == "<h2>B</h2><p>y</p>"


def test_html_sections_skip_blank_headings() -> None:
    assert extract_html_sections("<h1>  </h1><p>text</p>") == []
    assert extract_html_sections("   ") == []


def test_build_chapters_prefers_html_and_keeps_markdown() -> None:
    markdown = "# Uno\n\nprimer capítulo"
    html = "<h1>Uno</h1><p>primer capítulo</p><h1>Dos</h1><p>segundo</p>"

    chapters = build_chapters(html, markdown, "es")

    assert [chapter.title for chapter in chapters] == ["Uno", "Dos"]
    assert chapters[0].markdown == markdown
    assert chapters[0].html == "<h1>Uno</h1><p>primer capítulo</p>"
    assert chapters[1].markdown == ""
    assert chapters[1].html == "<h1>Dos</h1><p>segundo</p>"


def test_build_chapters_falls_back_to_markdown_only() -> None:
    chapters = build_chapters("", "## Only\n\nbody text", None)

    assert len(chapters) == 1
    assert chapters[0].title == "Only"
    assert chapters[0].level == 2
    assert chapters[0].html == "<h2>Only</h2>\n<p>body text</p>"
    assert chapters[0].word_count == 3


def test_estimate_text_pages() -> None:
    assert estimate_text_pages("") == 0
    assert estimate_text_pages("one two") == 1
    assert estimate_text_pages("word " * 201) == 2


def test_build_result_assembles_metadata_and_structure() -> None:
    markdown = "Intro\n\n# One\n\nbody words here"
    partial = PartialExtraction(
        text="Intro\n\nOne\n\nbody words here",
        markdown=markdown,
        html=markdown_to_html(markdown),
        converter=ConverterKind.PLAIN_TEXT,
        title="Manuscript",
        warnings=["first", "second", "first"],
    )

    result = build_result(
        partial,
        source_format=DocumentFormat.PLAIN,
        processing_time_ms=-5,
        locale="en",
        language="en",
    )

    assert result.warnings == ("first", "second")
    assert result.estimated_pages == 1
    assert result.preface is not None
    assert result.preface.title == "Intro"
    assert [chapter.title for chapter in result.chapters] == ["One"]
    assert result.chapters[0].markdown == "# One\n\nbody words here"
    assert result.metadata.converter_used is ConverterKind.PLAIN_TEXT
    assert result.metadata.source_format is DocumentFormat.PLAIN
    assert result.metadata.processing_time_ms == 0
    assert result.metadata.word_count == 5
    assert result.metadata.title == "Manuscript"
    assert result.metadata.language == "en"


def test_build_result_keeps_adapter_page_estimate() -> None:
    partial = PartialExtraction(
        text="",
        markdown="",
        html="",
        converter=ConverterKind.OCR,
        estimated_pages=0,
        is_scanned=True,
        confidence=0.0,
    )

    result = build_result(partial, source_format=DocumentFormat.IMAGE, processing_time_ms=12)

    assert result.estimated_pages == 0
    assert result.chapters == ()
    assert result.preface is None
    assert result.metadata.is_scanned is True
    assert result.metadata.confidence == 0.0


def test_build_result_pairs_titles_with_markdown_for_indented_headings() -> None:
    markdown = "# One\n\nfirst\n\n  # Two\n\nsecond\n\n# Three\n\nthird words"
    partial = PartialExtraction(
        text="One\n\nfirst\n\nTwo\n\nsecond\n\nThree\n\nthird words",
        markdown=markdown,
        html=markdown_to_html(markdown),
        converter=ConverterKind.PLAIN_TEXT,
    )

    result = build_result(partial, source_format=DocumentFormat.PLAIN, processing_time_ms=1)

    assert [(chapter.title, chapter.level, chapter.markdown) for chapter in result.chapters] == [
        ("One", 1, "# One\n\nfirst"),
        ("Two", 1, "# Two\n\nsecond"),
        ("Three", 1, "# Three\n\nthird words"),
    ]


def test_build_chapters_reuses_given_markdown_chapters() -> None:
    segmented = extract_chapters("# Kept\n\nalready split")

    chapters = build_chapters("", "# Ignored\n\nnot split again", markdown_chapters=segmented)

    assert [(chapter.title, chapter.markdown) for chapter in chapters] == [("Kept", "# Kept\n\nalready split")]
