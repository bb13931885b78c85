"""Tests for structural chunking."""

from __future__ import annotations

from legisearch.chunking.service import ChunkerConfig, StructuralChunker, chunk_text
from legisearch.models import SegmentKind
from legisearch.sources.fallback import FALLBACK_TEXTS


def test_inline_clause_markers_split_into_labeled_segments():
    segments = chunk_text("Clause 1. Text A. Clause 2. Text B.")

    assert [(s.index, s.identifier, s.content) for s in segments] == [
        (0, "Clause 1", "Text A."),
        (1, "Clause 2", "Text B."),
    ]
    assert all(s.kind is SegmentKind.CLAUSE for s in segments)


def test_plain_prose_falls_back_to_paragraphs():
    text = "The first paragraph talks about roads.\n\nThe second paragraph talks about rivers."
    segments = chunk_text(text)

    assert [s.kind for s in segments] == [SegmentKind.PARAGRAPH, SegmentKind.PARAGRAPH]
    assert [s.identifier for s in segments] == [None, None]
    assert segments[0].content.startswith("The first")
    assert segments[1].content.startswith("The second")


def test_chapter_heading_keeps_its_own_text():
    text = "CHAPTER I\nPRELIMINARY\n\n1. Short title.-This Act may be called the Test Act.\n2. Definitions.-In this Act, words mean things."
    segments = chunk_text(text)

    assert segments[0].kind is SegmentKind.CHAPTER
    assert segments[0].identifier == "Chapter I"
    assert segments[0].content == "PRELIMINARY"
    assert [s.identifier for s in segments[1:]] == ["Clause 1", "Clause 2"]
    assert segments[1].content.startswith("Short title")


def test_leading_text_becomes_preamble():
    text = "A BILL to provide for testing.\n\nSection 1 This is the first section.\nSection 2 This is the second."
    segments = chunk_text(text)

    assert segments[0].kind is SegmentKind.PREAMBLE
    assert segments[0].identifier == "Preamble"
    assert [s.identifier for s in segments[1:]] == ["Section 1", "Section 2"]


def test_schedule_headings_are_recognised():
    text = "1. Main clause text goes here.\nTHE FIRST SCHEDULE\nList of enactments amended."
    segments = chunk_text(text)

    assert segments[-1].kind is SegmentKind.SCHEDULE
    assert segments[-1].identifier == "First Schedule"
    assert segments[-1].content == "List of enactments amended."


def test_short_segments_are_dropped_and_indices_stay_contiguous():
    text = "Section 1 ok\nSection 2 This one is long enough.\nSection 3 .\nSection 4 Also long enough."
    segments = StructuralChunker(ChunkerConfig(min_chars=5)).chunk(text)

    assert [s.identifier for s in segments] == ["Section 2", "Section 4"]
    assert [s.index for s in segments] == [0, 1]


def test_whitespace_only_text_yields_nothing():
    assert chunk_text("   \n\n  \t ") == []


def test_chunking_is_deterministic_on_real_bill_text():
    text = next(iter(FALLBACK_TEXTS.values()))
    first = chunk_text(text)
    second = chunk_text(text)

    assert first == second
    assert len(first) > 3
    assert [s.index for s in first] == list(range(len(first)))
    assert all(len(s.content) >= 5 for s in first)


def test_inline_cross_references_do_not_split_segments():
    text = (
        "Section 1. Scope of this Act. Section 2. Duties of the Board apply under this Act; "
        "Section 5 of the principal Act applies. Clause 9 of the Schedule is omitted."
    )
    segments = chunk_text(text)

    assert [s.identifier for s in segments] == ["Section 1", "Section 2"]
    assert "Section 5 of the principal Act applies." in segments[1].content
    assert segments[1].content.endswith("Clause 9 of the Schedule is omitted.")
