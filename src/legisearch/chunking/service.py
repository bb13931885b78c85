"""Structure-aware chunking of legislative text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple

from legisearch.models import SegmentDraft, SegmentKind

# Markers recognised at the start of a line.
_LINE_MARKER_RE = re.compile(
    r"""
    ^[ \t]*
    (?:
        (?:CHAPTER|Chapter)[ \t]+(?P<chapter>[IVXLCDM]+|\d+)\b
      | (?:SECTION|Section)[ \t]+(?P<section>\d+[A-Z]?)\b
      | (?:CLAUSE|Clause)[ \t]+(?P<clause>\d+[A-Z]?)\b
      | (?P<numbered>\d{1,3}[A-Z]?)\.(?=\s)
      | (?P<preamble>PREAMBLE)\b
      | (?:THE[ \t]+)?(?:(?P<ordinal>FIRST|SECOND|THIRD|FOURTH|FIFTH|SIXTH)[ \t]+)?(?P<schedule>SCHEDULE)\b
    )
    """,
    re.MULTILINE | re.VERBOSE,
)

# Section/Clause headings after a full stop on the same line. The number must
# be followed by heading punctuation, so cross-references such as
# "Section 5 of the principal Act" stay inside their sentence.
_INLINE_MARKER_RE = re.compile(
    r"(?<=\.)[ \t]+(?:(?:Section|SECTION)[ \t]+(?P<section>\d+[A-Z]?)|(?:Clause|CLAUSE)[ \t]+(?P<clause>\d+[A-Z]?))"
    r"(?=[ \t]*[.:\-–—])",
)

_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_HEADING_PUNCTUATION = " \t\n.:-–—"


@dataclass(frozen=True)
class ChunkerConfig:
    """Configuration for structural chunking."""

    # pieces shorter than this after trimming are dropped
    min_chars: int = 5


@dataclass(frozen=True)
class _Marker:
    start: int
    heading_end: int
    kind: SegmentKind
    identifier: str


class Chunker(Protocol):
    def chunk(self, text: str) -> Sequence[SegmentDraft]:
        """Split text into ordered, labeled segments."""


def _line_marker(match: re.Match[str]) -> Tuple[SegmentKind, str]:
    if match.group("chapter"):
        return SegmentKind.CHAPTER, f"Chapter {match.group('chapter')}"
    if match.group("section"):
        return SegmentKind.SECTION, f"Section {match.group('section')}"
    if match.group("clause"):
        return SegmentKind.CLAUSE, f"Clause {match.group('clause')}"
    if match.group("numbered"):
        return SegmentKind.CLAUSE, f"Clause {match.group('numbered')}"
    if match.group("preamble"):
        return SegmentKind.PREAMBLE, "Preamble"
    ordinal = match.group("ordinal")
    return SegmentKind.SCHEDULE, f"{ordinal.title()} Schedule" if ordinal else "Schedule"


def _find_markers(text: str) -> List[_Marker]:
    markers: List[_Marker] = []
    for match in _LINE_MARKER_RE.finditer(text):
        kind, identifier = _line_marker(match)
        leading = len(match.group(0)) - len(match.group(0).lstrip(" \t"))
        markers.append(_Marker(match.start() + leading, match.end(), kind, identifier))
    for match in _INLINE_MARKER_RE.finditer(text):
        if match.group("section"):
            kind, identifier = SegmentKind.SECTION, f"Section {match.group('section')}"
        else:
            kind, identifier = SegmentKind.CLAUSE, f"Clause {match.group('clause')}"
        leading = len(match.group(0)) - len(match.group(0).lstrip(" \t"))
        markers.append(_Marker(match.start() + leading, match.end(), kind, identifier))
    markers.sort(key=lambda marker: marker.start)
    return markers


class StructuralChunker:
    """Split bills along chapter/section/clause markers, else by paragraph.

    Pure and deterministic: the same text always yields the same segments,
    indexed 0..k-1 in reading order.
    """

    def __init__(self, config: ChunkerConfig | None = None) -> None:
        self._config = config or ChunkerConfig()

    def chunk(self, text: str) -> Sequence[SegmentDraft]:
        markers = _find_markers(text)
        pieces = self._split_structured(text, markers) if markers else []
        if not pieces:
            pieces = self._split_paragraphs(text)
        return [
            SegmentDraft(index=index, kind=kind, identifier=identifier, content=content)
            for index, (kind, identifier, content) in enumerate(pieces)
        ]

    def _split_structured(
        self,
        text: str,
        markers: Sequence[_Marker],
    ) -> List[Tuple[SegmentKind, str | None, str]]:
        pieces: List[Tuple[SegmentKind, str | None, str]] = []
        self._append(pieces, SegmentKind.PREAMBLE, "Preamble", text[: markers[0].start])
        for position, marker in enumerate(markers):
            end = markers[position + 1].start if position + 1 < len(markers) else len(text)
            body = text[marker.heading_end : end].lstrip(_HEADING_PUNCTUATION)
            self._append(pieces, marker.kind, marker.identifier, body)
        return pieces

    def _split_paragraphs(self, text: str) -> List[Tuple[SegmentKind, str | None, str]]:
        pieces: List[Tuple[SegmentKind, str | None, str]] = []
        for paragraph in _PARAGRAPH_SPLIT_RE.split(text):
            self._append(pieces, SegmentKind.PARAGRAPH, None, paragraph)
        return pieces

    def _append(
        self,
        pieces: List[Tuple[SegmentKind, str | None, str]],
        kind: SegmentKind,
        identifier: str | None,
        body: str,
    ) -> None:
        content = body.strip()
        if len(content) < self._config.min_chars:
            return
        pieces.append((kind, identifier, content))


def chunk_text(text: str, *, config: ChunkerConfig | None = None) -> Sequence[SegmentDraft]:
    """Convenience helper for tests and ad-hoc chunking."""

    return StructuralChunker(config=config).chunk(text)
