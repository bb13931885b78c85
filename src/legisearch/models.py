"""Shared domain models used across the legisearch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Sequence, Tuple
from uuid import UUID


class SegmentKind(str, Enum):
    """Closed set of structural segment kinds."""

    PREAMBLE = "preamble"
    CHAPTER = "chapter"
    SECTION = "section"
    CLAUSE = "clause"
    SCHEDULE = "schedule"
    PARAGRAPH = "paragraph"


class StepStatus(str, Enum):
    """Outcome tag for degradable pipeline steps."""

    SOURCE = "source"
    FALLBACK = "fallback"
    FATAL = "fatal"


class IngestStatus(str, Enum):
    INGESTED = "ingested"
    SKIPPED_DUPLICATE = "skipped-duplicate"
    SKIPPED_EMPTY = "skipped-empty"
    FAILED = "failed"


class DocumentState(str, Enum):
    PENDING = "pending"
    INGESTED = "ingested"


class VectorState(str, Enum):
    PENDING = "pending"
    INDEXED = "indexed"


def embedding_text(identifier: str | None, content: str) -> str:
    """Text fed to the encoder for a segment: its label gives the content context."""

    if identifier:
        return f"{identifier}\n{content}"
    return content


@dataclass(frozen=True)
class DocumentDescriptor:
    """Lightweight metadata identifying a bill before its text is retrieved."""

    title: str
    external_number: str
    year: int
    source_location: str
    session: str | None = None
    status: str | None = None
    introduction_date: date | None = None


@dataclass(frozen=True)
class DocumentRecord:
    """Stored bill row as seen by downstream readers."""

    id: UUID
    title: str
    external_number: str
    year: int
    session: str | None
    status: str | None
    introduction_date: date | None
    source_location: str | None
    extracted_text: str | None
    ingestion_state: DocumentState
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class SegmentDraft:
    """Chunker output: one labeled piece of a document, in reading order."""

    index: int
    kind: SegmentKind
    identifier: str | None
    content: str

    @property
    def embedding_text(self) -> str:
        return embedding_text(self.identifier, self.content)


@dataclass(frozen=True)
class SegmentRecord:
    """Stored segment row."""

    id: UUID
    document_id: UUID
    index: int
    kind: SegmentKind
    identifier: str | None
    content: str
    vector_id: str | None
    vector_state: VectorState

    @property
    def embedding_text(self) -> str:
        return embedding_text(self.identifier, self.content)


@dataclass(frozen=True)
class EmbeddingVector:
    """Vector-index entry: unit vector, its external id and a payload mirror."""

    vector_id: str
    vector: Tuple[float, ...]
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IndexHit:
    vector_id: str
    payload: Mapping[str, Any]
    score: float


@dataclass(frozen=True)
class SearchResult:
    """Ranked section reference returned by a query. Never persisted."""

    document_id: str
    title: str
    external_number: str
    identifier: str | None
    excerpt: str
    score: float


@dataclass(frozen=True)
class FetchResult:
    descriptors: Sequence[DocumentDescriptor]
    status: StepStatus
    reason: str | None = None

    @property
    def used_fallback(self) -> bool:
        return self.status is StepStatus.FALLBACK


@dataclass(frozen=True)
class ExtractionResult:
    status: StepStatus
    text: str = ""
    reason: str | None = None

    @property
    def used_fallback(self) -> bool:
        return self.status is StepStatus.FALLBACK


@dataclass(frozen=True)
class IngestOutcome:
    """Per-document result of an ingestion run."""

    external_number: str
    title: str
    status: IngestStatus
    document_id: UUID | None = None
    segment_count: int = 0
    used_fallback_text: bool = False
    detail: str | None = None


@dataclass(frozen=True)
class IngestReport:
    outcomes: Sequence[IngestOutcome]
    used_fallback_source: bool = False
    cancelled: bool = False

    def count(self, status: IngestStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)
