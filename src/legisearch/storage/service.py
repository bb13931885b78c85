"""Relational metadata store for bills and their segments."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy import Engine, create_engine, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from legisearch.errors import MetadataStoreError
from legisearch.models import (
    DocumentDescriptor,
    DocumentRecord,
    DocumentState,
    SegmentDraft,
    SegmentKind,
    SegmentRecord,
    VectorState,
)
from legisearch.storage.tables import Base, BillChunkRow, BillRow, StaleVectorRow


@dataclass(frozen=True)
class SavedDocument:
    """Result of writing a bill and its full segment set."""

    document: DocumentRecord
    segments: Sequence[SegmentRecord]
    # vector ids of the segment set this write replaced
    stale_vector_ids: Sequence[str]


def _to_document(row: BillRow) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        title=row.title,
        external_number=row.bill_number,
        year=row.year,
        session=row.session,
        status=row.status,
        introduction_date=row.introduction_date,
        source_location=row.pdf_url,
        extracted_text=row.extracted_text,
        ingestion_state=DocumentState(row.ingestion_state),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_segment(row: BillChunkRow) -> SegmentRecord:
    return SegmentRecord(
        id=row.id,
        document_id=row.bill_id,
        index=row.chunk_index,
        kind=SegmentKind(row.chunk_type),
        identifier=row.chunk_identifier,
        content=row.content,
        vector_id=row.embedding_id,
        vector_state=VectorState(row.vector_state),
    )


def create_store_engine(url: str, *, echo: bool = False) -> Engine:
    """Build an engine; SQLite connections are shared across worker threads."""

    if url.startswith("sqlite"):
        kwargs: dict[str, object] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


class MetadataStore:
    """Bill and segment rows, written one document per transaction."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False) -> "MetadataStore":
        return cls(create_store_engine(url, echo=echo))

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._sessions.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            raise MetadataStoreError(f"Metadata store operation failed: {exc}") from exc

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise MetadataStoreError(f"Failed to create schema: {exc}") from exc

    # Reads

    def get_document(self, document_id: UUID) -> DocumentRecord | None:
        with self._session() as session:
            row = session.get(BillRow, document_id)
            return _to_document(row) if row else None

    def get_document_by_number(self, external_number: str) -> DocumentRecord | None:
        with self._session() as session:
            row = session.scalars(select(BillRow).where(BillRow.bill_number == external_number)).first()
            return _to_document(row) if row else None

    def list_documents(self, *, page: int = 1, per_page: int = 20) -> Tuple[List[DocumentRecord], int]:
        """Newest first, with the total row count for pagination."""

        page = max(1, page)
        per_page = max(1, per_page)
        with self._session() as session:
            rows = session.scalars(
                select(BillRow)
                .order_by(BillRow.created_at.desc(), BillRow.bill_number)
                .limit(per_page)
                .offset((page - 1) * per_page),
            ).all()
            total = session.scalar(select(func.count()).select_from(BillRow)) or 0
            return [_to_document(row) for row in rows], int(total)

    def list_segments(self, document_id: UUID) -> List[SegmentRecord]:
        with self._session() as session:
            rows = session.scalars(
                select(BillChunkRow).where(BillChunkRow.bill_id == document_id).order_by(BillChunkRow.chunk_index),
            ).all()
            return [_to_segment(row) for row in rows]

    def count_segments(self, document_id: UUID | None = None) -> int:
        statement = select(func.count()).select_from(BillChunkRow)
        if document_id is not None:
            statement = statement.where(BillChunkRow.bill_id == document_id)
        with self._session() as session:
            return int(session.scalar(statement) or 0)

    def pending_segments(self) -> List[Tuple[DocumentRecord, List[SegmentRecord]]]:
        """Segments written to the store whose vectors have not been confirmed."""

        with self._session() as session:
            rows = session.scalars(
                select(BillChunkRow)
                .where(BillChunkRow.vector_state == VectorState.PENDING.value)
                .order_by(BillChunkRow.bill_id, BillChunkRow.chunk_index),
            ).all()
            grouped: dict[UUID, List[SegmentRecord]] = {}
            for row in rows:
                grouped.setdefault(row.bill_id, []).append(_to_segment(row))
            documents = session.scalars(select(BillRow).where(BillRow.id.in_(list(grouped)))).all()
            return [(_to_document(document), grouped[document.id]) for document in documents]

    def live_vector_ids(self, vector_ids: Sequence[str]) -> Set[str]:
        """Subset of ``vector_ids`` that still belong to a stored segment."""

        if not vector_ids:
            return set()
        with self._session() as session:
            return set(
                session.scalars(
                    select(BillChunkRow.embedding_id).where(BillChunkRow.embedding_id.in_(list(vector_ids))),
                ).all(),
            )

    def stale_vector_ids(self) -> List[str]:
        """Vector ids of replaced segments not yet confirmed deleted from the index."""

        with self._session() as session:
            return list(
                session.scalars(select(StaleVectorRow.vector_id).order_by(StaleVectorRow.created_at)).all(),
            )

    # Writes

    def clear_stale_vectors(self, vector_ids: Sequence[str]) -> None:
        if not vector_ids:
            return
        with self._session() as session:
            session.execute(delete(StaleVectorRow).where(StaleVectorRow.vector_id.in_(list(vector_ids))))

    def save_document(
        self,
        descriptor: DocumentDescriptor,
        text: str,
        segments: Sequence[Tuple[SegmentDraft, str]],
    ) -> SavedDocument:
        """Insert or refresh a bill and replace its full segment set.

        Runs in one transaction: either the bill and every segment are written
        (all ``pending``) or nothing is.
        """

        now = datetime.now(timezone.utc)
        with self._session() as session:
            row = session.scalars(
                select(BillRow).where(BillRow.bill_number == descriptor.external_number),
            ).first()
            stale: List[str] = []
            if row is None:
                row = BillRow(bill_number=descriptor.external_number, created_at=now)
                session.add(row)
            else:
                stale = [
                    vector_id
                    for vector_id in session.scalars(
                        select(BillChunkRow.embedding_id).where(BillChunkRow.bill_id == row.id),
                    ).all()
                    if vector_id
                ]
                session.execute(delete(BillChunkRow).where(BillChunkRow.bill_id == row.id))
                for vector_id in stale:
                    session.merge(StaleVectorRow(vector_id=vector_id, bill_id=row.id, created_at=now))
            row.title = descriptor.title
            row.year = descriptor.year
            row.session = descriptor.session
            row.status = descriptor.status
            row.introduction_date = descriptor.introduction_date
            row.pdf_url = descriptor.source_location
            row.extracted_text = text
            row.ingestion_state = DocumentState.PENDING.value
            row.updated_at = now
            session.flush()

            chunk_rows = [
                BillChunkRow(
                    bill_id=row.id,
                    chunk_index=draft.index,
                    chunk_type=draft.kind.value,
                    chunk_identifier=draft.identifier,
                    content=draft.content,
                    embedding_id=vector_id,
                    vector_state=VectorState.PENDING.value,
                    created_at=now,
                )
                for draft, vector_id in segments
            ]
            session.add_all(chunk_rows)
            session.flush()
            return SavedDocument(
                document=_to_document(row),
                segments=[_to_segment(chunk) for chunk in chunk_rows],
                stale_vector_ids=stale,
            )

    def mark_indexed(self, document_id: UUID, vector_ids: Sequence[str]) -> None:
        """Confirm vectors for a document; the document becomes ``ingested`` once none are pending."""

        with self._session() as session:
            if vector_ids:
                session.execute(
                    update(BillChunkRow)
                    .where(BillChunkRow.bill_id == document_id, BillChunkRow.embedding_id.in_(list(vector_ids)))
                    .values(vector_state=VectorState.INDEXED.value),
                )
            pending = session.scalar(
                select(func.count())
                .select_from(BillChunkRow)
                .where(
                    BillChunkRow.bill_id == document_id,
                    BillChunkRow.vector_state == VectorState.PENDING.value,
                ),
            )
            if not pending:
                session.execute(
                    update(BillRow)
                    .where(BillRow.id == document_id)
                    .values(ingestion_state=DocumentState.INGESTED.value, updated_at=datetime.now(timezone.utc)),
                )
