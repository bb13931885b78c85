"""Tests for the relational metadata store."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from legisearch.errors import MetadataStoreError
from legisearch.models import DocumentDescriptor, DocumentState, SegmentDraft, SegmentKind, VectorState
from legisearch.storage import MetadataStore


def _store(tmp_path: Path) -> MetadataStore:
    store = MetadataStore.from_url(f"sqlite:///{tmp_path / 'meta.db'}")
    store.create_schema()
    return store


def _descriptor(number: str = "7/2024", title: str = "The Seeds Bill No. 7 of 2024") -> DocumentDescriptor:
    return DocumentDescriptor(
        title=title,
        external_number=number,
        year=2024,
        source_location="https://example.org/seeds.pdf",
        session="Budget Session 2024",
        introduction_date=date(2024, 2, 1),
    )


def _drafts(*contents: str) -> list[SegmentDraft]:
    return [
        SegmentDraft(index=position, kind=SegmentKind.SECTION, identifier=f"Section {position + 1}", content=content)
        for position, content in enumerate(contents)
    ]


def test_save_document_writes_bill_and_pending_segments(tmp_path: Path):
    store = _store(tmp_path)
    drafts = _drafts("Seeds must be registered.", "Penalties apply.")

    saved = store.save_document(_descriptor(), "full text", list(zip(drafts, ["a", "b"])))

    assert saved.document.external_number == "7/2024"
    assert saved.document.ingestion_state is DocumentState.PENDING
    assert saved.stale_vector_ids == []
    segments = store.list_segments(saved.document.id)
    assert [(s.index, s.identifier, s.vector_id) for s in segments] == [(0, "Section 1", "a"), (1, "Section 2", "b")]
    assert all(s.vector_state is VectorState.PENDING for s in segments)
    assert store.get_document(saved.document.id).extracted_text == "full text"


def test_mark_indexed_completes_document(tmp_path: Path):
    store = _store(tmp_path)
    saved = store.save_document(_descriptor(), "text", list(zip(_drafts("one two three", "four five six"), ["a", "b"])))

    store.mark_indexed(saved.document.id, ["a"])
    assert store.get_document(saved.document.id).ingestion_state is DocumentState.PENDING
    assert len(store.pending_segments()) == 1

    store.mark_indexed(saved.document.id, ["b"])
    assert store.get_document(saved.document.id).ingestion_state is DocumentState.INGESTED
    assert store.pending_segments() == []


def test_resaving_replaces_segments_and_reports_stale_vectors(tmp_path: Path):
    store = _store(tmp_path)
    first = store.save_document(_descriptor(), "v1", list(zip(_drafts("old one", "old two"), ["a", "b"])))
    second = store.save_document(_descriptor(), "v2", list(zip(_drafts("new only"), ["c"])))

    assert second.document.id == first.document.id
    assert sorted(second.stale_vector_ids) == ["a", "b"]
    assert [s.content for s in store.list_segments(first.document.id)] == ["new only"]
    assert store.count_segments() == 1
    documents, total = store.list_documents()
    assert total == 1
    assert documents[0].extracted_text == "v2"


def test_external_number_is_unique(tmp_path: Path):
    store = _store(tmp_path)
    store.save_document(_descriptor(), "text", [])
    store.save_document(_descriptor(title="The Seeds Bill No. 7 of 2024 (revised)"), "text", [])

    record = store.get_document_by_number("7/2024")
    assert record is not None
    assert record.title.endswith("(revised)")
    assert store.list_documents()[1] == 1
    assert store.get_document_by_number("missing") is None


def test_list_documents_paginates(tmp_path: Path):
    store = _store(tmp_path)
    for number in range(5):
        store.save_document(_descriptor(number=f"{number}/2024", title=f"Bill No. {number} of 2024"), "t", [])

    first_page, total = store.list_documents(page=1, per_page=2)
    last_page, _ = store.list_documents(page=3, per_page=2)

    assert total == 5
    assert len(first_page) == 2
    assert len(last_page) == 1
    middle_page, _ = store.list_documents(page=2, per_page=2)
    seen = {record.external_number for record in first_page + middle_page + last_page}
    assert seen == {f"{number}/2024" for number in range(5)}


def test_in_memory_store_is_shared_across_threads():
    store = MetadataStore.from_url("sqlite://")
    store.create_schema()
    saved = store.save_document(_descriptor(), "text", list(zip(_drafts("only segment"), ["x"])))
    assert store.count_segments(saved.document.id) == 1


def test_storage_failures_raise_store_error(tmp_path: Path):
    store = MetadataStore.from_url(f"sqlite:///{tmp_path / 'empty.db'}")
    with pytest.raises(MetadataStoreError):
        store.list_documents()


def test_replaced_vector_ids_are_tracked_until_cleared(tmp_path: Path):
    store = _store(tmp_path)
    store.save_document(_descriptor(), "v1", list(zip(_drafts("old one", "old two"), ["a", "b"])))
    store.save_document(_descriptor(), "v2", list(zip(_drafts("new only"), ["c"])))

    assert sorted(store.stale_vector_ids()) == ["a", "b"]
    assert store.live_vector_ids(["a", "b", "c"]) == {"c"}
    assert store.live_vector_ids([]) == set()

    store.clear_stale_vectors(["a"])
    assert store.stale_vector_ids() == ["b"]
