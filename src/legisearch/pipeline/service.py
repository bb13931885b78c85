"""Pipeline orchestration: ingestion, index setup, search and reconciliation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple
from uuid import UUID, uuid4

from legisearch.chunking.service import Chunker, ChunkerConfig, StructuralChunker
from legisearch.config import Settings, get_settings
from legisearch.embeddings.service import EmbeddingConfig, EmbeddingEngine, get_embedding_backend
from legisearch.embeddings.store import TEXT_KEY, ChromaVectorIndex, IndexConfig, VectorIndex
from legisearch.errors import VectorIndexUnavailableError
from legisearch.extraction.service import ExtractorConfig, PDFTextExtractor, TextExtractor
from legisearch.metrics.observability import (
    PipelineMetrics,
    TimedSection,
    bind_correlation_id,
    clear_correlation_id,
    get_logger,
)
from legisearch.models import (
    DocumentDescriptor,
    DocumentRecord,
    DocumentState,
    EmbeddingVector,
    IngestOutcome,
    IngestReport,
    IngestStatus,
    SearchResult,
    SegmentDraft,
    StepStatus,
)
from legisearch.retrieval.service import RetrievalConfig, Retriever, SemanticRetriever
from legisearch.sources.service import DocumentFetcher, FetcherConfig, PRSBillFetcher
from legisearch.storage.service import MetadataStore, SavedDocument


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for the orchestrator."""

    # documents processed at once; bounds source load and inference memory
    concurrency: int = 2
    index_timeout_seconds: float = 30.0
    default_ingest_count: int = 5


def build_payload(document: DocumentRecord, index: int, kind: str, identifier: str | None, content: str) -> Dict[str, Any]:
    """Display fields mirrored next to each vector."""

    return {
        "document_id": str(document.id),
        "title": document.title,
        "external_number": document.external_number,
        "year": document.year,
        "kind": kind,
        "identifier": identifier,
        "index": index,
        TEXT_KEY: content,
    }


class IngestionPipeline:
    """Wires fetch, extract, chunk, embed and the two stores together.

    Each document is written to the metadata store first (segments
    ``pending``), then upserted to the vector index, and only then marked
    ``ingested``. An upsert failure leaves the document pending for
    :meth:`reconcile` and propagates.
    """

    def __init__(
        self,
        *,
        fetcher: DocumentFetcher,
        extractor: TextExtractor,
        chunker: Chunker,
        engine: EmbeddingEngine,
        index: VectorIndex,
        store: MetadataStore,
        retriever: Retriever | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._extractor = extractor
        self._chunker = chunker
        self._engine = engine
        self._index = index
        self._store = store
        self._config = config or PipelineConfig()
        self._retriever = retriever or SemanticRetriever(
            engine,
            index,
            RetrievalConfig(timeout_seconds=self._config.index_timeout_seconds),
            live_filter=store.live_vector_ids,
        )
        self._logger = get_logger("pipeline")

    @property
    def store(self) -> MetadataStore:
        return self._store

    @property
    def index(self) -> VectorIndex:
        return self._index

    async def init_index(self, *, reset: bool = False) -> None:
        """Create the metadata schema and the vector collection; idempotent unless ``reset``.

        Also loads the embedding model, so a missing model fails here rather
        than halfway through a run.
        """

        await asyncio.to_thread(self._store.create_schema)
        await self._index_call(lambda: self._index.init(reset=reset))
        await self._engine.warm_up()
        self._logger.info("pipeline.initialised", reset=reset)

    async def search(self, query: str, *, top_k: int | None = None) -> Sequence[SearchResult]:
        return await self._retriever.search(query, top_k=top_k)

    async def ingest(
        self,
        count: int | None = None,
        *,
        force_update: bool = False,
        stop: asyncio.Event | None = None,
    ) -> IngestReport:
        """Fetch up to ``count`` bills and ingest each, reporting one outcome per bill."""

        run_id = uuid4().hex
        bind_correlation_id(run_id)
        try:
            limit = self._config.default_ingest_count if count is None else count
            fetched = await self._fetcher.fetch(limit)
            self._logger.info(
                "ingest.start",
                requested=limit,
                fetched=len(fetched.descriptors),
                used_fallback=fetched.used_fallback,
                force_update=force_update,
            )
            unique, repeated = self._split_repeats(fetched.descriptors)
            outcomes = await self._ingest_all(unique, force_update=force_update, stop=stop)
            for descriptor in repeated:
                outcomes.append(
                    self._outcome(descriptor, IngestStatus.SKIPPED_DUPLICATE, detail="repeated in source listing"),
                )
            cancelled = stop is not None and stop.is_set()
            report = IngestReport(outcomes=outcomes, used_fallback_source=fetched.used_fallback, cancelled=cancelled)
            self._logger.info(
                "ingest.complete",
                ingested=report.count(IngestStatus.INGESTED),
                skipped_duplicate=report.count(IngestStatus.SKIPPED_DUPLICATE),
                skipped_empty=report.count(IngestStatus.SKIPPED_EMPTY),
                failed=report.count(IngestStatus.FAILED),
                cancelled=cancelled,
            )
            return report
        finally:
            clear_correlation_id()

    async def reconcile(self) -> int:
        """Finish interrupted index writes.

        Deletes vectors of replaced segments that are still recorded as stale,
        then re-embeds and upserts every segment still waiting for its vector.
        Returns the number of segments indexed.
        """

        stale = await asyncio.to_thread(self._store.stale_vector_ids)
        if stale:
            await self._delete_stale(stale)
            self._logger.info("reconcile.stale_deleted", count=len(stale))

        pending = await asyncio.to_thread(self._store.pending_segments)
        repaired = 0
        for document, segments in pending:
            vectors = await self._engine.embed([segment.embedding_text for segment in segments])
            entries: List[EmbeddingVector] = []
            for segment, vector in zip(segments, vectors, strict=True):
                vector_id = segment.vector_id or str(uuid4())
                payload = build_payload(document, segment.index, segment.kind.value, segment.identifier, segment.content)
                entries.append(EmbeddingVector(vector_id=vector_id, vector=vector, payload=payload))
            await self._index_call(lambda: self._index.upsert(entries))
            await asyncio.to_thread(self._store.mark_indexed, document.id, [entry.vector_id for entry in entries])
            repaired += len(entries)
            self._logger.info(
                "reconcile.document",
                document_id=str(document.id),
                external_number=document.external_number,
                segment_count=len(entries),
            )
        self._logger.info("reconcile.complete", documents=len(pending), segments=repaired)
        return repaired

    def close(self) -> None:
        self._engine.close()

    @staticmethod
    def _split_repeats(
        descriptors: Sequence[DocumentDescriptor],
    ) -> Tuple[List[DocumentDescriptor], List[DocumentDescriptor]]:
        seen: set[str] = set()
        unique: List[DocumentDescriptor] = []
        repeated: List[DocumentDescriptor] = []
        for descriptor in descriptors:
            if descriptor.external_number in seen:
                repeated.append(descriptor)
                continue
            seen.add(descriptor.external_number)
            unique.append(descriptor)
        return unique, repeated

    async def _ingest_all(
        self,
        descriptors: Sequence[DocumentDescriptor],
        *,
        force_update: bool,
        stop: asyncio.Event | None,
    ) -> List[IngestOutcome]:
        semaphore = asyncio.Semaphore(max(1, self._config.concurrency))

        async def run_one(descriptor: DocumentDescriptor) -> IngestOutcome | None:
            async with semaphore:
                if stop is not None and stop.is_set():
                    return None
                return await self._ingest_document(descriptor, force_update=force_update)

        tasks = [asyncio.create_task(run_one(descriptor)) for descriptor in descriptors]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [outcome for outcome in results if outcome is not None]

    async def _ingest_document(self, descriptor: DocumentDescriptor, *, force_update: bool) -> IngestOutcome:
        start = time.perf_counter()
        log = self._logger.bind(external_number=descriptor.external_number, title=descriptor.title)

        existing = await asyncio.to_thread(self._store.get_document_by_number, descriptor.external_number)
        if existing is not None and existing.ingestion_state is DocumentState.INGESTED and not force_update:
            log.info("ingest.document.skipped", reason="duplicate")
            return self._outcome(
                descriptor,
                IngestStatus.SKIPPED_DUPLICATE,
                document_id=existing.id,
                detail="already ingested",
            )

        extraction = await self._extractor.extract(descriptor)
        if extraction.status is StepStatus.FATAL:
            log.error("ingest.document.failed", reason=extraction.reason)
            return self._outcome(descriptor, IngestStatus.FAILED, detail=extraction.reason)

        drafts = await asyncio.to_thread(self._chunker.chunk, extraction.text)
        if not drafts:
            log.warning("ingest.document.skipped", reason="no segments")
            return self._outcome(
                descriptor,
                IngestStatus.SKIPPED_EMPTY,
                used_fallback_text=extraction.used_fallback,
                detail="no non-empty segments after chunking",
            )

        vectors = await self._engine.embed([draft.embedding_text for draft in drafts])
        vector_ids = [str(uuid4()) for _ in drafts]

        # let an in-flight write finish even if the run is cancelled meanwhile
        with TimedSection(lambda duration: PipelineMetrics.observe_ingestion(duration, len(drafts))):
            saved = await asyncio.shield(self._persist(descriptor, extraction.text, drafts, vector_ids, vectors))

        log.info(
            "ingest.document.complete",
            document_id=str(saved.document.id),
            segment_count=len(saved.segments),
            used_fallback_text=extraction.used_fallback,
            duration_seconds=time.perf_counter() - start,
        )
        return self._outcome(
            descriptor,
            IngestStatus.INGESTED,
            document_id=saved.document.id,
            segment_count=len(saved.segments),
            used_fallback_text=extraction.used_fallback,
        )

    async def _persist(
        self,
        descriptor: DocumentDescriptor,
        text: str,
        drafts: Sequence[SegmentDraft],
        vector_ids: Sequence[str],
        vectors: Sequence[Tuple[float, ...]],
    ) -> SavedDocument:
        saved = await asyncio.to_thread(self._store.save_document, descriptor, text, list(zip(drafts, vector_ids)))
        document = saved.document
        entries = [
            EmbeddingVector(
                vector_id=vector_id,
                vector=vector,
                payload=build_payload(document, draft.index, draft.kind.value, draft.identifier, draft.content),
            )
            for draft, vector_id, vector in zip(drafts, vector_ids, vectors, strict=True)
        ]
        try:
            await self._index_call(lambda: self._index.upsert(entries))
        except VectorIndexUnavailableError:
            self._logger.error(
                "ingest.vector_pending",
                document_id=str(document.id),
                external_number=document.external_number,
                segment_count=len(entries),
            )
            raise
        await asyncio.to_thread(self._store.mark_indexed, document.id, list(vector_ids))

        if saved.stale_vector_ids:
            try:
                await self._delete_stale(saved.stale_vector_ids)
            except VectorIndexUnavailableError as exc:
                # still recorded in the store; reconcile() retries the delete
                self._logger.warning(
                    "ingest.stale_vectors_pending",
                    document_id=str(document.id),
                    count=len(saved.stale_vector_ids),
                    error=str(exc),
                )
        return saved

    async def _delete_stale(self, vector_ids: Sequence[str]) -> None:
        ids = list(vector_ids)
        await self._index_call(lambda: self._index.delete(ids))
        await asyncio.to_thread(self._store.clear_stale_vectors, ids)

    async def _index_call(self, call: Callable[[], Any]) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(call), timeout=self._config.index_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise VectorIndexUnavailableError(
                f"Vector index call timed out after {self._config.index_timeout_seconds}s",
            ) from exc

    def _outcome(
        self,
        descriptor: DocumentDescriptor,
        status: IngestStatus,
        *,
        document_id: UUID | None = None,
        segment_count: int = 0,
        used_fallback_text: bool = False,
        detail: str | None = None,
    ) -> IngestOutcome:
        PipelineMetrics.record_outcome(status.value)
        return IngestOutcome(
            external_number=descriptor.external_number,
            title=descriptor.title,
            status=status,
            document_id=document_id,
            segment_count=segment_count,
            used_fallback_text=used_fallback_text,
            detail=detail,
        )


def build_pipeline(settings: Settings | None = None) -> IngestionPipeline:
    """Assemble a pipeline from settings."""

    settings = settings or get_settings()
    backend = get_embedding_backend(
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            use_model=settings.use_model_embeddings,
            device=settings.embedding_device,
            cache_folder=settings.embedding_cache_dir,
            batch_size=settings.embedding_batch_size,
            max_length=settings.embedding_max_length,
        ),
    )
    engine = EmbeddingEngine(backend, max_workers=settings.embedding_workers)
    index = ChromaVectorIndex(
        IndexConfig(
            collection_name=settings.chroma_collection,
            dim=settings.embedding_dim,
            batch_size=settings.index_batch_size,
            max_retries=settings.index_max_retries,
            retry_backoff_seconds=settings.index_retry_backoff_seconds,
        ),
        host=settings.chroma_host,
        port=settings.chroma_port,
        ssl=settings.chroma_ssl,
        persist_directory=None if settings.chroma_host else settings.chroma_persist_dir,
    )
    store = MetadataStore.from_url(settings.database_url, echo=settings.database_echo)
    fetcher = PRSBillFetcher(
        FetcherConfig(
            source_url=settings.source_url,
            base_url=settings.source_base_url,
            user_agent=settings.user_agent,
            timeout_seconds=settings.fetch_timeout_seconds,
        ),
    )
    extractor = PDFTextExtractor(
        ExtractorConfig(
            user_agent=settings.user_agent,
            timeout_seconds=settings.download_timeout_seconds,
            max_download_bytes=settings.max_download_bytes,
        ),
    )
    retriever = SemanticRetriever(
        engine,
        index,
        RetrievalConfig(
            top_k=settings.default_top_k,
            max_top_k=settings.max_top_k,
            timeout_seconds=settings.index_timeout_seconds,
        ),
        live_filter=store.live_vector_ids,
    )
    return IngestionPipeline(
        fetcher=fetcher,
        extractor=extractor,
        chunker=StructuralChunker(ChunkerConfig(min_chars=settings.min_segment_chars)),
        engine=engine,
        index=index,
        store=store,
        retriever=retriever,
        config=PipelineConfig(
            concurrency=settings.ingest_concurrency,
            index_timeout_seconds=settings.index_timeout_seconds,
            default_ingest_count=settings.default_ingest_count,
        ),
    )
