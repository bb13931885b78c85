"""Query-time retrieval built on top of the vector index."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Collection, List, Mapping, Protocol, Sequence

from legisearch.embeddings.service import EmbeddingEngine
from legisearch.embeddings.store import TEXT_KEY, VectorIndex
from legisearch.errors import SearchUnavailableError, VectorIndexUnavailableError
from legisearch.metrics.observability import PipelineMetrics, get_logger
from legisearch.models import IndexHit, SearchResult


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    top_k: int = 3
    max_top_k: int | None = 50
    timeout_seconds: float = 30.0


class Retriever(Protocol):
    """Retrieve ranked bill sections for a query string."""

    async def search(self, query: str, *, top_k: int | None = None) -> Sequence[SearchResult]:
        """Return results by descending similarity."""


def _to_result(hit: IndexHit) -> SearchResult:
    payload: Mapping[str, object] = hit.payload
    identifier = payload.get("identifier")
    return SearchResult(
        document_id=str(payload.get("document_id", "")),
        title=str(payload.get("title", "")),
        external_number=str(payload.get("external_number", "")),
        identifier=str(identifier) if identifier else None,
        excerpt=str(payload.get(TEXT_KEY, "")),
        score=hit.score,
    )


class SemanticRetriever:
    """Embed the query, search the index, and answer from stored payloads.

    ``live_filter`` maps vector ids to the subset that still has a segment
    row; hits outside it are vectors of replaced segments and are dropped.
    """

    def __init__(
        self,
        engine: EmbeddingEngine,
        index: VectorIndex,
        config: RetrievalConfig | None = None,
        *,
        live_filter: Callable[[Sequence[str]], Collection[str]] | None = None,
    ) -> None:
        self._engine = engine
        self._index = index
        self._config = config or RetrievalConfig()
        self._live_filter = live_filter
        self._logger = get_logger("search")

    async def search(self, query: str, *, top_k: int | None = None) -> Sequence[SearchResult]:
        limit = self._config.top_k if top_k is None else top_k
        if self._config.max_top_k:
            limit = min(limit, self._config.max_top_k)
        if limit <= 0 or not query.strip():
            return []

        start = time.perf_counter()
        vector = await self._engine.embed_query(query)
        hits = await self._live_hits(vector, limit)
        results = [_to_result(hit) for hit in hits]

        duration = time.perf_counter() - start
        PipelineMetrics.observe_search(duration, len(results), (result.score for result in results))
        self._logger.info(
            "search.complete",
            query=query,
            top_k=limit,
            result_count=len(results),
            duration_seconds=duration,
        )
        return results

    async def _live_hits(self, vector: Sequence[float], limit: int) -> List[IndexHit]:
        hits = await self._search(vector, limit)
        if self._live_filter is None or not hits:
            return list(hits)
        live = await asyncio.to_thread(self._live_filter, [hit.vector_id for hit in hits])
        dropped = sum(1 for hit in hits if hit.vector_id not in live)
        if dropped:
            self._logger.warning("search.stale_hits_dropped", count=dropped)
            # widen once so replaced vectors do not shrink the result set
            hits = await self._search(vector, limit + dropped)
            live = await asyncio.to_thread(self._live_filter, [hit.vector_id for hit in hits])
        return [hit for hit in hits if hit.vector_id in live][:limit]

    async def _search(self, vector: Sequence[float], limit: int) -> Sequence[IndexHit]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._index.search, vector, top_k=limit),
                timeout=self._config.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise SearchUnavailableError(f"Search timed out after {self._config.timeout_seconds}s") from exc
        except VectorIndexUnavailableError as exc:
            raise SearchUnavailableError(f"Search unavailable: {exc}") from exc
