"""Vector index implementations."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection

from legisearch.errors import LegisearchError, VectorIndexUnavailableError
from legisearch.metrics.observability import get_logger
from legisearch.models import EmbeddingVector, IndexHit

TEXT_KEY = "text"


@dataclass(frozen=True)
class IndexConfig:
    """Configuration for the vector index."""

    collection_name: str = "legislation_chunks"
    dim: int = 384
    batch_size: int = 100
    max_retries: int = 3
    retry_backoff_seconds: float = 0.5


class VectorIndex(Protocol):
    """Protocol for vector index backends."""

    def init(self, *, reset: bool = False) -> None:
        """Create the collection if absent; drop and recreate it when ``reset``."""

    def upsert(self, entries: Sequence[EmbeddingVector]) -> Sequence[str]:
        """Insert or replace entries by vector id."""

    def search(self, vector: Sequence[float], *, top_k: int) -> Sequence[IndexHit]:
        """Return up to ``top_k`` hits by descending cosine similarity."""

    def delete(self, vector_ids: Sequence[str]) -> None:
        """Remove entries by vector id."""

    def fetch(self, vector_ids: Sequence[str]) -> Mapping[str, Mapping[str, Any]]:
        """Return stored payloads for the given ids."""

    def count(self) -> int:
        """Return total number of stored vectors."""


def _batches(entries: Sequence[EmbeddingVector], size: int) -> Iterator[Sequence[EmbeddingVector]]:
    for start in range(0, len(entries), max(1, size)):
        yield entries[start : start + size]


class ChromaVectorIndex:
    """Chroma-backed vector index with cosine distance."""

    def __init__(
        self,
        config: IndexConfig | None = None,
        *,
        client: ClientAPI | None = None,
        host: str | None = None,
        port: int | None = None,
        ssl: bool = False,
        persist_directory: str | Path | None = None,
    ) -> None:
        self._config = config or IndexConfig()
        self._client = client
        self._host = host
        self._port = port
        self._ssl = ssl
        self._persist_directory = persist_directory
        self._collection: Collection | None = None
        self._logger = get_logger("index")

    @property
    def config(self) -> IndexConfig:
        return self._config

    def _get_client(self) -> ClientAPI:
        if self._client is not None:
            return self._client
        try:
            if self._host:
                self._client = chromadb.HttpClient(host=self._host, port=self._port or 8000, ssl=self._ssl)
            elif self._persist_directory is not None:
                self._client = chromadb.PersistentClient(path=str(self._persist_directory))
            else:
                self._client = chromadb.EphemeralClient()
        except Exception as exc:
            raise VectorIndexUnavailableError(f"Cannot connect to vector index: {exc}") from exc
        return self._client

    def _get_collection(self) -> Collection:
        if self._collection is None:
            self.init()
        assert self._collection is not None
        return self._collection

    def init(self, *, reset: bool = False) -> None:
        name = self._config.collection_name
        client = self._get_client()
        try:
            existing = {getattr(item, "name", item) for item in client.list_collections()}
            if reset and name in existing:
                self._logger.warning("index.reset", collection=name)
                client.delete_collection(name)
            collection = client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine", "dimension": self._config.dim},
            )
        except Exception as exc:
            raise VectorIndexUnavailableError(f"Failed to initialise collection {name}: {exc}") from exc
        stored_dim = (collection.metadata or {}).get("dimension")
        if stored_dim is not None and int(stored_dim) != self._config.dim:
            raise LegisearchError(
                f"Collection {name} holds {stored_dim}-dim vectors, configured {self._config.dim}; "
                "re-initialise with reset",
            )
        self._collection = collection
        self._logger.info("index.ready", collection=name, dim=self._config.dim, reset=reset)

    def upsert(self, entries: Sequence[EmbeddingVector]) -> Sequence[str]:
        for entry in entries:
            if len(entry.vector) != self._config.dim:
                raise LegisearchError(
                    f"Vector {entry.vector_id} has dim {len(entry.vector)}, expected {self._config.dim}",
                )
        collection = self._get_collection()
        ids: List[str] = []
        for batch in _batches(list(entries), self._config.batch_size):
            self._upsert_batch(collection, batch)
            ids.extend(entry.vector_id for entry in batch)
        return ids

    def _upsert_batch(self, collection: Collection, batch: Sequence[EmbeddingVector]) -> None:
        ids = [entry.vector_id for entry in batch]
        vectors = [list(entry.vector) for entry in batch]
        documents = [str(entry.payload.get(TEXT_KEY, "")) for entry in batch]
        metadatas = [self._serialize_payload(entry.payload) for entry in batch]
        attempts = max(1, self._config.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                collection.upsert(ids=ids, embeddings=vectors, documents=documents, metadatas=metadatas)
                return
            except Exception as exc:
                self._logger.warning(
                    "index.upsert_retry",
                    attempt=attempt,
                    max_attempts=attempts,
                    batch_size=len(batch),
                    error=str(exc),
                )
                if attempt == attempts:
                    raise VectorIndexUnavailableError(
                        f"Upsert of {len(batch)} vectors failed after {attempts} attempts: {exc}",
                    ) from exc
                time.sleep(self._config.retry_backoff_seconds * attempt)

    def search(self, vector: Sequence[float], *, top_k: int) -> Sequence[IndexHit]:
        if top_k <= 0:
            return []
        collection = self._get_collection()
        try:
            available = int(collection.count())
            if available == 0:
                return []
            results = collection.query(
                query_embeddings=[list(vector)],
                n_results=min(top_k, available),
                include=["metadatas", "documents", "distances"],
            )
        except Exception as exc:
            raise VectorIndexUnavailableError(f"Vector search failed: {exc}") from exc
        hits = self._deserialize_results(results)
        # stable: equal scores keep the index's own order
        return sorted(hits, key=lambda hit: hit.score, reverse=True)

    def delete(self, vector_ids: Sequence[str]) -> None:
        if not vector_ids:
            return
        collection = self._get_collection()
        try:
            collection.delete(ids=list(vector_ids))
        except Exception as exc:
            raise VectorIndexUnavailableError(f"Failed to delete vectors: {exc}") from exc

    def fetch(self, vector_ids: Sequence[str]) -> Mapping[str, Mapping[str, Any]]:
        if not vector_ids:
            return {}
        collection = self._get_collection()
        try:
            batch = collection.get(ids=list(vector_ids), include=["metadatas", "documents"])
        except Exception as exc:
            raise VectorIndexUnavailableError(f"Failed to read vectors: {exc}") from exc
        ids = batch.get("ids") or []
        metadatas = batch.get("metadatas") or [None] * len(ids)
        documents = batch.get("documents") or [None] * len(ids)
        return {
            vector_id: self._deserialize_payload(metadata, document)
            for vector_id, metadata, document in zip(ids, metadatas, documents, strict=False)
        }

    def count(self) -> int:
        collection = self._get_collection()
        try:
            return int(collection.count())
        except Exception as exc:
            raise VectorIndexUnavailableError(f"Failed to count vectors: {exc}") from exc

    @staticmethod
    def _serialize_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {}
        for key, value in payload.items():
            if key == TEXT_KEY or value is None:
                continue
            if isinstance(value, (str, int, float, bool)):
                metadata[key] = value
            else:
                metadata[key] = str(value)
        return metadata

    @staticmethod
    def _deserialize_payload(metadata: Mapping[str, Any] | None, document: str | None) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(metadata or {})
        payload[TEXT_KEY] = document or ""
        return payload

    def _deserialize_results(self, results: Mapping[str, object]) -> List[IndexHit]:
        ids = self._first(results.get("ids", []))
        documents = self._first(results.get("documents", []))
        metadatas = self._first(results.get("metadatas", []))
        distances = self._first(results.get("distances", []))
        hits: List[IndexHit] = []
        for position, vector_id in enumerate(ids):
            metadata = metadatas[position] if position < len(metadatas) else None
            document = documents[position] if position < len(documents) else None
            distance = distances[position] if position < len(distances) else None
            score = 1.0 - float(distance) if distance is not None else 0.0
            hits.append(IndexHit(vector_id=vector_id, payload=self._deserialize_payload(metadata, document), score=score))
        return hits

    @staticmethod
    def _first(value: object) -> List[Any]:
        if isinstance(value, list):
            return list(value[0]) if value and value[0] is not None else []
        return []
