"""Embedding backends for legisearch."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Iterator, List, Protocol, Sequence, Tuple

import torch

from legisearch.errors import EmbeddingModelError

LOGGER = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    dim: int = 384
    use_model: bool = True
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None
    batch_size: int = 8
    max_length: int = 256


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    def load(self) -> None:
        """Make the backend ready; raises if it cannot be."""

    def embed_texts(self, texts: Sequence[str]) -> List[Tuple[float, ...]]:
        """Return one unit vector per text, in input order."""

    def embed_query(self, query: str) -> Tuple[float, ...]:
        """Return embedding vector for a query string."""


def _l2_normalize(vector: Sequence[float]) -> Tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


def _batches(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), max(1, size)):
        yield items[start : start + size]


def mean_pool(token_embeddings: torch.Tensor, attention_mask: torch.Tensor) -> torch.Tensor:
    """Average token vectors per row, ignoring padding positions."""

    mask = attention_mask.unsqueeze(-1).to(token_embeddings.dtype)
    summed = (token_embeddings * mask).sum(dim=1)
    counts = mask.sum(dim=1).clamp(min=1e-9)
    return summed / counts


class HashEmbeddingBackend:
    """Deterministic feature-hashing embeddings for tests and offline runs.

    Each word token lands in a signed bucket, so texts sharing words score
    higher than unrelated ones without any model download.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig(use_model=False)

    def load(self) -> None:
        return None

    def _digest_vector(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        return _l2_normalize([byte / 255.0 for byte in raw])

    def _hash_to_vector(self, text: str) -> Tuple[float, ...]:
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            return self._digest_vector(text)
        vector = [0.0] * self._config.dim
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._config.dim
            vector[bucket] += 1.0 if digest[4] & 1 else -1.0
        if not any(vector):
            return self._digest_vector(text)
        return _l2_normalize(vector)

    def embed_texts(self, texts: Sequence[str]) -> List[Tuple[float, ...]]:
        return [self._hash_to_vector(text) for text in texts]

    def embed_query(self, query: str) -> Tuple[float, ...]:
        return self._hash_to_vector(query)


def _load_pretrained(config: EmbeddingConfig) -> Tuple[Any, Any]:
    from transformers import AutoModel, AutoTokenizer

    tokenizer = AutoTokenizer.from_pretrained(config.model, cache_dir=config.cache_folder)
    model = AutoModel.from_pretrained(config.model, cache_dir=config.cache_folder)
    return tokenizer, model


class TransformerEmbeddingBackend:
    """Sentence embeddings from a pretrained encoder via Transformers.

    Weights load once, on first use or on ``load()``, and the instance is then
    shared read-only. A load failure is fatal: there is no degraded mode.
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        loader: Callable[[EmbeddingConfig], Tuple[Any, Any]] = _load_pretrained,
    ) -> None:
        self._config = config or EmbeddingConfig()
        self._loader = loader
        self._lock = threading.Lock()
        self._tokenizer: Any = None
        self._model: Any = None

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        if self._model is not None:
            return
        with self._lock:
            if self._model is not None:
                return
            LOGGER.info("Loading embedding model %s", self._config.model)
            try:
                tokenizer, model = self._loader(self._config)
                model.eval()
                if self._config.device:
                    model.to(self._config.device)
            except Exception as exc:
                raise EmbeddingModelError(f"Failed to load embedding model {self._config.model}: {exc}") from exc
            self._tokenizer = tokenizer
            self._model = model
            LOGGER.info("Loaded embedding model %s", self._config.model)

    def embed_texts(self, texts: Sequence[str]) -> List[Tuple[float, ...]]:
        if not texts:
            return []
        self.load()
        vectors: List[Tuple[float, ...]] = []
        for batch in _batches(list(texts), self._config.batch_size):
            vectors.extend(self._encode_batch(batch))
        return vectors

    def embed_query(self, query: str) -> Tuple[float, ...]:
        return self.embed_texts([query])[0]

    def _encode_batch(self, batch: Sequence[str]) -> List[Tuple[float, ...]]:
        encoded = self._tokenizer(
            list(batch),
            padding=True,
            truncation=True,
            max_length=self._config.max_length,
            return_tensors="pt",
        )
        if self._config.device:
            encoded = {key: value.to(self._config.device) for key, value in encoded.items()}
        with torch.no_grad():
            output = self._model(**encoded)
        hidden = output.last_hidden_state if hasattr(output, "last_hidden_state") else output[0]
        pooled = mean_pool(hidden, encoded["attention_mask"])
        if self._config.normalize:
            pooled = torch.nn.functional.normalize(pooled, p=2, dim=1)
        if pooled.shape[-1] != self._config.dim:
            raise EmbeddingModelError(
                f"Embedding dim mismatch: configured={self._config.dim}, actual={pooled.shape[-1]}",
            )
        return [tuple(row) for row in pooled.cpu().tolist()]


@lru_cache(maxsize=None)
def get_embedding_backend(config: EmbeddingConfig) -> EmbeddingBackend:
    """Return the process-wide backend for ``config``, creating it once."""

    if not config.use_model:
        LOGGER.info("Using hashing embeddings; no model will be loaded.")
        return HashEmbeddingBackend(config)
    return TransformerEmbeddingBackend(config)


class EmbeddingEngine:
    """Runs a backend on a bounded worker pool so inference never blocks the event loop."""

    def __init__(self, backend: EmbeddingBackend, *, max_workers: int = 2) -> None:
        self._backend = backend
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="embed")

    @property
    def backend(self) -> EmbeddingBackend:
        return self._backend

    async def warm_up(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._backend.load)

    async def embed(self, texts: Sequence[str]) -> List[Tuple[float, ...]]:
        if not texts:
            return []
        loop = asyncio.get_running_loop()
        vectors = await loop.run_in_executor(self._executor, self._backend.embed_texts, list(texts))
        if len(vectors) != len(texts):
            LOGGER.error("Embedding backend returned %d vectors for %d texts", len(vectors), len(texts))
            raise EmbeddingModelError("Mismatch between number of texts and embedding vectors")
        return vectors

    async def embed_query(self, query: str) -> Tuple[float, ...]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._backend.embed_query, query)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
