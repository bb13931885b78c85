"""Embedding services and the vector index."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    EmbeddingEngine,
    HashEmbeddingBackend,
    TransformerEmbeddingBackend,
    get_embedding_backend,
    mean_pool,
)
from .store import ChromaVectorIndex, IndexConfig, VectorIndex

__all__ = [
    "ChromaVectorIndex",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingEngine",
    "HashEmbeddingBackend",
    "IndexConfig",
    "TransformerEmbeddingBackend",
    "VectorIndex",
    "get_embedding_backend",
    "mean_pool",
]
