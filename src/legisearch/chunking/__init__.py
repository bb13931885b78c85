"""Structural chunking."""

from .service import Chunker, ChunkerConfig, StructuralChunker, chunk_text

__all__ = ["Chunker", "ChunkerConfig", "StructuralChunker", "chunk_text"]
