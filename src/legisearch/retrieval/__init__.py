"""Retrieval services."""

from .service import RetrievalConfig, Retriever, SemanticRetriever

__all__ = ["RetrievalConfig", "Retriever", "SemanticRetriever"]
