"""Exception hierarchy for legisearch.

Degradable failures (fetch, download, parse) never raise; they come back as
tagged results. Everything here is either document-fatal or run-fatal.
"""

from __future__ import annotations


class LegisearchError(RuntimeError):
    """Base class for pipeline errors."""


class ExtractionError(LegisearchError):
    """Raised when a document has no usable text and no fallback entry."""


class EmbeddingModelError(LegisearchError):
    """Raised when the embedding model cannot be loaded or run."""


class VectorIndexUnavailableError(LegisearchError):
    """Raised when the vector index cannot be reached or a write keeps failing."""


class SearchUnavailableError(VectorIndexUnavailableError):
    """Raised by the query flow when search cannot be served."""


class MetadataStoreError(LegisearchError):
    """Raised when the relational store cannot be read or written."""
