"""Relational metadata storage."""

from .service import MetadataStore, SavedDocument, create_store_engine
from .tables import Base, BillChunkRow, BillRow, StaleVectorRow

__all__ = [
    "Base",
    "BillChunkRow",
    "BillRow",
    "MetadataStore",
    "SavedDocument",
    "StaleVectorRow",
    "create_store_engine",
]
