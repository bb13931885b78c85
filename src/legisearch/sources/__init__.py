"""Bill sources."""

from .fallback import FALLBACK_DESCRIPTORS, FALLBACK_TEXTS, FALLBACK_VERSION, fallback_descriptors
from .parsing import extract_external_number, extract_year
from .service import DocumentFetcher, FetcherConfig, PRSBillFetcher, SourceLayoutError

__all__ = [
    "DocumentFetcher",
    "FALLBACK_DESCRIPTORS",
    "FALLBACK_TEXTS",
    "FALLBACK_VERSION",
    "FetcherConfig",
    "PRSBillFetcher",
    "SourceLayoutError",
    "extract_external_number",
    "extract_year",
    "fallback_descriptors",
]
