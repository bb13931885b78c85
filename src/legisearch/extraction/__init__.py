"""Document text extraction."""

from .service import ExtractorConfig, PDFTextExtractor, TextExtractor, normalize_text

__all__ = [
    "ExtractorConfig",
    "PDFTextExtractor",
    "TextExtractor",
    "normalize_text",
]
