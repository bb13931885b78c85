"""Tests for text extraction and its fallback policy."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx

from legisearch.extraction import ExtractorConfig, PDFTextExtractor, normalize_text
from legisearch.models import DocumentDescriptor, StepStatus
from legisearch.sources.fallback import FALLBACK_DESCRIPTORS, FALLBACK_TEXTS


def _descriptor(location: str, number: str | None = None) -> DocumentDescriptor:
    known = FALLBACK_DESCRIPTORS[0]
    return DocumentDescriptor(
        title=known.title,
        external_number=number or known.external_number,
        year=known.year,
        source_location=location,
    )


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_normalize_text_keeps_lines_and_collapses_noise():
    raw = "CHAPTER  I\r\nPRELI-\nMINARY\x0c\n\n\n\n1.\tShort   title\x07 here  "
    cleaned = normalize_text(raw)

    assert cleaned == "CHAPTER I\nPRELI-\nMINARY\n\n1. Short title here"


def test_normalize_text_rejoins_hyphenated_words():
    assert normalize_text("consti-\ntution of India") == "constitution of India"


def test_download_failure_uses_fallback_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    extractor = PDFTextExtractor(client=_client(handler))
    descriptor = _descriptor("https://example.org/bill.pdf")
    result = asyncio.run(extractor.extract(descriptor))

    assert result.status is StepStatus.FALLBACK
    assert result.used_fallback
    assert result.text == normalize_text(FALLBACK_TEXTS[descriptor.external_number])
    assert (result.reason or "").startswith("download")


def test_non_pdf_payload_falls_back_at_parse_stage():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not a pdf</html>")

    extractor = PDFTextExtractor(client=_client(handler))
    result = asyncio.run(extractor.extract(_descriptor("https://example.org/bill.pdf")))

    assert result.status is StepStatus.FALLBACK
    assert (result.reason or "").startswith("parse")


def test_empty_parse_result_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"%PDF-1.4")

    extractor = PDFTextExtractor(client=_client(handler), parser=lambda payload: "  \n\x0c ")
    result = asyncio.run(extractor.extract(_descriptor("https://example.org/bill.pdf")))

    assert result.status is StepStatus.FALLBACK
    assert (result.reason or "").startswith("empty")


def test_missing_fallback_entry_is_fatal():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    extractor = PDFTextExtractor(client=_client(handler))
    result = asyncio.run(extractor.extract(_descriptor("https://example.org/x.pdf", number="UNKNOWN/2024")))

    assert result.status is StepStatus.FATAL
    assert result.text == ""
    assert "no fallback text" in (result.reason or "")


def test_oversized_download_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"%PDF" + b"0" * 2048)

    extractor = PDFTextExtractor(ExtractorConfig(max_download_bytes=1024), client=_client(handler))
    result = asyncio.run(extractor.extract(_descriptor("https://example.org/big.pdf")))

    assert result.status is StepStatus.FALLBACK
    assert "exceeds" in (result.reason or "")


def test_local_file_is_parsed_without_fallback(tmp_path: Path):
    document = tmp_path / "bill.pdf"
    document.write_bytes(b"%PDF-1.4 fake")
    seen: list[bytes] = []

    def parser(payload: bytes) -> str:
        seen.append(payload)
        return "Section 1   Local   text.\n\n\nSection 2 More."

    extractor = PDFTextExtractor(parser=parser)
    result = asyncio.run(extractor.extract(_descriptor(str(document))))

    assert seen == [b"%PDF-1.4 fake"]
    assert result.status is StepStatus.SOURCE
    assert result.text == "Section 1 Local text.\n\nSection 2 More."


def test_malformed_source_url_falls_back():
    extractor = PDFTextExtractor(fallback_texts={"X/2024": "Section 1 Fallback body text."})
    descriptor = _descriptor("https://prsindia.org:abc/x.pdf", number="X/2024")

    result = asyncio.run(extractor.extract(descriptor))

    assert result.status is StepStatus.FALLBACK
    assert result.text == "Section 1 Fallback body text."
    assert (result.reason or "").startswith("download: InvalidURL")
