"""Text extraction for bill documents."""

from __future__ import annotations

import asyncio
import re
import tempfile
import unicodedata
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, List, Mapping, Protocol

import httpx
from langchain_community.document_loaders import PyPDFLoader

from legisearch.errors import ExtractionError
from legisearch.metrics.observability import PipelineMetrics, get_logger
from legisearch.models import DocumentDescriptor, ExtractionResult, StepStatus
from legisearch.sources.fallback import FALLBACK_TEXTS

_ENCODING_ARTIFACT_RE = re.compile(r"\??[A-Za-z]+-[A-Z]\s+Unimplemented\??")
_HYPHEN_BREAK_RE = re.compile(r"([A-Za-z])-[ \t]*\n[ \t]*([a-z])")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0e-\x1f\x7f]")
_INLINE_SPACE_RE = re.compile(r"[ \t]+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")

_PDF_MAGIC = b"%PDF"


def normalize_text(raw: str) -> str:
    """Clean extracted text while keeping its line structure.

    Line starts carry the chapter/clause markers the chunker relies on, so
    newlines survive; everything else is collapsed.
    """

    text = unicodedata.normalize("NFKC", raw)
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\x0c", "\n")
    text = _ENCODING_ARTIFACT_RE.sub("", text)
    text = _CONTROL_RE.sub("", text)
    text = _HYPHEN_BREAK_RE.sub(r"\1\2", text)
    lines = [_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = _BLANK_RUN_RE.sub("\n\n", "\n".join(lines))
    return text.strip()


@dataclass(frozen=True)
class ExtractorConfig:
    """Configuration for document download and parsing."""

    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    timeout_seconds: float = 60.0
    max_download_bytes: int = 25 * 1024 * 1024


class TextExtractor(Protocol):
    """Protocol for extraction implementations."""

    async def extract(self, descriptor: DocumentDescriptor) -> ExtractionResult:
        """Return cleaned plain text for the descriptor, tagged with its origin."""


def _parse_pdf(payload: bytes) -> str:
    if not payload.lstrip().startswith(_PDF_MAGIC):
        raise ExtractionError("Payload is not a PDF document")
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "document.pdf"
        path.write_bytes(payload)
        pages = PyPDFLoader(str(path)).load()
    return "\n".join(page.page_content for page in pages)


class PDFTextExtractor:
    """Download a bill PDF and turn it into clean text.

    Download, parse and empty-result failures each fall back to the built-in
    text for the bill. Only a bill with no fallback entry comes back FATAL.
    """

    _logger = get_logger("extract")

    def __init__(
        self,
        config: ExtractorConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        fallback_texts: Mapping[str, str] | None = None,
        parser: Callable[[bytes], str] = _parse_pdf,
    ) -> None:
        self._config = config or ExtractorConfig()
        self._client = client
        self._fallback_texts = FALLBACK_TEXTS if fallback_texts is None else fallback_texts
        self._parser = parser

    async def extract(self, descriptor: DocumentDescriptor) -> ExtractionResult:
        location = descriptor.source_location
        try:
            payload = await self._read(location)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, ExtractionError, OSError) as exc:
            return self._fallback(descriptor, stage="download", reason=f"{type(exc).__name__}: {exc}")

        try:
            # parsing is CPU-bound; keep it off the event loop
            raw = await asyncio.to_thread(self._parser, payload)
        except Exception as exc:  # noqa: BLE001 - loader specific errors
            return self._fallback(descriptor, stage="parse", reason=f"{type(exc).__name__}: {exc}")

        text = normalize_text(raw)
        if not text:
            return self._fallback(descriptor, stage="empty", reason="No text extracted from document")
        self._logger.info(
            "extract.complete",
            external_number=descriptor.external_number,
            characters=len(text),
        )
        return ExtractionResult(status=StepStatus.SOURCE, text=text)

    def _fallback(self, descriptor: DocumentDescriptor, *, stage: str, reason: str) -> ExtractionResult:
        text = self._fallback_texts.get(descriptor.external_number)
        if text is None:
            self._logger.error(
                "extract.failed",
                external_number=descriptor.external_number,
                stage=stage,
                reason=reason,
            )
            return ExtractionResult(
                status=StepStatus.FATAL,
                reason=f"{stage} failed and no fallback text exists: {reason}",
            )
        PipelineMetrics.record_fallback(f"extract.{stage}")
        self._logger.warning(
            "extract.fallback",
            external_number=descriptor.external_number,
            stage=stage,
            reason=reason,
        )
        return ExtractionResult(status=StepStatus.FALLBACK, text=normalize_text(text), reason=f"{stage}: {reason}")

    async def _read(self, location: str) -> bytes:
        if not location.startswith(("http://", "https://")):
            return await asyncio.to_thread(Path(location).read_bytes)
        async with self._session() as client:
            async with client.stream("GET", location) as response:
                response.raise_for_status()
                parts: List[bytes] = []
                total = 0
                async for part in response.aiter_bytes():
                    total += len(part)
                    if total > self._config.max_download_bytes:
                        raise ExtractionError(
                            f"Download exceeds {self._config.max_download_bytes} bytes: {location}",
                        )
                    parts.append(part)
        return b"".join(parts)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=self._config.timeout_seconds,
            headers={"User-Agent": self._config.user_agent},
            follow_redirects=True,
        ) as client:
            yield client
