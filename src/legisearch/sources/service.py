"""Source fetcher resolving candidate bills from the PRS bill tracker."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, List, Protocol
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from legisearch.metrics.observability import PipelineMetrics, get_logger
from legisearch.models import DocumentDescriptor, FetchResult, StepStatus
from legisearch.sources.fallback import FALLBACK_VERSION, fallback_descriptors
from legisearch.sources.parsing import extract_external_number, extract_year


class SourceLayoutError(ValueError):
    """Raised when the source page no longer has the expected structure."""


@dataclass(frozen=True)
class FetcherConfig:
    """Configuration for the bill source."""

    source_url: str = "https://prsindia.org/billtrack"
    base_url: str = "https://prsindia.org"
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    timeout_seconds: float = 30.0
    min_title_length: int = 10
    # headings scanned per requested bill; some are navigation, not bills
    scan_factor: int = 2


class DocumentFetcher(Protocol):
    """Protocol for descriptor sources."""

    async def fetch(self, limit: int) -> FetchResult:
        """Return at most ``limit`` descriptors, most recent first."""


class PRSBillFetcher:
    """Scrape recent bills, degrading to the built-in list on any failure."""

    def __init__(self, config: FetcherConfig | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or FetcherConfig()
        self._client = client
        self._logger = get_logger("fetch")

    async def fetch(self, limit: int) -> FetchResult:
        if limit <= 0:
            return FetchResult(descriptors=[], status=StepStatus.SOURCE)
        try:
            descriptors = await self._fetch_live(limit)
        except Exception as exc:  # noqa: BLE001 - every source failure degrades to fallback
            return self._fallback(limit, reason=f"{type(exc).__name__}: {exc}")
        self._logger.info("fetch.complete", source=self._config.source_url, count=len(descriptors))
        return FetchResult(descriptors=descriptors, status=StepStatus.SOURCE)

    def _fallback(self, limit: int, *, reason: str) -> FetchResult:
        descriptors = fallback_descriptors(limit)
        PipelineMetrics.record_fallback("fetch")
        self._logger.warning(
            "fetch.fallback",
            source=self._config.source_url,
            reason=reason,
            fallback_version=FALLBACK_VERSION,
            count=len(descriptors),
        )
        return FetchResult(descriptors=descriptors, status=StepStatus.FALLBACK, reason=reason)

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

    async def _fetch_live(self, limit: int) -> List[DocumentDescriptor]:
        async with self._session() as client:
            response = await client.get(self._config.source_url)
            response.raise_for_status()
            soup = BeautifulSoup(response.text, "html.parser")
            descriptors: List[DocumentDescriptor] = []
            for heading in soup.find_all("h3")[: limit * self._config.scan_factor]:
                link = heading.find("a")
                if link is None or not link.get("href"):
                    continue
                title = link.get_text(" ", strip=True)
                if len(title) < self._config.min_title_length:
                    continue
                bill_url = urljoin(self._config.base_url, link["href"])
                pdf_url = await self._find_pdf_url(client, bill_url)
                descriptors.append(
                    DocumentDescriptor(
                        title=title,
                        external_number=extract_external_number(title),
                        year=extract_year(title),
                        source_location=pdf_url or bill_url,
                    ),
                )
                if len(descriptors) >= limit:
                    break
        if not descriptors:
            raise SourceLayoutError("No bills found on source page; the page structure may have changed")
        return descriptors

    async def _find_pdf_url(self, client: httpx.AsyncClient, bill_url: str) -> str | None:
        try:
            response = await client.get(bill_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self._logger.debug("fetch.bill_page_failed", url=bill_url, error=str(exc))
            return None
        soup = BeautifulSoup(response.text, "html.parser")
        for link in soup.select("a[href*='.pdf'], a[href*='files'], a[href*='download']"):
            href = link.get("href", "")
            if ".pdf" in href.lower():
                return urljoin(self._config.base_url + "/", href)
        return None
