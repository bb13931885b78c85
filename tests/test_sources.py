"""Tests for the bill source fetcher and title parsing."""

from __future__ import annotations

import asyncio

import httpx

from legisearch.models import StepStatus
from legisearch.sources import FetcherConfig, PRSBillFetcher
from legisearch.sources.fallback import FALLBACK_DESCRIPTORS, FALLBACK_TEXTS, fallback_descriptors
from legisearch.sources.parsing import extract_external_number, extract_year

LISTING_HTML = """
<html><body>
  <h3><a href="/billtrack/the-river-boards-bill-2024">The River Boards Bill, 2024</a></h3>
  <h3><a href="/about">About</a></h3>
  <h3><a href="/billtrack/the-seeds-bill-no-7-of-2024">The Seeds Bill No. 7 of 2024</a></h3>
  <h3>No link here</h3>
</body></html>
"""

BILL_HTML = """
<html><body><a href="/files/bills_acts/bills_parliament/2024/river-boards.pdf">Bill Text</a></body></html>
"""


def _fetcher(handler) -> PRSBillFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PRSBillFetcher(FetcherConfig(scan_factor=3), client=client)


def test_network_outage_returns_fallback_list():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network down", request=request)

    result = asyncio.run(_fetcher(handler).fetch(3))

    assert result.status is StepStatus.FALLBACK
    assert result.used_fallback
    assert list(result.descriptors) == list(FALLBACK_DESCRIPTORS[:3])
    assert "ConnectError" in (result.reason or "")


def test_unexpected_page_structure_degrades_to_fallback():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html><body><p>Maintenance</p></body></html>")

    result = asyncio.run(_fetcher(handler).fetch(10))

    assert result.used_fallback
    assert len(result.descriptors) == len(FALLBACK_DESCRIPTORS)


def test_live_listing_is_parsed_into_descriptors():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/billtrack":
            return httpx.Response(200, text=LISTING_HTML)
        if request.url.path.endswith("river-boards-bill-2024"):
            return httpx.Response(200, text=BILL_HTML)
        return httpx.Response(404)

    result = asyncio.run(_fetcher(handler).fetch(5))

    assert result.status is StepStatus.SOURCE
    titles = [descriptor.title for descriptor in result.descriptors]
    assert titles == ["The River Boards Bill, 2024", "The Seeds Bill No. 7 of 2024"]
    river, seeds = result.descriptors
    assert river.source_location.endswith("river-boards.pdf")
    assert river.year == 2024
    assert seeds.external_number == "7/2024"
    assert seeds.source_location == "https://prsindia.org/billtrack/the-seeds-bill-no-7-of-2024"


def test_zero_limit_fetches_nothing():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    result = asyncio.run(_fetcher(handler).fetch(0))
    assert result.descriptors == []
    assert not result.used_fallback


def test_fallback_set_is_most_recent_first_and_has_texts():
    dates = [descriptor.introduction_date for descriptor in FALLBACK_DESCRIPTORS]
    assert dates == sorted(dates, reverse=True)
    assert all(descriptor.external_number in FALLBACK_TEXTS for descriptor in FALLBACK_DESCRIPTORS)
    assert fallback_descriptors(0) == []
    assert len(fallback_descriptors(2)) == 2


def test_title_parsing_helpers():
    assert extract_year("The Mediation Bill, 2023") == 2023
    assert extract_year("Untitled", default=1999) == 1999
    assert extract_external_number("The Seeds Bill No. 7 of 2024") == "7/2024"
    assert extract_external_number("The Constitution (130th Amendment) Bill, 2025") == "AMEND-130/2025"
    digest_number = extract_external_number("The Mediation Bill, 2023")
    assert digest_number.endswith("/2023")
    assert digest_number == extract_external_number("The Mediation Bill, 2023")
