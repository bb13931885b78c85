"""Observability helpers for legisearch."""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Iterable

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "legisearch") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < -1.0:
        return -1.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    ingestion_latency = Histogram(
        "legisearch_ingestion_duration_seconds",
        "Time spent ingesting one document.",
        buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    )
    ingestion_segments = Histogram(
        "legisearch_ingestion_segment_count",
        "Segments produced per ingested document.",
        buckets=(0, 1, 5, 10, 20, 40, 80, 160),
    )
    ingestion_outcomes = Counter(
        "legisearch_ingestion_outcomes_total",
        "Per-document ingestion outcomes.",
        ["status"],
    )
    fallbacks = Counter(
        "legisearch_fallbacks_total",
        "Degradable steps that used built-in fallback data.",
        ["stage"],
    )
    search_latency = Histogram(
        "legisearch_search_duration_seconds",
        "Time spent answering a search query.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    search_result_count = Histogram(
        "legisearch_search_result_count",
        "Number of results returned by search.",
        buckets=(0, 1, 2, 3, 5, 8, 13),
    )
    similarity_score = Histogram(
        "legisearch_similarity_score",
        "Cosine similarity of returned results.",
        buckets=(-0.5, 0.0, 0.25, 0.5, 0.75, 1.0),
    )

    @classmethod
    def observe_ingestion(cls, duration_seconds: float, segment_count: int) -> None:
        cls.ingestion_latency.observe(duration_seconds)
        cls.ingestion_segments.observe(segment_count)

    @classmethod
    def record_outcome(cls, status: str) -> None:
        cls.ingestion_outcomes.labels(status=status).inc()

    @classmethod
    def record_fallback(cls, stage: str) -> None:
        cls.fallbacks.labels(stage=stage).inc()

    @classmethod
    def observe_search(
        cls,
        duration_seconds: float,
        result_count: int,
        scores: Iterable[float],
    ) -> None:
        cls.search_latency.observe(duration_seconds)
        cls.search_result_count.observe(result_count)
        for score in scores:
            cls.similarity_score.observe(_clamp_score(score))


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback) -> None:
        self._callback = callback
        self._start = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        duration = time.perf_counter() - self._start
        self._callback(duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
