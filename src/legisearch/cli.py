"""Command-line interface for ingesting and querying legislation."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Sequence

from legisearch.config import Settings, get_settings
from legisearch.errors import LegisearchError, SearchUnavailableError
from legisearch.metrics.observability import get_logger
from legisearch.models import IngestReport, IngestStatus, SearchResult
from legisearch.pipeline.service import IngestionPipeline, build_pipeline

EXCERPT_CHARS = 300


def _format_report(report: IngestReport) -> str:
    lines = []
    if report.used_fallback_source:
        lines.append("Source listing unavailable; using built-in bill set.")
    for outcome in report.outcomes:
        note = " (fallback text)" if outcome.used_fallback_text else ""
        detail = f" - {outcome.detail}" if outcome.detail and outcome.status is not IngestStatus.INGESTED else ""
        lines.append(
            f"[{outcome.status.value}] {outcome.external_number} {outcome.title}: "
            f"{outcome.segment_count} segments{note}{detail}",
        )
    lines.append(
        f"Ingested {report.count(IngestStatus.INGESTED)}, "
        f"skipped {report.count(IngestStatus.SKIPPED_DUPLICATE) + report.count(IngestStatus.SKIPPED_EMPTY)}, "
        f"failed {report.count(IngestStatus.FAILED)}"
        + (" (cancelled)" if report.cancelled else ""),
    )
    return "\n".join(lines)


def _format_results(results: Sequence[SearchResult]) -> str:
    if not results:
        return "No results. Run `legisearch ingest` first to populate the index."
    lines = []
    for rank, result in enumerate(results, start=1):
        excerpt = result.excerpt
        if len(excerpt) > EXCERPT_CHARS:
            excerpt = excerpt[:EXCERPT_CHARS].rstrip() + "..."
        lines.extend(
            [
                f"{rank}. score={result.score:.4f}",
                f"   Bill: {result.title} ({result.external_number})",
                f"   Section: {result.identifier or '-'}",
                f"   {excerpt}",
            ],
        )
    return "\n".join(lines)


async def _run_ingest(pipeline: IngestionPipeline, count: int, force: bool) -> IngestReport:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except (NotImplementedError, RuntimeError):
        pass
    try:
        await pipeline.init_index()
        return await pipeline.ingest(count, force_update=force, stop=stop)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


async def _run_query(pipeline: IngestionPipeline, text: str, limit: int | None) -> Sequence[SearchResult]:
    await pipeline.init_index()
    return await pipeline.search(text, top_k=limit)


def _run_bills(pipeline: IngestionPipeline, page: int, per_page: int) -> str:
    pipeline.store.create_schema()
    records, total = pipeline.store.list_documents(page=page, per_page=per_page)
    lines = [f"{total} bills (page {page})"]
    for record in records:
        segments = pipeline.store.count_segments(record.id)
        lines.append(
            f"{record.external_number}\t{record.year}\t{record.ingestion_state.value}\t"
            f"{segments} segments\t{record.title}",
        )
    return "\n".join(lines)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="legisearch", description="Ingest and search legislative bills.")
    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init", help="Create the metadata schema and vector collection")
    init.add_argument("--reset", action="store_true", help="Drop and recreate the vector collection")

    ingest = commands.add_parser("ingest", help="Fetch and ingest recent bills")
    ingest.add_argument("--count", type=int, default=None, help="Number of bills to ingest")
    ingest.add_argument("--force", action="store_true", help="Re-ingest bills that are already stored")

    query = commands.add_parser("query", help="Search ingested bills")
    query.add_argument("text", help="Natural-language query")
    query.add_argument("--limit", type=int, default=None, help="Maximum number of results")

    commands.add_parser("reconcile", help="Index segments whose vectors are still pending")

    bills = commands.add_parser("bills", help="List stored bills")
    bills.add_argument("--page", type=int, default=1)
    bills.add_argument("--per-page", type=int, default=20)
    return parser.parse_args(argv)


def run(args: argparse.Namespace, settings: Settings) -> str:
    pipeline = build_pipeline(settings)
    try:
        if args.command == "init":
            asyncio.run(pipeline.init_index(reset=args.reset))
            return "Index initialised."
        if args.command == "ingest":
            count = args.count if args.count is not None else settings.default_ingest_count
            return _format_report(asyncio.run(_run_ingest(pipeline, count, args.force)))
        if args.command == "query":
            return _format_results(asyncio.run(_run_query(pipeline, args.text, args.limit)))
        if args.command == "reconcile":
            repaired = asyncio.run(pipeline.reconcile())
            return f"Indexed {repaired} pending segments."
        if args.command == "bills":
            return _run_bills(pipeline, args.page, args.per_page)
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        pipeline.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    try:
        output = run(args, settings)
    except SearchUnavailableError as exc:
        get_logger("cli").error("cli.search_unavailable", error=str(exc))
        print(f"Search unavailable: {exc}", file=sys.stderr)
        return 1
    except LegisearchError as exc:
        get_logger("cli").error("cli.failed", command=args.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(output)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
