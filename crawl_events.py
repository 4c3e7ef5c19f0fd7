"""Batch entry point for the park event crawler."""
import argparse
import asyncio
import json
import logging
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from processor.date_normalizer import park_today
from processor.deduplicator import merge, prune_past_events, sort_events
from processor.event_processor import EventProcessor
from processor.models import CanonicalEvent, CrawlSummary, SourceReport
from processor.relevance import filter_candidates
from scraper.base import SourceAdapter
from scraper.llm_client import ExtractionClient
from scraper.llm_extraction import LlmExtractionAdapter
from scraper.open_data import OpenDataEventsAdapter
from scraper.parks_listing import ParksListingAdapter
from scraper.race_calendar import RaceCalendarAdapter
from settings import ALL_SOURCES, LLM_SOURCES, CrawlerSettings
from storage.csv_store import CsvEventStore

logger = logging.getLogger(__name__)

_RESERVED_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_adapters(settings: CrawlerSettings, reference_date: date) -> List[SourceAdapter]:
    """Instantiate the enabled source adapters, in crawl order."""
    timeout = settings.navigation_timeout
    adapters: List[SourceAdapter] = []

    if 'nyc-open-data' in settings.sources:
        adapters.append(OpenDataEventsAdapter(timeout=int(timeout), reference_date=reference_date))
    if 'nyc-parks' in settings.sources:
        adapters.append(ParksListingAdapter(navigation_timeout=timeout, reference_date=reference_date))
    if 'nyrr' in settings.sources:
        adapters.append(RaceCalendarAdapter(navigation_timeout=max(timeout, 60.0), reference_date=reference_date))

    client = ExtractionClient(api_key=settings.openai_api_key, model_name=settings.openai_model)
    for spec in LLM_SOURCES:
        if spec.name in settings.sources:
            adapters.append(LlmExtractionAdapter(
                spec, client, navigation_timeout=timeout, reference_date=reference_date
            ))

    return adapters


async def collect_events(
    adapters: Sequence[SourceAdapter],
    reference_date: date
) -> Tuple[List[CanonicalEvent], Dict[str, SourceReport]]:
    """
    Run each adapter in turn, then filter and normalize its candidates.

    Sources are awaited one at a time. A source that fails, even by raising
    past its own boundary, contributes nothing and the run continues.

    Returns:
        Tuple of (canonical events from all sources, per-source reports)
    """
    processor = EventProcessor()
    events: List[CanonicalEvent] = []
    reports: Dict[str, SourceReport] = {}

    for adapter in adapters:
        report = SourceReport(name=adapter.name)
        reports[adapter.name] = report
        logger.info(f"Crawling source {adapter.name}")

        try:
            candidates = await adapter.fetch()
        except Exception as e:
            logger.error(
                f"Source {adapter.name} raised past its boundary: {e}",
                extra={'source': adapter.name, 'error_type': type(e).__name__},
                exc_info=True
            )
            candidates = []
            report.ok = False
            report.error = f"{type(e).__name__}: {e}"

        if getattr(adapter, 'last_error', None):
            report.ok = False
            report.error = adapter.last_error

        report.fetched = len(candidates)
        kept, rejected = filter_candidates(candidates, adapter.filter_policy)
        report.relevant = len(kept)
        for _, reason in rejected:
            report.dropped[reason] += 1

        source_events = processor.process_candidates(kept, reference_date)
        report.normalized = len(source_events)
        report.dropped.update(processor.dropped)
        events.extend(source_events)

        logger.info(
            f"Source {adapter.name}: {report.normalized} events",
            extra={'source': adapter.name, **report.to_dict()}
        )

    return events, reports


def run_crawl(
    settings: CrawlerSettings,
    adapters: Optional[Sequence[SourceAdapter]] = None,
    reference_date: Optional[date] = None
) -> CrawlSummary:
    """
    Run one complete crawl: load, fetch, merge, sort, persist, mirror.

    Args:
        settings: Crawl configuration
        adapters: Adapters to run (defaults to those enabled in settings)
        reference_date: The run's current date (defaults to today in the park)

    Returns:
        CrawlSummary with per-source statistics

    Raises:
        OSError: If the store cannot be read or written, or the mirror fails
        ValueError: If the existing store is malformed
    """
    reference_date = reference_date or park_today()
    store = CsvEventStore(settings.store_path, settings.mirror_path)

    existing = store.load(reference_date)
    if adapters is None:
        adapters = build_adapters(settings, reference_date)

    incoming, reports = asyncio.run(collect_events(adapters, reference_date))
    logger.info(
        f"Merging {len(incoming)} new events into {len(existing)} existing events"
    )

    merged = merge(existing, incoming)
    pruned = 0
    if settings.prune_past_events:
        kept = prune_past_events(merged, reference_date)
        pruned = len(merged) - len(kept)
        merged = kept
    events = sort_events(merged)

    summary = CrawlSummary(
        existing=len(existing),
        incoming=len(incoming),
        written=0,
        sources=reports,
        pruned=pruned,
        errors=[f"{name}: {r.error}" for name, r in reports.items() if r.error]
    )

    if events or pruned:
        summary.written = store.save(events)
        summary.store_path = str(store.path)
        summary.mirror_path = store.mirror()
    else:
        logger.warning("No events found to write; store left untouched")

    if settings.summary_path:
        write_summary(summary, settings.summary_path)

    return summary


def write_summary(summary: CrawlSummary, path: str) -> None:
    output = {'generatedAt': datetime.now(timezone.utc).isoformat(), **summary.to_dict()}
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, 'w', encoding='utf-8') as handle:
        json.dump(output, handle, indent=2, ensure_ascii=False)
    logger.info(f"Wrote run summary to {target}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Scheduled-invocation handler.

    Args:
        event: Scheduler event payload (unused)
        context: Invocation context

    Returns:
        Response dict with statusCode and summary statistics
    """
    start_time = time.time()
    try:
        settings = CrawlerSettings.from_env()
        setup_logging(settings.log_level)
        logger.info(
            "Crawl started",
            extra={'store_path': settings.store_path, 'sources': settings.sources}
        )
        summary = run_crawl(settings)
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Crawl failed: {e}",
            extra={'duration_seconds': round(duration, 2), 'error_type': type(e).__name__},
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Crawl failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time
    logger.info(
        "Crawl completed successfully",
        extra={'duration_seconds': round(duration, 2), 'events_written': summary.written}
    )
    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': 'Crawl completed successfully',
            'statistics': {**summary.to_dict(), 'duration_seconds': round(duration, 2)}
        })
    }


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Crawl park running events into the CSV store.')
    parser.add_argument('--store', help='Path of the CSV store')
    parser.add_argument('--mirror', help='Mirror location (path or s3://bucket/key)')
    parser.add_argument('--no-mirror', action='store_true', help='Do not mirror the store')
    parser.add_argument('--sources', help=f"Comma-separated sources ({', '.join(ALL_SOURCES)})")
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING or ERROR')
    parser.add_argument('--prune-past', action='store_true', help='Drop events dated before today')
    parser.add_argument('--summary', help='Write a JSON run summary to this path')
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = CrawlerSettings.from_env(validate=False)
    except ValueError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 2

    if args.store:
        settings.store_path = args.store
    if args.mirror:
        settings.mirror_path = args.mirror
    if args.no_mirror:
        settings.mirror_path = None
    if args.sources:
        settings.sources = [name.strip() for name in args.sources.split(',') if name.strip()]
    if args.log_level:
        settings.log_level = args.log_level
    if args.prune_past:
        settings.prune_past_events = True
    if args.summary:
        settings.summary_path = args.summary

    setup_logging(settings.log_level)
    try:
        settings.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        summary = run_crawl(settings)
    except Exception as e:
        logger.error(
            f"Crawl failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return 1

    logger.info(
        f"Wrote {summary.written} events",
        extra={'store_path': summary.store_path, 'mirror_path': summary.mirror_path}
    )
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
