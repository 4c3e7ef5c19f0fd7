"""Unit tests for the crawl entry point."""
import asyncio
import json
import logging
from datetime import date
from unittest.mock import patch

import pytest

import crawl_events
from crawl_events import (
    JsonFormatter,
    build_adapters,
    collect_events,
    lambda_handler,
    main,
    run_crawl,
)
from processor.models import CrawlSummary, RawCandidate, SourceKind, SourceReport
from processor.relevance import FilterPolicy
from scraper.base import SourceAdapter
from settings import CrawlerSettings

TODAY = date(2024, 6, 1)
HEADER = 'EVENT_NAME,DATE,START_TIME,END_TIME,LOCATION,DESCRIPTION,URL'


class StaticAdapter(SourceAdapter):
    """Adapter serving fixed candidates, or failing inside its boundary."""

    def __init__(self, name, candidates=(), policy=FilterPolicy.RELIABLE_LOCATION, error=None):
        super().__init__(TODAY)
        self.name = name
        self.filter_policy = policy
        self._candidates = list(candidates)
        self._error = error

    async def _fetch(self):
        if self._error:
            raise self._error
        return list(self._candidates)


class BoundaryBreakingAdapter:
    """Adapter whose fetch raises instead of returning an empty list."""

    name = 'broken'
    filter_policy = FilterPolicy.RELIABLE_LOCATION

    async def fetch(self):
        raise RuntimeError('escaped')


def candidate(source, name, event_date, location='Central Park', description=''):
    return RawCandidate(
        source=source,
        name=name,
        source_url='https://example.com/events',
        date=event_date,
        start_time='8:00 AM',
        location=location,
        description=description
    )


@pytest.fixture
def adapters():
    """Create one structured and one listing source."""
    return [
        StaticAdapter('nyc-open-data', [
            candidate(SourceKind.OPEN_DATA, 'NYRR Mini 10K', '2024-06-08', description='Sport - Parks Department'),
        ]),
        StaticAdapter('nyc-parks', [
            candidate(SourceKind.PARKS_LISTING, 'Summer Jazz Concert', '2024-07-20', description='Free Event'),
            candidate(SourceKind.PARKS_LISTING, 'Tai Chi', '2024-07-21', description='Fitness'),
        ], policy=FilterPolicy.PARK_LISTING),
    ]


@pytest.fixture
def settings(tmp_path):
    """Create settings pointing at a temporary store."""
    return CrawlerSettings(
        store_path=str(tmp_path / 'data' / 'events.csv'),
        mirror_path=str(tmp_path / 'public' / 'data' / 'events.csv'),
        summary_path=str(tmp_path / 'summary.json')
    )


class TestCollectEvents:
    """Test cases for collect_events."""

    def test_failing_sources_are_isolated(self):
        """Test that failing sources contribute nothing and others still run."""
        good = StaticAdapter('nyrr', [candidate(SourceKind.RACE_CALENDAR, 'Turkey Trot 4M', '2024-11-28')])
        failing = StaticAdapter('nyc-parks', error=TimeoutError('Timeout 30000ms exceeded'))

        events, reports = asyncio.run(
            collect_events([failing, BoundaryBreakingAdapter(), good], TODAY)
        )

        assert [e.name for e in events] == ['Turkey Trot 4M']
        assert not reports['nyc-parks'].ok
        assert reports['nyc-parks'].error == 'TimeoutError: Timeout 30000ms exceeded'
        assert reports['broken'].error == 'RuntimeError: escaped'
        assert reports['nyrr'].ok
        assert reports['nyrr'].normalized == 1

    def test_reports_count_drops(self, adapters):
        _, reports = asyncio.run(collect_events(adapters, TODAY))

        parks = reports['nyc-parks']
        assert parks.fetched == 2
        assert parks.relevant == 1
        assert parks.normalized == 1
        assert parks.dropped == {'not_running_or_large_event': 1}


class TestRunCrawl:
    """Test cases for run_crawl."""

    def test_writes_sorted_store_mirror_and_summary(self, settings, adapters):
        """Test a complete run from an empty store."""
        summary = run_crawl(settings, adapters=adapters, reference_date=TODAY)

        assert summary.existing == 0
        assert summary.incoming == 2
        assert summary.written == 2
        assert summary.errors == []

        with open(settings.store_path, encoding='utf-8') as handle:
            lines = handle.read().split('\n')
        assert lines[0] == HEADER
        assert lines[1].startswith('NYRR Mini 10K,2024-06-08,8:00 AM,,Central Park,')
        assert lines[2].startswith('Summer Jazz Concert,2024-07-20')

        with open(settings.store_path, 'rb') as store, open(settings.mirror_path, 'rb') as mirror:
            assert store.read() == mirror.read()

        with open(settings.summary_path, encoding='utf-8') as handle:
            report = json.load(handle)
        assert 'generatedAt' in report
        assert report['events_written'] == 2
        assert report['sources']['nyc-parks']['dropped'] == {'not_running_or_large_event': 1}

    def test_second_identical_run_is_byte_identical(self, settings, adapters):
        run_crawl(settings, adapters=adapters, reference_date=TODAY)
        with open(settings.store_path, 'rb') as handle:
            first = handle.read()

        summary = run_crawl(settings, adapters=adapters, reference_date=TODAY)

        with open(settings.store_path, 'rb') as handle:
            assert handle.read() == first
        assert summary.existing == 2
        assert summary.written == 2

    def test_existing_events_are_kept(self, settings, adapters, tmp_path):
        (tmp_path / 'data').mkdir()
        with open(settings.store_path, 'w', encoding='utf-8') as handle:
            handle.write(HEADER + '\nSpring Run,2024-04-01,,,Central Park,old info,')

        summary = run_crawl(settings, adapters=adapters, reference_date=TODAY)

        assert summary.written == 3
        with open(settings.store_path, encoding='utf-8') as handle:
            assert handle.read().split('\n')[1].startswith('Spring Run,2024-04-01')

    def test_prune_past_events(self, settings, adapters, tmp_path):
        (tmp_path / 'data').mkdir()
        with open(settings.store_path, 'w', encoding='utf-8') as handle:
            handle.write(HEADER + '\nSpring Run,2024-04-01,,,Central Park,old info,')
        settings.prune_past_events = True

        summary = run_crawl(settings, adapters=adapters, reference_date=TODAY)

        assert summary.pruned == 1
        assert summary.written == 2

    def test_pruning_everything_rewrites_store(self, settings, tmp_path):
        """Test that stale past events are removed even when nothing remains."""
        (tmp_path / 'data').mkdir()
        with open(settings.store_path, 'w', encoding='utf-8') as handle:
            handle.write(HEADER + '\nSpring Run,2024-04-01,,,Central Park,old info,')
        settings.prune_past_events = True

        summary = run_crawl(settings, adapters=[StaticAdapter('nyrr')], reference_date=TODAY)

        assert summary.pruned == 1
        assert summary.written == 0
        with open(settings.store_path, encoding='utf-8') as handle:
            assert handle.read() == HEADER
        with open(settings.mirror_path, encoding='utf-8') as handle:
            assert handle.read() == HEADER

    def test_empty_run_leaves_store_untouched(self, settings, tmp_path):
        summary = run_crawl(settings, adapters=[StaticAdapter('nyrr')], reference_date=TODAY)

        assert summary.written == 0
        assert summary.store_path is None
        assert not (tmp_path / 'data' / 'events.csv').exists()
        assert not (tmp_path / 'public').exists()

    def test_malformed_store_is_fatal(self, settings, adapters, tmp_path):
        (tmp_path / 'data').mkdir()
        with open(settings.store_path, 'w', encoding='utf-8') as handle:
            handle.write('title,when\nFoo,Bar')

        with pytest.raises(ValueError):
            run_crawl(settings, adapters=adapters, reference_date=TODAY)


def test_build_adapters_follows_enabled_sources():
    """Test that adapters are created in crawl order for enabled sources."""
    settings = CrawlerSettings(sources=['nyrr', 'nycruns', 'nyc-open-data'])

    adapters = build_adapters(settings, TODAY)

    assert [a.name for a in adapters] == ['nyc-open-data', 'nyrr', 'nycruns']
    assert adapters[1].navigation_timeout == 60.0
    assert all(a.reference_date == TODAY for a in adapters)


def make_summary():
    return CrawlSummary(
        existing=1,
        incoming=2,
        written=3,
        sources={'nyrr': SourceReport(name='nyrr', fetched=2, relevant=2, normalized=2)},
        store_path='data/events.csv'
    )


class TestLambdaHandler:
    """Test cases for lambda_handler."""

    @patch('crawl_events.run_crawl')
    def test_successful_run(self, mock_run, monkeypatch):
        """Test successful scheduled execution."""
        monkeypatch.setenv('CRAWL_SOURCES', 'nyrr')
        mock_run.return_value = make_summary()

        response = lambda_handler({}, None)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'Crawl completed successfully'
        assert body['statistics']['events_written'] == 3
        assert body['statistics']['sources']['nyrr']['normalized'] == 2
        assert 'duration_seconds' in body['statistics']
        assert mock_run.call_args.args[0].sources == ['nyrr']

    @patch('crawl_events.run_crawl')
    def test_storage_failure(self, mock_run, monkeypatch):
        """Test handling of a fatal store error."""
        monkeypatch.delenv('CRAWL_SOURCES', raising=False)
        mock_run.side_effect = OSError('disk full')

        response = lambda_handler({}, None)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Crawl failed'
        assert body['error'] == 'disk full'
        assert body['error_type'] == 'OSError'

    def test_invalid_configuration(self, monkeypatch):
        monkeypatch.setenv('CRAWL_SOURCES', 'nyrr,somewhere-else')

        response = lambda_handler({}, None)

        assert response['statusCode'] == 500
        assert json.loads(response['body'])['error_type'] == 'ValueError'


class TestMain:
    """Test cases for the command-line entry point."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.delenv('CRAWL_SOURCES', raising=False)
        monkeypatch.delenv('EVENTS_MIRROR_PATH', raising=False)

    @patch('crawl_events.run_crawl')
    def test_arguments_override_settings(self, mock_run, tmp_path):
        mock_run.return_value = make_summary()
        store = str(tmp_path / 'events.csv')

        exit_code = main(['--store', store, '--no-mirror', '--sources', 'nyrr, nycruns', '--prune-past'])

        assert exit_code == 0
        settings = mock_run.call_args.args[0]
        assert settings.store_path == store
        assert settings.mirror_path is None
        assert settings.sources == ['nyrr', 'nycruns']
        assert settings.prune_past_events

    @patch('crawl_events.run_crawl')
    def test_unknown_source_exits_with_usage_error(self, mock_run):
        assert main(['--sources', 'nyrr,bogus']) == 2
        mock_run.assert_not_called()

    @patch('crawl_events.run_crawl')
    def test_sources_argument_overrides_invalid_environment(self, mock_run, monkeypatch):
        monkeypatch.setenv('CRAWL_SOURCES', 'bogus')
        mock_run.return_value = make_summary()

        assert main(['--sources', 'nyrr']) == 0
        assert mock_run.call_args.args[0].sources == ['nyrr']

    @patch('crawl_events.run_crawl')
    def test_crawl_failure_exits_nonzero(self, mock_run):
        mock_run.side_effect = OSError('permission denied')

        assert main([]) == 1


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_includes_extra_fields(self):
        record = logging.LogRecord('crawl_events', logging.INFO, __file__, 1, 'Fetched %d events', (3,), None)
        record.source = 'nyrr'
        record.dropped = {'closure': 1}

        output = json.loads(JsonFormatter().format(record))

        assert output['message'] == 'Fetched 3 events'
        assert output['level'] == 'INFO'
        assert output['logger'] == 'crawl_events'
        assert output['source'] == 'nyrr'
        assert output['dropped'] == {'closure': 1}
        assert 'args' not in output

    def test_setup_logging_installs_json_handler(self):
        crawl_events.setup_logging('debug')

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
