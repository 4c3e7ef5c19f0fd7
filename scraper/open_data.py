"""Adapter for the city's open-data events endpoint."""
import asyncio
import logging
from datetime import date
from typing import List, Optional

import requests

from processor.date_normalizer import split_timestamp
from processor.models import RawCandidate, SourceKind
from processor.relevance import (
    FilterPolicy,
    mentions_closure_location,
    mentions_large_event,
    mentions_running,
)
from scraper.base import SourceAdapter

logger = logging.getLogger(__name__)


class OpenDataEventsAdapter(SourceAdapter):
    """Structured API adapter; the endpoint already returns typed fields."""

    name = 'nyc-open-data'
    filter_policy = FilterPolicy.RELIABLE_LOCATION

    BASE_URL = 'https://data.cityofnewyork.us/resource/8end-qv57.json'
    EVENTS_PAGE_URL = 'https://www.nycgovparks.org/parks/central-park/events'
    PARK_NAME = 'Central Park'

    def __init__(self, timeout: int = 30, limit: int = 500, reference_date: Optional[date] = None):
        """
        Initialize the adapter.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            limit: Maximum number of records requested (default: 500)
            reference_date: The run's current date
        """
        super().__init__(reference_date)
        self.timeout = timeout
        self.limit = limit

    async def _fetch(self) -> List[RawCandidate]:
        records = await asyncio.to_thread(self._query)
        logger.info(f"Open data returned {len(records)} records")

        candidates = []
        for record in records:
            candidate = self._record_to_candidate(record)
            if candidate:
                candidates.append(candidate)

        logger.info(f"Kept {len(candidates)} running or large-crowd records from open data")
        return candidates

    def _query(self) -> List[dict]:
        """
        Run the filtered server-side query.

        Raises:
            requests.RequestException: On network or HTTP errors
            ValueError: If the body is not a JSON array
        """
        today = self.reference_date.isoformat()
        params = {
            '$where': (
                f"event_location LIKE '%{self.PARK_NAME}%' "
                f"AND start_date_time >= '{today}T00:00:00'"
            ),
            '$order': 'start_date_time ASC',
            '$limit': self.limit,
        }
        response = requests.get(self.BASE_URL, params=params, timeout=self.timeout)
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError(f"Unexpected open data payload: {type(payload).__name__}")
        return payload

    def _is_wanted(self, record: dict) -> bool:
        name = record.get('event_name') or ''
        event_type = record.get('event_type') or ''
        location = record.get('event_location') or ''

        if mentions_closure_location(location):
            return False
        return mentions_running(name, event_type) or mentions_large_event(name, event_type)

    def _record_to_candidate(self, record: dict) -> Optional[RawCandidate]:
        """
        Convert one API record, or return None if it is not wanted.

        Args:
            record: JSON object from the endpoint

        Returns:
            RawCandidate or None
        """
        if not isinstance(record, dict) or not self._is_wanted(record):
            return None

        event_date, start_time = split_timestamp(record.get('start_date_time'))
        _, end_time = split_timestamp(record.get('end_date_time'))

        event_type = record.get('event_type') or 'Event'
        agency = record.get('event_agency') or 'NYC Parks'

        return RawCandidate(
            source=SourceKind.OPEN_DATA,
            name=record.get('event_name') or 'Unnamed Event',
            source_url=self.EVENTS_PAGE_URL,
            date=event_date or '',
            start_time=start_time,
            end_time=end_time,
            location=record.get('event_location') or self.PARK_NAME,
            description=f"{event_type} - {agency}",
            category=record.get('event_type') or ''
        )
