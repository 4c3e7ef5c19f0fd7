"""Event processor for converting raw candidates into canonical events."""
import logging
from collections import Counter
from datetime import date
from typing import List, Optional, Tuple

from processor.date_normalizer import normalize_abbreviated_date, normalize_date, normalize_time
from processor.models import CanonicalEvent, RawCandidate

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor for validating and normalizing candidate records."""

    MAX_NAME_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000

    def __init__(self):
        self.dropped = Counter()

    def process_candidates(
        self,
        candidates: List[RawCandidate],
        reference_date: date
    ) -> List[CanonicalEvent]:
        """
        Convert raw candidates into canonical events.

        Candidates without a usable name or date are dropped and counted in
        ``self.dropped`` by reason.

        Args:
            candidates: Raw candidates that passed the relevance filter
            reference_date: The run's current date, used for year inference

        Returns:
            List of CanonicalEvent objects
        """
        self.dropped = Counter()
        processed_events = []

        for candidate in candidates:
            event, reason = self._process_single_candidate(candidate, reference_date)
            if event:
                processed_events.append(event)
            else:
                self.dropped[reason] += 1
                logger.info(
                    f"Dropped candidate '{candidate.name}': {reason}",
                    extra={'source': candidate.source.value, 'reason': reason}
                )

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{len(candidates)} candidates"
        )
        return processed_events

    def _process_single_candidate(
        self,
        candidate: RawCandidate,
        reference_date: date
    ) -> Tuple[Optional[CanonicalEvent], str]:
        """
        Process a single candidate.

        Returns:
            Tuple of (CanonicalEvent or None, drop reason or empty string)
        """
        name = ' '.join((candidate.name or '').split())
        if not name:
            return None, 'missing_name'

        if not candidate.date or not candidate.date.strip():
            return None, 'missing_date'

        normalized_date = self._normalize_date(candidate.date, reference_date)
        if not normalized_date:
            logger.debug(f"Invalid date for '{name}': {candidate.date}")
            return None, 'unparseable_date'

        description = (candidate.description or '').strip()

        return CanonicalEvent(
            name=name[:self.MAX_NAME_LENGTH],
            date=normalized_date,
            start_time=normalize_time(candidate.start_time),
            end_time=normalize_time(candidate.end_time),
            location=(candidate.location or '').strip(),
            description=description[:self.MAX_DESCRIPTION_LENGTH],
            url=(candidate.event_url or candidate.source_url or '').strip()
        ), ''

    def _normalize_date(self, date_str: str, reference_date: date) -> Optional[str]:
        """Try the long-form normalizer, then the calendar-card form."""
        return (
            normalize_date(date_str, reference_date)
            or normalize_abbreviated_date(date_str, reference_date)
        )
