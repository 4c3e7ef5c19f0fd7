"""Base class for event source adapters."""
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from processor.date_normalizer import park_today
from processor.models import RawCandidate
from processor.relevance import FilterPolicy

logger = logging.getLogger(__name__)


class SourceAdapter(ABC):
    """
    Retrieves candidate events from exactly one upstream source.

    Subclasses implement :meth:`_fetch`. :meth:`fetch` is the error boundary:
    any exception raised while reaching or parsing the source is logged and
    turned into an empty result, so one outage never aborts a run.
    """

    name = 'source'
    filter_policy = FilterPolicy.RELIABLE_LOCATION

    def __init__(self, reference_date: Optional[date] = None):
        """
        Args:
            reference_date: The run's current date (defaults to today in the park)
        """
        self.reference_date = reference_date or park_today()
        self.last_error: Optional[str] = None

    async def fetch(self) -> List[RawCandidate]:
        """
        Fetch candidates from the source.

        Returns:
            List of RawCandidate objects; empty if the source failed
        """
        self.last_error = None
        try:
            candidates = await self._fetch()
        except Exception as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.error(
                f"Source {self.name} failed, treating as zero results: {e}",
                extra={'source': self.name, 'error_type': type(e).__name__},
                exc_info=True
            )
            return []

        logger.info(
            f"Fetched {len(candidates)} candidates from {self.name}",
            extra={'source': self.name}
        )
        return candidates

    @abstractmethod
    async def _fetch(self) -> List[RawCandidate]:
        """Fetch candidates; may raise."""
