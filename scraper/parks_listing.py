"""Paginated scraper for the park's own event listing."""
import asyncio
import logging
import re
from datetime import date
from typing import Callable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from processor.date_normalizer import split_timestamp
from processor.models import RawCandidate, SourceKind
from processor.relevance import FilterPolicy
from scraper.base import SourceAdapter
from scraper.browser import HeadlessBrowser

logger = logging.getLogger(__name__)

CATEGORY_PATTERN = re.compile(r'Category:\s*([^\n]+)')


class ParksListingAdapter(SourceAdapter):
    """Structured-DOM adapter for the parks department calendar."""

    name = 'nyc-parks'
    filter_policy = FilterPolicy.PARK_LISTING

    BASE_URL = 'https://www.nycgovparks.org/parks/central-park/events'
    SITE_ROOT = 'https://www.nycgovparks.org'
    DEFAULT_LOCATION = 'Central Park'

    def __init__(
        self,
        browser_factory: Callable[..., HeadlessBrowser] = HeadlessBrowser,
        navigation_timeout: float = 30.0,
        max_pages: int = 3,
        page_delay: float = 1.0,
        reference_date: Optional[date] = None
    ):
        """
        Initialize the listing scraper.

        Args:
            browser_factory: Callable returning a HeadlessBrowser-like async context manager
            navigation_timeout: Per-page navigation timeout in seconds (default: 30)
            max_pages: Maximum number of listing pages to visit (default: 3)
            page_delay: Seconds to wait between page loads (default: 1.0)
            reference_date: The run's current date
        """
        super().__init__(reference_date)
        self.browser_factory = browser_factory
        self.navigation_timeout = navigation_timeout
        self.max_pages = max_pages
        self.page_delay = page_delay

    def page_url(self, page_number: int) -> str:
        if page_number == 1:
            return self.BASE_URL
        return f"{self.BASE_URL}/page/{page_number}"

    async def _fetch(self) -> List[RawCandidate]:
        candidates = []

        async with self.browser_factory(navigation_timeout=self.navigation_timeout) as browser:
            for page_number in range(1, self.max_pages + 1):
                url = self.page_url(page_number)
                logger.info(f"Fetching listing page {page_number}: {url}")
                html = await browser.render(url)

                page_candidates = self.parse_listing(html)
                logger.info(f"Found {len(page_candidates)} events on page {page_number}")
                candidates.extend(page_candidates)

                if not page_candidates or not self.has_next_page(html):
                    break
                if page_number < self.max_pages:
                    await asyncio.sleep(self.page_delay)

        return candidates

    def has_next_page(self, html_content: str) -> bool:
        """Return True if the page's pager offers a "Next" link."""
        soup = BeautifulSoup(html_content, 'html.parser')
        return any('Next' in link.get_text() for link in soup.select('.parks_pages a'))

    def parse_listing(self, html_content: str) -> List[RawCandidate]:
        """
        Parse event cards from one rendered listing page.

        Args:
            html_content: Rendered HTML of the page

        Returns:
            List of RawCandidate objects
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        candidates = []

        for element in soup.select('.vevent'):
            try:
                candidate = self._parse_event_element(element)
                if candidate:
                    candidates.append(candidate)
            except Exception as e:
                logger.warning(f"Failed to parse event element: {e}")
                continue

        return candidates

    def _parse_event_element(self, element) -> Optional[RawCandidate]:
        """
        Parse a single event card.

        Args:
            element: BeautifulSoup element for a ``.vevent`` card

        Returns:
            RawCandidate or None if the card has no title
        """
        summary = element.select_one('.summary')
        title_link = summary.find('a') if summary else None
        if title_link:
            title = title_link.get_text(strip=True)
        else:
            title = summary.get_text(strip=True) if summary else ''
        if not title:
            return None

        href = title_link.get('href', '') if title_link else ''
        event_url = urljoin(self.SITE_ROOT, href) if href else None

        start_elem = element.select_one('.dtstart')
        end_elem = element.select_one('.dtend')
        event_date, start_time = split_timestamp(start_elem.get('title') if start_elem else None)
        _, end_time = split_timestamp(end_elem.get('title') if end_elem else None)

        location_elem = element.select_one('.location')
        location = location_elem.get_text(' ', strip=True) if location_elem else ''

        full_text = element.get_text('\n')
        category_match = CATEGORY_PATTERN.search(full_text)
        category = category_match.group(1).strip() if category_match else ''
        is_free = 'Free!' in full_text

        description = category or ('Free Event' if is_free else 'Event')

        return RawCandidate(
            source=SourceKind.PARKS_LISTING,
            name=title,
            source_url=self.BASE_URL,
            date=event_date or '',
            start_time=start_time,
            end_time=end_time,
            location=location or self.DEFAULT_LOCATION,
            description=description,
            category=category,
            event_url=event_url or self.BASE_URL
        )
