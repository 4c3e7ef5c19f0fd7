"""Generic page scraper that delegates event extraction to a language model."""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from processor.models import RawCandidate, SourceKind
from processor.relevance import FilterPolicy
from scraper.base import SourceAdapter
from scraper.browser import HeadlessBrowser
from scraper.llm_client import ExtractionClient
from scraper.response_parser import parse_events_response

logger = logging.getLogger(__name__)

EVENT_FIELDS = 'name, date (YYYY-MM-DD format), startTime, endTime, location, description, category (if available), eventUrl (direct link to the event if available)'

SYSTEM_PROMPT = (
    "You are an expert at extracting structured event data from text. "
    "Extract all events mentioned in the text and format them as JSON. "
    "Pay special attention to race events, dates, times, and locations."
)

DETAIL_SYSTEM_NOTE = (
    " The listing page lacks reliable locations; look for them in the "
    "additional information sections taken from event detail pages."
)


@dataclass(frozen=True)
class LlmSourceSpec:
    """An unstructured page handled by model extraction."""
    name: str
    url: str
    filter_policy: FilterPolicy
    follow_detail_links: bool = False
    hints: str = ''


def html_to_text(html_content: str, max_length: int) -> str:
    """Visible text of a page with scripts and styles removed, truncated."""
    soup = BeautifulSoup(html_content, 'html.parser')
    for element in soup(['script', 'style', 'noscript']):
        element.decompose()
    root = soup.body or soup
    text = ' '.join(root.get_text(' ').split())
    return text[:max_length]


def harvest_detail_links(html_content: str, base_url: str, limit: int) -> List[str]:
    """Absolute URLs of "learn more"/"details" links, in page order."""
    soup = BeautifulSoup(html_content, 'html.parser')
    links = []
    for anchor in soup.find_all('a', href=True):
        label = anchor.get_text(' ', strip=True).lower()
        if 'learn more' not in label and 'details' not in label:
            continue
        url = urljoin(base_url, anchor['href'])
        if url not in links:
            links.append(url)
        if len(links) >= limit:
            break
    return links


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ''
    return str(value).strip()


class LlmExtractionAdapter(SourceAdapter):
    """LLM-extraction adapter for one unstructured source page."""

    MAX_PAGE_TEXT = 15000
    MAX_DETAIL_TEXT = 5000
    MAX_DETAIL_LINKS = 3

    def __init__(
        self,
        spec: LlmSourceSpec,
        client: ExtractionClient,
        browser_factory: Callable[..., HeadlessBrowser] = HeadlessBrowser,
        navigation_timeout: float = 30.0,
        reference_date: Optional[date] = None
    ):
        """
        Initialize the adapter.

        Args:
            spec: Source page and its extraction options
            client: Extraction service client
            browser_factory: Callable returning a HeadlessBrowser-like async context manager
            navigation_timeout: Per-page navigation timeout in seconds
            reference_date: The run's current date
        """
        super().__init__(reference_date)
        self.spec = spec
        self.name = spec.name
        self.filter_policy = spec.filter_policy
        self.client = client
        self.browser_factory = browser_factory
        self.navigation_timeout = navigation_timeout

    async def _fetch(self) -> List[RawCandidate]:
        if not self.client.is_available:
            logger.info(f"No extraction credential configured; skipping {self.spec.url}")
            return []

        async with self.browser_factory(navigation_timeout=self.navigation_timeout) as browser:
            html = await browser.render(self.spec.url)
            page_text = html_to_text(html, self.MAX_PAGE_TEXT)
            detail_text = ''
            if self.spec.follow_detail_links:
                detail_text = await self._collect_detail_text(browser, html)

        logger.info(f"Extracting events from {self.spec.url}")
        response = await self.client.complete(
            self._system_prompt(),
            self._user_prompt(page_text, detail_text)
        )
        objects = parse_events_response(response)

        candidates = []
        for obj in objects:
            candidate = self._object_to_candidate(obj)
            if candidate:
                candidates.append(candidate)
        return candidates

    async def _collect_detail_text(self, browser, html_content: str) -> str:
        """Fetch up to three detail pages; a failing page is skipped."""
        sections = []
        for link in harvest_detail_links(html_content, self.spec.url, self.MAX_DETAIL_LINKS):
            try:
                logger.info(f"Fetching additional info from {link}")
                detail_html = await browser.render(link)
            except Exception as e:
                logger.warning(f"Error fetching additional info from {link}: {e}")
                continue
            detail = html_to_text(detail_html, self.MAX_DETAIL_TEXT)
            sections.append(f"\n\nAdditional information from {link}:\n{detail}")
        return ''.join(sections)

    def _system_prompt(self) -> str:
        if self.spec.follow_detail_links:
            return SYSTEM_PROMPT + DETAIL_SYSTEM_NOTE
        return SYSTEM_PROMPT

    def _user_prompt(self, page_text: str, detail_text: str) -> str:
        parts = [
            f"Extract all running events and races from this text from {self.spec.url}.",
            f"Today's date is {self.reference_date.isoformat()}.",
            "Focus on event name, date, time, and location.",
            f"Return ONLY a JSON array with objects containing these fields: {EVENT_FIELDS}.",
        ]
        if self.spec.hints:
            parts.append(self.spec.hints)
        parts.append(f"Here's the text: {page_text}{detail_text}")
        return '\n'.join(parts)

    def _object_to_candidate(self, obj: dict) -> Optional[RawCandidate]:
        name = _text(obj.get('name'))
        if not name:
            logger.debug(f"Discarding extracted object without a name: {obj}")
            return None

        event_url = _text(obj.get('eventUrl')) or _text(obj.get('url'))
        return RawCandidate(
            source=SourceKind.LLM_EXTRACTION,
            name=name,
            source_url=self.spec.url,
            date=_text(obj.get('date')),
            start_time=_text(obj.get('startTime')),
            end_time=_text(obj.get('endTime')),
            location=_text(obj.get('location')),
            description=_text(obj.get('description')),
            category=_text(obj.get('category')),
            event_url=urljoin(self.spec.url, event_url) if event_url else self.spec.url
        )
