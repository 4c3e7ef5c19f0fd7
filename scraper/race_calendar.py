"""Heuristic scraper for the road-race organizer's calendar."""
import copy
import logging
import re
from datetime import date
from typing import Callable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment

from processor.date_normalizer import normalize_abbreviated_date
from processor.models import RawCandidate, SourceKind
from processor.relevance import FilterPolicy
from scraper import card_rules
from scraper.base import SourceAdapter
from scraper.browser import HeadlessBrowser

logger = logging.getLogger(__name__)

BLOCK_TAGS = [
    'address', 'article', 'aside', 'blockquote', 'dd', 'div', 'dl', 'dt',
    'footer', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'header', 'li', 'main',
    'nav', 'ol', 'p', 'section', 'table', 'td', 'th', 'tr', 'ul',
]
WHITESPACE_PATTERN = re.compile(r'\s+')


def rendered_lines(element) -> List[str]:
    """
    Approximate a browser's rendered text for an element, one entry per line.

    Inline markup joins its neighbours ("Central <span>Park</span>" reads as
    "Central Park"); block elements and ``<br>`` start new lines.

    Args:
        element: BeautifulSoup element

    Returns:
        Non-empty lines with whitespace collapsed
    """
    element = copy.copy(element)
    for hidden in element.find_all(['script', 'style', 'noscript']):
        hidden.decompose()
    for node in element.find_all(string=True):
        if isinstance(node, Comment):
            node.extract()
        else:
            node.replace_with(WHITESPACE_PATTERN.sub(' ', node))
    for line_break in element.find_all('br'):
        line_break.replace_with('\n')
    for block in element.find_all(BLOCK_TAGS):
        block.insert_before('\n')
        block.insert_after('\n')

    lines = (' '.join(line.split()) for line in element.get_text().split('\n'))
    return [line for line in lines if line]


class RaceCalendarAdapter(SourceAdapter):
    """
    Heuristic-DOM adapter for a calendar whose markup has no stable selectors.

    Cards are screened and mined with the named rules in
    :mod:`scraper.card_rules`.
    """

    name = 'nyrr'
    filter_policy = FilterPolicy.RELIABLE_LOCATION

    CALENDAR_URL = 'https://www.nyrr.org/run/race-calendar'
    SITE_ROOT = 'https://www.nyrr.org'
    CARD_SELECTOR = '.upcoming-event, .upcoming-race'
    DATE_SELECTOR = '.upcoming-race-date, [class*="date"]'
    TITLE_SELECTOR = '.upcoming-race-title, h3, h4, [class*="title"]'
    LINK_SELECTOR = 'a[href*="/run/"], a[href*="events.nyrr.org"]'
    LOCATION = 'Central Park, New York'
    DESCRIPTION = 'NYRR Race'

    def __init__(
        self,
        browser_factory: Callable[..., HeadlessBrowser] = HeadlessBrowser,
        navigation_timeout: float = 60.0,
        settle_seconds: float = 3.0,
        reference_date: Optional[date] = None
    ):
        super().__init__(reference_date)
        self.browser_factory = browser_factory
        self.navigation_timeout = navigation_timeout
        self.settle_seconds = settle_seconds

    async def _fetch(self) -> List[RawCandidate]:
        async with self.browser_factory(navigation_timeout=self.navigation_timeout) as browser:
            html = await browser.render(self.CALENDAR_URL, settle_seconds=self.settle_seconds)
        return self.parse_calendar(html)

    def parse_calendar(self, html_content: str) -> List[RawCandidate]:
        """
        Extract park races from the rendered calendar, deduplicated by name.

        Args:
            html_content: Rendered HTML of the calendar page

        Returns:
            List of RawCandidate objects
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        cards = soup.select(self.CARD_SELECTOR)
        candidates = []
        seen = set()

        for card in cards:
            candidate = self._parse_card(card)
            if not candidate:
                continue
            key = card_rules.name_key(candidate.name)
            if key in seen:
                continue
            seen.add(key)
            candidates.append(candidate)

        logger.info(f"Matched {len(candidates)} park races out of {len(cards)} cards")
        return candidates

    def _parse_card(self, card) -> Optional[RawCandidate]:
        lines = rendered_lines(card)
        text = ' '.join(lines)
        if not card_rules.card_is_relevant(text):
            return None

        date_elem = card.select_one(self.DATE_SELECTOR)
        date_text = date_elem.get_text(' ', strip=True) if date_elem else ''
        event_date = normalize_abbreviated_date(date_text, self.reference_date)

        title_elem = card.select_one(self.TITLE_SELECTOR)
        if title_elem:
            name = ' '.join(rendered_lines(title_elem))
        else:
            name = card_rules.pick_name_line(lines)

        if not event_date or len(name) < card_rules.MIN_NAME_LENGTH:
            logger.debug(f"Skipping card without usable name or date: {name!r} {date_text!r}")
            return None

        link_elem = card.select_one(self.LINK_SELECTOR)
        href = link_elem.get('href', '') if link_elem else ''
        url = urljoin(self.SITE_ROOT, href) if href else self.CALENDAR_URL

        return RawCandidate(
            source=SourceKind.RACE_CALENDAR,
            name=name,
            source_url=self.CALENDAR_URL,
            date=event_date,
            start_time=card_rules.extract_start_time(text),
            location=self.LOCATION,
            description=self.DESCRIPTION,
            event_url=url
        )
