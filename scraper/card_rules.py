"""
Ordered text rules for race-calendar cards that lack stable markup.

Each rule is named so that tests and debug logs can point at the exact
heuristic that accepted or rejected a card or line.
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

PARK_NAME = 'central park'
CITY_NAME = 'new york'
OTHER_BOROUGHS = ['brooklyn', 'queens', 'bronx', 'staten island']
DISTANCE_TOKENS = ['4 miles', '4m', '5k', '10k', 'half marathon', 'marathon']

MIN_NAME_LENGTH = 6

MONTH_ABBREVIATION_PATTERN = re.compile(r'(JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|OCT|NOV|DEC)', re.IGNORECASE)
DAY_PATTERN = re.compile(r'\d{1,2}')
TIME_LINE_PATTERN = re.compile(r'^\d{1,2}:\d{2}')
PRICE_LINE_PATTERN = re.compile(r'^\$\d+')
DISTANCE_LABEL_PATTERN = re.compile(r'^(half marathon|10k|5k|4 miles|\d+ miles?)$', re.IGNORECASE)
START_TIME_PATTERN = re.compile(r'(\d{1,2}:\d{2}\s*(?:AM|PM)?)', re.IGNORECASE)


@dataclass(frozen=True)
class TextRule:
    name: str
    matches: Callable[[str], bool]


# Card relevance: lowercase card text in, bool out.
MENTIONS_PARK = TextRule('mentions_park', lambda text: PARK_NAME in text)

CITY_ROAD_RACE_RULES = [
    TextRule('mentions_city', lambda text: CITY_NAME in text),
    TextRule('no_other_borough', lambda text: not any(b in text for b in OTHER_BOROUGHS)),
    TextRule('has_distance_token', lambda text: any(t in text for t in DISTANCE_TOKENS)),
    TextRule('not_virtual', lambda text: 'virtual' not in text),
]


def card_is_relevant(card_text: str) -> bool:
    """
    A card is relevant if it names the park, or if it is an in-city road
    race: mentions the city, no other borough, a race distance, and is not
    a virtual event.
    """
    text = card_text.lower()
    if MENTIONS_PARK.matches(text):
        return True
    return all(rule.matches(text) for rule in CITY_ROAD_RACE_RULES)


# Name-line exclusions, applied in order to each candidate line.
NAME_LINE_EXCLUSIONS = [
    TextRule('date_line', lambda line: bool(DAY_PATTERN.search(line) and MONTH_ABBREVIATION_PATTERN.search(line))),
    TextRule('time_line', lambda line: bool(TIME_LINE_PATTERN.match(line))),
    TextRule('city_line', lambda line: CITY_NAME in line.lower()),
    TextRule('price_line', lambda line: bool(PRICE_LINE_PATTERN.match(line))),
    TextRule('call_to_action', lambda line: 'learn more' in line.lower()),
    TextRule('distance_label', lambda line: bool(DISTANCE_LABEL_PATTERN.match(line))),
]


def line_exclusion(line: str) -> Optional[str]:
    """Return the name of the first exclusion rule matching the line, or None."""
    for rule in NAME_LINE_EXCLUSIONS:
        if rule.matches(line):
            return rule.name
    return None


def pick_name_line(lines: List[str]) -> str:
    """Return the first line long enough to be a name and not excluded."""
    for raw_line in lines:
        line = raw_line.strip()
        if len(line) < MIN_NAME_LENGTH:
            continue
        if line_exclusion(line):
            continue
        return line
    return ''


def extract_start_time(card_text: str) -> str:
    match = START_TIME_PATTERN.search(card_text)
    return match.group(1).strip() if match else ''


def name_key(name: str) -> str:
    """Collapse a name to lowercase alphanumerics for within-page dedup."""
    return re.sub(r'[^a-z0-9]', '', name.lower())
