"""Relevance filtering: keep only park running events and large-crowd events."""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Tuple

from processor.models import RawCandidate

logger = logging.getLogger(__name__)

PARK_NAME = 'central park'
CITY_KEYWORDS = ['central park', 'manhattan', 'new york']
OTHER_BOROUGHS = ['brooklyn', 'queens', 'bronx', 'staten island']

RUNNING_KEYWORDS = ['run', 'race', 'marathon', 'triathlon', '5k', '10k', 'half']
RACE_NAME_KEYWORDS = ['run', 'race', 'marathon', '5k', '10k', 'half', 'mile', 'walk']
LARGE_EVENT_KEYWORDS = ['concert', 'festival', 'rally', 'parade']
CLOSURE_LOCATION_KEYWORDS = ['lawn', 'playground']


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern:
    # Word keywords anchor at a word start ("running" but not "brunch").
    # Distance keywords may follow a digit ("15K" mentions "5k").
    alternatives = [
        (r'(?<![a-z])' if keyword[0].isdigit() else r'\b') + re.escape(keyword)
        for keyword in keywords
    ]
    return re.compile(r'(?:' + '|'.join(alternatives) + r')', re.IGNORECASE)


RUNNING_PATTERN = _keyword_pattern(RUNNING_KEYWORDS)
RACE_NAME_PATTERN = _keyword_pattern(RACE_NAME_KEYWORDS)
LARGE_EVENT_PATTERN = _keyword_pattern(LARGE_EVENT_KEYWORDS)
CLOSURE_PATTERN = _keyword_pattern(CLOSURE_LOCATION_KEYWORDS)
WALK_PATTERN = _keyword_pattern(['walk'])
RUN_PATTERN = _keyword_pattern(['run'])


def mentions_running(*texts: str) -> bool:
    return any(RUNNING_PATTERN.search(text or '') for text in texts)


def mentions_large_event(*texts: str) -> bool:
    return any(LARGE_EVENT_PATTERN.search(text or '') for text in texts)


def mentions_closure_location(text: str) -> bool:
    return bool(CLOSURE_PATTERN.search(text or ''))


class FilterPolicy(str, Enum):
    """How strictly a source's candidates are screened."""
    RELIABLE_LOCATION = 'reliable_location'
    PARK_LOCATION = 'park_location'
    RUNNING_IN_PARK = 'running_in_park'
    PARK_LISTING = 'park_listing'


@dataclass(frozen=True)
class Rule:
    """A named predicate; a candidate failing it is rejected under that name."""
    name: str
    check: Callable[[RawCandidate], bool]


def _location(candidate: RawCandidate) -> str:
    return (candidate.location or '').lower()


def _name(candidate: RawCandidate) -> str:
    return (candidate.name or '').lower()


def location_in_city(candidate: RawCandidate) -> bool:
    location = _location(candidate)
    return any(keyword in location for keyword in CITY_KEYWORDS)


def location_in_park(candidate: RawCandidate) -> bool:
    return PARK_NAME in _location(candidate)


def park_in_name_or_location(candidate: RawCandidate) -> bool:
    return PARK_NAME in _name(candidate) or PARK_NAME in _location(candidate)


def name_mentions_race(candidate: RawCandidate) -> bool:
    return bool(RACE_NAME_PATTERN.search(candidate.name or ''))


def not_closure(candidate: RawCandidate) -> bool:
    if mentions_closure_location(candidate.location):
        return False
    return 'lawn closure' not in _name(candidate)


def not_plain_walk(candidate: RawCandidate) -> bool:
    name = candidate.name or ''
    return not (WALK_PATTERN.search(name) and not RUN_PATTERN.search(name))


def running_or_large_event(candidate: RawCandidate) -> bool:
    texts = (candidate.name, candidate.description, candidate.category)
    return mentions_running(*texts) or mentions_large_event(*texts)


POLICY_RULES = {
    FilterPolicy.RELIABLE_LOCATION: [
        Rule('location_outside_city', location_in_city),
    ],
    FilterPolicy.PARK_LOCATION: [
        Rule('location_outside_park', location_in_park),
    ],
    FilterPolicy.RUNNING_IN_PARK: [
        Rule('not_a_race', name_mentions_race),
        Rule('park_not_mentioned', park_in_name_or_location),
    ],
    FilterPolicy.PARK_LISTING: [
        Rule('closure', not_closure),
        Rule('walk_only', not_plain_walk),
        Rule('not_running_or_large_event', running_or_large_event),
    ],
}


def rejection_reason(candidate: RawCandidate, policy: FilterPolicy) -> str:
    """Return the name of the first rule the candidate fails, or ''."""
    for rule in POLICY_RULES[policy]:
        if not rule.check(candidate):
            return rule.name
    return ''


def is_relevant(candidate: RawCandidate, policy: FilterPolicy) -> bool:
    return not rejection_reason(candidate, policy)


def filter_candidates(
    candidates: List[RawCandidate],
    policy: FilterPolicy
) -> Tuple[List[RawCandidate], List[Tuple[RawCandidate, str]]]:
    """
    Split candidates into kept and rejected under a source's policy.

    Args:
        candidates: Raw candidates from one source
        policy: The source's filter policy

    Returns:
        Tuple of (kept candidates, list of (rejected candidate, rule name))
    """
    kept = []
    rejected = []
    for candidate in candidates:
        reason = rejection_reason(candidate, policy)
        if reason:
            logger.debug(f"Filtered out '{candidate.name}' ({reason})")
            rejected.append((candidate, reason))
        else:
            kept.append(candidate)

    logger.info(
        f"Relevance filter kept {len(kept)} of {len(candidates)} candidates",
        extra={'policy': policy.value, 'rejected': len(rejected)}
    )
    return kept, rejected
