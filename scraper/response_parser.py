"""
Recover a list of event objects from free-text model output.

Strategies run from strictest to most lenient; the first one that yields
at least one JSON object wins.
"""
import json
import logging
import re
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ARRAY_SPAN_PATTERN = re.compile(r'\[[\s\S]*\]')
OBJECT_SPAN_PATTERN = re.compile(r'\{[^{}]*\}')


def _objects_only(items: list) -> Optional[List[dict]]:
    objects = [item for item in items if isinstance(item, dict)]
    return objects or None


def parse_whole_array(text: str) -> Optional[List[dict]]:
    """The whole response is a JSON array."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list):
        return None
    return _objects_only(parsed)


def parse_first_array_span(text: str) -> Optional[List[dict]]:
    """The response wraps an array in prose or code fences."""
    match = ARRAY_SPAN_PATTERN.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list):
        return None
    return _objects_only(parsed)


def parse_object_spans(text: str) -> Optional[List[dict]]:
    """Parse each flat ``{...}`` span on its own, skipping broken ones."""
    objects = []
    for span in OBJECT_SPAN_PATTERN.findall(text):
        try:
            parsed = json.loads(span)
        except json.JSONDecodeError:
            logger.debug(f"Discarding unparseable object: {span[:200]}")
            continue
        if isinstance(parsed, dict):
            objects.append(parsed)
    return objects or None


STRATEGIES: List[Tuple[str, Callable[[str], Optional[List[dict]]]]] = [
    ('whole_array', parse_whole_array),
    ('array_span', parse_first_array_span),
    ('object_spans', parse_object_spans),
]


def parse_events_response(text: Optional[str]) -> List[dict]:
    """
    Extract event objects from model output.

    Args:
        text: Raw response text

    Returns:
        List of dicts; empty when no strategy recovers any object
    """
    if not text or not text.strip():
        logger.warning("Model returned an empty response")
        return []

    for name, strategy in STRATEGIES:
        events = strategy(text.strip())
        if events:
            logger.info(f"Parsed {len(events)} events from model output ({name})")
            return events

    logger.warning(
        "No JSON events found in model output",
        extra={'raw_response': text}
    )
    return []
