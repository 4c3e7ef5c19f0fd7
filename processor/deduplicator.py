"""Cross-source and cross-run deduplication of canonical events."""
import logging
from datetime import date
from typing import Dict, Iterable, List

from processor.models import CanonicalEvent

logger = logging.getLogger(__name__)


def dedup_key(event: CanonicalEvent) -> str:
    """Identity of a real-world event: case-insensitive trimmed name plus date."""
    return f"{event.name.strip().lower()}_{event.date}"


def _is_more_informative(candidate: CanonicalEvent, incumbent: CanonicalEvent) -> bool:
    # No source is authoritative; a longer description stands in for "more informative".
    return len(candidate.description or '') > len(incumbent.description or '')


def merge(
    existing: Iterable[CanonicalEvent],
    incoming: Iterable[CanonicalEvent]
) -> List[CanonicalEvent]:
    """
    Fold incoming events over the existing store snapshot.

    The map is seeded with ``existing``; an incoming event with a new key is
    inserted, and one with a colliding key replaces the incumbent only when
    its description is strictly longer. Output order is not meaningful;
    callers sort before persisting.

    Args:
        existing: Events already in the store
        incoming: Events produced by this run

    Returns:
        One event per dedup key
    """
    unique: Dict[str, CanonicalEvent] = {}
    replaced = 0

    for event in list(existing) + list(incoming):
        key = dedup_key(event)
        incumbent = unique.get(key)
        if incumbent is None:
            unique[key] = event
        elif _is_more_informative(event, incumbent):
            unique[key] = event
            replaced += 1

    logger.info(
        f"Merged into {len(unique)} unique events",
        extra={'replaced': replaced}
    )
    return list(unique.values())


def sort_events(events: List[CanonicalEvent]) -> List[CanonicalEvent]:
    """Sort ascending by date; the sort is stable within a date."""
    return sorted(events, key=lambda event: event.date)


def prune_past_events(events: List[CanonicalEvent], reference_date: date) -> List[CanonicalEvent]:
    """Drop events dated before the reference date."""
    cutoff = reference_date.isoformat()
    kept = [event for event in events if event.date >= cutoff]
    if len(kept) != len(events):
        logger.info(f"Pruned {len(events) - len(kept)} past events before {cutoff}")
    return kept
