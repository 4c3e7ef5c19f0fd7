"""Data models for event ingestion."""
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class SourceKind(str, Enum):
    """Tag identifying which kind of adapter produced a candidate."""
    OPEN_DATA = 'open_data'
    PARKS_LISTING = 'parks_listing'
    RACE_CALENDAR = 'race_calendar'
    LLM_EXTRACTION = 'llm_extraction'


@dataclass(frozen=True)
class RawCandidate:
    """Unvalidated event as one source reported it."""
    source: SourceKind
    name: str
    source_url: str
    date: str = ''
    start_time: str = ''
    end_time: str = ''
    location: str = ''
    description: str = ''
    category: str = ''
    event_url: Optional[str] = None


@dataclass
class CanonicalEvent:
    """Normalized event as persisted to the store.

    ``date`` is always a valid ``YYYY-MM-DD`` calendar date. Optional text
    fields are empty strings, never None.
    """
    name: str
    date: str
    start_time: str = ''
    end_time: str = ''
    location: str = ''
    description: str = ''
    url: str = ''


@dataclass
class SourceReport:
    """Yield of one source during a run."""
    name: str
    ok: bool = True
    error: Optional[str] = None
    fetched: int = 0
    relevant: int = 0
    normalized: int = 0
    dropped: Counter = field(default_factory=Counter)

    def to_dict(self) -> dict:
        return {
            'ok': self.ok,
            'error': self.error,
            'fetched': self.fetched,
            'relevant': self.relevant,
            'normalized': self.normalized,
            'dropped': dict(self.dropped),
        }


@dataclass
class CrawlSummary:
    """Result of a complete crawl run."""
    existing: int
    incoming: int
    written: int
    sources: Dict[str, SourceReport]
    pruned: int = 0
    store_path: Optional[str] = None
    mirror_path: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'existing_events': self.existing,
            'incoming_events': self.incoming,
            'events_written': self.written,
            'events_pruned': self.pruned,
            'store_path': self.store_path,
            'mirror_path': self.mirror_path,
            'sources': {name: report.to_dict() for name, report in self.sources.items()},
            'errors': self.errors,
        }
