"""Runtime configuration for the event crawler."""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from processor.relevance import FilterPolicy
from scraper.llm_extraction import LlmSourceSpec

NYRR_CALENDAR_URL = 'https://www.nyrr.org/run/race-calendar'
NYCRUNS_URL = 'https://nycruns.com/races'

LLM_SOURCES = [
    LlmSourceSpec(
        name='nycruns',
        url=NYCRUNS_URL,
        filter_policy=FilterPolicy.PARK_LOCATION,
        hints='For NYCRUNS races, use the RACE START time as the event start time.'
    ),
    LlmSourceSpec(
        name='nyrr-llm',
        url=NYRR_CALENDAR_URL,
        filter_policy=FilterPolicy.RUNNING_IN_PARK,
        follow_detail_links=True,
        hints='Look for race calendar entries, upcoming events, and scheduled runs.'
    ),
]

ALL_SOURCES = ['nyc-open-data', 'nyc-parks', 'nyrr'] + [spec.name for spec in LLM_SOURCES]
DEFAULT_SOURCES = ['nyc-open-data', 'nyc-parks', 'nyrr', 'nycruns']


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.environ.get(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass
class CrawlerSettings:
    """Settings for one crawl run."""
    openai_api_key: Optional[str] = None
    openai_model: str = 'gpt-4o'
    store_path: str = 'data/events.csv'
    mirror_path: Optional[str] = 'public/data/events.csv'
    sources: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCES))
    log_level: str = 'INFO'
    navigation_timeout: float = 30.0
    prune_past_events: bool = False
    summary_path: Optional[str] = None

    @classmethod
    def from_env(cls, validate: bool = True) -> 'CrawlerSettings':
        """
        Build settings from environment variables (and a .env file if present).

        Args:
            validate: Check source names now; callers applying overrides check later

        Raises:
            ValueError: If a source name is unknown or a number is malformed
        """
        load_dotenv()
        settings = cls(
            openai_api_key=os.environ.get('OPENAI_API_KEY') or None,
            openai_model=os.environ.get('OPENAI_MODEL', 'gpt-4o'),
            store_path=os.environ.get('EVENTS_STORE_PATH', 'data/events.csv'),
            mirror_path=os.environ.get('EVENTS_MIRROR_PATH', 'public/data/events.csv') or None,
            sources=_env_list('CRAWL_SOURCES', DEFAULT_SOURCES),
            log_level=os.environ.get('LOG_LEVEL', 'INFO'),
            navigation_timeout=float(os.environ.get('NAVIGATION_TIMEOUT_SECONDS', '30')),
            prune_past_events=_env_flag('PRUNE_PAST_EVENTS'),
            summary_path=os.environ.get('SUMMARY_PATH') or None,
        )
        if validate:
            settings.validate()
        return settings

    def validate(self) -> None:
        unknown = [name for name in self.sources if name not in ALL_SOURCES]
        if unknown:
            raise ValueError(f"Unknown sources: {', '.join(unknown)}")
