"""Date and time normalization for heterogeneous event listings."""
import logging
import re
from datetime import date, datetime
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

PARK_TIMEZONE = ZoneInfo('America/New_York')

MONTHS = {
    'january': 1, 'february': 2, 'march': 3, 'april': 4,
    'may': 5, 'june': 6, 'july': 7, 'august': 8,
    'september': 9, 'october': 10, 'november': 11, 'december': 12,
}

MONTH_ABBREVIATIONS = {name[:3].upper(): number for name, number in MONTHS.items()}

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
ISO_TIMESTAMP_PATTERN = re.compile(r'^(\d{4}-\d{2}-\d{2})[T ]\d{2}:\d{2}')
LONG_MONTH_PATTERN = re.compile(
    r'(' + '|'.join(MONTHS) + r')\s+(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s*(\d{4}))?',
    re.IGNORECASE
)
_MONTH_TOKEN = r'(' + '|'.join(sorted(
    list(MONTHS) + [abbr.lower() for abbr in MONTH_ABBREVIATIONS] + ['sept'],
    key=len,
    reverse=True
)) + r')\.?'
MONTH_DAY_PATTERN = re.compile(
    r'\b' + _MONTH_TOKEN + r'\s*(\d{1,2})(?:st|nd|rd|th)?\b',
    re.IGNORECASE
)
DAY_MONTH_PATTERN = re.compile(
    r'\b(\d{1,2})(?:st|nd|rd|th)?\s*' + _MONTH_TOKEN + r'\b',
    re.IGNORECASE
)
YEAR_PATTERN = re.compile(r'\b((?:19|20)\d{2})\b')

TIME_FORMATS = [
    '%I:%M %p',
    '%I:%M%p',
    '%I %p',
    '%I%p',
    '%H:%M',
    '%H:%M:%S',
    '%I:%M:%S %p',
]


def park_today() -> date:
    """Return today's date in the park's local timezone."""
    return datetime.now(PARK_TIMEZONE).date()


def infer_year(month: int, day: int, reference_date: date) -> int:
    """
    Pick the year for a month/day that was listed without one.

    Listings only ever announce upcoming events, so a month/day that has
    already passed relative to the reference date belongs to next year.

    Args:
        month: Month number (1-12)
        day: Day of month
        reference_date: The run's current date

    Returns:
        The inferred four-digit year
    """
    if month < reference_date.month:
        return reference_date.year + 1
    if month == reference_date.month and day < reference_date.day:
        return reference_date.year + 1
    return reference_date.year


def _build_iso_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        logger.debug(f"Discarding impossible calendar date {year}-{month}-{day}")
        return None


def normalize_date(text: Optional[str], reference_date: date) -> Optional[str]:
    """
    Normalize a free-text date to ISO 8601 (YYYY-MM-DD).

    Accepts an ISO date (returned unchanged when it is a real calendar date),
    an ISO timestamp, or a long month name followed by a day and an optional
    year ("December 5", "June 1, 2025"). Missing years are resolved with
    :func:`infer_year`.

    Args:
        text: Date text in any supported form
        reference_date: The run's current date

    Returns:
        ISO 8601 date string, or None when no supported pattern matches
    """
    if not text:
        return None
    value = text.strip()

    if ISO_DATE_PATTERN.match(value):
        try:
            date.fromisoformat(value)
        except ValueError:
            return None
        return value

    timestamp_match = ISO_TIMESTAMP_PATTERN.match(value)
    if timestamp_match:
        return normalize_date(timestamp_match.group(1), reference_date)

    match = LONG_MONTH_PATTERN.search(value)
    if not match:
        return None

    month = MONTHS[match.group(1).lower()]
    day = int(match.group(2))
    if match.group(3):
        year = int(match.group(3))
    else:
        year = infer_year(month, day, reference_date)
    return _build_iso_date(year, month, day)


def normalize_abbreviated_date(text: Optional[str], reference_date: date) -> Optional[str]:
    """
    Normalize calendar-card dates such as "SAT JUN 01", "15 NOV" or "Mar 3, 2026".

    The day must sit next to the month token, on either side. A four-digit
    year anywhere in the text is used as given; otherwise it is inferred.
    """
    if not text:
        return None

    match = MONTH_DAY_PATTERN.search(text)
    if match:
        month_token, day_text = match.group(1), match.group(2)
    else:
        match = DAY_MONTH_PATTERN.search(text)
        if not match:
            return None
        day_text, month_token = match.group(1), match.group(2)

    month = MONTH_ABBREVIATIONS[month_token[:3].upper()]
    day = int(day_text)
    year_match = YEAR_PATTERN.search(text)
    if year_match:
        year = int(year_match.group(1))
    else:
        year = infer_year(month, day, reference_date)
    return _build_iso_date(year, month, day)


def format_clock_time(moment: datetime) -> str:
    """Render a time as "7:00 AM"."""
    hour = moment.hour % 12 or 12
    meridiem = 'AM' if moment.hour < 12 else 'PM'
    return f"{hour}:{moment.minute:02d} {meridiem}"


def normalize_time(text: Optional[str]) -> str:
    """
    Normalize a clock time to "h:MM AM/PM".

    Times are optional, so text that matches no known format is returned
    trimmed rather than discarded.
    """
    if not text:
        return ''
    value = ' '.join(text.split()).upper().replace('.', '')

    for fmt in TIME_FORMATS:
        try:
            return format_clock_time(datetime.strptime(value, fmt))
        except ValueError:
            continue

    return text.strip()


def split_timestamp(value: Optional[str]) -> Tuple[Optional[str], str]:
    """
    Split an ISO 8601 timestamp into a park-local date and clock time.

    Timestamps with an offset are converted to the park timezone first;
    floating timestamps are taken as already local.

    Args:
        value: Timestamp such as "2024-06-01T07:00:00.000" or "2024-06-01T11:00:00Z"

    Returns:
        Tuple of (ISO date or None, clock time or empty string)
    """
    if not value:
        return None, ''
    try:
        moment = datetime.fromisoformat(value.strip())
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value}")
        return None, ''

    if moment.tzinfo is not None:
        moment = moment.astimezone(PARK_TIMEZONE)
    return moment.date().isoformat(), format_clock_time(moment)
