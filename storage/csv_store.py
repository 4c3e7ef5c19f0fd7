"""CSV store for canonical events, with a mirror for the presentation layer."""
import csv
import io
import logging
import os
import shutil
import tempfile
from datetime import date
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import boto3

from processor.date_normalizer import normalize_date
from processor.models import CanonicalEvent

logger = logging.getLogger(__name__)


class CsvEventStore:
    """Durable tabular store of canonical events."""

    FIELDNAMES = [
        'EVENT_NAME', 'DATE', 'START_TIME', 'END_TIME',
        'LOCATION', 'DESCRIPTION', 'URL'
    ]

    def __init__(self, path: str, mirror_path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            path: Path of the CSV file
            mirror_path: Local path or s3://bucket/key receiving a copy after each save
        """
        self.path = Path(path)
        self.mirror_path = mirror_path

    def load(self, reference_date: date) -> List[CanonicalEvent]:
        """
        Read existing events to seed the merge.

        A missing store means zero existing events. Rows without a name or
        a normalizable date are discarded. Any other read error propagates,
        so a store that could not be read is never overwritten.

        Args:
            reference_date: The run's current date, for re-normalizing legacy dates

        Returns:
            List of CanonicalEvent objects in file order
        """
        if not self.path.exists():
            logger.info(f"No existing store at {self.path}; starting empty")
            return []

        events = []
        skipped = 0
        with open(self.path, newline='', encoding='utf-8') as handle:
            reader = csv.DictReader(handle)
            if reader.fieldnames is None:
                logger.info(f"Store at {self.path} is empty")
                return []
            missing = [name for name in ('EVENT_NAME', 'DATE') if name not in (reader.fieldnames or [])]
            if missing:
                raise ValueError(f"Store {self.path} is missing columns: {', '.join(missing)}")

            for row in reader:
                event = self._row_to_event(row, reference_date)
                if event:
                    events.append(event)
                else:
                    skipped += 1

        logger.info(
            f"Loaded {len(events)} existing events from {self.path}",
            extra={'skipped_rows': skipped}
        )
        return events

    def save(self, events: List[CanonicalEvent]) -> int:
        """
        Overwrite the store with the given events.

        The content is written to a temporary file beside the store and then
        moved into place, so readers never see a partial file. The final
        newline is dropped for byte-stable diffs between runs.

        Args:
            events: Events in the order they should be written

        Returns:
            Number of events written

        Raises:
            OSError: If the store cannot be written
        """
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=self.FIELDNAMES, lineterminator='\n')
        writer.writeheader()
        for event in events:
            writer.writerow(self._event_to_row(event))

        content = buffer.getvalue()
        if content.endswith('\n'):
            content = content[:-1]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as handle:
                handle.write(content)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info(f"Wrote {len(events)} events to {self.path}")
        return len(events)

    def mirror(self) -> Optional[str]:
        """
        Copy the store to the mirror location.

        Returns:
            The mirror location, or None when no mirror is configured

        Raises:
            OSError: If a local copy fails
            botocore.exceptions.ClientError: If an S3 upload fails
        """
        if not self.mirror_path:
            return None

        if self.mirror_path.startswith('s3://'):
            bucket, key = self._parse_s3_uri(self.mirror_path)
            s3 = boto3.client('s3')
            s3.upload_file(
                str(self.path), bucket, key,
                ExtraArgs={'ContentType': 'text/csv; charset=utf-8'}
            )
        else:
            target = Path(self.mirror_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.path, target)

        logger.info(f"Mirrored store to {self.mirror_path}")
        return self.mirror_path

    @staticmethod
    def _parse_s3_uri(uri: str) -> Tuple[str, str]:
        parsed = urlparse(uri)
        key = parsed.path.lstrip('/')
        if not parsed.netloc or not key:
            raise ValueError(f"Invalid S3 mirror location: {uri}")
        return parsed.netloc, key

    def _row_to_event(self, row: dict, reference_date: date) -> Optional[CanonicalEvent]:
        """
        Convert a CSV row to a CanonicalEvent.

        Returns:
            CanonicalEvent or None if the row is unusable
        """
        name = (row.get('EVENT_NAME') or '').strip()
        if not name:
            logger.warning("Skipping stored row without EVENT_NAME")
            return None

        event_date = normalize_date(row.get('DATE'), reference_date)
        if not event_date:
            logger.warning(f"Skipping stored event '{name}' with invalid DATE: {row.get('DATE')}")
            return None

        return CanonicalEvent(
            name=name,
            date=event_date,
            start_time=row.get('START_TIME') or '',
            end_time=row.get('END_TIME') or '',
            location=row.get('LOCATION') or '',
            description=row.get('DESCRIPTION') or '',
            url=row.get('URL') or ''
        )

    def _event_to_row(self, event: CanonicalEvent) -> dict:
        return {
            'EVENT_NAME': event.name,
            'DATE': event.date,
            'START_TIME': event.start_time,
            'END_TIME': event.end_time,
            'LOCATION': event.location,
            'DESCRIPTION': event.description,
            'URL': event.url,
        }
