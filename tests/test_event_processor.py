"""Unit tests for EventProcessor."""
from processor.event_processor import EventProcessor
from processor.models import RawCandidate, SourceKind


def make_candidate(**overrides):
    fields = dict(
        source=SourceKind.PARKS_LISTING,
        name='Fall 5K',
        source_url='https://www.nycgovparks.org/parks/central-park/events',
        date='2024-10-12',
        start_time='8:00 AM',
        end_time='10:00 AM',
        location='Central Park',
        description='Running',
        category='Running',
        event_url='https://www.nycgovparks.org/events/2024/10/12/fall-5k'
    )
    fields.update(overrides)
    return RawCandidate(**fields)


class TestEventProcessor:
    """Test cases for EventProcessor class."""

    def test_process_valid_candidate(self, reference_date):
        """Test processing a valid candidate."""
        processor = EventProcessor()

        processed = processor.process_candidates([make_candidate()], reference_date)

        assert len(processed) == 1
        event = processed[0]
        assert event.name == 'Fall 5K'
        assert event.date == '2024-10-12'
        assert event.start_time == '8:00 AM'
        assert event.end_time == '10:00 AM'
        assert event.location == 'Central Park'
        assert event.description == 'Running'
        assert event.url == 'https://www.nycgovparks.org/events/2024/10/12/fall-5k'

    def test_free_text_date_normalized(self, reference_date):
        """Test that long-form dates are normalized with year inference."""
        processor = EventProcessor()

        processed = processor.process_candidates(
            [make_candidate(date='March 3'), make_candidate(name='Turkey Trot', date='Nov 28')],
            reference_date
        )

        assert [event.date for event in processed] == ['2025-03-03', '2024-11-28']

    def test_abbreviated_date_keeps_explicit_year(self, reference_date):
        """Test that a stated year is never replaced by an inferred one."""
        processor = EventProcessor()

        processed = processor.process_candidates(
            [make_candidate(date='Mar 3, 2026'), make_candidate(name='Spring Relay', date='2026 Mar 3')],
            reference_date
        )

        assert [event.date for event in processed] == ['2026-03-03', '2026-03-03']

    def test_missing_fields_dropped_with_reasons(self, reference_date):
        """Test that unusable candidates are skipped and counted."""
        processor = EventProcessor()

        processed = processor.process_candidates(
            [
                make_candidate(name='   '),
                make_candidate(date=''),
                make_candidate(date='sometime soon'),
            ],
            reference_date
        )

        assert processed == []
        assert processor.dropped == {
            'missing_name': 1,
            'missing_date': 1,
            'unparseable_date': 1,
        }

    def test_name_whitespace_collapsed(self, reference_date):
        processor = EventProcessor()

        processed = processor.process_candidates(
            [make_candidate(name='  Fall\n  5K  ')],
            reference_date
        )

        assert processed[0].name == 'Fall 5K'

    def test_url_falls_back_to_source_url(self, reference_date):
        processor = EventProcessor()

        processed = processor.process_candidates([make_candidate(event_url=None)], reference_date)

        assert processed[0].url == 'https://www.nycgovparks.org/parks/central-park/events'

    def test_times_normalized_and_optional(self, reference_date):
        processor = EventProcessor()

        processed = processor.process_candidates(
            [make_candidate(start_time='7:30am', end_time='')],
            reference_date
        )

        assert processed[0].start_time == '7:30 AM'
        assert processed[0].end_time == ''

    def test_description_truncated(self, reference_date):
        processor = EventProcessor()

        processed = processor.process_candidates(
            [make_candidate(description='x' * 2500)],
            reference_date
        )

        assert len(processed[0].description) == EventProcessor.MAX_DESCRIPTION_LENGTH

    def test_dropped_counter_reset_between_calls(self, reference_date):
        processor = EventProcessor()
        processor.process_candidates([make_candidate(date='')], reference_date)

        processor.process_candidates([make_candidate()], reference_date)

        assert processor.dropped == {}
