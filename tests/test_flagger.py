"""Tests for attendance.core.flagger."""

from datetime import date

from attendance.core.aggregator import aggregate
from attendance.core.flagger import GUEST_TAG, directory_name_set, flag
from attendance.data.models import AttendanceEvent, LedgerKind
from attendance.data.tables import DIRECTORY

AS_OF = date(2026, 10, 18)


def _ev(person_id, name, day, row):
    return AttendanceEvent(
        person_id=person_id, full_name=name, event_name="Picnic",
        event_date=day, ledger=LedgerKind.EVENT, row_number=row,
    )


class TestFirstTime:
    def test_single_occurrence_is_first_time(self):
        events = [_ev(1, "Jane Doe", date(2026, 10, 10), 2)]
        report = flag(events, aggregate(events, AS_OF), {"jane doe"}, AS_OF)
        assert report.per_event_flags[0].first_time is True

    def test_name_twice_is_never_first_time(self):
        events = [
            _ev(1, "Jane Doe", date(2026, 9, 1), 2),
            _ev(1, "jane  doe", date(2026, 10, 10), 3),
        ]
        report = flag(events, aggregate(events, AS_OF), set(), AS_OF)
        assert [f.first_time for f in report.per_event_flags] == [False, False]


class TestFollowUp:
    def test_uses_global_last_attendance(self):
        events = [_ev(1, "Jane Doe", date(2026, 8, 1), 2)]
        # Jane also attended a service recently, which only the aggregates know.
        recent = [AttendanceEvent(1, "Jane Doe", "Sunday Service", date(2026, 10, 11))]
        aggregates = aggregate(events + recent, AS_OF)
        report = flag(events, aggregates, {"jane doe"}, AS_OF)
        assert report.per_event_flags[0].needs_follow_up is False

    def test_threshold_is_inclusive_and_shared_by_all_rows(self):
        events = [
            _ev(2, "John Smith", date(2026, 8, 1), 2),
            _ev(2, "John Smith", date(2026, 9, 18), 3),
        ]
        report = flag(events, aggregate(events, AS_OF), set(), AS_OF, follow_up_days=30)
        assert [f.needs_follow_up for f in report.per_event_flags] == [True, True]

    def test_recent_is_not_flagged(self):
        events = [_ev(2, "John Smith", date(2026, 9, 19), 2)]
        report = flag(events, aggregate(events, AS_OF), set(), AS_OF)
        assert report.per_event_flags[0].needs_follow_up is False

    def test_falls_back_to_name_without_id(self):
        events = [_ev(None, "No Id", date(2026, 1, 1), 2)]
        report = flag(events, [], set(), AS_OF)
        assert report.per_event_flags[0].needs_follow_up is True


class TestGuestTags:
    def test_tags_people_missing_from_directory(self):
        events = [_ev(1, "Jane Doe", date(2026, 10, 10), 2), _ev(2, "Guest Person", date(2026, 10, 10), 3)]
        report = flag(events, aggregate(events, AS_OF), {"jane doe"}, AS_OF)
        assert report.per_person_guest_tags == {1: "", 2: GUEST_TAG}

    def test_tag_is_cleared_once_added_to_directory(self):
        events = [_ev(2, "Guest Person", date(2026, 10, 10), 2)]
        aggregates = aggregate(events, AS_OF)
        assert flag(events, aggregates, {"someone"}, AS_OF).per_person_guest_tags[2] == GUEST_TAG
        assert flag(events, aggregates, {"guest person"}, AS_OF).per_person_guest_tags[2] == ""

    def test_empty_directory_clears_all_tags(self):
        events = [_ev(2, "Guest Person", date(2026, 10, 10), 2)]
        report = flag(events, aggregate(events, AS_OF), set(), AS_OF)
        assert report.per_person_guest_tags == {2: ""}


class TestDirectoryNameSet:
    def test_includes_rows_without_valid_id(self):
        rows = [
            list(DIRECTORY.columns),
            ["10", "John Smith", "", "", ""],
            ["", "", "Jane", "Doe", ""],
        ]
        assert directory_name_set(DIRECTORY, rows) == {"john smith", "jane doe"}
