"""
Attendance Tracker — Attendance Aggregator.

Rebuilds per-person statistics from the full event ledger on every run:
monthly and rolling-window counts, volunteer count, recency, lifetime
total, last calendar year's distinct service dates, and activity level.

No I/O and no state between calls: the same events and as-of date always
produce the same aggregates.
"""

from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Iterable

from attendance.core.id_extractor import extract_numeric_id
from attendance.core.ledger import format_date, parse_moment
from attendance.core.names import normalize_name, split_full_name
from attendance.data.models import (
    ActivityLevel,
    AttendanceAggregate,
    AttendanceEvent,
    EventCounters,
    LedgerKind,
)

logger = logging.getLogger(__name__)

DEFAULT_TRAILING_MONTHS = 3
DEFAULT_CORE_THRESHOLD = 12
DEFAULT_ACTIVE_THRESHOLD = 3
DEFAULT_ARCHIVE_AFTER_MONTHS = 12
VOLUNTEER_MARKER = "volunteer"


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def months_before(day: date, months: int) -> date:
    """Same day-of-month ``months`` earlier, clamped to the month's length."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month0 = divmod(month_index, 12)
    last_day = calendar.monthrange(year, month0 + 1)[1]
    return date(year, month0 + 1, min(day.day, last_day))


def classify_activity(
    trailing_count: int,
    last_attended: date | None,
    as_of: date | datetime,
    *,
    core_threshold: int = DEFAULT_CORE_THRESHOLD,
    active_threshold: int = DEFAULT_ACTIVE_THRESHOLD,
    archive_after_months: int = DEFAULT_ARCHIVE_AFTER_MONTHS,
) -> ActivityLevel:
    """Engagement tier. Archive (stale last attendance) beats the count tiers."""
    as_of = _as_date(as_of)
    if last_attended is not None and last_attended < months_before(as_of, archive_after_months):
        return ActivityLevel.ARCHIVE
    if trailing_count >= core_threshold:
        return ActivityLevel.CORE
    if trailing_count >= active_threshold:
        return ActivityLevel.ACTIVE
    return ActivityLevel.INACTIVE


def aggregate(
    events: Iterable[AttendanceEvent],
    as_of: date | datetime,
    *,
    service_events: Iterable[AttendanceEvent] | None = None,
    trailing_months: int = DEFAULT_TRAILING_MONTHS,
    core_threshold: int = DEFAULT_CORE_THRESHOLD,
    active_threshold: int = DEFAULT_ACTIVE_THRESHOLD,
    archive_after_months: int = DEFAULT_ARCHIVE_AFTER_MONTHS,
    volunteer_marker: str = VOLUNTEER_MARKER,
) -> list[AttendanceAggregate]:
    """Group events by person id and compute each person's statistics.

    Args:
        events: Every canonical ledger event (already deduplicated).
        as_of: Reference day for month, window, year and recency checks.
        service_events: Service-only sub-ledger for the prior-year count;
            defaults to the SERVICE events found in ``events``.

    Returns:
        One AttendanceAggregate per person id, sorted by id.
    """
    as_of = _as_date(as_of)
    events = list(events)
    window_start = months_before(as_of, trailing_months)
    marker = volunteer_marker.casefold()

    grouped: dict[int, list[AttendanceEvent]] = defaultdict(list)
    skipped = 0
    for event in events:
        if event.person_id is None or event.event_date is None:
            skipped += 1
            continue
        grouped[event.person_id].append(event)
    if skipped:
        logger.info("Aggregation ignored %d event(s) without a person id or date", skipped)

    if service_events is None:
        service_events = [e for e in events if e.ledger is LedgerKind.SERVICE]
    prior_year = as_of.year - 1
    prior_year_dates: dict[int, set[date]] = defaultdict(set)
    for event in service_events:
        if event.person_id is not None and event.event_date is not None:
            if event.event_date.year == prior_year:
                prior_year_dates[event.person_id].add(event.event_date)

    summary: list[AttendanceAggregate] = []
    for person_id, records in grouped.items():
        this_month = in_window = volunteer = 0
        latest: AttendanceEvent | None = None
        for r in records:
            d = r.event_date
            if d.year == as_of.year and d.month == as_of.month:
                this_month += 1
            if window_start <= d <= as_of:
                in_window += 1
            if d.year == as_of.year and marker in (r.role or "").casefold():
                volunteer += 1
            if latest is None or d > latest.event_date:
                latest = r

        first_name, last_name = split_full_name(latest.full_name)
        summary.append(AttendanceAggregate(
            person_id=person_id,
            full_name=latest.full_name,
            first_name=first_name,
            last_name=last_name,
            events_this_month=this_month,
            events_in_trailing_window=in_window,
            volunteer_count=volunteer,
            last_attended_date=latest.event_date,
            last_attended_event_name=latest.event_name,
            total_events_attended=len(records),
            activity_level=classify_activity(
                in_window, latest.event_date, as_of,
                core_threshold=core_threshold,
                active_threshold=active_threshold,
                archive_after_months=archive_after_months,
            ),
            prior_calendar_year_count=len(prior_year_dates.get(person_id, ())),
        ))

    summary.sort(key=lambda a: a.person_id)
    logger.info("Attendance stats calculated for %d individuals", len(summary))
    return summary


def event_counters(
    events: Iterable[AttendanceEvent], event_name: str, as_of: date | datetime,
) -> EventCounters:
    """Registration-sheet counters for the named event.

    attendees_this_month counts every event-ledger entry dated in the
    current month; attendees_this_event counts distinct (person, date)
    pairs for ``event_name``.
    """
    as_of = _as_date(as_of)
    wanted = normalize_name(event_name)
    month_total = 0
    this_event: set[tuple[int, date]] = set()
    for event in events:
        if event.ledger is not LedgerKind.EVENT:
            continue
        if event.person_id is None or event.event_date is None:
            continue
        if event.event_date.year == as_of.year and event.event_date.month == as_of.month:
            month_total += 1
        if normalize_name(event.event_name) == wanted:
            this_event.add((event.person_id, event.event_date))
    return EventCounters(attendees_this_month=month_total, attendees_this_event=len(this_event))


# ---------------------------------------------------------------------------
# Change reporting against the previously written stats
# ---------------------------------------------------------------------------

_COMPARED_FIELDS = (
    ("Window", "trailing_window_events", "events_in_trailing_window"),
    ("Month", "month_events", "events_this_month"),
    ("Volunteer", "volunteer_count", "volunteer_count"),
    ("Total", "total_events", "total_events_attended"),
    ("LastYear", "prior_year_service_count", "prior_calendar_year_count"),
)


def _as_int(value: object) -> int:
    number = extract_numeric_id(value)
    return number if number is not None else 0


def previous_stats(records: Iterable[dict]) -> dict[int, dict]:
    """Index previously written stats records by person id."""
    out: dict[int, dict] = {}
    for record in records:
        person_id = extract_numeric_id(record.get("person_id"))
        if person_id is not None:
            out[person_id] = record
    return out


def diff_aggregates(
    previous: dict[int, dict], aggregates: Iterable[AttendanceAggregate],
) -> dict[int, list[str]]:
    """Describe what changed per person since the last written stats.

    New people map to ``["new record"]``; unchanged people are omitted.
    """
    changes: dict[int, list[str]] = {}
    for agg in aggregates:
        old = previous.get(agg.person_id)
        if old is None:
            changes[agg.person_id] = ["new record"]
            continue
        diffs: list[str] = []
        for label, column, attr in _COMPARED_FIELDS:
            old_value = _as_int(old.get(column))
            new_value = getattr(agg, attr)
            if old_value != new_value:
                diffs.append(f"{label}: {old_value} -> {new_value}")

        old_day, _ = parse_moment(old.get("last_attended_date"))
        if format_date(old_day) != format_date(agg.last_attended_date):
            diffs.append(
                f"LastDate: '{format_date(old_day)}' -> '{format_date(agg.last_attended_date)}'"
            )
        old_event = str(old.get("last_event_name") or "")
        if old_event != agg.last_attended_event_name:
            diffs.append(f"LastEvent: '{old_event}' -> '{agg.last_attended_event_name}'")
        if diffs:
            changes[agg.person_id] = diffs
    return changes
