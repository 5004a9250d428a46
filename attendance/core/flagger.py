"""
Attendance Tracker — Follow-up & Guest Flagger.

Annotates event-ledger rows with first-time and needs-follow-up flags and
tags aggregates whose person is missing from the directory. Every flag is
recomputed from scratch, so a stale tag never survives a run.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable

from attendance.core.ledger import record_full_name
from attendance.core.names import normalize_name
from attendance.data.models import (
    AttendanceAggregate,
    AttendanceEvent,
    EventFlags,
    FlagReport,
)
from attendance.data.tables import TableLayout

logger = logging.getLogger(__name__)

GUEST_TAG = "Guest (need to add in Directory)"
DEFAULT_FOLLOW_UP_DAYS = 30


def directory_name_set(layout: TableLayout, rows: list[list]) -> set[str]:
    """Normalized names present in the directory, with or without a valid id."""
    names = set()
    for record in layout.records(rows):
        key = normalize_name(record_full_name(record))
        if key:
            names.add(key)
    return names


def flag(
    events: Iterable[AttendanceEvent],
    aggregates: Iterable[AttendanceAggregate],
    directory_names: set[str],
    as_of: date | datetime,
    *,
    follow_up_days: int = DEFAULT_FOLLOW_UP_DAYS,
) -> FlagReport:
    """Compute per-row and per-person flags.

    Args:
        events: The ledger rows being flagged, in ledger order.
        aggregates: Current aggregates; supply each person's global last
            attended date.
        directory_names: Normalized directory names.
        as_of: Reference day for the follow-up gap.

    Returns:
        FlagReport with one EventFlags per event and a guest tag per
        aggregate person id ("" when the person is in the directory).
    """
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    events = list(events)
    aggregates = list(aggregates)

    name_counts: dict[str, int] = {}
    latest_by_name: dict[str, date] = {}
    for event in events:
        key = normalize_name(event.full_name)
        if not key:
            continue
        name_counts[key] = name_counts.get(key, 0) + 1
        if event.event_date is not None:
            seen = latest_by_name.get(key)
            if seen is None or event.event_date > seen:
                latest_by_name[key] = event.event_date

    latest_by_id = {
        agg.person_id: agg.last_attended_date
        for agg in aggregates
        if agg.last_attended_date is not None
    }

    report = FlagReport()
    for event in events:
        key = normalize_name(event.full_name)
        last_seen = latest_by_id.get(event.person_id) if event.person_id is not None else None
        if last_seen is None and key:
            last_seen = latest_by_name.get(key)
        needs_follow_up = last_seen is not None and (as_of - last_seen).days >= follow_up_days
        report.per_event_flags.append(EventFlags(
            row_number=event.row_number,
            person_id=event.person_id,
            full_name=event.full_name,
            first_time=bool(key) and name_counts.get(key) == 1,
            needs_follow_up=needs_follow_up,
        ))

    if not directory_names:
        logger.warning("Directory is empty; clearing all guest tags")
    for agg in aggregates:
        in_directory = normalize_name(agg.full_name) in directory_names
        report.per_person_guest_tags[agg.person_id] = (
            "" if in_directory or not directory_names else GUEST_TAG
        )

    logger.info(
        "Flags computed: %d first-time, %d follow-up, %d guest(s)",
        sum(f.first_time for f in report.per_event_flags),
        sum(f.needs_follow_up for f in report.per_event_flags),
        sum(1 for tag in report.per_person_guest_tags.values() if tag),
    )
    return report
