"""
Attendance Tracker — Event deduplication.

The canonical ledgers may hold at most one event per natural key:
(name, day) for the recurring service ledger and (name, event, day) for the
event ledger. Two events that both carry a time of day are compared to the
minute instead, so separate timestamped check-ins on one day stay distinct;
as soon as either side is date-only, the calendar day decides.

Also home of the bounded wait used when a form row's person id is filled in
by another process shortly after the row is written.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from attendance.core.errors import ConsistencyTimeout
from attendance.core.names import normalize_name
from attendance.data.models import AttendanceEvent, LedgerKind

logger = logging.getLogger(__name__)

EventKey = tuple


def event_key(event: AttendanceEvent) -> EventKey | None:
    """Natural dedup key of an event, or None if it lacks a name or date."""
    name = normalize_name(event.full_name)
    if not name:
        return None
    if event.event_time is not None:
        moment = event.event_time.replace(second=0, microsecond=0)
    elif event.event_date is not None:
        moment = event.event_date
    else:
        return None
    return _with_ledger(event, name, moment)


def day_key(event: AttendanceEvent) -> EventKey | None:
    """Same as event_key but always at calendar-day resolution."""
    name = normalize_name(event.full_name)
    if not name or event.event_date is None:
        return None
    return _with_ledger(event, name, event.event_date)


def _with_ledger(event: AttendanceEvent, name: str, moment) -> EventKey:
    if event.ledger is LedgerKind.EVENT:
        return (event.ledger.value, name, normalize_name(event.event_name), moment)
    return (event.ledger.value, name, moment)


class EventDeduplicator:
    """Key sets over a canonical ledger, built once per run.

    `should_insert` is O(1) and remembers accepted candidates, so the same
    event submitted twice in one batch is only accepted once.
    """

    def __init__(self, ledger_events: Iterable[AttendanceEvent]) -> None:
        self._keys: set[EventKey] = set()
        self._days: set[EventKey] = set()
        self._untimed_days: set[EventKey] = set()
        for event in ledger_events:
            if event_key(event) is not None:
                self._remember(event)
        logger.debug("Dedup key set built with %d keys", len(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def _remember(self, event: AttendanceEvent) -> None:
        day = day_key(event)
        self._keys.add(event_key(event))
        self._days.add(day)
        if event.event_time is None:
            self._untimed_days.add(day)

    def _is_duplicate(self, candidate: AttendanceEvent) -> bool:
        day = day_key(candidate)
        if day in self._untimed_days:
            return True
        if candidate.event_time is None:
            return day in self._days
        return event_key(candidate) in self._keys

    def should_insert(self, candidate: AttendanceEvent) -> bool:
        if event_key(candidate) is None:
            logger.warning(
                "Skipping event without a usable name or date: name=%r date=%r",
                candidate.full_name, candidate.event_time or candidate.event_date,
            )
            return False
        if self._is_duplicate(candidate):
            logger.info(
                "Duplicate event skipped: '%s' on %s",
                candidate.full_name, candidate.event_time or candidate.event_date,
            )
            return False
        self._remember(candidate)
        return True


def should_insert(
    candidate: AttendanceEvent, ledger_events: Iterable[AttendanceEvent],
) -> bool:
    """One-off check of a single candidate against a ledger."""
    return EventDeduplicator(ledger_events).should_insert(candidate)


def _is_blank(value: object) -> bool:
    return value is None or str(value).strip() == ""


def wait_for_person_id(
    read_id: Callable[[], object],
    *,
    retries: int,
    delay_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "",
) -> object:
    """Poll ``read_id`` until it returns a non-blank value.

    Checks once immediately, then up to ``retries`` more times with a fixed
    ``delay_seconds`` pause before each check. Raises ConsistencyTimeout
    when the value never appears.
    """
    value = read_id()
    if not _is_blank(value):
        return value

    logger.info("Person id missing for %s; waiting for it to be assigned", label or "row")
    for attempt in range(1, retries + 1):
        sleep(delay_seconds)
        value = read_id()
        if not _is_blank(value):
            logger.info("Person id for %s appeared after %d attempt(s): %s", label or "row", attempt, value)
            return value
        logger.debug("Attempt %d of %d: person id still missing for %s", attempt, retries, label or "row")

    raise ConsistencyTimeout(
        f"Person id for {label or 'row'} not assigned after {retries} retries"
    )
