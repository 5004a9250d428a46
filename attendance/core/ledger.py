"""
Attendance Tracker — Ledger row translation.

Converts raw table records (dicts produced by TableLayout.records) into
AttendanceEvent / DirectoryEntry objects and back into rows. This is the
only module that knows which column of which table holds a date, a role
or an id.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from attendance.core.id_extractor import extract_numeric_id
from attendance.core.names import combine_names, normalize_name, split_full_name
from attendance.data.models import (
    AttendanceAggregate,
    AttendanceEvent,
    DirectoryEntry,
    LedgerKind,
)
from attendance.data.tables import (
    EVENT_ATTENDANCE,
    SERVICE_ATTENDANCE,
    TableLayout,
)

logger = logging.getLogger(__name__)

SERVICE_EVENT_NAME = "Sunday Service"
DATE_FORMAT = "%m/%d/%Y"
TIMESTAMP_FORMAT = "%m/%d/%Y %H:%M:%S"

_TEXT_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def parse_moment(value: object) -> tuple[date | None, datetime | None]:
    """Parse a cell into (calendar date, timestamp-or-None).

    The timestamp is only returned when the value carries a time of day;
    a bare date (or a datetime at exactly midnight) yields (date, None).
    Unparseable or empty values yield (None, None).
    """
    if value is None or value == "":
        return None, None
    if isinstance(value, datetime):
        return value.date(), (value if value.time() != datetime.min.time() else None)
    if isinstance(value, date):
        return value, None
    if not isinstance(value, str):
        return None, None

    text = value.strip()
    if not text:
        return None, None

    parsed: datetime | None = None
    for fmt in _TEXT_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
            break
        except ValueError:
            continue
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable date value %r", value)
            return None, None

    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None)
    if parsed.time() == datetime.min.time():
        return parsed.date(), None
    return parsed.date(), parsed.replace(microsecond=0)


def parse_timestamp(value: object) -> datetime | None:
    """Parse a timestamp cell; a bare date becomes midnight of that day."""
    day, moment = parse_moment(value)
    if moment is not None:
        return moment
    if day is not None:
        return datetime(day.year, day.month, day.day)
    return None


def format_date(value: date | None) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def format_timestamp(value: datetime | None) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ""


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


# ---------------------------------------------------------------------------
# Records → domain objects
# ---------------------------------------------------------------------------


def record_full_name(record: dict) -> str:
    """Full name of a record, combining first/last when no full name column is set."""
    full_name = _text(record.get("full_name"))
    if full_name:
        return " ".join(full_name.split())
    return combine_names(record.get("first_name"), record.get("last_name"))


def service_record_to_event(record: dict) -> AttendanceEvent:
    """Service Attendance row → AttendanceEvent."""
    event_date, event_time = parse_moment(record.get("service_date"))
    return AttendanceEvent(
        person_id=extract_numeric_id(record.get("person_id")),
        full_name=record_full_name(record),
        event_name=SERVICE_EVENT_NAME,
        event_date=event_date,
        event_time=event_time,
        ledger=LedgerKind.SERVICE,
        role=_text(record.get("notes")),
        recorded_at=parse_timestamp(record.get("timestamp")),
        first_name=_text(record.get("first_name")),
        last_name=_text(record.get("last_name")),
        email=_text(record.get("email")),
        row_number=record.get("_row"),
    )


def event_record_to_event(record: dict) -> AttendanceEvent:
    """Event Attendance row → AttendanceEvent."""
    event_date, event_time = parse_moment(record.get("event_date"))
    return AttendanceEvent(
        person_id=extract_numeric_id(record.get("person_id")),
        full_name=record_full_name(record),
        event_name=_text(record.get("event_name")),
        event_id=_text(record.get("event_id")),
        event_date=event_date,
        event_time=event_time,
        ledger=LedgerKind.EVENT,
        role=_text(record.get("role")),
        recorded_at=parse_timestamp(record.get("timestamp")),
        first_name=_text(record.get("first_name")),
        last_name=_text(record.get("last_name")),
        email=_text(record.get("email")),
        row_number=record.get("_row"),
    )


def intake_record_to_event(record: dict) -> AttendanceEvent:
    """Sunday Service form row → service AttendanceEvent keyed by its timestamp."""
    event_date, event_time = parse_moment(record.get("timestamp"))
    return AttendanceEvent(
        person_id=extract_numeric_id(record.get("person_id")),
        full_name=record_full_name(record),
        event_name=SERVICE_EVENT_NAME,
        event_date=event_date,
        event_time=event_time,
        ledger=LedgerKind.SERVICE,
        recorded_at=parse_timestamp(record.get("timestamp")),
        first_name=_text(record.get("first_name")),
        last_name=_text(record.get("last_name")),
        email=_text(record.get("email")),
        row_number=record.get("_row"),
    )


def ledger_events(layout: TableLayout, rows: list[list]) -> list[AttendanceEvent]:
    """Translate every data row of a canonical ledger into events."""
    if layout == SERVICE_ATTENDANCE:
        convert = service_record_to_event
    elif layout == EVENT_ATTENDANCE:
        convert = event_record_to_event
    else:
        raise ValueError(f"{layout.name!r} is not a canonical ledger")
    return [convert(record) for record in layout.records(rows)]


def directory_entries(layout: TableLayout, rows: list[list]) -> dict[str, DirectoryEntry]:
    """Directory rows → {normalized full name: DirectoryEntry}.

    Rows without a usable id or name are left out; the first row wins when a
    name repeats.
    """
    entries: dict[str, DirectoryEntry] = {}
    for record in layout.records(rows):
        full_name = record_full_name(record)
        key = normalize_name(full_name)
        person_id = extract_numeric_id(record.get("person_id"))
        if not key or person_id is None or key in entries:
            continue
        entries[key] = DirectoryEntry(
            id=person_id,
            full_name=full_name,
            first_name=_text(record.get("first_name")),
            last_name=_text(record.get("last_name")),
            email=_text(record.get("email")),
        )
    return entries


# ---------------------------------------------------------------------------
# Domain objects → rows
# ---------------------------------------------------------------------------


def event_to_row(event: AttendanceEvent) -> list:
    """Render an event as a row of its canonical ledger."""
    first_name, last_name = event.first_name, event.last_name
    if not first_name and not last_name:
        first_name, last_name = split_full_name(event.full_name)

    when = format_timestamp(event.event_time) if event.event_time else format_date(event.event_date)
    recorded = format_timestamp(event.recorded_at)
    person_id = event.person_id if event.person_id is not None else ""

    if event.ledger is LedgerKind.SERVICE:
        return SERVICE_ATTENDANCE.to_row({
            "person_id": person_id,
            "full_name": event.full_name,
            "first_name": first_name,
            "last_name": last_name,
            "service_date": when,
            "is_visitor": "No",
            "email": event.email,
            "notes": event.role,
            "timestamp": recorded,
        })
    return EVENT_ATTENDANCE.to_row({
        "person_id": person_id,
        "full_name": event.full_name,
        "event_name": event.event_name,
        "event_id": event.event_id,
        "first_name": first_name,
        "last_name": last_name,
        "email": event.email,
        "role": event.role,
        "event_date": when,
        "timestamp": recorded,
    })


def aggregate_to_row(aggregate: AttendanceAggregate, layout: TableLayout) -> list:
    """Render an aggregate as a stats-table row; columns the layout lacks are dropped."""
    return layout.to_row({
        "person_id": aggregate.person_id,
        "full_name": aggregate.full_name,
        "first_name": aggregate.first_name,
        "last_name": aggregate.last_name,
        "trailing_window_events": aggregate.events_in_trailing_window,
        "month_events": aggregate.events_this_month,
        "volunteer_count": aggregate.volunteer_count,
        "last_attended_date": format_date(aggregate.last_attended_date),
        "last_event_name": aggregate.last_attended_event_name,
        "total_events": aggregate.total_events_attended,
        "prior_year_service_count": aggregate.prior_calendar_year_count,
        "activity_level": aggregate.activity_level.value,
        "guest_tag": aggregate.guest_tag,
    })


def ledger_layout(kind: LedgerKind) -> TableLayout:
    return SERVICE_ATTENDANCE if kind is LedgerKind.SERVICE else EVENT_ATTENDANCE
